"""Current user endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from clipshare.api.deps import get_db
from clipshare.auth.middleware import Viewer, get_viewer
from clipshare.responses import success_response
from clipshare.schemas.auth import UserOut
from clipshare.services import accounts as accounts_service

router = APIRouter()


@router.get("/me")
def get_me(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get the authenticated account. Never includes password_hash or salt."""
    user = accounts_service.get_user(db, viewer.user_id)
    return success_response(UserOut.model_validate(user).model_dump(mode="json"))


@router.delete("/me", status_code=204)
def delete_me(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Soft-delete the authenticated account and its clips, revoking all sessions."""
    accounts_service.soft_delete_user(db, viewer.user_id)
    return Response(status_code=204)
