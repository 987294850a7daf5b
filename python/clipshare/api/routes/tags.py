"""Tag listing route."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clipshare.api.deps import get_db
from clipshare.auth.middleware import Viewer, get_viewer
from clipshare.responses import success_response
from clipshare.schemas.clips import TagOut
from clipshare.services import tags as tags_service

router = APIRouter()


@router.get("/tags")
def list_tags(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    include_unused: bool = Query(default=False),
) -> dict:
    """List the viewer's tags, most used first.

    Tags whose usage_count dropped to zero are hidden unless include_unused is set.
    """
    tags = tags_service.list_user_tags(db, viewer.user_id, include_unused=include_unused)
    return success_response([TagOut.model_validate(t).model_dump(mode="json") for t in tags])
