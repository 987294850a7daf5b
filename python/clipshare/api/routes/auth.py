"""Account and session routes.

- POST /auth/register: create an account
- POST /auth/login: exchange username-or-email + password for a token pair
- POST /auth/refresh: rotate a token pair using the refresh token
- POST /auth/logout: revoke the session of the presented access token

register, login and refresh are public paths; logout requires a bearer token.
Routes are transport-only: each delegates to the account store or session manager.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from clipshare.api.deps import ClientInfo, get_client_info, get_db
from clipshare.auth.middleware import Viewer, get_viewer
from clipshare.responses import success_response
from clipshare.schemas.auth import (
    LoginOut,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    UserOut,
)
from clipshare.services import accounts as accounts_service
from clipshare.services import sessions as sessions_service

router = APIRouter(prefix="/auth")


@router.post("/register", status_code=201)
def register(
    body: RegisterRequest,
    db: Annotated[Session, Depends(get_db)],
    client: Annotated[ClientInfo, Depends(get_client_info)],
) -> dict:
    """Create an account.

    Errors:
        E_DUPLICATE_IDENTITY (409): Username or email already registered
    """
    user = accounts_service.create_user(
        db, username=body.username, email=body.email, password=body.password, ip=client.ip
    )
    return success_response(UserOut.model_validate(user).model_dump(mode="json"))


@router.post("/login")
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
    client: Annotated[ClientInfo, Depends(get_client_info)],
) -> dict:
    """Log in and open a session.

    Returns:
        {"data": {"access_token", "refresh_token", "token_type", "expires_in",
                  "expires_at", "refresh_expires_at", "user"}}

    Errors:
        E_INVALID_CREDENTIALS (401): Unknown identifier or wrong password
        E_ACCOUNT_DISABLED (403): Account is disabled
    """
    user = accounts_service.verify_credentials(db, body.username, body.password, ip=client.ip)
    pair = sessions_service.issue_session(
        db, user.id, device_info=client.user_agent, ip=client.ip
    )
    out = LoginOut(**pair.model_dump(), user=UserOut.model_validate(user))
    return success_response(out.model_dump(mode="json"))


@router.post("/refresh")
def refresh(body: RefreshRequest, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Rotate the token pair. The presented refresh token stops working.

    Errors:
        E_TOKEN_NOT_FOUND (401): Unknown, revoked or already rotated refresh token
        E_REFRESH_EXPIRED (401): Refresh token past its expiry
    """
    pair = sessions_service.refresh_session(db, body.refresh_token)
    return success_response(pair.model_dump(mode="json"))


@router.post("/logout", status_code=204)
def logout(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Revoke the current session."""
    sessions_service.revoke_session(db, viewer.token)
    return Response(status_code=204)
