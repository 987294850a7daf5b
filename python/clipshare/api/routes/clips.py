"""Clip routes.

- POST /clips: create a clip
- GET /clips: list the viewer's clips (cursor paginated)
- GET /clips/public: list public clips (anonymous allowed)
- GET /clips/{identifier}: read a clip by numeric id or short_url (anonymous allowed)
- PATCH /clips/{clip_id}: partial update, owner only
- DELETE /clips/{clip_id}: soft delete, owner only
- GET /clips/{clip_id}/access-logs: view log, owner only

Response envelope: {"data": ...}
Error envelope: {"error": {"code": "...", "message": "...", "request_id": "..."}}

The unwrapped encryption key is only ever serialized for the clip's owner.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from clipshare.api.deps import ClientInfo, get_client_info, get_db
from clipshare.auth.middleware import Viewer, get_optional_viewer, get_viewer
from clipshare.responses import success_response
from clipshare.schemas.clips import ClipCreate, ClipListOut, ClipUpdate
from clipshare.services import access_log as access_log_service
from clipshare.services import clips as clips_service
from clipshare.services.pagination import DEFAULT_LIMIT

router = APIRouter(prefix="/clips")


@router.post("", status_code=201)
def create_clip(
    body: ClipCreate,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create a clip.

    Errors:
        E_INVALID_CONTENT_TYPE (400): Unknown content_type
        E_INVALID_ACCESS_TYPE (400): Unknown access_type
        E_INVALID_REQUEST (400): Empty/oversized content, bad ttl, missing key, bad url
        E_UNIQUE_RETRY_EXHAUSTED (503): Could not allocate a short_url
    """
    clip = clips_service.create_clip(
        db,
        viewer.user_id,
        body.content,
        body.content_type,
        body.access_type,
        ttl=body.expires_in,
        is_encrypted=body.is_encrypted,
        encryption_key=body.encryption_key,
        title=body.title,
        language=body.language,
        tags=body.tags,
    )
    return success_response(clips_service.clip_to_out(clip, viewer.user_id).model_dump(mode="json"))


@router.get("")
def list_my_clips(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    limit: int = Query(default=DEFAULT_LIMIT),
    cursor: str | None = Query(default=None),
    content_type: str | None = Query(default=None),
    tag: str | None = Query(default=None),
) -> dict:
    """List the viewer's clips, newest first. Expired clips carry is_expired=true."""
    clips, page = clips_service.list_user_clips(
        db,
        viewer.user_id,
        limit=limit,
        cursor=cursor,
        content_type=content_type,
        tag=tag,
    )
    return success_response(ClipListOut(clips=clips, page=page).model_dump(mode="json"))


@router.get("/public")
def list_public_clips(
    viewer: Annotated[Viewer | None, Depends(get_optional_viewer)],
    db: Annotated[Session, Depends(get_db)],
    limit: int = Query(default=DEFAULT_LIMIT),
    cursor: str | None = Query(default=None),
    content_type: str | None = Query(default=None),
) -> dict:
    """List public, unexpired clips, newest first."""
    clips, page = clips_service.list_public_clips(
        db,
        viewer_id=viewer.user_id if viewer else None,
        limit=limit,
        cursor=cursor,
        content_type=content_type,
    )
    return success_response(ClipListOut(clips=clips, page=page).model_dump(mode="json"))


@router.get("/{identifier}")
def get_clip(
    identifier: str,
    viewer: Annotated[Viewer | None, Depends(get_optional_viewer)],
    db: Annotated[Session, Depends(get_db)],
    client: Annotated[ClientInfo, Depends(get_client_info)],
) -> dict:
    """Read a clip by id or short_url. Counts as a view.

    Errors:
        E_CLIP_NOT_FOUND (404): Missing or deleted
        E_CLIP_EXPIRED (410): Past expires_at
        E_FORBIDDEN (403): Private clip, viewer is not the owner
    """
    viewer_id = viewer.user_id if viewer else None
    clip = clips_service.get_clip(
        db,
        identifier,
        viewer_id,
        access_ip=client.ip,
        user_agent=client.user_agent,
        referrer=client.referrer,
    )
    return success_response(clips_service.clip_to_out(clip, viewer_id).model_dump(mode="json"))


@router.patch("/{clip_id}")
def update_clip(
    clip_id: int,
    body: ClipUpdate,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Update a clip. Only fields present in the body are changed.

    Errors:
        E_CLIP_NOT_FOUND (404): Missing or deleted
        E_FORBIDDEN (403): Viewer is not the owner
    """
    clip = clips_service.update_clip(
        db, clip_id, viewer.user_id, body.model_dump(exclude_unset=True)
    )
    return success_response(clips_service.clip_to_out(clip, viewer.user_id).model_dump(mode="json"))


@router.delete("/{clip_id}", status_code=204)
def delete_clip(
    clip_id: int,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Soft-delete a clip."""
    clips_service.delete_clip(db, clip_id, viewer.user_id)
    return Response(status_code=204)


@router.get("/{clip_id}/access-logs")
def list_access_logs(
    clip_id: int,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    limit: int = Query(default=DEFAULT_LIMIT),
    cursor: str | None = Query(default=None),
) -> dict:
    """List views of a clip, newest first. Owner only."""
    logs, page = access_log_service.list_clip_access(
        db, clip_id, viewer.user_id, limit=limit, cursor=cursor
    )
    return success_response(
        {
            "logs": [log.model_dump(mode="json") for log in logs],
            "page": page.model_dump(mode="json"),
        }
    )
