"""FastAPI dependencies for route handlers.

Common dependencies like database sessions and request metadata.
"""

from dataclasses import dataclass

from fastapi import Request

from clipshare.db.session import get_db
from clipshare.services.access_log import MAX_IP_LENGTH

__all__ = ["ClientInfo", "get_client_info", "get_db"]

FORWARDED_FOR_HEADER = "x-forwarded-for"


@dataclass
class ClientInfo:
    """Caller metadata recorded on logins and clip views."""

    ip: str
    user_agent: str | None
    referrer: str | None


def get_client_info(request: Request) -> ClientInfo:
    """Extract caller address and headers.

    The first X-Forwarded-For hop wins over the socket peer, since the API is
    deployed behind a reverse proxy. The address is cut to MAX_IP_LENGTH so it
    fits every ip column it is written to.
    """
    forwarded = request.headers.get(FORWARDED_FOR_HEADER)
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    elif request.client is not None:
        ip = request.client.host
    else:
        ip = "unknown"

    return ClientInfo(
        ip=(ip or "unknown")[:MAX_IP_LENGTH],
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer"),
    )
