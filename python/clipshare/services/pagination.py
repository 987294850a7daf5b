"""Keyset pagination helpers shared by list endpoints.

Lists are ordered newest first by (timestamp, id). The cursor is the position
of the last row returned:

    payload: {"ts": "<iso>", "id": <int>}
    encoding: base64url without padding
"""

import base64
import json
from datetime import datetime

from clipshare.errors import ApiErrorCode, InvalidRequestError

DEFAULT_LIMIT = 50
MIN_LIMIT = 1
MAX_LIMIT = 100


def clamp_limit(limit: int) -> int:
    """Clamp limit to valid range [MIN_LIMIT, MAX_LIMIT]."""
    return min(max(limit, MIN_LIMIT), MAX_LIMIT)


def encode_cursor(ts: datetime, id: int) -> str:
    payload = {"ts": ts.isoformat(), "id": id}
    json_bytes = json.dumps(payload).encode("utf-8")
    return base64.urlsafe_b64encode(json_bytes).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> tuple[datetime, int]:
    """Decode a cursor produced by encode_cursor.

    Raises:
        InvalidRequestError(E_INVALID_CURSOR): If cursor is malformed or unparseable.
    """
    try:
        padding = 4 - len(cursor) % 4
        if padding != 4:
            cursor += "=" * padding

        payload = json.loads(base64.urlsafe_b64decode(cursor).decode("utf-8"))
        ts = datetime.fromisoformat(payload["ts"])
        id = int(payload["id"])
    except Exception:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_CURSOR, "Invalid cursor") from None

    if ts.tzinfo is None:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_CURSOR, "Invalid cursor")
    return ts, id
