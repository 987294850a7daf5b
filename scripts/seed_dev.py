#!/usr/bin/env python
"""Seed the development database with a demo account and clips.

Constraints:
- Refuses to run in staging or prod (CLIPSHARE_ENV check)
- Idempotent: does nothing if the demo account already exists
- Never runs automatically (manual invocation only)

Usage:
    DATABASE_URL=... python scripts/seed_dev.py
"""

import os
import sys
from pathlib import Path

DEMO_USERNAME = "demo"
DEMO_EMAIL = "demo@example.com"
DEMO_PASSWORD = "demo-password"

DEMO_CLIPS = [
    {
        "content": "Welcome to clipshare. This clip is public.",
        "content_type": "text",
        "access_type": "public",
        "title": "Welcome",
        "tags": ["welcome"],
    },
    {
        "content": "def hello():\n    return 'world'\n",
        "content_type": "code",
        "access_type": "unlisted",
        "title": "Snippet",
        "language": "python",
        "tags": ["python", "snippet"],
    },
    {
        "content": "https://example.com/docs",
        "content_type": "url",
        "access_type": "private",
        "ttl": 3600,
        "tags": ["link"],
    },
]


def main():
    clipshare_env = os.getenv("CLIPSHARE_ENV", "local")
    if clipshare_env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in CLIPSHARE_ENV={clipshare_env}")
        sys.exit(1)

    if not os.getenv("DATABASE_URL"):
        print("ERROR: DATABASE_URL environment variable must be set")
        sys.exit(1)

    sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "python"))

    from sqlalchemy import select

    from clipshare.db.models import User
    from clipshare.db.session import get_session_factory
    from clipshare.services.accounts import create_user
    from clipshare.services.clips import create_clip

    db = get_session_factory()()
    try:
        if db.scalar(select(User.id).where(User.username == DEMO_USERNAME)) is not None:
            print(f"Demo account '{DEMO_USERNAME}' already exists, nothing to do")
            return

        user = create_user(db, DEMO_USERNAME, DEMO_EMAIL, DEMO_PASSWORD)
        for fields in DEMO_CLIPS:
            fields = dict(fields)
            clip = create_clip(
                db,
                user.id,
                fields.pop("content"),
                fields.pop("content_type"),
                fields.pop("access_type"),
                **fields,
            )
            print(f"Created {clip.access_type} clip /clips/{clip.short_url}")

        print(f"Seeded account '{DEMO_USERNAME}' / '{DEMO_PASSWORD}'")
    finally:
        db.close()


if __name__ == "__main__":
    main()
