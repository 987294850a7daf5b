"""Concurrency tests against a file-backed database.

Each worker uses its own session and connection, so increments and the
refresh compare-and-swap race for real:
- N concurrent reads leave view_count == N and N access log rows
- Of concurrent refreshes with the same token exactly one wins
- Concurrent tag attaches lose no increments
"""

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest
from sqlalchemy import Engine, func, select

from clipshare.db.models import AccessLog, Clip, Tag
from clipshare.db.session import create_session_factory
from clipshare.errors import TokenNotFoundError
from clipshare.services.accounts import create_user
from clipshare.services.clips import create_clip, get_clip
from clipshare.services.sessions import issue_session, refresh_session
from clipshare.services.tags import attach_tags
from tests.utils.db import create_file_engine

WORKERS = 8


@pytest.fixture
def file_engine(tmp_path: Path) -> Engine:
    engine = create_file_engine(tmp_path)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(file_engine: Engine):
    return create_session_factory(file_engine)


@pytest.fixture
def owner_id(session_factory) -> int:
    with session_factory() as db:
        return create_user(db, "racer", "racer@example.com", "s3cret-pass").id


class TestConcurrentViews:
    def test_view_count_equals_successful_reads(self, session_factory, owner_id):
        with session_factory() as db:
            short_url = create_clip(db, owner_id, "hot clip", access_type="public").short_url

        def read(_):
            with session_factory() as db:
                return get_clip(db, short_url, access_ip="10.0.0.1").view_count

        reads = 40
        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            counts = list(pool.map(read, range(reads)))

        # Every read observed a distinct post-increment value
        assert sorted(counts) == list(range(1, reads + 1))

        with session_factory() as db:
            clip = db.scalar(select(Clip).where(Clip.short_url == short_url))
            assert clip.view_count == reads
            logs = db.scalar(
                select(func.count()).select_from(AccessLog).where(AccessLog.content_id == clip.id)
            )
            assert logs == reads


class TestConcurrentRefresh:
    def test_exactly_one_refresh_wins(self, session_factory, owner_id):
        with session_factory() as db:
            refresh_token = issue_session(db, owner_id).refresh_token

        def refresh(_):
            with session_factory() as db:
                try:
                    return refresh_session(db, refresh_token).refresh_token
                except TokenNotFoundError:
                    return None

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            results = list(pool.map(refresh, range(WORKERS)))

        winners = [r for r in results if r is not None]
        assert len(winners) == 1

        # The winner's token is the live one
        with session_factory() as db:
            assert refresh_session(db, winners[0]).refresh_token != winners[0]


class TestConcurrentTags:
    def test_no_lost_increments(self, session_factory, owner_id):
        def attach(_):
            with session_factory() as db:
                attach_tags(db, owner_id, None, ["busy"])
                db.commit()

        attaches = 24
        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            list(pool.map(attach, range(attaches)))

        with session_factory() as db:
            usage = db.scalar(
                select(Tag.usage_count).where(Tag.user_id == owner_id, Tag.name == "busy")
            )
            assert usage == attaches
