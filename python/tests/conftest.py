"""Pytest configuration and fixtures for Clipshare tests.

Test isolation strategy:
- DATABASE_URL selects the database (PostgreSQL in CI); when unset an
  in-memory SQLite database is used
- The schema is created once per test session from the ORM metadata
- Tests that use db_session run inside an outer transaction; service commits
  only release savepoints and everything is rolled back afterwards
- Tests needing several real connections (concurrency) build their own
  file-backed SQLite engine
- API tests get an app whose get_db and token verifier are bound to db_session
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CLIPSHARE_ENV", "test")

from collections.abc import Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import Engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from clipshare.app import add_request_id_middleware, create_app  # noqa: E402
from clipshare.auth.middleware import viewer_from_token  # noqa: E402
from clipshare.config import clear_settings_cache  # noqa: E402
from clipshare.db.engine import create_db_engine  # noqa: E402
from clipshare.db.models import Base  # noqa: E402
from clipshare.db.session import get_db  # noqa: E402
from clipshare.services.crypto import clear_master_key_cache  # noqa: E402
from tests.utils.db import TestDatabaseManager  # noqa: E402


@pytest.fixture(autouse=True)
def reset_cached_settings() -> Generator[None, None, None]:
    """Drop cached settings and master key so monkeypatched env vars apply."""
    clear_settings_cache()
    clear_master_key_cache()
    yield
    clear_settings_cache()
    clear_master_key_cache()


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    """Create the database engine and schema for the test session."""
    engine = create_db_engine(os.environ["DATABASE_URL"])
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(engine: Engine) -> Generator[Session, None, None]:
    """Provide a database session with savepoint isolation.

    Each test gets a fresh session that is rolled back after the test,
    ensuring no data persists between tests.
    """
    with TestDatabaseManager(engine) as session:
        yield session


@pytest.fixture
def app(db_session: Session) -> FastAPI:
    """FastAPI app sharing the test's db_session for routes and auth."""

    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield db_session
        finally:
            # Mirror request teardown: uncommitted work is discarded
            db_session.rollback()

    app = create_app(token_verifier=lambda token: viewer_from_token(db_session, token))
    app.dependency_overrides[get_db] = override_get_db
    add_request_id_middleware(app, log_requests=False)
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Provide a FastAPI test client."""
    with TestClient(app) as client:
        yield client
