"""
Pytest configuration and fixtures for affiliate tracker tests.

Every test gets its own SQLite database file, so committed data never leaks
between tests and multi-threaded tests can open independent connections.
"""
import sys
import pathlib
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from affiliate_tracker import models  # noqa: E402,F401  (register mappers on Base)
from affiliate_tracker.config import Settings, get_settings  # noqa: E402
from affiliate_tracker.db import Base, get_db  # noqa: E402

from tests.helpers.affiliate_helpers import ADMIN_KEY, FALLBACK_URL  # noqa: E402


@pytest.fixture(scope="function")
def engine(tmp_path):
    """File-backed SQLite engine, schema created fresh for each test"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'affiliate_test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    """Session factory for tests that need one session per thread"""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """
    Provide a database session for each test.

    Services commit on their own, so data written here is visible to other
    sessions (API client, worker threads) created from the same factory.
    """
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_settings():
    return Settings(
        ENV="test",
        ADMIN_API_KEY=ADMIN_KEY,
        MINIMUM_PAYOUT=500000,
        DEFAULT_REDIRECT_URL=FALLBACK_URL,
    )


@pytest.fixture
def admin_headers():
    return {"X-Admin-Key": ADMIN_KEY}


@pytest.fixture
def client(session_factory, test_settings):
    """
    FastAPI test client with get_db and get_settings overridden.

    The client is not used as a context manager, so the startup hook that
    creates tables against the configured DATABASE_URL never runs.
    """
    from affiliate_tracker.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings

    yield TestClient(app)

    app.dependency_overrides.clear()
