"""Pytest configuration and fixtures for Tether tests.

Test isolation strategy:
- Every test gets its own in-memory SQLite engine (StaticPool, one shared
  connection) with the ORM schema created from Base.metadata
- Service tests use db_session directly
- Route tests use auth_client: the real app with AuthMiddleware wired to a
  test verifier and to session factories bound to the test engine
- Migration tests run Alembic against a temporary SQLite file instead
"""

import os
import sys
from collections.abc import Generator
from pathlib import Path

# Settings are read lazily; give them a database before anything imports tether
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TETHER_ENV", "test")

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tether.app import add_request_id_middleware, create_actor_resolver, create_app
from tether.auth.middleware import AuthMiddleware
from tether.auth.verifier import RuntimeTokenVerifier
from tether.config import clear_settings_cache
from tether.db.models import Base
from tether.db.session import create_session_factory, get_db
from tests.helpers import DEFAULT_AUDIENCE, DEFAULT_ISSUER, TEST_TOKEN_SECRET


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database with the full schema."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Provide a database session bound to the test engine."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_verifier() -> RuntimeTokenVerifier:
    """Verifier matching the tokens minted by tests.helpers."""
    return RuntimeTokenVerifier(
        secret=TEST_TOKEN_SECRET, issuer=DEFAULT_ISSUER, audience=DEFAULT_AUDIENCE
    )


def _session_override(session_factory: sessionmaker[Session]):
    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    return override_get_db


@pytest.fixture
def client(session_factory: sessionmaker[Session]) -> Generator[TestClient, None, None]:
    """Client without authentication, for public endpoints."""
    app = create_app(skip_auth_middleware=True)
    app.dependency_overrides[get_db] = _session_override(session_factory)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def authenticated_app(session_factory: sessionmaker[Session], test_verifier):
    """App with auth + request-id middleware, bound to the test engine."""
    app = create_app(skip_auth_middleware=True)
    app.dependency_overrides[get_db] = _session_override(session_factory)

    # Add auth middleware first (so it runs second)
    app.add_middleware(
        AuthMiddleware,
        verifier=test_verifier,
        actor_resolver=create_actor_resolver(session_factory),
    )
    # Add request-id middleware LAST (so it runs FIRST, outermost)
    add_request_id_middleware(app, log_requests=False)

    return app


@pytest.fixture
def auth_client(authenticated_app) -> Generator[TestClient, None, None]:
    """Test client for authenticated routes. Use auth_headers() for tokens."""
    with TestClient(authenticated_app) as client:
        yield client


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset the settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
