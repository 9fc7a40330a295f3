"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of buddyfit.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from buddyfit.database.engine import get_session  # noqa: E402
from buddyfit.database.models import Base, User  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all BuddyFit tables.

    JSONB columns are transparently mapped to TEXT for SQLite compatibility.
    Uses StaticPool so the TestClient's worker threads share the same
    in-memory database.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def cache(db_engine: Engine):
    """A real ConfigCache over the default settings and badge catalog."""
    from buddyfit.database.seed import seed_default_badges, seed_default_settings
    from buddyfit.engine.cache import ConfigCache

    seed_default_settings(db_engine)
    seed_default_badges(db_engine)
    cache = ConfigCache(db_engine)
    cache.load_all()
    return cache


def make_user(
    engine: Engine,
    username: str,
    full_name: str | None = None,
    starting_weight: float | None = None,
) -> int:
    """Insert a user and return its id."""
    with get_session(engine) as session:
        user = User(
            username=username,
            full_name=full_name or username.title(),
            starting_weight=starting_weight,
        )
        session.add(user)
        session.flush()
        return user.id


@pytest.fixture
def user_factory(db_engine: Engine):
    def _make(username: str, **kw) -> int:
        return make_user(db_engine, username, **kw)
    return _make


def make_token(sub: int | str = 1, is_admin: bool = False) -> str:
    """Create a JWT for *sub*.  Usable as both a fixture helper and a factory."""
    import jwt

    from buddyfit.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": str(sub), "is_admin": is_admin},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def auth(sub: int | str = 1, is_admin: bool = False) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(sub, is_admin)}"}


@pytest.fixture
def admin_token():
    """Generate a valid admin JWT for use in API integration tests."""
    return make_token("99999", is_admin=True)


@pytest.fixture
def client(db_engine: Engine, cache):
    """A FastAPI TestClient wired to the in-memory engine and cache.

    Overrides are keyed on the dependency objects the routers captured at
    import time, which survive a reload of ``buddyfit.api.deps``.
    """
    from fastapi.testclient import TestClient

    from buddyfit.api.main import app
    from buddyfit.api.routes import motivation as motivation_routes
    from buddyfit.api.routes import workouts as workout_routes
    from buddyfit.config import BuddyFitConfig

    app.dependency_overrides[workout_routes.get_engine] = lambda: db_engine
    app.dependency_overrides[workout_routes.get_cache] = lambda: cache
    app.dependency_overrides[motivation_routes.get_config] = lambda: BuddyFitConfig(
        app_name="BuddyFit", tagline="test", api_port=8000,
    )
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
