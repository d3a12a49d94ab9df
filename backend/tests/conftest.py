"""Shared fixtures: every test gets its own file-backed SQLite database.

A file (not :memory:) is used so that worker threads in the concurrency
tests open real, separate connections to the same database.
"""

import os

# Settings are loaded at import time, so this must happen before any keycabinet imports.
os.environ.setdefault("DATABASE_URL", "sqlite:///./.pytest_keycabinet.db")
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ.pop("OVERDUE_WEBHOOK_URL", None)

from datetime import datetime, timedelta
from typing import Optional

import pytest
from sqlalchemy.orm import sessionmaker


@pytest.fixture
def engine(tmp_path, monkeypatch):
    import keycabinet.database as database

    test_engine = database.make_engine(f"sqlite:///{(tmp_path / 'keycabinet.db').as_posix()}")
    monkeypatch.setattr(database, "engine", test_engine)
    monkeypatch.setattr(
        database,
        "SessionLocal",
        sessionmaker(autocommit=False, autoflush=False, bind=test_engine),
    )
    database.init_db(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    import keycabinet.database as database

    return database.SessionLocal


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    from keycabinet.models.user import User, UserRole
    from keycabinet.services.access_policy import Actor

    counter = {"n": 0}

    def _make(role: str = UserRole.USER.value, is_active: bool = True, name: Optional[str] = None):
        counter["n"] += 1
        label = name or f"user{counter['n']}"
        user = User(
            email=f"{label}@example.org",
            display_name=label.title(),
            role=role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return Actor.from_user(user)

    return _make


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", name="admin")


@pytest.fixture
def alice(make_user):
    return make_user(name="alice")


@pytest.fixture
def bob(make_user):
    return make_user(name="bob")


@pytest.fixture
def make_key(db, admin):
    from keycabinet.services.key_service import KeyService

    def _make(name: str = "Lab 101", description: Optional[str] = None):
        return KeyService(db).create_key(admin, name=name, description=description)

    return _make


@pytest.fixture
def token_for(db):
    """Create a login session for an actor and return its bearer token."""
    from keycabinet.models.session import Session

    def _token(actor, expires_in_hours: int = 1, revoked: bool = False) -> str:
        session = Session(
            user_id=actor.user_id,
            expires_at=datetime.utcnow() + timedelta(hours=expires_in_hours),
            revoked_at=datetime.utcnow() if revoked else None,
        )
        db.add(session)
        db.commit()
        return session.id

    return _token


@pytest.fixture
def client(engine):
    from keycabinet.main import create_app

    app = create_app(start_background_jobs=False)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def auth_headers(token_for):
    """Bearer headers for a fresh session of the given actor."""

    def _headers(actor) -> dict:
        return {"Authorization": f"Bearer {token_for(actor)}"}

    return _headers
