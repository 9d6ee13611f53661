"""Pytest configuration and shared fixtures."""

import os

# Settings are cached on first use, so configure them before importing passport
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ.pop("NOTIFICATION_WEBHOOK_URL", None)

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from passport.core.approval import ApprovalService
from passport.db.base import Base
import passport.db.models  # noqa: F401

from tests.factories import actor_for, create_user


class FakeNotifier:
    """Notification sink recording every call."""

    def __init__(self):
        self.calls = []

    def notify(self, recipients, event_kind, summary):
        self.calls.append({"recipients": list(recipients), "event": event_kind, "summary": summary})


class FakeAuditor:
    """Audit sink recording every call."""

    def __init__(self):
        self.entries = []

    def record(self, actor_id, actor_role, action, resource_type, resource_id,
               old_values=None, new_values=None, details=None):
        self.entries.append({
            "actor_id": actor_id,
            "actor_role": actor_role,
            "action": action,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "old_values": old_values,
            "new_values": new_values,
            "details": details,
        })

    def actions(self):
        return [e["action"] for e in self.entries]


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite engine so several sessions can share one database."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'passport.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def auditor():
    return FakeAuditor()


@pytest.fixture
def service(db_session, notifier, auditor):
    return ApprovalService(db_session, notifier=notifier, auditor=auditor)


@pytest.fixture
def super_admin(db_session):
    user = create_user(db_session, role="super_admin", username="root")
    db_session.commit()
    return actor_for(user)


@pytest.fixture
def admin(db_session):
    user = create_user(db_session, role="admin", username="admin")
    db_session.commit()
    return actor_for(user)


@pytest.fixture
def viewer(db_session):
    user = create_user(db_session, role="viewer", username="viewer")
    db_session.commit()
    return actor_for(user)


@pytest.fixture
def user_factory(db_session):
    """Create and commit users on demand."""
    def _create(**kwargs):
        user = create_user(db_session, **kwargs)
        db_session.commit()
        return user
    return _create


@pytest.fixture
def client(session_factory):
    """TestClient with every request bound to the test database."""
    from fastapi.testclient import TestClient

    from passport.api.deps import get_db
    from passport.api.main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
