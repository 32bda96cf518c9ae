"""Test configuration and fixtures for the Campus Connect backend tests."""

import os
import sys
import pathlib
import tempfile
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

BACKEND_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

# Set test environment before importing backend modules
os.environ["TESTING"] = "true"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["JWT_SECRET"] = "test_jwt_secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["TESTING_MODE"] = "True"
os.environ["PRODUCTION"] = "False"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="campus-uploads-")


@pytest.fixture(autouse=True, scope="session")
def anyio_backend():  # pragma: no cover
    return "asyncio"


@pytest.fixture(autouse=True)
def test_engine():
    """Create a test database engine."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    # Ensure models are imported so tables are registered in SQLModel.metadata
    import models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def test_session(test_engine):
    """Create a test database session."""
    with Session(test_engine) as session:
        yield session


@pytest.fixture
def override_get_session(test_session):
    """Override the get_session dependency for testing."""

    def _override_get_session():
        yield test_session

    return _override_get_session


@pytest.fixture
def test_app(override_get_session):
    """Create a test FastAPI application."""
    from models.common import Database, get_session

    # Patch update_database to skip migrations in tests
    with patch("app.update_database"):
        from app import create_app

        app = create_app(Database("sqlite://", poolclass=StaticPool))
    app.dependency_overrides[get_session] = override_get_session
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(test_app):
    """Create a test client."""
    with patch("app.update_database"), TestClient(test_app) as client:
        yield client


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    """Send attachments to a per-test folder."""
    import settings

    monkeypatch.setattr(settings, "UPLOAD_DIR", tmp_path / "uploads")
    return tmp_path / "uploads"


def make_user(session: Session, user_id: str, name: str, email: str, **extra):
    from models.auth import User

    user = User(id=user_id, name=name, email=email, **extra)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def alice(test_session):
    return make_user(test_session, "u1", "Alice", "a@x.com")


@pytest.fixture
def bob(test_session):
    return make_user(test_session, "u2", "Bob", "b@x.com")


@pytest.fixture
def carol(test_session):
    return make_user(test_session, "u3", "Carol", "c@x.com")


@pytest.fixture
def befriend(test_session):
    """Make two users friends through the regular request flow."""
    from services.friendship import accept_request, send_request

    def _befriend(requester, recipient):
        fr, _ = send_request(test_session, sender=requester, recipient_email=recipient.email)
        return accept_request(test_session, request_id=fr.id, user=recipient)

    return _befriend


@pytest.fixture
def login_as(test_app):
    """Act as the given user on the following requests."""
    from routes.deps import get_current_user

    def _login_as(user):
        test_app.dependency_overrides[get_current_user] = lambda: user

    return _login_as


@pytest.fixture
def user_factory(test_session):
    def _user_factory(user_id: str, name: str, email: str, **extra):
        return make_user(test_session, user_id, name, email, **extra)

    return _user_factory
