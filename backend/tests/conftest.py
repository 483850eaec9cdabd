# backend/tests/conftest.py
"""
Pytest configuration for the SATI backend.

Environment variables are set before any sati import so Settings picks up an
in-memory SQLite database (StaticPool, one shared connection) and dummy
gateway credentials. Resend is patched globally so no test sends email.
"""

import os
import sys

# CRITICAL: Set testing mode BEFORE any sati imports!
os.environ["is_testing"] = "true"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["RESEND_API_KEY"] = "re_test_dummy"
os.environ["LOG_LEVEL"] = "WARNING"

# CRITICAL: Mock Resend API globally to prevent real emails in ANY test
import unittest.mock

global_resend_mock = unittest.mock.patch("resend.Emails.send")
mocked_send = global_resend_mock.start()
mocked_send.return_value = {"id": "test-email-id"}

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from typing import Dict, Generator

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session

from sati.api.dependencies.database import get_db
from sati.database import Base, SessionLocal, engine
from sati.main import app
from sati.models.room import Room
from sati.models.user import DocumentationStatus, RoleName, User
from sati.repositories.memory import InMemoryRepositories
from sati.services.cache_service import account_cache
from sati.services.config_service import ConfigService
from sati.services.session_service import SessionService
from tests.helpers.services import BUSINESS_NOW, FrozenClock, build_services

# ============================================================================
# Database fixtures
# ============================================================================


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Fresh schema per test on the shared in-memory connection."""
    import sati.models  # noqa: F401  (registers mappers)

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    ConfigService(session).ensure_defaults()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clear_account_cache() -> Generator[None, None, None]:
    account_cache.clear()
    yield
    account_cache.clear()


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _create_user(db: Session, email: str, full_name: str, role: str, documentation: str) -> User:
    user = User(
        email=email,
        full_name=full_name,
        role=role,
        documentation_status=documentation,
        is_active=True,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def admin_user(db: Session) -> User:
    return _create_user(
        db, "admin@sati.mx", "Admin SATI", RoleName.ADMIN.value, DocumentationStatus.APPROVED.value
    )


@pytest.fixture
def test_user(db: Session) -> User:
    return _create_user(
        db,
        "ana@example.com",
        "Ana López",
        RoleName.STANDARD.value,
        DocumentationStatus.APPROVED.value,
    )


@pytest.fixture
def other_user(db: Session) -> User:
    return _create_user(
        db,
        "bruno@example.com",
        "Bruno Díaz",
        RoleName.STANDARD.value,
        DocumentationStatus.APPROVED.value,
    )


@pytest.fixture
def undocumented_user(db: Session) -> User:
    return _create_user(
        db,
        "nuevo@example.com",
        "Nuevo Usuario",
        RoleName.STANDARD.value,
        DocumentationStatus.PENDING.value,
    )


@pytest.fixture
def test_room(db: Session) -> Room:
    room = Room(name="Consultorio 1", description="Sala con diván", price=10000, is_active=True)
    db.add(room)
    db.commit()
    return room


def _headers_for(db: Session, user: User) -> Dict[str, str]:
    session = SessionService(db).create_session(user)
    return {"X-Session-Id": session.id}


@pytest.fixture
def auth_headers(db: Session, test_user: User) -> Dict[str, str]:
    return _headers_for(db, test_user)


@pytest.fixture
def other_auth_headers(db: Session, other_user: User) -> Dict[str, str]:
    return _headers_for(db, other_user)


@pytest.fixture
def admin_headers(db: Session, admin_user: User) -> Dict[str, str]:
    return _headers_for(db, admin_user)


@pytest.fixture
def undocumented_headers(db: Session, undocumented_user: User) -> Dict[str, str]:
    return _headers_for(db, undocumented_user)


# ============================================================================
# In-memory engine fixtures
# ============================================================================


@pytest.fixture
def repos() -> InMemoryRepositories:
    return InMemoryRepositories()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(BUSINESS_NOW)


@pytest.fixture
def notifier() -> unittest.mock.Mock:
    notifier = unittest.mock.Mock()
    notifier.send_booking_confirmation.return_value = True
    return notifier


@pytest.fixture
def services(repos, clock, notifier):
    return build_services(repos, clock=clock, notifier=notifier)


@pytest.fixture
def member(repos) -> User:
    return repos.users.create(
        email="ana@example.com",
        full_name="Ana López",
        role=RoleName.STANDARD.value,
        documentation_status=DocumentationStatus.APPROVED.value,
    )


@pytest.fixture
def second_member(repos) -> User:
    return repos.users.create(
        email="bruno@example.com",
        full_name="Bruno Díaz",
        role=RoleName.STANDARD.value,
        documentation_status=DocumentationStatus.APPROVED.value,
    )


@pytest.fixture
def admin(repos) -> User:
    return repos.users.create(
        email="admin@sati.mx",
        full_name="Admin SATI",
        role=RoleName.ADMIN.value,
        documentation_status=DocumentationStatus.NONE.value,
    )


@pytest.fixture
def room(repos) -> Room:
    return repos.rooms.create(name="Consultorio 1", description="", price=10000, is_active=True)
