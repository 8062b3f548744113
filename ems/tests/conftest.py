"""
Pytest configuration and fixtures
"""
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production-0123456789")
os.environ.setdefault("APP_ENV", "local")

from contextlib import contextmanager  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from ems.main import app  # noqa: E402
from ems.db.base import Base  # noqa: E402
from ems.core.deps import get_db  # noqa: E402
from ems.models import Account, Employee, Privilege  # noqa: E402
from ems.services.audit_service import audit_trail  # noqa: E402
from ems.services import notification_service  # noqa: E402
from ems.tests.helpers import headers_for, make_account, make_employee  # noqa: E402

# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def test_scope(db):
    """Session scope that hands out the test session without closing it"""
    @contextmanager
    def scope():
        yield db
    return scope


@pytest.fixture(autouse=True)
def audit_to_test_db(test_scope, monkeypatch):
    """Audit entries go to the test database and are written only on flush()"""
    monkeypatch.setattr(audit_trail, "session_scope", test_scope)
    yield
    audit_trail.flush()


@pytest.fixture
def reset_outbox(monkeypatch):
    """Password reset deliveries captured as (email, token, expires_in_minutes)"""
    sent = []
    monkeypatch.setattr(
        notification_service,
        "password_reset_sender",
        lambda email, token, minutes: sent.append((email, token, minutes)),
    )
    return sent


@pytest.fixture(scope="function")
def client(db):
    """Test client fixture with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def employee_e123(db: Session) -> Employee:
    return make_employee(db, "E123", first_name="Erin", last_name="Ellis")


@pytest.fixture
def other_employee(db: Session) -> Employee:
    return make_employee(db, "E456", first_name="Omar", last_name="Ortiz")


@pytest.fixture
def admin_account(db: Session) -> Account:
    return make_account(db, "admin@example.com", Privilege.ADMIN)


@pytest.fixture
def hr_account(db: Session) -> Account:
    return make_account(db, "hr@example.com", Privilege.HR)


@pytest.fixture
def employee_account(db: Session) -> Account:
    """Account X: employee privilege, no link"""
    return make_account(db, "x@example.com", Privilege.EMPLOYEE)


@pytest.fixture
def admin_headers(admin_account) -> dict:
    return headers_for(admin_account)


@pytest.fixture
def hr_headers(hr_account) -> dict:
    return headers_for(hr_account)


@pytest.fixture
def employee_headers(employee_account) -> dict:
    return headers_for(employee_account)
