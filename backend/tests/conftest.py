import os
# Override DATABASE_URL before any app imports to avoid PostgreSQL driver requirement
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["DEPLOYMENT_ENV"] = "test"
os.environ.pop("SENTRY_DSN", None)
os.environ.pop("DATABASE_PUBLIC_URL", None)

import uuid
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from shipcredits.platform.database import Base, get_db
from shipcredits.main import app
from shipcredits.platform.middleware import _rate_limit_store
from shipcredits.platform.security import ROLE_USER, create_access_token
from shipcredits.models.client import Client

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False, "timeout": 30})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Enable foreign key support for SQLite
@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    yield db
    db.close()
    Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    Base.metadata.create_all(bind=engine)
    # Clear in-memory rate limit state between tests to prevent 429 bleed-through
    _rate_limit_store.clear()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    _rate_limit_store.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory():
    """Sessionmaker bound to the test database, for threads and scripts."""
    return TestingSessionLocal


# ---------------------------------------------------------------------------
# Factory helpers: create tenants and tokens quickly and consistently
# ---------------------------------------------------------------------------

_counter = 0

def _unique_id() -> str:
    global _counter
    _counter += 1
    return f"{_counter}-{uuid.uuid4().hex[:8]}"


def create_client_row(db, client_id=None, name="Test Client", company_name="Test Logistics", email=None, is_active=True):
    """Insert a tenant row directly. Returns the Client."""
    client_id = client_id or f"client-{_unique_id()}"
    row = Client(
        id=client_id,
        name=name,
        company_name=company_name,
        email=email or f"{client_id}@test.com",
        is_active=is_active,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def token_headers(client_id, role=ROLE_USER, user_id=None):
    """Authorization headers carrying a signed access token for the tenant."""
    token = create_access_token(
        user_id=user_id or f"user-{_unique_id()}",
        client_id=client_id,
        role=role,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_client(db):
    def _make(**kwargs):
        return create_client_row(db, **kwargs)
    return _make


@pytest.fixture
def tenant(db):
    """A ready-made tenant with id ``t1``."""
    return create_client_row(db, client_id="t1", name="Tenant One", company_name="T1 Couriers")


@pytest.fixture
def auth_for():
    return token_headers
