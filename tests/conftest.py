import os

# Settings are read once; configure the test environment before importing the app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = "redis://localhost:6399/0"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["JWT_SECRET"] = "test-secret"

from uuid import UUID

import pytest
import redis
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sweetshop.main import app
from sweetshop.database import Base, get_db
from sweetshop.models.sweet import Sweet
from sweetshop.services.auth_service import AuthService
from sweetshop.utils.cache import cache_service


# Create test database (SQLite in-memory for testing)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# Override the dependency
app.dependency_overrides[get_db] = override_get_db


class UnavailableRedis:
    """Redis client whose every command fails as if the server were down."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise redis.ConnectionError("Redis is not available in tests")
        return fail


@pytest.fixture(autouse=True)
def offline_cache(monkeypatch):
    """Tests run without Redis unless they install their own fake client."""
    monkeypatch.setattr(cache_service, "client", UnavailableRedis())


@pytest.fixture(scope="function")
def client():
    """Create test client with fresh database for each test."""
    # Create tables
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    # Drop tables after test
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(client):
    """Database session on the same in-memory database the client uses."""
    session = TestingSessionLocal()

    yield session

    session.close()


def _auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_user(db_session):
    return AuthService(db_session).create_user("admin@example.com", "adminpass", "Admin", is_admin=True)


@pytest.fixture
def regular_user(db_session):
    return AuthService(db_session).create_user("user@example.com", "userpass", "Regular User")


@pytest.fixture
def admin_headers(admin_user):
    return _auth_header(AuthService.issue_token(admin_user))


@pytest.fixture
def user_headers(regular_user):
    return _auth_header(AuthService.issue_token(regular_user))


@pytest.fixture
def create_sweet(client, admin_headers):
    """Factory creating sweets through the admin API."""
    def _create(name="Chocolate Bar", category="Chocolate", price="2.50", quantity=10, **extra):
        response = client.post(
            "/api/sweets",
            json={"name": name, "category": category, "price": price, "quantity": quantity, **extra},
            headers=admin_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()["sweet"]
    return _create


@pytest.fixture
def stock_of(db_session):
    """Read a sweet's quantity straight from the database."""
    def _stock(sweet_id: str) -> int:
        db_session.expire_all()
        return db_session.query(Sweet.quantity).filter(Sweet.id == UUID(sweet_id)).scalar()
    return _stock
