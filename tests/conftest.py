"""
Shared fixtures: in-memory SQLite, storage backends and the app under test.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lunaxcode.db.base import Base
from lunaxcode.db.session import get_db
from lunaxcode.main import create_app
from lunaxcode.services.storage import InMemoryStorage, SqlAlchemyStorage
from tests.fakes import make_user


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function", autouse=True)
def setup_db():
    """Create and drop tables for each test."""
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db_session():
    """Provide a database session for tests."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def storage(db_session):
    return SqlAlchemyStorage(db_session)


@pytest.fixture(params=["database", "memory"])
def any_storage(request, db_session):
    """Runs a test once per storage backend."""
    if request.param == "memory":
        return InMemoryStorage()
    return SqlAlchemyStorage(db_session)


@pytest.fixture
def app():
    application = create_app(storage_backend="database")
    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def client_user(db_session):
    return make_user(db_session, "client@example.com")


@pytest.fixture
def admin_user(db_session):
    return make_user(db_session, "admin@example.com", role="admin", name="Admin")
