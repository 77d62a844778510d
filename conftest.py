"""
Pytest configuration and shared fixtures.

This file contains pytest configuration and fixtures that are available
to all test modules in the project.
"""

import os

# Settings are read at import time; point the app at SQLite before it loads.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rbac_console.db.base import Base
from rbac_console.db.session import get_db
import rbac_console.models  # noqa: F401

SAMPLE_PASSWORD = "password123"


def pytest_configure(config):
    """Configure pytest settings."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test component interactions"
    )
    config.addinivalue_line(
        "markers", "auth: Authentication and authorization tests"
    )
    config.addinivalue_line(
        "markers", "menu: Menu visibility tests"
    )


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location and content."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)

        if "auth" in item.name or "login" in item.name or "permission" in item.name:
            item.add_marker(pytest.mark.auth)

        if "menu" in item.name or "hide" in item.name:
            item.add_marker(pytest.mark.menu)


@pytest.fixture
def engine():
    """Fresh in-memory database shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def empty_db(session_factory):
    """Session on a database with tables but no rows."""
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def db(empty_db):
    """Session on a database holding the full seed: catalogue, roles, admin, sample users."""
    from rbac_console.db.seeds.seed_permissions import seed_permissions
    from rbac_console.db.seeds.seed_roles import seed_roles
    from rbac_console.db.seeds.seed_admin import seed_admin
    from rbac_console.db.seeds.seed_sample_data import seed_sample_data

    seed_permissions(empty_db)
    seed_roles(empty_db)
    seed_admin(empty_db)
    seed_sample_data(empty_db)
    return empty_db


@pytest.fixture
def client(db, session_factory):
    """Test client whose requests use the seeded test database."""
    from rbac_console.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Return a callable that signs in and yields Authorization headers."""

    def _login(name: str, password: str = SAMPLE_PASSWORD) -> dict:
        response = client.post("/api/auth/login", json={"name": name, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login


@pytest.fixture
def admin_headers(login):
    from rbac_console.core.config import settings
    return login(settings.ADMIN_USER_NAME, settings.ADMIN_USER_PASSWORD)
