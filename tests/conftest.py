"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

# Mandatory secret key for settings validation
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")

import pytest  # noqa: E402

from domain.identity import Identity, Role  # noqa: E402
from tests.fakes import InMemoryStore, StubGateway, make_uow_factory  # noqa: E402


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def uow_factory(store):
    return make_uow_factory(store)


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway()


@pytest.fixture
def student() -> Identity:
    return Identity(user_id="student-0001-xyz", role=Role.STUDENT, email="siti@example.com")


@pytest.fixture
def instructor() -> Identity:
    return Identity(user_id="instructor-1", role=Role.INSTRUCTOR)


@pytest.fixture
def admin() -> Identity:
    return Identity(user_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def super_admin() -> Identity:
    return Identity(user_id="root-1", role=Role.SUPER_ADMIN)
