"""Shared fixtures for the test suite."""

import os
import uuid
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

# Settings are read once at import time, so set them before anything imports config
os.environ['THRIFT_SETTINGS_PATH'] = str(Path(__file__).resolve().parent)
os.environ['JWT_SECRET'] = 'test-secret'
os.environ['JWT_EXPIRES_IN'] = '1h'
os.environ['ADMIN_CODE'] = 'test-admin-code'

import pytest

from auth import AuthenticatedUser, ROLE_USER, ROLE_ADMIN


class FakeContext:
    """Async context manager returning a fixed value, standing in for
    ``pool.acquire()`` and ``conn.transaction()``."""

    def __init__(self, value=None):
        self.value = value
        self.exited_with = None

    async def __aenter__(self):
        return self.value

    async def __aexit__(self, exc_type, exc, tb):
        self.exited_with = exc_type
        return False


def make_conn():
    """Create a mock asyncpg connection."""
    conn = MagicMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetchval = AsyncMock(return_value=None)
    conn.execute = AsyncMock(return_value='OK')
    conn.transaction = MagicMock(return_value=FakeContext())
    return conn


def make_pool(conn):
    """Create a mock pool whose acquire() yields ``conn``."""
    pool = MagicMock()
    pool.acquire = MagicMock(return_value=FakeContext(conn))
    return pool


@pytest.fixture
def conn():
    return make_conn()


@pytest.fixture
def pool(conn):
    return make_pool(conn)


@pytest.fixture
def user():
    return AuthenticatedUser(id=uuid.uuid4(), email='buyer@example.com', role=ROLE_USER)


@pytest.fixture
def other_user():
    return AuthenticatedUser(id=uuid.uuid4(), email='seller@example.com', role=ROLE_USER)


@pytest.fixture
def admin():
    return AuthenticatedUser(id=uuid.uuid4(), email='admin@example.com', role=ROLE_ADMIN)
