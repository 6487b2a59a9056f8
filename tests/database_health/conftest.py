"""
Shared fixtures for database health tests.

Engines are MagicMocks shaped like SQLAlchemy engines:
- engine.dialect.name
- engine.begin() / engine.connect() context managers
- connection.execute(text(...)).scalar()
"""

from typing import List
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

import database_health
from database_health import ConfigurationStore, DatabaseHealth, MemoryCache


class FailingCache:
    """Cache whose every operation faults."""

    def read(self, key):
        raise ConnectionError("Cache connection failed")

    def write(self, key, value, ttl):
        raise ConnectionError("Cache connection failed")


def build_engine(
    dialect: str = "postgresql",
    active_sessions=0,
    should_fail: bool = False,
    version: str = "8.0.36",
    fail_version: bool = False,
) -> MagicMock:
    """
    Create a mock engine.

    Every executed SQL string is appended to engine.statements.
    """
    engine = MagicMock(name=f"{dialect}_engine")
    engine.dialect.name = dialect
    statements: List[str] = []

    def execute(statement, *args, **kwargs):
        sql = str(statement)
        statements.append(sql)

        is_version_probe = sql.strip().upper() == "SELECT VERSION()"
        if should_fail or (is_version_probe and fail_version):
            raise OperationalError(sql, {}, Exception("Connection failed"))

        result = MagicMock(name="result")
        result.scalar.return_value = version if is_version_probe else active_sessions
        return result

    connection = MagicMock(name="connection")
    connection.execute.side_effect = execute

    engine.begin.return_value.__enter__.return_value = connection
    engine.connect.return_value.__enter__.return_value = connection
    engine.statements = statements
    return engine


@pytest.fixture(autouse=True)
def reset_database_health():
    """Hermetic process-wide state for every test."""
    database_health.reset()
    yield
    database_health.reset()


@pytest.fixture
def make_engine():
    return build_engine


@pytest.fixture
def failing_cache():
    return FailingCache()


@pytest.fixture
def cache():
    return MemoryCache()


@pytest.fixture
def store():
    return ConfigurationStore()


@pytest.fixture
def health(store):
    return DatabaseHealth(store=store)
