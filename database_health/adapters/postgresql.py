"""
Database Health - PostgreSQL Adapter.

Counts client backends in the `active` state through
pg_stat_activity. The probe runs under SET LOCAL
statement_timeout, which lasts only for its transaction.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Engine

from ..models import DatabaseEngine
from .base import DatabaseAdapter, QUERY_TIMEOUT_SECONDS


ACTIVE_SESSION_COUNT_QUERY = """
SELECT count(*)
FROM pg_stat_activity
WHERE state = 'active'
  AND backend_type = 'client backend'
  AND pid != pg_backend_pid()
""".strip()


class PostgreSQLAdapter(DatabaseAdapter):
    """Adapter for PostgreSQL and wire-compatible servers."""

    engine_type = DatabaseEngine.POSTGRESQL

    def active_session_count_query(self) -> str:
        return ACTIVE_SESSION_COUNT_QUERY

    def timeout_statement(self, timeout_seconds: float) -> str:
        """SET LOCAL statement for the given timeout."""
        return f"SET LOCAL statement_timeout = '{int(timeout_seconds * 1000)}ms'"

    def execute_with_timeout(
        self,
        engine: Engine,
        query: str,
        timeout_seconds: float = QUERY_TIMEOUT_SECONDS,
    ) -> Any:
        with engine.begin() as conn:
            conn.execute(text(self.timeout_statement(timeout_seconds)))
            return conn.execute(text(query)).scalar()
