"""
Database Health - MySQL Adapter.

============================================================
VERSION-DEPENDENT DIALECT
============================================================

Built with the server's VERSION() string:

- Session list
  - MySQL >= 8.0.22: performance_schema.processlist
  - Older MySQL, MariaDB: information_schema.processlist
- Statement timeout
  - MySQL:   MAX_EXECUTION_TIME(ms) optimizer hint
  - MariaDB: SET STATEMENT max_statement_time = s FOR ...

Both timeouts apply to the single probe statement only, so
nothing leaks onto the pooled connection.

============================================================
"""

import re
from typing import Any, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Engine

from ..models import DatabaseEngine
from .base import DatabaseAdapter, QUERY_TIMEOUT_SECONDS


PERFORMANCE_SCHEMA_PROCESSLIST_SINCE = (8, 0, 22)

_VERSION_RE = re.compile(r"(\d+)(?:\.(\d+))?(?:\.(\d+))?")
_LEADING_SELECT_RE = re.compile(r"^\s*SELECT\s+", re.IGNORECASE)


def parse_version(version: str) -> Tuple[int, int, int]:
    """Leading numeric version, e.g. '8.0.36-log' -> (8, 0, 36)."""
    match = _VERSION_RE.search(version or "")
    if not match:
        return (0, 0, 0)
    return tuple(int(part) if part else 0 for part in match.groups())


class MySQLAdapter(DatabaseAdapter):
    """Adapter for MySQL and MariaDB."""

    engine_type = DatabaseEngine.MYSQL

    def __init__(self, version: str = "") -> None:
        """
        Initialize adapter.

        Args:
            version: Result of SELECT VERSION() on the server
        """
        self.version = version or ""

    @property
    def is_mariadb(self) -> bool:
        return "mariadb" in self.version.lower()

    @property
    def version_info(self) -> Tuple[int, int, int]:
        return parse_version(self.version)

    @property
    def processlist_table(self) -> str:
        if not self.is_mariadb and self.version_info >= PERFORMANCE_SCHEMA_PROCESSLIST_SINCE:
            return "performance_schema.processlist"
        return "information_schema.processlist"

    def active_session_count_query(self) -> str:
        return (
            f"SELECT COUNT(*) FROM {self.processlist_table} "
            "WHERE command <> 'Sleep' "
            "AND id <> CONNECTION_ID() "
            "AND user NOT IN ('event_scheduler', 'system user')"
        )

    def timed_query(self, query: str, timeout_seconds: float) -> str:
        """
        Rewrite a SELECT so the server aborts it after timeout_seconds.

        Raises:
            ValueError: If the query is not a SELECT (MySQL only)
        """
        if self.is_mariadb:
            return f"SET STATEMENT max_statement_time = {timeout_seconds:g} FOR {query}"

        if not _LEADING_SELECT_RE.match(query):
            raise ValueError("MAX_EXECUTION_TIME only applies to SELECT statements")

        hint = f"SELECT /*+ MAX_EXECUTION_TIME({int(timeout_seconds * 1000)}) */ "
        return _LEADING_SELECT_RE.sub(hint, query, count=1)

    def execute_with_timeout(
        self,
        engine: Engine,
        query: str,
        timeout_seconds: float = QUERY_TIMEOUT_SECONDS,
    ) -> Any:
        with engine.begin() as conn:
            return conn.execute(text(self.timed_query(query, timeout_seconds))).scalar()

    def __repr__(self) -> str:
        return f"MySQLAdapter(version={self.version!r})"
