"""
Database Health - Base Database Adapter.

============================================================
ABSTRACT DATABASE ADAPTER
============================================================

Each adapter knows two things about its engine family:
- The SQL that counts active client sessions
- How to bound a query with a server-side timeout

The timeout is enforced by the database server, so an
aborted probe also stops consuming server resources.

============================================================
"""

from abc import ABC, abstractmethod
from typing import Any

from sqlalchemy.engine import Engine

from ..exceptions import QueryError
from ..models import DatabaseEngine


# Server-side limit for every probe statement
QUERY_TIMEOUT_SECONDS = 1


class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    Adapters are cheap and stateless. A fresh one is built
    for every probe.
    """

    engine_type: DatabaseEngine

    @abstractmethod
    def active_session_count_query(self) -> str:
        """SQL counting active client sessions, excluding the caller's own."""

    @abstractmethod
    def execute_with_timeout(
        self,
        engine: Engine,
        query: str,
        timeout_seconds: float = QUERY_TIMEOUT_SECONDS,
    ) -> Any:
        """
        Run a scalar query under a statement timeout.

        The timeout firing surfaces as the driver's error.

        Returns:
            The first column of the first row
        """

    def count_active_sessions(
        self,
        engine: Engine,
        timeout_seconds: float = QUERY_TIMEOUT_SECONDS,
    ) -> int:
        """
        Count active sessions on the database behind engine.

        Raises:
            QueryError: If the result is missing or not a count
            SQLAlchemyError: On connection failure or timeout
        """
        value = self.execute_with_timeout(
            engine,
            self.active_session_count_query(),
            timeout_seconds,
        )

        if value is None:
            raise QueryError(None, "count query returned no value")

        try:
            count = int(value)
        except (TypeError, ValueError) as e:
            raise QueryError(None, f"count query returned {value!r}") from e

        if count < 0:
            raise QueryError(None, f"count query returned {count}")

        return count

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
