"""
Database Health - Adapters Package.

============================================================
PURPOSE
============================================================
Engine-specific session counting.

AVAILABLE ADAPTERS:
- PostgreSQLAdapter: pg_stat_activity + SET LOCAL statement_timeout
- MySQLAdapter: processlist + per-statement execution limit

UTILITIES:
- AdapterFactory: Build the adapter for a SQLAlchemy engine
- engine_for_adapter_name: Dialect name -> DatabaseEngine

============================================================
"""

from .base import DatabaseAdapter, QUERY_TIMEOUT_SECONDS
from .postgresql import PostgreSQLAdapter
from .mysql import MySQLAdapter, parse_version
from .factory import AdapterFactory, engine_for_adapter_name, server_version


__all__ = [
    "DatabaseAdapter",
    "QUERY_TIMEOUT_SECONDS",
    "PostgreSQLAdapter",
    "MySQLAdapter",
    "parse_version",
    "AdapterFactory",
    "engine_for_adapter_name",
    "server_version",
]
