"""
Database Adapter Factory.

============================================================
PURPOSE
============================================================
Resolves the adapter for a live SQLAlchemy engine.

- engine_for_adapter_name(): dialect name -> DatabaseEngine
- AdapterFactory.build(): engine -> DatabaseAdapter

Unknown dialects raise UnsupportedAdapterError. That is a
misconfiguration, never a load signal.

============================================================
USAGE
============================================================
```python
adapter = AdapterFactory.build(engine)
count = adapter.count_active_sessions(engine)
```

============================================================
"""

import logging
from typing import Callable, Dict, List, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Engine

from ..exceptions import UnsupportedAdapterError
from ..models import DatabaseEngine
from .base import DatabaseAdapter
from .mysql import MySQLAdapter
from .postgresql import PostgreSQLAdapter


logger = logging.getLogger(__name__)


# Substring of the reported dialect name -> engine family
_DIALECT_FRAGMENTS: Tuple[Tuple[str, DatabaseEngine], ...] = (
    ("postgres", DatabaseEngine.POSTGRESQL),
    ("mysql", DatabaseEngine.MYSQL),
    ("mariadb", DatabaseEngine.MYSQL),
)


def engine_for_adapter_name(adapter_name: str) -> DatabaseEngine:
    """
    Map a reported dialect name to an engine family.

    Raises:
        UnsupportedAdapterError: If no family matches
    """
    name = (adapter_name or "").lower()

    for fragment, engine_type in _DIALECT_FRAGMENTS:
        if fragment in name:
            return engine_type

    raise UnsupportedAdapterError(
        adapter_name,
        supported=[engine_type.value for engine_type in DatabaseEngine],
    )


def server_version(engine: Engine) -> str:
    """SELECT VERSION() on the engine."""
    with engine.connect() as conn:
        version = conn.execute(text("SELECT VERSION()")).scalar()
    return str(version) if version is not None else ""


class AdapterFactory:
    """Factory for creating the adapter matching an engine."""

    _builders: Dict[DatabaseEngine, Callable[[Engine], DatabaseAdapter]] = {
        DatabaseEngine.POSTGRESQL: lambda engine: PostgreSQLAdapter(),
        DatabaseEngine.MYSQL: lambda engine: MySQLAdapter(server_version(engine)),
    }

    @classmethod
    def list_supported(cls) -> List[str]:
        """Engine families with a builder."""
        return [engine_type.value for engine_type in cls._builders]

    @classmethod
    def build(cls, engine: Engine) -> DatabaseAdapter:
        """
        Create the adapter for a live engine.

        Args:
            engine: SQLAlchemy engine

        Returns:
            DatabaseAdapter instance

        Raises:
            UnsupportedAdapterError: If the dialect is not supported
            SQLAlchemyError: If the MySQL version probe fails
        """
        adapter_name = engine.dialect.name
        engine_type = engine_for_adapter_name(adapter_name)

        adapter = cls._builders[engine_type](engine)
        logger.debug(f"Resolved {adapter!r} for dialect '{adapter_name}'")
        return adapter
