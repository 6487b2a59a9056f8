"""
Tests for Database Adapters.

============================================================
PURPOSE
============================================================
- Active session count queries per engine family
- Server-side statement timeouts
- MySQL / MariaDB version handling
- Adapter factory dispatch

============================================================
"""

from unittest.mock import MagicMock

import pytest

from database_health import (
    AdapterFactory,
    DatabaseEngine,
    MySQLAdapter,
    PostgreSQLAdapter,
    QueryError,
    UnsupportedAdapterError,
    engine_for_adapter_name,
)
from database_health.adapters.mysql import parse_version


MARIADB_VERSION = "10.11.6-MariaDB-1:10.11.6+maria~ubu2204"


# ============================================================
# ADAPTER NAME RESOLUTION
# ============================================================

class TestEngineForAdapterName:
    """Tests for engine_for_adapter_name()."""

    def test_postgresql(self):
        assert engine_for_adapter_name("postgresql") == DatabaseEngine.POSTGRESQL

    def test_name_is_case_insensitive(self):
        assert engine_for_adapter_name("PostgreSQL") == DatabaseEngine.POSTGRESQL

    def test_mysql(self):
        assert engine_for_adapter_name("mysql") == DatabaseEngine.MYSQL

    def test_mariadb_uses_mysql_family(self):
        assert engine_for_adapter_name("mariadb") == DatabaseEngine.MYSQL

    def test_unsupported_adapter_raises(self):
        with pytest.raises(UnsupportedAdapterError, match="Unsupported database adapter: sqlite") as exc_info:
            engine_for_adapter_name("sqlite")

        assert exc_info.value.adapter_name == "sqlite"
        assert "postgresql" in exc_info.value.supported
        assert "mysql" in exc_info.value.supported


# ============================================================
# POSTGRESQL
# ============================================================

class TestPostgreSQLAdapter:
    """Tests for PostgreSQLAdapter."""

    def test_engine_type(self):
        assert PostgreSQLAdapter().engine_type == DatabaseEngine.POSTGRESQL

    def test_query_counts_active_client_backends(self):
        query = PostgreSQLAdapter().active_session_count_query()

        assert "pg_stat_activity" in query
        assert "state = 'active'" in query
        assert "backend_type = 'client backend'" in query

    def test_query_excludes_own_connection(self):
        assert "pg_backend_pid()" in PostgreSQLAdapter().active_session_count_query()

    def test_timeout_statement_in_milliseconds(self):
        adapter = PostgreSQLAdapter()

        assert adapter.timeout_statement(1) == "SET LOCAL statement_timeout = '1000ms'"
        assert adapter.timeout_statement(0.25) == "SET LOCAL statement_timeout = '250ms'"

    def test_execute_with_timeout_sets_timeout_in_same_transaction(self, make_engine):
        engine = make_engine("postgresql", active_sessions=8)
        adapter = PostgreSQLAdapter()

        result = adapter.execute_with_timeout(engine, adapter.active_session_count_query())

        assert result == 8
        engine.begin.assert_called_once()
        assert engine.statements[0] == "SET LOCAL statement_timeout = '1000ms'"
        assert "pg_stat_activity" in engine.statements[1]


# ============================================================
# MYSQL / MARIADB
# ============================================================

class TestParseVersion:
    """Tests for parse_version()."""

    def test_plain_version(self):
        assert parse_version("8.0.36") == (8, 0, 36)

    def test_version_with_suffix(self):
        assert parse_version("5.7.44-log") == (5, 7, 44)

    def test_mariadb_version(self):
        assert parse_version(MARIADB_VERSION) == (10, 11, 6)

    def test_empty_version(self):
        assert parse_version("") == (0, 0, 0)


class TestMySQLAdapter:
    """Tests for MySQLAdapter."""

    def test_engine_type(self):
        assert MySQLAdapter("8.0.36").engine_type == DatabaseEngine.MYSQL

    def test_detects_mariadb(self):
        assert MySQLAdapter(MARIADB_VERSION).is_mariadb
        assert not MySQLAdapter("8.0.36").is_mariadb

    def test_mysql_8_0_22_uses_performance_schema(self):
        assert MySQLAdapter("8.0.22").processlist_table == "performance_schema.processlist"
        assert MySQLAdapter("8.4.0").processlist_table == "performance_schema.processlist"

    def test_older_mysql_uses_information_schema(self):
        assert MySQLAdapter("8.0.21").processlist_table == "information_schema.processlist"
        assert MySQLAdapter("5.7.44").processlist_table == "information_schema.processlist"

    def test_mariadb_uses_information_schema(self):
        assert MySQLAdapter("11.2.2-MariaDB").processlist_table == "information_schema.processlist"

    def test_query_excludes_sleeping_and_system_sessions(self):
        query = MySQLAdapter("8.0.36").active_session_count_query()

        assert "command <> 'Sleep'" in query
        assert "CONNECTION_ID()" in query
        assert "event_scheduler" in query
        assert "system user" in query

    def test_mysql_timeout_is_optimizer_hint(self):
        adapter = MySQLAdapter("8.0.36")

        timed = adapter.timed_query("SELECT COUNT(*) FROM t", 1)

        assert timed == "SELECT /*+ MAX_EXECUTION_TIME(1000) */ COUNT(*) FROM t"

    def test_mariadb_timeout_is_set_statement(self):
        adapter = MySQLAdapter(MARIADB_VERSION)

        timed = adapter.timed_query("SELECT COUNT(*) FROM t", 1)

        assert timed == "SET STATEMENT max_statement_time = 1 FOR SELECT COUNT(*) FROM t"

    def test_mysql_hint_requires_select(self):
        with pytest.raises(ValueError):
            MySQLAdapter("8.0.36").timed_query("SHOW PROCESSLIST", 1)

    def test_execute_with_timeout_sends_single_statement(self, make_engine):
        engine = make_engine("mysql", active_sessions=3)
        adapter = MySQLAdapter("8.0.36")

        result = adapter.execute_with_timeout(engine, adapter.active_session_count_query())

        assert result == 3
        assert len(engine.statements) == 1
        assert "MAX_EXECUTION_TIME(1000)" in engine.statements[0]
        assert "performance_schema.processlist" in engine.statements[0]


# ============================================================
# COUNT VALIDATION
# ============================================================

class TestCountActiveSessions:
    """Tests for DatabaseAdapter.count_active_sessions()."""

    def test_returns_count(self, make_engine):
        engine = make_engine("postgresql", active_sessions=12)

        assert PostgreSQLAdapter().count_active_sessions(engine) == 12

    def test_missing_value_raises(self, make_engine):
        engine = make_engine("postgresql", active_sessions=None)

        with pytest.raises(QueryError):
            PostgreSQLAdapter().count_active_sessions(engine)

    def test_non_numeric_value_raises(self, make_engine):
        engine = make_engine("postgresql", active_sessions="many")

        with pytest.raises(QueryError):
            PostgreSQLAdapter().count_active_sessions(engine)

    def test_negative_value_raises(self, make_engine):
        engine = make_engine("postgresql", active_sessions=-1)

        with pytest.raises(QueryError):
            PostgreSQLAdapter().count_active_sessions(engine)


# ============================================================
# FACTORY
# ============================================================

class TestAdapterFactory:
    """Tests for AdapterFactory."""

    def test_list_supported(self):
        supported = AdapterFactory.list_supported()

        assert "postgresql" in supported
        assert "mysql" in supported

    def test_builds_postgresql_adapter_without_version_probe(self, make_engine):
        engine = make_engine("postgresql")

        adapter = AdapterFactory.build(engine)

        assert isinstance(adapter, PostgreSQLAdapter)
        engine.connect.assert_not_called()

    def test_builds_mysql_adapter_with_server_version(self, make_engine):
        engine = make_engine("mysql", version="8.0.21")

        adapter = AdapterFactory.build(engine)

        assert isinstance(adapter, MySQLAdapter)
        assert adapter.version == "8.0.21"
        assert adapter.processlist_table == "information_schema.processlist"

    def test_builds_mariadb_adapter(self, make_engine):
        engine = make_engine("mariadb", version=MARIADB_VERSION)

        adapter = AdapterFactory.build(engine)

        assert isinstance(adapter, MySQLAdapter)
        assert adapter.is_mariadb

    def test_unsupported_dialect_raises(self):
        engine = MagicMock()
        engine.dialect.name = "sqlite"

        with pytest.raises(UnsupportedAdapterError):
            AdapterFactory.build(engine)
