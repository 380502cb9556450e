#!/usr/bin/env python3
"""
Adapter factory and process-wide handle tests
"""

from unittest.mock import patch

import pytest

from config.secure_config import StoreConfig
from core.database_manager import DatabaseManager
from core.errors import ConnectionError, NotInitializedError, UnsupportedEngineError
from extensions.plugins.mysql_adapter import MySQLAdapter
from extensions.plugins.postgresql_adapter import PostgreSQLAdapter
from extensions.plugins.sqlite_adapter import SQLiteAdapter


class TestCreate:

    def test_sqlite_from_dict(self, sqlite_path):
        adapter = DatabaseManager.create('sqlite', {'database': sqlite_path})
        try:
            assert isinstance(adapter, SQLiteAdapter)
            assert adapter.is_open
        finally:
            adapter.close()

    def test_sqlite_from_store_config(self, sqlite_path):
        adapter = DatabaseManager.create('sqlite3', StoreConfig(path=sqlite_path, lock_timeout_ms=900))
        try:
            assert adapter.config.database == sqlite_path
            assert adapter.get_pragma('busy_timeout') == 900
        finally:
            adapter.close()

    def test_unsupported_engine(self):
        with pytest.raises(UnsupportedEngineError) as excinfo:
            DatabaseManager.create('oracle', {})
        assert excinfo.value.engine == 'oracle'

    @pytest.mark.parametrize("engine,adapter_class,target", [
        ('postgresql', PostgreSQLAdapter, 'psycopg2.pool.ThreadedConnectionPool'),
        ('mysql', MySQLAdapter, 'pymysql.connect'),
    ])
    def test_server_engines_select_their_adapter(self, engine, adapter_class, target):
        with patch(target) as driver:
            driver.return_value.getconn.return_value.cursor.return_value.rowcount = 0
            driver.return_value.getconn.return_value.cursor.return_value.description = None
            driver.return_value.cursor.return_value.rowcount = 0
            driver.return_value.cursor.return_value.description = None
            adapter = DatabaseManager.create(engine, StoreConfig(engine=engine, host='db'))
            try:
                assert isinstance(adapter, adapter_class)
                assert adapter.config.host == 'db'
            finally:
                adapter.close()

    def test_unreachable_server_raises_connection_error(self):
        with patch('pymysql.connect', side_effect=OSError("connection refused")):
            with pytest.raises(ConnectionError):
                DatabaseManager.create('mysql', {'host': 'nowhere'})


class TestInstance:

    def test_get_before_set(self):
        assert not DatabaseManager.has_instance()
        with pytest.raises(NotInitializedError):
            DatabaseManager.get_instance()
        assert DatabaseManager.get_statistics() == {'initialized': False}

    def test_set_get_reset(self, memory_adapter):
        DatabaseManager.set_instance(memory_adapter)
        assert DatabaseManager.get_instance() is memory_adapter
        assert DatabaseManager.get_statistics()['initialized'] is True

        DatabaseManager.reset()
        DatabaseManager.reset()
        assert not DatabaseManager.has_instance()
        assert not memory_adapter.is_open

    def test_replacing_closes_previous(self, sqlite_path, memory_adapter):
        first = DatabaseManager.create('sqlite', {'database': sqlite_path})
        DatabaseManager.set_instance(first)
        DatabaseManager.set_instance(memory_adapter)
        assert not first.is_open
        assert memory_adapter.is_open
