#!/usr/bin/env python3
"""
sqlew Database Manager - Adapter Factory

Selects, constructs and opens the connection adapter for a configured engine
and holds the process-wide adapter handle with an explicit lifecycle:
construct once, inject for tests, reset before exit.

Supported backends:
- SQLite (built-in)
- PostgreSQL (psycopg2)
- MySQL / MariaDB (PyMySQL)

Usage:
    adapter = DatabaseManager.create('sqlite', {'path': '.sqlew/sqlew.db'})
    DatabaseManager.set_instance(adapter)
    ...
    DatabaseManager.reset()
"""

import logging
import threading
from typing import Any, Dict, Optional, Type, Union

from core.database_adapter import DatabaseAdapter
from core.dialects import EngineType
from core.errors import NotInitializedError

# Configure logging
logger = logging.getLogger(__name__)


def _adapter_class(engine: EngineType) -> Type[DatabaseAdapter]:
    """Import the adapter for an engine on first use"""
    if engine is EngineType.SQLITE:
        from extensions.plugins.sqlite_adapter import SQLiteAdapter
        return SQLiteAdapter
    if engine is EngineType.POSTGRESQL:
        from extensions.plugins.postgresql_adapter import PostgreSQLAdapter
        return PostgreSQLAdapter
    if engine is EngineType.MYSQL:
        from extensions.plugins.mysql_adapter import MySQLAdapter
        return MySQLAdapter
    raise ValueError(f"No adapter registered for {engine}")


class DatabaseManager:
    """Adapter factory and process-wide adapter handle"""

    _instance: Optional[DatabaseAdapter] = None
    _lock = threading.RLock()

    @staticmethod
    def create(engine: Union[EngineType, str], config: Any = None) -> DatabaseAdapter:
        """
        Construct and open the adapter for an engine.

        Args:
            engine: Engine identity or configuration string ('sqlite', 'pg', ...)
            config: dict of connection options, a StoreConfig, or the engine's
                ConnectionConfig

        Returns:
            An open DatabaseAdapter

        Raises:
            UnsupportedEngineError: engine is not sqlite, postgresql or mysql
            ConnectionError: the session could not be opened
        """
        engine_type = EngineType.parse(engine)
        options = config
        if hasattr(config, 'adapter_options'):
            options = config.adapter_options()

        adapter_class = _adapter_class(engine_type)
        adapter = adapter_class(options)
        adapter.open()
        logger.info(f"Initialized backend: {engine_type.value}")
        return adapter

    @classmethod
    def get_instance(cls) -> DatabaseAdapter:
        """Return the process-wide adapter or raise NotInitializedError"""
        with cls._lock:
            if cls._instance is None:
                raise NotInitializedError()
            return cls._instance

    @classmethod
    def has_instance(cls) -> bool:
        with cls._lock:
            return cls._instance is not None

    @classmethod
    def set_instance(cls, adapter: Optional[DatabaseAdapter]) -> None:
        """Install the process-wide adapter (used for test injection)"""
        with cls._lock:
            previous = cls._instance
            cls._instance = adapter
            if previous is not None and previous is not adapter:
                logger.info("Replacing database instance; closing previous adapter")
                previous.close()

    @classmethod
    def reset(cls) -> None:
        """Close and clear the process-wide adapter. Idempotent."""
        with cls._lock:
            adapter, cls._instance = cls._instance, None
        if adapter is not None:
            try:
                adapter.close()
            finally:
                logger.info("Database instance reset")

    @classmethod
    def get_statistics(cls) -> Dict[str, Any]:
        """Get statistics for the active adapter"""
        with cls._lock:
            if cls._instance is None:
                return {'initialized': False}
            stats = cls._instance.get_statistics()
            stats['initialized'] = True
            return stats
