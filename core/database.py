#!/usr/bin/env python3
"""
sqlew Database Handle - Process-Wide Store Lifecycle

Entry points used by tool-action handlers and CLI commands:
- initialize_database(): construct the adapter, apply session settings and
  migrate to the latest schema before returning
- get_adapter(): the active adapter (NotInitializedError before init)
- close_database(): idempotent shutdown hook, safe from signal handlers
- transaction(): pass-through to the active adapter's with_transaction

Usage:
    adapter = initialize_database({'engine': 'sqlite', 'path': '.sqlew/sqlew.db'})
    transaction(lambda db: db.execute("INSERT INTO m_agents (name) VALUES (?)", ('planner',)))
    close_database()
"""

import logging
from typing import Any, Callable, Dict, Optional, TypeVar, Union

from config.secure_config import StoreConfig, load_config
from core.database_adapter import DatabaseAdapter
from core.database_manager import DatabaseManager
from core.migration import MigrationRunner

logger = logging.getLogger(__name__)

T = TypeVar('T')


def initialize_database(config: Union[StoreConfig, Dict[str, Any], None] = None) -> DatabaseAdapter:
    """
    Open the knowledge store and bring its schema up to date.

    Args:
        config: StoreConfig, a mapping of StoreConfig fields, or None to load
            from the environment

    Returns:
        The process-wide adapter. A second call returns the same adapter.

    Raises:
        ConfigError, UnsupportedEngineError, ConnectionError, MigrationFailedError
    """
    if DatabaseManager.has_instance():
        return DatabaseManager.get_instance()

    if config is None:
        store_config = load_config()
    elif isinstance(config, StoreConfig):
        store_config = config.validate()
    else:
        store_config = StoreConfig.from_dict(config).validate()

    logger.info(f"Initializing knowledge store: {store_config.get_safe_dict()}")
    adapter = DatabaseManager.create(store_config.engine_type, store_config)
    try:
        MigrationRunner(adapter).migrate_to_latest()
    except Exception:
        adapter.close()
        raise

    DatabaseManager.set_instance(adapter)
    return adapter


def get_adapter() -> DatabaseAdapter:
    """Return the active adapter or raise NotInitializedError"""
    return DatabaseManager.get_instance()


def close_database() -> None:
    """Close the active adapter, if any"""
    DatabaseManager.reset()


def transaction(body: Callable[[DatabaseAdapter], T]) -> T:
    """Run body(adapter) in a transaction on the active adapter"""
    return get_adapter().with_transaction(body)


def is_initialized() -> bool:
    return DatabaseManager.has_instance()


def get_database_statistics() -> Optional[Dict[str, Any]]:
    if not DatabaseManager.has_instance():
        return None
    return DatabaseManager.get_statistics()
