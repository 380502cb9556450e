#!/usr/bin/env python3
"""
sqlew Database Adapter - Uniform Connection Surface

Base class shared by the SQLite, PostgreSQL and MySQL adapters. Subclasses
supply the driver connection, the engine's session settings and the catalog
queries; statement execution, transaction scoping, error translation and
statistics live here.

Usage:
    adapter = SQLiteAdapter({'database': '.sqlew/sqlew.db'})
    adapter.open()
    with adapter.transaction():
        adapter.execute("INSERT INTO m_layers (name) VALUES (?)", ('data',))
    rows = adapter.query("SELECT name FROM m_layers")
    adapter.close()
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Type, TypeVar

from core.dialects import DialectCapabilities, EngineType, get_dialect
from core.errors import ConnectionError, QueryError, TransactionError

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ConnectionState(Enum):
    """Connection states"""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    CLOSED = "closed"


class DatabaseAdapter(ABC):
    """Base class for engine adapters"""

    engine: EngineType
    driver_error: Type[Exception] = Exception

    def __init__(self, config: Any = None):
        self.config = config
        self.dialect: DialectCapabilities = get_dialect(self.engine)
        self.state = ConnectionState.DISCONNECTED
        self._connection = None
        self._in_transaction = False
        self._lock = threading.RLock()
        self.stats = {
            'queries_executed': 0,
            'statements_executed': 0,
            'errors': 0,
            'transactions': 0,
            'rollbacks': 0,
            'total_time': 0.0
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> 'DatabaseAdapter':
        """Establish the session and apply engine session settings.

        May be called exactly once per adapter instance.
        """
        with self._lock:
            if self.state is not ConnectionState.DISCONNECTED:
                raise ConnectionError(
                    f"{self.dialect.display_name} adapter already {self.state.value}; open() may be called once",
                    engine=self.engine.value
                )
            try:
                self._connection = self._connect()
                self._apply_session_settings()
            except ConnectionError:
                self._release_quietly()
                raise
            except Exception as e:
                self._release_quietly()
                logger.error(f"Failed to connect to {self.dialect.display_name}: {e}")
                raise ConnectionError(
                    f"Cannot open {self.dialect.display_name} session: {e}",
                    engine=self.engine.value
                ) from e
            self.state = ConnectionState.CONNECTED
            logger.info(f"{self.dialect.display_name} adapter connected ({self.describe_target()})")
            return self

    def close(self) -> None:
        """Release the connection. Safe to call any number of times."""
        with self._lock:
            if self.state is not ConnectionState.CONNECTED:
                self.state = ConnectionState.CLOSED
                return
            if self._in_transaction:
                logger.warning("Closing adapter with an open transaction; rolling back")
                try:
                    self._rollback()
                except (QueryError, self.driver_error) as e:
                    logger.error(f"Rollback during close failed: {e}")
                self._in_transaction = False
            try:
                self._disconnect()
            finally:
                self._connection = None
                self.state = ConnectionState.CLOSED
                logger.info(f"{self.dialect.display_name} adapter closed")

    def _release_quietly(self) -> None:
        if self._connection is None:
            return
        try:
            self._disconnect()
        except Exception as e:
            logger.debug(f"Ignoring error while releasing failed connection: {e}")
        self._connection = None

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    @property
    def connection(self):
        """Underlying driver connection; only valid while open"""
        if self._connection is None:
            raise ConnectionError(
                f"{self.dialect.display_name} adapter is {self.state.value}",
                engine=self.engine.value
            )
        return self._connection

    # ------------------------------------------------------------------
    # Statement execution
    # ------------------------------------------------------------------

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        """Run a non-returning statement and return the affected row count"""
        rowcount, _ = self._run(sql, params, fetch=False)
        self.stats['statements_executed'] += 1
        return rowcount

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Run a returning statement and materialize every row as a dict"""
        _, rows = self._run(sql, params, fetch=True)
        self.stats['queries_executed'] += 1
        return rows

    def query_value(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """First column of the first row, or None"""
        rows = self.query(sql, params)
        if not rows:
            return None
        return next(iter(rows[0].values()))

    def _run(self, sql: str, params: Optional[Sequence[Any]], fetch: bool) -> Tuple[int, List[Dict[str, Any]]]:
        start_time = time.time()
        with self._lock:
            cursor = self._cursor()
            try:
                if params:
                    cursor.execute(sql, params)
                else:
                    cursor.execute(sql)
                rows = []
                if fetch and cursor.description:
                    rows = [self._row_to_dict(row, cursor) for row in cursor.fetchall()]
                rowcount = cursor.rowcount if cursor.rowcount and cursor.rowcount > 0 else 0
            except self.driver_error as e:
                self.stats['errors'] += 1
                error = QueryError.from_driver_error(e, sql, params)
                logger.debug(f"{error.message} [{sql.strip()}]")
                raise error from e
            finally:
                cursor.close()
                self.stats['total_time'] += time.time() - start_time
        return rowcount, rows

    def _row_to_dict(self, row: Any, cursor: Any) -> Dict[str, Any]:
        return dict(row)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator['DatabaseAdapter']:
        """Scope one transaction: commit on normal exit, roll back and re-raise on failure"""
        with self._lock:
            if self._in_transaction:
                raise TransactionError("Nested transactions are not supported")
            self._begin()
            self._in_transaction = True
            self.stats['transactions'] += 1
            if not self.dialect.transactional_ddl:
                logger.debug(
                    f"{self.dialect.display_name} commits DDL implicitly; "
                    "only data changes in this transaction are atomic"
                )
            try:
                yield self
            except BaseException:
                self.stats['rollbacks'] += 1
                try:
                    self._rollback()
                except (QueryError, self.driver_error) as rollback_error:
                    logger.error(f"Rollback failed: {rollback_error}")
                raise
            else:
                try:
                    self._commit()
                except self.driver_error as e:
                    raise QueryError.from_driver_error(e, "COMMIT") from e
            finally:
                self._in_transaction = False

    def with_transaction(self, body: Callable[['DatabaseAdapter'], T]) -> T:
        """Run body(adapter) inside a transaction and return its result"""
        with self.transaction():
            return body(self)

    def _begin(self) -> None:
        self._run("BEGIN", None, fetch=False)

    def _commit(self) -> None:
        self._run("COMMIT", None, fetch=False)

    def _rollback(self) -> None:
        self._run("ROLLBACK", None, fetch=False)

    @contextmanager
    def foreign_keys_disabled(self) -> Iterator[None]:
        """Suspend foreign-key enforcement for the scope (engine permitting)"""
        yield

    def foreign_keys_enforced(self) -> bool:
        return True

    def check_foreign_keys(self) -> None:
        """Raise QueryError if the data violates foreign keys (engine permitting)"""

    # ------------------------------------------------------------------
    # Catalog introspection (always queried live)
    # ------------------------------------------------------------------

    @abstractmethod
    def has_table(self, name: str) -> bool:
        ...

    @abstractmethod
    def has_column(self, table: str, name: str) -> bool:
        ...

    @abstractmethod
    def has_index(self, name: str) -> bool:
        ...

    @abstractmethod
    def has_view(self, name: str) -> bool:
        ...

    @abstractmethod
    def list_tables(self) -> List[str]:
        ...

    @abstractmethod
    def list_columns(self, table: str) -> List[Dict[str, Any]]:
        """Columns as dicts with name, type, nullable, default and primary_key"""

    @abstractmethod
    def list_indexes(self, table: str) -> List[Dict[str, Any]]:
        """Explicitly created indexes as dicts with name, columns and unique"""

    @abstractmethod
    def list_foreign_keys(self, table: str) -> List[Dict[str, Any]]:
        """Foreign keys as dicts with name, columns, ref_table, ref_columns and on_delete"""

    def index_table(self, name: str) -> Optional[str]:
        """Table owning an index, or None if the index does not exist"""
        for table in self.list_tables():
            if any(index['name'] == name for index in self.list_indexes(table)):
                return table
        return None

    # ------------------------------------------------------------------
    # Engine hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _connect(self):
        """Return a new driver connection"""

    @abstractmethod
    def _apply_session_settings(self) -> None:
        ...

    @abstractmethod
    def _disconnect(self) -> None:
        ...

    def _cursor(self):
        return self.connection.cursor()

    def describe_target(self) -> str:
        return self.engine.value

    def get_statistics(self) -> Dict[str, Any]:
        """Get adapter statistics"""
        stats = self.stats.copy()
        stats['engine'] = self.engine.value
        stats['state'] = self.state.value
        stats['target'] = self.describe_target()
        return stats

    def __enter__(self) -> 'DatabaseAdapter':
        if self.state is ConnectionState.DISCONNECTED:
            self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
