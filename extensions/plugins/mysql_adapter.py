#!/usr/bin/env python3
"""
sqlew MySQL Adapter - Client/Server Engine

This module provides the MySQL/MariaDB connection adapter with:
- A small thread-safe connection pool (one connection held per adapter)
- Session settings: utf8mb4, UTC time zone, sql_mode, lock wait timeout,
  foreign-key checks
- SSL/TLS support
- Catalog introspection via information_schema

MySQL commits DDL implicitly, so transactions only make data changes atomic;
a migration unit interrupted half way must be re-runnable through its guards.

Usage:
    adapter = MySQLAdapter(
        host='localhost',
        database='sqlew',
        user='sqlew',
        password='secure_password'
    )
    adapter.open()
"""

import pymysql
import pymysql.cursors
import logging
import math
import queue
import ssl
import threading
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from core.database_adapter import DatabaseAdapter
from core.dialects import DurabilityMode, EngineType, get_dialect

# Configure logging
logger = logging.getLogger(__name__)


class SSLMode(Enum):
    """SSL connection modes"""
    DISABLED = "DISABLED"
    PREFERRED = "PREFERRED"
    REQUIRED = "REQUIRED"
    VERIFY_CA = "VERIFY_CA"
    VERIFY_IDENTITY = "VERIFY_IDENTITY"


@dataclass
class ConnectionConfig:
    """MySQL connection configuration"""
    host: str = "localhost"
    port: int = 3306
    database: str = "sqlew"
    user: str = "sqlew"
    password: str = ""

    # Connection pool settings
    min_connections: int = 1
    max_connections: int = 4

    # SSL settings
    ssl_mode: SSLMode = SSLMode.DISABLED
    ssl_cert: Optional[str] = None
    ssl_key: Optional[str] = None
    ssl_ca: Optional[str] = None

    # Performance settings
    connect_timeout: int = 10
    read_timeout: int = 30
    write_timeout: int = 30

    # MySQL specific settings
    charset: str = "utf8mb4"
    collation: str = "utf8mb4_unicode_ci"
    sql_mode: str = "TRADITIONAL"
    lock_timeout_ms: Optional[int] = None
    durability: DurabilityMode = DurabilityMode.DURABILITY

    def __post_init__(self):
        if isinstance(self.ssl_mode, str):
            self.ssl_mode = SSLMode(self.ssl_mode.upper())
        if isinstance(self.durability, str):
            self.durability = DurabilityMode(self.durability)
        if self.lock_timeout_ms is None:
            self.lock_timeout_ms = get_dialect(EngineType.MYSQL).default_lock_timeout_ms
        self.port = int(self.port)

    @classmethod
    def from_dict(cls, options: Dict[str, Any]) -> 'ConnectionConfig':
        known = {f.name for f in fields(cls)}
        options = dict(options)
        for alias, name in (('name', 'database'), ('username', 'user')):
            if alias in options and name not in options:
                options[name] = options.pop(alias)
        return cls(**{k: v for k, v in options.items() if k in known and v is not None})

    def to_connection_params(self) -> Dict[str, Any]:
        """Convert to PyMySQL connection parameters"""
        params = {
            'host': self.host,
            'port': self.port,
            'database': self.database,
            'user': self.user,
            'password': self.password,
            'connect_timeout': self.connect_timeout,
            'read_timeout': self.read_timeout,
            'write_timeout': self.write_timeout,
            'charset': self.charset,
            # Transactions are opened explicitly with BEGIN
            'autocommit': True,
            'cursorclass': pymysql.cursors.DictCursor
        }

        # Add SSL configuration
        if self.ssl_mode != SSLMode.DISABLED:
            ssl_context = {}
            if self.ssl_mode in (SSLMode.PREFERRED, SSLMode.REQUIRED):
                ssl_context['check_hostname'] = False
                ssl_context['verify_mode'] = ssl.CERT_NONE
            elif self.ssl_mode == SSLMode.VERIFY_CA:
                ssl_context['check_hostname'] = False
                ssl_context['verify_mode'] = ssl.CERT_REQUIRED
            elif self.ssl_mode == SSLMode.VERIFY_IDENTITY:
                ssl_context['check_hostname'] = True
                ssl_context['verify_mode'] = ssl.CERT_REQUIRED

            if self.ssl_ca:
                ssl_context['ca'] = self.ssl_ca
            if self.ssl_cert:
                ssl_context['cert'] = self.ssl_cert
            if self.ssl_key:
                ssl_context['key'] = self.ssl_key

            params['ssl'] = ssl_context

        return params


class ConnectionPool:
    """Thread-safe MySQL connection pool"""

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self.pool = queue.Queue(maxsize=config.max_connections)
        self.created_connections = 0
        self._lock = threading.RLock()

        # Pre-populate pool with minimum connections
        for _ in range(config.min_connections):
            self.pool.put(self._create_connection())

    def _create_connection(self):
        """Create a new MySQL connection"""
        conn = pymysql.connect(**self.config.to_connection_params())
        with self._lock:
            self.created_connections += 1
        logger.debug(f"Created new MySQL connection ({self.created_connections} total)")
        return conn

    def get_connection(self, timeout: int = 30):
        """Get connection from pool"""
        try:
            conn = self.pool.get(timeout=timeout)
            conn.ping(reconnect=True)
            return conn
        except queue.Empty:
            with self._lock:
                if self.created_connections < self.config.max_connections:
                    return self._create_connection()
            raise pymysql.OperationalError("No connections available and max pool size reached")

    def return_connection(self, conn):
        """Return connection to pool"""
        if conn is None or not conn.open:
            return
        try:
            self.pool.put_nowait(conn)
        except queue.Full:
            conn.close()

    def close_all(self):
        """Close all connections in pool"""
        while not self.pool.empty():
            try:
                conn = self.pool.get_nowait()
                conn.close()
            except queue.Empty:
                break
            except pymysql.MySQLError as e:
                logger.warning(f"Error closing pooled connection: {e}")


class MySQLAdapter(DatabaseAdapter):
    """MySQL connection adapter"""

    engine = EngineType.MYSQL
    driver_error = pymysql.MySQLError

    def __init__(self, config: Union[ConnectionConfig, Dict[str, Any], None] = None, **kwargs):
        if config is None or isinstance(config, dict):
            config = ConnectionConfig.from_dict({**(config or {}), **kwargs})
        super().__init__(config)
        self.pool: Optional[ConnectionPool] = None

    def _connect(self):
        self.pool = ConnectionPool(self.config)
        return self.pool.get_connection(timeout=self.config.connect_timeout)

    def _apply_session_settings(self) -> None:
        lock_timeout_seconds = max(1, math.ceil(self.config.lock_timeout_ms / 1000))
        statements = [
            f"SET NAMES {self.config.charset} COLLATE {self.config.collation}",
            "SET time_zone = '+00:00'",
            f"SET SESSION sql_mode = '{self.config.sql_mode}'",
            f"SET SESSION {self.dialect.lock_timeout_setting} = {lock_timeout_seconds}",
            f"SET {self.dialect.foreign_key_setting} = 1",
        ]
        for statement in statements:
            self.execute(statement)
            logger.debug(statement)

        if not self.dialect.durability_settings.get(self.config.durability):
            logger.debug(
                f"MySQL has no session-level durability setting; "
                f"'{self.config.durability.value}' hint left to server configuration"
            )

    def _disconnect(self) -> None:
        try:
            if self.pool is not None:
                self.pool.return_connection(self._connection)
        finally:
            if self.pool is not None:
                self.pool.close_all()
                self.pool = None

    def describe_target(self) -> str:
        return f"{self.config.host}:{self.config.port}/{self.config.database}"

    # ------------------------------------------------------------------
    # Catalog introspection
    # ------------------------------------------------------------------

    def has_table(self, name: str) -> bool:
        return bool(self.query(
            "SELECT 1 FROM information_schema.tables "
            "WHERE table_schema = DATABASE() AND table_name = %s AND table_type = 'BASE TABLE'",
            (name,)
        ))

    def has_column(self, table: str, name: str) -> bool:
        return bool(self.query(
            "SELECT 1 FROM information_schema.columns "
            "WHERE table_schema = DATABASE() AND table_name = %s AND column_name = %s",
            (table, name)
        ))

    def has_index(self, name: str) -> bool:
        return bool(self.query(
            "SELECT 1 FROM information_schema.statistics "
            "WHERE table_schema = DATABASE() AND index_name = %s LIMIT 1",
            (name,)
        ))

    def has_view(self, name: str) -> bool:
        return bool(self.query(
            "SELECT 1 FROM information_schema.views "
            "WHERE table_schema = DATABASE() AND table_name = %s",
            (name,)
        ))

    def list_tables(self) -> List[str]:
        rows = self.query(
            "SELECT table_name AS table_name FROM information_schema.tables "
            "WHERE table_schema = DATABASE() AND table_type = 'BASE TABLE' "
            "ORDER BY table_name"
        )
        return [row['table_name'] for row in rows]

    def list_columns(self, table: str) -> List[Dict[str, Any]]:
        rows = self.query(
            """
            SELECT c.column_name AS column_name, c.column_type AS column_type,
                   c.is_nullable AS is_nullable, c.column_default AS column_default,
                   COALESCE(k.ordinal_position, 0) AS pk_position
            FROM information_schema.columns c
            LEFT JOIN information_schema.key_column_usage k
                ON k.table_schema = c.table_schema
                AND k.table_name = c.table_name
                AND k.column_name = c.column_name
                AND k.constraint_name = 'PRIMARY'
            WHERE c.table_schema = DATABASE() AND c.table_name = %s
            ORDER BY c.ordinal_position
            """,
            (table,)
        )
        return [
            {
                'name': row['column_name'],
                'type': row['column_type'],
                'nullable': row['is_nullable'] == 'YES',
                'default': row['column_default'],
                'primary_key': row['pk_position'],
            }
            for row in rows
        ]

    def list_indexes(self, table: str) -> List[Dict[str, Any]]:
        # Indexes named after a PRIMARY KEY / UNIQUE / FOREIGN KEY constraint are implicit
        rows = self.query(
            """
            SELECT s.index_name AS index_name, s.column_name AS column_name,
                   s.non_unique AS non_unique
            FROM information_schema.statistics s
            WHERE s.table_schema = DATABASE() AND s.table_name = %s
            AND s.index_name NOT IN (
                SELECT tc.constraint_name FROM information_schema.table_constraints tc
                WHERE tc.table_schema = DATABASE() AND tc.table_name = %s
            )
            ORDER BY s.index_name, s.seq_in_index
            """,
            (table, table)
        )

        indexes: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            index = indexes.setdefault(row['index_name'], {
                'name': row['index_name'],
                'columns': [],
                'unique': not int(row['non_unique']),
                'sql': None,
            })
            index['columns'].append(row['column_name'])
        return list(indexes.values())

    def list_foreign_keys(self, table: str) -> List[Dict[str, Any]]:
        rows = self.query(
            """
            SELECT k.constraint_name AS constraint_name, k.column_name AS column_name,
                   k.referenced_table_name AS ref_table, k.referenced_column_name AS ref_column,
                   r.delete_rule AS delete_rule
            FROM information_schema.key_column_usage k
            JOIN information_schema.referential_constraints r
                ON r.constraint_schema = k.table_schema
                AND r.constraint_name = k.constraint_name
            WHERE k.table_schema = DATABASE() AND k.table_name = %s
            AND k.referenced_table_name IS NOT NULL
            ORDER BY k.constraint_name, k.ordinal_position
            """,
            (table,)
        )

        grouped: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            fk = grouped.setdefault(row['constraint_name'], {
                'name': row['constraint_name'],
                'columns': [],
                'ref_table': row['ref_table'],
                'ref_columns': [],
                'on_delete': row['delete_rule'],
            })
            fk['columns'].append(row['column_name'])
            fk['ref_columns'].append(row['ref_column'])
        return list(grouped.values())

    def index_table(self, name: str) -> Optional[str]:
        return self.query_value(
            "SELECT table_name AS table_name FROM information_schema.statistics "
            "WHERE table_schema = DATABASE() AND index_name = %s LIMIT 1",
            (name,)
        )
