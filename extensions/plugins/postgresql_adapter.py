#!/usr/bin/env python3
"""
sqlew PostgreSQL Adapter - Client/Server Engine

This module provides the PostgreSQL connection adapter with:
- Connection pooling (one pooled connection held per adapter)
- Session settings: UTC time zone, UTF8, statement and lock timeouts,
  synchronous_commit from the durability hint
- Transactional DDL with explicit BEGIN/COMMIT
- SSL/TLS support
- Catalog introspection via information_schema and pg_catalog

Usage:
    adapter = PostgreSQLAdapter(
        host='localhost',
        database='sqlew',
        user='sqlew',
        password='secure_password'
    )
    adapter.open()
    rows = adapter.query("SELECT * FROM m_layers")
"""

import psycopg2
import psycopg2.pool
import psycopg2.extras
import logging
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

from core.database_adapter import DatabaseAdapter
from core.dialects import DurabilityMode, EngineType, get_dialect

# Configure logging
logger = logging.getLogger(__name__)


class SSLMode(Enum):
    """SSL connection modes"""
    DISABLE = "disable"
    ALLOW = "allow"
    PREFER = "prefer"
    REQUIRE = "require"
    VERIFY_CA = "verify-ca"
    VERIFY_FULL = "verify-full"


@dataclass
class ConnectionConfig:
    """PostgreSQL connection configuration"""
    host: str = "localhost"
    port: int = 5432
    database: str = "sqlew"
    user: str = "sqlew"
    password: str = ""

    # Connection pool settings
    min_connections: int = 1
    max_connections: int = 4

    # SSL settings
    ssl_mode: SSLMode = SSLMode.PREFER
    ssl_cert: Optional[str] = None
    ssl_key: Optional[str] = None
    ssl_ca: Optional[str] = None

    # Session settings
    statement_timeout_ms: int = 30000
    lock_timeout_ms: Optional[int] = None
    connect_timeout: int = 10
    durability: DurabilityMode = DurabilityMode.DURABILITY

    # Application settings
    application_name: str = "sqlew"
    search_path: str = "public"

    def __post_init__(self):
        if isinstance(self.ssl_mode, str):
            self.ssl_mode = SSLMode(self.ssl_mode.lower())
        if isinstance(self.durability, str):
            self.durability = DurabilityMode(self.durability)
        if self.lock_timeout_ms is None:
            self.lock_timeout_ms = get_dialect(EngineType.POSTGRESQL).default_lock_timeout_ms
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
        """Convert to psycopg2 connection parameters"""
        params = {
            'host': self.host,
            'port': self.port,
            'database': self.database,
            'user': self.user,
            'password': self.password,
            'connect_timeout': self.connect_timeout,
            'application_name': self.application_name,
            'options': f'-c search_path={self.search_path}'
        }

        # Add SSL configuration
        if self.ssl_mode != SSLMode.DISABLE:
            params['sslmode'] = self.ssl_mode.value
            if self.ssl_cert:
                params['sslcert'] = self.ssl_cert
            if self.ssl_key:
                params['sslkey'] = self.ssl_key
            if self.ssl_ca:
                params['sslrootcert'] = self.ssl_ca

        return params


class PostgreSQLAdapter(DatabaseAdapter):
    """PostgreSQL connection adapter"""

    engine = EngineType.POSTGRESQL
    driver_error = psycopg2.Error

    def __init__(self, config: Union[ConnectionConfig, Dict[str, Any], None] = None, **kwargs):
        if config is None or isinstance(config, dict):
            config = ConnectionConfig.from_dict({**(config or {}), **kwargs})
        super().__init__(config)
        self.pool = None

    def _connect(self):
        self.pool = psycopg2.pool.ThreadedConnectionPool(
            minconn=self.config.min_connections,
            maxconn=self.config.max_connections,
            **self.config.to_connection_params()
        )
        connection = self.pool.getconn()
        # Transactions are opened explicitly with BEGIN
        connection.autocommit = True
        logger.debug(
            f"Connection pool initialized with {self.config.min_connections}-"
            f"{self.config.max_connections} connections"
        )
        return connection

    def _apply_session_settings(self) -> None:
        statements = [
            "SET TIME ZONE 'UTC'",
            "SET client_encoding = 'UTF8'",
            f"SET statement_timeout = {int(self.config.statement_timeout_ms)}",
            f"SET {self.dialect.lock_timeout_setting} = {int(self.config.lock_timeout_ms)}",
        ]
        for name, value in self.dialect.durability_settings.get(self.config.durability, ()):
            statements.append(f"SET {name} = {value}")

        for statement in statements:
            self.execute(statement)
            logger.debug(statement)

    def _disconnect(self) -> None:
        try:
            if self.pool is not None and self._connection is not None:
                self.pool.putconn(self._connection)
        finally:
            if self.pool is not None:
                self.pool.closeall()
                self.pool = None

    def _cursor(self):
        return self.connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)

    def describe_target(self) -> str:
        return f"{self.config.host}:{self.config.port}/{self.config.database}"

    # ------------------------------------------------------------------
    # Catalog introspection
    # ------------------------------------------------------------------

    def has_table(self, name: str) -> bool:
        return bool(self.query(
            "SELECT 1 FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name = %s AND table_type = 'BASE TABLE'",
            (name,)
        ))

    def has_column(self, table: str, name: str) -> bool:
        return bool(self.query(
            "SELECT 1 FROM information_schema.columns "
            "WHERE table_schema = current_schema() AND table_name = %s AND column_name = %s",
            (table, name)
        ))

    def has_index(self, name: str) -> bool:
        return bool(self.query(
            "SELECT 1 FROM pg_indexes WHERE schemaname = current_schema() AND indexname = %s",
            (name,)
        ))

    def has_view(self, name: str) -> bool:
        return bool(self.query(
            "SELECT 1 FROM information_schema.views "
            "WHERE table_schema = current_schema() AND table_name = %s",
            (name,)
        ))

    def list_tables(self) -> List[str]:
        rows = self.query(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_type = 'BASE TABLE' "
            "ORDER BY table_name"
        )
        return [row['table_name'] for row in rows]

    def list_columns(self, table: str) -> List[Dict[str, Any]]:
        rows = self.query(
            """
            SELECT c.column_name, c.data_type, c.is_nullable, c.column_default,
                   COALESCE(pk.position, 0) AS pk_position
            FROM information_schema.columns c
            LEFT JOIN (
                SELECT kcu.column_name, kcu.ordinal_position AS position
                FROM information_schema.table_constraints tc
                JOIN information_schema.key_column_usage kcu
                    ON tc.constraint_name = kcu.constraint_name
                    AND tc.table_schema = kcu.table_schema
                WHERE tc.constraint_type = 'PRIMARY KEY'
                AND tc.table_schema = current_schema()
                AND tc.table_name = %s
            ) pk ON pk.column_name = c.column_name
            WHERE c.table_schema = current_schema() AND c.table_name = %s
            ORDER BY c.ordinal_position
            """,
            (table, table)
        )
        return [
            {
                'name': row['column_name'],
                'type': row['data_type'],
                'nullable': row['is_nullable'] == 'YES',
                'default': row['column_default'],
                'primary_key': row['pk_position'],
            }
            for row in rows
        ]

    def list_indexes(self, table: str) -> List[Dict[str, Any]]:
        # Indexes owned by PRIMARY KEY / UNIQUE / EXCLUDE constraints are implicit
        rows = self.query(
            """
            SELECT i.relname AS index_name, ix.indisunique AS is_unique, a.attname AS column_name
            FROM pg_class t
            JOIN pg_index ix ON t.oid = ix.indrelid
            JOIN pg_class i ON i.oid = ix.indexrelid
            CROSS JOIN LATERAL unnest(ix.indkey::int2[]) WITH ORDINALITY AS k(attnum, ord)
            JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
            WHERE t.relkind = 'r'
            AND t.relnamespace = (SELECT oid FROM pg_namespace WHERE nspname = current_schema())
            AND t.relname = %s
            AND NOT EXISTS (
                SELECT 1 FROM pg_constraint c
                WHERE c.conindid = ix.indexrelid AND c.conrelid = t.oid
                AND c.contype IN ('p', 'u', 'x')
            )
            ORDER BY i.relname, k.ord
            """,
            (table,)
        )

        # Group by index name
        indexes: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            index = indexes.setdefault(row['index_name'], {
                'name': row['index_name'],
                'columns': [],
                'unique': row['is_unique'],
                'sql': None,
            })
            index['columns'].append(row['column_name'])
        return list(indexes.values())

    def list_foreign_keys(self, table: str) -> List[Dict[str, Any]]:
        rows = self.query(
            """
            SELECT tc.constraint_name, kcu.column_name,
                   ccu.table_name AS ref_table, ccu.column_name AS ref_column,
                   rc.delete_rule
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
                ON tc.constraint_name = kcu.constraint_name
                AND tc.table_schema = kcu.table_schema
            JOIN information_schema.constraint_column_usage ccu
                ON ccu.constraint_name = tc.constraint_name
                AND ccu.table_schema = tc.table_schema
            JOIN information_schema.referential_constraints rc
                ON rc.constraint_name = tc.constraint_name
                AND rc.constraint_schema = tc.table_schema
            WHERE tc.constraint_type = 'FOREIGN KEY'
            AND tc.table_schema = current_schema()
            AND tc.table_name = %s
            ORDER BY tc.constraint_name, kcu.ordinal_position
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
            "SELECT tablename FROM pg_indexes WHERE schemaname = current_schema() AND indexname = %s",
            (name,)
        )


def create_adapter_from_url(database_url: str, **kwargs) -> PostgreSQLAdapter:
    """Create adapter from database URL"""
    parsed = urlparse(database_url)

    config = ConnectionConfig(
        host=parsed.hostname or 'localhost',
        port=parsed.port or 5432,
        database=parsed.path.lstrip('/') if parsed.path else 'postgres',
        user=parsed.username or 'postgres',
        password=parsed.password or '',
        **kwargs
    )

    return PostgreSQLAdapter(config)
