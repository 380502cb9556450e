#!/usr/bin/env python3
"""
sqlew SQLite Adapter - Embedded File Engine

Provides the SQLite connection adapter:
- WAL journal, foreign-key enforcement and busy timeout per session
- Durability hint mapped to PRAGMA synchronous
- Transactional DDL with explicit BEGIN/COMMIT (driver autocommit disabled)
- Catalog introspection via sqlite_master and PRAGMA table_info / index_list /
  foreign_key_list, including what a shadow-table rebuild needs

Usage:
    adapter = SQLiteAdapter({'database': '.sqlew/sqlew.db'})
    adapter.open()
"""

import sqlite3
import re
import logging
from contextlib import contextmanager
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from core.database_adapter import DatabaseAdapter
from core.dialects import DurabilityMode, EngineType, get_dialect
from core.errors import QueryError, TransactionError

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_PATH = '.sqlew/sqlew.db'


@dataclass
class ConnectionConfig:
    """SQLite connection configuration"""
    database: str = DEFAULT_DATABASE_PATH
    timeout: float = 30.0
    busy_timeout_ms: Optional[int] = None
    journal_mode: str = "WAL"
    durability: DurabilityMode = DurabilityMode.THROUGHPUT
    foreign_keys: bool = True

    def __post_init__(self):
        self.database = str(self.database)
        if isinstance(self.durability, str):
            self.durability = DurabilityMode(self.durability)
        if self.busy_timeout_ms is None:
            self.busy_timeout_ms = get_dialect(EngineType.SQLITE).default_lock_timeout_ms

    @classmethod
    def from_dict(cls, options: Dict[str, Any]) -> 'ConnectionConfig':
        known = {f.name for f in fields(cls)}
        options = dict(options)
        # 'path' and 'lock_timeout_ms' are the engine-neutral spellings
        if 'path' in options and 'database' not in options:
            options['database'] = options.pop('path')
        if 'lock_timeout_ms' in options and 'busy_timeout_ms' not in options:
            options['busy_timeout_ms'] = options.pop('lock_timeout_ms')
        return cls(**{k: v for k, v in options.items() if k in known and v is not None})

    @property
    def is_memory(self) -> bool:
        return self.database == ':memory:' or self.database.startswith('file::memory:')

    def to_connection_params(self) -> Dict[str, Any]:
        """Convert to sqlite3.connect parameters"""
        return {
            'database': self.database,
            'timeout': self.timeout,
            'check_same_thread': False,
            # Transactions are opened explicitly with BEGIN
            'isolation_level': None,
        }


class SQLiteAdapter(DatabaseAdapter):
    """SQLite connection adapter"""

    engine = EngineType.SQLITE
    driver_error = sqlite3.Error

    def __init__(self, config: Union[ConnectionConfig, Dict[str, Any], None] = None, **kwargs):
        if config is None or isinstance(config, dict):
            config = ConnectionConfig.from_dict({**(config or {}), **kwargs})
        super().__init__(config)

    def _connect(self) -> sqlite3.Connection:
        if not self.config.is_memory:
            self._ensure_database_directory()
        connection = sqlite3.connect(**self.config.to_connection_params())
        connection.row_factory = sqlite3.Row
        logger.debug(f"Connected to SQLite database: {self.config.database}")
        return connection

    def _ensure_database_directory(self) -> None:
        """Create the parent directory of the database file if needed"""
        db_path = Path(self.config.database)
        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created database directory: {db_path.parent}")

    def _apply_session_settings(self) -> None:
        settings = []
        if not self.config.is_memory:
            settings.append(('journal_mode', self.config.journal_mode))
        if self.config.foreign_keys:
            settings.append((self.dialect.foreign_key_setting, 'ON'))
        settings.append((self.dialect.lock_timeout_setting, str(int(self.config.busy_timeout_ms))))
        settings.extend(self.dialect.durability_settings.get(self.config.durability, ()))

        for pragma, value in settings:
            self.set_pragma(pragma, value)
            logger.debug(f"PRAGMA {pragma} = {value}")

    def _disconnect(self) -> None:
        self._connection.close()

    def describe_target(self) -> str:
        return self.config.database

    # ------------------------------------------------------------------
    # PRAGMA helpers
    # ------------------------------------------------------------------

    def get_pragma(self, pragma: str) -> Any:
        return self.query_value(f"PRAGMA {pragma}")

    def set_pragma(self, pragma: str, value: Any) -> None:
        self.query(f"PRAGMA {pragma} = {value}")

    def get_pragma_settings(self) -> Dict[str, Any]:
        """Current values of the session PRAGMAs this adapter manages"""
        names = ['journal_mode', 'foreign_keys', 'busy_timeout', 'synchronous']
        return {name: self.get_pragma(name) for name in names}

    # ------------------------------------------------------------------
    # Foreign keys
    # ------------------------------------------------------------------

    @contextmanager
    def foreign_keys_disabled(self) -> Iterator[None]:
        """Turn foreign-key enforcement off for the scope.

        SQLite ignores the pragma inside a transaction, so this must be entered
        before the transaction it protects.
        """
        if not self.get_pragma('foreign_keys'):
            yield
            return
        if self.in_transaction:
            raise TransactionError("Foreign-key enforcement cannot be changed inside a transaction on SQLite")
        self.set_pragma('foreign_keys', 'OFF')
        try:
            yield
        finally:
            self.set_pragma('foreign_keys', 'ON')

    def foreign_keys_enforced(self) -> bool:
        return bool(self.get_pragma('foreign_keys'))

    def check_foreign_keys(self) -> None:
        violations = self.query("PRAGMA foreign_key_check")
        if violations:
            first = violations[0]
            raise QueryError(
                f"Foreign key check failed: {len(violations)} violation(s), "
                f"first in {first.get('table')} referencing {first.get('parent')}",
                statement="PRAGMA foreign_key_check"
            )

    # ------------------------------------------------------------------
    # Catalog introspection
    # ------------------------------------------------------------------

    def has_table(self, name: str) -> bool:
        return bool(self.query(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
        ))

    def has_column(self, table: str, name: str) -> bool:
        return any(column['name'].lower() == name.lower() for column in self.list_columns(table))

    def has_index(self, name: str) -> bool:
        return bool(self.query(
            "SELECT 1 FROM sqlite_master WHERE type = 'index' AND name = ?", (name,)
        ))

    def has_view(self, name: str) -> bool:
        return bool(self.query(
            "SELECT 1 FROM sqlite_master WHERE type = 'view' AND name = ?", (name,)
        ))

    def list_tables(self) -> List[str]:
        rows = self.query(
            "SELECT name FROM sqlite_master WHERE type = 'table' "
            "AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row['name'] for row in rows]

    def list_columns(self, table: str) -> List[Dict[str, Any]]:
        rows = self.query(f"PRAGMA table_info('{table}')")
        return [
            {
                'name': row['name'],
                'type': row['type'],
                'nullable': not row['notnull'],
                'default': row['dflt_value'],
                'primary_key': row['pk'],
            }
            for row in rows
        ]

    def list_indexes(self, table: str) -> List[Dict[str, Any]]:
        # Indexes with NULL sql back PRIMARY KEY / UNIQUE constraints
        rows = self.query(
            "SELECT name, sql FROM sqlite_master WHERE type = 'index' "
            "AND tbl_name = ? AND sql IS NOT NULL ORDER BY name",
            (table,)
        )
        info = self.query(f"PRAGMA index_list('{table}')")
        indexes = []
        for row in rows:
            unique = any(entry['name'] == row['name'] and entry['unique'] for entry in info)
            columns = [entry['name'] for entry in self.query(f"PRAGMA index_info('{row['name']}')")]
            indexes.append({'name': row['name'], 'columns': columns, 'unique': unique, 'sql': row['sql']})
        return indexes

    def list_unique_constraints(self, table: str) -> List[List[str]]:
        """Column lists of UNIQUE constraints declared in the table definition"""
        constraints = []
        for entry in self.query(f"PRAGMA index_list('{table}')"):
            if entry['origin'] != 'u':
                continue
            columns = [info['name'] for info in self.query(f"PRAGMA index_info('{entry['name']}')")]
            constraints.append(columns)
        return constraints

    def list_foreign_keys(self, table: str) -> List[Dict[str, Any]]:
        grouped: Dict[int, Dict[str, Any]] = {}
        for row in self.query(f"PRAGMA foreign_key_list('{table}')"):
            fk = grouped.setdefault(row['id'], {
                'name': f"fk_{table}_{row['id']}",
                'columns': [],
                'ref_table': row['table'],
                'ref_columns': [],
                'on_delete': row['on_delete'],
            })
            fk['columns'].append(row['from'])
            fk['ref_columns'].append(row['to'])
        return [grouped[key] for key in sorted(grouped)]

    def get_table_sql(self, table: str) -> Optional[str]:
        return self.query_value(
            "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
        )

    def index_table(self, name: str) -> Optional[str]:
        return self.query_value(
            "SELECT tbl_name FROM sqlite_master WHERE type = 'index' AND name = ?", (name,)
        )

    def list_dependents(self, table: str) -> List[Dict[str, Any]]:
        """
        Views and triggers that mention the table, directly or through another
        view, in creation order.

        SQLite re-parses these on ALTER TABLE RENAME, so a rebuild has to take
        them out of the schema while the table is being swapped.
        """
        rows = self.query(
            "SELECT type, name, tbl_name, sql FROM sqlite_master "
            "WHERE type IN ('view', 'trigger') AND sql IS NOT NULL ORDER BY rowid"
        )
        names = {table.lower()}
        dependents: List[Dict[str, Any]] = []
        found = True
        while found:
            found = False
            for row in rows:
                if any(d['name'] == row['name'] for d in dependents):
                    continue
                words = {w.lower() for w in re.findall(r'[A-Za-z_][A-Za-z0-9_]*', row['sql'])}
                if row['tbl_name'].lower() in names or words & names:
                    dependents.append({'type': row['type'], 'name': row['name'], 'sql': row['sql']})
                    names.add(row['name'].lower())
                    found = True
        order = [row['name'] for row in rows]
        return sorted(dependents, key=lambda d: order.index(d['name']))

    def get_sequence(self, table: str) -> Optional[int]:
        """Last AUTOINCREMENT value handed out for the table, if any"""
        if not self.has_table('sqlite_sequence'):
            return None
        value = self.query_value("SELECT seq FROM sqlite_sequence WHERE name = ?", (table,))
        return None if value is None else int(value)

    def set_sequence(self, table: str, value: int) -> None:
        if not self.execute("UPDATE sqlite_sequence SET seq = ? WHERE name = ?", (value, table)):
            self.execute("INSERT INTO sqlite_sequence (name, seq) VALUES (?, ?)", (table, value))
