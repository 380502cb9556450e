#!/usr/bin/env python3
"""
sqlew Dialect Capability Table

Static per-engine metadata consumed by the adapters, the safe-DDL helpers and
the migration runner. Dialect knowledge lives here instead of being spread
across migration bodies as engine checks.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple, Union

from core.errors import UnsupportedEngineError


class EngineType(Enum):
    """Supported database engines"""
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"

    @classmethod
    def parse(cls, value: Union['EngineType', str, None]) -> 'EngineType':
        """Resolve an engine identity from an enum member or a configuration string"""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            engine = ENGINE_ALIASES.get(value.strip().lower())
            if engine is not None:
                return engine
        raise UnsupportedEngineError(value)


ENGINE_ALIASES: Dict[str, EngineType] = {
    'sqlite': EngineType.SQLITE,
    'sqlite3': EngineType.SQLITE,
    'better-sqlite3': EngineType.SQLITE,
    'postgresql': EngineType.POSTGRESQL,
    'postgres': EngineType.POSTGRESQL,
    'pg': EngineType.POSTGRESQL,
    'mysql': EngineType.MYSQL,
    'mysql2': EngineType.MYSQL,
    'mariadb': EngineType.MYSQL,
}


class DurabilityMode(Enum):
    """Durability/sync hint applied as session settings"""
    THROUGHPUT = "throughput"
    DURABILITY = "durability"


# Column modifiers that an ADD COLUMN may carry
MODIFIER_PRIMARY_KEY = 'primary_key'
MODIFIER_UNIQUE = 'unique'
MODIFIER_NOT_NULL_WITHOUT_DEFAULT = 'not_null_without_default'
MODIFIER_EXPRESSION_DEFAULT = 'expression_default'
MODIFIER_REFERENCES_WITH_DEFAULT = 'references_with_default'


@dataclass(frozen=True)
class DialectCapabilities:
    """DDL capabilities and session defaults of one engine"""
    engine: EngineType
    display_name: str
    placeholder: str

    # Guarded DDL availability
    supports_create_table_if_not_exists: bool
    supports_create_index_if_not_exists: bool
    supports_drop_index_if_exists: bool
    transactional_ddl: bool
    native_boolean: bool
    add_column_rebuild_modifiers: FrozenSet[str]
    drop_column_requires_rebuild: bool
    drop_column_keeps_foreign_keys: bool
    drop_foreign_key_clause: str

    # Session defaults
    foreign_key_setting: Optional[str]
    requires_foreign_key_pragma: bool
    lock_timeout_setting: str
    default_lock_timeout_ms: int
    default_durability: DurabilityMode
    durability_settings: Dict[DurabilityMode, Tuple[Tuple[str, str], ...]] = field(default_factory=dict)

    # DDL rendering
    autoincrement_primary_key: str = "INTEGER PRIMARY KEY"
    type_names: Dict[str, str] = field(default_factory=dict)
    epoch_default: Optional[str] = None
    max_indexed_varchar: Optional[int] = None
    create_table_suffix: str = ""


DIALECTS: Dict[EngineType, DialectCapabilities] = {
    EngineType.SQLITE: DialectCapabilities(
        engine=EngineType.SQLITE,
        display_name="SQLite",
        placeholder="?",
        supports_create_table_if_not_exists=True,
        supports_create_index_if_not_exists=True,
        supports_drop_index_if_exists=True,
        transactional_ddl=True,
        native_boolean=False,
        add_column_rebuild_modifiers=frozenset({
            MODIFIER_PRIMARY_KEY,
            MODIFIER_UNIQUE,
            MODIFIER_NOT_NULL_WITHOUT_DEFAULT,
            MODIFIER_EXPRESSION_DEFAULT,
            MODIFIER_REFERENCES_WITH_DEFAULT,
        }),
        drop_column_requires_rebuild=True,
        drop_column_keeps_foreign_keys=False,
        drop_foreign_key_clause="DROP CONSTRAINT",
        foreign_key_setting="foreign_keys",
        requires_foreign_key_pragma=True,
        lock_timeout_setting="busy_timeout",
        default_lock_timeout_ms=5000,
        default_durability=DurabilityMode.THROUGHPUT,
        durability_settings={
            DurabilityMode.THROUGHPUT: (("synchronous", "NORMAL"),),
            DurabilityMode.DURABILITY: (("synchronous", "FULL"),),
        },
        autoincrement_primary_key="INTEGER PRIMARY KEY AUTOINCREMENT",
        type_names={
            'integer': 'INTEGER',
            'bigint': 'BIGINT',
            'string': 'VARCHAR({length})',
            'text': 'TEXT',
            'boolean': 'BOOLEAN',
            'float': 'REAL',
        },
        epoch_default="(strftime('%s', 'now'))",
    ),
    EngineType.POSTGRESQL: DialectCapabilities(
        engine=EngineType.POSTGRESQL,
        display_name="PostgreSQL",
        placeholder="%s",
        supports_create_table_if_not_exists=True,
        supports_create_index_if_not_exists=True,
        supports_drop_index_if_exists=True,
        transactional_ddl=True,
        native_boolean=True,
        add_column_rebuild_modifiers=frozenset(),
        drop_column_requires_rebuild=False,
        drop_column_keeps_foreign_keys=False,
        drop_foreign_key_clause="DROP CONSTRAINT",
        foreign_key_setting=None,
        requires_foreign_key_pragma=False,
        lock_timeout_setting="lock_timeout",
        default_lock_timeout_ms=30000,
        default_durability=DurabilityMode.DURABILITY,
        durability_settings={
            DurabilityMode.THROUGHPUT: (("synchronous_commit", "off"),),
            DurabilityMode.DURABILITY: (("synchronous_commit", "on"),),
        },
        autoincrement_primary_key="SERIAL PRIMARY KEY",
        type_names={
            'integer': 'INTEGER',
            'bigint': 'BIGINT',
            'string': 'VARCHAR({length})',
            'text': 'TEXT',
            'boolean': 'BOOLEAN',
            'float': 'DOUBLE PRECISION',
        },
        epoch_default="(EXTRACT(EPOCH FROM NOW())::INTEGER)",
    ),
    EngineType.MYSQL: DialectCapabilities(
        engine=EngineType.MYSQL,
        display_name="MySQL",
        placeholder="%s",
        supports_create_table_if_not_exists=True,
        supports_create_index_if_not_exists=False,
        supports_drop_index_if_exists=False,
        transactional_ddl=False,
        native_boolean=False,
        add_column_rebuild_modifiers=frozenset(),
        drop_column_requires_rebuild=False,
        drop_column_keeps_foreign_keys=True,
        drop_foreign_key_clause="DROP FOREIGN KEY",
        foreign_key_setting="FOREIGN_KEY_CHECKS",
        requires_foreign_key_pragma=False,
        lock_timeout_setting="innodb_lock_wait_timeout",
        default_lock_timeout_ms=50000,
        default_durability=DurabilityMode.DURABILITY,
        durability_settings={},
        autoincrement_primary_key="INT NOT NULL AUTO_INCREMENT PRIMARY KEY",
        type_names={
            'integer': 'INT',
            'bigint': 'BIGINT',
            'string': 'VARCHAR({length})',
            'text': 'TEXT',
            'boolean': 'TINYINT(1)',
            'float': 'DOUBLE',
        },
        epoch_default="(UNIX_TIMESTAMP())",
        # utf8mb4 keys are limited to 3072 bytes; leave room for a leading INT
        max_indexed_varchar=760,
        create_table_suffix=" ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci",
    ),
}


def get_dialect(engine: Union[EngineType, str]) -> DialectCapabilities:
    """Capability record for an engine identity"""
    return DIALECTS[EngineType.parse(engine)]
