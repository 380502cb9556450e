#!/usr/bin/env python3
"""
sqlew Safe-DDL Helpers - Guarded, Dialect-Aware Schema Changes

Every helper re-checks the live catalog before acting, so migration bodies can
be written once and re-run safely against any supported engine, including
schemas that were partially migrated or patched by hand. Each operation logs a
one-line trace of what it changed or skipped.

Engines that cannot add certain column modifiers in place (SQLite) get a
shadow-table rebuild:

    SNAPSHOT -> CREATE_SHADOW -> COPY -> DROP_ORIGINAL -> SWAP -> DONE

Usage:
    ddl = SafeDDL(adapter)
    ddl.create_table_if_absent('m_layers', lambda t: (
        t.increments('id'),
        t.string('name', 50, nullable=False, unique=True),
    ))
    ddl.add_column_if_absent('t_tasks', Column('project_id', 'integer', nullable=False,
                                               default=1, references='m_projects.id'))
    ddl.create_index_if_absent('t_tasks', ['project_id', 'updated_ts'])
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Union

from core.database_adapter import DatabaseAdapter
from core.dialects import (
    DialectCapabilities,
    MODIFIER_EXPRESSION_DEFAULT,
    MODIFIER_NOT_NULL_WITHOUT_DEFAULT,
    MODIFIER_PRIMARY_KEY,
    MODIFIER_REFERENCES_WITH_DEFAULT,
    MODIFIER_UNIQUE,
)
from core.errors import QueryError, TransactionError

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
COLUMN_TYPES = ('increments', 'integer', 'bigint', 'string', 'text', 'boolean', 'float')
OBJECT_KINDS = ('table', 'index', 'view')
ON_DELETE_ACTIONS = ('CASCADE', 'SET NULL', 'RESTRICT', 'NO ACTION', 'SET DEFAULT')
DEFAULT_STRING_LENGTH = 255

_LITERAL_DEFAULT = re.compile(
    r"^(-?\d+(\.\d+)?|'.*'|NULL|TRUE|FALSE|CURRENT_TIMESTAMP|CURRENT_DATE|CURRENT_TIME)$",
    re.IGNORECASE | re.DOTALL
)


def validate_identifier(name: str) -> str:
    """Validate a table, column or index name and return it unchanged"""
    if not isinstance(name, str) or not IDENTIFIER_PATTERN.match(name):
        raise ValueError(f"Invalid identifier: {name!r}")
    return name


class Raw:
    """SQL expression used verbatim as a default or backfill value"""

    def __init__(self, sql: str):
        self.sql = sql

    def render(self, dialect: DialectCapabilities) -> str:
        return self.sql

    def __repr__(self) -> str:
        return f"Raw({self.sql!r})"


class EpochNow(Raw):
    """Current time in epoch seconds, rendered per dialect"""

    def __init__(self):
        super().__init__('')

    def render(self, dialect: DialectCapabilities) -> str:
        return dialect.epoch_default

    def __repr__(self) -> str:
        return "EpochNow()"


EPOCH_NOW = EpochNow()


@dataclass
class Column:
    """Engine-neutral column definition"""
    name: str
    type: str
    length: Optional[int] = None
    nullable: bool = True
    default: Any = None
    unique: bool = False
    primary_key: bool = False
    references: Optional[str] = None
    on_delete: Optional[str] = None

    def __post_init__(self):
        validate_identifier(self.name)
        if self.type not in COLUMN_TYPES:
            raise ValueError(f"Unknown column type {self.type!r} for {self.name}")
        if self.type == 'increments':
            self.primary_key = True
            self.nullable = False
        if self.references is not None:
            ref_table, _, ref_column = self.references.partition('.')
            validate_identifier(ref_table)
            validate_identifier(ref_column or 'id')
        if self.on_delete is not None and self.on_delete.upper() not in ON_DELETE_ACTIONS:
            raise ValueError(f"Unsupported ON DELETE action: {self.on_delete}")

    @property
    def reference_target(self) -> Optional[tuple]:
        if self.references is None:
            return None
        ref_table, _, ref_column = self.references.partition('.')
        return ref_table, ref_column or 'id'

    def modifiers(self) -> Set[str]:
        """Modifiers an engine may be unable to add in place"""
        found = set()
        if self.primary_key:
            found.add(MODIFIER_PRIMARY_KEY)
        if self.unique:
            found.add(MODIFIER_UNIQUE)
        if not self.nullable and self.default is None:
            found.add(MODIFIER_NOT_NULL_WITHOUT_DEFAULT)
        if isinstance(self.default, Raw):
            found.add(MODIFIER_EXPRESSION_DEFAULT)
        if self.references is not None and self.default is not None:
            found.add(MODIFIER_REFERENCES_WITH_DEFAULT)
        return found


@dataclass(frozen=True)
class CreateResult:
    created: bool


@dataclass(frozen=True)
class AddColumnResult:
    added: bool
    rebuilt: bool = False


class SQLRenderer:
    """Renders engine-neutral definitions into one dialect's DDL"""

    def __init__(self, dialect: DialectCapabilities):
        self.dialect = dialect

    def literal(self, value: Any) -> str:
        if isinstance(value, Raw):
            return value.render(self.dialect)
        if value is None:
            return 'NULL'
        if isinstance(value, bool):
            if self.dialect.native_boolean:
                return 'TRUE' if value else 'FALSE'
            return '1' if value else '0'
        if isinstance(value, (int, float)):
            return repr(value)
        escaped = str(value).replace("'", "''")
        return f"'{escaped}'"

    def column_type(self, column: Column) -> str:
        if column.type == 'string':
            length = column.length or DEFAULT_STRING_LENGTH
            limit = self.dialect.max_indexed_varchar
            if limit is not None and length > limit:
                logger.debug(f"Clamping {column.name} VARCHAR({length}) to {limit} on {self.dialect.display_name}")
                length = limit
            return self.dialect.type_names['string'].format(length=length)
        return self.dialect.type_names[column.type]

    def column_sql(self, column: Column, inline_references: bool = False) -> str:
        if column.type == 'increments':
            return f"{column.name} {self.dialect.autoincrement_primary_key}"
        parts = [column.name, self.column_type(column)]
        if not column.nullable:
            parts.append('NOT NULL')
        if column.default is not None:
            parts.append(f"DEFAULT {self.literal(column.default)}")
        if column.unique:
            parts.append('UNIQUE')
        if column.primary_key:
            parts.append('PRIMARY KEY')
        if inline_references and column.references is not None:
            ref_table, ref_column = column.reference_target
            parts.append(f"REFERENCES {ref_table}({ref_column})")
            if column.on_delete:
                parts.append(f"ON DELETE {column.on_delete.upper()}")
        return ' '.join(parts)

    def foreign_key_sql(self, table: str, columns: Sequence[str], ref_table: str,
                        ref_columns: Sequence[str], on_delete: Optional[str] = None) -> str:
        name = f"fk_{table}_{'_'.join(columns)}"
        sql = (f"CONSTRAINT {name} FOREIGN KEY ({', '.join(columns)}) "
               f"REFERENCES {ref_table}({', '.join(ref_columns)})")
        if on_delete and on_delete.upper() != 'NO ACTION':
            sql += f" ON DELETE {on_delete.upper()}"
        return sql


class TableBuilder:
    """Collects the columns and table constraints of one CREATE TABLE"""

    def __init__(self, name: str, dialect: DialectCapabilities):
        self.name = validate_identifier(name)
        self.dialect = dialect
        self.columns: List[Column] = []
        self.primary_key: List[str] = []
        self.unique_constraints: List[List[str]] = []

    def add(self, column: Column) -> Column:
        if any(existing.name == column.name for existing in self.columns):
            raise ValueError(f"Duplicate column {column.name} in {self.name}")
        self.columns.append(column)
        return column

    def increments(self, name: str = 'id') -> Column:
        return self.add(Column(name, 'increments'))

    def integer(self, name: str, **options) -> Column:
        return self.add(Column(name, 'integer', **options))

    def bigint(self, name: str, **options) -> Column:
        return self.add(Column(name, 'bigint', **options))

    def string(self, name: str, length: int = DEFAULT_STRING_LENGTH, **options) -> Column:
        return self.add(Column(name, 'string', length=length, **options))

    def text(self, name: str, **options) -> Column:
        return self.add(Column(name, 'text', **options))

    def boolean(self, name: str, **options) -> Column:
        return self.add(Column(name, 'boolean', **options))

    def float(self, name: str, **options) -> Column:
        return self.add(Column(name, 'float', **options))

    def epoch(self, name: str, nullable: bool = False, default_now: bool = True, **options) -> Column:
        """Integer epoch-seconds timestamp, defaulting to the current time"""
        default = EPOCH_NOW if default_now else None
        return self.add(Column(name, 'integer', nullable=nullable, default=default, **options))

    def primary(self, columns: Sequence[str]) -> None:
        self.primary_key = [validate_identifier(c) for c in columns]

    def unique(self, columns: Sequence[str]) -> None:
        self.unique_constraints.append([validate_identifier(c) for c in columns])

    def to_sql(self) -> str:
        if not self.columns:
            raise ValueError(f"Table {self.name} has no columns")
        renderer = SQLRenderer(self.dialect)
        lines = [renderer.column_sql(column) for column in self.columns]
        if self.primary_key:
            lines.append(f"PRIMARY KEY ({', '.join(self.primary_key)})")
        for columns in self.unique_constraints:
            lines.append(f"UNIQUE ({', '.join(columns)})")
        for column in self.columns:
            if column.references is not None:
                ref_table, ref_column = column.reference_target
                lines.append(renderer.foreign_key_sql(self.name, [column.name], ref_table, [ref_column],
                                                      column.on_delete))
        body = ',\n    '.join(lines)
        return f"CREATE TABLE {self.name} (\n    {body}\n){self.dialect.create_table_suffix}"


class RebuildState(Enum):
    """Shadow-table rebuild steps"""
    SNAPSHOT = "snapshot"
    CREATE_SHADOW = "create_shadow"
    COPY = "copy"
    DROP_ORIGINAL = "drop_original"
    SWAP = "swap"
    DONE = "done"


@dataclass
class TableSnapshot:
    """Live shape of a table captured before a rebuild"""
    table: str
    columns: List[Dict[str, Any]]
    autoincrement: bool
    unique_constraints: List[List[str]]
    foreign_keys: List[Dict[str, Any]]
    indexes: List[Dict[str, Any]]
    row_count: int = 0
    primary_key: List[str] = field(default_factory=list)
    sequence: Optional[int] = None
    dependents: List[Dict[str, Any]] = field(default_factory=list)


class TableRebuild:
    """
    Rebuilds one table through a shadow copy to add or drop a column.

    Runs inside a single transaction with foreign-key enforcement suspended;
    if any step fails the transaction rolls back and the original table is
    left untouched.
    """

    def __init__(self, ddl: 'SafeDDL', table: str, add: Optional[Column] = None,
                 drop: Optional[str] = None, backfill: Any = None):
        self.ddl = ddl
        self.adapter = ddl.adapter
        self.table = table
        self.shadow = f"{table}__shadow"
        self.add = add
        self.drop = drop
        self.backfill = backfill
        self.state = RebuildState.SNAPSHOT
        self.snapshot: Optional[TableSnapshot] = None

    def run(self) -> TableSnapshot:
        if self.adapter.in_transaction:
            if self.adapter.foreign_keys_enforced():
                raise TransactionError(
                    f"Rebuilding {self.table} needs foreign-key enforcement suspended; "
                    "run it through the migration runner or outside a transaction"
                )
            self._run_steps()
        else:
            with self.adapter.foreign_keys_disabled():
                with self.adapter.transaction():
                    self._run_steps()
                    self.adapter.check_foreign_keys()
        return self.snapshot

    def _advance(self, state: RebuildState) -> None:
        logger.debug(f"Rebuild {self.table}: {self.state.value} -> {state.value}")
        self.state = state

    def _run_steps(self) -> None:
        self.snapshot = self._take_snapshot()

        self._advance(RebuildState.CREATE_SHADOW)
        self.adapter.execute(f"DROP TABLE IF EXISTS {self.shadow}")
        self.adapter.execute(self._shadow_sql())

        self._advance(RebuildState.COPY)
        self.adapter.execute(self._copy_sql())
        copied = int(self.adapter.query_value(f"SELECT COUNT(*) AS n FROM {self.shadow}") or 0)
        if copied != self.snapshot.row_count:
            raise QueryError(
                f"Rebuild of {self.table} copied {copied} of {self.snapshot.row_count} rows",
                statement=self._copy_sql()
            )

        self._advance(RebuildState.DROP_ORIGINAL)
        for dependent in reversed(self.snapshot.dependents):
            self.adapter.execute(f"DROP {dependent['type'].upper()} IF EXISTS {dependent['name']}")
        self.adapter.execute(f"DROP TABLE {self.table}")

        self._advance(RebuildState.SWAP)
        self.adapter.execute(f"ALTER TABLE {self.shadow} RENAME TO {self.table}")
        if self.snapshot.sequence is not None:
            self.adapter.set_sequence(self.table, self.snapshot.sequence)
        for index in self.snapshot.indexes:
            if self.drop in index['columns']:
                logger.info(f"[{self.ddl.engine_name}] index {index['name']}: dropped with column {self.drop}")
                continue
            self.adapter.execute(index['sql'])
        for dependent in self.snapshot.dependents:
            self.adapter.execute(dependent['sql'])
            if dependent['type'] == 'view':
                # Views are only resolved when read
                self.adapter.query(f"SELECT * FROM {dependent['name']} LIMIT 0")
            logger.debug(f"Rebuild {self.table}: recreated {dependent['type']} {dependent['name']}")

        self._advance(RebuildState.DONE)

    def _take_snapshot(self) -> TableSnapshot:
        table_sql = self.adapter.get_table_sql(self.table) or ''
        columns = self.adapter.list_columns(self.table)
        primary_key = [c['name'] for c in sorted(columns, key=lambda c: c['primary_key']) if c['primary_key']]
        autoincrement = 'AUTOINCREMENT' in table_sql.upper()
        return TableSnapshot(
            table=self.table,
            columns=columns,
            autoincrement=autoincrement,
            unique_constraints=self.adapter.list_unique_constraints(self.table),
            foreign_keys=self.adapter.list_foreign_keys(self.table),
            indexes=self.adapter.list_indexes(self.table),
            row_count=int(self.adapter.query_value(f"SELECT COUNT(*) AS n FROM {self.table}") or 0),
            primary_key=primary_key,
            sequence=self.adapter.get_sequence(self.table) if autoincrement else None,
            dependents=self.adapter.list_dependents(self.table),
        )

    @staticmethod
    def _default_sql(default: str) -> str:
        if _LITERAL_DEFAULT.match(default.strip()) or default.strip().startswith('('):
            return default
        return f"({default})"

    def _shadow_sql(self) -> str:
        renderer = self.ddl.renderer
        snapshot = self.snapshot
        inline_pk = (
            len(snapshot.primary_key) == 1
            and snapshot.primary_key[0] != self.drop
            and any(c['name'] == snapshot.primary_key[0] and (c['type'] or '').upper() == 'INTEGER'
                    for c in snapshot.columns)
        )

        lines = []
        for column in snapshot.columns:
            if column['name'] == self.drop:
                continue
            parts = [column['name']]
            if column['type']:
                parts.append(column['type'])
            if inline_pk and column['name'] == snapshot.primary_key[0]:
                parts.append('PRIMARY KEY AUTOINCREMENT' if snapshot.autoincrement else 'PRIMARY KEY')
            if not column['nullable']:
                parts.append('NOT NULL')
            if column['default'] is not None:
                parts.append(f"DEFAULT {self._default_sql(str(column['default']))}")
            lines.append(' '.join(parts))

        if self.add is not None:
            lines.append(renderer.column_sql(self.add))

        remaining_pk = [name for name in snapshot.primary_key if name != self.drop]
        if remaining_pk and not inline_pk:
            lines.append(f"PRIMARY KEY ({', '.join(remaining_pk)})")
        for columns in snapshot.unique_constraints:
            if self.drop not in columns:
                lines.append(f"UNIQUE ({', '.join(columns)})")
        for fk in snapshot.foreign_keys:
            if self.drop in fk['columns']:
                continue
            lines.append(renderer.foreign_key_sql(self.table, fk['columns'], fk['ref_table'],
                                                  fk['ref_columns'], fk['on_delete']))
        if self.add is not None and self.add.references is not None:
            ref_table, ref_column = self.add.reference_target
            lines.append(renderer.foreign_key_sql(self.table, [self.add.name], ref_table, [ref_column],
                                                  self.add.on_delete))

        body = ',\n    '.join(lines)
        return f"CREATE TABLE {self.shadow} (\n    {body}\n)"

    def _copy_sql(self) -> str:
        kept = [c['name'] for c in self.snapshot.columns if c['name'] != self.drop]
        targets = list(kept)
        sources = list(kept)
        if self.add is not None and self.backfill is not None:
            targets.append(self.add.name)
            sources.append(self.ddl.renderer.literal(self.backfill))
        return (f"INSERT INTO {self.shadow} ({', '.join(targets)}) "
                f"SELECT {', '.join(sources)} FROM {self.table}")


class SafeDDL:
    """Guarded schema operations over one connection adapter"""

    def __init__(self, adapter: DatabaseAdapter):
        self.adapter = adapter
        self.dialect = adapter.dialect
        self.renderer = SQLRenderer(self.dialect)

    @property
    def engine_name(self) -> str:
        return self.dialect.engine.value

    @property
    def placeholder(self) -> str:
        return self.dialect.placeholder

    def _trace(self, kind: str, name: str, outcome: str) -> None:
        logger.info(f"[{self.engine_name}] {kind} {name}: {outcome}")

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def create_table_if_absent(self, name: str, build: Callable[[TableBuilder], Any]) -> CreateResult:
        """Create a table unless it already exists"""
        validate_identifier(name)
        if self.adapter.has_table(name):
            self._trace('table', name, 'already present, skipped')
            return CreateResult(created=False)

        builder = TableBuilder(name, self.dialect)
        build(builder)
        self.adapter.execute(builder.to_sql())
        self._trace('table', name, 'created')
        return CreateResult(created=True)

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def add_column_if_absent(self, table: str, column: Column, backfill: Any = None) -> AddColumnResult:
        """
        Add a column unless it already exists.

        Args:
            table: Table to alter
            column: Column definition
            backfill: Value or Raw expression written into existing rows

        Returns:
            AddColumnResult telling whether the column was added and whether the
            table had to be rebuilt to do it
        """
        validate_identifier(table)
        if not self.adapter.has_table(table):
            raise QueryError(f"Cannot add column {column.name}: table {table} does not exist")
        if self.adapter.has_column(table, column.name):
            self._trace('column', f"{table}.{column.name}", 'already present, skipped')
            return AddColumnResult(added=False)

        blocking = column.modifiers() & self.dialect.add_column_rebuild_modifiers
        if blocking:
            TableRebuild(self, table, add=column, backfill=backfill).run()
            self._trace('column', f"{table}.{column.name}",
                        f"added (table rebuilt for {', '.join(sorted(blocking))})")
            return AddColumnResult(added=True, rebuilt=True)

        inline_references = self.dialect.requires_foreign_key_pragma
        statement = f"ALTER TABLE {table} ADD COLUMN {self.renderer.column_sql(column, inline_references)}"
        if column.references is not None and not inline_references:
            ref_table, ref_column = column.reference_target
            fk_sql = self.renderer.foreign_key_sql(table, [column.name], ref_table, [ref_column], column.on_delete)
            statement += f", ADD {fk_sql}"
        self.adapter.execute(statement)

        if backfill is not None:
            self.adapter.execute(
                f"UPDATE {table} SET {column.name} = {self.renderer.literal(backfill)} "
                f"WHERE {column.name} IS NULL"
            )
        self._trace('column', f"{table}.{column.name}", 'added')
        return AddColumnResult(added=True)

    def drop_column_if_present(self, table: str, column: str) -> bool:
        """Drop a column if it exists, preserving the table's other data"""
        validate_identifier(table)
        validate_identifier(column)
        if not self.adapter.has_table(table) or not self.adapter.has_column(table, column):
            self._trace('column', f"{table}.{column}", 'absent, skipped')
            return False

        if self.dialect.drop_column_requires_rebuild:
            TableRebuild(self, table, drop=column).run()
            self._trace('column', f"{table}.{column}", 'dropped (table rebuilt)')
            return True

        if self.dialect.drop_column_keeps_foreign_keys:
            for fk in self.adapter.list_foreign_keys(table):
                if column in fk['columns']:
                    self.adapter.execute(f"ALTER TABLE {table} {self.dialect.drop_foreign_key_clause} {fk['name']}")
        self.adapter.execute(f"ALTER TABLE {table} DROP COLUMN {column}")
        self._trace('column', f"{table}.{column}", 'dropped')
        return True

    def rename_column_if_present(self, table: str, old_name: str, new_name: str) -> bool:
        """Rename a column in place; a no-op once the rename has happened"""
        validate_identifier(table)
        validate_identifier(old_name)
        validate_identifier(new_name)
        has_old = self.adapter.has_column(table, old_name)
        has_new = self.adapter.has_column(table, new_name)
        if not has_old:
            outcome = 'already renamed, skipped' if has_new else 'absent, skipped'
            self._trace('column', f"{table}.{old_name}", outcome)
            return False
        if has_new:
            raise QueryError(f"Cannot rename {table}.{old_name} to {new_name}: both columns exist")

        self.adapter.execute(f"ALTER TABLE {table} RENAME COLUMN {old_name} TO {new_name}")
        self._trace('column', f"{table}.{old_name}", f"renamed to {new_name}")
        return True

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    def create_index_if_absent(self, table: str, columns: Union[str, Sequence[str]],
                               index_name: Optional[str] = None, unique: bool = False,
                               descending: bool = False) -> CreateResult:
        """Create an index unless one with the same name exists; column order is kept as given"""
        validate_identifier(table)
        if isinstance(columns, str):
            columns = [columns]
        columns = [validate_identifier(c) for c in columns]
        name = validate_identifier(index_name or f"idx_{table}_{'_'.join(columns)}")

        if self.adapter.has_index(name):
            self._trace('index', name, 'already present, skipped')
            return CreateResult(created=False)

        column_list = ', '.join(f"{c} DESC" if descending else c for c in columns)
        self.adapter.execute(f"CREATE {'UNIQUE ' if unique else ''}INDEX {name} ON {table} ({column_list})")
        self._trace('index', name, 'created')
        return CreateResult(created=True)

    # ------------------------------------------------------------------
    # Drops
    # ------------------------------------------------------------------

    def drop_if_exists(self, kind: str, name: str, table: Optional[str] = None) -> bool:
        """Drop a table, index or view; absent objects are skipped"""
        kind = kind.lower()
        if kind not in OBJECT_KINDS:
            raise ValueError(f"Unsupported object kind: {kind}")
        validate_identifier(name)

        if kind == 'table':
            exists = self.adapter.has_table(name)
        elif kind == 'view':
            exists = self.adapter.has_view(name)
        else:
            exists = self.adapter.has_index(name)
        if not exists:
            self._trace(kind, name, 'absent, skipped')
            return False

        if kind == 'index' and not self.dialect.supports_drop_index_if_exists:
            owner = table or self.adapter.index_table(name)
            self.adapter.execute(f"DROP INDEX {name} ON {validate_identifier(owner)}")
        else:
            self.adapter.execute(f"DROP {kind.upper()} IF EXISTS {name}")
        self._trace(kind, name, 'dropped')
        return True

    # ------------------------------------------------------------------
    # Seed data
    # ------------------------------------------------------------------

    def insert_if_absent(self, table: str, key: Dict[str, Any], values: Optional[Dict[str, Any]] = None) -> bool:
        """Insert a row unless one with the same natural key exists"""
        validate_identifier(table)
        if not key:
            raise ValueError("insert_if_absent needs at least one key column")
        ph = self.placeholder
        where = ' AND '.join(
            f"{validate_identifier(column)} IS NULL" if value is None
            else f"{validate_identifier(column)} = {ph}"
            for column, value in key.items()
        )
        params = tuple(value for value in key.values() if value is not None)
        if self.adapter.query(f"SELECT 1 FROM {table} WHERE {where}", params):
            return False

        row = {**key, **(values or {})}
        columns = ', '.join(validate_identifier(column) for column in row)
        placeholders = ', '.join(ph for _ in row)
        self.adapter.execute(f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", tuple(row.values()))
        return True

    def seed_rows(self, table: str, key_columns: Sequence[str], rows: Sequence[Dict[str, Any]]) -> int:
        """Insert each row keyed by its natural key; returns how many were inserted"""
        inserted = 0
        for row in rows:
            key = {column: row[column] for column in key_columns}
            values = {column: value for column, value in row.items() if column not in key}
            if self.insert_if_absent(table, key, values):
                inserted += 1
        self._trace('seed', table, f"{inserted} inserted, {len(rows) - inserted} already present")
        return inserted

    def delete_rows(self, table: str, key_column: str, values: Sequence[Any]) -> int:
        """Delete seeded rows by natural key (used by seed rollbacks)"""
        validate_identifier(table)
        validate_identifier(key_column)
        if not values or not self.adapter.has_table(table):
            return 0
        placeholders = ', '.join(self.placeholder for _ in values)
        deleted = self.adapter.execute(f"DELETE FROM {table} WHERE {key_column} IN ({placeholders})", tuple(values))
        self._trace('seed', table, f"{deleted} removed")
        return deleted
