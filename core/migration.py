"""
sqlew Migration Runner
======================

Applies versioned migration units to one connection adapter and records each
successful unit in the `schema_migrations` ledger.

Each unit's body and its ledger write share one transaction, so the ledger
never lists a unit whose body did not complete. On engines without
transactional DDL (MySQL) the data changes stay atomic but structural changes
commit as they run; the runner logs a warning instead of pretending otherwise.

Cross-process exclusion is not provided here. Acquire an engine-level lock
before calling migrate_to_latest() if several processes may migrate at once.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from core.database_adapter import DatabaseAdapter
from core.errors import MigrationFailedError
from core.safe_ddl import SafeDDL

logger = logging.getLogger(__name__)

LEDGER_TABLE = 'schema_migrations'

MigrationBody = Callable[[DatabaseAdapter], Any]


class MigrationState(Enum):
    """Lifecycle of one unit within a run"""
    PENDING = "pending"
    RUNNING = "running"
    APPLIED = "applied"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class Migration:
    """One versioned schema change with its inverse"""
    version: int
    name: str
    up: MigrationBody
    down: MigrationBody

    @property
    def label(self) -> str:
        return f"{self.version}_{self.name}"


@dataclass
class MigrationResult:
    """Outcome of running one unit in one direction"""
    version: int
    name: str
    direction: str
    state: MigrationState
    duration: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.version,
            'name': self.name,
            'direction': self.direction,
            'state': self.state.value,
            'duration': round(self.duration, 4),
            'error': self.error,
        }


class MigrationRunner:
    """Runs migration units against an open adapter"""

    def __init__(self, adapter: DatabaseAdapter, migrations: Optional[Iterable[Migration]] = None):
        self.adapter = adapter
        self.ddl = SafeDDL(adapter)
        if migrations is None:
            from migrations import load_migrations
            migrations = load_migrations()

        self.migrations: List[Migration] = []
        seen: Dict[int, Migration] = {}
        for migration in migrations:
            if migration.version in seen:
                raise ValueError(
                    f"Duplicate migration version {migration.version}: "
                    f"{seen[migration.version].name} and {migration.name}"
                )
            seen[migration.version] = migration
        self.migrations = sorted(seen.values(), key=lambda m: m.version)
        self._by_version = seen

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def ensure_ledger(self) -> None:
        """Create the ledger table if it does not exist"""
        self.ddl.create_table_if_absent(LEDGER_TABLE, lambda t: (
            t.bigint('version', primary_key=True),
            t.string('name', 255, nullable=False),
            t.string('applied_at', 32, nullable=False),
        ))

    def applied_migrations(self) -> List[Dict[str, Any]]:
        """Ledger rows in ascending version order"""
        if not self.adapter.has_table(LEDGER_TABLE):
            return []
        rows = self.adapter.query(
            f"SELECT version, name, applied_at FROM {LEDGER_TABLE} ORDER BY version"
        )
        return [
            {'version': int(row['version']), 'name': row['name'], 'applied_at': row['applied_at']}
            for row in rows
        ]

    def pending_migrations(self) -> List[Migration]:
        applied = {row['version'] for row in self.applied_migrations()}
        return [m for m in self.migrations if m.version not in applied]

    def _record(self, migration: Migration) -> None:
        ph = self.adapter.dialect.placeholder
        applied_at = datetime.now(timezone.utc).isoformat(timespec='seconds')
        self.adapter.execute(
            f"INSERT INTO {LEDGER_TABLE} (version, name, applied_at) VALUES ({ph}, {ph}, {ph})",
            (migration.version, migration.name, applied_at)
        )

    def _forget(self, migration: Migration) -> None:
        ph = self.adapter.dialect.placeholder
        self.adapter.execute(f"DELETE FROM {LEDGER_TABLE} WHERE version = {ph}", (migration.version,))

    # ------------------------------------------------------------------
    # Running units
    # ------------------------------------------------------------------

    def _run_unit(self, migration: Migration, direction: str) -> MigrationResult:
        body = migration.up if direction == 'up' else migration.down
        start_time = time.time()
        result = MigrationResult(migration.version, migration.name, direction, MigrationState.RUNNING)
        logger.info(f"Migration {migration.label}: running {direction}")

        try:
            with self.adapter.foreign_keys_disabled():
                with self.adapter.transaction():
                    body(self.adapter)
                    self.adapter.check_foreign_keys()
                    if direction == 'up':
                        self._record(migration)
                    else:
                        self._forget(migration)
        except Exception as e:
            result.state = MigrationState.FAILED
            result.duration = time.time() - start_time
            result.error = str(e)
            logger.error(f"Migration {migration.label} failed during {direction}: {e}")
            failure = MigrationFailedError(migration.version, migration.name, direction, str(e))
            failure.result = result
            raise failure from e

        result.state = MigrationState.APPLIED if direction == 'up' else MigrationState.ROLLED_BACK
        result.duration = time.time() - start_time
        logger.info(f"Migration {migration.label}: {result.state.value} in {result.duration:.3f}s")
        return result

    def _warn_if_not_atomic(self) -> None:
        if not self.adapter.dialect.transactional_ddl:
            logger.warning(
                f"{self.adapter.dialect.display_name} commits DDL implicitly; "
                "a failing unit may leave structural changes behind (guards make re-runs safe)"
            )

    def migrate_to_latest(self) -> List[MigrationResult]:
        """
        Apply every pending unit in ascending version order.

        Returns:
            Results for the units applied by this call (empty if up to date)

        Raises:
            MigrationFailedError: a unit failed; earlier units stay applied and
                neither it nor any later unit is recorded
        """
        self.ensure_ledger()
        pending = self.pending_migrations()
        if not pending:
            logger.info("Schema is up to date")
            return []

        logger.info(f"Applying {len(pending)} pending migration(s)")
        self._warn_if_not_atomic()
        results = []
        for migration in pending:
            results.append(self._run_unit(migration, 'up'))
        logger.info(f"Applied {len(results)} migration(s)")
        return results

    def rollback_last(self, n: int = 1) -> List[MigrationResult]:
        """
        Roll back the n most recently applied units, newest first.

        Raises:
            ValueError: n is less than 1
            MigrationFailedError: a unit's down failed (older units untouched),
                or a ledger row has no matching unit (nothing is rolled back)
        """
        if n < 1:
            raise ValueError(f"rollback count must be at least 1, got {n}")

        self.ensure_ledger()
        targets = list(reversed(self.applied_migrations()))[:n]
        if not targets:
            logger.info("Nothing to roll back")
            return []

        for row in targets:
            if row['version'] not in self._by_version:
                raise MigrationFailedError(row['version'], row['name'], 'down',
                                           'no migration unit is registered for this ledger row')

        self._warn_if_not_atomic()
        results = []
        for row in targets:
            results.append(self._run_unit(self._by_version[row['version']], 'down'))
        logger.info(f"Rolled back {len(results)} migration(s)")
        return results

    def status(self) -> Dict[str, Any]:
        """Applied and pending units, plus ledger rows with no matching unit"""
        applied = self.applied_migrations()
        applied_versions = {row['version'] for row in applied}
        pending = [m for m in self.migrations if m.version not in applied_versions]

        return {
            'engine': self.adapter.engine.value,
            'target': self.adapter.describe_target(),
            'has_ledger': self.adapter.has_table(LEDGER_TABLE),
            'applied_count': len(applied),
            'pending_count': len(pending),
            'applied': applied,
            'pending': [{'version': m.version, 'name': m.name} for m in pending],
            'units': [
                {
                    'version': m.version,
                    'name': m.name,
                    'state': (MigrationState.APPLIED if m.version in applied_versions
                              else MigrationState.PENDING).value,
                }
                for m in self.migrations
            ],
            'unknown': [row for row in applied if row['version'] not in self._by_version],
            'current_version': applied[-1]['version'] if applied else None,
        }
