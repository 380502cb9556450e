#!/usr/bin/env python3
"""
Migration runner tests with small synthetic units
"""

import logging

import pytest

from core.errors import MigrationFailedError
from core.migration import LEDGER_TABLE, Migration, MigrationRunner, MigrationState
from core.safe_ddl import Column, SafeDDL


def table_unit(version, table):
    def up(db):
        SafeDDL(db).create_table_if_absent(table, lambda t: (t.increments('id'), t.string('name')))

    def down(db):
        SafeDDL(db).drop_if_exists('table', table)

    return Migration(version, f"create_{table}", up, down)


def failing_unit(version, direction='up'):
    def body(db):
        SafeDDL(db).create_table_if_absent('t_partial', lambda t: t.integer('x'))
        raise RuntimeError("unit exploded")

    def noop(db):
        pass

    if direction == 'up':
        return Migration(version, 'explode', body, noop)
    return Migration(version, 'explode', lambda db: None, body)


@pytest.fixture
def units():
    return [table_unit(1, 't_one'), table_unit(2, 't_two'), table_unit(3, 't_three')]


def ledger_versions(db):
    return [row['version'] for row in db.query(f"SELECT version FROM {LEDGER_TABLE} ORDER BY version")]


class TestConstruction:

    def test_units_are_sorted_by_version(self, sqlite_adapter, units):
        runner = MigrationRunner(sqlite_adapter, reversed(units))
        assert [m.version for m in runner.migrations] == [1, 2, 3]

    def test_duplicate_versions_are_rejected(self, sqlite_adapter):
        with pytest.raises(ValueError):
            MigrationRunner(sqlite_adapter, [table_unit(1, 't_a'), table_unit(1, 't_b')])

    def test_default_units_come_from_the_package(self, sqlite_adapter):
        runner = MigrationRunner(sqlite_adapter)
        versions = [m.version for m in runner.migrations]
        assert versions == sorted(versions)
        assert versions[0] == 20251025020452
        assert runner.migrations[0].label == '20251025020452_create_master_tables'


class TestMigrateToLatest:

    def test_applies_in_order_and_records(self, sqlite_adapter, units):
        results = MigrationRunner(sqlite_adapter, units).migrate_to_latest()
        assert [r.version for r in results] == [1, 2, 3]
        assert all(r.state is MigrationState.APPLIED for r in results)
        assert ledger_versions(sqlite_adapter) == [1, 2, 3]
        assert sqlite_adapter.has_table('t_three')

    def test_second_run_is_a_no_op(self, sqlite_adapter, units, caplog):
        runner = MigrationRunner(sqlite_adapter, units)
        runner.migrate_to_latest()
        with caplog.at_level(logging.INFO, logger='core.migration'):
            assert runner.migrate_to_latest() == []
        assert "Schema is up to date" in caplog.text

    def test_ledger_row_shape(self, sqlite_adapter, units):
        MigrationRunner(sqlite_adapter, units[:1]).migrate_to_latest()
        row = sqlite_adapter.query(f"SELECT version, name, applied_at FROM {LEDGER_TABLE}")[0]
        assert row['version'] == 1
        assert row['name'] == 'create_t_one'
        assert row['applied_at'].endswith('+00:00')

    def test_registering_later_units_applies_only_those(self, sqlite_adapter, units):
        MigrationRunner(sqlite_adapter, units[:2]).migrate_to_latest()
        results = MigrationRunner(sqlite_adapter, units).migrate_to_latest()
        assert [r.version for r in results] == [3]

    def test_out_of_order_registration_runs_the_gap(self, sqlite_adapter, units):
        MigrationRunner(sqlite_adapter, [units[0], units[2]]).migrate_to_latest()
        results = MigrationRunner(sqlite_adapter, units).migrate_to_latest()
        assert [r.version for r in results] == [2]
        assert ledger_versions(sqlite_adapter) == [1, 2, 3]

    def test_failure_keeps_earlier_units_and_stops(self, sqlite_adapter, units):
        runner = MigrationRunner(sqlite_adapter, [units[0], failing_unit(2), units[2]])
        with pytest.raises(MigrationFailedError) as excinfo:
            runner.migrate_to_latest()

        assert excinfo.value.version == 2
        assert excinfo.value.name == 'explode'
        assert excinfo.value.direction == 'up'
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert ledger_versions(sqlite_adapter) == [1]
        assert sqlite_adapter.has_table('t_one')
        assert not sqlite_adapter.has_table('t_partial')
        assert not sqlite_adapter.has_table('t_three')
        assert not sqlite_adapter.in_transaction

    def test_failure_carries_a_failed_result(self, sqlite_adapter, units):
        with pytest.raises(MigrationFailedError) as excinfo:
            MigrationRunner(sqlite_adapter, [units[0], failing_unit(2)]).migrate_to_latest()
        result = excinfo.value.result
        assert result.state is MigrationState.FAILED
        assert (result.version, result.direction) == (2, 'up')
        assert result.error == 'unit exploded'
        assert result.to_dict()['state'] == 'failed'

    def test_failed_unit_is_retried_once_fixed(self, sqlite_adapter, units):
        with pytest.raises(MigrationFailedError):
            MigrationRunner(sqlite_adapter, [units[0], failing_unit(2)]).migrate_to_latest()
        results = MigrationRunner(sqlite_adapter, units).migrate_to_latest()
        assert [r.version for r in results] == [2, 3]

    def test_unit_may_rebuild_tables(self, sqlite_adapter):
        def add_flag(db):
            SafeDDL(db).add_column_if_absent('t_one', Column('flag', 'integer', nullable=False), backfill=0)

        def drop_flag(db):
            SafeDDL(db).drop_column_if_present('t_one', 'flag')

        units = [table_unit(1, 't_one'), Migration(2, 'add_flag', add_flag, drop_flag)]
        runner = MigrationRunner(sqlite_adapter, units)
        runner.migrate_to_latest()
        assert sqlite_adapter.has_column('t_one', 'flag')
        assert sqlite_adapter.foreign_keys_enforced()

        runner.rollback_last()
        assert not sqlite_adapter.has_column('t_one', 'flag')


class TestRollback:

    def test_rolls_back_newest_first(self, sqlite_adapter, units):
        runner = MigrationRunner(sqlite_adapter, units)
        runner.migrate_to_latest()
        results = runner.rollback_last(2)
        assert [r.version for r in results] == [3, 2]
        assert all(r.state is MigrationState.ROLLED_BACK for r in results)
        assert ledger_versions(sqlite_adapter) == [1]
        assert not sqlite_adapter.has_table('t_two')
        assert sqlite_adapter.has_table('t_one')

    def test_round_trip_restores_schema(self, sqlite_adapter, units):
        runner = MigrationRunner(sqlite_adapter, units)
        runner.ensure_ledger()
        before = sqlite_adapter.list_tables()
        runner.migrate_to_latest()
        runner.rollback_last(len(units))
        assert sqlite_adapter.list_tables() == before
        assert runner.migrate_to_latest() != []

    def test_more_than_applied_rolls_back_everything(self, sqlite_adapter, units):
        runner = MigrationRunner(sqlite_adapter, units)
        runner.migrate_to_latest()
        assert len(runner.rollback_last(10)) == 3
        assert runner.rollback_last() == []

    def test_count_must_be_positive(self, sqlite_adapter, units):
        with pytest.raises(ValueError):
            MigrationRunner(sqlite_adapter, units).rollback_last(0)

    def test_unknown_ledger_row_blocks_rollback(self, sqlite_adapter, units):
        MigrationRunner(sqlite_adapter, units).migrate_to_latest()
        runner = MigrationRunner(sqlite_adapter, units[:2])
        with pytest.raises(MigrationFailedError) as excinfo:
            runner.rollback_last(2)
        assert excinfo.value.version == 3
        assert ledger_versions(sqlite_adapter) == [1, 2, 3]
        assert sqlite_adapter.has_table('t_two')

    def test_failing_down_leaves_it_applied(self, sqlite_adapter, units):
        runner = MigrationRunner(sqlite_adapter, [units[0], failing_unit(2, direction='down')])
        runner.migrate_to_latest()
        with pytest.raises(MigrationFailedError) as excinfo:
            runner.rollback_last(2)
        assert excinfo.value.direction == 'down'
        assert ledger_versions(sqlite_adapter) == [1, 2]
        assert sqlite_adapter.has_table('t_one')


class TestStatus:

    def test_fresh_store(self, sqlite_adapter, units):
        status = MigrationRunner(sqlite_adapter, units).status()
        assert status['engine'] == 'sqlite'
        assert status['has_ledger'] is False
        assert status['pending_count'] == 3
        assert status['current_version'] is None

    def test_partially_applied_with_unknown_rows(self, sqlite_adapter, units):
        MigrationRunner(sqlite_adapter, units).migrate_to_latest()
        status = MigrationRunner(sqlite_adapter, units[:2] + [table_unit(4, 't_four')]).status()
        assert status['applied_count'] == 3
        assert status['pending'] == [{'version': 4, 'name': 'create_t_four'}]
        assert [row['version'] for row in status['unknown']] == [3]
        assert status['current_version'] == 3

    def test_unit_states(self, sqlite_adapter, units):
        MigrationRunner(sqlite_adapter, units[:2]).migrate_to_latest()
        status = MigrationRunner(sqlite_adapter, units).status()
        assert [(u['version'], u['state']) for u in status['units']] == [
            (1, 'applied'), (2, 'applied'), (3, 'pending'),
        ]
