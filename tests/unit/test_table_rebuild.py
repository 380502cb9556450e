#!/usr/bin/env python3
"""
SQLite shadow-table rebuild tests
"""

import pytest

from core.errors import QueryError, TransactionError
from core.safe_ddl import Column, RebuildState, SafeDDL, TableRebuild


@pytest.fixture
def store(sqlite_adapter):
    """Projects, tasks and a table referencing tasks, with a few rows"""
    db = sqlite_adapter
    db.execute("CREATE TABLE m_projects (id INTEGER PRIMARY KEY AUTOINCREMENT, name VARCHAR(64) NOT NULL UNIQUE)")
    db.execute(
        "CREATE TABLE t_tasks ("
        "id INTEGER PRIMARY KEY AUTOINCREMENT, "
        "title VARCHAR(200) NOT NULL, "
        "status VARCHAR(20) NOT NULL DEFAULT 'todo', "
        "code VARCHAR(20) UNIQUE, "
        "created_ts INTEGER NOT NULL DEFAULT (strftime('%s', 'now')))"
    )
    db.execute("CREATE INDEX idx_tasks_status ON t_tasks (status)")
    db.execute("CREATE INDEX idx_tasks_code_status ON t_tasks (code, status)")
    db.execute(
        "CREATE TABLE t_task_notes (task_id INTEGER NOT NULL, body TEXT, "
        "FOREIGN KEY (task_id) REFERENCES t_tasks(id) ON DELETE CASCADE)"
    )
    db.execute("INSERT INTO m_projects (name) VALUES ('default')")
    for title, code in (('one', 'A'), ('two', 'B'), ('three', None)):
        db.execute("INSERT INTO t_tasks (title, code) VALUES (?, ?)", (title, code))
    db.execute("DELETE FROM t_tasks WHERE title = 'three'")
    db.execute("INSERT INTO t_tasks (title, code) VALUES ('four', 'D')")
    db.execute("INSERT INTO t_task_notes (task_id, body) VALUES (1, 'note')")
    return db


def project_column(default=1):
    return Column('project_id', 'integer', nullable=False, default=default,
                  references='m_projects.id', on_delete='CASCADE')


class TestAddColumnRebuild:

    def test_rows_are_preserved_and_defaulted(self, store):
        before = store.query("SELECT id, title, status, code, created_ts FROM t_tasks ORDER BY id")
        result = SafeDDL(store).add_column_if_absent('t_tasks', project_column())
        assert result.rebuilt

        after = store.query("SELECT id, title, status, code, created_ts, project_id FROM t_tasks ORDER BY id")
        assert [{k: v for k, v in row.items() if k != 'project_id'} for row in after] == before
        assert {row['project_id'] for row in after} == {1}

    def test_shape_is_kept(self, store):
        SafeDDL(store).add_column_if_absent('t_tasks', project_column())

        assert sorted(i['name'] for i in store.list_indexes('t_tasks')) == ['idx_tasks_code_status', 'idx_tasks_status']
        assert store.list_unique_constraints('t_tasks') == [['code']]
        assert 'AUTOINCREMENT' in store.get_table_sql('t_tasks').upper()
        fk = store.list_foreign_keys('t_tasks')[0]
        assert (fk['ref_table'], fk['columns'], fk['on_delete']) == ('m_projects', ['project_id'], 'CASCADE')
        columns = {c['name']: c for c in store.list_columns('t_tasks')}
        assert columns['status']['default'] == "'todo'"
        assert columns['title']['nullable'] is False

    def test_ids_keep_growing(self, store):
        SafeDDL(store).add_column_if_absent('t_tasks', project_column())
        store.execute("INSERT INTO t_tasks (title) VALUES ('five')")
        assert store.query_value("SELECT id FROM t_tasks WHERE title = 'five'") == 5

    def test_ids_of_deleted_rows_are_not_reused(self, store):
        store.execute("DELETE FROM t_tasks WHERE id = 4")
        SafeDDL(store).add_column_if_absent('t_tasks', project_column())
        store.execute("INSERT INTO t_tasks (title) VALUES ('five')")
        assert store.query_value("SELECT id FROM t_tasks WHERE title = 'five'") == 5

    def test_counter_survives_rebuild_of_empty_table(self, store):
        store.execute("DELETE FROM t_task_notes")
        store.execute("DELETE FROM t_tasks")
        SafeDDL(store).add_column_if_absent('t_tasks', project_column())
        assert store.get_sequence('t_tasks') == 4
        store.execute("INSERT INTO t_tasks (title) VALUES ('five')")
        assert store.query_value("SELECT id FROM t_tasks") == 5

    def test_defaults_still_apply(self, store):
        SafeDDL(store).add_column_if_absent('t_tasks', project_column())
        store.execute("INSERT INTO t_tasks (title) VALUES ('five')")
        row = store.query("SELECT status, created_ts, project_id FROM t_tasks WHERE title = 'five'")[0]
        assert row['status'] == 'todo'
        assert row['created_ts'] > 0
        assert row['project_id'] == 1

    def test_referencing_tables_still_point_at_the_table(self, store):
        SafeDDL(store).add_column_if_absent('t_tasks', project_column())
        assert store.list_foreign_keys('t_task_notes')[0]['ref_table'] == 't_tasks'
        store.execute("DELETE FROM t_tasks WHERE id = 1")
        assert store.query_value("SELECT COUNT(*) FROM t_task_notes") == 0

    def test_no_shadow_left_and_enforcement_restored(self, store):
        SafeDDL(store).add_column_if_absent('t_tasks', project_column())
        assert not store.has_table('t_tasks__shadow')
        assert store.foreign_keys_enforced()
        assert not store.in_transaction


class TestRebuildFailure:

    def assert_untouched(self, store):
        assert not store.has_column('t_tasks', 'project_id')
        assert store.query_value("SELECT COUNT(*) FROM t_tasks") == 3
        assert not store.has_table('t_tasks__shadow')
        assert store.foreign_keys_enforced()
        assert sorted(i['name'] for i in store.list_indexes('t_tasks')) == ['idx_tasks_code_status', 'idx_tasks_status']

    def test_constraint_failure_during_copy_rolls_back(self, store):
        with pytest.raises(QueryError):
            SafeDDL(store).add_column_if_absent('t_tasks', Column('priority', 'integer', nullable=False))
        self.assert_untouched(store)

    def test_foreign_key_violation_rolls_back(self, store):
        with pytest.raises(QueryError) as excinfo:
            SafeDDL(store).add_column_if_absent('t_tasks', project_column(default=99))
        assert 'Foreign key check failed' in str(excinfo.value)
        self.assert_untouched(store)

    def test_refused_inside_a_transaction_with_enforcement(self, store):
        rebuild = TableRebuild(SafeDDL(store), 't_tasks', add=project_column())
        with store.transaction():
            with pytest.raises(TransactionError):
                rebuild.run()
        assert rebuild.state is RebuildState.SNAPSHOT


class TestDropColumnRebuild:

    def test_drop_indexed_unique_column(self, store):
        assert SafeDDL(store).drop_column_if_present('t_tasks', 'code')
        assert not store.has_column('t_tasks', 'code')
        assert [i['name'] for i in store.list_indexes('t_tasks')] == ['idx_tasks_status']
        assert store.list_unique_constraints('t_tasks') == []
        assert [r['title'] for r in store.query("SELECT title FROM t_tasks ORDER BY id")] == ['one', 'two', 'four']

    def test_run_inside_caller_transaction_with_enforcement_off(self, store):
        with store.foreign_keys_disabled():
            with store.transaction():
                snapshot = TableRebuild(SafeDDL(store), 't_tasks', drop='status').run()
        assert snapshot.row_count == 3
        assert snapshot.autoincrement
        assert snapshot.primary_key == ['id']
        assert not store.has_column('t_tasks', 'status')

    def test_state_reaches_done(self, store):
        rebuild = TableRebuild(SafeDDL(store), 't_tasks', drop='status')
        rebuild.run()
        assert rebuild.state is RebuildState.DONE


class TestDependentObjects:

    @pytest.fixture
    def views(self, store):
        store.execute("CREATE VIEW v_task_titles AS SELECT id, title FROM t_tasks")
        store.execute("CREATE VIEW v_first_task AS SELECT title FROM v_task_titles WHERE id = 1")
        return store

    @pytest.fixture
    def trigger(self, store):
        store.execute(
            "CREATE TRIGGER trg_task_created AFTER INSERT ON t_tasks BEGIN "
            "INSERT INTO t_task_notes (task_id, body) VALUES (NEW.id, 'created'); END"
        )
        return store

    def test_views_survive_add_column(self, views):
        SafeDDL(views).add_column_if_absent('t_tasks', project_column())
        assert views.has_view('v_task_titles')
        assert views.query_value("SELECT COUNT(*) FROM v_task_titles") == 3
        assert views.query_value("SELECT title FROM v_first_task") == 'one'

    def test_views_survive_drop_column(self, views):
        assert SafeDDL(views).drop_column_if_present('t_tasks', 'code')
        assert not views.has_column('t_tasks', 'code')
        assert views.query_value("SELECT title FROM v_first_task") == 'one'

    def test_view_on_dropped_column_rolls_back(self, views):
        views.execute("CREATE VIEW v_task_codes AS SELECT id, code FROM t_tasks")
        with pytest.raises(QueryError):
            SafeDDL(views).drop_column_if_present('t_tasks', 'code')
        assert views.has_column('t_tasks', 'code')
        assert views.has_view('v_task_codes')
        assert views.query_value("SELECT COUNT(*) FROM v_task_titles") == 3

    def test_trigger_is_recreated(self, trigger):
        SafeDDL(trigger).add_column_if_absent('t_tasks', project_column())
        trigger.execute("INSERT INTO t_tasks (title) VALUES ('five')")
        assert trigger.query_value("SELECT body FROM t_task_notes WHERE task_id = 5") == 'created'

    def test_snapshot_lists_dependents_in_creation_order(self, views, trigger):
        names = [d['name'] for d in views.list_dependents('t_tasks')]
        assert names == ['v_task_titles', 'v_first_task', 'trg_task_created']
