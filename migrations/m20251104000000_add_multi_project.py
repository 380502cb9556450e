"""
Multi-project support.

Creates m_projects with the default project (id 1) and adds a cascading
project_id to every transaction table. Existing rows land in the default
project. On SQLite each table is rebuilt, since a foreign key with a
non-null default cannot be added in place.
"""

from core.errors import QueryError
from core.safe_ddl import Column, SafeDDL

DEFAULT_PROJECT_ID = 1
DEFAULT_PROJECT = {
    'name': 'default',
    'display_name': 'Default Project',
    'detection_source': 'migration',
}

PROJECT_TABLES = [
    't_decisions',
    't_decisions_numeric',
    't_decision_history',
    't_decision_tags',
    't_decision_scopes',
    't_decision_context',
    't_file_changes',
    't_constraints',
    't_tasks',
    't_task_details',
    't_task_tags',
    't_task_decision_links',
    't_task_file_links',
    't_task_dependencies',
    't_activity_log',
]

# (table, timestamp column, index name)
PROJECT_INDEXES = [
    ('t_decisions', 'ts', 'idx_decisions_project_ts'),
    ('t_decisions_numeric', 'ts', 'idx_decisions_numeric_project_ts'),
    ('t_decision_history', 'ts', 'idx_decision_history_project_ts'),
    ('t_file_changes', 'ts', 'idx_file_changes_project_ts'),
    ('t_constraints', 'ts', 'idx_constraints_project_ts'),
    ('t_activity_log', 'ts', 'idx_activity_log_project_ts'),
    ('t_tasks', 'updated_ts', 'idx_tasks_project_updated_ts'),
]


def _projects(t):
    t.increments('id')
    t.string('name', 64, nullable=False, unique=True)
    t.string('display_name', 128)
    t.string('detection_source', 20, nullable=False)  # cli | config | git | metadata | directory | migration
    t.string('project_root_path', 512)
    t.epoch('created_ts')
    t.epoch('last_active_ts')
    t.text('metadata')


def project_column() -> Column:
    return Column('project_id', 'integer', nullable=False, default=DEFAULT_PROJECT_ID,
                  references='m_projects.id', on_delete='CASCADE')


def _ensure_default_project(adapter, ddl):
    ph = adapter.dialect.placeholder
    if adapter.query(f"SELECT 1 FROM m_projects WHERE id = {ph}", (DEFAULT_PROJECT_ID,)):
        return
    ddl.insert_if_absent('m_projects', {'name': DEFAULT_PROJECT['name']},
                         {k: v for k, v in DEFAULT_PROJECT.items() if k != 'name'})
    if not adapter.query(f"SELECT 1 FROM m_projects WHERE id = {ph}", (DEFAULT_PROJECT_ID,)):
        raise QueryError(f"Default project was not assigned id {DEFAULT_PROJECT_ID}; "
                         "m_projects must be empty or already hold that id")


def up(adapter):
    ddl = SafeDDL(adapter)
    ddl.create_table_if_absent('m_projects', _projects)
    _ensure_default_project(adapter, ddl)

    for table in PROJECT_TABLES:
        if adapter.has_table(table):
            ddl.add_column_if_absent(table, project_column())

    for table, ts_column, name in PROJECT_INDEXES:
        if adapter.has_table(table):
            ddl.create_index_if_absent(table, ['project_id', ts_column], name)


def down(adapter):
    ddl = SafeDDL(adapter)
    # Columns first: dropping project_id also drops or shrinks the indexes over it
    for table in reversed(PROJECT_TABLES):
        ddl.drop_column_if_present(table, 'project_id')
    for table, _, name in reversed(PROJECT_INDEXES):
        ddl.drop_if_exists('index', name, table=table)
    ddl.drop_if_exists('table', 'm_projects')
