"""Master (lookup) tables. Multi-project columns on files, tags and scopes are present from the start."""

from core.safe_ddl import SafeDDL


def _agents(t):
    t.increments('id')
    t.string('name', 100, nullable=False, unique=True)
    # Pooling flags, removed again by simplify_agent_system
    t.boolean('in_use', nullable=False, default=False)
    t.boolean('is_reusable', nullable=False, default=False)


def _files(t):
    t.increments('id')
    t.integer('project_id', nullable=False, default=1)
    t.string('path', 1000, nullable=False)
    t.unique(['project_id', 'path'])


def _context_keys(t):
    t.increments('id')
    t.string('key_name', 200, nullable=False, unique=True)


def _constraint_categories(t):
    t.increments('id')
    t.string('name', 100, nullable=False, unique=True)


def _layers(t):
    t.increments('id')
    t.string('name', 50, nullable=False, unique=True)


def _tags(t):
    t.increments('id')
    t.integer('project_id', nullable=False, default=1)
    t.string('name', 100, nullable=False)
    t.unique(['project_id', 'name'])


def _scopes(t):
    t.increments('id')
    t.integer('project_id', nullable=False, default=1)
    t.string('name', 200, nullable=False)
    t.unique(['project_id', 'name'])


def _config(t):
    t.string('config_key', 255, nullable=False, primary_key=True)
    t.text('config_value', nullable=False)


def _task_statuses(t):
    t.increments('id')
    t.string('name', 50, nullable=False, unique=True)


TABLES = [
    ('m_agents', _agents),
    ('m_files', _files),
    ('m_context_keys', _context_keys),
    ('m_constraint_categories', _constraint_categories),
    ('m_layers', _layers),
    ('m_tags', _tags),
    ('m_scopes', _scopes),
    ('m_config', _config),
    ('m_task_statuses', _task_statuses),
]


def up(adapter):
    ddl = SafeDDL(adapter)
    for name, build in TABLES:
        ddl.create_table_if_absent(name, build)


def down(adapter):
    ddl = SafeDDL(adapter)
    for name, _ in reversed(TABLES):
        ddl.drop_if_exists('table', name)
