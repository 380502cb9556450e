"""
Transaction tables: decisions, messages, file changes, constraints, activity
log and tasks. Timestamps are integer epoch seconds.
"""

from core.safe_ddl import SafeDDL


def _decisions(t):
    t.integer('key_id', primary_key=True, references='m_context_keys.id')
    t.text('value', nullable=False)
    t.integer('agent_id', references='m_agents.id')
    t.integer('layer_id', references='m_layers.id')
    t.string('version', 20, default='1.0.0')
    t.integer('status', default=1)  # 1=active, 2=deprecated, 3=draft
    t.integer('ts', nullable=False)


def _decisions_numeric(t):
    t.integer('key_id', primary_key=True, references='m_context_keys.id')
    t.float('value', nullable=False)
    t.integer('agent_id', references='m_agents.id')
    t.integer('layer_id', references='m_layers.id')
    t.string('version', 20, default='1.0.0')
    t.integer('status', default=1)
    t.integer('ts', nullable=False)


def _decision_history(t):
    t.increments('id')
    t.integer('key_id', references='m_context_keys.id')
    t.string('version', 20, nullable=False)
    t.text('value', nullable=False)
    t.integer('agent_id', references='m_agents.id')
    t.integer('ts', nullable=False)


def _decision_tags(t):
    t.integer('decision_key_id', nullable=False, references='m_context_keys.id')
    t.integer('tag_id', nullable=False, references='m_tags.id')
    t.primary(['decision_key_id', 'tag_id'])


def _decision_scopes(t):
    t.integer('decision_key_id', nullable=False, references='m_context_keys.id')
    t.integer('scope_id', nullable=False, references='m_scopes.id')
    t.primary(['decision_key_id', 'scope_id'])


def _decision_context(t):
    t.increments('id')
    t.integer('decision_key_id', references='m_context_keys.id')
    t.text('rationale')
    t.text('alternatives_considered')  # JSON array
    t.text('tradeoffs')  # JSON object
    t.integer('decision_date')
    t.integer('agent_id', references='m_agents.id')
    t.integer('ts', nullable=False)


def _agent_messages(t):
    t.increments('id')
    t.integer('from_agent_id', references='m_agents.id')
    t.integer('to_agent_id', references='m_agents.id')
    t.integer('msg_type', nullable=False)  # 1=decision, 2=warning, 3=request, 4=info
    t.integer('priority', default=2)
    t.text('message', nullable=False)
    t.text('payload')
    t.boolean('is_read', default=False)
    t.integer('ts', nullable=False)


def _file_changes(t):
    t.increments('id')
    t.integer('file_id', references='m_files.id')
    t.integer('change_type', nullable=False)  # 1=created, 2=modified, 3=deleted
    t.integer('agent_id', references='m_agents.id')
    t.integer('layer_id', references='m_layers.id')
    t.text('description')
    t.integer('ts', nullable=False)


def _constraints(t):
    t.increments('id')
    t.integer('category_id', references='m_constraint_categories.id')
    t.integer('layer_id', references='m_layers.id')
    t.text('constraint_text', nullable=False)
    t.integer('priority', default=2)  # 1=low .. 4=critical
    t.boolean('active', default=True)
    t.integer('agent_id', references='m_agents.id')
    t.integer('ts', nullable=False)


def _constraint_tags(t):
    t.integer('constraint_id', nullable=False, references='t_constraints.id')
    t.integer('tag_id', nullable=False, references='m_tags.id')
    t.primary(['constraint_id', 'tag_id'])


def _activity_log(t):
    t.increments('id')
    t.integer('agent_id', references='m_agents.id')
    t.string('action_type', 50, nullable=False)
    t.string('target', 500)
    t.integer('layer_id', references='m_layers.id')
    t.text('details')
    t.integer('ts', nullable=False)


def _decision_templates(t):
    t.increments('id')
    t.string('name', 200, nullable=False, unique=True)
    t.text('description')
    t.text('defaults')
    t.text('required_fields')


def _tasks(t):
    t.increments('id')
    t.string('title', 500, nullable=False)
    t.integer('status_id', default=1, references='m_task_statuses.id')
    t.integer('priority', default=2)
    t.integer('assigned_agent_id', references='m_agents.id')
    t.integer('created_by_agent_id', references='m_agents.id')
    t.integer('layer_id', references='m_layers.id')
    t.integer('created_ts', nullable=False)
    t.integer('updated_ts', nullable=False)
    t.integer('completed_ts')


def _task_details(t):
    t.integer('task_id', primary_key=True, references='t_tasks.id', on_delete='CASCADE')
    t.text('description')
    t.text('acceptance_criteria')
    t.text('acceptance_criteria_json')
    t.text('notes')


def _task_tags(t):
    t.integer('task_id', nullable=False, references='t_tasks.id', on_delete='CASCADE')
    t.integer('tag_id', nullable=False, references='m_tags.id')
    t.primary(['task_id', 'tag_id'])


def _task_decision_links(t):
    t.integer('task_id', nullable=False, references='t_tasks.id', on_delete='CASCADE')
    t.integer('decision_key_id', nullable=False, references='m_context_keys.id')
    t.string('link_type', 50, default='implements')
    t.primary(['task_id', 'decision_key_id'])


def _task_constraint_links(t):
    t.integer('task_id', nullable=False, references='t_tasks.id', on_delete='CASCADE')
    t.integer('constraint_id', nullable=False, references='t_constraints.id')
    t.primary(['task_id', 'constraint_id'])


def _task_file_links(t):
    t.integer('task_id', nullable=False, references='t_tasks.id', on_delete='CASCADE')
    t.integer('file_id', nullable=False, references='m_files.id')
    t.primary(['task_id', 'file_id'])


def _task_dependencies(t):
    t.integer('task_id', nullable=False, references='t_tasks.id', on_delete='CASCADE')
    t.integer('depends_on_task_id', nullable=False, references='t_tasks.id', on_delete='CASCADE')
    t.integer('created_ts', nullable=False)
    t.primary(['task_id', 'depends_on_task_id'])


TABLES = [
    ('t_decisions', _decisions),
    ('t_decisions_numeric', _decisions_numeric),
    ('t_decision_history', _decision_history),
    ('t_decision_tags', _decision_tags),
    ('t_decision_scopes', _decision_scopes),
    ('t_decision_context', _decision_context),
    ('t_agent_messages', _agent_messages),
    ('t_file_changes', _file_changes),
    ('t_constraints', _constraints),
    ('t_constraint_tags', _constraint_tags),
    ('t_activity_log', _activity_log),
    ('t_decision_templates', _decision_templates),
    ('t_tasks', _tasks),
    ('t_task_details', _task_details),
    ('t_task_tags', _task_tags),
    ('t_task_decision_links', _task_decision_links),
    ('t_task_constraint_links', _task_constraint_links),
    ('t_task_file_links', _task_file_links),
    ('t_task_dependencies', _task_dependencies),
]


def up(adapter):
    ddl = SafeDDL(adapter)
    for name, build in TABLES:
        ddl.create_table_if_absent(name, build)


def down(adapter):
    ddl = SafeDDL(adapter)
    for name, _ in reversed(TABLES):
        ddl.drop_if_exists('table', name)
