"""Seed lookup rows, keyed by natural key so re-runs insert nothing."""

from core.safe_ddl import SafeDDL

LAYERS = [
    'presentation',
    'business',
    'data',
    'infrastructure',
    'cross-cutting',
    'documentation',
    'planning',
    'coordination',
    'review',
]

TASK_STATUSES = ['todo', 'in_progress', 'waiting_review', 'blocked', 'done', 'archived']

CONSTRAINT_CATEGORIES = ['architecture', 'security', 'performance', 'compatibility', 'maintainability']

TAGS = [
    'authentication',
    'authorization',
    'validation',
    'error-handling',
    'logging',
    'performance',
    'security',
    'testing',
]

CONFIG = {
    'autodelete_ignore_weekend': '1',
    'autodelete_message_hours': '24',
    'autodelete_file_history_days': '7',
}


def up(adapter):
    ddl = SafeDDL(adapter)
    ddl.seed_rows('m_layers', ['name'], [{'name': name} for name in LAYERS])
    ddl.seed_rows('m_task_statuses', ['name'], [{'name': name} for name in TASK_STATUSES])
    ddl.seed_rows('m_constraint_categories', ['name'], [{'name': name} for name in CONSTRAINT_CATEGORIES])
    ddl.seed_rows('m_tags', ['name'], [{'name': name} for name in TAGS])
    ddl.seed_rows('m_config', ['config_key'],
                  [{'config_key': key, 'config_value': value} for key, value in CONFIG.items()])


def down(adapter):
    ddl = SafeDDL(adapter)
    ddl.delete_rows('m_config', 'config_key', list(CONFIG))
    ddl.delete_rows('m_tags', 'name', TAGS)
    ddl.delete_rows('m_constraint_categories', 'name', CONSTRAINT_CATEGORIES)
    ddl.delete_rows('m_task_statuses', 'name', TASK_STATUSES)
    ddl.delete_rows('m_layers', 'name', LAYERS)
