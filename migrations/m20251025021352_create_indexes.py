"""
Lookup indexes for the transaction tables.

Foreign-key columns are not indexed here: MySQL already keeps an index for
each foreign key and would adopt a matching explicit one, after which the
explicit index could no longer be dropped.
"""

from core.safe_ddl import SafeDDL

# (table, columns, index name, descending)
INDEXES = [
    ('t_decisions', ['ts'], 'idx_decisions_ts', True),
    ('t_decisions', ['status'], 'idx_decisions_status', False),
    ('t_decisions_numeric', ['ts'], 'idx_decisions_numeric_ts', True),
    ('t_agent_messages', ['ts'], 'idx_messages_ts', True),
    ('t_agent_messages', ['priority'], 'idx_messages_priority', True),
    ('t_file_changes', ['ts'], 'idx_file_changes_ts', True),
    ('t_constraints', ['active'], 'idx_constraints_active', False),
    ('t_constraints', ['priority'], 'idx_constraints_priority', True),
    ('t_activity_log', ['ts'], 'idx_activity_log_ts', True),
    ('t_tasks', ['priority'], 'idx_tasks_priority', True),
    ('t_tasks', ['created_ts'], 'idx_tasks_created_ts', True),
    ('t_tasks', ['updated_ts'], 'idx_tasks_updated_ts', True),
]


def up(adapter):
    ddl = SafeDDL(adapter)
    for table, columns, name, descending in INDEXES:
        if not adapter.has_table(table):
            # A later unit dropped the table
            continue
        ddl.create_index_if_absent(table, columns, name, descending=descending)


def down(adapter):
    ddl = SafeDDL(adapter)
    for table, _, name, _ in reversed(INDEXES):
        ddl.drop_if_exists('index', name, table=table)
