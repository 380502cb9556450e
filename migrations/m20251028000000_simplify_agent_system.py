"""
Drop the unused agent messaging table and the agent pooling flags.

The flags are removed through the guarded drop-column path (a table rebuild
on SQLite); down restores both columns and the messaging table.
"""

from core.safe_ddl import Column, SafeDDL

POOLING_COLUMNS = ['in_use', 'is_reusable']


def _agent_messages(t):
    t.increments('id')
    t.integer('from_agent_id', references='m_agents.id')
    t.integer('to_agent_id', references='m_agents.id')
    t.integer('msg_type', nullable=False)
    t.integer('priority', default=2)
    t.text('message', nullable=False)
    t.text('payload')
    t.boolean('is_read', default=False)
    t.integer('ts', nullable=False)


def up(adapter):
    ddl = SafeDDL(adapter)
    ddl.drop_if_exists('table', 't_agent_messages')
    for column in POOLING_COLUMNS:
        ddl.drop_column_if_present('m_agents', column)


def down(adapter):
    ddl = SafeDDL(adapter)
    for column in POOLING_COLUMNS:
        ddl.add_column_if_absent('m_agents', Column(column, 'boolean', nullable=False, default=False))
    if ddl.create_table_if_absent('t_agent_messages', _agent_messages).created:
        ddl.create_index_if_absent('t_agent_messages', ['ts'], 'idx_messages_ts', descending=True)
        ddl.create_index_if_absent('t_agent_messages', ['priority'], 'idx_messages_priority', descending=True)
