"""Rename t_constraints.created_by to agent_id on schemas that predate the agent rename."""

from core.safe_ddl import Column, SafeDDL


def up(adapter):
    if not adapter.has_table('t_constraints'):
        return
    ddl = SafeDDL(adapter)
    if adapter.has_column('t_constraints', 'created_by'):
        ddl.rename_column_if_present('t_constraints', 'created_by', 'agent_id')
    else:
        ddl.add_column_if_absent('t_constraints', Column('agent_id', 'integer', references='m_agents.id'))


def down(adapter):
    if not adapter.has_table('t_constraints'):
        return
    SafeDDL(adapter).rename_column_if_present('t_constraints', 'agent_id', 'created_by')
