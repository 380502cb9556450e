"""Token usage tracking for help queries."""

from core.safe_ddl import SafeDDL


def _token_usage(t):
    t.increments('usage_id')
    t.string('query_type', 100, nullable=False)
    t.string('tool_name', 100)
    t.string('action_name', 100)
    t.integer('estimated_tokens', nullable=False)
    t.integer('actual_chars', nullable=False)
    t.epoch('timestamp')


def up(adapter):
    ddl = SafeDDL(adapter)
    ddl.create_table_if_absent('t_help_token_usage', _token_usage)
    ddl.create_index_if_absent('t_help_token_usage', ['query_type'], 'idx_token_usage_query_type')
    ddl.create_index_if_absent('t_help_token_usage', ['tool_name', 'action_name'], 'idx_token_usage_tool_action')
    ddl.create_index_if_absent('t_help_token_usage', ['timestamp'], 'idx_token_usage_timestamp', descending=True)


def down(adapter):
    SafeDDL(adapter).drop_if_exists('table', 't_help_token_usage')
