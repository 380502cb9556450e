#!/usr/bin/env python3
"""
Dialect capability table tests
"""

import pytest

from core.dialects import (
    DIALECTS,
    DurabilityMode,
    EngineType,
    MODIFIER_NOT_NULL_WITHOUT_DEFAULT,
    MODIFIER_REFERENCES_WITH_DEFAULT,
    get_dialect,
)
from core.errors import UnsupportedEngineError


class TestEngineType:
    """Engine identity parsing"""

    @pytest.mark.parametrize("value,expected", [
        ('sqlite', EngineType.SQLITE),
        ('better-sqlite3', EngineType.SQLITE),
        ('PostgreSQL', EngineType.POSTGRESQL),
        ('pg', EngineType.POSTGRESQL),
        (' mysql ', EngineType.MYSQL),
        ('mariadb', EngineType.MYSQL),
        (EngineType.MYSQL, EngineType.MYSQL),
    ])
    def test_parse_known_identities(self, value, expected):
        assert EngineType.parse(value) is expected

    @pytest.mark.parametrize("value", ['oracle', '', None, 42])
    def test_parse_rejects_unknown_engines(self, value):
        with pytest.raises(UnsupportedEngineError):
            EngineType.parse(value)


class TestDialectTable:
    """Per-engine capability records"""

    def test_every_engine_has_a_record(self):
        assert set(DIALECTS) == set(EngineType)
        for engine, dialect in DIALECTS.items():
            assert dialect.engine is engine

    def test_get_dialect_accepts_strings(self):
        assert get_dialect('postgres') is DIALECTS[EngineType.POSTGRESQL]

    def test_sqlite_needs_rebuild_for_constrained_columns(self):
        sqlite = get_dialect(EngineType.SQLITE)
        assert MODIFIER_NOT_NULL_WITHOUT_DEFAULT in sqlite.add_column_rebuild_modifiers
        assert MODIFIER_REFERENCES_WITH_DEFAULT in sqlite.add_column_rebuild_modifiers
        assert sqlite.drop_column_requires_rebuild
        assert sqlite.requires_foreign_key_pragma

    def test_server_engines_alter_in_place(self):
        for engine in (EngineType.POSTGRESQL, EngineType.MYSQL):
            dialect = get_dialect(engine)
            assert not dialect.add_column_rebuild_modifiers
            assert not dialect.drop_column_requires_rebuild

    def test_mysql_ddl_is_not_transactional(self):
        mysql = get_dialect(EngineType.MYSQL)
        assert not mysql.transactional_ddl
        assert not mysql.supports_drop_index_if_exists
        assert mysql.drop_foreign_key_clause == 'DROP FOREIGN KEY'
        assert mysql.max_indexed_varchar == 760

    def test_session_defaults(self):
        assert get_dialect('sqlite').lock_timeout_setting == 'busy_timeout'
        assert get_dialect('sqlite').default_durability is DurabilityMode.THROUGHPUT
        assert get_dialect('postgresql').lock_timeout_setting == 'lock_timeout'
        assert get_dialect('mysql').foreign_key_setting == 'FOREIGN_KEY_CHECKS'

    def test_placeholders(self):
        assert get_dialect('sqlite').placeholder == '?'
        assert get_dialect('postgresql').placeholder == '%s'
        assert get_dialect('mysql').placeholder == '%s'

    def test_records_are_immutable(self):
        with pytest.raises(AttributeError):
            get_dialect('sqlite').placeholder = '%s'
