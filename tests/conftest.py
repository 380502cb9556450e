#!/usr/bin/env python3
"""
sqlew Test Configuration - PyTest Configuration and Fixtures

Shared fixtures: temp-file SQLite adapters, a clean SQLEW_* environment and a
reset of the process-wide adapter handle after every test.
"""

import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.database_manager import DatabaseManager
from extensions.plugins.sqlite_adapter import SQLiteAdapter


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep SQLEW_* variables from the developer's shell out of tests"""
    for name in list(os.environ):
        if name.startswith('SQLEW_') and not name.startswith('SQLEW_TEST_'):
            monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def reset_database_manager():
    """Close any adapter a test installed as the process-wide handle"""
    yield
    DatabaseManager.reset()


@pytest.fixture
def sqlite_path(tmp_path):
    """Path of a not-yet-created SQLite database file"""
    return str(tmp_path / 'store' / 'sqlew.db')


@pytest.fixture
def sqlite_adapter(sqlite_path):
    """Open SQLite adapter on a fresh temp file"""
    adapter = SQLiteAdapter({'database': sqlite_path})
    adapter.open()
    yield adapter
    adapter.close()


@pytest.fixture
def memory_adapter():
    """Open in-memory SQLite adapter"""
    adapter = SQLiteAdapter({'database': ':memory:'})
    adapter.open()
    yield adapter
    adapter.close()
