#!/usr/bin/env python3
"""
sqlew Error Hierarchy
Canonical exception classes for the storage layer.
"""

import re
from enum import Enum
from typing import Any, Optional


class ErrorCode(Enum):
    UNKNOWN = "UNKNOWN_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    QUERY_ERROR = "QUERY_ERROR"
    TRANSACTION_ERROR = "TRANSACTION_ERROR"
    UNSUPPORTED_ENGINE = "UNSUPPORTED_ENGINE"
    NOT_INITIALIZED = "NOT_INITIALIZED"
    MIGRATION_FAILED = "MIGRATION_FAILED"
    CONFIG_ERROR = "CONFIG_ERROR"


_INTENT_PATTERN = re.compile(
    r'^\s*(CREATE\s+(?:UNIQUE\s+)?(?:TABLE|INDEX|VIEW)(?:\s+IF\s+NOT\s+EXISTS)?'
    r'|DROP\s+(?:TABLE|INDEX|VIEW)(?:\s+IF\s+EXISTS)?'
    r'|ALTER\s+TABLE|INSERT\s+INTO|DELETE\s+FROM|UPDATE|SELECT|PRAGMA|SET)\s+([`"\w.]+)?',
    re.IGNORECASE
)


def describe_statement(sql: str) -> str:
    """Short human-readable intent of a statement, e.g. 'CREATE TABLE m_agents'."""
    match = _INTENT_PATTERN.match(sql or '')
    if not match:
        return ' '.join((sql or '').split()[:3]) or '<empty statement>'
    verb = ' '.join(match.group(1).upper().split())
    target = (match.group(2) or '').strip('`"')
    return f"{verb} {target}".strip()


class SQLewError(Exception):
    """Base class for all sqlew storage exceptions"""
    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNKNOWN, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class ConnectionError(SQLewError):
    """Raised when a session cannot be opened or maintained"""
    def __init__(self, message: str, engine: Optional[str] = None, details: dict = None):
        details = dict(details or {})
        details.setdefault('engine', engine)
        super().__init__(message, ErrorCode.CONNECTION_ERROR, details)
        self.engine = engine


class QueryError(SQLewError):
    """Raised when a single statement fails"""
    def __init__(self, message: str, statement: Optional[str] = None,
                 params: Any = None, code: ErrorCode = ErrorCode.QUERY_ERROR):
        self.statement = statement
        self.intent = describe_statement(statement) if statement else None
        super().__init__(message, code, {'intent': self.intent, 'params': params})

    @classmethod
    def from_driver_error(cls, error: Exception, statement: str, params: Any = None) -> 'QueryError':
        intent = describe_statement(statement)
        return cls(f"{intent} failed: {error}", statement=statement, params=params)


class TransactionError(QueryError):
    """Raised on misuse of transaction scopes (e.g. nesting)"""
    def __init__(self, message: str):
        super().__init__(message, code=ErrorCode.TRANSACTION_ERROR)


class UnsupportedEngineError(SQLewError):
    """Raised when configuration names an engine outside the supported set"""
    def __init__(self, engine: Any):
        super().__init__(
            f"Unsupported database engine: {engine!r} (expected sqlite, postgresql or mysql)",
            ErrorCode.UNSUPPORTED_ENGINE,
            {'engine': engine}
        )
        self.engine = engine


class NotInitializedError(SQLewError):
    """Raised when the database handle is used before initialization"""
    def __init__(self, message: str = "Database not initialized. Call initialize_database() first."):
        super().__init__(message, ErrorCode.NOT_INITIALIZED)


class MigrationFailedError(SQLewError):
    """Raised when a migration unit's up or down procedure fails"""
    def __init__(self, version: int, name: str, direction: str = 'up', reason: str = ''):
        message = f"Migration {version} ({name}) failed during {direction}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, ErrorCode.MIGRATION_FAILED,
                         {'version': version, 'name': name, 'direction': direction})
        self.version = version
        self.name = name
        self.direction = direction
        self.result = None


class ConfigError(SQLewError):
    """Raised when storage configuration is invalid"""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, ErrorCode.CONFIG_ERROR, details)
