#!/usr/bin/env python3
"""
Store Configuration for sqlew
Resolves the engine identity and connection parameters from defaults, an
optional config file and SQLEW_* environment variables
"""

import os
import re
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, fields

from core.dialects import DurabilityMode, EngineType
from core.errors import ConfigError, UnsupportedEngineError

logger = logging.getLogger(__name__)

DEFAULT_SQLITE_PATH = '.sqlew/sqlew.db'
DEFAULT_PORTS = {EngineType.POSTGRESQL: 5432, EngineType.MYSQL: 3306}
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

# Environment variable -> StoreConfig field
ENVIRONMENT_FIELDS = {
    'SQLEW_DB_TYPE': 'engine',
    'SQLEW_DB_PATH': 'path',
    'SQLEW_DB_HOST': 'host',
    'SQLEW_DB_PORT': 'port',
    'SQLEW_DB_NAME': 'database',
    'SQLEW_DB_USER': 'user',
    'SQLEW_DB_PASSWORD': 'password',
    'SQLEW_DURABILITY': 'durability',
    'SQLEW_LOCK_TIMEOUT_MS': 'lock_timeout_ms',
    'SQLEW_LOG_LEVEL': 'log_level',
}

ENV_PATTERN = re.compile(r'\$\{([^}:]+)(?::([^}]*))?\}')


@dataclass
class StoreConfig:
    """Knowledge store connection settings"""

    engine: str = "sqlite"

    # Embedded engine
    path: str = DEFAULT_SQLITE_PATH

    # Client/server engines
    host: str = "localhost"
    port: Optional[int] = None
    database: str = "sqlew"
    user: str = "sqlew"
    password: Optional[str] = None
    ssl_mode: Optional[str] = None

    # Session hints (None = engine default)
    durability: Optional[str] = None
    lock_timeout_ms: Optional[int] = None

    log_level: str = "INFO"

    def __post_init__(self):
        """Apply SQLEW_* environment variables over the given values"""
        for variable, name in ENVIRONMENT_FIELDS.items():
            value = os.environ.get(variable)
            if value not in (None, ''):
                setattr(self, name, value)

        if self.port is not None:
            self.port = self._as_int('port', self.port)
        if self.lock_timeout_ms is not None:
            self.lock_timeout_ms = self._as_int('lock_timeout_ms', self.lock_timeout_ms)
        self.log_level = str(self.log_level).upper()

    @staticmethod
    def _as_int(name: str, value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{name} must be an integer, got {value!r}", {'field': name}) from e

    @classmethod
    def from_dict(cls, options: Dict[str, Any]) -> 'StoreConfig':
        """Build from a mapping; unknown keys are ignored, 'type' is accepted for 'engine'"""
        options = dict(options)
        if 'type' in options and 'engine' not in options:
            options['engine'] = options.pop('type')
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in options.items() if k in known and v is not None})

    @property
    def engine_type(self) -> EngineType:
        return EngineType.parse(self.engine)

    def validate(self) -> 'StoreConfig':
        """Raise ConfigError when the settings cannot describe a usable store"""
        try:
            engine = self.engine_type
        except UnsupportedEngineError as e:
            raise ConfigError(str(e), {'field': 'engine'}) from e

        if self.durability is not None:
            try:
                DurabilityMode(str(self.durability).lower())
            except ValueError as e:
                raise ConfigError(
                    f"durability must be one of {[m.value for m in DurabilityMode]}, got {self.durability!r}",
                    {'field': 'durability'}
                ) from e
        if self.lock_timeout_ms is not None and self.lock_timeout_ms < 0:
            raise ConfigError("lock_timeout_ms must not be negative", {'field': 'lock_timeout_ms'})
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {LOG_LEVELS}, got {self.log_level!r}",
                              {'field': 'log_level'})

        if engine is EngineType.SQLITE:
            if not self.path:
                raise ConfigError("SQLite store needs a database path", {'field': 'path'})
        else:
            missing = [name for name in ('host', 'database', 'user') if not getattr(self, name)]
            if missing:
                raise ConfigError(f"{engine.value} store is missing {', '.join(missing)}",
                                  {'fields': missing})
        return self

    def adapter_options(self) -> Dict[str, Any]:
        """Connection options for the configured engine's adapter"""
        engine = self.engine_type
        options: Dict[str, Any] = {}
        if self.durability is not None:
            options['durability'] = str(self.durability).lower()
        if self.lock_timeout_ms is not None:
            options['lock_timeout_ms'] = self.lock_timeout_ms

        if engine is EngineType.SQLITE:
            options['database'] = self.path
            return options

        options.update({
            'host': self.host,
            'port': self.port or DEFAULT_PORTS[engine],
            'database': self.database,
            'user': self.user,
            'password': self.password or '',
        })
        if self.ssl_mode:
            options['ssl_mode'] = self.ssl_mode
        return options

    def get_safe_dict(self) -> Dict[str, Any]:
        """Get configuration as dict without sensitive values"""
        engine = self.engine_type
        safe = {
            'engine': engine.value,
            'durability': self.durability,
            'lock_timeout_ms': self.lock_timeout_ms,
            'log_level': self.log_level,
        }
        if engine is EngineType.SQLITE:
            safe['path'] = self.path
        else:
            safe.update({
                'host': self.host,
                'port': self.port or DEFAULT_PORTS[engine],
                'database': self.database,
                'user': self.user,
                'ssl_mode': self.ssl_mode,
                'password_configured': bool(self.password),
            })
        return safe


def resolve_environment_variables(config: Any) -> Any:
    """Replace ${VAR} and ${VAR:default} references in string values"""

    def replace_env_var(match):
        default_value = match.group(2) if match.group(2) is not None else ''
        return os.environ.get(match.group(1), default_value)

    if isinstance(config, str):
        return ENV_PATTERN.sub(replace_env_var, config)
    if isinstance(config, dict):
        return {k: resolve_environment_variables(v) for k, v in config.items()}
    if isinstance(config, list):
        return [resolve_environment_variables(item) for item in config]
    return config


def load_env_file(env_file: Path) -> None:
    """Load KEY=VALUE lines into os.environ without overriding exported variables"""
    with open(env_file, 'r') as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#') and '=' in line:
                key, value = line.split('=', 1)
                key = key.strip()
                if key not in os.environ:
                    os.environ[key] = value.strip().strip('"').strip("'")


def load_config(config_file: Optional[Path] = None) -> StoreConfig:
    """Load the store configuration.

    Priority (highest to lowest):
    1. Environment variables (SQLEW_*)
    2. .env file (only fills variables that are not already set)
    3. JSON config file values (with ${VAR:default} references resolved)
    4. StoreConfig defaults
    """
    if config_file is None:
        env_file = Path.cwd() / '.env'
        if env_file.exists():
            load_env_file(env_file)
        return StoreConfig().validate()

    config_file = Path(config_file)
    if not config_file.exists():
        raise ConfigError(f"Config file not found: {config_file}", {'path': str(config_file)})

    if config_file.suffix == '.env' or config_file.name == '.env':
        load_env_file(config_file)
        return StoreConfig().validate()

    try:
        with open(config_file, 'r') as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {config_file}: {e}", {'path': str(config_file)}) from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{config_file} must contain a JSON object", {'path': str(config_file)})
    # Nested {"database": {...}} layout is accepted as well as a flat object
    if isinstance(raw.get('database'), dict):
        raw = raw['database']

    logger.debug(f"Loaded configuration from {config_file}")
    return StoreConfig.from_dict(resolve_environment_variables(raw)).validate()
