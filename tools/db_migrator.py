#!/usr/bin/env python3
"""
sqlew Schema Migrator
=====================

Command-line front end for the migration runner.

Usage:
    # Show applied and pending migrations
    python3 tools/db_migrator.py status

    # Apply every pending migration
    python3 tools/db_migrator.py latest --engine sqlite --path .sqlew/sqlew.db

    # Roll back the two most recent migrations
    python3 tools/db_migrator.py rollback --steps 2

    # Use a JSON or .env config file
    python3 tools/db_migrator.py --config sqlew.json latest

Exit status is 0 on success and 1 on any failure; a failed migration names
the unit that failed.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add parent directory to path to import sqlew core
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))

from config.secure_config import StoreConfig, load_config
from core.database_manager import DatabaseManager
from core.errors import MigrationFailedError, SQLewError
from core.migration import MigrationRunner

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sqlew-migrate", description="sqlew Schema Migrator")
    parser.add_argument("--config", help="JSON or .env configuration file")
    parser.add_argument("--engine", help="Database engine: sqlite, postgresql or mysql")
    parser.add_argument("--path", help="SQLite database file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log session settings and each DDL step")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("status", help="Show applied and pending migrations")
    subparsers.add_parser("latest", help="Apply every pending migration")
    rollback = subparsers.add_parser("rollback", help="Roll back the most recent migrations")
    rollback.add_argument("--steps", type=int, default=1, help="Number of migrations to roll back (default: 1)")
    return parser


def resolve_config(args: argparse.Namespace) -> StoreConfig:
    """Config file and environment, then command-line overrides"""
    store_config = load_config(Path(args.config) if args.config else None)
    if args.engine:
        store_config.engine = args.engine
    if args.path:
        store_config.path = args.path
    return store_config.validate()


def print_status(status: dict) -> None:
    print(f"Engine:  {status['engine']} ({status['target']})")
    print(f"Current: {status['current_version'] or '-'}")
    print(f"Applied: {status['applied_count']}  Pending: {status['pending_count']}")
    print("-" * 60)
    for row in status['applied']:
        print(f"  [applied] {row['version']}  {row['name']}  ({row['applied_at']})")
    for row in status['pending']:
        print(f"  [pending] {row['version']}  {row['name']}")
    for row in status['unknown']:
        print(f"  [unknown] {row['version']}  {row['name']}  (no matching migration unit)")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    adapter = None
    try:
        store_config = resolve_config(args)
        if not args.verbose:
            logging.getLogger().setLevel(store_config.log_level)
        adapter = DatabaseManager.create(store_config.engine_type, store_config)
        runner = MigrationRunner(adapter)

        if args.command == "status":
            print_status(runner.status())
        elif args.command == "latest":
            results = runner.migrate_to_latest()
            print(f"Applied {len(results)} migration(s)")
        elif args.command == "rollback":
            results = runner.rollback_last(args.steps)
            print(f"Rolled back {len(results)} migration(s)")
        return 0

    except MigrationFailedError as e:
        logger.error(f"Migration {e.version} ({e.name}) failed during {e.direction}")
        print(f"FAILED: {e.message}", file=sys.stderr)
        return 1
    except (SQLewError, ValueError) as e:
        logger.error(f"Fatal error: {e}")
        return 1
    finally:
        if adapter is not None:
            adapter.close()


if __name__ == "__main__":
    sys.exit(main())
