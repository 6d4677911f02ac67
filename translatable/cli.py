#!/usr/bin/env python
"""
translatable/cli.py

Command line tools for translatable tables: build and clear the translatable
column snapshot, scaffold migrations and apply them.
"""

import argparse
import logging
import sys
from typing import List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from translatable.core.config import Settings, settings as default_settings
from translatable.core.exceptions import MigrationException, SchemaInferenceException
from translatable.core.logging_config import configure_logging
from translatable.db.session import get_engine
from translatable.services.cache_builder import CacheBuilder
from translatable.services.migrations import MigrationRunner, make_migration

logger = logging.getLogger(__name__)


def cache_command(args, settings: Settings, engine: Engine) -> int:
    """Scan translation tables and write the snapshot."""
    builder = CacheBuilder(engine, settings)
    try:
        result = builder.build()
    except (OSError, SQLAlchemyError) as e:
        logger.error(f"Failed to build translatable cache: {e}")
        print(f"Failed to build translatable cache: {e}", file=sys.stderr)
        return 1

    for table in result.skipped:
        print(f"Skipped '{table}': no translatable columns.")

    if result.is_empty:
        print(f"No translation tables found (*{settings.TABLE_SUFFIX}).")
        return 0

    print(f"Translatable cache written to {settings.cache_file}")
    for table, columns in result.tables.items():
        print(f"  {table}: {', '.join(columns)}")
    return 0


def clear_command(args, settings: Settings, engine: Engine) -> int:
    """Delete the snapshot file if there is one."""
    if CacheBuilder(engine, settings).clear():
        print("Translatable cache cleared.")
    else:
        print("Translatable cache file does not exist.")
    return 0


def make_migration_command(args, settings: Settings, engine: Engine) -> int:
    """Write a create or alter migration skeleton."""
    try:
        path = make_migration(args.name, table=args.table, create=args.create, settings=settings)
    except SchemaInferenceException as e:
        print(e.message, file=sys.stderr)
        return 1
    except MigrationException:
        print("Migration already exists!", file=sys.stderr)
        return 1

    print(f"Created Migration: {path}")
    return 0


def migrate_command(args, settings: Settings, engine: Engine) -> int:
    """Apply pending migrations."""
    runner = MigrationRunner(engine, settings)
    try:
        applied = runner.run()
    except MigrationException as e:
        print(e.message, file=sys.stderr)
        return 1
    except SQLAlchemyError as e:
        logger.error(f"Error during migration process: {e}")
        print(f"Error during migration process: {e}", file=sys.stderr)
        return 1

    if not applied:
        print("Nothing to migrate.")
    for name in applied:
        print(f"Migrated: {name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="translatable",
        description="Manage translatable tables",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  translatable cache
  translatable make-migration create_products_table
  translatable make-migration add_subtitle_to_posts_table
  translatable make-migration add_flags --table posts
  translatable migrate
        """,
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Database URL (defaults to DATABASE_URL)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(dest="command")

    cache_parser = subparsers.add_parser("cache", help="Build the translatable column snapshot")
    cache_parser.set_defaults(handler=cache_command)

    clear_parser = subparsers.add_parser("clear", help="Remove the translatable column snapshot")
    clear_parser.set_defaults(handler=clear_command)

    make_parser = subparsers.add_parser("make-migration", help="Create a new translatable migration file")
    make_parser.add_argument("name", help="The name of the migration")
    target = make_parser.add_mutually_exclusive_group()
    target.add_argument("--table", default=None, help="The table to alter")
    target.add_argument("--create", default=None, help="The table to be created")
    make_parser.set_defaults(handler=make_migration_command)

    migrate_parser = subparsers.add_parser("migrate", help="Run pending migrations")
    migrate_parser.set_defaults(handler=migrate_command)

    return parser


def main(
    argv: Optional[List[str]] = None,
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
) -> int:
    """Run the command line and return its exit code."""
    settings = settings or default_settings
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging("DEBUG" if args.verbose else settings.LOG_LEVEL)

    if not args.command:
        parser.print_help()
        return 1

    engine = engine or get_engine(args.database_url or settings.DATABASE_URL)
    return args.handler(args, settings, engine)


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
