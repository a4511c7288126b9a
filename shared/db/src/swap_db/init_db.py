"""Database initialization script.

Usage:
    python -m swap_db.init_db

Environment variables:
    GRIDSWAP_DB_TYPE: 'sqlite' (default) or 'postgresql'
    GRIDSWAP_DB_NAME: Database name or file path
    GRIDSWAP_DB_HOST, GRIDSWAP_DB_PORT, GRIDSWAP_DB_USER, GRIDSWAP_DB_PASSWORD: PostgreSQL config
    GRIDSWAP_DATABASE_URL: Full URL, overrides the above
"""

import argparse
import sys
from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from swap_db.settings import DatabaseSettings
from swap_db.database import DatabaseFactory
from swap_db.utils import redact_db_url


def initialize_database(settings: Optional[DatabaseSettings] = None) -> DatabaseFactory:
    """Create all tables.

    Args:
        settings: Database configuration. Uses defaults/env vars if not provided.

    Returns:
        Configured DatabaseFactory instance.
    """
    db = DatabaseFactory(settings or DatabaseSettings())
    db.create_tables()
    return db


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point for database initialization."""
    parser = argparse.ArgumentParser(description="Initialize the gridswap database")
    parser.add_argument(
        "--db-type",
        choices=["sqlite", "postgresql"],
        help="Database type (default: sqlite)",
    )
    parser.add_argument("--db-name", help="Database name or file path")
    parser.add_argument("--echo-sql", action="store_true", help="Echo SQL statements")
    args = parser.parse_args(argv)

    settings_kwargs = {}
    if args.db_type:
        settings_kwargs["db_type"] = args.db_type
    if args.db_name:
        settings_kwargs["db_name"] = args.db_name
    if args.echo_sql:
        settings_kwargs["echo_sql"] = True

    try:
        settings = DatabaseSettings(**settings_kwargs)
        print(f"Initializing database: {redact_db_url(settings.get_database_url())}")
        db = initialize_database(settings)
    except (SQLAlchemyError, ValueError) as e:
        print(f"Error initializing database: {e}", file=sys.stderr)
        return 1

    print("Database initialized successfully.")
    print("Tables created:")
    for table in inspect(db.engine).get_table_names():
        print(f"  - {table}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
