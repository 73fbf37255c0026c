#!/usr/bin/env python3
"""
Database setup script for the B2B portal.

Creates the user_profiles and user_sessions tables for SQLite or PostgreSQL and
prints the resulting database health.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from b2b_portal.core.config import settings
from b2b_portal.core.utils.database_helpers import (
    check_database_health,
    ensure_database_directory,
    get_database_info,
)
from b2b_portal.db.init_db import init_database
from b2b_portal.db.session import build_engine


def main(argv: Optional[List[str]] = None) -> int:
    """Initialize database based on configuration"""
    parser = argparse.ArgumentParser(description="Create the B2B portal tables")
    parser.add_argument(
        "--database-url",
        default=settings.DATABASE_URL,
        help="SQLAlchemy database URL (default: DATABASE_URL setting)",
    )
    args = parser.parse_args(argv)

    print("🗄️  B2B Portal Database Setup")
    print("=" * 40)

    ensure_database_directory(args.database_url)
    engine = build_engine(args.database_url)
    try:
        db_info = get_database_info(engine)
        print(f"Database Type: {db_info['type']}")
        print(f"Connected: {db_info['connected']}")

        if db_info['error']:
            print(f"❌ Connection Error: {db_info['error']}")
            return 1

        if db_info['version']:
            print(f"Database Version: {db_info['version']}")

        print(f"Existing Tables: {len(db_info['tables'])}")
        for table in sorted(db_info['tables']):
            print(f"  - {table}")

        print("\n🔧 Initializing database...")
        try:
            init_database(engine)
        except Exception as e:
            print(f"❌ Database initialization failed: {e}")
            return 1
        print("✅ Database initialized successfully!")

        health = check_database_health(engine)
        print(f"Health Status: {health['status']}")
        print(f"Table Count: {health['table_count']}")
        if health['status'] != 'healthy':
            print(f"⚠️  Warning: {health['last_error']}")
            return 1
        return 0
    finally:
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
