"""
Database initialization script for the contract/procurement import pipeline.
Run this script to create the tables and load the default field catalog.
"""

import sys

from config.logging_config import setup_logging
from config.settings import DATABASE_PATH
from services.database import Database
from services.schema import TABLES, create_schema
from services.seed_data import seed_defaults


def init_databases(db_path: str = DATABASE_PATH) -> bool:
    """Create the schema and seed defaults; returns False on failure"""
    print("Initializing import pipeline database...")
    print(f"\nDatabase: {db_path}")

    try:
        with Database(db_path) as db:
            print("\n1. Creating schema...")
            create_schema(db)
            print("   OK: Schema created")

            print("\n2. Loading default data...")
            inserted = seed_defaults(db)
            for table, count in inserted.items():
                print(f"   - {table}: {count} rows inserted" if count else f"   - {table}: already populated")

            print("\n3. Table row counts:")
            for table in TABLES:
                print(f"   - {table}: {db.count_rows(table)}")

    except Exception as e:
        print(f"   ERROR: Error initializing database: {e}")
        return False

    print("\n" + "=" * 60)
    print("OK: Database initialized successfully!")
    print("=" * 60)
    print("\nYou can now import workbooks:")
    print("  python main.py FILE.xlsx")

    return True


if __name__ == "__main__":
    setup_logging()
    success = init_databases(sys.argv[1] if len(sys.argv) > 1 else DATABASE_PATH)
    sys.exit(0 if success else 1)
