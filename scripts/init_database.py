#!/usr/bin/env python3
"""
Blood Request Desk Database Initialization Script

Usage:
    python scripts/init_database.py                 # migrate default database
    python scripts/init_database.py --db demo.db --seed
    python scripts/init_database.py --reset --seed  # backup, recreate, seed
"""

import argparse
import logging
import shutil
import sys
from datetime import datetime
from pathlib import Path

# Get project root
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.settings import config
from database.connection import get_connection
from database.migrations import get_current_version, run_migrations

logger = logging.getLogger("init_database")


def backup_database(db_path: Path):
    """Create backup of existing database"""
    if not db_path.exists():
        return None

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    backup_path = db_path.parent / f"{db_path.stem}_backup_{timestamp}{db_path.suffix}"
    shutil.copy2(db_path, backup_path)
    logger.info(f"Backup created: {backup_path}")
    return backup_path


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Initialize the blood request desk database")
    parser.add_argument("--db", default=config.DATABASE_PATH, help="SQLite database path")
    parser.add_argument("--reset", action="store_true", help="Backup and recreate the database")
    parser.add_argument("--seed", action="store_true", help="Insert demo hospitals, stock and requests")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    db_path = Path(args.db)
    if args.reset and db_path.exists():
        backup_database(db_path)
        db_path.unlink()

    conn = get_connection(str(db_path))
    try:
        applied = run_migrations(conn)
        logger.info(f"Schema version {get_current_version(conn)} ({applied} applied)")

        if args.seed:
            from seeder_demo import seed_demo
            counts = seed_demo(conn)
            logger.info(f"Seeded: {counts}")
    finally:
        conn.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
