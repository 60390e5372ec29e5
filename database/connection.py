"""
SQLite connection helpers
"""

import logging
import sqlite3

from config.settings import config

logger = logging.getLogger(__name__)


def get_connection(db_path: str = None) -> sqlite3.Connection:
    """取得資料庫連接 (row_factory = sqlite3.Row, foreign keys on)"""
    conn = sqlite3.connect(db_path or config.DATABASE_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_database(db_path: str = None) -> int:
    """Apply pending migrations; returns the number applied"""
    from database.migrations import run_migrations

    conn = get_connection(db_path)
    try:
        return run_migrations(conn)
    finally:
        conn.close()
