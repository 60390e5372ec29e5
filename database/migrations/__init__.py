"""
Blood Request Desk schema migrations
====================================

Each module registers one numbered step with @migration. run_migrations()
applies the steps missing from _desk_migrations in version order, one
commit per step. Steps use CREATE ... IF NOT EXISTS so a half-applied
database can be migrated again.
"""

import logging
import sqlite3
from datetime import datetime
from typing import Callable, Dict, Tuple

logger = logging.getLogger(__name__)

# version -> (name, step)
_steps: Dict[int, Tuple[str, Callable[[sqlite3.Cursor], None]]] = {}


def migration(version: int, name: str):
    """Register a schema step under a unique version number"""
    def register(func):
        if version in _steps:
            raise ValueError(f"Migration v{version} registered twice ({_steps[version][0]}, {name})")
        _steps[version] = (name, func)
        return func
    return register


def _applied_versions(cursor: sqlite3.Cursor) -> set:
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS _desk_migrations (
            version INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            applied_at TIMESTAMP NOT NULL
        )
    """)
    cursor.execute("SELECT version FROM _desk_migrations")
    return {row[0] for row in cursor.fetchall()}


def run_migrations(conn: sqlite3.Connection) -> int:
    """Apply every missing step; returns how many were applied"""
    cursor = conn.cursor()
    done = _applied_versions(cursor)
    todo = [v for v in sorted(_steps) if v not in done]

    for version in todo:
        name, step = _steps[version]
        logger.info(f"[Migration] v{version} {name}")
        try:
            step(cursor)
            cursor.execute(
                "INSERT INTO _desk_migrations (version, name, applied_at) VALUES (?, ?, ?)",
                (version, name, datetime.now().isoformat())
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"[Migration] v{version} {name} failed: {e}")
            raise

    if todo:
        logger.info(f"[Migration] Applied {len(todo)} step(s), schema at v{todo[-1]}")
    return len(todo)


def get_current_version(conn: sqlite3.Connection) -> int:
    """Highest applied version, 0 for an unmigrated database"""
    try:
        row = conn.execute("SELECT MAX(version) FROM _desk_migrations").fetchone()
    except sqlite3.OperationalError:
        return 0
    return row[0] or 0


from . import m001_reference_tables
from . import m002_donation_inventory
from . import m003_blood_requests
from . import m004_user_messages
