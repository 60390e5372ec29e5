"""
User Message Migration (m004)
=============================

- user_message: in-app messages from a hospital to a user
  (request fulfilled, request cancelled)

All migrations are idempotent.
"""

import sqlite3
from . import migration


@migration(4, "user_message_table")
def m004_user_messages(cursor: sqlite3.Cursor):
    """Create user_message table"""

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS user_message (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            hospital_id INTEGER REFERENCES hospital(id),
            user_id INTEGER NOT NULL REFERENCES user(id),
            message TEXT NOT NULL,
            sent_at TIMESTAMP NOT NULL,
            is_read INTEGER DEFAULT 0
        )
    """)

    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_message_user
        ON user_message(user_id, sent_at)
    """)
