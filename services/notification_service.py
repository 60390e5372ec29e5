"""
In-app notifications from a hospital to a user

Callers treat sending as fire-and-forget: send_quietly() never raises.
"""

import logging
import sqlite3
from datetime import datetime
from typing import List, Optional

logger = logging.getLogger(__name__)


def send(conn: sqlite3.Connection, from_hospital_id: Optional[int], to_user_id: int, message_text: str) -> int:
    """Store a message for the user; returns the message id"""
    cursor = conn.cursor()
    cursor.execute("""
        INSERT INTO user_message (hospital_id, user_id, message, sent_at, is_read)
        VALUES (?, ?, ?, ?, 0)
    """, (from_hospital_id, to_user_id, message_text, datetime.now().isoformat()))
    conn.commit()
    return cursor.lastrowid


def send_quietly(conn: sqlite3.Connection, from_hospital_id: Optional[int],
                 to_user_id: Optional[int], message_text: str) -> Optional[int]:
    """send() with failures logged and discarded"""
    if to_user_id is None:
        logger.info("[Notify] No recipient user on request, message skipped")
        return None
    try:
        return send(conn, from_hospital_id, to_user_id, message_text)
    except Exception as e:
        logger.warning(f"[Notify] Message to user {to_user_id} failed: {e}")
        return None


def list_for_user(conn: sqlite3.Connection, user_id: int) -> List[dict]:
    cursor = conn.cursor()
    cursor.execute("""
        SELECT id, hospital_id, user_id, message, sent_at, is_read
        FROM user_message
        WHERE user_id = ?
        ORDER BY sent_at DESC, id DESC
    """, (user_id,))
    return [dict(row) for row in cursor.fetchall()]
