"""
Recipient identity / profile store

Users are matched by email. Recipients created by an admin get the default
credential (hashed) and the recipient role.
"""

import hashlib
import logging
import sqlite3
from typing import Optional

from config.settings import config
from models.request_models import RecipientProfile

logger = logging.getLogger(__name__)


def hash_password(raw: str) -> str:
    """SHA256 hash for admin-issued credentials"""
    return "sha256:" + hashlib.sha256(raw.encode()).hexdigest()


def find_user_id(conn: sqlite3.Connection, email: Optional[str]) -> Optional[int]:
    if not email:
        return None
    cursor = conn.cursor()
    cursor.execute("SELECT id FROM user WHERE email = ?", (email.strip(),))
    row = cursor.fetchone()
    return row['id'] if row else None


def resolve_recipient_role_id(conn: sqlite3.Connection) -> Optional[int]:
    """First recipient-like role, else the lowest role id, else None"""
    cursor = conn.cursor()
    placeholders = ','.join('?' * len(config.RECIPIENT_ROLE_NAMES))
    cursor.execute(
        f"SELECT id FROM role WHERE LOWER(role) IN ({placeholders}) ORDER BY id LIMIT 1",
        config.RECIPIENT_ROLE_NAMES
    )
    row = cursor.fetchone()
    if row:
        return row['id']

    cursor.execute("SELECT id FROM role ORDER BY id LIMIT 1")
    row = cursor.fetchone()
    return row['id'] if row else None


def update(conn: sqlite3.Connection, user_id: int, profile: RecipientProfile,
           role_id: Optional[int] = None) -> None:
    """Rewrite the mutable profile fields of an existing user"""
    cursor = conn.cursor()
    cursor.execute("""
        UPDATE user
        SET username = ?, phone = ?, dateofbirth = ?, address = ?, gender = ?, role_id = ?
        WHERE id = ?
    """, (
        profile.name,
        profile.phone,
        profile.date_of_birth,
        profile.address,
        profile.gender,
        role_id,
        user_id
    ))
    conn.commit()


def find_or_create(conn: sqlite3.Connection, email: str, profile: RecipientProfile,
                   password: Optional[str] = None, role_id: Optional[int] = None) -> int:
    """
    Upsert a recipient identity keyed by email.

    Returns:
        user id
    """
    email = email.strip()
    if role_id is None:
        role_id = resolve_recipient_role_id(conn)

    user_id = find_user_id(conn, email)
    if user_id is not None:
        update(conn, user_id, profile, role_id)
        logger.info(f"[Identity] Updated recipient profile {user_id}")
        return user_id

    cursor = conn.cursor()
    cursor.execute("""
        INSERT INTO user (username, email, password, phone, dateofbirth, address, gender, role_id)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    """, (
        profile.name,
        email,
        hash_password(password or config.DEFAULT_RECIPIENT_PASSWORD),
        profile.phone,
        profile.date_of_birth,
        profile.address,
        profile.gender,
        role_id
    ))
    conn.commit()

    user_id = cursor.lastrowid
    logger.info(f"[Identity] Created recipient {user_id}")
    return user_id
