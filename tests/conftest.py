"""
Shared fixtures: a migrated temporary SQLite database and row builders.
"""

import os
import sys
import tempfile
from datetime import date
from pathlib import Path

import pytest

# Keep test runs from writing a log file into the project root
os.environ.setdefault("BLOODDESK_LOG_FILE", "")

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from database.connection import get_connection
from database.migrations import run_migrations
from services import inventory_ledger


@pytest.fixture
def db_path():
    fd, path = tempfile.mkstemp(suffix='.db')
    os.close(fd)
    conn = get_connection(path)
    run_migrations(conn)
    conn.close()
    try:
        yield path
    finally:
        os.unlink(path)


@pytest.fixture
def conn(db_path):
    conn = get_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()


def make_hospital(conn, hospital_id, name=None):
    conn.execute(
        "INSERT INTO hospital (id, hospital_name) VALUES (?, ?)",
        (hospital_id, name or f"Hospital {hospital_id}")
    )
    conn.commit()
    return hospital_id


def make_user(conn, email="recipient@example.com", name="Recipient"):
    cursor = conn.cursor()
    cursor.execute(
        "INSERT INTO user (username, email, password) VALUES (?, ?, 'x')",
        (name, email)
    )
    conn.commit()
    return cursor.lastrowid


def make_request(conn, hospital_id, blood_type_id, quantity, status="pending",
                 user_id=None, required_date="2026-11-01", urgency="MEDIUM"):
    cursor = conn.cursor()
    cursor.execute("""
        INSERT INTO blood_request
            (quantity, request_date, required_date, urgency, status, user_id, hospital_id, blood_type_id)
        VALUES (?, '2026-10-01T09:00:00', ?, ?, ?, ?, ?, ?)
    """, (quantity, required_date, urgency, status, user_id, hospital_id, blood_type_id))
    conn.commit()
    return cursor.lastrowid


def add_units(conn, hospital_id, blood_type_id, donation_dates):
    """One Available donation per date; returns donation ids in insertion order"""
    return [
        inventory_ledger.receive_unit(conn, hospital_id, blood_type_id, d)
        for d in donation_dates
    ]


def request_row(conn, request_id):
    return conn.execute("SELECT * FROM blood_request WHERE id = ?", (request_id,)).fetchone()


def donation_status(conn, donation_id):
    return conn.execute(
        "SELECT status FROM donation WHERE donation_id = ?", (donation_id,)
    ).fetchone()['status']


def messages_for(conn, user_id):
    return conn.execute(
        "SELECT * FROM user_message WHERE user_id = ? ORDER BY id", (user_id,)
    ).fetchall()


def d(day):
    """Shorthand for a donation date in October 2026"""
    return date(2026, 10, day)
