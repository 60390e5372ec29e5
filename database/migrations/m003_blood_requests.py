"""
Blood Request Migration (m003)
==============================

- blood_request: a recipient's ask for units of a blood type at a hospital
  status: pending, completed, cancelled, transferred
- request_fulfillment: append-only, one row per consumed donation unit

All migrations are idempotent.
"""

import sqlite3
from . import migration


@migration(3, "blood_request_tables")
def m003_blood_requests(cursor: sqlite3.Cursor):
    """Create blood_request and request_fulfillment tables"""

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS blood_request (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            quantity INTEGER NOT NULL,
            request_date TIMESTAMP NOT NULL,
            required_date DATE NOT NULL,
            urgency TEXT NOT NULL DEFAULT 'MEDIUM',     -- LOW, MEDIUM, HIGH, CRITICAL
            status TEXT NOT NULL DEFAULT 'pending',
            user_id INTEGER REFERENCES user(id),
            hospital_id INTEGER NOT NULL REFERENCES hospital(id),
            blood_type_id INTEGER REFERENCES blood_type(id),

            -- 轉院
            target_hospital_id INTEGER REFERENCES hospital(id),

            -- 取消
            cancel_reason TEXT,
            cancelled_at TIMESTAMP,

            created_by INTEGER
        )
    """)

    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_blood_request_hospital
        ON blood_request(hospital_id, status)
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS request_fulfillment (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            fulfillment_date TIMESTAMP NOT NULL,
            quantity_used INTEGER NOT NULL DEFAULT 1,
            donation_donation_id INTEGER NOT NULL REFERENCES donation(donation_id),
            blood_request_id INTEGER NOT NULL REFERENCES blood_request(id)
        )
    """)

    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_request_fulfillment_request
        ON request_fulfillment(blood_request_id)
    """)
