"""
Donation Inventory Migration (m002)
===================================

- donor_appointment: where and for which blood type a donation was taken
- donation: one consumable unit of donated blood (Available -> Used)
- blood_stock: aggregate counter per (hospital, blood type)

All migrations are idempotent.
"""

import sqlite3
from . import migration


@migration(2, "donation_inventory_tables")
def m002_donation_inventory(cursor: sqlite3.Cursor):
    """Create donation inventory tables"""

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS donor_appointment (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER REFERENCES user(id),
            hospital_id INTEGER NOT NULL REFERENCES hospital(id),
            blood_type_id INTEGER NOT NULL REFERENCES blood_type(id),
            appointment_date DATE,
            status TEXT DEFAULT 'completed'
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS donation (
            donation_id INTEGER PRIMARY KEY AUTOINCREMENT,
            donor_appointment_id INTEGER NOT NULL REFERENCES donor_appointment(id),
            donation_date DATE NOT NULL,
            blood_unit INTEGER NOT NULL DEFAULT 1,
            status TEXT NOT NULL DEFAULT 'Available'   -- Available, Used
        )
    """)

    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_donation_status
        ON donation(status, donation_date, donation_id)
    """)
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_donor_appointment_location
        ON donor_appointment(hospital_id, blood_type_id)
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS blood_stock (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            hospital_id INTEGER NOT NULL REFERENCES hospital(id),
            blood_type_id INTEGER NOT NULL REFERENCES blood_type(id),
            quantity INTEGER NOT NULL DEFAULT 0,
            updated_by INTEGER,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (hospital_id, blood_type_id)
        )
    """)
