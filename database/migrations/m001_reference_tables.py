"""
Reference Data Migration (m001)
===============================

- role: user roles (recipient, donor, admin)
- user: recipients, donors and admins, keyed by email
- hospital: hospitals that hold stock and receive requests
- blood_type: A+, A-, B+, B-, O+, O-, AB+, AB-

All migrations are idempotent.
"""

import sqlite3
from . import migration

BLOOD_TYPES = ['A+', 'A-', 'B+', 'B-', 'O+', 'O-', 'AB+', 'AB-']
ROLES = ['admin', 'donor', 'recipient']


@migration(1, "reference_tables")
def m001_reference_tables(cursor: sqlite3.Cursor):
    """Create role, user, hospital and blood_type tables"""

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS role (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            role TEXT NOT NULL UNIQUE
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS user (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT NOT NULL,
            email TEXT NOT NULL UNIQUE,
            password TEXT NOT NULL,
            phone TEXT,
            dateofbirth TEXT,                  -- free text as entered on the form
            address TEXT,
            gender TEXT,
            role_id INTEGER REFERENCES role(id),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS hospital (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            hospital_name TEXT NOT NULL,
            address TEXT,
            phone TEXT
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS blood_type (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            blood_type TEXT NOT NULL UNIQUE
        )
    """)

    for name in ROLES:
        cursor.execute("INSERT OR IGNORE INTO role (role) VALUES (?)", (name,))

    for name in BLOOD_TYPES:
        cursor.execute("INSERT OR IGNORE INTO blood_type (blood_type) VALUES (?)", (name,))
