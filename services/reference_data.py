"""
Reference data lookups (hospitals, blood types)
"""

import sqlite3
from typing import List, Optional


def list_hospitals(conn: sqlite3.Connection) -> List[dict]:
    cursor = conn.cursor()
    cursor.execute("SELECT id, hospital_name, address, phone FROM hospital ORDER BY id")
    return [dict(row) for row in cursor.fetchall()]


def list_blood_types(conn: sqlite3.Connection) -> List[dict]:
    cursor = conn.cursor()
    cursor.execute("SELECT id, blood_type FROM blood_type ORDER BY id")
    return [dict(row) for row in cursor.fetchall()]


def find_hospital_name(conn: sqlite3.Connection, hospital_id: Optional[int]) -> Optional[str]:
    if hospital_id is None:
        return None
    cursor = conn.cursor()
    cursor.execute("SELECT hospital_name FROM hospital WHERE id = ?", (hospital_id,))
    row = cursor.fetchone()
    return row['hospital_name'] if row else None


def find_blood_type_name(conn: sqlite3.Connection, blood_type_id: Optional[int]) -> Optional[str]:
    if blood_type_id is None:
        return None
    cursor = conn.cursor()
    cursor.execute("SELECT blood_type FROM blood_type WHERE id = ?", (blood_type_id,))
    row = cursor.fetchone()
    return row['blood_type'] if row else None


def hospital_exists(conn: sqlite3.Connection, hospital_id: Optional[int]) -> bool:
    return find_hospital_name(conn, hospital_id) is not None


def blood_type_exists(conn: sqlite3.Connection, blood_type_id: Optional[int]) -> bool:
    return find_blood_type_name(conn, blood_type_id) is not None


def add_hospital(conn: sqlite3.Connection, hospital_name: str, address: str = None, phone: str = None) -> int:
    cursor = conn.cursor()
    cursor.execute(
        "INSERT INTO hospital (hospital_name, address, phone) VALUES (?, ?, ?)",
        (hospital_name, address, phone)
    )
    conn.commit()
    return cursor.lastrowid


def find_blood_type_id(conn: sqlite3.Connection, blood_type: str) -> Optional[int]:
    cursor = conn.cursor()
    cursor.execute("SELECT id FROM blood_type WHERE blood_type = ?", (blood_type,))
    row = cursor.fetchone()
    return row['id'] if row else None
