"""
Blood Inventory Ledger
======================

Donated blood is tracked per unit in `donation` (Available -> Used, never
reversed). A unit belongs to the hospital and blood type of its donor
appointment.

Consumption is FIFO (oldest donation_date first, then lowest id). Each unit
is flipped by its own guarded update:

    UPDATE donation SET status = 'Used'
    WHERE donation_id = ? AND status = 'Available'

so concurrent consumers never take the same unit. A unit that loses the race
is skipped, not retried, and the caller simply gets fewer units.

`blood_stock` is an aggregate counter kept alongside for dashboards.
"""

import logging
import sqlite3
from datetime import date
from typing import List, Optional

from models.request_models import DonationStatus, DonationUnit

logger = logging.getLogger(__name__)


# ==============================================================================
# Queries
# ==============================================================================

def available_units(conn: sqlite3.Connection, hospital_id: int, blood_type_id: int) -> int:
    """Sum of Available units at (hospital, blood type)"""
    cursor = conn.cursor()
    cursor.execute("""
        SELECT COALESCE(SUM(d.blood_unit), 0) AS units
        FROM donation d
        JOIN donor_appointment da ON da.id = d.donor_appointment_id
        WHERE da.hospital_id = ?
          AND da.blood_type_id = ?
          AND d.status = ?
    """, (hospital_id, blood_type_id, DonationStatus.AVAILABLE.value))
    row = cursor.fetchone()
    return int(row['units'] or 0)


def hospitals_with_stock(conn: sqlite3.Connection, blood_type_id: int, min_units: int) -> List[int]:
    """Hospitals holding at least min_units Available units of this blood type"""
    cursor = conn.cursor()
    cursor.execute("""
        SELECT da.hospital_id
        FROM donation d
        JOIN donor_appointment da ON da.id = d.donor_appointment_id
        WHERE da.blood_type_id = ?
          AND d.status = ?
        GROUP BY da.hospital_id
        HAVING COALESCE(SUM(d.blood_unit), 0) >= ?
        ORDER BY da.hospital_id
    """, (blood_type_id, DonationStatus.AVAILABLE.value, min_units))
    return [row['hospital_id'] for row in cursor.fetchall()]


def get_stock(conn: sqlite3.Connection, hospital_id: int, blood_type_id: int) -> Optional[int]:
    """Aggregate blood_stock counter, None when no counter row exists"""
    cursor = conn.cursor()
    cursor.execute(
        "SELECT quantity FROM blood_stock WHERE hospital_id = ? AND blood_type_id = ?",
        (hospital_id, blood_type_id)
    )
    row = cursor.fetchone()
    return row['quantity'] if row else None


# ==============================================================================
# Consumption
# ==============================================================================

def _select_available_units(cursor: sqlite3.Cursor, hospital_id: int, blood_type_id: int,
                            max_units: int) -> List[DonationUnit]:
    cursor.execute("""
        SELECT d.donation_id, da.hospital_id, da.blood_type_id,
               d.donation_date, d.blood_unit, d.status
        FROM donation d
        JOIN donor_appointment da ON da.id = d.donor_appointment_id
        WHERE da.hospital_id = ?
          AND da.blood_type_id = ?
          AND d.status = ?
        ORDER BY d.donation_date ASC, d.donation_id ASC
        LIMIT ?
    """, (hospital_id, blood_type_id, DonationStatus.AVAILABLE.value, max_units))
    return [DonationUnit.from_row(row) for row in cursor.fetchall()]


def _flip_unit(conn: sqlite3.Connection, donation_id: int) -> bool:
    """Guard Update: Available -> Used. False if another consumer got there first."""
    cursor = conn.cursor()
    cursor.execute("""
        UPDATE donation
        SET status = ?
        WHERE donation_id = ? AND status = ?
    """, (DonationStatus.USED.value, donation_id, DonationStatus.AVAILABLE.value))
    conn.commit()
    return cursor.rowcount == 1


def consume_oldest(conn: sqlite3.Connection, hospital_id: int, blood_type_id: int,
                   max_units: int) -> List[DonationUnit]:
    """
    Consume up to max_units Available units, oldest first.

    Returns:
        The units actually flipped to Used, in (donation_date, donation_id)
        order. May be shorter than max_units when stock is short or a
        concurrent consumer took a selected unit.
    """
    if max_units <= 0:
        return []

    candidates = _select_available_units(conn.cursor(), hospital_id, blood_type_id, max_units)

    consumed = []
    for unit in candidates:
        if _flip_unit(conn, unit.donation_id):
            consumed.append(unit.model_copy(update={"status": DonationStatus.USED}))
        else:
            logger.warning(f"[Inventory] Donation {unit.donation_id} already taken, skipped")

    logger.info(
        f"[Inventory] Consumed {len(consumed)}/{max_units} units "
        f"(hospital={hospital_id}, blood_type={blood_type_id})"
    )
    return consumed


# ==============================================================================
# Receiving & aggregate stock
# ==============================================================================

def receive_unit(conn: sqlite3.Connection, hospital_id: int, blood_type_id: int,
                 donation_date: date, donor_user_id: Optional[int] = None) -> int:
    """
    Record a completed donor appointment with one Available unit; returns donation_id.

    Every donation row is exactly one consumable unit (blood_unit = 1), so
    available_units() and consume_oldest() always agree. Call once per unit.
    """
    cursor = conn.cursor()
    cursor.execute("""
        INSERT INTO donor_appointment (user_id, hospital_id, blood_type_id, appointment_date, status)
        VALUES (?, ?, ?, ?, 'completed')
    """, (donor_user_id, hospital_id, blood_type_id, donation_date.isoformat()))
    appointment_id = cursor.lastrowid

    cursor.execute("""
        INSERT INTO donation (donor_appointment_id, donation_date, blood_unit, status)
        VALUES (?, ?, 1, ?)
    """, (appointment_id, donation_date.isoformat(), DonationStatus.AVAILABLE.value))
    donation_id = cursor.lastrowid

    cursor.execute("""
        INSERT INTO blood_stock (hospital_id, blood_type_id, quantity)
        VALUES (?, ?, 1)
        ON CONFLICT (hospital_id, blood_type_id)
        DO UPDATE SET quantity = quantity + 1,
                      updated_at = CURRENT_TIMESTAMP
    """, (hospital_id, blood_type_id))

    conn.commit()
    return donation_id


def decrease_stock(conn: sqlite3.Connection, hospital_id: int, blood_type_id: int,
                   units: int, admin_user_id: Optional[int] = None) -> bool:
    """Lower the aggregate counter, never below zero. False if no counter row exists."""
    if units <= 0:
        return False

    cursor = conn.cursor()
    cursor.execute("""
        UPDATE blood_stock
        SET quantity = MAX(quantity - ?, 0),
            updated_by = ?,
            updated_at = CURRENT_TIMESTAMP
        WHERE hospital_id = ? AND blood_type_id = ?
    """, (units, admin_user_id, hospital_id, blood_type_id))
    conn.commit()

    if cursor.rowcount == 0:
        logger.warning(f"[Inventory] No blood_stock row for hospital={hospital_id}, blood_type={blood_type_id}")
        return False
    return True
