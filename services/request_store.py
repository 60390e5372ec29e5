"""
Blood Request Store
===================

Listing, creation and status transitions of blood requests.

狀態機:
    pending -> completed      (fulfil: consumes donation units)
    pending -> transferred    (transfer: spawns a new pending request at the target)
    *       -> cancelled      (cancel: idempotent, notifies the recipient)

No multi-statement transactions: every step commits on its own and guards
itself with a conditional UPDATE checked through rowcount. Transfer is a
two-record saga with a compensating delete of the row it inserted.
"""

import logging
import re
import sqlite3
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from config.settings import config
from models.request_models import (
    AdminBloodRequestForm,
    AdminContext,
    BloodRequest,
    CancelResult,
    FulfillmentRecord,
    FulfillmentResult,
    RecipientProfile,
    RecipientRow,
    RequestStatus,
    TransferResult,
    Urgency,
)
from services import identity_service, inventory_ledger, notification_service, reference_data
from services.errors import NotFoundError, StateError, ValidationError

logger = logging.getLogger(__name__)

OTHER_REASON = "Other"
REASON_SEPARATOR = " — "

_REQUEST_COLUMNS = """
    id, user_id, hospital_id, blood_type_id, quantity, status, urgency,
    request_date, required_date, target_hospital_id, cancel_reason,
    cancelled_at, created_by
"""


# ==============================================================================
# Lookups
# ==============================================================================

def find_request(conn: sqlite3.Connection, request_id: int) -> Optional[BloodRequest]:
    cursor = conn.cursor()
    cursor.execute(f"SELECT {_REQUEST_COLUMNS} FROM blood_request WHERE id = ?", (request_id,))
    row = cursor.fetchone()
    return BloodRequest.from_row(row) if row else None


def get_request(conn: sqlite3.Connection, request_id: int) -> BloodRequest:
    req = find_request(conn, request_id)
    if req is None:
        raise NotFoundError(f"Request {request_id} not found.")
    return req


def find_hospital_id_for_request(conn: sqlite3.Connection, request_id: int) -> Optional[int]:
    cursor = conn.cursor()
    cursor.execute("SELECT hospital_id FROM blood_request WHERE id = ?", (request_id,))
    row = cursor.fetchone()
    return row['hospital_id'] if row else None


def list_fulfillments(conn: sqlite3.Connection, request_id: int) -> List[FulfillmentRecord]:
    cursor = conn.cursor()
    cursor.execute("""
        SELECT id, blood_request_id, donation_donation_id AS donation_unit_id,
               quantity_used, fulfillment_date
        FROM request_fulfillment
        WHERE blood_request_id = ?
        ORDER BY id
    """, (request_id,))
    return [FulfillmentRecord(**dict(row)) for row in cursor.fetchall()]


# ==============================================================================
# Listing
# ==============================================================================

def list_for_hospital(conn: sqlite3.Connection, hospital_id: Optional[int] = None) -> List[RecipientRow]:
    """
    Requests for one hospital (all hospitals when None), newest required date first.

    Each row is annotated with can_complete (local Available units cover the
    quantity) and eligible_target_hospital_ids (other hospitals that could).
    Neither annotation is persisted.
    """
    cursor = conn.cursor()
    cursor.execute("""
        SELECT
            br.id                 AS request_id,
            br.quantity           AS quantity,
            br.status             AS status,
            br.required_date      AS required_date,
            br.request_date       AS request_date,
            br.urgency            AS urgency,
            br.hospital_id        AS hospital_id,
            br.blood_type_id      AS blood_type_id,
            br.target_hospital_id AS target_hospital_id,

            u.username            AS username,
            u.email               AS email,
            u.phone               AS phone,
            u.gender              AS gender,
            u.dateofbirth         AS date_of_birth,
            u.address             AS address,

            bt.blood_type         AS blood_type,
            h.hospital_name       AS hospital_name,
            th.hospital_name      AS target_hospital_name
        FROM blood_request br
        LEFT JOIN user u        ON u.id = br.user_id
        LEFT JOIN blood_type bt ON bt.id = br.blood_type_id
        JOIN hospital h         ON h.id = br.hospital_id
        LEFT JOIN hospital th   ON th.id = br.target_hospital_id
        WHERE (? IS NULL OR br.hospital_id = ?)
        ORDER BY br.required_date DESC, br.id DESC
    """, (hospital_id, hospital_id))
    rows = [RecipientRow(**dict(r)) for r in cursor.fetchall()]

    stock_cache: Dict[Tuple[int, int], List[int]] = {}
    for row in rows:
        if row.blood_type_id is None:
            continue

        available = inventory_ledger.available_units(conn, row.hospital_id, row.blood_type_id)
        row.can_complete = available >= row.quantity

        key = (row.blood_type_id, row.quantity)
        if key not in stock_cache:
            stock_cache[key] = inventory_ledger.hospitals_with_stock(conn, row.blood_type_id, row.quantity)
        row.eligible_target_hospital_ids = [h for h in stock_cache[key] if h != row.hospital_id]

    return rows


# ==============================================================================
# Creation
# ==============================================================================

def _blank(s: Optional[str]) -> bool:
    return s is None or not str(s).strip()


def validate_form(conn: sqlite3.Connection, form: AdminBloodRequestForm,
                  context: AdminContext) -> Tuple[AdminBloodRequestForm, date, Urgency]:
    """
    Check every field of the admin form and collect all failures.

    Returns:
        (normalized form, parsed required date, urgency)

    Raises:
        ValidationError with field_errors for each bad field
    """
    form = form.model_copy()
    if context.hospital_id is not None:
        form.hospital_id = context.hospital_id
    if _blank(form.password):
        form.password = config.DEFAULT_RECIPIENT_PASSWORD

    errors: Dict[str, str] = {}

    if _blank(form.name):
        errors['name'] = "Name is required"
    if _blank(form.email):
        errors['email'] = "Email is required"
    if _blank(form.dob):
        errors['dob'] = "DOB is required"
    if _blank(form.phone):
        errors['phone'] = "Phone number is required"
    elif not re.match(config.PHONE_PATTERN, form.phone.strip()):
        errors['phone'] = "Phone must start with 09 and contain 9–13 digits total"
    if _blank(form.gender):
        errors['gender'] = "Gender is required"
    if _blank(form.address):
        errors['address'] = "Address is required"

    if form.blood_type_id is None:
        errors['blood_type_id'] = "Blood Type is required"
    elif not reference_data.blood_type_exists(conn, form.blood_type_id):
        errors['blood_type_id'] = "Unknown blood type"

    if form.quantity is None or form.quantity <= 0:
        errors['quantity'] = "Quantity must be > 0"

    urgency = Urgency.parse(form.urgency)
    if _blank(form.urgency):
        errors['urgency'] = "Urgency is required"
    elif urgency is None:
        errors['urgency'] = "Invalid urgency"

    required_date = None
    if _blank(form.required_date):
        errors['required_date'] = "Required date is required"
    else:
        try:
            required_date = date.fromisoformat(form.required_date.strip())
        except ValueError:
            errors['required_date'] = "Invalid date"

    if form.hospital_id is None:
        errors['hospital_id'] = "Hospital is required"
    elif not reference_data.hospital_exists(conn, form.hospital_id):
        errors['hospital_id'] = "Unknown hospital"

    if errors:
        raise ValidationError("Blood request form is invalid", errors)

    return form, required_date, urgency


def create(conn: sqlite3.Connection, form: AdminBloodRequestForm, context: AdminContext) -> BloodRequest:
    """Upsert the recipient identity and insert a pending request on their behalf"""
    form, required_date, urgency = validate_form(conn, form, context)

    profile = RecipientProfile(
        name=form.name.strip(),
        phone=form.phone.strip(),
        date_of_birth=form.dob.strip(),
        address=form.address.strip(),
        gender=form.gender.strip(),
    )
    user_id = identity_service.find_or_create(conn, form.email, profile, password=form.password)

    created_by = context.admin_user_id if context.admin_user_id and context.admin_user_id > 0 else None

    cursor = conn.cursor()
    cursor.execute("""
        INSERT INTO blood_request
            (quantity, request_date, required_date, urgency, status,
             user_id, hospital_id, blood_type_id, created_by)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
    """, (
        form.quantity,
        datetime.now().isoformat(timespec='seconds'),
        required_date.isoformat(),
        urgency.value,
        RequestStatus.PENDING.value,
        user_id,
        form.hospital_id,
        form.blood_type_id,
        created_by
    ))
    conn.commit()

    request_id = cursor.lastrowid
    logger.info(
        f"[Requests] Created request {request_id}: {form.quantity} units, "
        f"hospital={form.hospital_id}, blood_type={form.blood_type_id}, by admin={created_by}"
    )
    return get_request(conn, request_id)


# ==============================================================================
# Fulfilment
# ==============================================================================

def _insert_fulfillment(conn: sqlite3.Connection, request_id: int, donation_id: int) -> int:
    cursor = conn.cursor()
    cursor.execute("""
        INSERT INTO request_fulfillment (fulfillment_date, quantity_used, donation_donation_id, blood_request_id)
        VALUES (?, 1, ?, ?)
    """, (datetime.now().isoformat(), donation_id, request_id))
    conn.commit()
    return cursor.lastrowid


def _mark_completed(conn: sqlite3.Connection, request_id: int) -> bool:
    cursor = conn.cursor()
    cursor.execute("""
        UPDATE blood_request
        SET status = ?
        WHERE id = ? AND status = ?
    """, (RequestStatus.COMPLETED.value, request_id, RequestStatus.PENDING.value))
    conn.commit()
    return cursor.rowcount == 1


def _fulfilled_message(hospital_name: str, collect_on: Optional[date]) -> str:
    return (
        f"Your blood request has been successfully fulfilled by {hospital_name}.\n\n"
        f"Please come to the hospital to collect the blood on {collect_on} during our working hours.\n\n"
        f"Thank you for placing your trust in {hospital_name}."
    )


def fulfill(conn: sqlite3.Connection, request_id: int, units: int,
            context: Optional[AdminContext] = None) -> FulfillmentResult:
    """
    Consume up to `units` oldest Available units and complete the request.

    The request is marked completed even when stock covers only part of the
    units (or none); the shortfall is logged and visible in the result.
    An unresolved blood type or units <= 0 completes the request without
    touching inventory.

    The pending -> completed update runs first and claims the request, so
    inventory is only consumed for a request this call completed. Units
    consumed afterwards are always recorded and taken off the aggregate
    counter, even if the request is cancelled in the meantime.
    """
    context = context or AdminContext()
    req = get_request(conn, request_id)
    if req.status is not RequestStatus.PENDING:
        raise StateError(f"Request {request_id} is {req.status.value}, only pending requests can be fulfilled.")

    if not _mark_completed(conn, request_id):
        logger.warning(f"[Requests] Request {request_id} left pending state before fulfilment, nothing consumed")
        raise StateError(f"Request {request_id} changed state during fulfilment.")

    result = FulfillmentResult(request_id=request_id, hospital_id=req.hospital_id, requested_units=units)

    if units <= 0 or not reference_data.blood_type_exists(conn, req.blood_type_id):
        logger.info(f"[Requests] Request {request_id} completed without inventory (units={units})")
        return result

    consumed = inventory_ledger.consume_oldest(conn, req.hospital_id, req.blood_type_id, units)
    for unit in consumed:
        _insert_fulfillment(conn, request_id, unit.donation_id)
    result.consumed_donation_ids = [u.donation_id for u in consumed]

    if consumed:
        inventory_ledger.decrease_stock(conn, req.hospital_id, req.blood_type_id,
                                        len(consumed), context.admin_user_id)

    if result.partial:
        logger.warning(
            f"[Requests] Request {request_id} completed with {result.consumed_units}/{units} units"
        )
    else:
        logger.info(f"[Requests] Request {request_id} completed with {units} units")

    hospital_name = reference_data.find_hospital_name(conn, req.hospital_id) or f"Hospital {req.hospital_id}"
    notification_service.send_quietly(
        conn, req.hospital_id, req.user_id, _fulfilled_message(hospital_name, req.required_date)
    )
    return result


# ==============================================================================
# Transfer (saga: insert target -> guarded source update -> compensate)
# ==============================================================================

def _insert_transfer_target(conn: sqlite3.Connection, request_id: int, quantity: int,
                            target_hospital_id: int) -> Optional[int]:
    """Copy the source into a new pending request at the target; returns its id or None"""
    cursor = conn.cursor()
    cursor.execute("""
        INSERT INTO blood_request
            (quantity, request_date, required_date, urgency, status,
             user_id, hospital_id, blood_type_id)
        SELECT
            ?, ?, br.required_date, br.urgency, ?,
            br.user_id, ?, br.blood_type_id
        FROM blood_request br
        WHERE br.id = ?
    """, (
        quantity,
        datetime.now().isoformat(timespec='seconds'),
        RequestStatus.PENDING.value,
        target_hospital_id,
        request_id
    ))
    conn.commit()
    if cursor.rowcount != 1:
        return None
    return cursor.lastrowid


def _mark_transferred(conn: sqlite3.Connection, request_id: int, target_hospital_id: int,
                      expected_quantity: int) -> bool:
    """Optimistic concurrency: only a still-pending source with the quantity we read"""
    cursor = conn.cursor()
    cursor.execute("""
        UPDATE blood_request
        SET status = ?,
            target_hospital_id = ?
        WHERE id = ?
          AND quantity = ?
          AND status = ?
    """, (
        RequestStatus.TRANSFERRED.value,
        target_hospital_id,
        request_id,
        expected_quantity,
        RequestStatus.PENDING.value
    ))
    conn.commit()
    return cursor.rowcount == 1


def _discard_transfer_target(conn: sqlite3.Connection, target_request_id: int) -> bool:
    cursor = conn.cursor()
    cursor.execute(
        "DELETE FROM blood_request WHERE id = ? AND status = ?",
        (target_request_id, RequestStatus.PENDING.value)
    )
    conn.commit()
    return cursor.rowcount == 1


def transfer(conn: sqlite3.Connection, request_id: int, target_hospital_id: int) -> TransferResult:
    """
    Move a pending request to another hospital.

    The source keeps its quantity and becomes transferred; a new pending
    request with the same quantity, required date, urgency, recipient and
    blood type is created at the target. If the source changed after it was
    read, the new row is deleted again and StateError is raised.
    """
    cursor = conn.cursor()
    cursor.execute("SELECT quantity, hospital_id, status FROM blood_request WHERE id = ?", (request_id,))
    row = cursor.fetchone()
    if row is None:
        raise NotFoundError("Request not found.")
    if row['status'] != RequestStatus.PENDING.value:
        raise StateError(f"Request {request_id} is {row['status']}, only pending requests can be transferred.")

    quantity = row['quantity']
    if quantity is None or quantity <= 0:
        raise ValidationError("Nothing to transfer (quantity is 0).", {"quantity": "Quantity must be > 0"})
    if not reference_data.hospital_exists(conn, target_hospital_id):
        raise NotFoundError(f"Hospital {target_hospital_id} not found.")
    if target_hospital_id == row['hospital_id']:
        raise ValidationError(
            "Target hospital must differ from the source hospital.",
            {"target_hospital_id": "Choose another hospital"}
        )

    target_request_id = _insert_transfer_target(conn, request_id, quantity, target_hospital_id)
    if target_request_id is None:
        raise StateError("Could not create target request.")

    if not _mark_transferred(conn, request_id, target_hospital_id, quantity):
        discarded = _discard_transfer_target(conn, target_request_id)
        logger.warning(
            f"[Requests] Transfer of {request_id} lost the source update; "
            f"target request {target_request_id} discarded={discarded}"
        )
        raise StateError("Transfer failed while updating the source request. No changes kept.")

    logger.info(
        f"[Requests] Transferred request {request_id} -> hospital {target_hospital_id} "
        f"as request {target_request_id} ({quantity} units)"
    )
    return TransferResult(
        source_request_id=request_id,
        target_request_id=target_request_id,
        target_hospital_id=target_hospital_id,
        quantity=quantity,
    )


# ==============================================================================
# Cancellation
# ==============================================================================

def compose_cancel_reason(reason: str, details: Optional[str] = None) -> str:
    """'Other' takes the details verbatim; any other reason gets details appended"""
    reason = (reason or "").strip()
    details = (details or "").strip()

    if reason == OTHER_REASON:
        return details or OTHER_REASON
    if details:
        return f"{reason}{REASON_SEPARATOR}{details}"
    return reason


def _cancelled_message(request_id: int, reason: str) -> str:
    return (
        f"Your blood request #{request_id} has been cancelled.\n\n"
        f"Reason: {reason}"
    )


def cancel(conn: sqlite3.Connection, request_id: int, reason: str, details: Optional[str] = None,
           context: Optional[AdminContext] = None) -> CancelResult:
    """
    Cancel a request with a composed reason and notify the recipient.

    Idempotent: an already-cancelled request is left untouched
    (rows_affected=0) and no second notification is sent.
    """
    if _blank(reason):
        raise ValidationError("Cancellation reason is required", {"reason": "Reason is required"})

    final_reason = compose_cancel_reason(reason, details)

    # Sender and recipient are read up front; the row may be gone after the update
    req = get_request(conn, request_id)

    cursor = conn.cursor()
    cursor.execute("""
        UPDATE blood_request
        SET status = ?,
            cancel_reason = ?,
            cancelled_at = ?
        WHERE id = ? AND status <> ?
    """, (
        RequestStatus.CANCELLED.value,
        final_reason,
        datetime.now().isoformat(timespec='seconds'),
        request_id,
        RequestStatus.CANCELLED.value
    ))
    conn.commit()
    rows_affected = cursor.rowcount

    if rows_affected == 0:
        logger.info(f"[Requests] Request {request_id} already cancelled, nothing to do")
        return CancelResult(request_id=request_id, rows_affected=0)

    actor = context.admin_user_id if context else None
    logger.info(f"[Requests] Cancelled request {request_id} by admin={actor}: {final_reason}")

    message_id = notification_service.send_quietly(
        conn, req.hospital_id, req.user_id, _cancelled_message(request_id, final_reason)
    )
    return CancelResult(
        request_id=request_id,
        rows_affected=rows_affected,
        cancel_reason=final_reason,
        notified=message_id is not None,
    )
