"""
Admin Recipients API v1.0
=========================

Blood requests made by hospital admins on behalf of recipients:
- GET  /api/admin/recipients                       列表 (含庫存註記)
- GET  /api/admin/recipients/form                  新增表單預設值
- POST /api/admin/recipients                       新增申請
- POST /api/admin/recipients/{id}/complete         發血完成 (FIFO 扣庫)
- POST /api/admin/recipients/{id}/transfer         轉院
- POST /api/admin/recipients/{id}/cancel           取消
- GET  /api/admin/recipients/{id}/fulfillments     發血紀錄

Admin identity travels in headers (X-Hospital-Id, X-Admin-User-Id,
X-Admin-Name) and is handed to the services as an AdminContext.
"""

import logging
import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from config.settings import config
from database.connection import get_connection
from models.request_models import (
    AdminBloodRequestForm,
    AdminContext,
    CancelBody,
    FulfillBody,
    TransferBody,
)
from services import reference_data, request_store
from services.errors import NotFoundError, RequestDeskError, StateError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/recipients", tags=["recipients"])


# ==============================================================================
# Dependencies
# ==============================================================================

def get_db():
    """Per-request SQLite connection"""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


def get_admin_context(
    x_hospital_id: Optional[int] = Header(None, alias="X-Hospital-Id"),
    x_admin_user_id: Optional[int] = Header(None, alias="X-Admin-User-Id"),
    x_admin_name: Optional[str] = Header(None, alias="X-Admin-Name"),
) -> AdminContext:
    return AdminContext(
        hospital_id=x_hospital_id,
        admin_user_id=x_admin_user_id or 0,
        admin_name=x_admin_name or "Admin",
    )


def _to_http(e: RequestDeskError) -> HTTPException:
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail={"message": str(e), "errors": e.field_errors})
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, StateError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


# ==============================================================================
# Endpoints
# ==============================================================================

@router.get("")
async def list_recipients(
    conn: sqlite3.Connection = Depends(get_db),
    context: AdminContext = Depends(get_admin_context),
):
    """列出輸血申請 (依醫院)"""
    rows = request_store.list_for_hospital(conn, context.hospital_id)
    hospitals = reference_data.list_hospitals(conn)

    if context.hospital_id is None:
        hospital_title = config.ALL_HOSPITALS_TITLE
    else:
        hospital_title = next(
            (h['hospital_name'] for h in hospitals if h['id'] == context.hospital_id),
            f"Hospital {context.hospital_id}"
        )

    return {
        "success": True,
        "data": [row.model_dump(mode="json") for row in rows],
        "hospital_title": hospital_title,
        "hospitals": hospitals,
        "user_name": context.admin_name,
    }


@router.get("/form")
async def get_request_form(
    conn: sqlite3.Connection = Depends(get_db),
    context: AdminContext = Depends(get_admin_context),
):
    """新增表單預設值"""
    form = AdminBloodRequestForm(
        password=config.DEFAULT_RECIPIENT_PASSWORD,
        hospital_id=context.hospital_id,
    )
    hospital = None
    if context.hospital_id is not None:
        hospital = next(
            (h for h in reference_data.list_hospitals(conn) if h['id'] == context.hospital_id),
            None
        )

    return {
        "success": True,
        "form": form.model_dump(),
        "hospital": hospital,
        "hospitals": reference_data.list_hospitals(conn),
        "blood_types": reference_data.list_blood_types(conn),
    }


@router.post("")
async def create_request(
    form: AdminBloodRequestForm,
    conn: sqlite3.Connection = Depends(get_db),
    context: AdminContext = Depends(get_admin_context),
):
    """新增輸血申請"""
    try:
        created = request_store.create(conn, form, context)
    except RequestDeskError as e:
        raise _to_http(e)

    return {
        "success": True,
        "data": created.model_dump(mode="json"),
        "message": "Blood request created."
    }


@router.post("/{request_id}/complete")
async def complete_request(
    request_id: int,
    body: FulfillBody,
    conn: sqlite3.Connection = Depends(get_db),
    context: AdminContext = Depends(get_admin_context),
):
    """發血完成 - FIFO 扣庫，庫存不足時仍標記完成"""
    try:
        result = request_store.fulfill(conn, request_id, body.quantity, context)
    except RequestDeskError as e:
        raise _to_http(e)

    return {
        "success": True,
        "data": {
            **result.model_dump(mode="json"),
            "consumed_units": result.consumed_units,
            "partial": result.partial,
        },
        "message": f"Request {request_id} completed."
    }


@router.post("/{request_id}/transfer")
async def transfer_request(
    request_id: int,
    body: TransferBody,
    conn: sqlite3.Connection = Depends(get_db),
):
    """轉院"""
    try:
        result = request_store.transfer(conn, request_id, body.target_hospital_id)
    except RequestDeskError as e:
        logger.warning(f"[Recipients] Transfer of {request_id} rejected: {e}")
        raise _to_http(e)

    return {
        "success": True,
        "data": result.model_dump(),
        "message": "Request transferred to target hospital."
    }


@router.post("/{request_id}/cancel")
async def cancel_request(
    request_id: int,
    body: CancelBody,
    conn: sqlite3.Connection = Depends(get_db),
    context: AdminContext = Depends(get_admin_context),
):
    """取消申請"""
    try:
        result = request_store.cancel(conn, request_id, body.reason, body.details, context)
    except RequestDeskError as e:
        raise _to_http(e)

    message = "Request cancelled." if result.rows_affected else "Request was already cancelled."
    return {
        "success": True,
        "data": result.model_dump(),
        "message": message
    }


@router.get("/{request_id}/fulfillments")
async def get_fulfillments(
    request_id: int,
    conn: sqlite3.Connection = Depends(get_db),
):
    """發血紀錄"""
    if request_store.find_request(conn, request_id) is None:
        raise HTTPException(status_code=404, detail=f"Request {request_id} not found.")

    records = request_store.list_fulfillments(conn, request_id)
    return {
        "success": True,
        "data": [r.model_dump(mode="json") for r in records]
    }
