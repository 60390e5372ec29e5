"""
Admin Recipients API Tests

Drives the router through FastAPI's TestClient against a temporary database.

Usage:
    python -m pytest tests/test_recipients_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from conftest import add_units, d, make_hospital, make_request, request_row
from database.connection import get_connection
from main import app
from routes.recipients import get_db

A_NEG = 2
ADMIN_HEADERS = {"X-Hospital-Id": "5", "X-Admin-User-Id": "11", "X-Admin-Name": "Nurse Aye"}


@pytest.fixture
def client(db_path):
    def override_get_db():
        conn = get_connection(db_path)
        try:
            yield conn
        finally:
            conn.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def seeded(conn):
    make_hospital(conn, 5, "Central")
    make_hospital(conn, 7, "Riverside")
    add_units(conn, 5, A_NEG, [d(1), d(2), d(3)])
    add_units(conn, 7, A_NEG, [d(1), d(2)])
    return conn


def test_list_for_admin_hospital(client, seeded):
    request_id = make_request(seeded, 5, A_NEG, 2)
    make_request(seeded, 7, A_NEG, 1)

    response = client.get("/api/admin/recipients", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["hospital_title"] == "Central"
    assert body["user_name"] == "Nurse Aye"
    assert [h["id"] for h in body["hospitals"]] == [5, 7]
    [row] = body["data"]
    assert row["request_id"] == request_id
    assert row["can_complete"] is True
    assert row["eligible_target_hospital_ids"] == [7]


def test_list_all_hospitals_without_header(client, seeded):
    make_request(seeded, 5, A_NEG, 2)
    make_request(seeded, 7, A_NEG, 1)

    body = client.get("/api/admin/recipients").json()

    assert body["hospital_title"] == "All Hospitals"
    assert len(body["data"]) == 2


def test_form_defaults(client, seeded):
    body = client.get("/api/admin/recipients/form", headers=ADMIN_HEADERS).json()

    assert body["form"]["password"] == "default123"
    assert body["form"]["hospital_id"] == 5
    assert body["hospital"]["hospital_name"] == "Central"
    assert len(body["blood_types"]) == 8


def test_create_request(client, seeded):
    response = client.post("/api/admin/recipients", headers=ADMIN_HEADERS, json={
        "name": "Thida",
        "email": "thida@example.com",
        "dob": "1991-04-12",
        "phone": "0912345678",
        "address": "12 Lake Road",
        "gender": "Female",
        "blood_type_id": A_NEG,
        "quantity": 2,
        "urgency": "LOW",
        "required_date": "2026-11-05",
    })

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "pending"
    assert data["hospital_id"] == 5
    assert data["created_by"] == 11


def test_create_reports_field_errors(client, seeded):
    response = client.post("/api/admin/recipients", headers=ADMIN_HEADERS, json={"quantity": 0})

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["errors"]["quantity"] == "Quantity must be > 0"
    assert "name" in detail["errors"]
    assert "hospital_id" not in detail["errors"]


def test_complete_request(client, seeded):
    request_id = make_request(seeded, 5, A_NEG, 2)

    response = client.post(f"/api/admin/recipients/{request_id}/complete",
                           headers=ADMIN_HEADERS, json={"quantity": 2})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["consumed_units"] == 2
    assert data["partial"] is False
    assert request_row(seeded, request_id)["status"] == "completed"

    records = client.get(f"/api/admin/recipients/{request_id}/fulfillments").json()["data"]
    assert [r["donation_unit_id"] for r in records] == data["consumed_donation_ids"]


def test_complete_twice_conflicts(client, seeded):
    request_id = make_request(seeded, 5, A_NEG, 1)
    client.post(f"/api/admin/recipients/{request_id}/complete", json={"quantity": 1})

    response = client.post(f"/api/admin/recipients/{request_id}/complete", json={"quantity": 1})

    assert response.status_code == 409


def test_transfer_request(client, seeded):
    request_id = make_request(seeded, 5, A_NEG, 2)

    response = client.post(f"/api/admin/recipients/{request_id}/transfer",
                           json={"target_hospital_id": 7})

    assert response.status_code == 200
    assert response.json()["data"]["target_hospital_id"] == 7
    assert request_row(seeded, request_id)["status"] == "transferred"

    again = client.post(f"/api/admin/recipients/{request_id}/transfer",
                        json={"target_hospital_id": 7})
    assert again.status_code == 409


def test_transfer_missing_request(client, seeded):
    response = client.post("/api/admin/recipients/999/transfer", json={"target_hospital_id": 7})

    assert response.status_code == 404
    assert response.json()["detail"] == "Request not found."


def test_transfer_rejects_non_positive_target(client, seeded):
    request_id = make_request(seeded, 5, A_NEG, 2)

    response = client.post(f"/api/admin/recipients/{request_id}/transfer",
                           json={"target_hospital_id": 0})

    assert response.status_code == 422


def test_cancel_request(client, seeded):
    request_id = make_request(seeded, 5, A_NEG, 2)

    response = client.post(f"/api/admin/recipients/{request_id}/cancel", headers=ADMIN_HEADERS,
                           json={"reason": "Duplicate", "details": "entered twice"})

    assert response.status_code == 200
    assert response.json()["data"]["cancel_reason"] == "Duplicate — entered twice"

    again = client.post(f"/api/admin/recipients/{request_id}/cancel", json={"reason": "Duplicate"})
    assert again.status_code == 200
    assert again.json()["data"]["rows_affected"] == 0
    assert again.json()["message"] == "Request was already cancelled."


def test_fulfillments_of_missing_request(client, seeded):
    assert client.get("/api/admin/recipients/999/fulfillments").status_code == 404
