"""
Blood Request Desk Demo Data Seeder
展示資料植入: 醫院、庫存血袋、輸血申請
"""
import logging
import sqlite3
from datetime import date, datetime, timedelta

from models.request_models import AdminBloodRequestForm, AdminContext
from services import inventory_ledger, reference_data, request_store

logger = logging.getLogger(__name__)

DEMO_HOSPITALS = [
    ("Central General Hospital", "1 Main Road", "0911000001"),
    ("Riverside Medical Center", "22 River Street", "0911000002"),
    ("North District Hospital", "7 Hill Avenue", "0911000003"),
]

# (hospital index, blood type, units on hand)
DEMO_STOCK = [
    (0, "O+", 6),
    (0, "A+", 3),
    (1, "O+", 10),
    (1, "B-", 2),
    (2, "A+", 5),
    (2, "AB+", 1),
]


def seed_demo(conn: sqlite3.Connection) -> dict:
    """
    植入展示資料 (schema must already be migrated)

    Returns:
        dict: counts of seeded hospitals, donations and requests
    """
    today = date.today()

    hospital_ids = [
        reference_data.add_hospital(conn, name, address, phone)
        for name, address, phone in DEMO_HOSPITALS
    ]

    donations = 0
    for hospital_index, blood_type, units in DEMO_STOCK:
        blood_type_id = reference_data.find_blood_type_id(conn, blood_type)
        for i in range(units):
            inventory_ledger.receive_unit(
                conn, hospital_ids[hospital_index], blood_type_id,
                today - timedelta(days=units - i)
            )
            donations += 1

    admin = AdminContext(hospital_id=hospital_ids[0], admin_user_id=1, admin_name="Demo Admin")
    demo_requests = [
        ("Aung Aung", "aung@example.com", "O+", 2, "HIGH"),
        ("Mya Mya", "mya@example.com", "A+", 4, "MEDIUM"),
        ("Ko Ko", "koko@example.com", "B-", 1, "CRITICAL"),
    ]
    for offset, (name, email, blood_type, quantity, urgency) in enumerate(demo_requests):
        request_store.create(conn, AdminBloodRequestForm(
            name=name,
            email=email,
            dob="1990-01-01",
            phone="0912345678",
            address="Demo Street",
            gender="Female" if offset % 2 else "Male",
            blood_type_id=reference_data.find_blood_type_id(conn, blood_type),
            quantity=quantity,
            urgency=urgency,
            required_date=(today + timedelta(days=offset + 1)).isoformat(),
        ), admin)

    logger.info(f"[Seeder] Demo data seeded at {datetime.now().isoformat()}")
    return {
        "hospitals": len(hospital_ids),
        "donations": donations,
        "requests": len(demo_requests),
    }
