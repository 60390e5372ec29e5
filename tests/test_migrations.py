"""
Migration and seeding tests

Usage:
    python -m pytest tests/test_migrations.py -v
"""

import os
import tempfile

import pytest

from database.connection import get_connection, init_database
from database.migrations import get_current_version, run_migrations
from services import inventory_ledger, reference_data


def test_fresh_database_gets_every_table():
    fd, path = tempfile.mkstemp(suffix='.db')
    os.close(fd)
    try:
        assert init_database(path) == 4
        assert init_database(path) == 0

        conn = get_connection(path)
        try:
            tables = {
                r['name'] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }
            assert {
                'role', 'user', 'hospital', 'blood_type', 'donor_appointment', 'donation',
                'blood_stock', 'blood_request', 'request_fulfillment', 'user_message',
            } <= tables
            assert get_current_version(conn) == 4
        finally:
            conn.close()
    finally:
        os.unlink(path)


def test_unmigrated_database_reports_version_zero():
    fd, path = tempfile.mkstemp(suffix='.db')
    os.close(fd)
    conn = get_connection(path)
    try:
        assert get_current_version(conn) == 0
        assert run_migrations(conn) == 4
        assert run_migrations(conn) == 0
    finally:
        conn.close()
        os.unlink(path)


def test_duplicate_version_is_rejected():
    from database.migrations import migration

    with pytest.raises(ValueError):
        migration(1, "again")(lambda cursor: None)


def test_blood_types_are_seeded_in_order(conn):
    names = [bt['blood_type'] for bt in reference_data.list_blood_types(conn)]
    assert names == ['A+', 'A-', 'B+', 'B-', 'O+', 'O-', 'AB+', 'AB-']


def test_demo_seed(conn):
    from seeder_demo import seed_demo

    counts = seed_demo(conn)

    assert counts == {"hospitals": 3, "donations": 27, "requests": 3}
    first_hospital = reference_data.list_hospitals(conn)[0]['id']
    o_pos = reference_data.find_blood_type_id(conn, "O+")
    assert inventory_ledger.available_units(conn, first_hospital, o_pos) == 6
    assert conn.execute("SELECT COUNT(*) FROM blood_request WHERE status = 'pending'").fetchone()[0] == 3
