"""
Cancellation Tests

Usage:
    python -m pytest tests/test_cancel.py -v
"""

import sqlite3
from unittest.mock import patch

import pytest

from conftest import make_hospital, make_request, make_user, messages_for, request_row
from models.request_models import AdminContext
from services import notification_service, request_store
from services.errors import NotFoundError, ValidationError

A_NEG = 2


class TestComposeReason:

    def test_other_uses_details(self):
        assert request_store.compose_cancel_reason("Other", "patient unavailable") == "patient unavailable"

    def test_other_without_details(self):
        assert request_store.compose_cancel_reason("Other", "   ") == "Other"

    def test_reason_with_details(self):
        assert request_store.compose_cancel_reason("Duplicate", "entered twice") == "Duplicate — entered twice"

    def test_reason_alone(self):
        assert request_store.compose_cancel_reason(" Duplicate ", None) == "Duplicate"


class TestCancel:

    def test_cancels_and_notifies(self, conn):
        make_hospital(conn, 5)
        user_id = make_user(conn)
        request_id = make_request(conn, 5, A_NEG, 2, user_id=user_id)

        result = request_store.cancel(conn, request_id, "Other", "patient unavailable",
                                      AdminContext(hospital_id=5, admin_user_id=3))

        assert result.rows_affected == 1
        assert result.cancel_reason == "patient unavailable"
        assert result.notified is True

        row = request_row(conn, request_id)
        assert row['status'] == "cancelled"
        assert row['cancel_reason'] == "patient unavailable"
        assert row['cancelled_at'] is not None

        [message] = messages_for(conn, user_id)
        assert message['hospital_id'] == 5
        assert "patient unavailable" in message['message']

    def test_second_cancel_is_a_noop(self, conn):
        make_hospital(conn, 5)
        user_id = make_user(conn)
        request_id = make_request(conn, 5, A_NEG, 2, user_id=user_id)

        request_store.cancel(conn, request_id, "Duplicate")
        first_cancelled_at = request_row(conn, request_id)['cancelled_at']
        result = request_store.cancel(conn, request_id, "Other", "changed my mind")

        assert result.rows_affected == 0
        assert result.notified is False
        row = request_row(conn, request_id)
        assert row['cancel_reason'] == "Duplicate"
        assert row['cancelled_at'] == first_cancelled_at
        assert len(messages_for(conn, user_id)) == 1

    @pytest.mark.parametrize("status", ["completed", "transferred"])
    def test_terminal_requests_can_still_be_cancelled(self, conn, status):
        make_hospital(conn, 5)
        request_id = make_request(conn, 5, A_NEG, 2, status=status)

        result = request_store.cancel(conn, request_id, "Duplicate")

        assert result.rows_affected == 1
        assert request_row(conn, request_id)['status'] == "cancelled"

    def test_notification_failure_does_not_undo_cancel(self, conn):
        make_hospital(conn, 5)
        user_id = make_user(conn)
        request_id = make_request(conn, 5, A_NEG, 2, user_id=user_id)

        with patch("services.notification_service.send",
                   side_effect=sqlite3.OperationalError("database is locked")):
            result = request_store.cancel(conn, request_id, "Duplicate")

        assert result.rows_affected == 1
        assert result.notified is False
        assert request_row(conn, request_id)['status'] == "cancelled"
        assert messages_for(conn, user_id) == []

    def test_row_removed_right_after_update_still_notifies(self, conn):
        make_hospital(conn, 5)
        user_id = make_user(conn)
        request_id = make_request(conn, 5, A_NEG, 2, user_id=user_id)
        # Another writer purges cancelled requests as soon as they land
        conn.execute("""
            CREATE TRIGGER purge_cancelled AFTER UPDATE OF status ON blood_request
            WHEN NEW.status = 'cancelled'
            BEGIN
                DELETE FROM blood_request WHERE id = NEW.id;
            END
        """)
        conn.commit()

        result = request_store.cancel(conn, request_id, "Duplicate")

        assert result.rows_affected == 1
        assert result.notified is True
        assert request_row(conn, request_id) is None
        [message] = messages_for(conn, user_id)
        assert message['hospital_id'] == 5

    def test_request_without_recipient(self, conn):
        make_hospital(conn, 5)
        request_id = make_request(conn, 5, A_NEG, 2)

        result = request_store.cancel(conn, request_id, "Duplicate")

        assert result.rows_affected == 1
        assert result.notified is False

    def test_blank_reason(self, conn):
        make_hospital(conn, 5)
        request_id = make_request(conn, 5, A_NEG, 2)

        with pytest.raises(ValidationError):
            request_store.cancel(conn, request_id, "  ")

        assert request_row(conn, request_id)['status'] == "pending"

    def test_missing_request(self, conn):
        with pytest.raises(NotFoundError):
            request_store.cancel(conn, 999, "Duplicate")

    def test_inbox_lists_newest_first(self, conn):
        make_hospital(conn, 5)
        user_id = make_user(conn)
        first = make_request(conn, 5, A_NEG, 1, user_id=user_id)
        second = make_request(conn, 5, A_NEG, 1, user_id=user_id)

        request_store.cancel(conn, first, "Duplicate")
        request_store.cancel(conn, second, "Duplicate")

        inbox = notification_service.list_for_user(conn, user_id)
        assert [f"#{second}" in m['message'] for m in inbox] == [True, False]
        assert all(m['is_read'] == 0 for m in inbox)
