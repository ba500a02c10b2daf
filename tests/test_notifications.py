"""
Notifications: emit, read state, pruning, overdue scan.
"""
import sqlite3
from datetime import date, datetime, timedelta

import pytest

import db
import expenses
import members
import notifications
from errors import InfrastructureError


class TestEmit:

    @pytest.mark.integration
    def test_emit_and_read_state(self, fresh_db):
        notifications.emit("Hello", "World", "warning")
        notifications.emit("Bad type", "falls back", "critical")

        items = notifications.list_notifications()
        assert [(n.title, n.type, n.read) for n in items] == [
            ("Bad type", "info", False),
            ("Hello", "warning", False),
        ]
        assert notifications.unread_count() == 2

        assert notifications.mark_read(items[0].id) is True
        assert notifications.unread_count() == 1
        assert [n.title for n in notifications.list_notifications(unread_only=True)] == ["Hello"]

        assert notifications.mark_all_read() == 1
        assert notifications.unread_count() == 0
        assert notifications.mark_read(9999) is False

    @pytest.mark.integration
    def test_emit_swallows_database_errors(self, fresh_db, monkeypatch, caplog):
        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(db, "execute", broken)
        notifications.emit("Lost", "never stored")
        assert "Failed to create notification" in caplog.text

    @pytest.mark.integration
    def test_delete(self, fresh_db):
        notifications.emit("A", "a")
        n = notifications.list_notifications()[0]
        assert notifications.delete_notification(n.id) is True
        assert notifications.delete_notification(n.id) is False

    @pytest.mark.integration
    def test_delete_older_than(self, fresh_db):
        old = (datetime.now() - timedelta(days=8)).isoformat(timespec="seconds")
        db.execute(
            "INSERT INTO notifications(title, message, type, read, created_at) VALUES(?,?,?,?,?)",
            ("Old", "old", "info", 1, old),
        )
        notifications.emit("New", "new")
        assert notifications.delete_older_than(7) == 1
        assert [n.title for n in notifications.list_notifications()] == ["New"]


class TestOverdueNotifications:

    @pytest.mark.integration
    def test_creates_once_per_day(self, sample_plans, member_request):
        members.create_member(member_request(
            name="Omar Samy", join_date="2025-01-01", expiry_date="2025-02-01",
            payment_status="unpaid", payment_amount=5000,
        ))
        members.create_member(member_request(join_date="2025-01-01", expiry_date="2025-02-01", payment_status="paid"))
        expenses.create_expense({"category": "Utilities", "description": "Electricity", "amount": 350,
                                 "date": "2025-05-01", "status": "pending"})
        expenses.create_expense({"category": "Rent", "amount": 100, "date": "2025-07-01", "status": "pending"})
        expenses.create_expense({"category": "Repairs", "amount": 75, "date": "2025-07-01", "status": "overdue"})

        assert notifications.ensure_overdue_notifications(date(2025, 6, 1)) == 3
        messages = {n.message for n in notifications.list_notifications(limit=100)}
        assert "Payment of Rs.5000.00 from Omar Samy (5JA01) is overdue." in messages
        assert "Electricity (Rs.350.00) was due on 2025-05-01." in messages
        assert "Unspecified expense (Rs.75.00) was due on 2025-07-01." in messages

        assert notifications.ensure_overdue_notifications(date(2025, 6, 1)) == 0


class TestDatabaseFailures:

    @pytest.mark.integration
    def test_reads_raise_infrastructure_error(self, fresh_db, monkeypatch):
        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(db, "fetch_all", broken)
        monkeypatch.setattr(db, "fetch_one", broken)
        with pytest.raises(InfrastructureError, match="Failed to fetch notifications"):
            notifications.list_notifications()
        with pytest.raises(InfrastructureError, match="Failed to count notifications"):
            notifications.unread_count()
        with pytest.raises(InfrastructureError, match="Failed to check overdue items"):
            notifications.ensure_overdue_notifications(date(2025, 6, 1))

    @pytest.mark.integration
    def test_writes_raise_infrastructure_error(self, fresh_db, monkeypatch):
        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(db, "execute_rowcount", broken)
        for call in (
            lambda: notifications.mark_read(1),
            notifications.mark_all_read,
            lambda: notifications.delete_notification(1),
            notifications.delete_older_than,
        ):
            with pytest.raises(InfrastructureError) as exc_info:
                call()
            assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)
