"""
Member creation: ID allocation, expiry derivation, validation, failure
handling, concurrency; plus get/update/delete/list.
"""
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

import db
import members
import notifications
import plans
import utils
from config import settings
from errors import ConflictError, InfrastructureError, NotFoundError, ValidationError


def _titles():
    return [n.title for n in notifications.list_notifications(limit=500)]


def _member_count():
    return db.fetch_one("SELECT COUNT(*) AS c FROM members")["c"]


class TestCreateMemberScenarios:

    @pytest.mark.integration
    def test_first_premium_member_in_january(self, sample_plans, member_request):
        member = members.create_member(member_request(membership_type="Premium", join_date="2025-01-15"))
        assert member.member_id == "5JA01"
        assert member.expiry_date == "2026-01-15"

    @pytest.mark.integration
    def test_first_basic_member_in_december(self, sample_plans, member_request):
        member = members.create_member(member_request(membership_type="Basic", join_date="2025-12-20"))
        assert member.member_id == "5DE01"
        assert member.expiry_date == "2026-01-20"

    @pytest.mark.integration
    def test_unknown_plan_defaults_to_one_month(self, sample_plans, member_request):
        assert plans.compute_expiry("2025-06-10", "DoesNotExist") == "2025-07-10"
        member = members.create_member(member_request(membership_type="DoesNotExist", join_date="2025-06-10"))
        assert member.expiry_date == "2025-07-10"

    @pytest.mark.integration
    def test_client_supplied_expiry_is_kept(self, sample_plans, member_request):
        member = members.create_member(
            member_request(membership_type="Premium", join_date="2025-01-15", expiry_date="2025-03-01")
        )
        assert member.expiry_date == "2025-03-01"

    @pytest.mark.integration
    def test_blank_expiry_is_computed(self, sample_plans, member_request):
        member = members.create_member(
            member_request(membership_type="Quarterly", join_date="2025-10-05", expiry_date="  ")
        )
        assert member.expiry_date == "2026-01-05"

    @pytest.mark.integration
    def test_fields_are_stored(self, sample_plans, member_request):
        member = members.create_member(member_request(email="  ", payment_amount="1500.5"))
        stored = members.get_member(member.member_id)
        assert stored == member
        assert stored.email is None
        assert stored.payment_amount == 1500.5
        assert stored.status == "active"
        assert stored.payment_status == "paid"

    @pytest.mark.integration
    def test_emits_registration_notification(self, sample_plans, member_request):
        members.create_member(member_request(name="Mona Ali", membership_type="Premium"))
        latest = notifications.list_notifications(limit=1)[0]
        assert latest.title == "New Member Registration"
        assert latest.message == "Mona Ali has registered for a Premium membership plan."
        assert latest.type == "success"


class TestSequenceAllocation:

    @pytest.mark.integration
    def test_different_months_each_start_at_one(self, sample_plans, member_request):
        a = members.create_member(member_request(join_date="2025-03-10"))
        b = members.create_member(member_request(join_date="2025-04-10"))
        assert a.member_id == "5MR01"
        assert b.member_id == "5AP01"

    @pytest.mark.integration
    def test_same_month_increments_in_insertion_order(self, sample_plans, member_request):
        a = members.create_member(member_request(join_date="2025-03-10"))
        b = members.create_member(member_request(join_date="2025-03-02"))
        assert a.member_id == "5MR01"
        assert b.member_id == "5MR02"

    @pytest.mark.integration
    def test_count_is_scoped_to_year_and_month(self, sample_plans, member_request):
        members.create_member(member_request(join_date="2024-03-10"))
        members.create_member(member_request(join_date="2025-03-10"))
        members.create_member(member_request(join_date="2025-03-31"))
        assert members.count_members_joined_in_month(2025, 3) == 2
        assert members.count_members_joined_in_month(2024, 3) == 1
        assert members.count_members_joined_in_month(2025, 4) == 0
        assert members.next_sequential_number("2025-03-01") == 3

    @pytest.mark.integration
    def test_preview_matches_next_creation(self, sample_plans, member_request):
        members.create_member(member_request(join_date="2025-01-03"))
        preview_id, preview_expiry = members.preview_member("2025-01-15", "Premium")
        created = members.create_member(member_request(join_date="2025-01-15", membership_type="Premium"))
        assert (preview_id, preview_expiry) == (created.member_id, created.expiry_date) == ("5JA02", "2026-01-15")

    @pytest.mark.integration
    def test_gap_left_by_delete_moves_to_next_free_number(self, sample_plans, member_request):
        first = members.create_member(member_request(join_date="2025-05-01"))
        members.create_member(member_request(join_date="2025-05-02"))
        members.delete_member(first.member_id)
        # one member left in May, so the count says 02, which is taken
        third = members.create_member(member_request(join_date="2025-05-03"))
        assert third.member_id == "5MY03"

    @pytest.mark.integration
    def test_decade_collision_takes_next_number(self, sample_plans, member_request):
        old = members.create_member(member_request(join_date="2015-01-15"))
        new = members.create_member(member_request(join_date="2025-01-15"))
        assert old.member_id == "5JA01"
        assert new.member_id == "5JA02"

    @pytest.mark.integration
    def test_decade_collision_with_several_taken_numbers(self, sample_plans, member_request):
        for day in (10, 11, 12):
            members.create_member(member_request(join_date=f"2015-01-{day}"))
        new = members.create_member(member_request(join_date="2025-01-15"))
        assert new.member_id == "5JA04"

    @pytest.mark.integration
    def test_several_deleted_members_leave_creation_working(self, sample_plans, member_request):
        created = [members.create_member(member_request(join_date=f"2025-05-0{day}")) for day in range(1, 7)]
        for member in created[:3]:
            members.delete_member(member.member_id)
        # three members left in May: the count says 04, and 04..06 are taken
        latest = members.create_member(member_request(join_date="2025-05-20"))
        assert latest.member_id == "5MY07"

    @pytest.mark.integration
    def test_gives_up_after_max_attempts(self, sample_plans, member_request, monkeypatch):
        members.create_member(member_request(join_date="2025-01-10"))
        # every attempt picks 5JA01, which is already stored
        monkeypatch.setattr(members, "_next_free_number", lambda join_date, conn: 1)
        monkeypatch.setattr(settings, "member_id_max_attempts", 2)
        before = _titles().count("New Member Registration")

        with pytest.raises(ConflictError) as exc_info:
            members.create_member(member_request(join_date="2025-01-15"))

        assert "Could not allocate member identifier" in str(exc_info.value)
        assert exc_info.value.status_code == 409
        assert _member_count() == 1
        assert _titles().count("New Member Registration") == before


class TestConcurrentCreation:

    @pytest.mark.integration
    def test_unserialized_reads_can_produce_duplicates(self, sample_plans, member_request):
        """Two requests that both count before either inserts derive the same ID; storage rejects the second."""
        members.create_member(member_request(join_date="2025-03-01"))
        seq_a = members.next_sequential_number("2025-03-10")
        seq_b = members.next_sequential_number("2025-03-12")
        id_a = utils.encode_member_id("2025-03-10", seq_a)
        id_b = utils.encode_member_id("2025-03-12", seq_b)
        assert id_a == id_b == "5MR02"

        insert = (
            "INSERT INTO members(member_id, name, phone, membership_type, join_date, expiry_date,"
            " status, payment_status, payment_amount, created_at, updated_at)"
            " VALUES(?,?,?,?,?,?,?,?,?,?,?)"
        )
        now = db.now_iso()
        db.execute(insert, (id_a, "First", "0100", "Basic", "2025-03-10", "2025-04-10",
                            "active", "paid", 0, now, now))
        with pytest.raises(sqlite3.IntegrityError):
            db.execute(insert, (id_b, "Second", "0101", "Basic", "2025-03-12", "2025-04-12",
                                "active", "paid", 0, now, now))
        assert _member_count() == 2

    @pytest.mark.integration
    def test_concurrent_creations_get_distinct_ids(self, sample_plans, member_request):
        n = 12
        with ThreadPoolExecutor(max_workers=6) as pool:
            created = list(pool.map(
                lambda i: members.create_member(member_request(name=f"Member {i}", join_date="2025-07-04")),
                range(n),
            ))

        ids = [m.member_id for m in created]
        assert len(set(ids)) == n
        assert sorted(ids) == [f"5JL{i:02d}" for i in range(1, n + 1)]
        assert _member_count() == n


class TestCreateMemberValidation:

    @pytest.mark.integration
    @pytest.mark.parametrize("field,value", [
        ("name", ""),
        ("membership_type", "  "),
        ("phone", None),
        ("join_date", ""),
        ("join_date", "not-a-date"),
        ("expiry_date", "2025-13-40"),
        ("status", "frozen"),
        ("payment_status", "partial"),
        ("payment_amount", -5),
    ])
    def test_rejects_field(self, sample_plans, member_request, field, value):
        with pytest.raises(ValidationError) as exc_info:
            members.create_member(member_request(**{field: value}))
        assert exc_info.value.field == field
        assert exc_info.value.status_code == 400
        assert _member_count() == 0

    @pytest.mark.integration
    def test_reports_first_invalid_field(self, sample_plans, member_request):
        request = member_request(name="", phone="", status="bogus")
        with pytest.raises(ValidationError) as exc_info:
            members.create_member(request)
        assert exc_info.value.field == "name"

    @pytest.mark.integration
    def test_phone_checked_before_join_date(self, sample_plans, member_request):
        with pytest.raises(ValidationError) as exc_info:
            members.create_member(member_request(phone="", join_date="bad"))
        assert exc_info.value.field == "phone"

    @pytest.mark.integration
    def test_missing_status_is_rejected(self, sample_plans, member_request):
        request = member_request()
        del request["status"]
        with pytest.raises(ValidationError) as exc_info:
            members.create_member(request)
        assert exc_info.value.field == "status"


class TestCreateMemberFailures:

    @pytest.mark.integration
    def test_count_failure_is_infrastructure_error(self, sample_plans, member_request, monkeypatch):
        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(members, "next_sequential_number", broken)
        before = _titles()

        with pytest.raises(InfrastructureError) as exc_info:
            members.create_member(member_request())

        assert str(exc_info.value) == "Failed to create member"
        assert "disk" not in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)
        assert _member_count() == 0
        assert _titles() == before

    @pytest.mark.integration
    def test_notification_failure_does_not_fail_creation(self, sample_plans, member_request, monkeypatch):
        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        # notifications.emit() writes through db.execute; member insert does not
        with monkeypatch.context() as m:
            m.setattr(db, "execute", broken)
            member = members.create_member(member_request(expiry_date="2025-02-15"))

        assert members.get_member(member.member_id).name == "Ahmed Hassan"
        assert "New Member Registration" not in _titles()


class TestMemberReadUpdateDelete:

    @pytest.mark.integration
    def test_get_missing_member(self, fresh_db):
        with pytest.raises(NotFoundError) as exc_info:
            members.get_member("5JA99")
        assert exc_info.value.status_code == 404

    @pytest.mark.integration
    def test_partial_update(self, sample_plans, member_request):
        member = members.create_member(member_request())
        updated = members.update_member(member.member_id, {"phone": "0123", "status": "inactive"})
        assert updated.phone == "0123"
        assert updated.status == "inactive"
        assert updated.name == member.name
        assert updated.member_id == member.member_id
        assert _titles()[0] == "Member Updated"

    @pytest.mark.integration
    def test_payment_received_notification(self, sample_plans, member_request):
        member = members.create_member(member_request(payment_status="unpaid", payment_amount=5000))
        members.update_member(member.member_id, {"payment_status": "paid"})
        latest = notifications.list_notifications(limit=1)[0]
        assert latest.title == "Payment Received"
        assert latest.message == "Payment of Rs.5000.00 received from Ahmed Hassan."

    @pytest.mark.integration
    def test_paid_again_without_name_change_is_silent(self, sample_plans, member_request):
        member = members.create_member(member_request(payment_status="paid"))
        count = len(_titles())
        members.update_member(member.member_id, {"payment_status": "paid"})
        assert len(_titles()) == count

    @pytest.mark.integration
    def test_empty_update_returns_existing(self, sample_plans, member_request):
        member = members.create_member(member_request())
        assert members.update_member(member.member_id, {}) == member

    @pytest.mark.integration
    def test_update_validates_before_lookup(self, fresh_db):
        with pytest.raises(ValidationError):
            members.update_member("5JA01", {"status": "frozen"})

    @pytest.mark.integration
    def test_update_missing_member(self, fresh_db):
        with pytest.raises(NotFoundError):
            members.update_member("5JA01", {"name": "X"})

    @pytest.mark.integration
    def test_delete(self, sample_plans, member_request):
        member = members.create_member(member_request())
        members.delete_member(member.member_id)
        with pytest.raises(NotFoundError):
            members.get_member(member.member_id)
        latest = notifications.list_notifications(limit=1)[0]
        assert latest.message == f"Ahmed Hassan ({member.member_id}) has been removed from the system."

    @pytest.mark.integration
    def test_delete_missing_member(self, fresh_db):
        with pytest.raises(NotFoundError):
            members.delete_member("0XX00")

    @pytest.mark.integration
    def test_list_search_and_pagination(self, sample_plans, member_request):
        for i in range(5):
            members.create_member(member_request(name=f"Member {i}", join_date="2025-02-0{}".format(i + 1)))
        members.create_member(member_request(name="Zed", email="zed@gym.test", join_date="2025-03-01"))

        page = members.list_members(page=1, limit=4)
        assert page.total == 6
        assert page.total_pages == 2
        assert page.has_next_page and not page.has_previous_page
        assert len(page.items) == 4

        found = members.list_members(search="zed@gym")
        assert [m.name for m in found.items] == ["Zed"]
        by_id = members.list_members(search="5FE03")
        assert [m.member_id for m in by_id.items] == ["5FE03"]

    @pytest.mark.integration
    def test_refresh_member_statuses(self, sample_plans, member_request):
        old = members.create_member(member_request(join_date="2025-01-01", expiry_date="2025-02-01"))
        current = members.create_member(member_request(join_date="2025-05-01", expiry_date="2025-06-01"))
        assert members.refresh_member_statuses(date(2025, 5, 15)) == 1
        assert members.get_member(old.member_id).status == "expired"
        assert members.get_member(current.member_id).status == "active"
