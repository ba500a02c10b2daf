"""
Pytest configuration and shared fixtures.

Every integration test gets its own SQLite file under tmp_path; db.DB_FILE is
read on each connection, so patching it is enough.
"""
import pytest

import auth
import db
import plans
from config import settings

# bcrypt at full cost makes the auth tests slow for no benefit
settings.bcrypt_rounds = 4


@pytest.fixture
def fresh_db(tmp_path, monkeypatch):
    """Empty database with the schema and the default admin user."""
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "gym-test.db")
    db.init_db(auth.hash_password(settings.default_admin_password))
    return tmp_path / "gym-test.db"


@pytest.fixture
def sample_plans(fresh_db):
    """Plans used by the member-creation scenarios."""
    return {
        "Basic": plans.create_plan({"name": "Basic", "price": 5000, "duration": "1 month"}),
        "Quarterly": plans.create_plan({"name": "Quarterly", "price": 12000, "duration": "3 months"}),
        "Premium": plans.create_plan({"name": "Premium", "price": 50000, "duration": "1 year"}),
    }


@pytest.fixture
def member_request():
    """Factory for a valid create-member request; override fields as needed."""
    def make(**overrides):
        request = {
            "name": "Ahmed Hassan",
            "email": "ahmed@example.com",
            "phone": "01000000001",
            "membership_type": "Basic",
            "join_date": "2025-01-15",
            "status": "active",
            "payment_status": "paid",
            "payment_amount": 5000,
        }
        request.update(overrides)
        return request
    return make
