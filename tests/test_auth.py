"""
Authentication: bcrypt hashing, default user, registration, password change.
"""
import sqlite3

import pytest

import auth
import db
from errors import ConflictError, InfrastructureError, ValidationError


class TestPasswordHashing:

    @pytest.mark.unit
    def test_hash_and_verify(self):
        hashed = auth.hash_password("s3cret!")
        assert hashed.startswith("$2")
        assert auth.verify_password("s3cret!", hashed)
        assert not auth.verify_password("wrong", hashed)

    @pytest.mark.unit
    def test_long_passwords_are_truncated_to_72_bytes(self):
        base = "a" * 72
        hashed = auth.hash_password(base + "tail-one")
        assert auth.verify_password(base + "tail-two", hashed)


class TestUsers:

    @pytest.mark.integration
    def test_default_admin_must_change_password(self, fresh_db):
        assert auth.login("admin", "admin123")
        assert not auth.login("admin", "nope")
        assert not auth.login("ghost", "admin123")
        assert db.is_force_password_change()

        auth.change_password("admin", "n3w-password", "n3w-password")
        assert not db.is_force_password_change()
        assert auth.login("admin", "n3w-password")

    @pytest.mark.integration
    def test_init_is_idempotent(self, fresh_db):
        db.init_db(auth.hash_password("other"))
        assert db.fetch_one("SELECT COUNT(*) AS c FROM users")["c"] == 1
        assert auth.login("admin", "admin123")

    @pytest.mark.integration
    def test_change_password_rules(self, fresh_db):
        with pytest.raises(ValidationError):
            auth.change_password("admin", "short")
        with pytest.raises(ValidationError):
            auth.change_password("admin", "long-enough", "different")

    @pytest.mark.integration
    def test_register(self, fresh_db):
        auth.register_user(" staff ", "password1")
        assert auth.login("staff", "password1")
        with pytest.raises(ConflictError):
            auth.register_user("staff", "password2")
        with pytest.raises(ValidationError):
            auth.register_user("", "password1")

    @pytest.mark.integration
    def test_login_database_failure(self, fresh_db, monkeypatch):
        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(db, "fetch_one", broken)
        with pytest.raises(InfrastructureError) as exc_info:
            auth.login("admin", "admin123")
        assert str(exc_info.value) == "Failed to fetch user"

    @pytest.mark.integration
    def test_change_password_database_failure(self, fresh_db, monkeypatch):
        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        with monkeypatch.context() as m:
            m.setattr(db, "execute", broken)
            with pytest.raises(InfrastructureError) as exc_info:
                auth.change_password("admin", "n3w-password")
        assert str(exc_info.value) == "Failed to change password"
        assert db.is_force_password_change()
        assert auth.login("admin", "admin123")
