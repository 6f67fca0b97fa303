"""Tests for authentication service."""

import pytest

from recletters.auth.models import User
from recletters.auth.service import (
    DuplicateUserError,
    authenticate_user,
    get_user_by_email,
    hash_password,
    register_user,
    verify_password,
)


class TestPasswordHashing:
    def test_hash_and_verify(self):
        password = "test_password_123"
        hashed = hash_password(password)
        assert hashed != password
        assert verify_password(password, hashed)

    def test_wrong_password_fails(self):
        hashed = hash_password("correct_password")
        assert not verify_password("wrong_password", hashed)


class TestGetUserByEmail:
    def test_finds_existing_user(self, db_session, test_user):
        user = get_user_by_email(db_session, "student@example.com")
        assert user is not None
        assert user.id == test_user.id

    def test_returns_none_for_unknown(self, db_session):
        assert get_user_by_email(db_session, "unknown@example.com") is None


class TestAuthenticateUser:
    def test_valid_credentials(self, db_session):
        db_session.add(User(email="auth@test.com", password_hash=hash_password("mypassword")))
        db_session.commit()

        result = authenticate_user(db_session, "auth@test.com", "mypassword")
        assert result is not None
        assert result.email == "auth@test.com"

    def test_wrong_password(self, db_session):
        db_session.add(User(email="auth2@test.com", password_hash=hash_password("mypassword")))
        db_session.commit()

        assert authenticate_user(db_session, "auth2@test.com", "wrongpassword") is None

    def test_inactive_user(self, db_session):
        db_session.add(User(email="off@test.com", password_hash=hash_password("pw"), is_active=False))
        db_session.commit()

        assert authenticate_user(db_session, "off@test.com", "pw") is None

    def test_nonexistent_user(self, db_session):
        assert authenticate_user(db_session, "nobody@test.com", "password") is None


class TestDisplayName:
    def test_prefers_name(self, test_user):
        assert test_user.display_name == "Ada Student"

    def test_falls_back_to_email(self):
        assert User(email="x@y.z", name="").display_name == "x@y.z"


class TestRegisterUser:
    def test_creates_user_with_normalized_email(self, db_session):
        user = register_user(db_session, " New.Student@Example.COM ", "longenough", " Bea ")
        db_session.commit()
        assert user.email == "new.student@example.com"
        assert user.name == "Bea"
        assert verify_password("longenough", user.password_hash)
        assert authenticate_user(db_session, "NEW.STUDENT@example.com", "longenough") is not None

    def test_duplicate_email(self, db_session, test_user):
        with pytest.raises(DuplicateUserError):
            register_user(db_session, "Student@Example.com", "longenough")

    def test_lookup_is_case_insensitive(self, db_session, test_user):
        assert get_user_by_email(db_session, "  STUDENT@example.com") is not None
