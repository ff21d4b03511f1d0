"""
Unit tests for authentication service and account registration.
Tests password hashing, JWT tokens, email/password validation and the
approval workflow.
"""

import pytest
from datetime import timedelta

from academy.services import auth_service, settings_service, user_service
from academy.utils.datetime_utils import utcnow


class TestPasswordHashing:
    """Tests for password hashing and verification."""

    def test_hash_password_is_salted(self):
        password = "training123"
        hash1 = auth_service.hash_password(password)
        hash2 = auth_service.hash_password(password)

        assert hash1 != hash2
        assert auth_service.verify_password(password, hash1)
        assert auth_service.verify_password(password, hash2)

    def test_verify_password_incorrect(self):
        password_hash = auth_service.hash_password("training123")
        assert auth_service.verify_password("wrong_password", password_hash) is False

    def test_verify_password_empty(self):
        password_hash = auth_service.hash_password("training123")
        assert auth_service.verify_password("", password_hash) is False
        assert auth_service.verify_password("training123", "") is False

    def test_verify_password_malformed_hash(self):
        assert auth_service.verify_password("training123", "not-a-bcrypt-hash") is False


class TestJWTTokens:
    """Tests for JWT token creation and verification."""

    def test_round_trip_claims(self):
        token = auth_service.create_access_token({"user_id": 7, "role": "coach"})
        decoded = auth_service.verify_token(token)
        assert decoded["user_id"] == 7
        assert decoded["role"] == "coach"
        assert "exp" in decoded

    def test_verify_token_invalid(self):
        assert auth_service.verify_token("invalid_token_string") is None

    def test_verify_token_expired(self):
        token = auth_service.create_access_token({"user_id": 1}, expires_delta=timedelta(seconds=-1))
        assert auth_service.verify_token(token) is None

    def test_refresh_tokens_are_unique(self):
        assert auth_service.generate_refresh_token() != auth_service.generate_refresh_token()


class TestValidation:
    def test_normalize_email(self):
        assert auth_service.normalize_email("  Coach@Academy.Test ") == "coach@academy.test"

    def test_invalid_email(self):
        with pytest.raises(ValueError, match="Invalid email"):
            auth_service.normalize_email("not-an-email")
        with pytest.raises(ValueError, match="Email is required"):
            auth_service.normalize_email("  ")

    def test_password_rules(self):
        with pytest.raises(ValueError, match="at least 8"):
            auth_service.validate_password("abc1")
        with pytest.raises(ValueError, match="number"):
            auth_service.validate_password("abcdefghij")
        auth_service.validate_password("abcdefgh1")


# ============================================================================
# Registration and approval
# ============================================================================


@pytest.mark.asyncio
async def test_register_creates_pending_account(db_session):
    user = await user_service.register_user(
        db_session, "New.Parent@Academy.Test", "password1", name="New Parent", requested_role="parent"
    )
    assert user["email"] == "new.parent@academy.test"
    assert user["account_status"] == "pending"
    assert user["requested_role"] == "parent"

    with pytest.raises(ValueError, match="already registered"):
        await user_service.register_user(db_session, "new.parent@academy.test", "password1")


@pytest.mark.asyncio
async def test_register_rejects_admin_request(db_session):
    with pytest.raises(ValueError, match="admin role cannot be requested"):
        await user_service.register_user(db_session, "x@academy.test", "password1", requested_role="admin")


@pytest.mark.asyncio
async def test_system_admin_email_is_auto_approved(db_session):
    await settings_service.set_setting(db_session, "system_admin_emails", "boss@academy.test, other@academy.test")
    user = await user_service.register_user(db_session, "Boss@academy.test", "password1")
    assert user["role"] == "admin"
    assert user["account_status"] == "approved"


@pytest.mark.asyncio
async def test_authenticate_and_approve(db_session):
    registered = await user_service.register_user(
        db_session, "coach2@academy.test", "password1", requested_role="coach"
    )

    signed_in = await user_service.authenticate_user(db_session, "COACH2@academy.test", "password1")
    assert signed_in["id"] == registered["id"]
    assert signed_in["last_signed_in"] is not None

    with pytest.raises(ValueError, match="Invalid email or password"):
        await user_service.authenticate_user(db_session, "coach2@academy.test", "wrong")

    approved = await user_service.approve_user(db_session, registered["id"])
    assert approved["role"] == "coach"
    assert approved["account_status"] == "approved"

    await user_service.reject_user(db_session, registered["id"])
    with pytest.raises(PermissionError, match="rejected"):
        await user_service.authenticate_user(db_session, "coach2@academy.test", "password1")


@pytest.mark.asyncio
async def test_refresh_token_lifecycle(db_session, coach_user):
    token = auth_service.generate_refresh_token()
    assert await user_service.create_refresh_token(
        db_session, coach_user["id"], token, utcnow() + timedelta(days=1)
    )

    record = await user_service.get_refresh_token(db_session, token)
    assert record["user_id"] == coach_user["id"]
    assert user_service.is_refresh_token_expired(record) is False

    assert await user_service.delete_refresh_token(db_session, token) is True
    assert await user_service.get_refresh_token(db_session, token) is None


def test_expired_refresh_token_record():
    record = {"expires_at": (utcnow() - timedelta(minutes=1)).isoformat()}
    assert user_service.is_refresh_token_expired(record) is True
    assert user_service.is_refresh_token_expired({"expires_at": None}) is True
