"""Registration, login and account administration."""
import pytest

import accounts
import models
from errors import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    UserNotFoundError,
    ValidationFailedError,
)
from schemas import UserCreate
from security import create_access_token, decode_access_token, verify_password


def registration(**overrides):
    data = {
        "username": "coastal_kid",
        "email": "kid@example.com",
        "password": "secret123",
        "first_name": "Kai",
        "last_name": "Reef",
        "role": "researcher",
    }
    data.update(overrides)
    return UserCreate(**data)


class TestRegistration:
    def test_register_hashes_password_and_keeps_role(self, db):
        user = accounts.register_user(db, registration())

        assert user.role == models.UserRole.researcher
        assert user.hashed_password != "secret123"
        assert verify_password("secret123", user.hashed_password)
        assert (user.points, user.reports_submitted, user.reports_validated) == (0, 0, 0)

    @pytest.mark.parametrize("overrides", [{"username": "someone_else"}, {"email": "other@example.com"}])
    def test_duplicate_email_or_username(self, db, overrides):
        accounts.register_user(db, registration())
        duplicate = registration(**overrides)

        with pytest.raises(ConflictError):
            accounts.register_user(db, duplicate)


class TestLogin:
    def test_login_updates_last_login(self, db):
        accounts.register_user(db, registration())
        user = accounts.authenticate_user(db, "kid@example.com", "secret123")
        assert user.last_login is not None

    def test_wrong_password(self, db):
        accounts.register_user(db, registration())
        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            accounts.authenticate_user(db, "kid@example.com", "nope-nope")

    def test_unknown_email(self, db):
        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            accounts.authenticate_user(db, "ghost@example.com", "whatever")

    def test_inactive_account(self, db):
        user = accounts.register_user(db, registration())
        user.is_active = False
        db.commit()

        with pytest.raises(AuthenticationError, match="deactivated"):
            accounts.authenticate_user(db, "kid@example.com", "secret123")


class TestProfile:
    def test_profile_update_never_touches_role(self, db, community_user):
        user = accounts.update_profile(db, community_user, {
            "first_name": "Umaa",
            "organization": "Beach Cleanup",
            "role": models.UserRole.government,
            "points": 1000,
        })
        assert user.first_name == "Umaa"
        assert user.organization == "Beach Cleanup"
        assert user.role == models.UserRole.community
        assert user.points == 0

    def test_change_password(self, db):
        user = accounts.register_user(db, registration())

        with pytest.raises(ValidationFailedError):
            accounts.change_password(db, user, "wrong-one", "another123")

        accounts.change_password(db, user, "secret123", "another123")
        assert accounts.authenticate_user(db, "kid@example.com", "another123").id == user.id

    def test_public_profile_lists_recent_reports(self, db, community_user):
        profile = accounts.get_public_profile(db, community_user.id)
        assert profile["user"].id == community_user.id
        assert profile["recent_reports"] == []

    def test_public_profile_of_inactive_user(self, db, make_user):
        ghost = make_user("ghost", is_active=False)
        with pytest.raises(UserNotFoundError):
            accounts.get_public_profile(db, ghost.id)


class TestActivation:
    def test_ngo_deactivates_community_user(self, db, ngo_user, community_user):
        user = accounts.set_user_active(db, ngo_user, community_user.id, False)
        assert user.is_active is False

    def test_cannot_change_own_account(self, db, ngo_user):
        with pytest.raises(ValidationFailedError):
            accounts.set_user_active(db, ngo_user, ngo_user.id, False)

    def test_only_government_changes_admin_accounts(self, db, ngo_user, government_user, make_user):
        other_ngo = make_user("nina", role=models.UserRole.ngo)

        with pytest.raises(ForbiddenError):
            accounts.set_user_active(db, ngo_user, other_ngo.id, False)
        assert accounts.set_user_active(db, government_user, other_ngo.id, False).is_active is False

    def test_community_cannot_change_accounts(self, db, community_user, other_community_user):
        with pytest.raises(ForbiddenError):
            accounts.set_user_active(db, community_user, other_community_user.id, False)

    def test_unknown_user(self, db, government_user):
        with pytest.raises(UserNotFoundError):
            accounts.set_user_active(db, government_user, 4242, True)


class TestTokens:
    def test_round_trip(self):
        assert decode_access_token(create_access_token(17)) == 17

    def test_expired_token(self):
        with pytest.raises(AuthenticationError, match="expired"):
            decode_access_token(create_access_token(17, expires_minutes=-1))

    def test_garbage_token(self):
        with pytest.raises(AuthenticationError, match="Invalid token"):
            decode_access_token("not.a.jwt")

    def test_ensure_admin_is_idempotent(self, db):
        first = accounts.ensure_admin(db, "root@example.com", "root", "rootpass1")
        second = accounts.ensure_admin(db, "root@example.com", "root", "rootpass1")

        assert first.id == second.id
        assert first.role == models.UserRole.government
