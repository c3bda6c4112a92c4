"""
tests/test_service.py -- Tests for AuthService (auth/service.py).

Covers:
  - login(): success stamps last_login; unknown email and wrong password
    raise the same error with the same message
  - login() returns inactive users; gating is the caller's decision
  - register(): hashes the password, rejects duplicates, attaches default role
  - reset_password(): confirmation mismatch fails before touching the token
  - check_permission(): re-reads the store, so grants and revocations apply
    on the next call
  - Store failures surface as StoreError naming the step
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from auth.errors import AlreadyExists, InvalidCredentials, NotFound, StoreError, ValidationError
from auth.models import ROLE_USER


class TestLogin:
    def test_success_returns_user_with_roles(self, auth, make_user, clock):
        make_user("ada@example.com", password="s3cret-pass", role_names=("moderator",))
        user = auth.login("ada@example.com", "s3cret-pass")

        assert user.email == "ada@example.com"
        assert [r.name for r in user.roles] == ["moderator"]
        assert user.last_login == clock.now()
        assert auth.get_user(user.id).last_login == clock.now()

    def test_unknown_email_and_wrong_password_are_indistinguishable(self, auth, make_user):
        make_user("ada@example.com", password="s3cret-pass")

        with pytest.raises(InvalidCredentials) as unknown:
            auth.login("ghost@example.com", "s3cret-pass")
        with pytest.raises(InvalidCredentials) as wrong:
            auth.login("ada@example.com", "wrong-pass")

        assert unknown.value.message == wrong.value.message
        assert unknown.value.code == wrong.value.code

    def test_inactive_user_is_returned(self, auth, make_user, users):
        user = make_user("ada@example.com", password="s3cret-pass")
        users.update_user(user.id, is_active=False)

        assert auth.login("ada@example.com", "s3cret-pass").is_active is False

    def test_deleted_user_cannot_log_in(self, auth, make_user, users):
        user = make_user("ada@example.com", password="s3cret-pass")
        users.delete_user(user.id)
        with pytest.raises(InvalidCredentials):
            auth.login("ada@example.com", "s3cret-pass")


class TestRegister:
    def test_password_is_hashed(self, auth, store):
        user = auth.register("Ada", "ada@example.com", "s3cret-pass")
        stored = store.get_user_by_id(user.id)
        assert stored.hashed_password != "s3cret-pass"
        assert auth.hasher.verify(stored.hashed_password, "s3cret-pass")

    def test_duplicate_email_rejected(self, auth):
        auth.register("Ada", "ada@example.com", "s3cret-pass")
        with pytest.raises(AlreadyExists):
            auth.register("Ada Again", "ada@example.com", "other-pass")

    def test_lost_race_maps_to_already_exists(self, auth, store, monkeypatch):
        auth.register("Ada", "ada@example.com", "s3cret-pass")
        monkeypatch.setattr(store, "get_user_by_email", lambda email: None)
        with pytest.raises(AlreadyExists):
            auth.register("Ada Again", "ada@example.com", "other-pass")

    def test_default_role_attached_when_present(self, auth, roles):
        roles.create_role(ROLE_USER)
        user = auth.register("Ada", "ada@example.com", "s3cret-pass")
        assert [r.name for r in user.roles] == [ROLE_USER]

    def test_no_default_role_when_missing(self, auth):
        user = auth.register("Ada", "ada@example.com", "s3cret-pass")
        assert user.roles == []

    def test_default_role_failure_names_step(self, auth, roles, store, monkeypatch):
        roles.create_role(ROLE_USER)

        def broken(*args, **kwargs):
            raise OperationalError("INSERT INTO user_roles", {}, Exception("database is locked"))

        monkeypatch.setattr(store, "add_role_to_user", broken)
        with pytest.raises(StoreError) as exc_info:
            auth.register("Ada", "ada@example.com", "s3cret-pass")

        assert exc_info.value.step == "assign default role"
        assert store.get_user_by_email("ada@example.com") is not None


class TestResetPassword:
    def test_confirmation_mismatch_leaves_token_unused(self, auth, make_user, store):
        make_user("ada@example.com", password="old-password")
        token = auth.request_password_reset("ada@example.com")

        with pytest.raises(ValidationError):
            auth.reset_password(token, "new-password", confirm="typo-password")

        assert store.get_reset_token(token).used_at is None
        auth.login("ada@example.com", "old-password")

    def test_matching_confirmation(self, auth, make_user):
        make_user("ada@example.com", password="old-password")
        token = auth.request_password_reset("ada@example.com")
        auth.reset_password(token, "new-password", confirm="new-password")
        auth.login("ada@example.com", "new-password")


class TestAuthorization:
    def test_admin_manage_scenario(self, auth, permissions, roles, make_user):
        manage = permissions.create_permission("user:manage", "user", "manage")
        roles.create_role("admin", permission_ids=[manage.id])
        user = make_user(role_names=("admin",))

        assert auth.check_permission(user.id, "user", "delete")
        assert not auth.check_permission(user.id, "invoice", "read")
        assert auth.has_role(user.id, "admin")

    def test_granting_admin_opens_delete(self, auth, permissions, roles, users, make_user):
        read = permissions.create_permission("invoice:read", "invoice", "read")
        manage = permissions.create_permission("invoice:manage", "invoice", "manage")
        roles.create_role("user", permission_ids=[read.id])
        admin = roles.create_role("admin", permission_ids=[manage.id])
        user = make_user()
        assert [r.name for r in user.roles] == ["user"]
        assert not auth.check_permission(user.id, "invoice", "delete")

        users.add_role_to_user(user.id, admin.id)
        assert auth.check_permission(user.id, "invoice", "delete")

    def test_revocation_applies_on_next_check(self, auth, permissions, roles, users, make_user):
        read = permissions.create_permission("invoice:read", "invoice", "read")
        clerk = roles.create_role("clerk", permission_ids=[read.id])
        user = make_user(role_names=("clerk",))
        assert auth.check_permission(user.id, "invoice", "read")

        roles.remove_permission_from_role(clerk.id, read.id)
        assert not auth.check_permission(user.id, "invoice", "read")

        roles.add_permission_to_role(clerk.id, read.id)
        users.remove_role_from_user(user.id, clerk.id)
        assert not auth.check_permission(user.id, "invoice", "read")

    def test_deactivated_role_stops_granting(self, auth, permissions, roles, make_user):
        read = permissions.create_permission("invoice:read", "invoice", "read")
        clerk = roles.create_role("clerk", permission_ids=[read.id])
        user = make_user(role_names=("clerk",))

        roles.update_role(clerk.id, is_active=False)
        assert not auth.check_permission(user.id, "invoice", "read")
        assert not auth.has_role(user.id, "clerk")

    def test_deleted_permission_stops_granting(self, auth, permissions, roles, make_user):
        read = permissions.create_permission("invoice:read", "invoice", "read")
        roles.create_role("clerk", permission_ids=[read.id])
        user = make_user(role_names=("clerk",))

        permissions.delete_permission(read.id)
        assert not auth.check_permission(user.id, "invoice", "read")

    def test_effective_permissions_deduplicated(self, auth, permissions, roles, make_user):
        read = permissions.create_permission("invoice:read", "invoice", "read")
        listing = permissions.create_permission("invoice:list", "invoice", "list")
        roles.create_role("clerk", permission_ids=[read.id, listing.id])
        roles.create_role("auditor", permission_ids=[read.id])
        user = make_user(role_names=("clerk", "auditor"))

        assert sorted(p.name for p in auth.effective_permissions(user.id)) == ["invoice:list", "invoice:read"]

    def test_unknown_user(self, auth):
        with pytest.raises(NotFound):
            auth.check_permission(999, "user", "read")


class TestLookups:
    def test_get_user_by_email(self, auth, make_user):
        user = make_user("ada@example.com")
        assert auth.get_user_by_email("ada@example.com").id == user.id

    def test_get_user_by_unknown_email(self, auth):
        with pytest.raises(NotFound):
            auth.get_user_by_email("ghost@example.com")

    def test_issue_token_embeds_current_roles(self, auth, make_user):
        user = make_user(role_names=("moderator",))
        claims = auth.session_tokens.verify(auth.issue_token(user))
        assert [r.name for r in claims.user.roles] == ["moderator"]

    def test_logout_revokes(self, auth, make_user):
        user = make_user()
        token = auth.issue_token(user)
        auth.logout(token, auth.session_tokens.verify(token).expires_at)
        assert auth.session_tokens.is_revoked(token)

    def test_lookup_failure_names_step(self, auth, store, monkeypatch):
        def broken(*args, **kwargs):
            raise OperationalError("SELECT users", {}, Exception("no such table"))

        monkeypatch.setattr(store, "get_user_with_roles", broken)
        with pytest.raises(StoreError) as exc_info:
            auth.get_user(1)
        assert exc_info.value.step == "load user with roles"
