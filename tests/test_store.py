"""
tests/test_store.py -- Tests for auth/store.py CredentialStore.

Covers:
  - Unique indexes reject duplicates at the database level (IntegrityError)
  - Timestamps are stored fixed-width so string order is time order
  - consume_reset_token() burns a token once, refuses expired tokens, and
    writes the password in the same transaction
  - Blacklisting the same token twice keeps one row
  - store_step() translation of IntegrityError and other SQLAlchemy errors
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from auth.errors import AlreadyExists, StoreError
from auth.models import Permission, PasswordResetToken, Role, User
from auth.store import store_step
from core.clock import from_iso, to_iso


def _user(email: str = "ada@example.com") -> User:
    return User(name="Ada", email=email, hashed_password="$2b$04$placeholder")


class TestUniqueness:
    def test_duplicate_email(self, store):
        store.create_user(_user())
        with pytest.raises(IntegrityError):
            store.create_user(_user())

    def test_duplicate_resource_action(self, store):
        store.create_permission(Permission(name="user:read", resource="user", action="read"))
        with pytest.raises(IntegrityError):
            store.create_permission(Permission(name="user:view", resource="user", action="read"))

    def test_duplicate_role_name(self, store):
        store.create_role(Role(name="clerk"))
        with pytest.raises(IntegrityError):
            store.create_role(Role(name="clerk"), permission_ids=[1])
        assert len(store.list_roles()) == 1

    def test_soft_deleted_email_is_free(self, store):
        first = store.create_user(_user())
        assert store.delete_user(first)
        assert not store.delete_user(first)
        second = store.create_user(_user())
        assert store.get_user_by_email("ada@example.com").id == second


class TestTimestamps:
    def test_fixed_width(self):
        whole = to_iso(datetime(2026, 1, 1, tzinfo=timezone.utc))
        fractional = to_iso(datetime(2026, 1, 1, 0, 0, 0, 5, tzinfo=timezone.utc))
        assert len(whole) == len(fractional)
        assert whole < fractional

    def test_naive_is_treated_as_utc(self):
        assert from_iso(to_iso(datetime(2026, 1, 1, 12))) == datetime(2026, 1, 1, 12, tzinfo=timezone.utc)

    def test_created_at_uses_clock(self, store, clock):
        uid = store.create_user(_user())
        assert store.get_user_by_id(uid).created_at == clock.now()


class TestTokens:
    def test_consume_only_once(self, store, clock):
        uid = store.create_user(_user())
        token_id = store.create_reset_token(
            PasswordResetToken(user_id=uid, token="abc", expires_at=clock.now() + timedelta(minutes=30))
        )
        assert store.consume_reset_token(token_id, uid, "$2b$04$first", clock.now())
        assert not store.consume_reset_token(token_id, uid, "$2b$04$second", clock.now())
        assert store.get_reset_token("abc").used_at == clock.now()
        assert store.get_user_by_id(uid).hashed_password == "$2b$04$first"

    def test_consume_refuses_expired_token(self, store, clock):
        uid = store.create_user(_user())
        expires_at = clock.now() + timedelta(minutes=30)
        token_id = store.create_reset_token(PasswordResetToken(user_id=uid, token="abc", expires_at=expires_at))
        assert not store.consume_reset_token(token_id, uid, "$2b$04$new", expires_at)
        assert store.get_reset_token("abc").used_at is None
        assert store.get_user_by_id(uid).hashed_password == "$2b$04$placeholder"

    def test_consume_for_deleted_owner_writes_nothing(self, store, clock):
        uid = store.create_user(_user())
        token_id = store.create_reset_token(
            PasswordResetToken(user_id=uid, token="abc", expires_at=clock.now() + timedelta(minutes=30))
        )
        store.delete_user(uid)
        assert not store.consume_reset_token(token_id, uid, "$2b$04$new", clock.now())
        assert store.get_reset_token("abc").used_at is None

    def test_blacklist_twice_keeps_one_row(self, store, clock):
        store.blacklist_token("tok", clock.now() + timedelta(hours=1))
        store.blacklist_token("tok", clock.now() + timedelta(hours=2))
        assert store.purge_blacklist(clock.now() + timedelta(hours=3)) == 1


class TestStoreStep:
    def test_integrity_error_uses_on_conflict(self):
        with pytest.raises(AlreadyExists):
            with store_step("create user", on_conflict=lambda: AlreadyExists("taken")):
                raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

    def test_integrity_error_without_on_conflict(self):
        with pytest.raises(StoreError) as exc_info:
            with store_step("add role to user"):
                raise IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed"))
        assert exc_info.value.step == "add role to user"

    def test_operational_error(self):
        with pytest.raises(StoreError) as exc_info:
            with store_step("purge token blacklist"):
                raise OperationalError("DELETE", {}, Exception("database is locked"))
        assert isinstance(exc_info.value.original_error, OperationalError)

    def test_other_errors_pass_through(self):
        with pytest.raises(KeyError):
            with store_step("load user"):
                raise KeyError("id")
