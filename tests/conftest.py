"""
tests/conftest.py -- Shared fixtures for the auth core test suite.

This module provides:
  - FrozenClock: a settable clock so expiry boundaries are exact
  - store: an isolated in-memory CredentialStore per test
  - settings: Settings with a fixed secret and bcrypt's minimum cost (4)
    so the suite does not spend seconds per hash
  - auth / roles / permissions / users: services wired to the same store
  - make_user: register a user and optionally attach roles by name

Design: plain sqlite:///:memory: is fine for everything that runs on the test
thread (SQLAlchemy keeps one connection per thread for :memory:). The FastAPI
dependency tests build their own named shared-memory store because TestClient
runs sync dependencies in a worker thread.
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone

import pytest

from auth.models import User
from auth.permissions import PermissionService
from auth.roles import RoleService
from auth.service import AuthService
from auth.store import CredentialStore
from auth.users import UserService
from core.config import Settings

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"
T0 = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Clock whose time only moves when a test moves it."""

    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> None:
        self.current += timedelta(**delta)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        secret_key=TEST_SECRET,
        database_url="sqlite:///:memory:",
        bcrypt_rounds=4,
        jwt_expires_in="24",
    )


@pytest.fixture
def store(clock: FrozenClock) -> Generator[CredentialStore, None, None]:
    s = CredentialStore("sqlite:///:memory:", clock=clock)
    yield s
    s.close()


@pytest.fixture
def auth(store: CredentialStore, settings: Settings, clock: FrozenClock) -> AuthService:
    return AuthService.from_settings(settings, store=store, clock=clock)


@pytest.fixture
def roles(store: CredentialStore) -> RoleService:
    return RoleService(store)


@pytest.fixture
def permissions(store: CredentialStore) -> PermissionService:
    return PermissionService(store)


@pytest.fixture
def users(auth: AuthService) -> UserService:
    return UserService(auth.store, auth.hasher)


@pytest.fixture
def make_user(auth: AuthService, roles: RoleService, users: UserService) -> Callable[..., User]:
    """Register a user and attach the named roles (created on demand)."""

    counter = {"n": 0}

    def _make(email: str | None = None, password: str = "correct-horse", role_names: tuple[str, ...] = ()) -> User:
        counter["n"] += 1
        email = email or f"user{counter['n']}@example.com"
        user = auth.register(f"User {counter['n']}", email, password)
        for name in role_names:
            existing = auth.store.get_role_by_name(name)
            role = existing if existing is not None else roles.create_role(name)
            users.add_role_to_user(user.id, role.id)
        return auth.get_user(user.id)

    return _make
