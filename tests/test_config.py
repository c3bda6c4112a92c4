"""
tests/test_config.py -- Tests for core/config.py Settings validation.

Covers:
  - SECRET_KEY required outside DEBUG; auto-generated in DEBUG
  - Keys shorter than 32 characters rejected in both modes
  - Lenient JWT_EXPIRES_IN parsing through token_ttl_hours
  - BCRYPT_ROUNDS and LOG_LEVEL bounds
  - The store and Settings share one default database URL
"""

from __future__ import annotations

import inspect

import pytest

from auth.store import CredentialStore
from core.config import DEFAULT_DATABASE_URL, Settings

GOOD_KEY = "k" * 32


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("DEBUG", "SECRET_KEY", "JWT_EXPIRES_IN", "BCRYPT_ROUNDS", "LOG_LEVEL", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)


def test_production_requires_secret_key():
    with pytest.raises(ValueError, match="SECRET_KEY is required"):
        Settings(_env_file=None)


def test_debug_generates_secret_key():
    settings = Settings(_env_file=None, debug=True)
    assert len(settings.secret_key) >= 32


def test_short_key_rejected_even_in_debug():
    with pytest.raises(ValueError, match="at least 32"):
        Settings(_env_file=None, debug=True, secret_key="short")


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", GOOD_KEY)
    monkeypatch.setenv("JWT_EXPIRES_IN", "6")
    settings = Settings(_env_file=None)
    assert settings.secret_key == GOOD_KEY
    assert settings.token_ttl_hours == 6


@pytest.mark.parametrize("raw", ["", "soon", "0", "-1"])
def test_bad_expiry_falls_back(raw):
    assert Settings(_env_file=None, secret_key=GOOD_KEY, jwt_expires_in=raw).token_ttl_hours == 24


def test_defaults():
    settings = Settings(_env_file=None, secret_key=GOOD_KEY)
    assert settings.bcrypt_rounds == 12
    assert settings.reset_token_ttl_minutes == 30
    assert settings.default_role == "user"
    assert settings.token_ttl_hours == 24


@pytest.mark.parametrize("rounds", [3, 32])
def test_bcrypt_rounds_bounds(rounds):
    with pytest.raises(ValueError):
        Settings(_env_file=None, secret_key=GOOD_KEY, bcrypt_rounds=rounds)


def test_log_level_normalized():
    assert Settings(_env_file=None, secret_key=GOOD_KEY, log_level="debug").log_level == "DEBUG"
    with pytest.raises(ValueError):
        Settings(_env_file=None, secret_key=GOOD_KEY, log_level="chatty")


def test_store_default_database_url_comes_from_config():
    store_default = inspect.signature(CredentialStore.__init__).parameters["db_url"].default
    assert store_default is DEFAULT_DATABASE_URL
    assert Settings(_env_file=None, secret_key=GOOD_KEY).database_url == DEFAULT_DATABASE_URL
