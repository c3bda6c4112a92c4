"""
core/config.py -- Centralized configuration via pydantic-settings.

All environment variable reads for the auth core happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, jwt_expires_in -> JWT_EXPIRES_IN).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode (DEBUG=true) generates a signing key with a
      warning; production mode refuses to start without one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. HS256 signing relies
  on key entropy -- a short key weakens every session token.

Layer rule: core/ is the kernel. This module may not import from auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authcore.config")

DEFAULT_DATABASE_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'authcore.db'}"

DEFAULT_TOKEN_TTL_HOURS = 24


def parse_ttl_hours(raw: str | int | None) -> int:
    """Parse an operator-supplied session lifetime in hours.

    Falls back to 24 when the value is absent or not an integer. JWT_EXPIRES_IN
    has always been a free-form env string, so a typo must degrade to the
    default rather than crash the login path.

    This deliberately goes further than a plain integer parse: "0" and
    negative values are integers, yet they also fall back to 24. Honouring
    them would issue tokens that are already expired at the moment of issue.
    """
    if raw is None:
        return DEFAULT_TOKEN_TTL_HOURS
    try:
        hours = int(str(raw).strip())
    except ValueError:
        return DEFAULT_TOKEN_TTL_HOURS
    return hours if hours >= 1 else DEFAULT_TOKEN_TTL_HOURS


class Settings(BaseSettings):
    """Auth core settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    log_level: str = "INFO"
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = DEFAULT_DATABASE_URL

    # ------------------------------------------------------------------
    # Session tokens
    # ------------------------------------------------------------------

    # Kept as the raw string; token_ttl_hours does the lenient parse.
    jwt_expires_in: str | None = str(DEFAULT_TOKEN_TTL_HOURS)

    # ------------------------------------------------------------------
    # Passwords and reset tokens
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 12
    reset_token_ttl_minutes: int = 30

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    default_role: str = "user"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = str(v).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown LOG_LEVEL: {v!r}")
        return level

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        # bcrypt.gensalt() accepts 4..31
        if not 4 <= v <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return v

    @field_validator("reset_token_ttl_minutes")
    @classmethod
    def validate_reset_ttl(cls, v: int) -> int:
        if v < 1:
            raise ValueError("RESET_TOKEN_TTL_MINUTES must be at least 1.")
        return v

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @property
    def token_ttl_hours(self) -> int:
        return parse_ttl_hours(self.jwt_expires_in)


@lru_cache
def get_settings() -> Settings:
    """Return the Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables, or build Settings(...)
    directly and pass it to the services.
    """
    return Settings()
