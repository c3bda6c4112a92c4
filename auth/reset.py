"""
auth/reset.py -- Password reset tokens: opaque, stored, single-use.

Unlike session tokens these carry no information: validity is decided by the
store row alone. A token is valid iff used_at IS NULL and now < expires_at.

Security design decisions:
  Entropy: secrets.token_hex(32) gives 256 bits. The raw token is returned
       to the caller for out-of-band delivery and never logged.

  Enumeration: request_reset() returns "" for an unknown email, with no
       error, so the response shape does not reveal whether an account
       exists.

  Atomic consume(): burning the token and writing the new password commit
       together in one store transaction, or neither does. The burn is
       conditional on used_at IS NULL and expiry, so when two requests race
       with the same token exactly one password is written and the other
       request gets InvalidOrExpiredToken with nothing changed. A store
       failure surfaces as StoreError; it is never swallowed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from auth.errors import InvalidOrExpiredToken, NotFound
from auth.models import PasswordResetToken
from auth.passwords import PasswordHasher
from auth.store import CredentialStore, store_step
from core.clock import Clock, SystemClock

logger = logging.getLogger("authcore.reset")

RESET_TOKEN_BYTES = 32
DEFAULT_RESET_TTL_MINUTES = 30


def generate_reset_token() -> str:
    return secrets.token_hex(RESET_TOKEN_BYTES)


class PasswordResetTokens:
    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        ttl_minutes: int = DEFAULT_RESET_TTL_MINUTES,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.ttl = timedelta(minutes=ttl_minutes)
        self.clock = clock or SystemClock()

    def request_reset(self, email: str) -> str:
        """Create a reset token for the account with `email`.

        Returns the raw token, or "" when no such account exists.
        """
        with store_step("look up user for reset"):
            user = self.store.get_user_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown account")
            return ""

        token = generate_reset_token()
        expires_at = self.clock.now() + self.ttl
        with store_step("create reset token"):
            self.store.create_reset_token(PasswordResetToken(user_id=user.id, token=token, expires_at=expires_at))
        logger.info("Password reset token issued for user %s", user.id)
        return token

    def consume(self, token: str, new_password: str) -> None:
        """Replace the owner's password and burn the token.

        Raises InvalidOrExpiredToken for unknown, used or expired tokens --
        including a retry of a token that was already consumed.
        """
        with store_step("look up reset token"):
            reset_token = self.store.get_reset_token(token)
        if reset_token is None or not reset_token.is_valid(self.clock.now()):
            raise InvalidOrExpiredToken()

        with store_step("load reset token owner"):
            user = self.store.get_user_by_id(reset_token.user_id)
        if user is None:
            raise NotFound("User", reset_token.user_id)

        hashed = self.hasher.hash(new_password)
        with store_step("consume reset token"):
            consumed = self.store.consume_reset_token(reset_token.id, user.id, hashed, self.clock.now())
        if not consumed:
            # Another request consumed the token between our read and write.
            raise InvalidOrExpiredToken()
        logger.info("Password reset completed for user %s", user.id)

    def purge_expired(self) -> int:
        with store_step("purge reset tokens"):
            return self.store.purge_reset_tokens(self.clock.now())
