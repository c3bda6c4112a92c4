"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. Direct bcrypt usage is simpler and has no
compatibility shim.

The work factor is configurable (Settings.bcrypt_rounds). Tests use the
minimum (4) to keep the suite fast; production keeps the default of 12.

hash() lets bcrypt errors propagate. A password that cannot be hashed must
fail the calling operation -- there is no fallback that stores anything else.
"""

from __future__ import annotations

import bcrypt

_DUMMY_PASSWORD = b"authcore_timing_dummy"


class PasswordHasher:
    """One-way adaptive hashing with a fixed work factor per instance."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        # Built here, not on first use, so the first unknown-email login is
        # not measurably slower than a wrong-password one.
        self._dummy_hash: bytes = bcrypt.hashpw(_DUMMY_PASSWORD, bcrypt.gensalt(rounds=rounds))

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the plaintext password.

        bcrypt only considers the first 72 bytes; recent bcrypt releases
        raise ValueError for longer input instead of truncating. That error
        propagates to the caller.
        """
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, hashed: str, plain: str) -> bool:
        """Return True if the plaintext matches the stored hash.

        A corrupt stored hash or an over-long candidate verifies as False
        rather than raising: from the login path's point of view both are
        simply "does not match".
        """
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False

    def equalize(self, plain: str) -> None:
        """Spend one bcrypt verification for a login against an unknown email.

        Unknown-email and wrong-password attempts then take the same time, so
        response latency does not reveal whether an account exists.
        """
        try:
            bcrypt.checkpw(plain.encode("utf-8"), self._dummy_hash)
        except ValueError:
            return
