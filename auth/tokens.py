"""
auth/tokens.py -- Session tokens: JWT issue, verify, revoke.

Security design decisions:
  JWT: python-jose with HS256 only. The token carries a snapshot of the user
       (id, name, email, roles with permissions -- never the password hash)
       plus iat/exp. It is self-contained: authenticity is checked with the
       secret alone, no store lookup.

  Algorithm confusion: the header "alg" is read before verification and must
       be exactly HS256. A token announcing "none", RS256, HS512 or anything
       else fails with InvalidSignature. jws.verify() is also pinned to
       HS256, so the token's own header is never what selects the algorithm.

  Expiry: checked against the injected clock, not python-jose's wall clock,
       so tests can freeze time. now >= exp is expired.

  Revocation: stateless tokens cannot be recalled, so logout writes the raw
       token to the blacklist table. authenticate() checks the blacklist
       before spending any work on signature verification.

  Staleness: the embedded role snapshot reflects the moment of issue. Use it
       for display; authorization decisions go through
       AuthService.check_permission(), which re-reads the store.

Layer rule: may import from core/ (clock) and auth/ only.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from jose import jws, jwt
from jose.exceptions import JOSEError

from auth.errors import InvalidSignature, MalformedToken, TokenExpired, TokenRevoked
from auth.models import SessionClaims, User, from_snapshot, to_snapshot
from auth.store import CredentialStore, store_step
from core.clock import Clock, SystemClock
from core.config import DEFAULT_TOKEN_TTL_HOURS, parse_ttl_hours

logger = logging.getLogger("authcore.tokens")

ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Pure encode / decode
# ---------------------------------------------------------------------------


def issue_token(user: User, secret: str, ttl_hours: int | str | None, now: datetime) -> str:
    """Encode a signed session token for `user`.

    ttl_hours accepts the raw operator value; anything that is not a positive
    integer falls back to 24 hours.
    """
    if not secret:
        raise ValueError("Session token secret must not be empty.")
    issued_at = int(now.timestamp())
    expires_at = issued_at + parse_ttl_hours(ttl_hours) * 3600
    payload = {
        "sub": str(user.id),
        "user": to_snapshot(user),
        "iat": issued_at,
        "exp": expires_at,
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def verify_token(token: str, secret: str, now: datetime) -> SessionClaims:
    """Verify a session token and return its claims.

    Raises:
        MalformedToken:   header or payload cannot be parsed, or required
                          claims are missing or mistyped.
        InvalidSignature: header alg is not HS256, or the MAC does not match.
        TokenExpired:     now >= exp.
    """
    try:
        header = jwt.get_unverified_header(token)
        jwt.get_unverified_claims(token)
    except JOSEError as exc:
        raise MalformedToken() from exc

    if header.get("alg") != ALGORITHM:
        raise InvalidSignature(f"Unexpected token algorithm: {header.get('alg')!r}")

    try:
        raw = jws.verify(token, secret, algorithms=[ALGORITHM])
    except JOSEError as exc:
        raise InvalidSignature() from exc

    try:
        payload = json.loads(raw)
        issued_at = _timestamp(payload["iat"])
        expires_at = _timestamp(payload["exp"])
        user = from_snapshot(payload["user"])
    except (ValueError, KeyError, TypeError) as exc:
        raise MalformedToken() from exc

    if now >= expires_at:
        raise TokenExpired()
    return SessionClaims(user=user, issued_at=issued_at, expires_at=expires_at)


def _timestamp(value) -> datetime:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError("timestamp claim must be an integer")
    return datetime.fromtimestamp(value, tz=timezone.utc)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class SessionTokens:
    """Issue, verify and revoke session tokens bound to one secret and store."""

    def __init__(
        self,
        store: CredentialStore,
        secret: str,
        ttl_hours: int | str | None = DEFAULT_TOKEN_TTL_HOURS,
        clock: Clock | None = None,
    ) -> None:
        if not secret:
            raise ValueError("Session token secret must not be empty.")
        self.store = store
        self._secret = secret
        self.ttl_hours = parse_ttl_hours(ttl_hours)
        self.clock = clock or SystemClock()

    def issue(self, user: User, ttl_hours: int | str | None = None) -> str:
        return issue_token(user, self._secret, ttl_hours if ttl_hours is not None else self.ttl_hours, self.clock.now())

    def verify(self, token: str) -> SessionClaims:
        return verify_token(token, self._secret, self.clock.now())

    def revoke(self, token: str, expires_at: datetime) -> None:
        """Blacklist `token` until `expires_at`. Revoking twice is not an error."""
        with store_step("blacklist token"):
            self.store.blacklist_token(token, expires_at)
        logger.info("Session token revoked (expires %s)", expires_at.isoformat())

    def is_revoked(self, token: str) -> bool:
        with store_step("check token blacklist"):
            return self.store.is_token_blacklisted(token)

    def authenticate(self, token: str) -> SessionClaims:
        """Blacklist check, then full verification. Use on every request."""
        if self.is_revoked(token):
            raise TokenRevoked()
        return self.verify(token)

    def purge_expired(self) -> int:
        """Drop blacklist rows whose tokens have expired on their own."""
        with store_step("purge token blacklist"):
            removed = self.store.purge_blacklist(self.clock.now())
        if removed:
            logger.info("Purged %d expired blacklist entries", removed)
        return removed
