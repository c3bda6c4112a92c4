"""
auth/errors.py -- Exception taxonomy for the auth core.

Every failure the core reports is an AuthError subclass with a stable `code`
string. The core never catches its own errors to retry; they propagate to the
surrounding service, which maps them to transport responses (see
auth/dependencies.auth_error_to_http for the HTTP mapping).

Information hiding:
  InvalidCredentials carries one fixed message for both "unknown email" and
  "wrong password". Do not add detail to it.

Layer rule: no imports from anything but the stdlib.
"""

from __future__ import annotations

from typing import Any


class AuthError(Exception):
    """Base class for all auth core errors."""

    code = "auth_error"
    default_message = "Authentication error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    default_message = "Invalid email or password"


class AlreadyExists(AuthError):
    code = "already_exists"
    default_message = "Resource already exists"


class DuplicatePermission(AlreadyExists):
    """A permission for the same (resource, action) pair already exists."""

    code = "duplicate_permission"
    default_message = "Permission already exists for this resource and action"

    def __init__(self, resource: str, action: str) -> None:
        super().__init__(f"Permission already exists for {resource}:{action}")
        self.resource = resource
        self.action = action


class NotFound(AuthError):
    code = "not_found"
    default_message = "Resource not found"

    def __init__(self, entity: str, key: Any = None) -> None:
        key_info = f" ({key})" if key is not None else ""
        super().__init__(f"{entity} not found{key_info}")
        self.entity = entity
        self.key = key


class InvalidOrExpiredToken(AuthError):
    """Password-reset token is unknown, already used, or past its expiry."""

    code = "invalid_or_expired_token"
    default_message = "Invalid or expired reset token"


class TokenExpired(AuthError):
    code = "token_expired"
    default_message = "Token has expired"


class InvalidSignature(AuthError):
    code = "invalid_signature"
    default_message = "Token signature is invalid"


class MalformedToken(AuthError):
    code = "malformed_token"
    default_message = "Token is malformed"


class TokenRevoked(AuthError):
    code = "token_revoked"
    default_message = "Token has been revoked"


class ValidationError(AuthError):
    code = "validation_error"
    default_message = "Validation failed"


class StoreError(AuthError):
    """A persistence call failed.

    `step` names the operation that failed so callers of multi-step flows
    (create role then attach permissions, reset password then mark token used)
    know what was and was not applied. The core does not roll back across
    store calls.
    """

    code = "store_error"
    default_message = "Credential store operation failed"

    def __init__(self, step: str, original_error: Exception | None = None) -> None:
        error_info = f": {original_error}" if original_error is not None else ""
        super().__init__(f"Store operation failed during {step}{error_info}")
        self.step = step
        self.original_error = original_error
