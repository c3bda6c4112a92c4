"""
auth/dependencies.py -- FastAPI Depends() helpers for the surrounding service.

The embedding app stores an AuthService on app.state.auth at startup. Routes
then declare what they need:

    @router.get("/invoices", dependencies=[Depends(require_permission("invoice", "list"))])
    def list_invoices(): ...

    @router.get("/me")
    def me(user: User = Depends(get_current_user)): ...

Flow per request:
  1. Authorization: Bearer <token> header is required.
  2. SessionTokens.authenticate(): blacklist check first, then signature and
     expiry verification.
  3. get_current_user() re-reads the user from the store; the role snapshot
     inside the token is not used for decisions. Inactive users get 401.
  4. require_permission()/require_role() evaluate against that fresh user.

auth_error_to_http() is the single mapping from AuthError codes to HTTP
status codes. Messages for 401s are generic so the response does not say
why a token was rejected.

Layer rule: this is the only auth/ module that imports fastapi.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Depends, HTTPException, Request

from auth import rbac
from auth.errors import (
    AlreadyExists,
    AuthError,
    InvalidCredentials,
    InvalidOrExpiredToken,
    InvalidSignature,
    MalformedToken,
    NotFound,
    TokenExpired,
    TokenRevoked,
    ValidationError,
)
from auth.models import SessionClaims, User
from auth.service import AuthService

logger = logging.getLogger("authcore.auth.dependencies")

_UNAUTHORIZED = (InvalidCredentials, InvalidSignature, MalformedToken, TokenExpired, TokenRevoked)


def auth_error_to_http(exc: AuthError) -> HTTPException:
    """Translate an AuthError into the HTTPException a route should raise."""
    if isinstance(exc, _UNAUTHORIZED):
        return HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    if isinstance(exc, NotFound):
        status = 404
    elif isinstance(exc, AlreadyExists):
        status = 409
    elif isinstance(exc, (ValidationError, InvalidOrExpiredToken)):
        status = 422
    else:
        status = 500
    message = exc.message if status != 500 else "An unexpected error occurred."
    return HTTPException(status_code=status, detail={"code": exc.code, "message": message})


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def get_current_claims(request: Request) -> SessionClaims:
    """Require a valid, unrevoked Bearer token. Raises HTTP 401 otherwise."""
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return get_auth_service(request).session_tokens.authenticate(token)
    except AuthError as exc:
        logger.info("Bearer token rejected: %s", exc.code)
        raise auth_error_to_http(exc) from exc


def get_current_user(request: Request, claims: SessionClaims = Depends(get_current_claims)) -> User:
    """Require authentication and return the user as currently stored."""
    try:
        user = get_auth_service(request).get_user(claims.user.id)
    except NotFound as exc:
        raise auth_error_to_http(InvalidCredentials()) from exc
    except AuthError as exc:
        raise auth_error_to_http(exc) from exc
    if not user.is_active:
        raise auth_error_to_http(InvalidCredentials())
    return user


def require_permission(resource: str, action: str) -> Callable[..., User]:
    """Return a dependency that raises HTTP 403 unless the user may do `action` on `resource`."""

    def permission_checker(user: User = Depends(get_current_user)) -> User:
        if not rbac.has_permission(user, resource, action):
            logger.warning("Permission denied: user %s lacks %s:%s", user.id, resource, action)
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": "Insufficient permissions."},
            )
        return user

    return permission_checker


def require_role(*role_names: str) -> Callable[..., User]:
    """Return a dependency that raises HTTP 403 unless the user holds one of the active roles."""

    def role_checker(user: User = Depends(get_current_user)) -> User:
        if not any(rbac.has_role(user, name) for name in role_names):
            logger.warning("Role check failed: user %s has none of %s", user.id, ", ".join(role_names))
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": "Insufficient role permissions."},
            )
        return user

    return role_checker
