"""
auth/service.py -- AuthService: the entry point the surrounding service calls.

Composes the credential store, password hasher, session tokens and reset
tokens into login, registration, logout, password reset and permission
checks. Holds no state of its own between calls.

Rules every method follows:
  - Store failures surface as StoreError naming the failed step. Nothing is
    retried here; retry policy belongs to the caller.
  - Validation failures are raised before any write.
  - Permission and role decisions re-read the user, roles and permissions
    from the store on every call. Nothing is cached across calls, so a role
    change or revocation takes effect on the very next check.

Information hiding:
  login() raises the same InvalidCredentials for an unknown email and a wrong
  password, and spends one bcrypt verification either way.
  request_password_reset() returns "" for an unknown email.
"""

from __future__ import annotations

import logging
from datetime import datetime

from auth import rbac
from auth.errors import AlreadyExists, InvalidCredentials, NotFound, ValidationError
from auth.models import Permission, User
from auth.passwords import PasswordHasher
from auth.reset import PasswordResetTokens
from auth.store import CredentialStore, store_step
from auth.tokens import SessionTokens
from core.clock import Clock, SystemClock
from core.config import Settings

logger = logging.getLogger("authcore.auth")


class AuthService:
    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        session_tokens: SessionTokens,
        reset_tokens: PasswordResetTokens,
        default_role: str | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.session_tokens = session_tokens
        self.reset_tokens = reset_tokens
        self.default_role = default_role
        self.clock = clock or SystemClock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: CredentialStore | None = None,
        clock: Clock | None = None,
    ) -> AuthService:
        """Wire the full service graph from a Settings instance."""
        clock = clock or SystemClock()
        store = store or CredentialStore(settings.database_url, clock=clock)
        hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
        return cls(
            store=store,
            hasher=hasher,
            session_tokens=SessionTokens(store, settings.secret_key, settings.token_ttl_hours, clock=clock),
            reset_tokens=PasswordResetTokens(store, hasher, settings.reset_token_ttl_minutes, clock=clock),
            default_role=settings.default_role,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> User:
        """Authenticate by email and password; return the user with roles.

        Inactive users are returned like any other. Whether they may proceed
        is the caller's decision (check user.is_active).
        """
        with store_step("look up user for login"):
            user = self.store.get_user_by_email_with_roles(email)
        if user is None or not user.hashed_password:
            self.hasher.equalize(password)
            logger.info("Login failed")
            raise InvalidCredentials()
        if not self.hasher.verify(user.hashed_password, password):
            logger.info("Login failed")
            raise InvalidCredentials()

        now = self.clock.now()
        with store_step("update last login"):
            self.store.update_last_login(user.id, now)
        user.last_login = now
        logger.info("Login succeeded for user %s", user.id)
        return user

    def issue_token(self, user: User) -> str:
        """Issue a session token embedding the user's current roles."""
        return self.session_tokens.issue(self.get_user(user.id))

    def register(self, name: str, email: str, password: str) -> User:
        """Create an account. Raises AlreadyExists if the email is taken.

        The plaintext password is hashed here and goes no further. When a
        default role is configured and exists it is attached as a second
        step; if that step fails the user exists without the role and the
        StoreError says so.
        """
        with store_step("look up existing user"):
            existing = self.store.get_user_by_email(email)
        if existing is not None:
            raise AlreadyExists("A user with that email already exists")

        hashed = self.hasher.hash(password)
        with store_step("create user", on_conflict=lambda: AlreadyExists("A user with that email already exists")):
            user_id = self.store.create_user(User(name=name, email=email, hashed_password=hashed))

        if self.default_role:
            with store_step("assign default role"):
                role = self.store.get_role_by_name(self.default_role)
                if role is not None:
                    self.store.add_role_to_user(user_id, role.id)

        logger.info("Registered user %s", user_id)
        return self.get_user(user_id)

    def logout(self, token: str, expires_at: datetime) -> None:
        self.session_tokens.revoke(token, expires_at)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def request_password_reset(self, email: str) -> str:
        return self.reset_tokens.request_reset(email)

    def reset_password(self, token: str, password: str, confirm: str | None = None) -> None:
        """Complete a reset. `confirm`, when the caller collects one, must match."""
        if confirm is not None and confirm != password:
            raise ValidationError("Password confirmation does not match")
        self.reset_tokens.consume(token, password)

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def check_permission(self, user_id: int, resource: str, action: str) -> bool:
        allowed = rbac.has_permission(self.get_user(user_id), resource, action)
        if not allowed:
            logger.info("Permission denied: user %s lacks %s:%s", user_id, resource, action)
        return allowed

    def has_role(self, user_id: int, role_name: str) -> bool:
        return rbac.has_role(self.get_user(user_id), role_name)

    def effective_permissions(self, user_id: int) -> list[Permission]:
        return rbac.effective_permissions(self.get_user(user_id))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_user(self, user_id: int) -> User:
        """Fresh read of a user with roles and permissions."""
        with store_step("load user with roles"):
            user = self.store.get_user_with_roles(user_id)
        if user is None:
            raise NotFound("User", user_id)
        return user

    def get_user_by_email(self, email: str) -> User:
        with store_step("load user by email"):
            user = self.store.get_user_by_email_with_roles(email)
        if user is None:
            raise NotFound("User", email)
        return user
