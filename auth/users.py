"""
auth/users.py -- User administration and role assignment.

Account creation goes through AuthService.register(); this service covers
what an administrator does afterwards: listing, editing, deactivating,
deleting, password changes and role assignment.
"""

from __future__ import annotations

import logging

from auth.errors import AlreadyExists, NotFound
from auth.models import Role, User
from auth.passwords import PasswordHasher
from auth.store import CredentialStore, store_step

logger = logging.getLogger("authcore.users")


def _email_taken() -> AlreadyExists:
    return AlreadyExists("A user with that email already exists")


class UserService:
    def __init__(self, store: CredentialStore, hasher: PasswordHasher) -> None:
        self.store = store
        self.hasher = hasher

    def get_user(self, user_id: int) -> User:
        with store_step("load user with roles"):
            user = self.store.get_user_with_roles(user_id)
        if user is None:
            raise NotFound("User", user_id)
        return user

    def list_users(self, limit: int = 100, offset: int = 0, active_only: bool = False) -> list[User]:
        with store_step("list users"):
            return self.store.list_users(limit=limit, offset=offset, active_only=active_only)

    def update_user(self, user_id: int, name: str = "", email: str = "", is_active: bool | None = None) -> User:
        """Update profile fields. Empty strings and None leave fields unchanged."""
        user = self.get_user(user_id)
        fields: dict = {}
        if name:
            fields["name"] = name
        if email and email != user.email:
            with store_step("check email"):
                other = self.store.get_user_by_email(email)
            if other is not None and other.id != user_id:
                raise _email_taken()
            fields["email"] = email
        if is_active is not None:
            fields["is_active"] = is_active
        if fields:
            with store_step("update user", on_conflict=_email_taken):
                self.store.update_user(user_id, **fields)
        return self.get_user(user_id)

    def update_password(self, user_id: int, password: str) -> None:
        self.get_user(user_id)
        hashed = self.hasher.hash(password)
        with store_step("update password"):
            self.store.update_user(user_id, hashed_password=hashed)
        logger.info("Password changed for user %s", user_id)

    def delete_user(self, user_id: int) -> None:
        self.get_user(user_id)
        with store_step("delete user"):
            self.store.delete_user(user_id)
        logger.info("Deleted user %s", user_id)

    def add_role_to_user(self, user_id: int, role_id: int) -> None:
        self.get_user(user_id)
        with store_step("get role"):
            role = self.store.get_role(role_id)
        if role is None:
            raise NotFound("Role", role_id)
        with store_step("add role to user"):
            self.store.add_role_to_user(user_id, role_id)

    def remove_role_from_user(self, user_id: int, role_id: int) -> None:
        self.get_user(user_id)
        with store_step("remove role from user"):
            self.store.remove_role_from_user(user_id, role_id)

    def get_user_roles(self, user_id: int) -> list[Role]:
        return self.get_user(user_id).roles
