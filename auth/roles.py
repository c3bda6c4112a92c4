"""
auth/roles.py -- Role administration and role/permission association.

create_role() validates every permission id before writing anything, then
inserts the role and its permission links in a single store transaction.
add/remove of a role-permission pair is idempotent.
"""

from __future__ import annotations

import logging

from auth.errors import AlreadyExists, NotFound
from auth.models import ROLE_ADMIN, ROLE_GUEST, ROLE_MODERATOR, ROLE_USER, Role, User
from auth.store import CredentialStore, store_step

logger = logging.getLogger("authcore.roles")

DEFAULT_ROLES = (
    (ROLE_ADMIN, "Administrator with full access"),
    (ROLE_USER, "Regular user with basic access"),
    (ROLE_MODERATOR, "Moderator with limited admin access"),
    (ROLE_GUEST, "Guest user with read-only access"),
)


def _role_exists(name: str) -> AlreadyExists:
    return AlreadyExists(f"Role {name!r} already exists")


class RoleService:
    def __init__(self, store: CredentialStore) -> None:
        self.store = store

    def create_role(self, name: str, description: str = "", permission_ids: list[int] | None = None) -> Role:
        permission_ids = list(permission_ids or [])
        with store_step("check existing role"):
            if self.store.get_role_by_name(name) is not None:
                raise _role_exists(name)
            for permission_id in permission_ids:
                if self.store.get_permission(permission_id) is None:
                    raise NotFound("Permission", permission_id)

        with store_step("create role with permissions", on_conflict=lambda: _role_exists(name)):
            role_id = self.store.create_role(Role(name=name, description=description), permission_ids)
        logger.info("Created role %s with %d permissions", name, len(permission_ids))
        return self.get_role(role_id)

    def get_role(self, role_id: int) -> Role:
        with store_step("get role"):
            role = self.store.get_role(role_id)
        if role is None:
            raise NotFound("Role", role_id)
        return role

    def get_role_by_name(self, name: str) -> Role:
        with store_step("get role by name"):
            role = self.store.get_role_by_name(name)
        if role is None:
            raise NotFound("Role", name)
        return role

    def list_roles(self, limit: int = 100, offset: int = 0, active_only: bool = False) -> list[Role]:
        with store_step("list roles"):
            return self.store.list_roles(limit=limit, offset=offset, active_only=active_only)

    def update_role(
        self,
        role_id: int,
        name: str = "",
        description: str = "",
        is_active: bool | None = None,
    ) -> Role:
        """Update a role. Empty strings and None leave fields unchanged."""
        role = self.get_role(role_id)
        fields: dict = {}
        if name and name != role.name:
            with store_step("check role name"):
                other = self.store.get_role_by_name(name)
            if other is not None and other.id != role_id:
                raise _role_exists(name)
            fields["name"] = name
        if description:
            fields["description"] = description
        if is_active is not None:
            fields["is_active"] = is_active
        if fields:
            with store_step("update role", on_conflict=lambda: _role_exists(name)):
                self.store.update_role(role_id, **fields)
            logger.info("Updated role %s (%s)", role_id, ", ".join(sorted(fields)))
        return self.get_role(role_id)

    def delete_role(self, role_id: int) -> None:
        self.get_role(role_id)
        with store_step("delete role"):
            self.store.delete_role(role_id)
        logger.info("Deleted role %s", role_id)

    def add_permission_to_role(self, role_id: int, permission_id: int) -> None:
        self.get_role(role_id)
        with store_step("get permission"):
            permission = self.store.get_permission(permission_id)
        if permission is None:
            raise NotFound("Permission", permission_id)
        with store_step("add permission to role"):
            self.store.add_permission_to_role(role_id, permission_id)

    def remove_permission_from_role(self, role_id: int, permission_id: int) -> None:
        self.get_role(role_id)
        with store_step("remove permission from role"):
            self.store.remove_permission_from_role(role_id, permission_id)

    def users_with_role(self, role_id: int) -> list[User]:
        self.get_role(role_id)
        with store_step("list users with role"):
            return self.store.users_with_role(role_id)

    def initialize_default_roles(self) -> list[Role]:
        """Create admin, user, moderator and guest if missing. Returns new roles."""
        created = []
        for name, description in DEFAULT_ROLES:
            with store_step("check default role"):
                exists = self.store.get_role_by_name(name) is not None
            if not exists:
                created.append(self.create_role(name, description))
        return created
