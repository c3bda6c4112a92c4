"""
auth/permissions.py -- Permission administration.

A permission is identified twice: by its unique name ("invoice:read") and by
its unique (resource, action) pair. create_permission() checks the pair first
so a differently-named duplicate fails with DuplicatePermission rather than
slipping in; the store's unique indexes back both checks under concurrency.
"""

from __future__ import annotations

import logging

from auth.errors import AlreadyExists, DuplicatePermission, NotFound
from auth.models import ACTION_MANAGE, ACTIONS, RESOURCE_SYSTEM, RESOURCES, Permission
from auth.store import CredentialStore, store_step

logger = logging.getLogger("authcore.permissions")


class PermissionService:
    def __init__(self, store: CredentialStore) -> None:
        self.store = store

    def create_permission(self, name: str, resource: str, action: str, description: str = "") -> Permission:
        with store_step("check existing permission"):
            if self.store.get_permission_by_resource_action(resource, action) is not None:
                raise DuplicatePermission(resource, action)
            if self.store.get_permission_by_name(name) is not None:
                raise AlreadyExists(f"Permission name {name!r} already exists")

        permission = Permission(name=name, resource=resource, action=action, description=description)
        # The check above can lose a race; the index decides. Whichever unique
        # key tripped, report it the way a caller would most likely hit it.
        with store_step("create permission", on_conflict=lambda: self._conflict(name, resource, action)):
            permission.id = self.store.create_permission(permission)
        logger.info("Created permission %s (%s:%s)", name, resource, action)
        return permission

    def _conflict(self, name: str, resource: str, action: str) -> AlreadyExists:
        if self.store.get_permission_by_name(name) is not None:
            return AlreadyExists(f"Permission name {name!r} already exists")
        return DuplicatePermission(resource, action)

    def get_permission(self, permission_id: int) -> Permission:
        with store_step("get permission"):
            permission = self.store.get_permission(permission_id)
        if permission is None:
            raise NotFound("Permission", permission_id)
        return permission

    def get_permission_by_name(self, name: str) -> Permission:
        with store_step("get permission by name"):
            permission = self.store.get_permission_by_name(name)
        if permission is None:
            raise NotFound("Permission", name)
        return permission

    def list_permissions(self, limit: int = 100, offset: int = 0, resource: str | None = None) -> list[Permission]:
        with store_step("list permissions"):
            return self.store.list_permissions(limit=limit, offset=offset, resource=resource)

    def update_permission(self, permission_id: int, name: str = "", description: str = "") -> Permission:
        """Rename or re-describe a permission. Empty arguments leave fields unchanged."""
        permission = self.get_permission(permission_id)
        fields: dict = {}
        if name and name != permission.name:
            fields["name"] = name
        if description:
            fields["description"] = description
        if fields:
            with store_step(
                "update permission", on_conflict=lambda: AlreadyExists(f"Permission name {name!r} already exists")
            ):
                self.store.update_permission(permission_id, **fields)
        return self.get_permission(permission_id)

    def delete_permission(self, permission_id: int) -> None:
        self.get_permission(permission_id)
        with store_step("delete permission"):
            self.store.delete_permission(permission_id)
        logger.info("Deleted permission %s", permission_id)

    def get_resource_actions(self, resource: str) -> list[str]:
        with store_step("list resource actions"):
            return self.store.resource_actions(resource)

    def get_all_resources(self) -> list[str]:
        with store_step("list resources"):
            return self.store.all_resources()

    def initialize_default_permissions(self) -> list[Permission]:
        """Create "resource:action" for every known resource and action.

        The system resource only gets "manage". Existing pairs are left
        untouched, so this is safe to run on every deploy. Returns the
        permissions that were created by this call.
        """
        created = []
        for resource in RESOURCES:
            for action in ACTIONS:
                if resource == RESOURCE_SYSTEM and action != ACTION_MANAGE:
                    continue
                with store_step("check default permission"):
                    exists = self.store.get_permission_by_resource_action(resource, action) is not None
                if exists:
                    continue
                created.append(
                    self.create_permission(f"{resource}:{action}", resource, action, f"Allow {action} on {resource}")
                )
        return created
