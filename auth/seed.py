"""
auth/seed.py -- Idempotent seeding of default permissions, roles and users.

Run via `python main.py seed`. Every step checks before it writes, so seeding
an already-seeded database changes nothing.

Grants:
  admin -- every permission.
  user  -- read/list on customers and invoices, read on users.
  moderator, guest -- created empty; grant through RoleService as needed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from auth.errors import AlreadyExists
from auth.models import (
    ACTION_LIST,
    ACTION_READ,
    RESOURCE_CUSTOMER,
    RESOURCE_INVOICE,
    RESOURCE_USER,
    ROLE_ADMIN,
    ROLE_USER,
)
from auth.permissions import PermissionService
from auth.roles import RoleService
from auth.service import AuthService
from auth.users import UserService

logger = logging.getLogger("authcore.seed")

USER_ROLE_GRANTS = (
    (RESOURCE_CUSTOMER, ACTION_READ),
    (RESOURCE_CUSTOMER, ACTION_LIST),
    (RESOURCE_INVOICE, ACTION_READ),
    (RESOURCE_INVOICE, ACTION_LIST),
    (RESOURCE_USER, ACTION_READ),
)

DEMO_USERS = (
    ("Admin User", "admin@example.com", "admin123456", ROLE_ADMIN),
    ("John Doe", "user@example.com", "user123456", ROLE_USER),
)


@dataclass
class SeedReport:
    permissions_created: int = 0
    roles_created: int = 0
    users_created: list[str] = field(default_factory=list)


def seed(auth: AuthService, with_demo_users: bool = False) -> SeedReport:
    """Create default permissions and roles, wire grants, optionally add demo users."""
    store = auth.store
    permissions = PermissionService(store)
    roles = RoleService(store)
    users = UserService(store, auth.hasher)
    report = SeedReport()

    report.permissions_created = len(permissions.initialize_default_permissions())
    report.roles_created = len(roles.initialize_default_roles())
    logger.info("Default permissions: %d created", report.permissions_created)
    logger.info("Default roles: %d created", report.roles_created)

    admin = roles.get_role_by_name(ROLE_ADMIN)
    for permission in permissions.list_permissions(limit=10_000):
        roles.add_permission_to_role(admin.id, permission.id)

    user_role = roles.get_role_by_name(ROLE_USER)
    for resource, action in USER_ROLE_GRANTS:
        permission = store.get_permission_by_resource_action(resource, action)
        if permission is not None:
            roles.add_permission_to_role(user_role.id, permission.id)

    if with_demo_users:
        for name, email, password, role_name in DEMO_USERS:
            try:
                created = auth.register(name, email, password)
            except AlreadyExists:
                logger.info("Demo user %s already present", email)
                continue
            users.add_role_to_user(created.id, roles.get_role_by_name(role_name).id)
            report.users_created.append(email)
    return report
