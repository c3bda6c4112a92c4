"""
auth/rbac.py -- Permission evaluation over a user's resolved roles.

Pure, read-only functions. They never touch the store: callers load the user
with roles and permissions (CredentialStore.get_user_with_roles) and pass it
in. Because nothing is cached here, a decision is only as fresh as the User
object it is given -- AuthService always re-reads before deciding.

Rules:
  - Roles with is_active=False are skipped entirely, for permission checks
    and for has_role().
  - A permission matches when its resource equals the requested resource and
    its action equals the requested action or is "manage".
"""

from __future__ import annotations

from auth.models import ACTION_MANAGE, ROLE_ADMIN, Permission, Role, User


def _active_roles(user: User) -> list[Role]:
    return [role for role in user.roles if role.is_active]


def has_permission(user: User, resource: str, action: str) -> bool:
    for role in _active_roles(user):
        for permission in role.permissions:
            if permission.resource == resource and permission.action in (action, ACTION_MANAGE):
                return True
    return False


def has_role(user: User, role_name: str) -> bool:
    return any(role.name == role_name for role in _active_roles(user))


def is_admin(user: User) -> bool:
    return has_role(user, ROLE_ADMIN)


def effective_permissions(user: User) -> list[Permission]:
    """Union of permissions across active roles, deduplicated by id.

    Order is first-seen (role order, then permission order within a role),
    so output is stable for a given store state.
    """
    seen: dict[int | None, Permission] = {}
    for role in _active_roles(user):
        for permission in role.permissions:
            seen.setdefault(permission.id, permission)
    return list(seen.values())
