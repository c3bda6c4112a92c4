"""
auth/models.py -- Domain dataclasses for authentication and RBAC entities.

Pattern: Data class (pure data container, zero logic). The store maps rows to
these; auth/rbac.py evaluates them; services orchestrate. Permission checks
live in auth/rbac.py, not on User, so that the data shape stays serializable
and the evaluation stays pure.

Timestamps are timezone-aware UTC datetimes. The store converts to and from
its fixed-width ISO representation.

Layer rule: no imports from anything but the stdlib.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

# Permission actions. "manage" is the wildcard: it grants every action on
# the same resource.
ACTION_CREATE = "create"
ACTION_READ = "read"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"
ACTION_LIST = "list"
ACTION_MANAGE = "manage"

ACTIONS = (ACTION_CREATE, ACTION_READ, ACTION_UPDATE, ACTION_DELETE, ACTION_LIST, ACTION_MANAGE)

RESOURCE_USER = "user"
RESOURCE_CUSTOMER = "customer"
RESOURCE_INVOICE = "invoice"
RESOURCE_ROLE = "role"
RESOURCE_SYSTEM = "system"

RESOURCES = (RESOURCE_USER, RESOURCE_CUSTOMER, RESOURCE_INVOICE, RESOURCE_ROLE, RESOURCE_SYSTEM)

ROLE_ADMIN = "admin"
ROLE_USER = "user"
ROLE_MODERATOR = "moderator"
ROLE_GUEST = "guest"


@dataclass
class Permission:
    """A grant of one action on one resource.

    name follows the "resource:action" convention but is an independent
    unique key. At most one permission exists per (resource, action) pair.
    """

    name: str
    resource: str
    action: str
    description: str = ""
    id: int | None = None


@dataclass
class Role:
    """A named bundle of permissions.

    Inactive roles stay attached to their users but grant nothing: rbac.py
    skips them for both permission and role checks.
    """

    name: str
    description: str = ""
    is_active: bool = True
    id: int | None = None
    permissions: list[Permission] = field(default_factory=list)


@dataclass
class User:
    """An identity that can authenticate and hold roles.

    hashed_password is never serialized outward -- see to_snapshot().
    is_active gates authentication only; roles and permissions of an inactive
    user still resolve normally.
    """

    name: str
    email: str
    hashed_password: str | None = None
    is_active: bool = True
    id: int | None = None
    last_login: datetime | None = None
    created_at: datetime | None = None
    roles: list[Role] = field(default_factory=list)


@dataclass
class BlacklistedToken:
    """A revoked session token. Existence alone makes the token unusable."""

    token: str
    expires_at: datetime
    id: int | None = None
    created_at: datetime | None = None


@dataclass
class PasswordResetToken:
    """A single-use, time-boxed password reset credential."""

    user_id: int
    token: str
    expires_at: datetime
    used_at: datetime | None = None
    id: int | None = None
    created_at: datetime | None = None

    def is_valid(self, now: datetime) -> bool:
        """Valid iff unused and strictly before expiry (expiry is exclusive)."""
        return self.used_at is None and now < self.expires_at


@dataclass
class SessionClaims:
    """Decoded contents of a verified session token."""

    user: User
    issued_at: datetime
    expires_at: datetime


# ---------------------------------------------------------------------------
# Token snapshot (de)serialization
# ---------------------------------------------------------------------------


def permission_to_dict(permission: Permission) -> dict:
    return {
        "id": permission.id,
        "name": permission.name,
        "resource": permission.resource,
        "action": permission.action,
        "description": permission.description,
    }


def role_to_dict(role: Role) -> dict:
    return {
        "id": role.id,
        "name": role.name,
        "description": role.description,
        "is_active": role.is_active,
        "permissions": [permission_to_dict(p) for p in role.permissions],
    }


def to_snapshot(user: User) -> dict:
    """Serialize a user for embedding in a session token.

    The password hash is deliberately omitted. last_login is an ISO string
    so the snapshot stays JSON-safe.
    """
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "is_active": user.is_active,
        "last_login": user.last_login.isoformat() if user.last_login else None,
        "roles": [role_to_dict(r) for r in user.roles],
    }


def from_snapshot(data: dict) -> User:
    """Rebuild a User from a token snapshot. Raises KeyError/TypeError on bad shape."""
    last_login = data.get("last_login")
    return User(
        id=data["id"],
        name=data["name"],
        email=data["email"],
        is_active=bool(data.get("is_active", True)),
        last_login=datetime.fromisoformat(last_login) if last_login else None,
        roles=[
            Role(
                id=r["id"],
                name=r["name"],
                description=r.get("description", ""),
                is_active=bool(r.get("is_active", True)),
                permissions=[
                    Permission(
                        id=p["id"],
                        name=p["name"],
                        resource=p["resource"],
                        action=p["action"],
                        description=p.get("description", ""),
                    )
                    for p in r.get("permissions", [])
                ],
            )
            for r in data.get("roles", [])
        ],
    )
