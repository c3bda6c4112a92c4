"""
auth/store.py -- SQLAlchemy Core persistence layer for auth and RBAC entities.

Pattern: Repository + Data Mapper. CredentialStore is the repository; the
_row_to_* functions are the mappers that turn rows into auth/models.py
dataclasses. Services never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness:
  Every uniqueness rule (user email, role name, permission name, permission
  (resource, action), token strings) is a database index, not an application
  check. Services still look before they insert to produce friendly errors,
  but the index is what closes the check-then-act race: a concurrent insert
  surfaces as sqlalchemy.exc.IntegrityError, which callers translate.

  The entity indexes are partial (WHERE deleted_at IS NULL) so a soft-deleted
  row does not block re-creating the same name.

Soft delete:
  users, roles and permissions are never physically removed. delete_* stamps
  deleted_at and every read path filters on deleted_at IS NULL. Association
  rows pointing at a deleted role or permission are left in place and ignored
  by the joins.

Associations:
  user_roles and role_permissions are pure join tables keyed by the id pair.
  Adding an existing pair and removing a missing pair are both no-ops.

Timestamps:
  Stored as fixed-width ISO 8601 UTC strings (core.clock.to_iso), so lexical
  comparison in SQL is chronological comparison. All "now" values come from
  the injected clock.

Layer rule: imports from core/ (clock, config) are allowed; nothing else outside auth/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import (
    Column,
    Index,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    create_engine,
    event,
    select,
)
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import AuthError, StoreError
from auth.models import BlacklistedToken, PasswordResetToken, Permission, Role, User
from core.clock import Clock, SystemClock, from_iso, to_iso
from core.config import DEFAULT_DATABASE_URL

logger = logging.getLogger("authcore.store")


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False),
    Column("hashed_password", Text, nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("last_login", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("deleted_at", String(32)),
)

_roles = Table(
    "roles",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("deleted_at", String(32)),
)

_permissions = Table(
    "permissions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(150), nullable=False),
    Column("resource", String(100), nullable=False),
    Column("action", String(50), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("deleted_at", String(32)),
)

_user_roles = Table(
    "user_roles",
    metadata,
    Column("user_id", Integer, nullable=False),
    Column("role_id", Integer, nullable=False),
    Column("created_at", String(32), nullable=False),
    PrimaryKeyConstraint("user_id", "role_id", name="pk_user_roles"),
)

_role_permissions = Table(
    "role_permissions",
    metadata,
    Column("role_id", Integer, nullable=False),
    Column("permission_id", Integer, nullable=False),
    Column("created_at", String(32), nullable=False),
    PrimaryKeyConstraint("role_id", "permission_id", name="pk_role_permissions"),
)

_blacklisted_tokens = Table(
    "blacklisted_tokens",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("token", Text, nullable=False, unique=True),
    Column("expires_at", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
)

_reset_tokens = Table(
    "password_reset_tokens",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("token", String(128), nullable=False, unique=True),
    Column("expires_at", String(32), nullable=False),
    Column("used_at", String(32)),
    Column("created_at", String(32), nullable=False),
)


def _live_unique(name: str, table: Table, *columns: str) -> Index:
    """Unique index scoped to rows that are not soft-deleted."""
    live = table.c.deleted_at.is_(None)
    return Index(
        name,
        *(table.c[col] for col in columns),
        unique=True,
        sqlite_where=live,
        postgresql_where=live,
    )


_live_unique("uq_users_email", _users, "email")
_live_unique("uq_roles_name", _roles, "name")
_live_unique("uq_permissions_name", _permissions, "name")
_live_unique("uq_permissions_resource_action", _permissions, "resource", "action")


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _live(table: Table):
    return table.c.deleted_at.is_(None)


def _insert_ignore(conn: Connection, table: Table, **values: Any) -> None:
    """INSERT that silently does nothing when a unique key already exists."""
    dialect = conn.dialect.name
    if dialect == "sqlite":
        conn.execute(sqlite_insert(table).values(**values).on_conflict_do_nothing())
    elif dialect == "postgresql":
        conn.execute(pg_insert(table).values(**values).on_conflict_do_nothing())
    else:
        try:
            with conn.begin_nested():
                conn.execute(table.insert().values(**values))
        except IntegrityError:
            # Row already present; the nested transaction was rolled back.
            return


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for users, roles, permissions and token records.

    Usage:
        store = CredentialStore("sqlite:///:memory:")
        uid = store.create_user(User(name="Ada", email="ada@example.com", hashed_password=h))
        user = store.get_user_with_roles(uid)
        store.close()
    """

    def __init__(self, db_url: str = DEFAULT_DATABASE_URL, clock: Clock | None = None) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        self.clock: Clock = clock or SystemClock()
        metadata.create_all(self.engine)

    def _now(self) -> str:
        return to_iso(self.clock.now())

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its id.

        Raises sqlalchemy.exc.IntegrityError if a live user already has the
        email -- callers treat that as "already exists", since a concurrent
        registration may have won the race.
        """
        now = self._now()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    name=user.name,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    is_active=1 if user.is_active else 0,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_user_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            return self._fetch_user(conn, _users.c.id == user_id, with_roles=False)

    def get_user_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Roles are not loaded."""
        with self.engine.connect() as conn:
            return self._fetch_user(conn, _users.c.email == email, with_roles=False)

    def get_user_with_roles(self, user_id: int) -> User | None:
        """Load a user with roles and each role's permissions in one connection."""
        with self.engine.connect() as conn:
            return self._fetch_user(conn, _users.c.id == user_id, with_roles=True)

    def get_user_by_email_with_roles(self, email: str) -> User | None:
        with self.engine.connect() as conn:
            return self._fetch_user(conn, _users.c.email == email, with_roles=True)

    def list_users(self, limit: int = 100, offset: int = 0, active_only: bool = False) -> list[User]:
        query = _users.select().where(_live(_users))
        if active_only:
            query = query.where(_users.c.is_active == 1)
        query = query.order_by(_users.c.id).limit(limit).offset(offset)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user(self, user_id: int, **fields: Any) -> bool:
        """Update mutable fields on a live user.

        Accepted fields: name, email, is_active, hashed_password.
        is_active must be passed as bool; it is stored as 0/1.

        Returns True if a row was updated, False if user_id was not found.
        Raises IntegrityError if a new email collides with another live user.
        """
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        fields["updated_at"] = self._now()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where((_users.c.id == user_id) & _live(_users)).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def update_last_login(self, user_id: int, when: datetime | None = None) -> None:
        stamp = to_iso(when) if when is not None else self._now()
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(last_login=stamp))
            conn.commit()

    def delete_user(self, user_id: int) -> bool:
        """Soft-delete a user. Returns False if no live user had that id."""
        return self._soft_delete(_users, user_id)

    def _fetch_user(self, conn: Connection, clause, with_roles: bool) -> User | None:
        row = conn.execute(_users.select().where(clause & _live(_users))).fetchone()
        if row is None:
            return None
        user = _row_to_user(row)
        if with_roles:
            user.roles = self._load_user_roles(conn, user.id)
        return user

    def _load_user_roles(self, conn: Connection, user_id: int) -> list[Role]:
        rows = conn.execute(
            select(_roles)
            .select_from(_roles.join(_user_roles, _user_roles.c.role_id == _roles.c.id))
            .where((_user_roles.c.user_id == user_id) & _live(_roles))
            .order_by(_user_roles.c.created_at, _roles.c.id)
        ).fetchall()
        roles = [_row_to_role(r) for r in rows]
        by_role = self._load_role_permissions(conn, [r.id for r in roles])
        for role in roles:
            role.permissions = by_role.get(role.id, [])
        return roles

    def _load_role_permissions(self, conn: Connection, role_ids: list[int]) -> dict[int, list[Permission]]:
        if not role_ids:
            return {}
        rows = conn.execute(
            select(_role_permissions.c.role_id, _permissions)
            .select_from(_permissions.join(_role_permissions, _role_permissions.c.permission_id == _permissions.c.id))
            .where(_role_permissions.c.role_id.in_(role_ids) & _live(_permissions))
            .order_by(_permissions.c.id)
        ).fetchall()
        by_role: dict[int, list[Permission]] = {}
        for row in rows:
            by_role.setdefault(row.role_id, []).append(_row_to_permission(row))
        return by_role

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def create_role(self, role: Role, permission_ids: list[int] | tuple[int, ...] = ()) -> int:
        """Insert a role and attach permissions in a single transaction.

        Either the role and all its permission links exist afterwards or
        nothing does. Raises IntegrityError if a live role has the name.
        """
        now = self._now()
        with self.engine.begin() as conn:
            result = conn.execute(
                _roles.insert().values(
                    name=role.name,
                    description=role.description,
                    is_active=1 if role.is_active else 0,
                    created_at=now,
                    updated_at=now,
                )
            )
            role_id = result.inserted_primary_key[0]
            for permission_id in dict.fromkeys(permission_ids):
                _insert_ignore(conn, _role_permissions, role_id=role_id, permission_id=permission_id, created_at=now)
        return role_id

    def get_role(self, role_id: int) -> Role | None:
        with self.engine.connect() as conn:
            return self._fetch_role(conn, _roles.c.id == role_id)

    def get_role_by_name(self, name: str) -> Role | None:
        with self.engine.connect() as conn:
            return self._fetch_role(conn, _roles.c.name == name)

    def list_roles(self, limit: int = 100, offset: int = 0, active_only: bool = False) -> list[Role]:
        query = _roles.select().where(_live(_roles))
        if active_only:
            query = query.where(_roles.c.is_active == 1)
        query = query.order_by(_roles.c.id).limit(limit).offset(offset)
        with self.engine.connect() as conn:
            roles = [_row_to_role(r) for r in conn.execute(query).fetchall()]
            by_role = self._load_role_permissions(conn, [r.id for r in roles])
        for role in roles:
            role.permissions = by_role.get(role.id, [])
        return roles

    def update_role(self, role_id: int, **fields: Any) -> bool:
        """Update name, description or is_active on a live role."""
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        fields["updated_at"] = self._now()
        with self.engine.connect() as conn:
            result = conn.execute(_roles.update().where((_roles.c.id == role_id) & _live(_roles)).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_role(self, role_id: int) -> bool:
        return self._soft_delete(_roles, role_id)

    def users_with_role(self, role_id: int) -> list[User]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_users)
                .select_from(_users.join(_user_roles, _user_roles.c.user_id == _users.c.id))
                .where((_user_roles.c.role_id == role_id) & _live(_users))
                .order_by(_users.c.id)
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def _fetch_role(self, conn: Connection, clause) -> Role | None:
        row = conn.execute(_roles.select().where(clause & _live(_roles))).fetchone()
        if row is None:
            return None
        role = _row_to_role(row)
        role.permissions = self._load_role_permissions(conn, [role.id]).get(role.id, [])
        return role

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def create_permission(self, permission: Permission) -> int:
        """Insert a permission and return its id.

        Raises IntegrityError if the name or the (resource, action) pair is
        already taken by a live permission.
        """
        now = self._now()
        with self.engine.connect() as conn:
            result = conn.execute(
                _permissions.insert().values(
                    name=permission.name,
                    resource=permission.resource,
                    action=permission.action,
                    description=permission.description,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_permission(self, permission_id: int) -> Permission | None:
        return self._fetch_permission(_permissions.c.id == permission_id)

    def get_permission_by_name(self, name: str) -> Permission | None:
        return self._fetch_permission(_permissions.c.name == name)

    def get_permission_by_resource_action(self, resource: str, action: str) -> Permission | None:
        return self._fetch_permission((_permissions.c.resource == resource) & (_permissions.c.action == action))

    def list_permissions(self, limit: int = 100, offset: int = 0, resource: str | None = None) -> list[Permission]:
        query = _permissions.select().where(_live(_permissions))
        if resource:
            query = query.where(_permissions.c.resource == resource)
        query = query.order_by(_permissions.c.id).limit(limit).offset(offset)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_permission(r) for r in rows]

    def update_permission(self, permission_id: int, **fields: Any) -> bool:
        """Update name or description on a live permission.

        resource and action are identity; they are not accepted here.
        """
        fields["updated_at"] = self._now()
        with self.engine.connect() as conn:
            result = conn.execute(
                _permissions.update()
                .where((_permissions.c.id == permission_id) & _live(_permissions))
                .values(**fields)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_permission(self, permission_id: int) -> bool:
        return self._soft_delete(_permissions, permission_id)

    def permissions_of_role(self, role_id: int) -> list[Permission]:
        with self.engine.connect() as conn:
            return self._load_role_permissions(conn, [role_id]).get(role_id, [])

    def resource_actions(self, resource: str) -> list[str]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_permissions.c.action)
                .where((_permissions.c.resource == resource) & _live(_permissions))
                .distinct()
                .order_by(_permissions.c.action)
            ).fetchall()
        return [r.action for r in rows]

    def all_resources(self) -> list[str]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_permissions.c.resource).where(_live(_permissions)).distinct().order_by(_permissions.c.resource)
            ).fetchall()
        return [r.resource for r in rows]

    def _fetch_permission(self, clause) -> Permission | None:
        with self.engine.connect() as conn:
            row = conn.execute(_permissions.select().where(clause & _live(_permissions))).fetchone()
        return _row_to_permission(row) if row is not None else None

    # ------------------------------------------------------------------
    # Associations
    # ------------------------------------------------------------------

    def add_role_to_user(self, user_id: int, role_id: int) -> None:
        with self.engine.begin() as conn:
            _insert_ignore(conn, _user_roles, user_id=user_id, role_id=role_id, created_at=self._now())

    def remove_role_from_user(self, user_id: int, role_id: int) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                _user_roles.delete().where((_user_roles.c.user_id == user_id) & (_user_roles.c.role_id == role_id))
            )

    def add_permission_to_role(self, role_id: int, permission_id: int) -> None:
        with self.engine.begin() as conn:
            _insert_ignore(
                conn, _role_permissions, role_id=role_id, permission_id=permission_id, created_at=self._now()
            )

    def remove_permission_from_role(self, role_id: int, permission_id: int) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                _role_permissions.delete().where(
                    (_role_permissions.c.role_id == role_id) & (_role_permissions.c.permission_id == permission_id)
                )
            )

    # ------------------------------------------------------------------
    # Token blacklist
    # ------------------------------------------------------------------

    def blacklist_token(self, token: str, expires_at: datetime) -> None:
        """Record a revoked session token. Re-blacklisting is a no-op."""
        with self.engine.begin() as conn:
            _insert_ignore(
                conn,
                _blacklisted_tokens,
                token=token,
                expires_at=to_iso(expires_at),
                created_at=self._now(),
            )

    def is_token_blacklisted(self, token: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(select(_blacklisted_tokens.c.id).where(_blacklisted_tokens.c.token == token)).fetchone()
        return row is not None

    def get_blacklisted_token(self, token: str) -> BlacklistedToken | None:
        with self.engine.connect() as conn:
            row = conn.execute(_blacklisted_tokens.select().where(_blacklisted_tokens.c.token == token)).fetchone()
        if row is None:
            return None
        return BlacklistedToken(
            id=row.id,
            token=row.token,
            expires_at=from_iso(row.expires_at),
            created_at=from_iso(row.created_at),
        )

    def purge_blacklist(self, before: datetime) -> int:
        """Delete blacklist rows whose expiry is before `before`. Returns rows removed.

        Storage hygiene only: an expired token fails verification on its own,
        so dropping its blacklist row cannot resurrect it.
        """
        with self.engine.begin() as conn:
            result = conn.execute(_blacklisted_tokens.delete().where(_blacklisted_tokens.c.expires_at < to_iso(before)))
        return result.rowcount

    # ------------------------------------------------------------------
    # Password reset tokens
    # ------------------------------------------------------------------

    def create_reset_token(self, reset_token: PasswordResetToken) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                _reset_tokens.insert().values(
                    user_id=reset_token.user_id,
                    token=reset_token.token,
                    expires_at=to_iso(reset_token.expires_at),
                    used_at=None,
                    created_at=self._now(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_reset_token(self, token: str) -> PasswordResetToken | None:
        """Fetch a reset token regardless of validity; callers apply is_valid()."""
        with self.engine.connect() as conn:
            row = conn.execute(_reset_tokens.select().where(_reset_tokens.c.token == token)).fetchone()
        return _row_to_reset_token(row) if row is not None else None

    def consume_reset_token(self, token_id: int, user_id: int, hashed_password: str, now: datetime) -> bool:
        """Burn a reset token and set its owner's password in one transaction.

        The token row is claimed first, conditional on used_at IS NULL and
        expires_at > now; the write lock taken there serializes concurrent
        consumers. Returns False, with nothing written, when the token was
        already used or expired, or its owner is no longer a live user.
        """
        stamp = to_iso(now)
        with self.engine.connect() as conn:
            claimed = conn.execute(
                _reset_tokens.update()
                .where(
                    (_reset_tokens.c.id == token_id)
                    & _reset_tokens.c.used_at.is_(None)
                    & (_reset_tokens.c.expires_at > stamp)
                )
                .values(used_at=stamp)
            )
            if claimed.rowcount == 0:
                conn.rollback()
                return False
            updated = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & _live(_users))
                .values(hashed_password=hashed_password, updated_at=stamp)
            )
            if updated.rowcount == 0:
                conn.rollback()
                return False
            conn.commit()
        return True

    def purge_reset_tokens(self, before: datetime) -> int:
        """Delete reset tokens that expired before `before`, used or not."""
        with self.engine.begin() as conn:
            result = conn.execute(_reset_tokens.delete().where(_reset_tokens.c.expires_at < to_iso(before)))
        return result.rowcount

    # ------------------------------------------------------------------

    def _soft_delete(self, table: Table, row_id: int) -> bool:
        now = self._now()
        with self.engine.begin() as conn:
            result = conn.execute(
                table.update().where((table.c.id == row_id) & _live(table)).values(deleted_at=now, updated_at=now)
            )
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _opt_dt(value: str | None) -> datetime | None:
    return from_iso(value) if value else None


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.hashed_password,
        is_active=bool(row.is_active),
        last_login=_opt_dt(row.last_login),
        created_at=_opt_dt(row.created_at),
    )


def _row_to_role(row) -> Role:
    return Role(
        id=row.id,
        name=row.name,
        description=row.description or "",
        is_active=bool(row.is_active),
    )


def _row_to_permission(row) -> Permission:
    return Permission(
        id=row.id,
        name=row.name,
        resource=row.resource,
        action=row.action,
        description=row.description or "",
    )


def _row_to_reset_token(row) -> PasswordResetToken:
    return PasswordResetToken(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        expires_at=from_iso(row.expires_at),
        used_at=_opt_dt(row.used_at),
        created_at=_opt_dt(row.created_at),
    )


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------


@contextmanager
def store_step(step: str, on_conflict: Callable[[], AuthError] | None = None) -> Iterator[None]:
    """Translate SQLAlchemy failures raised inside the block into AuthError.

    IntegrityError becomes on_conflict() when given (a unique index rejected
    the write, e.g. a concurrent registration won the race); every other
    SQLAlchemyError becomes StoreError(step). Errors are never retried here.
    """
    try:
        yield
    except IntegrityError as exc:
        if on_conflict is not None:
            raise on_conflict() from exc
        logger.error("Integrity error during %s", step)
        raise StoreError(step, exc) from exc
    except SQLAlchemyError as exc:
        logger.error("Store failure during %s: %s", step, exc.__class__.__name__)
        raise StoreError(step, exc) from exc
