"""
auth/directory.py -- Registration, role creation, and status administration.

These functions hold the directory's business rules on top of UserStore:
  - email uniqueness (checked up front and backed by the UNIQUE constraint)
  - role-name canonicalization and uniqueness
  - the default role for registrations that request none
  - admin/moderator registrations start as "pending"

Failures raise a DirectoryError subclass carrying a human-readable message.
The HTTP layer maps every DirectoryError to 400; the CLI prints the message.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy.exc import IntegrityError

from auth.models import (
    DEFAULT_ROLE,
    MAX_PASSWORD_BYTES,
    PRIVILEGED_ROLES,
    ROLE_PREFIX,
    STATUS_ACTIVE,
    STATUS_PENDING,
    User,
    canonical_role,
)
from auth.store import UserStore

logger = logging.getLogger("rbac.directory")


class DirectoryError(Exception):
    """A directory operation was refused. str(exc) is safe to show to clients."""

    code = "directory_error"


class DuplicateEmailError(DirectoryError):
    code = "email_exists"


class UnknownRoleError(DirectoryError):
    code = "unknown_role"


class RoleExistsError(DirectoryError):
    code = "role_exists"


class UserNotFoundError(DirectoryError):
    code = "user_not_found"


class NoUsersWithStatusError(DirectoryError):
    code = "no_users"


class PasswordTooLongError(DirectoryError):
    code = "password_too_long"


def _display_name(role: str) -> str:
    """ROLE_ADMIN -> ADMIN, for user-facing messages."""
    return canonical_role(role).removeprefix("ROLE_")


def register_user(
    store: UserStore,
    *,
    full_name: str,
    email: str,
    password: str,
    hash_password: Callable[[str], str],
    roles: list[str] | None = None,
    cell_number: str | None = None,
) -> tuple[User, str]:
    """Create an account and return (user, message).

    Requested roles are canonicalized and must already exist. An empty
    request gets DEFAULT_ROLE. Requesting ADMIN or MODERATOR parks the
    account as pending until an admin activates it.

    hash_password is injected so this module does not depend on the token
    service's settings.
    """
    if store.get_by_email(email) is not None:
        raise DuplicateEmailError(f"An account with {email} email already exists")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise PasswordTooLongError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")

    requested = [canonical_role(r) for r in (roles or []) if r.strip()]
    if not requested:
        requested = [DEFAULT_ROLE]
    role_names = list(dict.fromkeys(requested))

    for name in role_names:
        if store.get_role(name) is None:
            raise UnknownRoleError(f"{_display_name(name)} role not found")

    status = STATUS_PENDING if PRIVILEGED_ROLES.intersection(role_names) else STATUS_ACTIVE
    user = User(
        full_name=full_name,
        email=email,
        cell_number=cell_number,
        hashed_password=hash_password(password),
        status=status,
    )
    try:
        user.id = store.create_user(user, role_names)
    except IntegrityError as exc:
        # Lost a race with a concurrent registration for the same email.
        raise DuplicateEmailError(f"An account with {email} email already exists") from exc
    user.roles = sorted(role_names)
    logger.info("Registered %s with roles=%s status=%s", email, ",".join(user.roles), status)

    if status == STATUS_PENDING:
        return user, "Registration successful. Your account is pending activation and requires admin review."
    return user, "Registration successful. You can now log in to your account."


def add_role(store: UserStore, role: str) -> str:
    """Create a role from a bare or prefixed name and return a confirmation message."""
    name = canonical_role(role)
    if name == ROLE_PREFIX:
        raise DirectoryError("Role name must not be empty")
    display = _display_name(name)
    if store.get_role(name) is not None:
        raise RoleExistsError(f"{display} already exists")
    try:
        store.create_role(name)
    except IntegrityError as exc:
        raise RoleExistsError(f"{display} already exists") from exc
    logger.info("Created role %s", name)
    return f"{display} role added"


def update_user_status(store: UserStore, email: str, status: str) -> str:
    """Set a user's status and return a confirmation message."""
    if not store.update_status(email, status):
        raise UserNotFoundError("User not found")
    logger.info("Status of %s set to %s", email, status)
    return f"Updated user status to {status}"


def users_by_status(store: UserStore, status: str) -> list[User]:
    """Return users with the given status. An empty result is an error, not an empty list."""
    users = store.list_by_status(status)
    if not users:
        raise NoUsersWithStatusError(f"No users found with {status} status")
    return users
