"""
auth/models.py -- Domain dataclasses for directory and authentication entities.

Pattern: Data class (pure data container, almost no logic). Dataclasses own
the domain shape; the store, directory functions, and routes do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field

STATUS_ACTIVE = "active"
STATUS_PENDING = "pending"
STATUS_INACTIVE = "inactive"

USER_STATUSES = (STATUS_ACTIVE, STATUS_PENDING, STATUS_INACTIVE)

ROLE_PREFIX = "ROLE_"
DEFAULT_ROLE = "ROLE_USER"

# Requesting any of these at registration parks the account as pending.
PRIVILEGED_ROLES = frozenset({"ROLE_ADMIN", "ROLE_MODERATOR"})

# bcrypt refuses input longer than this, counted in UTF-8 bytes, not characters.
MAX_PASSWORD_BYTES = 72


def canonical_role(name: str) -> str:
    """Return the stored form of a role name: ROLE_ prefix, upper-cased.

    Accepts both bare ("admin") and already-prefixed ("ROLE_ADMIN") input.
    """
    upper = name.strip().upper()
    if upper.startswith(ROLE_PREFIX):
        return upper
    return ROLE_PREFIX + upper


@dataclass
class Role:
    """A named permission group. Immutable once created."""

    name: str  # canonical form, e.g. "ROLE_ADMIN"
    id: int | None = None


@dataclass
class User:
    """A registered account.

    roles holds canonical role names. The store loads them eagerly with the
    user row so callers never see a half-populated record.
    """

    full_name: str
    email: str
    hashed_password: str
    cell_number: str | None = None
    status: str = STATUS_ACTIVE
    roles: list[str] = field(default_factory=list)
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class Principal:
    """The authenticated identity attached to a request after token validation.

    Built from the directory's current record, not from token claims, so a
    role or status change is visible on the very next request.
    """

    user_id: int
    email: str
    status: str
    roles: frozenset[str]

    def has_role(self, role: str) -> bool:
        return canonical_role(role) in self.roles

    @classmethod
    def from_user(cls, user: User) -> Principal:
        return cls(
            user_id=user.id,
            email=user.email,
            status=user.status,
            roles=frozenset(user.roles),
        )
