"""
auth/policy.py -- Static route-to-role authorization policy.

Rules are matched by path prefix, first match wins:

  /public/, /auth/   -> open to anyone
  /admin/            -> ROLE_ADMIN
  /moderator/        -> ROLE_MODERATOR
  /user/             -> ROLE_USER
  anything else      -> any authenticated principal

check_access() is called by the authentication middleware after the
principal has been resolved and before the route handler runs.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from auth.models import Principal


class Decision(str, Enum):
    ALLOW = "allow"
    UNAUTHENTICATED = "unauthenticated"  # protected route, no principal -> 401
    FORBIDDEN = "forbidden"  # principal lacks the required role -> 403


@dataclass(frozen=True)
class AccessRule:
    prefix: str
    public: bool = False
    role: str | None = None  # None with public=False means "any authenticated principal"


ACCESS_RULES: tuple[AccessRule, ...] = (
    AccessRule("/public/", public=True),
    AccessRule("/auth/", public=True),
    AccessRule("/admin/", role="ROLE_ADMIN"),
    AccessRule("/moderator/", role="ROLE_MODERATOR"),
    AccessRule("/user/", role="ROLE_USER"),
)

_DEFAULT_RULE = AccessRule("/")


def rule_for(path: str) -> AccessRule:
    """Return the first rule whose prefix matches path, or the authenticated-only default.

    A bare "/admin" (no trailing slash) is matched as "/admin/" so the prefix
    cannot be sidestepped by dropping the slash.
    """
    probe = path if path.endswith("/") else path + "/"
    for rule in ACCESS_RULES:
        if probe.startswith(rule.prefix):
            return rule
    return _DEFAULT_RULE


def check_access(path: str, principal: Principal | None) -> Decision:
    rule = rule_for(path)
    if rule.public:
        return Decision.ALLOW
    if principal is None:
        return Decision.UNAUTHENTICATED
    if rule.role is not None and not principal.has_role(rule.role):
        return Decision.FORBIDDEN
    return Decision.ALLOW
