"""
auth/middleware.py -- Per-request bearer-token authentication.

Each request walks a small state machine:

  no bearer token  -> PASS_THROUGH (anonymous; the policy decides if that is OK)
  token present    -> VALIDATED    (principal attached)
                   -> REJECTED     (401 bad/expired/malformed token or unknown user,
                                    403 account pending approval)

Account status is read from the directory on every request rather than from
token claims, so an admin changing a user to "pending" takes effect on that
user's very next request even though the token itself is still valid.

authenticate() is synchronous (it hits the database); the ASGI wrapper in
api/main.py runs it in the thread pool.

Layer rule: no imports from api/ or core/ (core is reached only through
auth.tokens).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from auth.models import STATUS_PENDING, Principal
from auth.store import UserStore
from auth.tokens import TokenError, verify_token

logger = logging.getLogger("rbac.auth")

_BEARER_PREFIX = "Bearer "


class AuthState(str, Enum):
    PASS_THROUGH = "pass_through"
    VALIDATED = "validated"
    REJECTED = "rejected"


@dataclass(frozen=True)
class AuthOutcome:
    state: AuthState
    principal: Principal | None = None
    status_code: int = 200
    code: str = ""
    message: str = ""

    @classmethod
    def reject(cls, status_code: int, code: str, message: str) -> AuthOutcome:
        return cls(state=AuthState.REJECTED, status_code=status_code, code=code, message=message)


PASS_THROUGH = AuthOutcome(state=AuthState.PASS_THROUGH)


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an 'Authorization: Bearer <token>' header value, or None."""
    if not authorization or not authorization.startswith(_BEARER_PREFIX):
        return None
    token = authorization[len(_BEARER_PREFIX) :].strip()
    return token or None


def authenticate(authorization: str | None, store: UserStore) -> AuthOutcome:
    """Run the authentication state machine for one request's Authorization header."""
    token = extract_bearer_token(authorization)
    if token is None:
        return PASS_THROUGH

    try:
        claims = verify_token(token)
    except TokenError as exc:
        logger.info("Rejected bearer token (%s)", exc.code)
        return AuthOutcome.reject(401, exc.code, f"Authentication failed: {exc}")

    user = store.get_by_email(claims.subject)
    if user is None:
        logger.warning("Valid token for unknown subject %s", claims.subject)
        return AuthOutcome.reject(
            401,
            "unknown_user",
            f"Authentication failed: User not found with '{claims.subject}' email",
        )

    if user.status.lower() == STATUS_PENDING:
        logger.info("Blocked pending account %s", user.email)
        return AuthOutcome.reject(403, "account_pending", "Account is pending approval. Please contact admin.")

    return AuthOutcome(state=AuthState.VALIDATED, principal=Principal.from_user(user))
