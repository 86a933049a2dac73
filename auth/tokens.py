"""
auth/tokens.py -- JWT issuing/verification and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (email), roles (canonical role names), iat and exp. verify_token()
       raises a typed TokenError subclass so callers can report *why* a token
       was rejected:
         MalformedTokenError   -- not a decodable JWT, or required claims missing
         InvalidSignatureError -- signature does not verify under SECRET_KEY
         TokenExpiredError     -- exp has passed (no leeway)

  Passwords: bcrypt, cost factor from Settings.bcrypt_rounds. _DUMMY_HASH
       enables timing equalization in authenticate_user() so response time
       does not reveal whether an email is registered.

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is
the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("rbac.auth")

_settings = get_settings()

_ALGORITHM = "HS256"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TokenError(Exception):
    """Base class for every reason a bearer token can be refused."""

    code = "invalid_token"


class MalformedTokenError(TokenError):
    code = "malformed_token"


class InvalidSignatureError(TokenError):
    code = "invalid_signature"


class TokenExpiredError(TokenError):
    code = "token_expired"


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of an access token."""

    subject: str
    roles: list[str]
    issued_at: datetime
    expires_at: datetime


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt rejects input over MAX_PASSWORD_BYTES (UTF-8). register_user()
    and the registration model both refuse such passwords before they get here.
    """
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Stored hash is not a bcrypt hash.
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("rbac_timing_dummy")


# ---------------------------------------------------------------------------
# JWT issue / verify
# ---------------------------------------------------------------------------


def issue_token(
    subject: str,
    roles: list[str],
    expire_seconds: int = 0,
    issued_at: datetime | None = None,
) -> str:
    """Encode a signed JWT for the given subject and role names.

    Args:
        subject:        The user's email, stored as the `sub` claim.
        roles:          Canonical role names ("ROLE_ADMIN", ...).
        expire_seconds: Lifetime in seconds. 0 (default) uses
                        Settings.token_expire_seconds.
        issued_at:      Override for the `iat` claim (defaults to now). The
                        expiry is always computed from this value.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    iat = issued_at or datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "roles": list(roles),
        "iat": iat,
        "exp": iat + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def verify_token(token: str) -> TokenClaims:
    """Verify signature and expiry of a JWT and return its claims.

    Raises:
        MalformedTokenError:   token cannot be decoded or lacks sub/roles/exp.
        InvalidSignatureError: signature check fails or the algorithm is not HS256.
        TokenExpiredError:     the token's exp is in the past.
    """
    try:
        header = jwt.get_unverified_header(token)
        jwt.get_unverified_claims(token)
    except JWTError as exc:
        raise MalformedTokenError("Token is not a well-formed JWT.") from exc

    if header.get("alg") != _ALGORITHM:
        raise InvalidSignatureError(f"Unexpected signing algorithm {header.get('alg')!r}.")

    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpiredError("Token has expired.") from exc
    except JWTClaimsError as exc:
        raise MalformedTokenError(f"Invalid token claims: {exc}") from exc
    except JWTError as exc:
        raise InvalidSignatureError("Token signature is invalid.") from exc

    subject = payload.get("sub")
    roles = payload.get("roles")
    if not isinstance(subject, str) or not subject:
        raise MalformedTokenError("Token has no subject.")
    if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
        raise MalformedTokenError("Token roles claim must be a list of strings.")
    if "exp" not in payload or "iat" not in payload:
        raise MalformedTokenError("Token is missing iat/exp.")

    return TokenClaims(
        subject=subject,
        roles=roles,
        issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


def issue_token_for(user: User) -> str:
    """Issue an access token carrying the user's email and current role names."""
    return issue_token(user.email, user.roles)


# ---------------------------------------------------------------------------
# Credential check (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Check an email/password pair with timing equalization.

    Always runs bcrypt whether or not the email is registered:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as a real check)
    - Wrong password: bcrypt runs against the real hash

    Account status is deliberately not checked here; the authentication
    middleware enforces it on every request made with the issued token.

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
