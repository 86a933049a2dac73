"""
auth/dependencies.py -- FastAPI Depends() helpers for route handlers.

The authentication middleware has already verified the bearer token and
stored the Principal on request.state before any handler runs. These helpers
read it back:

  try_get_principal()  -- soft variant, returns None for anonymous requests.
  get_principal()      -- raises HTTP 401 if the request is anonymous.
  require_role(name)   -- dependency factory; raises HTTP 403 if the
                          principal lacks the role.

require_role() repeats the prefix policy's check at the route level, so a
handler stays protected even if it is later mounted under another prefix.

Layer rule: no imports from api/. May import from fastapi because this module
is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.models import Principal, canonical_role
from auth.store import UserStore


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def try_get_principal(request: Request) -> Principal | None:
    """Return the request's Principal, or None if no valid bearer token was sent."""
    return getattr(request.state, "principal", None)


def get_principal(request: Request) -> Principal:
    """Require authentication. Raises HTTP 401 if the request is anonymous.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: Principal = Depends(get_principal)): ...
    """
    principal = try_get_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return principal


def require_role(role: str) -> Callable[[Request], Principal]:
    """Build a dependency that requires the given role (bare or ROLE_-prefixed).

        @router.post("/admin/thing")
        async def route(principal: Principal = Depends(require_role("admin"))): ...
    """
    wanted = canonical_role(role)

    def dependency(request: Request) -> Principal:
        principal = get_principal(request)
        if not principal.has_role(wanted):
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": f"{wanted.removeprefix('ROLE_').title()} access required."},
            )
        return principal

    return dependency


require_admin = require_role("ROLE_ADMIN")
require_moderator = require_role("ROLE_MODERATOR")
require_user = require_role("ROLE_USER")
