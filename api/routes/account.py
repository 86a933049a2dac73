"""
api/routes/account.py -- Self-service profile endpoints for role-scoped areas.

Routes:
  GET /user/me        -- requires ROLE_USER
  GET /moderator/me   -- requires ROLE_MODERATOR

Both return the caller's own profile. The handler is shared; the prefix
decides which role the authorization policy demands.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from api.models import UserResponse
from auth.dependencies import get_user_store, require_moderator, require_user
from auth.models import Principal
from auth.store import UserStore

user_router = APIRouter(prefix="/user")
moderator_router = APIRouter(prefix="/moderator")


def _profile(principal: Principal, store: UserStore) -> UserResponse:
    user = store.get_by_id(principal.user_id)
    if user is None:
        # Deleted between the middleware lookup and now.
        raise HTTPException(status_code=401, detail={"code": "unknown_user", "message": "User no longer exists."})
    return UserResponse.from_user(user)


@user_router.get("/me", response_model=UserResponse)
def user_profile(
    principal: Principal = Depends(require_user),
    store: UserStore = Depends(get_user_store),
) -> UserResponse:
    return _profile(principal, store)


@moderator_router.get("/me", response_model=UserResponse)
def moderator_profile(
    principal: Principal = Depends(require_moderator),
    store: UserStore = Depends(get_user_store),
) -> UserResponse:
    return _profile(principal, store)
