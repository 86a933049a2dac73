"""
api/routes/admin.py -- Role and user-status administration.

Routes (all require ROLE_ADMIN, enforced by the /admin/ prefix policy and
again by Depends(require_admin)):
  POST /admin/addRole            -- create a role; 201, or 400 if it exists
  POST /admin/updateUserStatus   -- set a user's status; 200, or 400 if no such user
  GET  /admin/users/{status}     -- users with a status; 400 if there are none
  GET  /admin/roles              -- all roles
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from api.models import MessageResponse, RoleRequest, RoleResponse, UserResponse, UserStatusUpdate
from auth.dependencies import get_user_store, require_admin
from auth.directory import DirectoryError, add_role, update_user_status, users_by_status
from auth.store import UserStore

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


def _bad_request(exc: DirectoryError) -> HTTPException:
    return HTTPException(status_code=400, detail={"code": exc.code, "message": str(exc)})


@router.post("/addRole", response_model=MessageResponse, status_code=201)
def create_role(body: RoleRequest, store: UserStore = Depends(get_user_store)) -> MessageResponse:
    try:
        return MessageResponse(message=add_role(store, body.role))
    except DirectoryError as exc:
        raise _bad_request(exc) from exc


@router.post("/updateUserStatus", response_model=MessageResponse)
def change_user_status(body: UserStatusUpdate, store: UserStore = Depends(get_user_store)) -> MessageResponse:
    """Set a user's status.

    Takes effect on the user's next request: the middleware re-reads status
    from the directory every time, so no token needs to be revoked.
    """
    try:
        return MessageResponse(message=update_user_status(store, body.email, body.status.value))
    except DirectoryError as exc:
        raise _bad_request(exc) from exc


@router.get("/users/{status}", response_model=list[UserResponse])
def list_users_by_status(status: str, store: UserStore = Depends(get_user_store)) -> list[UserResponse]:
    try:
        users = users_by_status(store, status.lower())
    except DirectoryError as exc:
        raise _bad_request(exc) from exc
    return [UserResponse.from_user(u) for u in users]


@router.get("/roles", response_model=list[RoleResponse])
def list_roles(store: UserStore = Depends(get_user_store)) -> list[RoleResponse]:
    return [RoleResponse(id=r.id, name=r.name) for r in store.list_roles()]
