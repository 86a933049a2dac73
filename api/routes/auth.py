"""
api/routes/auth.py -- Registration and login endpoints.

Routes:
  POST /auth/register  -- create an account; 201 with a message, 400 on duplicate email / unknown role
  POST /auth/login     -- email + password; 200 {token, type: "Bearer"} or 401

Both are public (the /auth/ prefix is open in auth/policy.py).

Security:
  POST /login is rate-limited per client IP (Settings.login_rate_limit).
  authenticate_user() provides timing equalization -- use it, never inline
  get_by_email() + verify_password().
  Cache-Control: no-store on login responses so tokens are not cached.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import AuthResponse, LoginRequest, MessageResponse, RegistrationRequest
from auth.dependencies import get_user_store
from auth.directory import DirectoryError, register_user
from auth.store import UserStore
from auth.tokens import authenticate_user, hash_password, issue_token_for
from core.config import get_settings

logger = logging.getLogger("rbac.api")

router = APIRouter(prefix="/auth")


@router.post("/register", response_model=MessageResponse, status_code=201)
def register(body: RegistrationRequest, store: UserStore = Depends(get_user_store)) -> MessageResponse:
    """Register a new account.

    Accounts requesting ADMIN or MODERATOR start as pending and cannot use
    protected routes until an admin activates them.
    """
    try:
        _user, message = register_user(
            store,
            full_name=body.full_name,
            email=body.email,
            password=body.password,
            hash_password=hash_password,
            roles=body.roles,
            cell_number=body.cell_number,
        )
    except DirectoryError as exc:
        raise HTTPException(status_code=400, detail={"code": exc.code, "message": str(exc)}) from exc
    return MessageResponse(message=message)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(get_settings().login_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Exchange email and password for a bearer token.

    Wrong email and wrong password produce the same 401 so the response
    does not reveal which emails are registered.
    """
    store: UserStore = request.app.state.user_store
    user = authenticate_user(store, body.email, body.password)
    if user is None:
        logger.info("Failed login for %s", body.email)
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid credentials"}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token = issue_token_for(user)
    resp = JSONResponse(
        status_code=200,
        content=AuthResponse(token=token).model_dump(by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp
