# =============================================================================
# User API Routes
# =============================================================================
#
# Endpoints:
#   POST /users/register         - Create account, returns token + user
#   POST /users/login            - Returns token + user
#   GET  /users/profile          - Current user
#   PUT  /users/profile          - Update name / bio
#   POST /users/profile/avatar   - Upload avatar image
#   POST /users/forgot-password  - Email a reset link
#   POST /users/reset-password   - Set a new password with a reset token
#
# =============================================================================

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, File, HTTPException, UploadFile

from puretome.auth import AuthContext, create_access_token, require_auth
from puretome.config import Settings
from puretome.core.errors import NotFoundError
from puretome.core.models import LoginRequest, ProfileUpdate, User
from puretome.api.deps import get_settings_dep, get_users
from puretome.services import UserService

router = APIRouter(prefix="/users", tags=["users"])

RESET_REQUESTED = "If your email is registered, you will receive a password reset link."


def _auth_response(user: User, settings: Settings) -> dict[str, Any]:
    return {
        "token": create_access_token(user, settings),
        "user": UserService.public(user).to_api(),
    }


async def _current_user(ctx: AuthContext, users: UserService) -> User:
    user = await users.get(ctx.user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


# =============================================================================
# Registration & Login
# =============================================================================


@router.post("/register", status_code=201)
async def register(
    body: dict[str, Any] = Body(...),
    users: UserService = Depends(get_users),
    settings: Settings = Depends(get_settings_dep),
):
    user = await users.register(
        name=body.get("name"),
        email=body.get("email"),
        password=body.get("password"),
        role=body.get("role"),
    )
    return _auth_response(user, settings)


@router.post("/login")
async def login(
    request: LoginRequest,
    users: UserService = Depends(get_users),
    settings: Settings = Depends(get_settings_dep),
):
    user = await users.authenticate(request.email, request.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _auth_response(user, settings)


# =============================================================================
# Profile
# =============================================================================


@router.get("/profile")
async def get_profile(
    ctx: AuthContext = Depends(require_auth()),
    users: UserService = Depends(get_users),
):
    user = await _current_user(ctx, users)
    return users.public(user).to_api()


@router.put("/profile")
async def update_profile(
    request: ProfileUpdate,
    ctx: AuthContext = Depends(require_auth()),
    users: UserService = Depends(get_users),
):
    user = await users.update_profile(ctx.user_id, name=request.name, bio=request.bio)
    return users.public(user).to_api()


@router.post("/profile/avatar")
async def upload_avatar(
    file: UploadFile = File(...),
    ctx: AuthContext = Depends(require_auth()),
    users: UserService = Depends(get_users),
):
    data = await file.read()
    user = await users.set_avatar(ctx.user_id, file.filename, data, file.content_type)
    return users.public(user).to_api()


# =============================================================================
# Password Reset
# =============================================================================


@router.post("/forgot-password")
async def forgot_password(
    body: dict[str, Any] = Body(...),
    users: UserService = Depends(get_users),
):
    await users.create_password_reset(body.get("email"))
    return {"message": RESET_REQUESTED}


@router.post("/reset-password")
async def reset_password(
    body: dict[str, Any] = Body(...),
    users: UserService = Depends(get_users),
):
    await users.reset_password(body.get("token"), body.get("password"))
    return {"message": "Password has been reset successfully."}
