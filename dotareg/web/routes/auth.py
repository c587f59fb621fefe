"""
Admin login, logout, session check, password change and user management.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dotareg.models.models import AdminUser
from dotareg.services import auth_service
from dotareg.services.session_store import SessionStore
from dotareg.validators import (
    AdminUserData,
    LoginData,
    PasswordChangeData,
    UserStatusData,
    as_utc,
)
from dotareg.web.deps import (
    get_db,
    get_session_store,
    require_admin,
    require_superadmin,
    session_token,
)

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/auth/login")
async def login(
    body: LoginData,
    session: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
) -> dict:
    user, admin_session = await auth_service.authenticate(session, store, body.username, body.password)
    return {
        "success": True,
        "sessionId": admin_session.id,
        "expiresAt": as_utc(admin_session.expires_at).isoformat(),
        "user": user.to_public(),
    }


@router.post("/auth/logout")
async def logout(
    request: Request,
    user: AdminUser = Depends(require_admin),
    store: SessionStore = Depends(get_session_store),
) -> dict:
    await store.destroy(session_token(request))
    return {"success": True, "message": "Logged out"}


@router.get("/auth/session")
async def check_session(user: AdminUser = Depends(require_admin)) -> dict:
    return {"success": True, "user": user.to_public()}


@router.post("/auth/password")
async def change_password(
    body: PasswordChangeData,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    await auth_service.change_password(session, user, body.current_password, body.new_password)
    return {"success": True, "message": "Password updated"}


@router.post("/auth/sweep")
async def sweep_sessions(
    user: AdminUser = Depends(require_superadmin),
    store: SessionStore = Depends(get_session_store),
) -> dict:
    removed = await store.sweep_expired()
    return {"success": True, "removed": removed}


# ── User management ───────────────────────────────────────────────────────────

@router.get("/admin/users")
async def list_users(
    user: AdminUser = Depends(require_superadmin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    users = await auth_service.list_users(session)
    return {"success": True, "users": [u.to_public() for u in users]}


@router.post("/admin/users", status_code=201)
async def create_user(
    body: AdminUserData,
    user: AdminUser = Depends(require_superadmin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    created = await auth_service.create_user(
        session, body.username, body.password, body.role, body.full_name, body.email
    )
    return {"success": True, "user": created.to_public()}


@router.patch("/admin/users/{user_id}")
async def set_user_status(
    user_id: int,
    body: UserStatusData,
    user: AdminUser = Depends(require_superadmin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    updated = await auth_service.set_user_active(session, user, user_id, body.is_active)
    return {"success": True, "user": updated.to_public()}


@router.delete("/admin/users/{user_id}")
async def delete_user(
    user_id: int,
    user: AdminUser = Depends(require_superadmin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    await auth_service.delete_user(session, user, user_id)
    return {"success": True, "message": "User deleted"}
