"""
Admin accounts: password hashing, login and user management.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import bcrypt
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dotareg.errors import (
    AuthenticationError,
    ConflictError,
    InputError,
    NotFoundError,
    PermissionDeniedError,
)
from dotareg.models.models import AdminRole, AdminSession, AdminUser, utcnow
from dotareg.services.session_store import SessionStore

logger = logging.getLogger(__name__)


# ── Passwords ─────────────────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """False for anything that is not a bcrypt hash (legacy plaintext included)."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


# ── Login ─────────────────────────────────────────────────────────────────────

async def get_user_by_username(session: AsyncSession, username: str) -> Optional[AdminUser]:
    result = await session.execute(
        select(AdminUser).where(func.lower(AdminUser.username) == func.lower(username.strip()))
    )
    return result.scalar_one_or_none()


async def authenticate(
    session: AsyncSession,
    store: SessionStore,
    username: str,
    password: str,
) -> Tuple[AdminUser, AdminSession]:
    user = await get_user_by_username(session, username)
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        logger.info("Failed login for username=%r", username)
        raise AuthenticationError("Invalid credentials")

    admin_session = await store.create_session(user)
    return user, admin_session


async def change_password(
    session: AsyncSession,
    user: AdminUser,
    current_password: str,
    new_password: str,
) -> None:
    if not verify_password(current_password, user.password_hash):
        raise InputError("Current password is incorrect")
    if current_password == new_password:
        raise InputError("New password must be different from the current password")
    user.password_hash = hash_password(new_password)
    user.updated_at = utcnow()
    await session.flush()
    logger.info("Password changed for user_id=%d", user.id)


# ── User management (superadmin) ──────────────────────────────────────────────

async def list_users(session: AsyncSession) -> List[AdminUser]:
    result = await session.execute(select(AdminUser).order_by(AdminUser.username))
    return list(result.scalars().all())


async def create_user(
    session: AsyncSession,
    username: str,
    password: str,
    role: str = AdminRole.ADMIN,
    full_name: Optional[str] = None,
    email: Optional[str] = None,
) -> AdminUser:
    if await get_user_by_username(session, username) is not None:
        raise ConflictError(f"Username '{username}' is already taken", field="username")
    user = AdminUser(
        username=username,
        password_hash=hash_password(password),
        role=role,
        full_name=full_name,
        email=email,
        is_active=True,
    )
    session.add(user)
    await session.flush()
    logger.info("Admin user created: %s (%s)", username, role)
    return user


async def delete_user(session: AsyncSession, actor: AdminUser, user_id: int) -> None:
    if actor.id == user_id:
        raise PermissionDeniedError("You cannot delete your own account")
    user = await session.get(AdminUser, user_id)
    if user is None:
        raise NotFoundError("User not found")
    await session.execute(delete(AdminSession).where(AdminSession.user_id == user_id))
    await session.execute(delete(AdminUser).where(AdminUser.id == user_id))
    logger.info("Admin user %d deleted by %s", user_id, actor.username)


async def set_user_active(session: AsyncSession, actor: AdminUser, user_id: int, active: bool) -> AdminUser:
    if actor.id == user_id and not active:
        raise PermissionDeniedError("You cannot deactivate your own account")
    user = await session.get(AdminUser, user_id)
    if user is None:
        raise NotFoundError("User not found")
    user.is_active = active
    if not active:
        await session.execute(delete(AdminSession).where(AdminSession.user_id == user_id))
    await session.flush()
    return user


async def ensure_bootstrap_admin(
    session: AsyncSession,
    username: str,
    password: Optional[str],
) -> Optional[AdminUser]:
    """Create the first superadmin when the table is empty and a password is configured."""
    if not password:
        return None
    count = await session.scalar(select(func.count()).select_from(AdminUser))
    if count:
        return None
    user = await create_user(session, username, password, role=AdminRole.SUPERADMIN)
    logger.info("Bootstrap superadmin '%s' created", username)
    return user
