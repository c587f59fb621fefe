"""
Admin session store.

Maps an opaque token to an admin identity with an expiry. `validate` only
ever answers "valid identity" or None; callers never learn whether a token
was unknown, expired or belonged to a deactivated account.
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from dotareg.models.models import AdminSession, AdminUser, utcnow
from dotareg.validators import as_utc

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "session_"


def new_token() -> str:
    return TOKEN_PREFIX + secrets.token_urlsafe(32)


class SessionStore:
    def __init__(self, session: AsyncSession, ttl: timedelta) -> None:
        self._session = session
        self._ttl = ttl

    async def create_session(self, user: AdminUser) -> AdminSession:
        admin_session = AdminSession(
            id=new_token(),
            user_id=user.id,
            user=user,
            role=user.role,
            expires_at=utcnow() + self._ttl,
        )
        self._session.add(admin_session)
        await self._session.flush()
        logger.info("Admin session created for user_id=%d", user.id)
        return admin_session

    async def validate(self, token: Optional[str]) -> Optional[AdminUser]:
        if not token:
            return None
        admin_session = await self._session.get(AdminSession, token)
        if admin_session is None:
            return None

        if as_utc(admin_session.expires_at) <= utcnow():
            # Expired: drop it now instead of waiting for the sweep
            await self._session.execute(
                delete(AdminSession).where(AdminSession.id == token)
            )
            return None

        user = admin_session.user
        if user is None or not user.is_active:
            return None
        return user

    async def destroy(self, token: str) -> None:
        await self._session.execute(delete(AdminSession).where(AdminSession.id == token))

    async def destroy_all_for(self, user_id: int) -> None:
        await self._session.execute(delete(AdminSession).where(AdminSession.user_id == user_id))

    async def sweep_expired(self, now: Optional[datetime] = None) -> int:
        result = await self._session.execute(
            delete(AdminSession)
            .where(AdminSession.expires_at <= (now or utcnow()))
            .execution_options(synchronize_session="fetch")
        )
        removed = result.rowcount or 0
        if removed:
            logger.info("Swept %d expired admin sessions", removed)
        return removed

