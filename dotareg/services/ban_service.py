"""
Player bans, scoped to the banning admin's tournaments.
"""
from __future__ import annotations

import logging
from typing import List

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dotareg.errors import ConflictError, NotFoundError
from dotareg.models.models import AdminUser, BannedPlayer, utcnow
from dotareg.validators import BanData

logger = logging.getLogger(__name__)


def _active_for(admin_user_id: int):
    return (
        BannedPlayer.banned_by == admin_user_id,
        BannedPlayer.is_active.is_(True),
        or_(BannedPlayer.expires_at.is_(None), BannedPlayer.expires_at > utcnow()),
    )


async def is_banned(session: AsyncSession, admin_user_id: int, dota2id: str) -> bool:
    result = await session.execute(
        select(BannedPlayer.id)
        .where(*_active_for(admin_user_id), BannedPlayer.dota2id == dota2id)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def list_bans(session: AsyncSession, user: AdminUser) -> List[BannedPlayer]:
    result = await session.execute(
        select(BannedPlayer)
        .where(*_active_for(user.id))
        .order_by(BannedPlayer.created_at.desc())
    )
    return list(result.scalars().all())


async def ban_player(session: AsyncSession, user: AdminUser, data: BanData) -> BannedPlayer:
    if await is_banned(session, user.id, data.dota2id):
        raise ConflictError(f"Dota 2 ID {data.dota2id} is already banned", field="dota2id")
    ban = BannedPlayer(
        dota2id=data.dota2id,
        player_name=data.player_name,
        reason=data.reason,
        banned_by=user.id,
        expires_at=data.expires_at,
    )
    session.add(ban)
    await session.flush()
    logger.info("Player %s banned by %s", data.dota2id, user.username)
    return ban


async def unban_player(session: AsyncSession, user: AdminUser, dota2id: str) -> int:
    """Lift every active ban this admin holds on `dota2id`."""
    result = await session.execute(
        select(BannedPlayer).where(*_active_for(user.id), BannedPlayer.dota2id == dota2id)
    )
    bans = list(result.scalars().all())
    if not bans:
        raise NotFoundError("No active ban for this Dota 2 ID")
    now = utcnow()
    for ban in bans:
        ban.is_active = False
        ban.lifted_at = now
    await session.flush()
    logger.info("Player %s unbanned by %s", dota2id, user.username)
    return len(bans)
