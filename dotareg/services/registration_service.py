"""
Registration session manager and player registration.

State per registration session is derived on every query from the wall
clock, the player count and the admin close flag:

    PENDING  now < start_time
    OPEN     start_time <= now < expires_at, and below max_players if capped
    CLOSED   now >= expires_at, player_count >= max_players, or closed by admin

Once a query observes CLOSED the session is latched closed (is_active=False)
so that nothing but an explicit reopen can leave the state.

All functions receive an AsyncSession; the caller owns the transaction.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dotareg.errors import (
    DuplicatePlayerError,
    InputError,
    NotFoundError,
    PermissionDeniedError,
    PlayerBannedError,
    RegistrationClosedError,
)
from dotareg.models.models import (
    AdminUser,
    Player,
    RegistrationSession,
    RegistrationState,
    utcnow,
)
from dotareg.services import ban_service
from dotareg.validators import (
    PlayerSubmission,
    PlayerUpdate,
    RegistrationSessionUpdate,
    RegistrationWindowData,
    ReopenData,
    as_utc,
)

logger = logging.getLogger(__name__)

SESSION_ID_PREFIX = "reg_"


def new_session_id() -> str:
    return SESSION_ID_PREFIX + secrets.token_urlsafe(12)


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None


# ── State machine ─────────────────────────────────────────────────────────────

def compute_state(
    reg: RegistrationSession,
    player_count: int,
    now: Optional[datetime] = None,
) -> str:
    now = now or utcnow()
    start = as_utc(reg.start_time)
    expiry = as_utc(reg.expires_at)

    if not reg.is_active:
        return RegistrationState.CLOSED
    if expiry is not None and now >= expiry:
        return RegistrationState.CLOSED
    if reg.max_players is not None and player_count >= reg.max_players:
        return RegistrationState.CLOSED
    if start is not None and now < start:
        return RegistrationState.PENDING
    return RegistrationState.OPEN


@dataclass
class RegistrationStatus:
    session_id: str
    title: str
    state: str
    start_time: Optional[datetime]
    expiry: Optional[datetime]
    max_players: Optional[int]
    player_count: int

    @property
    def is_open(self) -> bool:
        return self.state == RegistrationState.OPEN

    @property
    def countdown_target(self) -> Optional[datetime]:
        if self.state == RegistrationState.PENDING:
            return self.start_time
        if self.state == RegistrationState.OPEN:
            return self.expiry
        return None

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "title": self.title,
            "state": self.state,
            "isOpen": self.is_open,
            "startTime": _iso(self.start_time),
            "expiry": _iso(self.expiry),
            "maxPlayers": self.max_players,
            "playerCount": self.player_count,
            "countdownTarget": _iso(self.countdown_target),
        }


def session_to_dict(reg: RegistrationSession, player_count: int, state: str) -> dict:
    return {
        "id": reg.id,
        "sessionId": reg.session_id,
        "title": reg.title,
        "description": reg.description,
        "adminUsername": reg.admin_username,
        "isActive": reg.is_active,
        "state": state,
        "maxPlayers": reg.max_players,
        "playerCount": player_count,
        "startTime": _iso(reg.start_time),
        "expiresAt": _iso(reg.expires_at),
        "closedAt": _iso(reg.closed_at),
        "createdAt": _iso(reg.created_at),
    }


# ── Lookups ───────────────────────────────────────────────────────────────────

async def count_players(session: AsyncSession, session_id: str) -> int:
    count = await session.scalar(
        select(func.count(Player.id)).where(Player.registration_session_id == session_id)
    )
    return count or 0


async def get_registration_session(session: AsyncSession, session_id: str) -> RegistrationSession:
    result = await session.execute(
        select(RegistrationSession).where(RegistrationSession.session_id == session_id)
    )
    reg = result.scalar_one_or_none()
    if reg is None:
        raise NotFoundError("Registration session not found")
    return reg


def check_owner(user: AdminUser, reg: RegistrationSession) -> None:
    if not user.is_superadmin and reg.admin_user_id != user.id:
        raise PermissionDeniedError("You do not have access to this registration session")


async def get_owned_session(
    session: AsyncSession,
    user: AdminUser,
    session_id: str,
) -> RegistrationSession:
    reg = await get_registration_session(session, session_id)
    check_owner(user, reg)
    return reg


async def get_status(
    session: AsyncSession,
    session_id: str,
    now: Optional[datetime] = None,
) -> RegistrationStatus:
    reg = await get_registration_session(session, session_id)
    return await _status_of(session, reg, now)


async def _status_of(
    session: AsyncSession,
    reg: RegistrationSession,
    now: Optional[datetime] = None,
) -> RegistrationStatus:
    now = now or utcnow()
    player_count = await count_players(session, reg.session_id)
    state = compute_state(reg, player_count, now)

    if state == RegistrationState.CLOSED and reg.is_active:
        reg.is_active = False
        reg.closed_at = now
        await session.flush()
        logger.info("Registration %s closed (expired or full)", reg.session_id)

    return RegistrationStatus(
        session_id=reg.session_id,
        title=reg.title,
        state=state,
        start_time=as_utc(reg.start_time),
        expiry=as_utc(reg.expires_at),
        max_players=reg.max_players,
        player_count=player_count,
    )


# ── Session CRUD (admin) ──────────────────────────────────────────────────────

async def create_registration_session(
    session: AsyncSession,
    owner: AdminUser,
    data: RegistrationWindowData,
    default_max_players: Optional[int] = None,
) -> RegistrationSession:
    reg = RegistrationSession(
        session_id=new_session_id(),
        admin_user_id=owner.id,
        admin_username=owner.username,
        title=data.title,
        description=data.description,
        max_players=data.max_players if data.max_players is not None else default_max_players,
        is_active=True,
        start_time=data.start_time,
        expires_at=data.expires_at,
    )
    session.add(reg)
    await session.flush()
    logger.info("Registration session %s created by %s", reg.session_id, owner.username)
    return reg


async def list_registration_sessions(
    session: AsyncSession,
    user: AdminUser,
) -> List[Tuple[RegistrationSession, RegistrationStatus]]:
    q = select(RegistrationSession).order_by(RegistrationSession.created_at.desc())
    if not user.is_superadmin:
        q = q.where(RegistrationSession.admin_user_id == user.id)
    result = await session.execute(q)
    return [(reg, await _status_of(session, reg)) for reg in result.scalars().all()]


async def list_public_sessions(
    session: AsyncSession,
) -> List[Tuple[RegistrationSession, RegistrationStatus]]:
    """Sessions not closed by an admin, newest first, with their live status."""
    result = await session.execute(
        select(RegistrationSession)
        .where(RegistrationSession.is_active.is_(True))
        .order_by(RegistrationSession.created_at.desc())
    )
    return [(reg, await _status_of(session, reg)) for reg in result.scalars().all()]


async def update_registration_session(
    session: AsyncSession,
    user: AdminUser,
    session_id: str,
    data: RegistrationSessionUpdate,
) -> RegistrationSession:
    reg = await get_owned_session(session, user, session_id)
    changes = data.model_dump(exclude_unset=True)

    window_keys = {"start_time", "expires_at", "max_players"}
    if window_keys & changes.keys() and (
        not reg.is_active
        or (await _status_of(session, reg)).state == RegistrationState.CLOSED
    ):
        raise InputError("Registration is closed; reopen it to change its window or cap")

    for key, value in changes.items():
        if value is None and key in ("title", "description"):
            continue
        setattr(reg, key, value)

    start, expiry = as_utc(reg.start_time), as_utc(reg.expires_at)
    if start and expiry and expiry <= start:
        raise InputError("Registration end must be after the start time")

    reg.updated_at = utcnow()
    await session.flush()
    return reg


async def close_registration(
    session: AsyncSession,
    user: AdminUser,
    session_id: str,
) -> RegistrationSession:
    reg = await get_owned_session(session, user, session_id)
    if reg.is_active:
        reg.is_active = False
        reg.closed_at = utcnow()
        await session.flush()
        logger.info("Registration %s closed by %s", session_id, user.username)
    return reg


async def reopen_registration(
    session: AsyncSession,
    user: AdminUser,
    session_id: str,
    data: ReopenData,
) -> RegistrationSession:
    reg = await get_owned_session(session, user, session_id)
    now = utcnow()
    if data.expires_at <= now:
        raise InputError("New registration end must be in the future")

    if data.max_players is not None:
        reg.max_players = data.max_players
    if reg.max_players is not None:
        if await count_players(session, session_id) >= reg.max_players:
            raise InputError("Registration is full; raise maxPlayers to reopen it")

    reg.start_time = data.start_time
    reg.expires_at = data.expires_at
    reg.is_active = True
    reg.closed_at = None
    reg.updated_at = now
    await session.flush()
    logger.info("Registration %s reopened by %s", session_id, user.username)
    return reg


async def delete_registration_session(
    session: AsyncSession,
    user: AdminUser,
    session_id: str,
) -> None:
    if not user.is_superadmin:
        raise PermissionDeniedError("Only superadmins can delete registration sessions")
    await get_registration_session(session, session_id)
    await session.execute(delete(Player).where(Player.registration_session_id == session_id))
    await session.execute(
        delete(RegistrationSession).where(RegistrationSession.session_id == session_id)
    )
    logger.info("Registration session %s deleted by %s", session_id, user.username)


# ── Player registration ───────────────────────────────────────────────────────

async def _find_duplicate(
    session: AsyncSession,
    session_id: str,
    name: str,
    dota2id: str,
    discord_id: Optional[str] = None,
    exclude_id: Optional[int] = None,
) -> Optional[DuplicatePlayerError]:
    conditions = [func.lower(Player.name) == func.lower(name), Player.dota2id == dota2id]
    if discord_id:
        conditions.append(Player.discord_id == discord_id)
    q = select(Player).where(Player.registration_session_id == session_id, or_(*conditions))
    if exclude_id is not None:
        q = q.where(Player.id != exclude_id)
    existing = (await session.execute(q.limit(1))).scalar_one_or_none()
    if existing is None:
        return None

    if existing.dota2id == dota2id:
        return DuplicatePlayerError(f"Dota 2 ID {dota2id} is already registered", field="dota2id")
    if existing.name.lower() == name.lower():
        return DuplicatePlayerError(f"Player name '{name}' is already registered", field="name")
    return DuplicatePlayerError("This Discord account is already registered", field="discord_id")


async def submit_player(
    session: AsyncSession,
    session_id: str,
    data: PlayerSubmission,
    ip_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[Player, RegistrationSession, RegistrationStatus]:
    """
    Register a player through the public form or the bot.

    Order: status gate, ban check, duplicate check, insert. Returns the new
    player, its session and the status after the insert.
    """
    reg = await get_registration_session(session, session_id)
    status = await _status_of(session, reg, now)
    if status.state == RegistrationState.PENDING:
        raise RegistrationClosedError("Registration has not opened yet", state=status.state)
    if status.state == RegistrationState.CLOSED:
        raise RegistrationClosedError("Registration is closed", state=status.state)

    if await ban_service.is_banned(session, reg.admin_user_id, data.dota2id):
        raise PlayerBannedError("This player is banned from this organiser's tournaments")

    duplicate = await _find_duplicate(session, session_id, data.name, data.dota2id, data.discord_id)
    if duplicate is not None:
        raise duplicate

    player = Player(
        registration_session_id=session_id,
        name=data.name,
        dota2id=data.dota2id,
        peakmmr=data.peakmmr,
        discord_id=data.discord_id,
        ip_address=ip_address,
    )
    session.add(player)
    try:
        await session.flush()
    except IntegrityError:
        # A concurrent submission won the unique index race
        await session.rollback()
        raise DuplicatePlayerError("Player is already registered", field="dota2id")

    logger.info("Player %s registered in %s", player.dota2id, session_id)
    return player, reg, await _status_of(session, reg, now)


async def list_players(
    session: AsyncSession,
    user: AdminUser,
    session_id: Optional[str] = None,
) -> List[Player]:
    q = select(Player).order_by(Player.registered_at)
    if session_id is not None:
        await get_owned_session(session, user, session_id)
        q = q.where(Player.registration_session_id == session_id)
    elif not user.is_superadmin:
        q = q.join(RegistrationSession).where(RegistrationSession.admin_user_id == user.id)
    result = await session.execute(q)
    return list(result.scalars().all())


async def _get_owned_player(session: AsyncSession, user: AdminUser, player_id: int) -> Player:
    player = await session.get(Player, player_id)
    if player is None:
        raise NotFoundError("Player not found")
    await get_owned_session(session, user, player.registration_session_id)
    return player


async def update_player(
    session: AsyncSession,
    user: AdminUser,
    player_id: int,
    data: PlayerUpdate,
) -> Player:
    player = await _get_owned_player(session, user, player_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)

    name = changes.get("name", player.name)
    dota2id = changes.get("dota2id", player.dota2id)
    duplicate = await _find_duplicate(
        session, player.registration_session_id, name, dota2id, exclude_id=player.id
    )
    if duplicate is not None:
        raise duplicate

    for key, value in changes.items():
        setattr(player, key, value)
    player.updated_at = utcnow()
    await session.flush()
    return player


async def delete_player(session: AsyncSession, user: AdminUser, player_id: int) -> None:
    await _get_owned_player(session, user, player_id)
    await session.execute(delete(Player).where(Player.id == player_id))


async def remove_all_players(session: AsyncSession, user: AdminUser, session_id: str) -> int:
    await get_owned_session(session, user, session_id)
    result = await session.execute(
        delete(Player).where(Player.registration_session_id == session_id)
    )
    removed = result.rowcount or 0
    logger.info("Removed %d players from %s", removed, session_id)
    return removed


async def find_players_by_discord(session: AsyncSession, discord_id: str) -> List[Tuple[Player, str]]:
    """Registrations made with `discord_id`, paired with the session title."""
    result = await session.execute(
        select(Player, RegistrationSession.title)
        .join_from(Player, RegistrationSession)
        .where(Player.discord_id == discord_id)
        .order_by(Player.registered_at.desc())
    )
    return [(player, title) for player, title in result.all()]
