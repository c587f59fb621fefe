"""
Admin API for registration sessions and their players.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dotareg.config import Settings
from dotareg.models.models import AdminUser
from dotareg.services import registration_service
from dotareg.validators import (
    PlayerUpdate,
    RegistrationSessionUpdate,
    RegistrationWindowData,
    ReopenData,
)
from dotareg.web.deps import get_db, get_settings, require_admin

router = APIRouter(prefix="/api", tags=["registration-sessions"])


async def _session_payload(session: AsyncSession, session_id: str) -> dict:
    reg = await registration_service.get_registration_session(session, session_id)
    status = await registration_service.get_status(session, session_id)
    return registration_service.session_to_dict(reg, status.player_count, status.state)


@router.get("/registration-sessions")
async def list_sessions(
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    rows = await registration_service.list_registration_sessions(session, user)
    return {
        "success": True,
        "sessions": [
            registration_service.session_to_dict(reg, status.player_count, status.state)
            for reg, status in rows
        ],
    }


@router.post("/registration-sessions", status_code=201)
async def create_session(
    body: RegistrationWindowData,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict:
    reg = await registration_service.create_registration_session(
        session, user, body, default_max_players=settings.DEFAULT_MAX_PLAYERS
    )
    return {"success": True, "session": await _session_payload(session, reg.session_id)}


@router.get("/registration-sessions/{session_id}")
async def get_session(
    session_id: str,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    await registration_service.get_owned_session(session, user, session_id)
    return {"success": True, "session": await _session_payload(session, session_id)}


@router.put("/registration-sessions/{session_id}")
async def update_session(
    session_id: str,
    body: RegistrationSessionUpdate,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    await registration_service.update_registration_session(session, user, session_id, body)
    return {"success": True, "session": await _session_payload(session, session_id)}


@router.delete("/registration-sessions/{session_id}")
async def delete_session(
    session_id: str,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    await registration_service.delete_registration_session(session, user, session_id)
    return {"success": True, "message": "Registration session deleted"}


@router.post("/registration-sessions/{session_id}/close")
async def close_session(
    session_id: str,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    await registration_service.close_registration(session, user, session_id)
    return {"success": True, "session": await _session_payload(session, session_id)}


@router.post("/registration-sessions/{session_id}/reopen")
async def reopen_session(
    session_id: str,
    body: ReopenData,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    await registration_service.reopen_registration(session, user, session_id, body)
    return {"success": True, "session": await _session_payload(session, session_id)}


# ── Players ───────────────────────────────────────────────────────────────────

@router.get("/registration-sessions/{session_id}/players")
async def list_session_players(
    session_id: str,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    players = await registration_service.list_players(session, user, session_id)
    return {"success": True, "players": [p.to_dict() for p in players]}


@router.delete("/registration-sessions/{session_id}/players")
async def remove_all_players(
    session_id: str,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    removed = await registration_service.remove_all_players(session, user, session_id)
    return {"success": True, "removed": removed}


@router.get("/players")
async def list_all_players(
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    players = await registration_service.list_players(session, user)
    return {"success": True, "players": [p.to_dict() for p in players]}


@router.put("/players/{player_id}")
async def update_player(
    player_id: int,
    body: PlayerUpdate,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    player = await registration_service.update_player(session, user, player_id, body)
    return {"success": True, "player": player.to_dict()}


@router.delete("/players/{player_id}")
async def delete_player(
    player_id: int,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    await registration_service.delete_player(session, user, player_id)
    return {"success": True, "message": "Player deleted"}
