"""
Public registration API: open sessions, status, player submission and the
Discord id lookup used by the bot.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dotareg.models.models import WebhookType
from dotareg.services import notification_service, registration_service, webhook_service
from dotareg.services.notification_service import Dispatcher
from dotareg.validators import PlayerSubmission
from dotareg.web.deps import client_ip, get_db, get_dispatcher, rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["registration"])


@router.get("/registration-sessions/public")
async def public_sessions(session: AsyncSession = Depends(get_db)) -> dict:
    rows = await registration_service.list_public_sessions(session)
    return {
        "success": True,
        "sessions": [
            {**status.to_dict(), "description": reg.description, "adminUsername": reg.admin_username}
            for reg, status in rows
        ],
    }


@router.get("/registration/{session_id}")
async def session_info(session_id: str, session: AsyncSession = Depends(get_db)) -> dict:
    reg = await registration_service.get_registration_session(session, session_id)
    status = await registration_service.get_status(session, session_id)
    return {
        "success": True,
        "session": {
            **status.to_dict(),
            "description": reg.description,
            "adminUsername": reg.admin_username,
        },
    }


@router.get("/registration/{session_id}/status")
async def registration_status(session_id: str, session: AsyncSession = Depends(get_db)) -> dict:
    status = await registration_service.get_status(session, session_id)
    return {"success": True, **status.to_dict()}


@router.post("/registration/{session_id}/players", dependencies=[Depends(rate_limit)])
async def submit_player(
    session_id: str,
    body: PlayerSubmission,
    request: Request,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict:
    player, reg, status = await registration_service.submit_player(
        session, session_id, body, ip_address=client_ip(request)
    )

    webhook = await webhook_service.get_webhook(session, reg.admin_user_id, WebhookType.REGISTRATION)
    if webhook is not None:
        content = notification_service.render_template(
            webhook_service.template_for(webhook),
            notification_service.registration_values(player, reg, status.player_count),
        )
        background_tasks.add_task(notification_service.deliver, dispatcher, webhook.url, content)

    return {
        "success": True,
        "message": "Registration successful",
        "player": player.to_dict(),
        "status": status.to_dict(),
    }


@router.get("/players/by-discord/{discord_id}")
async def players_by_discord(discord_id: str, session: AsyncSession = Depends(get_db)) -> dict:
    rows = await registration_service.find_players_by_discord(session, discord_id)
    return {
        "success": True,
        "registrations": [{**player.to_dict(), "title": title} for player, title in rows],
    }
