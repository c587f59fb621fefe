"""
Admin API for Discord webhook configuration and player bans.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dotareg.errors import InputError, NotFoundError, UpstreamError
from dotareg.models.models import AdminUser, WebhookType
from dotareg.services import ban_service, webhook_service
from dotareg.services.notification_service import Dispatcher
from dotareg.validators import BanData, WebhookData
from dotareg.web.deps import get_db, get_dispatcher, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["webhooks", "bans"])

TEST_MESSAGE = "✅ Test message from Tournament Manager. Your {type} webhook is working."


def _check_type(webhook_type: str) -> None:
    if webhook_type not in WebhookType.ALL:
        raise InputError(f"Unknown webhook type '{webhook_type}'")


@router.get("/webhooks")
async def list_webhooks(
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    webhooks = await webhook_service.list_webhooks(session, user.id)
    return {"success": True, "webhooks": [w.to_dict() for w in webhooks]}


@router.post("/webhooks")
async def set_webhook(
    body: WebhookData,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    webhook = await webhook_service.set_webhook(session, user.id, body)
    return {"success": True, "webhook": webhook.to_dict()}


@router.delete("/webhooks")
async def delete_webhook(
    webhook_type: str = Query(alias="type"),
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    _check_type(webhook_type)
    await webhook_service.delete_webhook(session, user.id, webhook_type)
    return {"success": True, "message": "Webhook removed"}


@router.post("/webhooks/{webhook_type}/test")
async def test_webhook(
    webhook_type: str,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict:
    _check_type(webhook_type)
    webhook = await webhook_service.get_webhook(session, user.id, webhook_type)
    if webhook is None:
        raise NotFoundError(f"No {webhook_type} webhook configured")

    result = await dispatcher.send(webhook.url, TEST_MESSAGE.format(type=webhook_type))
    if not result.ok:
        logger.warning("Webhook test for %s (%s) failed: %s", user.username, webhook_type, result.error)
        raise UpstreamError("Webhook test failed")
    return {"success": True, "message": "Test message sent"}


# ── Bans ──────────────────────────────────────────────────────────────────────

@router.get("/bans")
async def list_bans(
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    bans = await ban_service.list_bans(session, user)
    return {"success": True, "bans": [b.to_dict() for b in bans]}


@router.post("/bans", status_code=201)
async def ban_player(
    body: BanData,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    ban = await ban_service.ban_player(session, user, body)
    return {"success": True, "ban": ban.to_dict()}


@router.delete("/bans/{dota2id}")
async def unban_player(
    dota2id: str,
    user: AdminUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> dict:
    lifted = await ban_service.unban_player(session, user, dota2id)
    return {"success": True, "lifted": lifted}
