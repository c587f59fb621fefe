"""
Per-admin Discord webhook configuration.
"""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from dotareg.errors import NotFoundError
from dotareg.models.models import DiscordWebhook, WebhookType, utcnow
from dotareg.validators import WebhookData


async def list_webhooks(session: AsyncSession, admin_user_id: int) -> List[DiscordWebhook]:
    result = await session.execute(
        select(DiscordWebhook)
        .where(DiscordWebhook.admin_user_id == admin_user_id)
        .order_by(DiscordWebhook.type)
    )
    return list(result.scalars().all())


async def get_webhook(
    session: AsyncSession,
    admin_user_id: int,
    webhook_type: str,
) -> Optional[DiscordWebhook]:
    return await session.get(DiscordWebhook, (admin_user_id, webhook_type))


async def set_webhook(session: AsyncSession, admin_user_id: int, data: WebhookData) -> DiscordWebhook:
    webhook = await get_webhook(session, admin_user_id, data.type)
    if webhook is None:
        webhook = DiscordWebhook(admin_user_id=admin_user_id, type=data.type)
        session.add(webhook)
    webhook.url = data.url
    webhook.template = data.template or None
    webhook.updated_at = utcnow()
    await session.flush()
    return webhook


async def delete_webhook(session: AsyncSession, admin_user_id: int, webhook_type: str) -> None:
    result = await session.execute(
        delete(DiscordWebhook).where(
            DiscordWebhook.admin_user_id == admin_user_id,
            DiscordWebhook.type == webhook_type,
        )
    )
    if not result.rowcount:
        raise NotFoundError(f"No {webhook_type} webhook configured")


def template_for(webhook: DiscordWebhook) -> str:
    return webhook.template or WebhookType.DEFAULT_TEMPLATES[webhook.type]
