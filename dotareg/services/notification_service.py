"""
Discord webhook notifications.

`WebhookDispatcher` makes exactly one bounded-timeout POST per message and
reports what happened; it never raises for delivery problems and never
retries. `RetryingDispatcher` wraps any dispatcher with a bounded retry
policy when one is configured.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx

from dotareg.config import Settings
from dotareg.models.models import Player, RegistrationSession

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


class Dispatcher(Protocol):
    async def send(self, url: str, content: str) -> DeliveryResult: ...


class _SafeDict(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def render_template(template: str, values: Dict[str, Any]) -> str:
    """Fill `{placeholder}`s; unknown placeholders are left as written."""
    return template.format_map(_SafeDict(values))


def registration_values(
    player: Player,
    reg: RegistrationSession,
    player_count: int,
) -> Dict[str, Any]:
    return {
        "name": player.name,
        "dota2id": player.dota2id,
        "mmr": player.peakmmr,
        "title": reg.title,
        "player_count": player_count,
        "max_players": reg.max_players if reg.max_players is not None else "∞",
    }


class WebhookDispatcher:
    def __init__(
        self,
        timeout: float = 5.0,
        username: str = "Tournament Manager",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._username = username
        self._transport = transport

    async def send(self, url: str, content: str) -> DeliveryResult:
        payload = {"content": content, "username": self._username}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(url, json=payload)
        except httpx.TimeoutException:
            logger.warning("Webhook delivery timed out after %.1fs", self._timeout)
            return DeliveryResult(ok=False, error="timeout")
        except httpx.HTTPError as e:
            logger.warning("Webhook delivery failed: %s", e)
            return DeliveryResult(ok=False, error=str(e))

        if resp.is_success:
            return DeliveryResult(ok=True, status_code=resp.status_code)

        logger.warning(
            "Webhook rejected the message: HTTP %d %s", resp.status_code, resp.text[:200]
        )
        return DeliveryResult(ok=False, status_code=resp.status_code, error=f"HTTP {resp.status_code}")


class RetryingDispatcher:
    """
    Bounded retry with linear backoff around another dispatcher.

    Client errors (4xx other than 429) are not retried: the same request
    would be rejected again.
    """

    def __init__(self, inner: Dispatcher, attempts: int = 3, backoff: float = 1.0) -> None:
        self._inner = inner
        self._attempts = max(1, attempts)
        self._backoff = backoff

    async def send(self, url: str, content: str) -> DeliveryResult:
        result = DeliveryResult(ok=False, error="not attempted")
        for attempt in range(1, self._attempts + 1):
            result = await self._inner.send(url, content)
            if result.ok or not _retryable(result):
                return result
            if attempt < self._attempts:
                logger.info("Retrying webhook delivery (%d/%d)", attempt + 1, self._attempts)
                await asyncio.sleep(self._backoff * attempt)
        return result


def _retryable(result: DeliveryResult) -> bool:
    code = result.status_code
    return code is None or code == 429 or code >= 500


def build_dispatcher(settings: Settings) -> Dispatcher:
    dispatcher: Dispatcher = WebhookDispatcher(
        timeout=settings.WEBHOOK_TIMEOUT_SECONDS,
        username=settings.WEBHOOK_USERNAME,
    )
    if settings.webhook_retry_enabled:
        dispatcher = RetryingDispatcher(
            dispatcher,
            attempts=settings.WEBHOOK_RETRY_ATTEMPTS + 1,
            backoff=settings.WEBHOOK_RETRY_BACKOFF_SECONDS,
        )
    return dispatcher


async def deliver(dispatcher: Dispatcher, url: str, content: str) -> None:
    """Background-task entry point: send and log the outcome, never raise."""
    result = await dispatcher.send(url, content)
    if result.ok:
        logger.info("Webhook notification delivered")
    else:
        logger.warning("Webhook notification not delivered: %s", result.error)
