"""
Webhook notification tests (notification_service.py, webhook_service.py).

Outgoing HTTP is served by httpx.MockTransport; nothing leaves the process.
"""
from __future__ import annotations

import json
from typing import List

import httpx
import pytest

from dotareg.config import Settings
from dotareg.errors import NotFoundError
from dotareg.models.models import Player, RegistrationSession, WebhookType
from dotareg.services import webhook_service
from dotareg.services.notification_service import (
    DeliveryResult,
    RetryingDispatcher,
    WebhookDispatcher,
    build_dispatcher,
    deliver,
    registration_values,
    render_template,
)
from dotareg.validators import WebhookData
from tests.conftest import RecordingDispatcher, make_admin

HOOK_URL = "https://discord.com/api/webhooks/123/token-abc"


def _dispatcher(handler) -> WebhookDispatcher:
    return WebhookDispatcher(timeout=1.0, username="Cup Bot", transport=httpx.MockTransport(handler))


class _ScriptedDispatcher:
    def __init__(self, results: List[DeliveryResult]) -> None:
        self._results = list(results)
        self.calls = 0

    async def send(self, url: str, content: str) -> DeliveryResult:
        self.calls += 1
        return self._results.pop(0)


# ─────────────────────────── Templates ───────────────────────────────────────

class TestTemplates:
    def test_known_placeholders_filled(self) -> None:
        assert render_template("{name} joined {title}", {"name": "Ceb", "title": "Cup"}) == "Ceb joined Cup"

    def test_unknown_placeholders_kept(self) -> None:
        assert render_template("{name} / {team}", {"name": "Ceb"}) == "Ceb / {team}"

    def test_registration_values(self) -> None:
        player = Player(name="Ceb", dota2id="88271237", peakmmr=6500)
        reg = RegistrationSession(title="Cup", max_players=None)
        values = registration_values(player, reg, 3)
        assert values["mmr"] == 6500
        assert values["max_players"] == "∞"
        text = render_template(WebhookType.DEFAULT_TEMPLATES[WebhookType.REGISTRATION], values)
        assert "Ceb" in text and "3/∞" in text


# ─────────────────────────── WebhookDispatcher ───────────────────────────────

class TestWebhookDispatcher:
    async def test_success(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(204)

        result = await _dispatcher(handler).send(HOOK_URL, "hello")
        assert result.ok
        assert result.status_code == 204
        assert seen["url"] == HOOK_URL
        assert seen["body"] == {"content": "hello", "username": "Cup Bot"}

    async def test_server_error_is_reported(self) -> None:
        result = await _dispatcher(lambda request: httpx.Response(500, text="boom")).send(HOOK_URL, "x")
        assert not result.ok
        assert result.status_code == 500
        assert result.error == "HTTP 500"

    async def test_timeout_is_reported(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        result = await _dispatcher(handler).send(HOOK_URL, "x")
        assert result == DeliveryResult(ok=False, error="timeout")

    async def test_connection_error_is_reported(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        result = await _dispatcher(handler).send(HOOK_URL, "x")
        assert not result.ok
        assert result.status_code is None
        assert "refused" in result.error

    async def test_deliver_never_raises(self) -> None:
        recorder = RecordingDispatcher(ok=False)
        await deliver(recorder, HOOK_URL, "x")
        assert recorder.sent == [(HOOK_URL, "x")]


# ─────────────────────────── RetryingDispatcher ──────────────────────────────

class TestRetryingDispatcher:
    async def test_retries_server_errors_then_succeeds(self) -> None:
        inner = _ScriptedDispatcher([
            DeliveryResult(ok=False, status_code=502, error="HTTP 502"),
            DeliveryResult(ok=False, error="timeout"),
            DeliveryResult(ok=True, status_code=204),
        ])
        result = await RetryingDispatcher(inner, attempts=3, backoff=0).send(HOOK_URL, "x")
        assert result.ok
        assert inner.calls == 3

    async def test_gives_up_after_attempts(self) -> None:
        inner = _ScriptedDispatcher([DeliveryResult(ok=False, status_code=429)] * 2)
        result = await RetryingDispatcher(inner, attempts=2, backoff=0).send(HOOK_URL, "x")
        assert not result.ok
        assert inner.calls == 2

    async def test_client_error_not_retried(self) -> None:
        inner = _ScriptedDispatcher([DeliveryResult(ok=False, status_code=404, error="HTTP 404")])
        result = await RetryingDispatcher(inner, attempts=5, backoff=0).send(HOOK_URL, "x")
        assert result.status_code == 404
        assert inner.calls == 1

    def test_build_dispatcher_honours_settings(self) -> None:
        plain = build_dispatcher(Settings(_env_file=None))
        assert isinstance(plain, WebhookDispatcher)
        retrying = build_dispatcher(Settings(WEBHOOK_RETRY_ATTEMPTS=2, _env_file=None))
        assert isinstance(retrying, RetryingDispatcher)


# ─────────────────────────── Webhook config ──────────────────────────────────

class TestWebhookConfig:
    async def test_upsert_and_template_default(self, async_session) -> None:
        owner = await make_admin(async_session)
        hook = await webhook_service.set_webhook(
            async_session, owner.id, WebhookData(type="registration", url=HOOK_URL)
        )
        assert webhook_service.template_for(hook) == WebhookType.DEFAULT_TEMPLATES["registration"]

        await webhook_service.set_webhook(
            async_session, owner.id,
            WebhookData(type="registration", url=HOOK_URL, template="{name} is in"),
        )
        hooks = await webhook_service.list_webhooks(async_session, owner.id)
        assert len(hooks) == 1
        assert webhook_service.template_for(hooks[0]) == "{name} is in"

    async def test_webhooks_are_per_admin(self, async_session) -> None:
        owner = await make_admin(async_session)
        other = await make_admin(async_session, "other")
        await webhook_service.set_webhook(
            async_session, owner.id, WebhookData(type="teams", url=HOOK_URL)
        )
        assert await webhook_service.get_webhook(async_session, other.id, "teams") is None

    async def test_delete_missing_webhook(self, async_session) -> None:
        owner = await make_admin(async_session)
        with pytest.raises(NotFoundError):
            await webhook_service.delete_webhook(async_session, owner.id, "bracket")
