"""
HTTP client the Discord bot uses to talk to the registration API.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-success response from the API; `message` is safe to show users."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ApiClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session_header: str = "x-session-id",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session_header = session_header
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        headers = {self._session_header: token} if token else {}
        async with httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            resp = await client.request(method, path, json=json, headers=headers)

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.is_error or not data.get("success", False):
            message = data.get("message") or f"HTTP {resp.status_code}"
            if data.get("validationErrors"):
                message = "\n".join(e["message"] for e in data["validationErrors"][:5])
            raise ApiError(resp.status_code, message)
        return data

    # ── Auth ──────────────────────────────────────────────────────────────────

    async def login(self, username: str, password: str) -> Dict[str, Any]:
        return await self._request(
            "POST", "/api/auth/login", json={"username": username, "password": password}
        )

    async def logout(self, token: str) -> None:
        await self._request("POST", "/api/auth/logout", token=token)

    # ── Public ────────────────────────────────────────────────────────────────

    async def public_sessions(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/api/registration-sessions/public")
        return data["sessions"]

    async def registrations_for(self, discord_id: str) -> List[Dict[str, Any]]:
        data = await self._request("GET", f"/api/players/by-discord/{discord_id}")
        return data["registrations"]

    async def register(
        self,
        session_id: str,
        name: str,
        dota2id: str,
        mmr: int,
        discord_id: str,
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/api/registration/{session_id}/players",
            json={"name": name, "dota2id": dota2id, "peakmmr": mmr, "discordId": discord_id},
        )

    # ── Admin ─────────────────────────────────────────────────────────────────

    async def close_registration(self, token: str, session_id: str) -> Dict[str, Any]:
        data = await self._request(
            "POST", f"/api/registration-sessions/{session_id}/close", token=token
        )
        return data["session"]

    async def reopen_registration(
        self,
        token: str,
        session_id: str,
        expires_at: datetime,
    ) -> Dict[str, Any]:
        data = await self._request(
            "POST",
            f"/api/registration-sessions/{session_id}/reopen",
            token=token,
            json={"expiresAt": expires_at.isoformat()},
        )
        return data["session"]

    async def masterlist_import(self, token: str, fmt: str, text: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/masterlist/bulk-import/text",
            token=token,
            json={"data": text, "format": fmt},
        )
