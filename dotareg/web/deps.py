"""
Request dependencies: database session, admin authentication, rate limiting.

`get_db` gives every request one AsyncSession that commits when the handler
returns and rolls back when it raises.
"""
from __future__ import annotations

import time
from collections import defaultdict, deque
from datetime import timedelta
from typing import AsyncIterator, Deque, Dict, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dotareg.config import Settings
from dotareg.errors import AuthenticationError, PermissionDeniedError, RateLimitedError
from dotareg.models.models import AdminUser
from dotareg.services.notification_service import Dispatcher
from dotareg.services.session_store import SessionStore


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_session_store(
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> SessionStore:
    return SessionStore(session, timedelta(hours=settings.SESSION_TTL_HOURS))


def session_token(request: Request) -> Optional[str]:
    """Token from the configured session header, or an `Authorization: Bearer` header."""
    token = request.headers.get(request.app.state.settings.SESSION_HEADER)
    if token:
        return token.strip()
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return None


async def require_admin(
    request: Request,
    session: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
) -> AdminUser:
    user = await store.validate(session_token(request))
    if user is None:
        # Keep any lazily removed expired session before refusing
        await session.commit()
        raise AuthenticationError()
    return user


async def require_superadmin(user: AdminUser = Depends(require_admin)) -> AdminUser:
    if not user.is_superadmin:
        raise PermissionDeniedError("Superadmin access required")
    return user


# ── Rate limiting ─────────────────────────────────────────────────────────────

class SlidingWindowLimiter:
    """
    Sliding-window rate limiter.

    Parameters
    ----------
    rate   : maximum number of requests allowed per key per window
    period : window size in seconds
    """

    def __init__(self, rate: int = 30, period: float = 60.0) -> None:
        self._rate   = rate
        self._period = period
        # key → deque of timestamps (most recent first)
        self._history: Dict[str, Deque[float]] = defaultdict(deque)
        self._last_prune = 0.0

    def hit(self, key: str, now: Optional[float] = None) -> bool:
        """Record one request for `key`; False when the limit is already reached."""
        now = time.monotonic() if now is None else now
        if now - self._last_prune > self._period:
            self._prune(now)
        window = self._history[key]

        # Evict timestamps outside the current window
        while window and now - window[-1] > self._period:
            window.pop()

        if len(window) >= self._rate:
            return False

        window.appendleft(now)
        return True

    def _prune(self, now: float) -> None:
        """Forget keys with no request inside the current window."""
        stale = [
            key for key, window in self._history.items()
            if not window or now - window[0] > self._period
        ]
        for key in stale:
            del self._history[key]
        self._last_prune = now

    @property
    def tracked_keys(self) -> int:
        return len(self._history)

    def reset(self) -> None:
        self._history.clear()
        self._last_prune = 0.0


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def rate_limit(request: Request) -> None:
    limiter: SlidingWindowLimiter = request.app.state.rate_limiter
    if not limiter.hit(client_ip(request)):
        raise RateLimitedError()
