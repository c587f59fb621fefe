"""
FastAPI application factory.

Startup creates missing tables, the bootstrap superadmin and sweeps expired
admin sessions; shutdown disposes of the engine.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from dotareg.config import Settings
from dotareg.config import settings as default_settings
from dotareg.models.base import AsyncSessionFactory, Base, engine as default_engine
from dotareg.services import auth_service
from dotareg.services.notification_service import Dispatcher, build_dispatcher
from dotareg.services.session_store import SessionStore
from dotareg.web.deps import SlidingWindowLimiter
from dotareg.web.errors import register_exception_handlers
from dotareg.web.routes import (
    auth_router,
    masterlist_router,
    registration_router,
    sessions_router,
    webhooks_router,
)

logger = logging.getLogger(__name__)


async def prepare_database(
    engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as session:
        await auth_service.ensure_bootstrap_admin(
            session, settings.BOOTSTRAP_ADMIN_USERNAME, settings.BOOTSTRAP_ADMIN_PASSWORD
        )
        store = SessionStore(session, timedelta(hours=settings.SESSION_TTL_HOURS))
        await store.sweep_expired()
        await session.commit()
    logger.info("Database ready at %s", settings.database_host)


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[AsyncEngine] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    dispatcher: Optional[Dispatcher] = None,
) -> FastAPI:
    settings = settings or default_settings
    engine = engine or default_engine
    session_factory = session_factory or AsyncSessionFactory

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await prepare_database(engine, session_factory, settings)
        yield
        await engine.dispose()

    app = FastAPI(title="Dota 2 Tournament Registration", lifespan=lifespan)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.dispatcher = dispatcher or build_dispatcher(settings)
    app.state.rate_limiter = SlidingWindowLimiter(settings.PUBLIC_RATE_LIMIT, settings.PUBLIC_RATE_PERIOD)

    register_exception_handlers(app)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    # Public routes first: /registration-sessions/public must win over
    # /registration-sessions/{session_id}
    app.include_router(registration_router)
    app.include_router(auth_router)
    app.include_router(sessions_router)
    app.include_router(masterlist_router)
    app.include_router(webhooks_router)

    return app
