from dotareg.web.routes.auth import router as auth_router
from dotareg.web.routes.registration import router as registration_router
from dotareg.web.routes.sessions import router as sessions_router
from dotareg.web.routes.masterlist import router as masterlist_router
from dotareg.web.routes.webhooks import router as webhooks_router

__all__ = [
    "auth_router",
    "registration_router",
    "sessions_router",
    "masterlist_router",
    "webhooks_router",
]
