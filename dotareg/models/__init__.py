from dotareg.models.base import Base, engine, AsyncSessionFactory
from dotareg.models.models import (
    AdminUser,
    AdminSession,
    RegistrationSession,
    Player,
    MasterlistEntry,
    DiscordWebhook,
    BannedPlayer,
    AdminRole,
    RegistrationState,
    WebhookType,
    utcnow,
)

__all__ = [
    "Base",
    "engine",
    "AsyncSessionFactory",
    "AdminUser",
    "AdminSession",
    "RegistrationSession",
    "Player",
    "MasterlistEntry",
    "DiscordWebhook",
    "BannedPlayer",
    "AdminRole",
    "RegistrationState",
    "WebhookType",
    "utcnow",
]
