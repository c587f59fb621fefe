from dotareg.services import (
    auth_service,
    ban_service,
    import_service,
    masterlist_service,
    notification_service,
    registration_service,
    webhook_service,
)
from dotareg.services.player_store import PlayerStore, SqlMasterlistStore
from dotareg.services.session_store import SessionStore

__all__ = [
    "auth_service",
    "ban_service",
    "import_service",
    "masterlist_service",
    "notification_service",
    "registration_service",
    "webhook_service",
    "PlayerStore",
    "SqlMasterlistStore",
    "SessionStore",
]
