"""
Domain exceptions.

Every error a caller can act on carries a user-facing message; the HTTP layer
maps each class to a status code (see `dotareg.web.errors`).
"""
from __future__ import annotations


class RegistrationError(Exception):
    """Base class for errors reported back to the caller."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputError(RegistrationError):
    """Malformed input, missing field or failed validation rule."""


class EmptyImportError(InputError):
    """Bulk import text is blank after trimming."""


class NoPlayersFoundError(InputError):
    """Bulk import input parsed cleanly but produced zero player rows."""


class ConflictError(RegistrationError):
    """A unique value is already taken; `field` names which one."""

    def __init__(self, message: str, field: str) -> None:
        super().__init__(message)
        self.field = field


class DuplicatePlayerError(ConflictError):
    """Player name or Dota 2 ID already registered."""


class RegistrationClosedError(RegistrationError):
    """Submission refused by the registration status gate."""

    def __init__(self, message: str, state: str) -> None:
        super().__init__(message)
        self.state = state


class PlayerBannedError(RegistrationError):
    pass


class NotFoundError(RegistrationError):
    pass


class AuthenticationError(RegistrationError):
    """Missing, unknown or expired admin session. Never says which."""

    def __init__(self, message: str = "Invalid or expired session") -> None:
        super().__init__(message)


class PermissionDeniedError(RegistrationError):
    pass


class UpstreamError(RegistrationError):
    """Database or webhook failure; detail is logged, never shown."""

    def __init__(self, message: str = "Upstream service unavailable") -> None:
        super().__init__(message)


class RateLimitedError(RegistrationError):
    def __init__(self, message: str = "Too many requests. Please wait and try again.") -> None:
        super().__init__(message)
