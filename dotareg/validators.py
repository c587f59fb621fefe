"""
Input validation — player record rules and Pydantic v2 request models.

`validate_player` is the single source of truth for what a player record may
contain; the request models below reuse the same rule helpers so that the
public form, the admin editors and the bulk importer can never disagree.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
MMR_MIN = 0
MMR_MAX = 20_000
NOTES_MAX_LENGTH = 500

_DOTA2_ID_RE = re.compile(r"^\d{6,20}$", re.ASCII)
_INTEGER_RE = re.compile(r"^[+-]?\d+$", re.ASCII)
_USERNAME_RE = re.compile(r"^[A-Za-z0-9_-]{3,30}$")
_WEBHOOK_URL_RE = re.compile(
    r"^https://(?:ptb\.|canary\.)?discord(?:app)?\.com/api/webhooks/\d+/[\w-]+$"
)


class PlayerRule:
    """Rule identifiers, in evaluation order."""
    NAME     = "name"
    DOTA2_ID = "dota2id"
    MMR      = "mmr"
    NOTES    = "notes"

    ORDER = (NAME, DOTA2_ID, MMR, NOTES)


class PlayerData(BaseModel):
    """Normalised player record: strings trimmed, MMR coerced to int."""

    name: str
    dota2id: str
    mmr: int
    notes: str = ""


@dataclass
class PlayerVerdict:
    valid: bool
    player: Optional[PlayerData] = None
    rule: Optional[str] = None
    reason: Optional[str] = None


# ── Rule helpers ──────────────────────────────────────────────────────────────

def parse_mmr(raw: Any) -> Optional[int]:
    """Return `raw` as an int if it is an integral number or numeric string."""
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if raw.is_integer() else None
    if isinstance(raw, str):
        text = raw.strip()
        if _INTEGER_RE.match(text):
            return int(text)
    return None


def name_error(raw: Any) -> Optional[str]:
    if not isinstance(raw, str) or len(raw.strip()) < NAME_MIN_LENGTH:
        return f"Invalid name (must be at least {NAME_MIN_LENGTH} characters)"
    if len(raw.strip()) > NAME_MAX_LENGTH:
        return f"Name too long (max {NAME_MAX_LENGTH} characters)"
    return None


def dota2id_error(raw: Any) -> Optional[str]:
    if not isinstance(raw, str) or not _DOTA2_ID_RE.match(raw.strip()):
        return "Invalid Dota2 ID (must be 6-20 digits)"
    return None


def mmr_error(raw: Any) -> Optional[str]:
    value = parse_mmr(raw)
    if value is None or value < MMR_MIN or value > MMR_MAX:
        return f"Invalid MMR (must be a whole number {MMR_MIN}-{MMR_MAX})"
    return None


def notes_error(raw: Any) -> Optional[str]:
    if raw is not None and len(str(raw).strip()) > NOTES_MAX_LENGTH:
        return f"Notes too long (max {NOTES_MAX_LENGTH} characters)"
    return None


def _shown(raw: Any, limit: int = 60) -> str:
    text = "" if raw is None else str(raw)
    if len(text) > limit:
        text = f"{text[:limit]}... ({len(text)} characters)"
    return f'"{text}"'


def validate_player(
    name: Any,
    dota2id: Any,
    mmr: Any,
    notes: Any = None,
    position: int = 1,
) -> PlayerVerdict:
    """
    Check one raw player record. Rules run in `PlayerRule.ORDER`; the first
    failure wins and its reason names the 1-based position and the raw value.
    """
    checks = (
        (PlayerRule.NAME, name_error, name),
        (PlayerRule.DOTA2_ID, dota2id_error, dota2id),
        (PlayerRule.MMR, mmr_error, mmr),
        (PlayerRule.NOTES, notes_error, notes),
    )
    for rule, check, raw in checks:
        problem = check(raw)
        if problem:
            return PlayerVerdict(
                valid=False,
                rule=rule,
                reason=f"Player {position}: {problem} - got: {_shown(raw)}",
            )

    player = PlayerData(
        name=name.strip(),
        dota2id=dota2id.strip(),
        mmr=parse_mmr(mmr),
        notes=str(notes).strip() if notes is not None else "",
    )
    return PlayerVerdict(valid=True, player=player)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) or convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _raise_if(problem: Optional[str]) -> None:
    if problem:
        raise ValueError(problem)


# ── Request models ────────────────────────────────────────────────────────────

class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class PlayerSubmission(_Body):
    """
    Public registration form payload.

    Attributes
    ----------
    name       : In-game name (2–50 chars after trimming)
    dota2id    : Numeric Dota 2 / Steam account id (6–20 digits)
    peakmmr    : Peak MMR, whole number 0–20000
    discord_id : Optional Discord user id (set by the bot)
    """

    name: str
    dota2id: str
    peakmmr: int
    discord_id: Optional[str] = Field(default=None, alias="discordId", max_length=32)

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Any) -> Any:
        _raise_if(name_error(v))
        return v

    @field_validator("dota2id", mode="before")
    @classmethod
    def validate_dota2id(cls, v: Any) -> Any:
        _raise_if(dota2id_error(v))
        return v

    @field_validator("peakmmr", mode="before")
    @classmethod
    def validate_peakmmr(cls, v: Any) -> int:
        _raise_if(mmr_error(v))
        return parse_mmr(v)


class PlayerUpdate(_Body):
    """Admin edit of a registered player; omitted fields are left unchanged."""

    name: Optional[str] = None
    dota2id: Optional[str] = None
    peakmmr: Optional[int] = None
    present: Optional[bool] = None

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Any) -> Any:
        if v is not None:
            _raise_if(name_error(v))
        return v

    @field_validator("dota2id", mode="before")
    @classmethod
    def validate_dota2id(cls, v: Any) -> Any:
        if v is not None:
            _raise_if(dota2id_error(v))
        return v

    @field_validator("peakmmr", mode="before")
    @classmethod
    def validate_peakmmr(cls, v: Any) -> Optional[int]:
        if v is None:
            return None
        _raise_if(mmr_error(v))
        return parse_mmr(v)


class MasterlistEntryData(_Body):
    """Single masterlist record created from the admin panel."""

    name: str
    dota2id: str
    mmr: int
    notes: str = ""
    team: str = Field(default="", max_length=255)
    achievements: str = Field(default="", max_length=2000)
    discord_id: Optional[str] = Field(default=None, alias="discordId", max_length=32)

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Any) -> Any:
        _raise_if(name_error(v))
        return v

    @field_validator("dota2id", mode="before")
    @classmethod
    def validate_dota2id(cls, v: Any) -> Any:
        _raise_if(dota2id_error(v))
        return v

    @field_validator("mmr", mode="before")
    @classmethod
    def validate_mmr(cls, v: Any) -> int:
        _raise_if(mmr_error(v))
        return parse_mmr(v)

    @field_validator("notes", mode="before")
    @classmethod
    def validate_notes(cls, v: Any) -> str:
        _raise_if(notes_error(v))
        return "" if v is None else str(v)


class MasterlistEntryUpdate(_Body):
    name: Optional[str] = None
    dota2id: Optional[str] = None
    mmr: Optional[int] = None
    notes: Optional[str] = None
    team: Optional[str] = Field(default=None, max_length=255)
    achievements: Optional[str] = Field(default=None, max_length=2000)
    discord_id: Optional[str] = Field(default=None, alias="discordId", max_length=32)

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Any) -> Any:
        if v is not None:
            _raise_if(name_error(v))
        return v

    @field_validator("dota2id", mode="before")
    @classmethod
    def validate_dota2id(cls, v: Any) -> Any:
        if v is not None:
            _raise_if(dota2id_error(v))
        return v

    @field_validator("mmr", mode="before")
    @classmethod
    def validate_mmr(cls, v: Any) -> Optional[int]:
        if v is None:
            return None
        _raise_if(mmr_error(v))
        return parse_mmr(v)

    @field_validator("notes", mode="before")
    @classmethod
    def validate_notes(cls, v: Any) -> Any:
        _raise_if(notes_error(v))
        return v


class BulkImportRequest(_Body):
    """
    JSON bulk import. Player objects are kept raw here: each one is checked by
    `validate_player` inside the import pipeline so errors carry positions.
    """

    players: List[Any]
    skip_duplicates: bool = Field(default=True, alias="skipDuplicates")
    update_existing: bool = Field(default=False, alias="updateExisting")


class TextImportRequest(_Body):
    model_config = ConfigDict(populate_by_name=True)

    data: str
    format: Literal["tab", "csv", "json"] = "tab"
    skip_duplicates: bool = Field(default=True, alias="skipDuplicates")
    update_existing: bool = Field(default=False, alias="updateExisting")


class LoginData(_Body):
    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


def password_strength_error(password: str) -> Optional[str]:
    if len(password) < 8:
        return "Password must be at least 8 characters long"
    if not re.search(r"[A-Z]", password):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", password):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"\d", password):
        return "Password must contain at least one number"
    return None


class PasswordChangeData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(alias="currentPassword", min_length=1)
    new_password: str = Field(alias="newPassword")

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        _raise_if(password_strength_error(v))
        return v


class AdminUserData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str
    password: str
    role: Literal["admin", "superadmin"] = "admin"
    full_name: Optional[str] = Field(default=None, alias="fullName", max_length=255)
    email: Optional[str] = Field(default=None, max_length=254)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = v.strip()
        if not _USERNAME_RE.match(v):
            raise ValueError(
                "Username must be 3-30 characters of letters, digits, '_' or '-'"
            )
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        _raise_if(password_strength_error(v))
        return v


class RegistrationWindowData(_Body):
    """
    Registration session created by an admin.

    Attributes
    ----------
    title       : Tournament title shown on the public form
    max_players : Optional player cap; registration closes when reached
    start_time  : Optional opening time (UTC); PENDING until then
    expires_at  : Optional closing time (UTC); must be after start_time
    """

    title: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=2000)
    max_players: Optional[int] = Field(default=None, alias="maxPlayers", ge=1)
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")

    @field_validator("start_time", "expires_at")
    @classmethod
    def normalise_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @model_validator(mode="after")
    def check_window(self) -> "RegistrationWindowData":
        if self.start_time and self.expires_at and self.expires_at <= self.start_time:
            raise ValueError("Registration end must be after the start time")
        return self


class RegistrationSessionUpdate(_Body):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    max_players: Optional[int] = Field(default=None, alias="maxPlayers", ge=1)
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")

    @field_validator("start_time", "expires_at")
    @classmethod
    def normalise_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class ReopenData(_Body):
    expires_at: datetime = Field(alias="expiresAt")
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    max_players: Optional[int] = Field(default=None, alias="maxPlayers", ge=1)

    @field_validator("start_time", "expires_at")
    @classmethod
    def normalise_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @model_validator(mode="after")
    def check_window(self) -> "ReopenData":
        if self.start_time and self.expires_at <= self.start_time:
            raise ValueError("Registration end must be after the start time")
        return self


class WebhookData(_Body):
    type: Literal["registration", "teams", "bracket", "updates"]
    url: str
    template: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not _WEBHOOK_URL_RE.match(v):
            raise ValueError("Webhook URL must be a Discord webhook URL")
        return v


class BanData(_Body):
    dota2id: str
    player_name: str = Field(alias="playerName", min_length=1, max_length=255)
    reason: str = Field(min_length=1, max_length=500)
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")

    @field_validator("dota2id", mode="before")
    @classmethod
    def validate_dota2id(cls, v: Any) -> Any:
        _raise_if(dota2id_error(v))
        return v

    @field_validator("expires_at")
    @classmethod
    def normalise_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class UserStatusData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_active: bool = Field(alias="isActive")
