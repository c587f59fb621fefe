"""
ORM models for the Dota 2 tournament registration service.

Domain overview
---------------
AdminUser            — organiser account (admin / superadmin)
  ├─ AdminSession    — login token with an expiry
  ├─ RegistrationSession — a tournament's sign-up window
  │    └─ Player     — player registered through the public form / bot
  ├─ DiscordWebhook  — per-type webhook target for notifications
  └─ BannedPlayer    — dota2id barred from this admin's tournaments
MasterlistEntry      — curated player / MMR reference list (shared)
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dotareg.models.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


DateTimeTZ = DateTime(timezone=True)

# ─────────────────────────── Constants ────────────────────────────────────────

class AdminRole:
    ADMIN      = "admin"
    SUPERADMIN = "superadmin"


class RegistrationState:
    PENDING = "PENDING"   # start_time still in the future
    OPEN    = "OPEN"      # accepting players
    CLOSED  = "CLOSED"    # expired, full, or closed by an admin


class WebhookType:
    REGISTRATION = "registration"
    TEAMS        = "teams"
    BRACKET      = "bracket"
    UPDATES      = "updates"

    ALL = (REGISTRATION, TEAMS, BRACKET, UPDATES)

    DEFAULT_TEMPLATES: dict[str, str] = {
        REGISTRATION: (
            "🎮 **New registration** for *{title}*\n"
            "**{name}** — Dota 2 ID `{dota2id}`, MMR {mmr}\n"
            "Players: {player_count}/{max_players}"
        ),
        TEAMS:   "🛡️ Teams for *{title}* have been announced.",
        BRACKET: "🏆 Bracket for *{title}* has been updated.",
        UPDATES: "📢 Update for *{title}*.",
    }


# ─────────────────────────── Models ───────────────────────────────────────────

class AdminUser(Base):
    """Organiser account used for the admin panel and the Discord bot."""
    __tablename__ = "admin_users"

    id:            Mapped[int]           = mapped_column(Integer, primary_key=True, autoincrement=True)
    username:      Mapped[str]           = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str]           = mapped_column(String(255))
    role:          Mapped[str]           = mapped_column(String(50), default=AdminRole.ADMIN)
    full_name:     Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email:         Mapped[Optional[str]] = mapped_column(String(254), nullable=True)
    is_active:     Mapped[bool]          = mapped_column(Boolean, default=True)
    created_at:    Mapped[datetime]      = mapped_column(DateTimeTZ, default=utcnow)
    updated_at:    Mapped[datetime]      = mapped_column(DateTimeTZ, default=utcnow, onupdate=utcnow)

    sessions: Mapped[List["AdminSession"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def is_superadmin(self) -> bool:
        return self.role == AdminRole.SUPERADMIN

    def to_public(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "fullName": self.full_name,
            "email": self.email,
            "isActive": self.is_active,
        }


class AdminSession(Base):
    """Opaque login token. Valid while it exists and `expires_at` is ahead."""
    __tablename__ = "admin_sessions"

    id:         Mapped[str]      = mapped_column(String(64), primary_key=True)
    user_id:    Mapped[int]      = mapped_column(ForeignKey("admin_users.id", ondelete="CASCADE"), index=True)
    role:       Mapped[str]      = mapped_column(String(50))
    expires_at: Mapped[datetime] = mapped_column(DateTimeTZ, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utcnow)

    user: Mapped["AdminUser"] = relationship(back_populates="sessions", lazy="joined")


class RegistrationSession(Base):
    """
    A tournament's sign-up window.

    `player_count` is never stored: it is recomputed from the players table
    by the registration service whenever a session is read.
    """
    __tablename__ = "registration_sessions"

    id:             Mapped[int]                = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id:     Mapped[str]                = mapped_column(String(64), unique=True, index=True)
    admin_user_id:  Mapped[int]                = mapped_column(ForeignKey("admin_users.id", ondelete="CASCADE"), index=True)
    admin_username: Mapped[str]                = mapped_column(String(255))
    title:          Mapped[str]                = mapped_column(String(255))
    description:    Mapped[str]                = mapped_column(Text, default="")
    max_players:    Mapped[Optional[int]]      = mapped_column(Integer, nullable=True)
    is_active:      Mapped[bool]               = mapped_column(Boolean, default=True)
    start_time:     Mapped[Optional[datetime]] = mapped_column(DateTimeTZ, nullable=True)
    expires_at:     Mapped[Optional[datetime]] = mapped_column(DateTimeTZ, nullable=True)
    closed_at:      Mapped[Optional[datetime]] = mapped_column(DateTimeTZ, nullable=True)
    created_at:     Mapped[datetime]           = mapped_column(DateTimeTZ, default=utcnow)
    updated_at:     Mapped[datetime]           = mapped_column(DateTimeTZ, default=utcnow, onupdate=utcnow)

    players: Mapped[List["Player"]] = relationship(
        back_populates="registration_session", cascade="all, delete-orphan"
    )


class Player(Base):
    """Player registered into one registration session."""
    __tablename__ = "players"
    __table_args__ = (
        UniqueConstraint("registration_session_id", "dota2id", name="uq_players_session_dota2id"),
    )

    id:                      Mapped[int]           = mapped_column(Integer, primary_key=True, autoincrement=True)
    registration_session_id: Mapped[str]           = mapped_column(
        ForeignKey("registration_sessions.session_id", ondelete="CASCADE"), index=True
    )
    name:          Mapped[str]           = mapped_column(String(255))
    dota2id:       Mapped[str]           = mapped_column(String(32), index=True)
    peakmmr:       Mapped[int]           = mapped_column(Integer, default=0)
    discord_id:    Mapped[Optional[str]] = mapped_column(String(32), nullable=True, index=True)
    ip_address:    Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    present:       Mapped[bool]          = mapped_column(Boolean, default=False)
    registered_at: Mapped[datetime]      = mapped_column(DateTimeTZ, default=utcnow)
    updated_at:    Mapped[datetime]      = mapped_column(DateTimeTZ, default=utcnow, onupdate=utcnow)

    registration_session: Mapped["RegistrationSession"] = relationship(back_populates="players")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "dota2id": self.dota2id,
            "peakmmr": self.peakmmr,
            "discordId": self.discord_id,
            "present": self.present,
            "registrationSessionId": self.registration_session_id,
            "registeredAt": self.registered_at.isoformat() if self.registered_at else None,
        }


class MasterlistEntry(Base):
    """Admin-curated reference record of a player's identity and MMR."""
    __tablename__ = "masterlist"

    id:           Mapped[int]           = mapped_column(Integer, primary_key=True, autoincrement=True)
    name:         Mapped[str]           = mapped_column(String(255))
    dota2id:      Mapped[str]           = mapped_column(String(32), unique=True, index=True)
    mmr:          Mapped[int]           = mapped_column(Integer, default=0)
    team:         Mapped[str]           = mapped_column(String(255), default="")
    achievements: Mapped[str]           = mapped_column(Text, default="")
    notes:        Mapped[str]           = mapped_column(Text, default="")
    discord_id:   Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    created_at:   Mapped[datetime]      = mapped_column(DateTimeTZ, default=utcnow)
    updated_at:   Mapped[datetime]      = mapped_column(DateTimeTZ, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "dota2id": self.dota2id,
            "mmr": self.mmr,
            "team": self.team,
            "achievements": self.achievements,
            "notes": self.notes,
            "discordId": self.discord_id,
        }


class DiscordWebhook(Base):
    __tablename__ = "discord_webhooks"

    admin_user_id: Mapped[int]           = mapped_column(ForeignKey("admin_users.id", ondelete="CASCADE"), primary_key=True)
    type:          Mapped[str]           = mapped_column(String(50), primary_key=True)
    url:           Mapped[str]           = mapped_column(Text)
    template:      Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at:    Mapped[datetime]      = mapped_column(DateTimeTZ, default=utcnow)
    updated_at:    Mapped[datetime]      = mapped_column(DateTimeTZ, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {"type": self.type, "url": self.url, "template": self.template}


class BannedPlayer(Base):
    __tablename__ = "banned_players"

    id:          Mapped[int]                = mapped_column(Integer, primary_key=True, autoincrement=True)
    dota2id:     Mapped[str]                = mapped_column(String(32), index=True)
    player_name: Mapped[str]                = mapped_column(String(255))
    reason:      Mapped[str]                = mapped_column(Text)
    banned_by:   Mapped[int]                = mapped_column(ForeignKey("admin_users.id", ondelete="CASCADE"), index=True)
    is_active:   Mapped[bool]               = mapped_column(Boolean, default=True)
    expires_at:  Mapped[Optional[datetime]] = mapped_column(DateTimeTZ, nullable=True)
    created_at:  Mapped[datetime]           = mapped_column(DateTimeTZ, default=utcnow)
    lifted_at:   Mapped[Optional[datetime]] = mapped_column(DateTimeTZ, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "dota2id": self.dota2id,
            "playerName": self.player_name,
            "reason": self.reason,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


# ── Case-insensitive name identity, enforced by the database ──────────────────

Index(
    "uq_players_session_name_lower",
    Player.registration_session_id,
    func.lower(Player.name),
    unique=True,
)
Index("uq_masterlist_name_lower", func.lower(MasterlistEntry.name), unique=True)
