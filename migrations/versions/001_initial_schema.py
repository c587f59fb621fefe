"""Initial schema — admins, sessions, registrations, masterlist, webhooks, bans

Revision ID: 001
Revises:
Create Date: 2026-10-17 00:00:00.000000

Changes:
  - admin_users / admin_sessions for panel and bot logins
  - registration_sessions and their players
  - masterlist with unique dota2id and case-insensitive unique name
  - discord_webhooks keyed by (admin_user_id, type)
  - banned_players
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # ── Admin accounts ────────────────────────────────────────────────────────
    op.create_table(
        "admin_users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(50), nullable=False, server_default="admin"),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(254), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_admin_users_username", "admin_users", ["username"])

    op.create_table(
        "admin_sessions",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("admin_users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_admin_sessions_user_id", "admin_sessions", ["user_id"])
    op.create_index("ix_admin_sessions_expires_at", "admin_sessions", ["expires_at"])

    # ── Registration ──────────────────────────────────────────────────────────
    op.create_table(
        "registration_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.String(64), nullable=False, unique=True),
        sa.Column(
            "admin_user_id",
            sa.Integer(),
            sa.ForeignKey("admin_users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("admin_username", sa.String(255), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("max_players", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_registration_sessions_session_id", "registration_sessions", ["session_id"])
    op.create_index("ix_registration_sessions_admin_user_id", "registration_sessions", ["admin_user_id"])

    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "registration_session_id",
            sa.String(64),
            sa.ForeignKey("registration_sessions.session_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("dota2id", sa.String(32), nullable=False),
        sa.Column("peakmmr", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discord_id", sa.String(32), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("present", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("registration_session_id", "dota2id", name="uq_players_session_dota2id"),
    )
    op.create_index("ix_players_registration_session_id", "players", ["registration_session_id"])
    op.create_index("ix_players_dota2id", "players", ["dota2id"])
    op.create_index("ix_players_discord_id", "players", ["discord_id"])
    op.create_index(
        "uq_players_session_name_lower",
        "players",
        ["registration_session_id", sa.text("lower(name)")],
        unique=True,
    )

    # ── Masterlist ────────────────────────────────────────────────────────────
    op.create_table(
        "masterlist",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("dota2id", sa.String(32), nullable=False, unique=True),
        sa.Column("mmr", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("team", sa.String(255), nullable=False, server_default=""),
        sa.Column("achievements", sa.Text(), nullable=False, server_default=""),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("discord_id", sa.String(32), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_masterlist_dota2id", "masterlist", ["dota2id"])
    op.create_index("uq_masterlist_name_lower", "masterlist", [sa.text("lower(name)")], unique=True)

    # ── Notifications and moderation ──────────────────────────────────────────
    op.create_table(
        "discord_webhooks",
        sa.Column(
            "admin_user_id",
            sa.Integer(),
            sa.ForeignKey("admin_users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("type", sa.String(50), primary_key=True),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("template", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "banned_players",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("dota2id", sa.String(32), nullable=False),
        sa.Column("player_name", sa.String(255), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column(
            "banned_by",
            sa.Integer(),
            sa.ForeignKey("admin_users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("lifted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_banned_players_dota2id", "banned_players", ["dota2id"])
    op.create_index("ix_banned_players_banned_by", "banned_players", ["banned_by"])


def downgrade() -> None:
    op.drop_table("banned_players")
    op.drop_table("discord_webhooks")
    op.drop_index("uq_masterlist_name_lower", table_name="masterlist")
    op.drop_table("masterlist")
    op.drop_index("uq_players_session_name_lower", table_name="players")
    op.drop_table("players")
    op.drop_table("registration_sessions")
    op.drop_table("admin_sessions")
    op.drop_table("admin_users")
