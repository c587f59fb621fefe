"""
Masterlist — admin-curated reference list of players and MMR.

Single-record CRUD lives here; bulk import goes through `import_service`
with the same `SqlMasterlistStore`.
"""
from __future__ import annotations

import logging
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dotareg.errors import DuplicatePlayerError, InputError, NotFoundError
from dotareg.models.models import MasterlistEntry, utcnow
from dotareg.services.player_store import SqlMasterlistStore
from dotareg.validators import (
    MasterlistEntryData,
    MasterlistEntryUpdate,
    PlayerData,
    validate_player,
)

logger = logging.getLogger(__name__)


def _duplicate_error(existing: MasterlistEntry, name: str, dota2id: str) -> DuplicatePlayerError:
    if existing.dota2id == dota2id:
        return DuplicatePlayerError(
            f"Dota 2 ID {dota2id} is already in the masterlist ({existing.name})", field="dota2id"
        )
    return DuplicatePlayerError(f"Player name '{name}' is already in the masterlist", field="name")


async def list_entries(session: AsyncSession) -> List[MasterlistEntry]:
    return await SqlMasterlistStore(session).list_all()


async def get_entry(session: AsyncSession, entry_id: int) -> MasterlistEntry:
    entry = await SqlMasterlistStore(session).get(entry_id)
    if entry is None:
        raise NotFoundError("Masterlist entry not found")
    return entry


async def add_entry(session: AsyncSession, data: MasterlistEntryData) -> MasterlistEntry:
    store = SqlMasterlistStore(session)
    matches = await store.find_duplicates(data.name, data.dota2id)
    if matches:
        raise _duplicate_error(matches[0], data.name, data.dota2id)

    player = PlayerData(name=data.name, dota2id=data.dota2id, mmr=data.mmr, notes=data.notes)
    try:
        entry = await store.add(
            player,
            team=data.team,
            achievements=data.achievements,
            discord_id=data.discord_id,
        )
    except IntegrityError:
        await session.rollback()
        raise DuplicatePlayerError("Player is already in the masterlist", field="dota2id")
    logger.info("Masterlist entry added: %s (%s)", entry.name, entry.dota2id)
    return entry


async def update_entry(
    session: AsyncSession,
    entry_id: int,
    data: MasterlistEntryUpdate,
) -> MasterlistEntry:
    store = SqlMasterlistStore(session)
    entry = await get_entry(session, entry_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)

    # Re-validate the merged record so partial edits obey the same rules
    verdict = validate_player(
        changes.get("name", entry.name),
        changes.get("dota2id", entry.dota2id),
        changes.get("mmr", entry.mmr),
        changes.get("notes", entry.notes),
    )
    if not verdict.valid:
        raise InputError(verdict.reason)
    player = verdict.player

    matches = await store.find_duplicates(player.name, player.dota2id, exclude_id=entry.id)
    if matches:
        raise _duplicate_error(matches[0], player.name, player.dota2id)

    await store.update(entry, player)
    for key in ("team", "achievements", "discord_id"):
        if key in changes:
            setattr(entry, key, changes[key])
    entry.updated_at = utcnow()
    await session.flush()
    return entry


async def delete_entry(session: AsyncSession, entry_id: int) -> None:
    if not await SqlMasterlistStore(session).delete(entry_id):
        raise NotFoundError("Masterlist entry not found")


async def delete_all_entries(session: AsyncSession) -> int:
    removed = await SqlMasterlistStore(session).delete_all()
    logger.info("Masterlist cleared: %d entries removed", removed)
    return removed
