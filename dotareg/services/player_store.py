"""
Player store — the persistence seam used by the bulk importer.

`PlayerStore` is what the import pipeline depends on; `SqlMasterlistStore`
backs it with the `masterlist` table. Tests swap in an in-memory fake.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional, Protocol

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dotareg.models.models import MasterlistEntry
from dotareg.validators import PlayerData


class PlayerStore(Protocol):
    async def find_duplicates(self, name: str, dota2id: str) -> List[Any]:
        """Records matching `name` (case-insensitive) OR `dota2id`."""

    async def add(self, player: PlayerData) -> Any: ...

    async def update(self, existing: Any, player: PlayerData) -> Any: ...

    async def get(self, entry_id: int) -> Optional[Any]: ...

    async def list_all(self) -> List[Any]: ...

    async def delete(self, entry_id: int) -> bool: ...

    async def delete_all(self) -> int: ...

    def atomic(self) -> Any:
        """Async context manager: commit on success, roll back on error."""


class SqlMasterlistStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_duplicates(
        self,
        name: str,
        dota2id: str,
        exclude_id: Optional[int] = None,
    ) -> List[MasterlistEntry]:
        q = select(MasterlistEntry).where(
            or_(
                MasterlistEntry.dota2id == dota2id,
                func.lower(MasterlistEntry.name) == func.lower(name),
            )
        )
        if exclude_id is not None:
            q = q.where(MasterlistEntry.id != exclude_id)
        result = await self._session.execute(q.order_by(MasterlistEntry.id))
        return list(result.scalars().all())

    async def add(self, player: PlayerData, **extra: Any) -> MasterlistEntry:
        entry = MasterlistEntry(
            name=player.name,
            dota2id=player.dota2id,
            mmr=player.mmr,
            notes=player.notes,
            **extra,
        )
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def update(self, existing: MasterlistEntry, player: PlayerData) -> MasterlistEntry:
        existing.name    = player.name
        existing.dota2id = player.dota2id
        existing.mmr     = player.mmr
        existing.notes   = player.notes
        await self._session.flush()
        return existing

    async def get(self, entry_id: int) -> Optional[MasterlistEntry]:
        return await self._session.get(MasterlistEntry, entry_id)

    async def list_all(self) -> List[MasterlistEntry]:
        result = await self._session.execute(
            select(MasterlistEntry).order_by(func.lower(MasterlistEntry.name))
        )
        return list(result.scalars().all())

    async def delete(self, entry_id: int) -> bool:
        result = await self._session.execute(
            delete(MasterlistEntry).where(MasterlistEntry.id == entry_id)
        )
        return result.rowcount > 0

    async def delete_all(self) -> int:
        result = await self._session.execute(delete(MasterlistEntry))
        return result.rowcount or 0

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        try:
            yield
        except Exception:
            await self._session.rollback()
            raise
        else:
            await self._session.commit()
