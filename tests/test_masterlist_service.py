"""
Masterlist single-record CRUD tests (masterlist_service.py).
"""
from __future__ import annotations

import pytest

from dotareg.errors import DuplicatePlayerError, InputError, NotFoundError
from dotareg.services import masterlist_service as ms
from dotareg.validators import MasterlistEntryData, MasterlistEntryUpdate


def _entry(name: str = "Miracle", dota2id: str = "105248644", mmr: int = 9500, **kw) -> MasterlistEntryData:
    return MasterlistEntryData(name=name, dota2id=dota2id, mmr=mmr, **kw)


class TestAddEntry:
    async def test_add_with_extras(self, async_session) -> None:
        entry = await ms.add_entry(async_session, _entry(team="Nigma", discordId="99"))
        assert entry.id is not None
        assert entry.to_dict()["team"] == "Nigma"
        assert entry.to_dict()["discordId"] == "99"

    async def test_duplicate_id(self, async_session) -> None:
        await ms.add_entry(async_session, _entry())
        with pytest.raises(DuplicatePlayerError) as exc_info:
            await ms.add_entry(async_session, _entry(name="Someone"))
        assert exc_info.value.field == "dota2id"

    async def test_duplicate_name_ignores_case(self, async_session) -> None:
        await ms.add_entry(async_session, _entry())
        with pytest.raises(DuplicatePlayerError) as exc_info:
            await ms.add_entry(async_session, _entry(name="MIRACLE", dota2id="1234567"))
        assert exc_info.value.field == "name"

    async def test_listing_is_sorted_by_name(self, async_session) -> None:
        await ms.add_entry(async_session, _entry("zai", "1000001"))
        await ms.add_entry(async_session, _entry("Arteezy", "1000002"))
        await ms.add_entry(async_session, _entry("miracle", "1000003"))
        assert [e.name for e in await ms.list_entries(async_session)] == ["Arteezy", "miracle", "zai"]


class TestUpdateEntry:
    async def test_partial_update(self, async_session) -> None:
        entry = await ms.add_entry(async_session, _entry(notes="mid"))
        updated = await ms.update_entry(
            async_session, entry.id, MasterlistEntryUpdate(mmr=9800, team="Liquid")
        )
        assert updated.mmr == 9800
        assert updated.team == "Liquid"
        assert updated.notes == "mid"
        assert updated.name == "Miracle"

    async def test_update_into_existing_identity(self, async_session) -> None:
        await ms.add_entry(async_session, _entry())
        other = await ms.add_entry(async_session, _entry("Puppey", "87278757"))
        with pytest.raises(DuplicatePlayerError):
            await ms.update_entry(async_session, other.id, MasterlistEntryUpdate(dota2id="105248644"))

    async def test_keeping_own_identity_is_fine(self, async_session) -> None:
        entry = await ms.add_entry(async_session, _entry())
        updated = await ms.update_entry(async_session, entry.id, MasterlistEntryUpdate(name="miracle"))
        assert updated.name == "miracle"

    async def test_invalid_notes_rejected(self, async_session) -> None:
        entry = await ms.add_entry(async_session, _entry())
        with pytest.raises(InputError, match="Notes too long"):
            await ms.update_entry(
                async_session, entry.id, MasterlistEntryUpdate.model_construct(notes="n" * 501)
            )


class TestDelete:
    async def test_delete_one(self, async_session) -> None:
        entry = await ms.add_entry(async_session, _entry())
        await ms.delete_entry(async_session, entry.id)
        with pytest.raises(NotFoundError):
            await ms.get_entry(async_session, entry.id)

    async def test_delete_missing(self, async_session) -> None:
        with pytest.raises(NotFoundError):
            await ms.delete_entry(async_session, 404)

    async def test_delete_all(self, async_session) -> None:
        await ms.add_entry(async_session, _entry())
        await ms.add_entry(async_session, _entry("Puppey", "87278757"))
        assert await ms.delete_all_entries(async_session) == 2
        assert await ms.list_entries(async_session) == []
