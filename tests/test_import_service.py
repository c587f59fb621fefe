"""
Bulk import pipeline tests (import_service.py).

Most tests drive the pipeline against the in-memory PlayerStore fake; the
last group runs the same scenarios against SqlMasterlistStore on SQLite.
"""
from __future__ import annotations

import json

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from dotareg.errors import EmptyImportError, NoPlayersFoundError
from dotareg.models.models import MasterlistEntry
from dotareg.services.import_service import (
    ImportOptions,
    import_batch,
    import_players,
    validate_text,
)
from dotareg.services.player_store import SqlMasterlistStore
from dotareg.validators import PlayerRule

TWO_PLAYERS = "Alice,1234567,5000\nBob,7654321,6000"


def _ten_rows(bad_index: int = -1) -> str:
    lines = []
    for i in range(10):
        mmr = "not-a-number" if i == bad_index else str(1000 + i)
        lines.append(f"Player{i},{1000000 + i},{mmr}")
    return "\n".join(lines)


# ─────────────────────────── Happy path ──────────────────────────────────────

class TestImportBatch:
    async def test_csv_into_empty_store(self, memory_store) -> None:
        result = await import_batch(memory_store, TWO_PLAYERS, "csv")
        assert (result.added, result.updated, result.skipped) == (2, 0, 0)
        assert result.errors == []
        assert memory_store.commits == 1

    async def test_reimport_is_idempotent(self, memory_store) -> None:
        first = await import_batch(memory_store, TWO_PLAYERS, "csv")
        second = await import_batch(
            memory_store, TWO_PLAYERS, "csv", ImportOptions(skip_duplicates=True)
        )
        assert second.added == 0
        assert second.updated == 0
        assert second.skipped == first.added == 2
        assert second.errors == []
        assert len(memory_store.records) == 2

    async def test_round_trip_fields(self, memory_store) -> None:
        await import_batch(memory_store, "  Carl  \t1112223\t4200\tsupport main", "tab")
        (stored,) = await memory_store.list_all()
        assert (stored.name, stored.dota2id, stored.mmr, stored.notes) == (
            "Carl", "1112223", 4200, "support main"
        )

    async def test_update_existing_overwrites(self, memory_store) -> None:
        await import_batch(memory_store, TWO_PLAYERS, "csv")
        result = await import_batch(
            memory_store,
            "alice,1234567,7000",
            "csv",
            ImportOptions(update_existing=True),
        )
        assert (result.added, result.updated, result.skipped) == (0, 1, 0)
        alice = next(r for r in memory_store.records.values() if r.dota2id == "1234567")
        assert alice.mmr == 7000
        assert alice.name == "alice"

    async def test_name_match_alone_is_duplicate(self, memory_store) -> None:
        await import_batch(memory_store, TWO_PLAYERS, "csv")
        result = await import_batch(memory_store, "ALICE,9999999,100", "csv")
        assert result.skipped == 1
        assert result.added == 0

    async def test_conflicting_matches_are_skipped_even_when_updating(self, memory_store) -> None:
        await import_batch(memory_store, TWO_PLAYERS, "csv")
        # name hits Alice, id hits Bob
        result = await import_batch(
            memory_store, "Alice,7654321,100", "csv", ImportOptions(update_existing=True)
        )
        assert (result.updated, result.skipped) == (0, 1)

    async def test_duplicate_within_batch(self, memory_store) -> None:
        result = await import_batch(memory_store, "Dana,5555555,100\nDana,6666666,200", "csv")
        assert (result.added, result.skipped) == (1, 1)


# ─────────────────────────── All-or-nothing ──────────────────────────────────

class TestBatchAtomicity:
    async def test_one_invalid_row_blocks_everything(self, memory_store) -> None:
        result = await import_batch(memory_store, _ten_rows(bad_index=4), "csv")
        assert len(result.errors) == 1
        assert result.errors[0].line == 5
        assert result.errors[0].rule == PlayerRule.MMR
        assert result.added == 0
        assert memory_store.records == {}
        assert memory_store.commits == 0

    async def test_every_error_is_reported(self, memory_store) -> None:
        text = "A,1234567,100\nBob,12,100\nCarl,7654321,-3"
        result = await import_batch(memory_store, text, "csv")
        assert [e.line for e in result.errors] == [1, 2, 3]
        assert [e.rule for e in result.errors] == [PlayerRule.NAME, PlayerRule.DOTA2_ID, PlayerRule.MMR]

    async def test_json_short_id(self, memory_store) -> None:
        data = json.dumps([{"name": "Ann", "dota2id": "123", "mmr": 100}])
        result = await import_batch(memory_store, data, "json")
        assert len(result.errors) == 1
        issue = result.errors[0]
        assert issue.line == 1
        assert issue.rule == PlayerRule.DOTA2_ID
        assert "Player 1" in issue.message
        assert memory_store.records == {}

    async def test_parse_error_short_circuits(self, memory_store) -> None:
        result = await import_batch(memory_store, "Alice,1234567,5000\nBroken", "csv")
        assert result.added == 0
        assert any(e.line == 2 for e in result.errors)
        assert memory_store.records == {}

    async def test_non_array_json(self, memory_store) -> None:
        result = await import_batch(memory_store, '{"players": []}', "json")
        assert len(result.errors) == 1
        assert result.errors[0].line == 0

    async def test_store_failure_rolls_back(self, memory_store, monkeypatch) -> None:
        calls = {"n": 0}
        original_add = memory_store.add

        async def flaky_add(player):
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("database went away")
            return await original_add(player)

        monkeypatch.setattr(memory_store, "add", flaky_add)
        with pytest.raises(RuntimeError):
            await import_batch(memory_store, TWO_PLAYERS, "csv")
        assert memory_store.records == {}


# ─────────────────────────── Empty input ─────────────────────────────────────

class TestEmptyInput:
    async def test_blank_text(self, memory_store) -> None:
        with pytest.raises(EmptyImportError):
            await import_batch(memory_store, "  \n\t ", "csv")

    async def test_no_rows_after_parsing(self, memory_store) -> None:
        with pytest.raises(NoPlayersFoundError):
            await import_batch(memory_store, "[]", "json")

    async def test_empty_players_list(self, memory_store) -> None:
        with pytest.raises(EmptyImportError):
            await import_players(memory_store, [])

    def test_messages_differ(self) -> None:
        assert EmptyImportError("a").message != NoPlayersFoundError("b").message


# ─────────────────────────── Dry run ─────────────────────────────────────────

class TestValidateText:
    def test_reports_without_writing(self) -> None:
        result = validate_text("Alice,1234567,5000\nB,1,x", "csv")
        assert result.total == 2
        assert len(result.errors) == 1
        assert result.errors[0].line == 2

    def test_clean_text(self) -> None:
        result = validate_text(TWO_PLAYERS, "csv")
        assert result.ok
        assert result.to_dict()["validationErrors"] == []


# ─────────────────────────── SQL store ───────────────────────────────────────

class TestSqlMasterlistStore:
    async def test_import_and_reimport(self, async_session) -> None:
        store = SqlMasterlistStore(async_session)
        first = await import_batch(store, TWO_PLAYERS, "csv")
        second = await import_batch(store, TWO_PLAYERS, "csv")
        assert first.added == 2
        assert (second.added, second.skipped) == (0, 2)

        rows = (await async_session.execute(select(MasterlistEntry))).scalars().all()
        assert sorted(r.name for r in rows) == ["Alice", "Bob"]

    async def test_json_players_with_update(self, async_session) -> None:
        store = SqlMasterlistStore(async_session)
        await import_players(store, [{"name": "Alice", "dota2id": "1234567", "mmr": 5000}])
        result = await import_players(
            store,
            [{"name": "Alice", "dota2id": "1234567", "mmr": 5500, "notes": "peak"}],
            ImportOptions(update_existing=True),
        )
        assert result.updated == 1
        (entry,) = await store.list_all()
        assert entry.mmr == 5500
        assert entry.notes == "peak"

    async def test_invalid_batch_leaves_table_empty(self, async_session) -> None:
        store = SqlMasterlistStore(async_session)
        result = await import_batch(store, _ten_rows(bad_index=9), "csv")
        assert len(result.errors) == 1
        assert await store.list_all() == []

    async def test_find_duplicates_is_case_insensitive(self, async_session) -> None:
        store = SqlMasterlistStore(async_session)
        await import_batch(store, TWO_PLAYERS, "csv")
        matches = await store.find_duplicates("bOB", "0000000")
        assert [m.name for m in matches] == ["Bob"]

    async def test_accented_names_fold_case(self, async_session) -> None:
        store = SqlMasterlistStore(async_session)
        await import_batch(store, "Élan,1234567,100", "csv")
        second = await import_batch(store, "élan,7654321,100", "csv")
        assert (second.added, second.skipped) == (0, 1)

    async def test_name_index_folds_non_ascii(self, async_session) -> None:
        async_session.add(MasterlistEntry(name="Élan", dota2id="1234567", mmr=100))
        await async_session.flush()
        async_session.add(MasterlistEntry(name="élan", dota2id="7654321", mmr=100))
        with pytest.raises(IntegrityError):
            await async_session.flush()
