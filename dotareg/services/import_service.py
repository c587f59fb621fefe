"""
Bulk import pipeline: parse → validate → dedup-check → persist.

All-or-nothing: parse errors or any validation error stop the batch before a
single write, and the complete error list is returned so the admin can fix
the paste and resubmit. Writes for a clean batch run inside one
`store.atomic()` block.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from dotareg.errors import EmptyImportError, NoPlayersFoundError
from dotareg.parsers import ParseResult, parse, rows_from_objects
from dotareg.services.player_store import PlayerStore
from dotareg.validators import PlayerData, validate_player

logger = logging.getLogger(__name__)


@dataclass
class ImportOptions:
    skip_duplicates: bool = True
    update_existing: bool = False


@dataclass
class ImportIssue:
    line: int
    message: str
    rule: Optional[str] = None

    def to_dict(self) -> dict:
        return {"line": self.line, "message": self.message, "rule": self.rule}


@dataclass
class ImportBatchResult:
    added:   int = 0
    updated: int = 0
    skipped: int = 0
    errors:  List[ImportIssue] = field(default_factory=list)
    total:   int = 0

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "success": self.ok,
            "added": self.added,
            "updated": self.updated,
            "skipped": self.skipped,
            "total": self.total,
            "validationErrors": [issue.to_dict() for issue in self.errors],
        }


def check_rows(parsed: ParseResult) -> Tuple[List[PlayerData], List[ImportIssue]]:
    """Validate every parsed row; never stops at the first failure."""
    players: List[PlayerData] = []
    issues: List[ImportIssue] = [
        ImportIssue(line=e.position, message=e.message) for e in parsed.errors
    ]
    for row in parsed.rows:
        name, dota2id, mmr, *rest = row.fields
        notes = rest[0] if rest else None
        verdict = validate_player(name, dota2id, mmr, notes, row.position)
        if verdict.valid:
            players.append(verdict.player)
        else:
            issues.append(ImportIssue(line=row.position, message=verdict.reason, rule=verdict.rule))
    return players, issues


def validate_text(raw_text: str, fmt: str) -> ImportBatchResult:
    """Dry run: parse and validate without touching storage."""
    if not raw_text or not raw_text.strip():
        raise EmptyImportError("No data provided. Paste at least one player.")
    parsed = parse(raw_text, fmt)
    players, issues = check_rows(parsed)
    return ImportBatchResult(errors=issues, total=len(parsed.rows) + len(parsed.errors))


async def import_batch(
    store: PlayerStore,
    raw_text: str,
    fmt: str,
    options: Optional[ImportOptions] = None,
) -> ImportBatchResult:
    """Import pasted `raw_text` in `fmt` ("tab", "csv" or "json")."""
    if not raw_text or not raw_text.strip():
        raise EmptyImportError("No data provided. Paste at least one player.")
    return await _run(store, parse(raw_text, fmt), options or ImportOptions())


async def import_players(
    store: PlayerStore,
    players: List[Any],
    options: Optional[ImportOptions] = None,
) -> ImportBatchResult:
    """Import an already-decoded list of player objects (JSON API body)."""
    if not players:
        raise EmptyImportError("Players array is required and must not be empty")
    return await _run(store, rows_from_objects(players), options or ImportOptions())


async def _run(
    store: PlayerStore,
    parsed: ParseResult,
    options: ImportOptions,
) -> ImportBatchResult:
    result = ImportBatchResult(total=len(parsed.rows) + len(parsed.errors))

    if parsed.errors:
        # Malformed input: report everything, write nothing
        _, result.errors = check_rows(parsed)
        return result

    if not parsed.rows:
        raise NoPlayersFoundError("No players found in the provided data.")

    players, issues = check_rows(parsed)
    if issues:
        result.errors = issues
        logger.info("Bulk import rejected: %d of %d rows invalid", len(issues), result.total)
        return result

    async with store.atomic():
        for player in players:
            matches = await store.find_duplicates(player.name, player.dota2id)
            if not matches:
                await store.add(player)
                result.added += 1
            elif options.update_existing and len(matches) == 1:
                await store.update(matches[0], player)
                result.updated += 1
            else:
                # Name and id pointing at two different records cannot be
                # merged into one; leave both untouched.
                result.skipped += 1

    logger.info(
        "Bulk import completed: %d added, %d updated, %d skipped",
        result.added, result.updated, result.skipped,
    )
    return result
