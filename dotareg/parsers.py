"""
Bulk-upload text parsers.

Turn pasted text into raw field tuples without judging the values; that is
`validate_player`'s job. Positions are 1-based input lines (tab / csv) or
array elements (json) so error messages point at what the admin pasted.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, List, Literal, Tuple

ImportFormat = Literal["tab", "csv", "json"]

FORMATS: Tuple[str, ...] = ("tab", "csv", "json")
REQUIRED_FIELDS = 3
JSON_FIELDS = ("name", "dota2id", "mmr", "notes")


@dataclass
class RawRow:
    position: int
    fields: Tuple[Any, ...]


@dataclass
class ParseIssue:
    """Parse failure; position 0 means the whole input was rejected."""
    position: int
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class ParseResult:
    rows: List[RawRow] = field(default_factory=list)
    errors: List[ParseIssue] = field(default_factory=list)


def split_csv_line(line: str) -> List[str]:
    """
    Split one CSV line on commas. A double quote toggles "inside field" and is
    dropped; commas inside quotes are kept. Escaped quotes are not supported.
    """
    parts: List[str] = []
    current: List[str] = []
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def _parse_delimited(raw_text: str, fmt: str) -> ParseResult:
    result = ParseResult()
    for index, line in enumerate(raw_text.split("\n"), start=1):
        line = line.strip()
        if not line:
            continue
        parts = line.split("\t") if fmt == "tab" else split_csv_line(line)
        if len(parts) < REQUIRED_FIELDS:
            result.errors.append(ParseIssue(
                index,
                f"Line {index}: Invalid format. Expected at least {REQUIRED_FIELDS} "
                f"fields (PlayerName, Dota2ID, MMR).",
            ))
            continue
        result.rows.append(RawRow(index, tuple(part.strip() for part in parts)))
    return result


def _parse_json(raw_text: str) -> ParseResult:
    result = ParseResult()
    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError as e:
        result.errors.append(ParseIssue(0, f"JSON parsing error: {e}"))
        return result

    return rows_from_objects(data)


def rows_from_objects(data: Any) -> ParseResult:
    """Turn a decoded JSON array of player objects into rows."""
    result = ParseResult()
    if not isinstance(data, list):
        result.errors.append(ParseIssue(0, "JSON data must be an array of player objects."))
        return result

    for index, item in enumerate(data, start=1):
        if not isinstance(item, dict):
            result.errors.append(ParseIssue(index, f"Line {index}: Invalid player object."))
            continue
        present = [key for key in JSON_FIELDS[:REQUIRED_FIELDS] if key in item]
        if len(present) < REQUIRED_FIELDS:
            result.errors.append(ParseIssue(
                index,
                f"Line {index}: Invalid format. Expected at least {REQUIRED_FIELDS} "
                f"fields (name, dota2id, mmr).",
            ))
            continue
        result.rows.append(RawRow(index, tuple(item.get(key) for key in JSON_FIELDS)))
    return result


def parse(raw_text: str, fmt: str) -> ParseResult:
    """Parse pasted `raw_text` in `fmt` ("tab", "csv" or "json")."""
    if fmt == "json":
        return _parse_json(raw_text)
    if fmt in ("tab", "csv"):
        return _parse_delimited(raw_text, fmt)
    return ParseResult(errors=[ParseIssue(0, f"Unsupported format: {fmt}")])
