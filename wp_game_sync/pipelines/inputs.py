from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from ..clients.parse import parse_int_text
from ..schema import OverrideEntry, SourceRecord


class InputDataError(ValueError):
    """The posts export or the overrides file is malformed."""


def _opt_str(item: dict[str, Any], key: str, *, where: str) -> str | None:
    v = item.get(key)
    if v is None:
        return None
    if not isinstance(v, str):
        raise InputDataError(f"{where}: '{key}' must be a string, got {type(v).__name__}")
    return v


def _parse_record(item: Any, *, where: str) -> SourceRecord:
    if not isinstance(item, dict):
        raise InputDataError(f"{where}: expected an object, got {type(item).__name__}")
    raw_id = item.get("id")
    if raw_id is not None and (isinstance(raw_id, bool) or not isinstance(raw_id, int)):
        raise InputDataError(f"{where}: 'id' must be an integer")
    return SourceRecord(
        id=raw_id,
        title=_opt_str(item, "title", where=where) or "",
        link=_opt_str(item, "link", where=where) or None,
        published_date=_opt_str(item, "date", where=where) or None,
        content_html=_opt_str(item, "content_html", where=where) or "",
        excerpt_html=_opt_str(item, "excerpt_html", where=where) or "",
    )


def load_source_records(path: str | Path) -> list[SourceRecord]:
    """
    Load the WordPress export (a JSON array of posts) and validate every entry up front.
    """
    p = Path(path)
    if not p.exists():
        raise InputDataError(f"Input file not found: {p}")
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except ValueError as e:
        raise InputDataError(f"Input is not valid JSON: {p}: {e}") from e
    if not isinstance(raw, list):
        raise InputDataError(f"Input is not an array: {p}")
    return [_parse_record(item, where=f"{p.name}[{i}]") for i, item in enumerate(raw)]


def _parse_override(key: str, value: Any) -> OverrideEntry:
    where = f"override '{key}'"
    if not isinstance(value, dict):
        raise InputDataError(f"{where}: expected an object")
    unknown = set(value) - {"igdb_id", "query", "skip"}
    if unknown:
        raise InputDataError(f"{where}: unknown fields {sorted(unknown)}")

    igdb_id = None
    if value.get("igdb_id") is not None:
        igdb_id = parse_int_text(value.get("igdb_id"))
        if igdb_id is None:
            raise InputDataError(f"{where}: 'igdb_id' must be an integer")
    query = value.get("query")
    if query is not None and not isinstance(query, str):
        raise InputDataError(f"{where}: 'query' must be a string")
    skip = value.get("skip", False)
    if not isinstance(skip, bool):
        raise InputDataError(f"{where}: 'skip' must be true/false")

    query = (query or "").strip() or None
    if igdb_id is None and query is None and not skip:
        raise InputDataError(f"{where}: needs at least one of igdb_id, query, skip")
    return OverrideEntry(igdb_id=igdb_id, query=query, skip=skip)


def load_overrides(path: str | Path | None, *, required: bool = False) -> dict[str, OverrideEntry]:
    """
    Load manual overrides keyed by post title or link.

    JSON by default; `.yaml`/`.yml` files are read with PyYAML. A missing file is fine unless
    `required` (the default overrides file is optional).
    """
    if path is None:
        return {}
    p = Path(path)
    if not p.exists():
        if required:
            raise InputDataError(f"Overrides file not found: {p}")
        logging.info(f"[OVERRIDES] No overrides file at {p}; continuing without overrides")
        return {}
    text = p.read_text(encoding="utf-8")
    try:
        if p.suffix.lower() in (".yaml", ".yml"):
            raw = yaml.safe_load(text)
        else:
            raw = json.loads(text) if text.strip() else {}
    except (ValueError, yaml.YAMLError) as e:
        raise InputDataError(f"Overrides file is not valid: {p}: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise InputDataError(f"Overrides file must map title/link -> override: {p}")
    out = {str(k): _parse_override(str(k), v) for k, v in raw.items()}
    logging.info(f"[OVERRIDES] Loaded {len(out)} overrides from {p}")
    return out


def find_override(overrides: dict[str, OverrideEntry], record: SourceRecord) -> OverrideEntry | None:
    if not overrides:
        return None
    hit = overrides.get(record.title) if record.title else None
    if hit is None and record.link:
        hit = overrides.get(record.link)
    return hit


def select_window(records: list[SourceRecord], *, start: int = 1, limit: int = 0) -> list[SourceRecord]:
    """1-based `start`, `limit` 0 = no limit."""
    begin = max(0, int(start) - 1)
    if limit and limit > 0:
        return records[begin : begin + int(limit)]
    return records[begin:]
