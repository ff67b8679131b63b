from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..schema import ReconciliationResult, UnmatchedEntry
from ..utils.utilities import write_json, write_tsv

IMPORT_RESULTS_RE = re.compile(r"^igdb_wp_game_import_\d+\.results\.json$")

UPDATED_TSV_COLUMNS = ["action", "id", "rawg_id", "wpTitle", "wpLink"]
PLACEHOLDERS_TSV_COLUMNS = ["placeholder_rawg_id", "wpTitle", "wpLink"]


def _stamp_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ImportArtifacts:
    results_json: Path
    unmatched_json: Path


@dataclass(frozen=True)
class SyncArtifacts:
    results_json: Path
    updated_tsv: Path
    placeholders_tsv: Path


def write_import_artifacts(
    output_dir: Path,
    results: list[ReconciliationResult],
    unmatched: list[UnmatchedEntry],
    *,
    stamp: int | None = None,
) -> ImportArtifacts:
    """
    Persist one import run: every per-post result, plus the unmatched posts with the
    candidates that were seen (for writing manual overrides).
    """
    stamp = stamp if stamp is not None else _stamp_ms()
    base = output_dir / f"igdb_wp_game_import_{stamp}"
    out = ImportArtifacts(
        results_json=base.with_name(base.name + ".results.json"),
        unmatched_json=base.with_name(base.name + ".unmatched.json"),
    )
    write_json([r.to_dict() for r in results], out.results_json)
    write_json([u.to_dict() for u in unmatched], out.unmatched_json)
    return out


def find_latest_import_results(output_dir: Path) -> Path | None:
    """Newest `igdb_wp_game_import_<ms>.results.json` in `output_dir` (by name)."""
    if not output_dir.is_dir():
        return None
    found = sorted(p.name for p in output_dir.iterdir() if IMPORT_RESULTS_RE.match(p.name))
    return output_dir / found[-1] if found else None


def load_import_mapping(path: Path | None) -> dict[str, str]:
    """
    Map post title and link -> catalog id from an import results file.

    An unreadable mapping is not fatal: the sync falls back to title matching.
    """
    if path is None:
        return {}
    try:
        rows = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logging.warning(f"[SYNC] Ignoring unreadable mapping '{path}': {e}")
        return {}
    if not isinstance(rows, list):
        logging.warning(f"[SYNC] Ignoring mapping '{path}': not an array")
        return {}

    out: dict[str, str] = {}
    for row in rows:
        if not isinstance(row, dict) or not row.get("igdb_id"):
            continue
        cid = str(row["igdb_id"])
        # Older result files used camelCase keys.
        title = row.get("wp_title") or row.get("wpTitle")
        link = row.get("wp_link") or row.get("wpLink")
        if title:
            out[str(title)] = cid
        if link:
            out[str(link)] = cid
    return out


def write_sync_artifacts(
    output_dir: Path, actions: list[dict[str, Any]], *, stamp: int | None = None
) -> SyncArtifacts:
    stamp = stamp if stamp is not None else _stamp_ms()
    base = f"wp_game_sync_{stamp}"
    out = SyncArtifacts(
        results_json=output_dir / f"{base}.results.json",
        updated_tsv=output_dir / f"{base}.updated.tsv",
        placeholders_tsv=output_dir / f"{base}.placeholders.tsv",
    )
    write_json(actions, out.results_json)

    updated = [
        {
            "action": a["action"],
            "id": a.get("id"),
            "rawg_id": a.get("rawg_id"),
            "wpTitle": a.get("wpTitle"),
            "wpLink": a.get("wpLink"),
        }
        for a in actions
        if a["action"] in ("update", "update_placeholder") and a.get("ok")
    ]
    created = [
        {
            "placeholder_rawg_id": a.get("rawg_id"),
            "wpTitle": a.get("wpTitle"),
            "wpLink": a.get("wpLink"),
        }
        for a in actions
        if a["action"] == "create_placeholder" and a.get("ok")
    ]
    write_tsv(updated, out.updated_tsv, columns=UPDATED_TSV_COLUMNS)
    write_tsv(created, out.placeholders_tsv, columns=PLACEHOLDERS_TSV_COLUMNS)
    return out
