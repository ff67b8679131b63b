from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Callable

import requests

from ..clients import LibraryClient
from ..config import LIBRARY
from ..schema import LibraryWriteResult, SourceRecord
from ..utils import normalize_title
from ..utils.progress import Progress
from .artifacts import (
    SyncArtifacts,
    find_latest_import_results,
    load_import_mapping,
    write_sync_artifacts,
)
from .context import PipelineContext
from .inputs import load_source_records, select_window
from .payload import build_sync_review

PLACEHOLDER_EMPTY_REVIEW = "[PLACEHOLDER] No content"


@dataclass(frozen=True)
class SyncSettings:
    dry_run: bool = False
    placeholders: bool = True
    id_field: str = LIBRARY.catalog_id_field
    placeholder_id_offset: int = LIBRARY.placeholder_id_offset
    max_pages: int = LIBRARY.sync_max_pages


@dataclass
class LibraryIndex:
    by_catalog_id: dict[str, dict[str, Any]]
    by_title: dict[str, dict[str, Any]]

    @classmethod
    def build(cls, games: list[dict[str, Any]], *, id_field: str) -> LibraryIndex:
        by_id: dict[str, dict[str, Any]] = {}
        by_title: dict[str, dict[str, Any]] = {}
        for g in games:
            if g.get(id_field) is not None:
                by_id[str(g[id_field])] = g
            key = normalize_title(g.get("title") or g.get("name") or "")
            # First one wins when two library entries normalize the same.
            if key and key not in by_title:
                by_title[key] = g
        return cls(by_catalog_id=by_id, by_title=by_title)


def review_update_payload(record: SourceRecord) -> dict[str, Any]:
    review = build_sync_review(record)
    return {
        "title_zh": record.title.strip() or None,
        "my_review": review or None,
        "review": review or None,
    }


def placeholder_payload(
    record: SourceRecord, placeholder_id: int, *, id_field: str = LIBRARY.catalog_id_field
) -> dict[str, Any]:
    title = record.title.strip()
    review = build_sync_review(record) or PLACEHOLDER_EMPTY_REVIEW
    completed = (record.published_date or "")[:10] or date.today().isoformat()
    return {
        id_field: placeholder_id,
        "title": title or f"WP Game {record.id}",
        "title_zh": title or None,
        "status": "played",
        "my_rating": 0,
        "completed_date": completed,
        "my_review": review,
        "review": review,
        "platform": "",
        "playtime_hours": 0,
    }


class ReviewSync:
    """
    Copy post reviews onto library entries.

    Entries are found by the catalog id recorded by a previous import, else by normalized
    title. Posts with no entry get a placeholder keyed by `offset + post id`; re-running
    updates that placeholder instead of creating another one.
    """

    def __init__(
        self,
        *,
        library: LibraryClient,
        index: LibraryIndex,
        mapping: dict[str, str],
        settings: SyncSettings = SyncSettings(),
    ):
        self.library = library
        self.index = index
        self.mapping = mapping
        self.settings = settings

    def find_target(self, record: SourceRecord) -> dict[str, Any] | None:
        mapped = self.mapping.get(record.title) or (self.mapping.get(record.link) if record.link else None)
        if mapped and mapped in self.index.by_catalog_id:
            return self.index.by_catalog_id[mapped]
        return self.index.by_title.get(normalize_title(record.title))

    def sync_record(self, record: SourceRecord) -> dict[str, Any]:
        row: dict[str, Any] = {"wpTitle": record.title, "wpLink": record.link or ""}

        target = self.find_target(record)
        if target is not None and target.get("id"):
            row.update(action="update", id=target["id"], rawg_id=target.get(self.settings.id_field))
            return self._write(
                row, lambda: self.library.update_game(target["id"], review_update_payload(record))
            )

        if not self.settings.placeholders:
            return {**row, "action": "skip", "ok": False, "reason": "not_found_no_placeholders"}
        if record.id is None:
            return {**row, "action": "skip", "ok": False, "reason": "missing_wp_id_for_placeholder"}

        placeholder_id = self.settings.placeholder_id_offset + record.id
        existing = self.index.by_catalog_id.get(str(placeholder_id))
        if existing is not None and existing.get("id"):
            row.update(action="update_placeholder", id=existing["id"], rawg_id=placeholder_id)
            return self._write(
                row, lambda: self.library.update_game(existing["id"], review_update_payload(record))
            )

        row.update(action="create_placeholder", rawg_id=placeholder_id)
        payload = placeholder_payload(record, placeholder_id, id_field=self.settings.id_field)
        return self._write(row, lambda: self.library.add_game(payload))

    def _write(self, row: dict[str, Any], call: Callable[[], LibraryWriteResult]) -> dict[str, Any]:
        if self.settings.dry_run:
            return {**row, "ok": True, "dryRun": True}
        try:
            res = call()
        except requests.RequestException as e:
            logging.error(f"[SYNC] {row['action']} '{row['wpTitle']}': {type(e).__name__}: {e}")
            return {**row, "ok": False, "error": f"{type(e).__name__}: {e}"}
        if not res.ok:
            logging.warning(
                f"[SYNC] {row['action']} '{row['wpTitle']}' failed: HTTP {res.status} {res.message}"
            )
        return {**row, "ok": res.ok, "status": res.status, "error": res.message}

    def run(self, records: list[SourceRecord]) -> list[dict[str, Any]]:
        progress = Progress("SYNC", total=len(records))
        out: list[dict[str, Any]] = []
        for seen, record in enumerate(records, start=1):
            out.append(self.sync_record(record))
            progress.maybe_log(seen)
        return out


def summarize_sync(actions: list[dict[str, Any]]) -> str:
    updated = sum(1 for a in actions if a["action"] == "update" and a.get("ok"))
    updated_ph = sum(1 for a in actions if a["action"] == "update_placeholder" and a.get("ok"))
    created = sum(1 for a in actions if a["action"] == "create_placeholder" and a.get("ok"))
    skipped = sum(1 for a in actions if a["action"] == "skip")
    failed = sum(1 for a in actions if a["action"] != "skip" and a.get("ok") is False)
    return (
        f"updated={updated} updated_placeholders={updated_ph} created={created} "
        f"skipped={skipped} failed={failed}"
    )


def run_sync(
    ctx: PipelineContext,
    *,
    input_json: Path,
    output_dir: Path,
    mapping_path: Path | None = None,
    settings: SyncSettings = SyncSettings(),
    start: int = 1,
    limit: int = 0,
) -> tuple[list[dict[str, Any]], SyncArtifacts]:
    records = load_source_records(input_json)
    selected = select_window(records, start=start, limit=limit)
    logging.info(f"[WP] input={input_json} loaded={len(records)} selected={len(selected)}")

    mapping_path = mapping_path or find_latest_import_results(output_dir)
    mapping = load_import_mapping(mapping_path)
    logging.info(f"[MAPPING] {mapping_path or '(none)'} entries={len(mapping)}")

    library = ctx.build_library()
    games = library.fetch_all_games(max_pages=settings.max_pages)
    logging.info(f"[LIBRARY] games={len(games)}")

    sync = ReviewSync(
        library=library,
        index=LibraryIndex.build(games, id_field=settings.id_field),
        mapping=mapping,
        settings=settings,
    )
    actions = sync.run(selected)
    logging.info(f"[LIBRARY] Request stats: {library.format_cache_stats()}")

    output_dir.mkdir(parents=True, exist_ok=True)
    artifacts = write_sync_artifacts(output_dir, actions)
    logging.info(f"✔ Sync completed: {summarize_sync(actions)} dry_run={str(settings.dry_run).lower()}")
    logging.info(f"[FILES] {artifacts.results_json}")
    logging.info(f"[FILES] {artifacts.updated_tsv}")
    logging.info(f"[FILES] {artifacts.placeholders_tsv}")
    return actions, artifacts
