from __future__ import annotations

import logging
import random
from collections import Counter
from dataclasses import dataclass, field
from datetime import date

import requests

from ..clients import CatalogClient, LibraryClient, TranslateClient, UnauthorizedError
from ..clients.parse import iso_date_from_epoch_seconds
from ..config import CATALOG, LIBRARY, MATCHING
from ..schema import (
    CatalogCandidate,
    OverrideEntry,
    Outcome,
    ReconciliationResult,
    SourceRecord,
    UnmatchedEntry,
)
from ..utils.progress import Progress
from ..utils.queries import build_queries
from ..utils.ranking import pick_best
from ..utils.utilities import contains_cjk
from .inputs import find_override
from .payload import build_game_payload, compute_completed_date


@dataclass(frozen=True)
class ReconcileSettings:
    min_score: float = MATCHING.min_score
    search_limit: int = CATALOG.search_limit
    translate: bool = True
    dry_run: bool = False
    catalog_id_field: str = LIBRARY.catalog_id_field


@dataclass
class ReconcileReport:
    results: list[ReconciliationResult] = field(default_factory=list)
    unmatched: list[UnmatchedEntry] = field(default_factory=list)

    def counts(self) -> Counter[str]:
        return Counter(r.outcome.value for r in self.results)

    def summary(self) -> str:
        c = self.counts()
        matched = sum(1 for r in self.results if r.matched)
        skipped = (
            c[Outcome.SKIPPED_BY_OVERRIDE.value]
            + c[Outcome.ALREADY_IMPORTED.value]
            + c[Outcome.SKIPPED_DUPLICATE.value]
        )
        return (
            f"matched={matched}/{len(self.results)} imported={c[Outcome.IMPORTED.value]} "
            f"dry_run={c[Outcome.DRY_RUN.value]} skipped={skipped} "
            f"failed={c[Outcome.IMPORT_FAILED.value]} unmatched={len(self.unmatched)}"
        )


@dataclass
class _QueryLoopOutcome:
    queries: list[str]
    chosen: CatalogCandidate | None = None
    score: float | None = None
    query: str | None = None
    candidates_by_query: list[dict] = field(default_factory=list)
    best_query: str | None = None
    best_candidates: list[CatalogCandidate] = field(default_factory=list)


class Reconciler:
    """
    Match legacy posts to catalog entries, one at a time, and import the matches.

    `used_ids` is owned by the caller: it starts with the ids already in the library and
    gains every id claimed during the run, so one catalog entry is imported at most once.
    """

    def __init__(
        self,
        *,
        search: CatalogClient,
        library: LibraryClient | None,
        used_ids: set[str],
        translator: TranslateClient | None = None,
        settings: ReconcileSettings = ReconcileSettings(),
        today: date | None = None,
        rng: random.Random | None = None,
    ):
        self.search = search
        self.library = library
        self.used_ids = used_ids
        self.translator = translator
        self.settings = settings
        self.today = today
        self.rng = rng or random.Random()

    # -------------------------------------------------
    # Batch
    # -------------------------------------------------
    def run(
        self, records: list[SourceRecord], overrides: dict[str, OverrideEntry] | None = None
    ) -> ReconcileReport:
        report = ReconcileReport()
        progress = Progress("IMPORT", total=len(records))
        for seen, record in enumerate(records, start=1):
            override = find_override(overrides or {}, record)
            try:
                result, unmatched = self.reconcile(record, override)
            except UnauthorizedError:
                raise
            except Exception as e:
                # One post's failure must not stop the batch.
                logging.error(f"[IMPORT] '{record.title}': {type(e).__name__}: {e}")
                result = ReconciliationResult(
                    record=record,
                    outcome=Outcome.IMPORT_FAILED,
                    error=f"{type(e).__name__}: {e}",
                )
                unmatched = None
            report.results.append(result)
            if unmatched is not None:
                report.unmatched.append(unmatched)
            progress.maybe_log(seen)
        return report

    # -------------------------------------------------
    # Single record
    # -------------------------------------------------
    def reconcile(
        self, record: SourceRecord, override: OverrideEntry | None = None
    ) -> tuple[ReconciliationResult, UnmatchedEntry | None]:
        if override is not None and override.skip:
            logging.info(f"[IMPORT] '{record.title}': skipped by override")
            return ReconciliationResult(record, Outcome.SKIPPED_BY_OVERRIDE, reason="override.skip"), None

        if override is not None and override.igdb_id is not None:
            if str(override.igdb_id) in self.used_ids:
                logging.info(f"[IMPORT] '{record.title}': override id {override.igdb_id} already in library")
                return (
                    ReconciliationResult(
                        record,
                        Outcome.ALREADY_IMPORTED,
                        chosen_id=override.igdb_id,
                        reason="already_in_library",
                    ),
                    None,
                )

        loop = self._query_loop(record, override)
        chosen = loop.chosen
        if chosen is None:
            return ReconciliationResult(record, Outcome.UNMATCHED), self._unmatched(record, loop)

        return self._import(record, loop, chosen), None

    def query_candidates(self, record: SourceRecord, override: OverrideEntry | None = None) -> list[str]:
        queries = build_queries(record.title, record.link, override)
        if self.settings.translate and self.translator is not None and contains_cjk(record.title):
            translated = self.translator.translate(record.title)
            if translated:
                queries = [translated] + [q for q in queries if q != translated]
        return queries

    def _query_loop(self, record: SourceRecord, override: OverrideEntry | None) -> _QueryLoopOutcome:
        out = _QueryLoopOutcome(queries=self.query_candidates(record, override))
        wanted_id = override.igdb_id if override is not None else None

        for q in out.queries:
            candidates = self.search.search(q, self.settings.search_limit)
            if candidates:
                if not out.best_candidates:
                    out.best_candidates = candidates
                    out.best_query = q
                out.candidates_by_query.append(
                    {
                        "query": q,
                        "top_candidates": [c.brief() for c in candidates[: MATCHING.review_top_n]],
                    }
                )

            if wanted_id is not None:
                # The override id is authoritative: look for it, never for a "best" guess.
                hit = next((c for c in candidates if c.id == wanted_id), None)
                if hit is not None:
                    out.chosen, out.query = hit, q
                    return out
                continue

            picked = pick_best(record.title, q, candidates, self.settings.min_score)
            if picked is not None:
                out.chosen, out.score = picked
                out.query = q
                return out
            # The catalog answered with real but weak options; further variants rarely help
            # and cost quota. The unmatched log keeps these for a manual override.
            if candidates:
                break
        return out

    def _unmatched(self, record: SourceRecord, loop: _QueryLoopOutcome) -> UnmatchedEntry:
        top = loop.best_candidates[: MATCHING.review_top_n]
        if top:
            names = ", ".join(f"'{c.name}' (id={c.id})" for c in top)
            logging.warning(f"[IMPORT] Not matched: '{record.title}'. Closest candidates: {names}")
        else:
            logging.warning(f"[IMPORT] Not matched: '{record.title}'. No candidates for {loop.queries}")
        return UnmatchedEntry(
            record=record,
            query_candidates=list(loop.queries),
            candidates_by_query=loop.candidates_by_query,
            best_query=loop.best_query,
            top_candidates=top,
        )

    def _import(
        self, record: SourceRecord, loop: _QueryLoopOutcome, chosen: CatalogCandidate
    ) -> ReconciliationResult:
        cid = str(chosen.id)
        base = {
            "chosen_id": chosen.id,
            "chosen_name": chosen.name,
            "chosen_score": loop.score,
            "query": loop.query,
        }
        score_txt = "override" if loop.score is None else f"{loop.score:.3f}"
        logging.info(
            f"[IMPORT] Matched '{record.title}' -> '{chosen.name}' (id={cid}, score={score_txt}, "
            f"query='{loop.query}')"
        )

        if cid in self.used_ids:
            logging.info(f"[IMPORT] '{record.title}': id {cid} already claimed; skipping")
            return ReconciliationResult(record, Outcome.SKIPPED_DUPLICATE, reason="duplicate_id", **base)

        release_iso = iso_date_from_epoch_seconds(chosen.first_release_date)
        completed = compute_completed_date(
            release_iso or record.published_date, today=self.today, rng=self.rng
        )
        payload = build_game_payload(
            record, chosen, completed_date=completed, id_field=self.settings.catalog_id_field
        )

        if self.settings.dry_run or self.library is None:
            self.used_ids.add(cid)
            return ReconciliationResult(record, Outcome.DRY_RUN, completed_date=completed, **base)

        try:
            res = self.library.add_game(payload)
        except requests.RequestException as e:
            logging.error(f"[IMPORT] '{record.title}': {type(e).__name__}: {e}")
            return ReconciliationResult(
                record, Outcome.IMPORT_FAILED, error=f"{type(e).__name__}: {e}", **base
            )

        if res.ok:
            self.used_ids.add(cid)
            return ReconciliationResult(
                record, Outcome.IMPORTED, completed_date=completed, status=res.status, **base
            )
        if res.already:
            self.used_ids.add(cid)
            return ReconciliationResult(
                record,
                Outcome.SKIPPED_DUPLICATE,
                status=res.status,
                reason="already_in_library",
                **base,
            )
        logging.error(f"[IMPORT] '{record.title}': create failed: HTTP {res.status} {res.message}")
        return ReconciliationResult(
            record, Outcome.IMPORT_FAILED, status=res.status, error=res.message, **base
        )
