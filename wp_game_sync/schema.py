from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# -----------------------------------------------------------------------------
# Records and candidates
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceRecord:
    """One legacy WordPress post to reconcile."""

    id: int | None
    title: str
    link: str | None = None
    published_date: str | None = None
    content_html: str = ""
    excerpt_html: str = ""


@dataclass(frozen=True)
class OverrideEntry:
    """Manual correction for a post, keyed by its title or link in the overrides file."""

    igdb_id: int | None = None
    query: str | None = None
    skip: bool = False


@dataclass(frozen=True)
class CatalogCandidate:
    id: int
    name: str
    first_release_date: int | None = None
    platforms: tuple[str, ...] = ()
    total_rating: float | None = None
    rating: float | None = None
    summary: str | None = None
    cover_image_id: str | None = None
    screenshot_image_ids: tuple[str, ...] = ()
    genres: tuple[str, ...] = ()
    developers: tuple[str, ...] = ()
    publishers: tuple[str, ...] = ()

    @property
    def rating_100(self) -> float | None:
        return self.total_rating if self.total_rating is not None else self.rating

    def brief(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "first_release_date": self.first_release_date}


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: CatalogCandidate
    score: float
    base: float
    major_platform_count: int
    bad_platform_only: bool
    keyword_penalty: float = 0.0
    platform_penalty: float = 0.0
    platform_bonus: float = 0.0
    exact_bonus: float = 0.0


# -----------------------------------------------------------------------------
# Outcomes
# -----------------------------------------------------------------------------


class Outcome(str, Enum):
    SKIPPED_BY_OVERRIDE = "skipped_by_override"
    ALREADY_IMPORTED = "already_imported"
    IMPORTED = "imported"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    IMPORT_FAILED = "import_failed"
    UNMATCHED = "unmatched"
    DRY_RUN = "dry_run"


@dataclass(frozen=True)
class ReconciliationResult:
    record: SourceRecord
    outcome: Outcome
    chosen_id: int | None = None
    chosen_name: str | None = None
    chosen_score: float | None = None
    query: str | None = None
    completed_date: str | None = None
    status: int | None = None
    reason: str | None = None
    error: str | None = None

    @property
    def matched(self) -> bool:
        return self.chosen_id is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "wp_id": self.record.id,
            "wp_title": self.record.title,
            "wp_link": self.record.link,
            "outcome": self.outcome.value,
            "matched": self.matched,
            "igdb_id": self.chosen_id,
            "name": self.chosen_name,
            "score": None if self.chosen_score is None else round(self.chosen_score, 4),
            "query": self.query,
            "completed_date": self.completed_date,
            "status": self.status,
            "reason": self.reason,
            "error": self.error,
        }


@dataclass(frozen=True)
class UnmatchedEntry:
    record: SourceRecord
    query_candidates: list[str]
    candidates_by_query: list[dict[str, Any]] = field(default_factory=list)
    best_query: str | None = None
    top_candidates: list[CatalogCandidate] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "wp_id": self.record.id,
            "wp_title": self.record.title,
            "wp_link": self.record.link,
            "wp_date": self.record.published_date,
            "query_candidates": list(self.query_candidates),
            "candidates_by_query": list(self.candidates_by_query),
            "best_query": self.best_query,
            "top_candidates": [c.brief() for c in self.top_candidates],
        }


@dataclass(frozen=True)
class LibraryWriteResult:
    ok: bool
    already: bool = False
    status: int | None = None
    message: str | None = None
