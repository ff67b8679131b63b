from __future__ import annotations

import re
from functools import cmp_to_key

from ..config import MATCHING
from ..schema import CatalogCandidate, ScoredCandidate
from .utilities import normalize_title, similarity

# Names that usually belong to add-ons, mods or re-packaged editions rather than the base game.
# Matched as substrings of the normalized candidate name.
LOW_VALUE_KEYWORDS = (
    "mod",
    "promod",
    "season",
    "battle pass",
    "dlc",
    "pack",
    "bundle",
    "soundtrack",
    "skin",
    "weapon",
    "demo",
    "beta",
    "alpha",
    "test",
    "variety map pack",
    "collector",
    "limited",
    "pro edition",
    "deluxe edition",
    "digital deluxe",
    "ultimate edition",
    "game of the year",
    "goty",
    "mode",
)

_MOBILE_RE = re.compile(r"mobile|android|ios|legacy mobile", re.IGNORECASE)
_MAJOR_RE = re.compile(r"pc|playstation|xbox|nintendo|switch|steam", re.IGNORECASE)
_LEGACY_MOBILE_RE = re.compile(r"legacy mobile", re.IGNORECASE)


def _is_mobile_only(platforms: tuple[str, ...]) -> bool:
    if not platforms:
        return False
    return all(_MOBILE_RE.search(p) for p in platforms)


def _major_platform_count(platforms: tuple[str, ...]) -> int:
    return sum(1 for p in platforms if _MAJOR_RE.search(p) and not _LEGACY_MOBILE_RE.search(p))


def _is_exact(norm_name: str, norm_query: str, norm_title: str) -> bool:
    return bool(norm_name) and (
        (bool(norm_query) and norm_name == norm_query) or (bool(norm_title) and norm_name == norm_title)
    )


def score_candidate(title: str, query: str, candidate: CatalogCandidate) -> ScoredCandidate:
    """
    Heuristic confidence that `candidate` is the game reviewed under `title`.

    Base similarity is the best of title-vs-name and query-vs-name, then adjusted for
    add-on keywords, mobile-only spin-offs, major-platform presence and exact name equality.
    """
    name = candidate.name
    base = max(similarity(title, name), similarity(query, name))

    norm_name = normalize_title(name)
    norm_query = normalize_title(query)
    norm_title = normalize_title(title)

    keyword_penalty = sum(
        MATCHING.keyword_penalty
        for kw in LOW_VALUE_KEYWORDS
        if kw in norm_name and kw not in norm_query
    )
    bad_platform_only = _is_mobile_only(candidate.platforms)
    platform_penalty = MATCHING.mobile_only_penalty if bad_platform_only else 0.0
    major = _major_platform_count(candidate.platforms)
    platform_bonus = min(MATCHING.major_platform_bonus_max, major * MATCHING.major_platform_bonus)
    exact_bonus = MATCHING.exact_bonus if _is_exact(norm_name, norm_query, norm_title) else 0.0

    score = base - keyword_penalty - platform_penalty + platform_bonus + exact_bonus
    return ScoredCandidate(
        candidate=candidate,
        score=max(0.0, min(1.0, score)),
        base=base,
        major_platform_count=major,
        bad_platform_only=bad_platform_only,
        keyword_penalty=keyword_penalty,
        platform_penalty=platform_penalty,
        platform_bonus=platform_bonus,
        exact_bonus=exact_bonus,
    )


def _compare(a: ScoredCandidate, b: ScoredCandidate) -> int:
    if a.score != b.score:
        return -1 if a.score > b.score else 1
    if a.major_platform_count != b.major_platform_count:
        return b.major_platform_count - a.major_platform_count
    # Prefer the original release over later re-releases/mods with the same name.
    ra = a.candidate.first_release_date
    rb = b.candidate.first_release_date
    if ra and rb and ra != rb:
        return -1 if ra < rb else 1
    return 0


def rank_candidates(
    title: str, query: str, candidates: list[CatalogCandidate]
) -> list[ScoredCandidate]:
    """Score every candidate and sort best first (stable for full ties)."""
    scored = [score_candidate(title, query, c) for c in candidates]
    return sorted(scored, key=cmp_to_key(_compare))


def pick_best(
    title: str,
    query: str,
    candidates: list[CatalogCandidate],
    min_score: float = MATCHING.min_score,
) -> tuple[CatalogCandidate, float] | None:
    """
    Choose the catalog candidate for a post, or None when nothing is confident enough.

    An exact normalized-name hit on the query or the title wins outright when it clears
    `min_score`, so a noisy top-ranked entry can't displace it. Otherwise the top-ranked
    candidate is accepted only at `min_score` or above.
    """
    if not candidates:
        return None

    norm_query = normalize_title(query)
    norm_title = normalize_title(title)
    for c in candidates:
        if _is_exact(normalize_title(c.name), norm_query, norm_title):
            exact = score_candidate(title, query, c)
            if exact.score >= min_score:
                return c, exact.score
            break

    ranked = rank_candidates(title, query, candidates)
    best = ranked[0]
    if best.score < min_score:
        return None
    return best.candidate, best.score
