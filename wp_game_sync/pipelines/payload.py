from __future__ import annotations

import random
from datetime import date, timedelta
from typing import Any

from ..clients.parse import iso_date_from_epoch_seconds
from ..config import LIBRARY
from ..schema import CatalogCandidate, SourceRecord
from ..utils.utilities import strip_html_to_text

IGDB_IMAGE_URL = "https://images.igdb.com/igdb/image/upload/t_{size}/{image_id}.jpg"


def igdb_image_url(image_id: str | None, size: str = "cover_big") -> str | None:
    if not image_id:
        return None
    return IGDB_IMAGE_URL.format(size=size, image_id=image_id)


def parse_iso_date(value: str | None) -> date | None:
    s = str(value or "").strip()[:10]
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def compute_completed_date(
    release_iso: str | None,
    *,
    today: date | None = None,
    rng: random.Random | None = None,
) -> str:
    """
    Guess when a reviewed game was finished: a random day 1-3 years after release, never in
    the future. Without a usable release date, today.
    """
    today = today or date.today()
    rng = rng or random.Random()
    release = parse_iso_date(release_iso)
    if release is None:
        return today.isoformat()
    latest = min(release + timedelta(days=365 * 3), today)
    earliest = min(release + timedelta(days=365), latest)
    span = max(0, (latest - earliest).days)
    return (earliest + timedelta(days=rng.randint(0, span))).isoformat()


def review_body(record: SourceRecord) -> str:
    return strip_html_to_text(record.content_html) or strip_html_to_text(record.excerpt_html)


def build_import_review(record: SourceRecord) -> str:
    parts = [review_body(record)]
    if record.link:
        parts.append(f"Source: {record.link}")
    return "\n\n".join(p for p in parts if p)[: LIBRARY.review_max_chars]


def build_sync_review(record: SourceRecord) -> str:
    parts = [review_body(record)]
    if record.published_date:
        parts.append(f"WP date: {record.published_date[:10]}")
    if record.link:
        parts.append(f"Source: {record.link}")
    return "\n\n".join(p for p in parts if p)[: LIBRARY.review_max_chars]


def build_game_payload(
    record: SourceRecord,
    candidate: CatalogCandidate,
    *,
    completed_date: str,
    id_field: str = LIBRARY.catalog_id_field,
) -> dict[str, Any]:
    """
    Flatten a matched catalog entry + the post's review into the library create payload.
    """
    review = build_import_review(record)
    rating = candidate.rating_100
    return {
        "my_rating": 0,
        "status": "played",
        "my_review": review,
        "review": review,
        "completed_date": completed_date,
        id_field: candidate.id,
        "title": candidate.name or record.title,
        "cover_image_cdn": igdb_image_url(candidate.cover_image_id, "cover_big"),
        "backdrop_image_cdn": igdb_image_url(
            candidate.screenshot_image_ids[0] if candidate.screenshot_image_ids else None,
            "screenshot_med",
        ),
        "overview": candidate.summary,
        "genres": list(candidate.genres) or None,
        "external_rating": None if rating is None else round(rating / 10.0, 1),
        "release_date": iso_date_from_epoch_seconds(candidate.first_release_date),
        "platforms": list(candidate.platforms) or None,
        "developers": list(candidate.developers) or None,
        "publishers": list(candidate.publishers) or None,
        "platform": candidate.platforms[0] if candidate.platforms else "",
        "playtime_hours": 0,
    }
