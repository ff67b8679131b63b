from __future__ import annotations

import re
from urllib.parse import unquote, urlsplit

from ..schema import OverrideEntry

_ASCII_SLUG_RE = re.compile(r"[A-Za-z0-9-]+")


def decode_slug_from_link(link: str | None) -> str:
    """
    Return the last path segment of an absolute URL, percent-decoded ("" when not a URL).
    """
    s = str(link or "").strip()
    if not s:
        return ""
    try:
        parts = urlsplit(s)
    except ValueError:
        return ""
    if not parts.scheme or not parts.netloc:
        return ""
    segments = [p for p in parts.path.split("/") if p]
    if not segments:
        return ""
    return unquote(segments[-1])


def build_queries(
    title: str | None,
    link: str | None,
    override: OverrideEntry | None = None,
) -> list[str]:
    """
    Derive catalog search queries for a post, most specific first.

    1. the override query, if any (an override id stops here: it is authoritative)
    2. the URL slug, when it is plain ASCII (English permalinks search well; decoded CJK
       slugs don't)
    3. the raw title

    Machine translation is prepended by the reconciler, not here.
    """
    out: list[str] = []

    def _add(q: str | None) -> None:
        q = str(q or "").strip()
        if q and q not in out:
            out.append(q)

    if override is not None and override.query:
        _add(override.query)
    if override is not None and override.igdb_id is not None:
        return out

    slug = decode_slug_from_link(link)
    if slug and _ASCII_SLUG_RE.fullmatch(slug):
        _add(slug.replace("-", " "))

    _add(title)
    return out
