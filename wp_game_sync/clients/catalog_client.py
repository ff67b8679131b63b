from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable

import requests

from ..config import CATALOG
from ..schema import CatalogCandidate
from ..utils.utilities import CacheIOTracker, RateLimiter
from .http_client import (
    ConfiguredHTTPJSONClient,
    HTTPJSONClient,
    HTTPRequestDefaults,
    HTTPStatusError,
    UnauthorizedError,
)
from .parse import (
    as_float,
    as_int,
    as_str,
    get_list_of_dicts,
    names_list,
    parse_int_text,
    unwrap_data_envelope,
)


class CatalogSearchError(HTTPStatusError):
    """The catalog search endpoint answered with a non-success status (other than 401)."""


def parse_candidate(obj: Any) -> CatalogCandidate | None:
    """
    Validate one raw search hit. Returns None for anything without an integer id.
    """
    if not isinstance(obj, dict):
        return None
    cid = parse_int_text(obj.get("id"))
    if cid is None:
        return None

    cover = obj.get("cover")
    cover_id = as_str(cover.get("image_id")) if isinstance(cover, dict) else ""
    screenshots = tuple(
        s for s in (as_str(it.get("image_id")) for it in get_list_of_dicts(obj.get("screenshots"))) if s
    )

    developers: list[str] = []
    publishers: list[str] = []
    for ic in get_list_of_dicts(obj.get("involved_companies")):
        company = ic.get("company")
        cname = as_str(company.get("name")) if isinstance(company, dict) else ""
        if not cname:
            continue
        if ic.get("developer") is True and cname not in developers:
            developers.append(cname)
        if ic.get("publisher") is True and cname not in publishers:
            publishers.append(cname)

    return CatalogCandidate(
        id=cid,
        name=as_str(obj.get("name")),
        first_release_date=as_int(obj.get("first_release_date")),
        platforms=names_list(obj.get("platforms")),
        total_rating=as_float(obj.get("total_rating")),
        rating=as_float(obj.get("rating")),
        summary=as_str(obj.get("summary")) or None,
        cover_image_id=cover_id or None,
        screenshot_image_ids=screenshots,
        genres=names_list(obj.get("genres")),
        developers=tuple(developers),
        publishers=tuple(publishers),
    )


def parse_candidates(items: Any) -> list[CatalogCandidate]:
    if not isinstance(items, list):
        return []
    out: list[CatalogCandidate] = []
    for it in items:
        c = parse_candidate(it)
        if c is not None:
            out.append(c)
    return out


class CatalogClient:
    """
    Game search through the media-library backend's IGDB proxy.

    Lookups are cached by exact query string (and limit) for the lifetime of the client, and
    optionally persisted to a JSON cache file so re-runs don't spend quota again. Every
    request that reaches the network is followed by a fixed pause; cache hits are free.
    """

    def __init__(
        self,
        api_base: str,
        token: str,
        cache_path: str | Path | None = None,
        min_interval_s: float = CATALOG.sleep_s,
        search_limit: int = CATALOG.search_limit,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session = requests.Session()
        self.api_base = str(api_base or CATALOG.api_base).rstrip("/")
        self.search_limit = int(search_limit)
        self.cache_path = Path(cache_path) if cache_path is not None else None
        self.stats: dict[str, int] = {
            "by_query_hit": 0,
            "by_query_fetch": 0,
            "by_query_negative_fetch": 0,
            "http_get": 0,
        }
        base_http = HTTPJSONClient(self._session, stats=self.stats)
        # Raw search payloads keyed by "<limit>:<query>", kept raw so the file cache stays
        # independent of how candidates are parsed.
        self._by_query: dict[str, list[dict[str, Any]]] = {}
        self._cache_io = CacheIOTracker(self.stats)
        if self.cache_path is not None:
            self._load_cache(self._cache_io.load_json(self.cache_path))
        self.ratelimiter = RateLimiter(min_interval_s=min_interval_s, sleep=sleep)
        self._http = ConfiguredHTTPJSONClient(
            base_http,
            HTTPRequestDefaults(
                ratelimiter=self.ratelimiter,
                headers={"Authorization": f"Bearer {token}"},
                counter_key="http_get",
                context_prefix="IGDB search",
            ),
        )

    def search(self, query: str, limit: int | None = None) -> list[CatalogCandidate]:
        """
        Search the catalog for `query`.

        Raises UnauthorizedError on 401 and CatalogSearchError on any other non-2xx response.
        """
        if not str(query or "").strip():
            return []
        n = int(limit if limit is not None else self.search_limit)
        qkey = f"{n}:{query}"
        cached = self._by_query.get(qkey)
        if cached is not None:
            self.stats["by_query_hit"] += 1
            return parse_candidates(cached)

        resp = self._http.get_json(
            f"{self.api_base}{CATALOG.search_path}",
            params={"query": query, "limit": n},
            context=query,
        )
        if resp.status == 401:
            raise UnauthorizedError("Unauthorized", status=401, body=resp.text)
        if not resp.ok:
            raise CatalogSearchError(
                f"IGDB search failed: HTTP {resp.status} {resp.error_message()}".strip(),
                status=resp.status,
                body=resp.text,
            )

        data = unwrap_data_envelope(resp.data)
        if not isinstance(data, list):
            logging.warning(f"[IGDB] Unexpected search payload for '{query}'; treating as no results")
            data = []
        raw_items = [it for it in data if isinstance(it, dict)]
        self._by_query[qkey] = raw_items
        self.stats["by_query_fetch"] += 1
        if not raw_items:
            self.stats["by_query_negative_fetch"] += 1
        self._save_cache()
        return parse_candidates(raw_items)

    def format_cache_stats(self) -> str:
        s = self.stats
        return (
            f"by_query hit={s['by_query_hit']} fetch={s['by_query_fetch']} "
            f"(neg fetch={s['by_query_negative_fetch']}), "
            f"{HTTPJSONClient.format_timing(s, key='http_get')}, {CacheIOTracker.format_io(s)}"
        )

    def _load_cache(self, raw: Any) -> None:
        if not isinstance(raw, dict) or not raw:
            return
        by_query = raw.get("by_query")
        if isinstance(by_query, dict):
            self._by_query = {
                str(k): [it for it in v if isinstance(it, dict)]
                for k, v in by_query.items()
                if isinstance(v, list)
            }

    def _save_cache(self) -> None:
        if self.cache_path is None:
            return
        self._cache_io.save_json({"by_query": self._by_query}, self.cache_path)

    def flush_cache(self) -> None:
        self._cache_io.flush()
