from __future__ import annotations

import logging
import re
import time
from typing import Any, Callable

import requests

from ..config import LIBRARY
from ..schema import LibraryWriteResult
from ..utils.utilities import RateLimiter
from .http_client import (
    ConfiguredHTTPJSONClient,
    HTTPJSONClient,
    HTTPRequestDefaults,
    JSONResponse,
    UnauthorizedError,
)
from .parse import as_str, get_list_of_dicts, unwrap_data_envelope

_ALREADY_RE = re.compile(r"already in (your )?library", re.IGNORECASE)


def _page_items(payload: Any) -> list[dict[str, Any]]:
    data = unwrap_data_envelope(payload)
    if isinstance(data, dict):
        return get_list_of_dicts(data.get("items"))
    if isinstance(payload, dict):
        return get_list_of_dicts(payload.get("items"))
    return []


class LibraryClient:
    """
    Media-library backend: list games, create and update entries.

    Reads are not paced; every write is followed by the configured pause.
    """

    def __init__(
        self,
        api_base: str,
        token: str,
        min_interval_s: float = LIBRARY.sleep_s,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session = requests.Session()
        self.api_base = str(api_base).rstrip("/")
        self.stats: dict[str, int] = {"http_get": 0, "http_post": 0, "http_put": 0}
        base_http = HTTPJSONClient(self._session, stats=self.stats)
        headers = {"Authorization": f"Bearer {token}"}
        self.ratelimiter = RateLimiter(min_interval_s=min_interval_s, sleep=sleep)
        self._read_http = ConfiguredHTTPJSONClient(
            base_http,
            HTTPRequestDefaults(headers=headers, counter_key="http_get", context_prefix="Library GET"),
        )
        self._write_http = ConfiguredHTTPJSONClient(
            base_http,
            HTTPRequestDefaults(
                ratelimiter=self.ratelimiter,
                headers=headers,
                counter_key="http_post",
                context_prefix="Library write",
            ),
        )

    @staticmethod
    def _check_auth(resp: JSONResponse) -> None:
        if resp.status == 401:
            raise UnauthorizedError("Unauthorized", status=401, body=resp.text)

    def integration_status(self) -> dict[str, Any] | None:
        resp = self._read_http.get_json(f"{self.api_base}{LIBRARY.status_path}", context="status")
        self._check_auth(resp)
        if not resp.ok:
            return None
        data = unwrap_data_envelope(resp.data)
        return data if isinstance(data, dict) else None

    def igdb_configured(self) -> bool:
        """False only when the backend explicitly reports the IGDB integration as unconfigured."""
        status = self.integration_status() or {}
        igdb = status.get("igdb")
        return not (isinstance(igdb, dict) and igdb.get("configured") is False)

    def fetch_all_games(self, max_pages: int = LIBRARY.max_pages) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for page in range(1, max_pages + 1):
            resp = self._read_http.get_json(
                f"{self.api_base}{LIBRARY.games_path}",
                params={"page": page, "limit": LIBRARY.page_size},
                context=f"page {page}",
            )
            self._check_auth(resp)
            if not resp.ok:
                logging.warning(
                    f"[LIBRARY] Listing stopped at page {page}: HTTP {resp.status} {resp.error_message()}"
                )
                break
            page_items = _page_items(resp.data)
            if not page_items:
                break
            items.extend(page_items)
        return items

    def existing_catalog_ids(self, max_pages: int = LIBRARY.max_pages) -> set[str]:
        """Catalog ids already present in the library (any of the backend's id columns)."""
        ids: set[str] = set()
        for game in self.fetch_all_games(max_pages=max_pages):
            for key in ("igdb_id", "rawg_id", "external_id"):
                v = as_str(game.get(key))
                if v:
                    ids.add(v)
        return ids

    @staticmethod
    def _write_result(resp: JSONResponse) -> LibraryWriteResult:
        if resp.ok:
            return LibraryWriteResult(ok=True, status=resp.status)
        msg = resp.error_message()
        already = resp.status == 409 or bool(_ALREADY_RE.search(msg))
        return LibraryWriteResult(ok=False, already=already, status=resp.status, message=msg)

    def add_game(self, payload: dict[str, Any]) -> LibraryWriteResult:
        """
        Create a library entry. A 409 / "already in library" answer comes back with
        `already=True` rather than as a failure.
        """
        resp = self._write_http.post_json(
            f"{self.api_base}{LIBRARY.games_path}",
            json_body=payload,
            counter_key="http_post",
            context=as_str(payload.get("title")),
        )
        self._check_auth(resp)
        return self._write_result(resp)

    def update_game(self, game_id: int | str, payload: dict[str, Any]) -> LibraryWriteResult:
        resp = self._write_http.put_json(
            f"{self.api_base}{LIBRARY.games_path}/{game_id}",
            json_body=payload,
            counter_key="http_put",
            context=str(game_id),
        )
        self._check_auth(resp)
        return self._write_result(resp)

    def format_cache_stats(self) -> str:
        s = self.stats
        return ", ".join(
            HTTPJSONClient.format_timing(s, key=k) for k in ("http_get", "http_post", "http_put")
        )
