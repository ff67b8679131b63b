from __future__ import annotations

import logging
import re
import time
from typing import Any, Callable

import requests

from ..config import TRANSLATE
from ..utils.utilities import RateLimiter
from .http_client import ConfiguredHTTPJSONClient, HTTPJSONClient, HTTPRequestDefaults
from .parse import decode_json_text


def parse_translation(payload: Any) -> str | None:
    """
    Extract the translated text from a Google-style payload:

        [[["translated chunk", "original chunk", ...], ...], ...]

    Some proxies wrap that document in a JSON string; it is decoded once more. Anything else
    yields None.
    """
    payload = decode_json_text(payload)
    if not isinstance(payload, list) or not payload or not isinstance(payload[0], list):
        return None
    chunks: list[str] = []
    for seg in payload[0]:
        if isinstance(seg, list) and seg and isinstance(seg[0], str) and seg[0]:
            chunks.append(seg[0])
    out = re.sub(r"\s+", " ", "".join(chunks)).strip()
    return out or None


class TranslateClient:
    """
    Best-effort machine translation of post titles into English search terms.

    Failures never raise: the caller simply searches without a translation. Results
    (including failures) are cached per source text, and every network call is followed by
    the configured pause.
    """

    def __init__(
        self,
        endpoint: str = TRANSLATE.endpoint,
        min_interval_s: float = TRANSLATE.sleep_s,
        source_lang: str = TRANSLATE.source_lang,
        target_lang: str = TRANSLATE.target_lang,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session = requests.Session()
        self.endpoint = endpoint
        self.source_lang = source_lang
        self.target_lang = target_lang
        self.stats: dict[str, int] = {"hit": 0, "fetch": 0, "failed": 0, "http_translate": 0}
        self._cache: dict[str, str | None] = {}
        self.ratelimiter = RateLimiter(min_interval_s=min_interval_s, sleep=sleep)
        self._http = ConfiguredHTTPJSONClient(
            HTTPJSONClient(self._session, stats=self.stats),
            HTTPRequestDefaults(
                ratelimiter=self.ratelimiter,
                counter_key="http_translate",
                context_prefix="Translate",
            ),
        )

    def translate(self, text: str) -> str | None:
        if text in self._cache:
            self.stats["hit"] += 1
            return self._cache[text]

        result = self._fetch(text)
        self._cache[text] = result
        self.stats["fetch"] += 1
        if result is None:
            self.stats["failed"] += 1
        return result

    def _fetch(self, text: str) -> str | None:
        params = {
            "client": "gtx",
            "sl": self.source_lang,
            "tl": self.target_lang,
            "dt": "t",
            "q": text,
        }
        try:
            resp = self._http.get_json(self.endpoint, params=params, context=text)
        except requests.RequestException as e:
            logging.warning(f"[TRANSLATE] '{text}': {type(e).__name__}: {e}")
            return None
        if not resp.ok:
            logging.warning(f"[TRANSLATE] '{text}': HTTP {resp.status}")
            return None
        # A body that isn't valid JSON may still be a quoted JSON document.
        out = parse_translation(resp.data if resp.data is not None else resp.text)
        if out is None:
            logging.warning(f"[TRANSLATE] '{text}': unrecognized payload")
        else:
            logging.debug(f"[TRANSLATE] '{text}' -> '{out}'")
        return out

    def format_cache_stats(self) -> str:
        s = self.stats
        return (
            f"hit={s['hit']} fetch={s['fetch']} failed={s['failed']} "
            f"{HTTPJSONClient.format_timing(s, key='http_translate')}"
        )
