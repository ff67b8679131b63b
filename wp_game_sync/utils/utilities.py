from __future__ import annotations

import atexit
import json
import logging
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import pandas as pd
import yaml
from bs4 import BeautifulSoup
from rapidfuzz.distance import Levenshtein

from ..config import CACHE, MATCHING

# ----------------------------
# Paths / Folder structure
# ----------------------------


@dataclass(frozen=True)
class RunPaths:
    run_dir: Path
    input_dir: Path
    output_dir: Path
    cache_dir: Path
    logs_dir: Path

    @staticmethod
    def from_run_dir(run_dir: str | Path) -> RunPaths:
        root = Path(run_dir).resolve()
        return RunPaths(
            run_dir=root,
            input_dir=root / "input",
            output_dir=root / "output",
            cache_dir=root / "cache",
            logs_dir=root / "logs",
        )

    def ensure(self) -> None:
        self.input_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)


# ----------------------------
# TSV Helpers
# ----------------------------


def write_tsv(rows: list[dict[str, Any]], path: str | Path, *, columns: list[str]) -> None:
    """Write rows as a tab-separated file with a fixed header (even when empty)."""
    # object dtype keeps integer ids from turning into floats next to missing values.
    df = pd.DataFrame(rows, columns=columns, dtype=object).fillna("")
    # Tabs and newlines inside values would break spreadsheet imports.
    df = df.astype(str).replace(r"[\t\r\n]+", " ", regex=True)
    for col in columns:
        df[col] = df[col].str.strip()
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, sep="\t", index=False)


# ----------------------------
# Title normalization
# ----------------------------

_ZERO_WIDTH_RE = re.compile("[\u200b-\u200d\ufeff]")
_QUOTES_BRACKETS_RE = re.compile(r"['’\"“”()（）【】\[\]{}]")
_DOTS_RE = re.compile(r"[·•・]")
_SENTENCE_PUNCT_RE = re.compile(r"[，,。.!?:;：；…]")
_SEPARATORS_RE = re.compile(r"[-_/]+")
_SPACES_RE = re.compile(r"\s+")
_CJK_RE = re.compile("[\u4e00-\u9fff\u3400-\u4dbf\u3040-\u30ff\uac00-\ud7af]")


def _normalize_title_once(s: str) -> str:
    s = s.lower()
    s = _ZERO_WIDTH_RE.sub("", s)
    s = s.replace("&amp;", "&")
    s = _QUOTES_BRACKETS_RE.sub("", s)
    s = _DOTS_RE.sub(" ", s)
    s = _SENTENCE_PUNCT_RE.sub(" ", s)
    s = _SEPARATORS_RE.sub(" ", s)
    s = _SPACES_RE.sub(" ", s)
    return s.strip()


def normalize_title(name: str | None) -> str:
    """
    Canonicalize a free-text title for comparison.

    - lowercase
    - expand `&amp;`
    - drop zero-width characters and quote/bracket punctuation (ASCII and CJK)
    - turn list/sentence punctuation and -/_ runs into single spaces
    - collapse whitespace
    """
    s = str(name or "")
    # Removals can expose a new "&amp;" (e.g. "&a'mp;"), so run to a fixed point.
    while True:
        out = _normalize_title_once(s)
        if out == s:
            return out
        s = out


def contains_cjk(text: str | None) -> bool:
    """True when text has at least one Han, Hiragana/Katakana or Hangul character."""
    return bool(_CJK_RE.search(str(text or "")))


def strip_html_to_text(html: str | None) -> str:
    if not html:
        return ""
    text = BeautifulSoup(html, "html.parser").get_text()
    return _SPACES_RE.sub(" ", text).strip()


# ----------------------------
# Similarity
# ----------------------------


def similarity(a: str | None, b: str | None) -> float:
    """
    Edit-distance similarity between two titles, in [0, 1].

    Both sides are normalized first. Exact equality scores 1.0; when one side is contained in
    the other the score is `MATCHING.substring_score`, which protects short titles that are a
    prefix/infix of a longer official name. Empty input scores 0 (including "" vs "").
    """
    s = normalize_title(a)
    t = normalize_title(b)
    if not s or not t:
        return 0.0
    if s == t:
        return 1.0
    if s in t or t in s:
        return float(MATCHING.substring_score)
    dist = Levenshtein.distance(s, t)
    return max(0.0, 1.0 - dist / max(len(s), len(t)))


# ----------------------------
# JSON Cache (by query)
# ----------------------------


def load_json_cache(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logging.warning(f"[CACHE] Ignoring unreadable cache '{p.name}': {e}")
        return {}
    return raw if isinstance(raw, dict) else {}


def save_json_cache(cache: dict[str, Any], path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(cache, ensure_ascii=False, indent=2), encoding="utf-8")


def write_json(data: Any, path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


# ----------------------------
# Pacing
# ----------------------------


class RateLimiter:
    """
    Fixed pause after every request that reached the network.

    The pause happens after the call (not before the next one) so each record finishes its
    own cool-down before the pipeline moves on.
    """

    def __init__(self, min_interval_s: float = 1.0, sleep: Callable[[float], None] = time.sleep):
        self.min_interval_s = float(min_interval_s)
        self._sleep = sleep

    def pause(self) -> None:
        if self.min_interval_s > 0:
            self._sleep(self.min_interval_s)


@dataclass
class CacheIOTracker:
    """
    Track JSON cache load/save counts and time in milliseconds.
    """

    stats: dict[str, Any]
    prefix: str = "cache"
    min_interval_s: float | None = None

    def __post_init__(self) -> None:
        self.stats.setdefault(f"{self.prefix}_load_count", 0)
        self.stats.setdefault(f"{self.prefix}_load_ms", 0)
        self.stats.setdefault(f"{self.prefix}_save_count", 0)
        self.stats.setdefault(f"{self.prefix}_save_ms", 0)
        self._last_save_s = 0.0
        self._pending: tuple[dict[str, Any], Path] | None = None
        atexit.register(self.flush)

    def load_json(self, path: str | Path) -> dict[str, Any]:
        t0 = time.perf_counter()
        raw = load_json_cache(path)
        t1 = time.perf_counter()
        self.stats[f"{self.prefix}_load_count"] += 1
        self.stats[f"{self.prefix}_load_ms"] += int(round((t1 - t0) * 1000.0))
        return raw

    def save_json(self, cache: dict[str, Any], path: str | Path) -> None:
        # Throttle full-cache rewrites; the pending snapshot is written by flush().
        p = Path(path)
        now = time.monotonic()
        if self.min_interval_s is not None:
            min_interval = float(self.min_interval_s)
        else:
            min_interval = float(CACHE.save_min_interval_s)
        if min_interval > 0 and (now - self._last_save_s) < min_interval:
            self._pending = (cache, p)
            return

        self._save_now(cache, p)

    def flush(self) -> None:
        pending = self._pending
        if pending is None:
            return
        cache, path = pending
        self._pending = None
        self._save_now(cache, path)

    def _save_now(self, cache: dict[str, Any], path: Path) -> None:
        t0 = time.perf_counter()
        save_json_cache(cache, path)
        t1 = time.perf_counter()
        self._last_save_s = time.monotonic()
        dur_ms = int(round((t1 - t0) * 1000.0))
        self.stats[f"{self.prefix}_save_count"] += 1
        self.stats[f"{self.prefix}_save_ms"] += dur_ms

        slow_ms = int(CACHE.slow_save_log_ms)
        if slow_ms > 0 and dur_ms >= slow_ms:
            logging.info(f"[CACHE] Wrote '{path.name}' in {dur_ms}ms")

    @staticmethod
    def format_io(stats: dict[str, Any] | None, *, prefix: str = "cache") -> str:
        if not stats:
            return "cache load_ms=0 saves=0 save_ms=0"
        load_ms = int(stats.get(f"{prefix}_load_ms", 0) or 0)
        save_count = int(stats.get(f"{prefix}_save_count", 0) or 0)
        save_ms = int(stats.get(f"{prefix}_save_ms", 0) or 0)
        return f"{prefix} load_ms={load_ms} saves={save_count} save_ms={save_ms}"


# ----------------------------
# Credentials loading
# ----------------------------


def load_credentials(credentials_path: str | Path | None = None) -> dict[str, Any]:
    """
    Load backend credentials from a YAML file, with environment overrides.

    Expected shape:

        library:
          api_base: https://example.org
          token: "..."

    `ML_API_TOKEN` (or `API_TOKEN`) and `ML_API_BASE` take precedence over the file. A missing
    file is fine as long as the token comes from the environment.
    """
    if credentials_path is None:
        root = Path(__file__).resolve().parent.parent.parent
        credentials_path = root / "data" / "credentials.yaml"
    else:
        credentials_path = Path(credentials_path)

    creds: dict[str, Any] = {}
    if credentials_path.exists():
        with open(credentials_path, encoding="utf-8") as f:
            creds = yaml.safe_load(f) or {}

    library = dict(creds.get("library", {}) or {})
    token = os.environ.get("ML_API_TOKEN") or os.environ.get("API_TOKEN")
    if token:
        library["token"] = token
    api_base = os.environ.get("ML_API_BASE")
    if api_base:
        library["api_base"] = api_base
    creds["library"] = library

    if not str(library.get("token", "") or "").strip():
        raise FileNotFoundError(
            f"No API token found in {credentials_path} (library.token) or in ML_API_TOKEN/API_TOKEN.\n"
            "Please create data/credentials.yaml or export a token."
        )
    return creds
