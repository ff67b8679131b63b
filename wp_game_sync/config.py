from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestConfig:
    timeout_s: int = 20


@dataclass(frozen=True)
class CacheConfig:
    # Minimum time between JSON cache rewrites (throttled writes).
    # A final flush is attempted at process exit.
    save_min_interval_s: float = 10.0
    # Log cache writes that take longer than this threshold (milliseconds).
    slow_save_log_ms: int = 2000


@dataclass(frozen=True)
class CatalogConfig:
    api_base: str = "https://pyqapi.3331322.xyz"
    search_path: str = "/api/search/igdb"
    search_limit: int = 10
    # Fixed pause after every search request that actually hits the network.
    sleep_s: float = 0.25


@dataclass(frozen=True)
class TranslateConfig:
    endpoint: str = "https://translate.googleapis.com/translate_a/single"
    source_lang: str = "auto"
    target_lang: str = "en"
    min_sleep_s: float = 0.2
    sleep_s: float = 0.25


@dataclass(frozen=True)
class LibraryConfig:
    games_path: str = "/api/library/games"
    status_path: str = "/api/integrations/status"
    page_size: int = 100
    max_pages: int = 200
    sync_max_pages: int = 500
    # The backend stores the catalog id in a legacy column name.
    catalog_id_field: str = "rawg_id"
    # Placeholder ids live far above real catalog ids.
    placeholder_id_offset: int = 900_000_000
    sleep_s: float = 0.25
    sync_sleep_s: float = 0.15
    review_max_chars: int = 8000


@dataclass(frozen=True)
class MatchingConfig:
    min_score: float = 0.86
    substring_score: float = 0.92
    keyword_penalty: float = 0.12
    mobile_only_penalty: float = 0.12
    major_platform_bonus: float = 0.03
    major_platform_bonus_max: float = 0.12
    exact_bonus: float = 0.15
    # Number of candidates kept per query in the unmatched log.
    review_top_n: int = 5


@dataclass(frozen=True)
class CLIConfig:
    progress_every_n: int = 25
    progress_min_interval_s: float = 30.0


REQUEST = RequestConfig()
CACHE = CacheConfig()
CATALOG = CatalogConfig()
TRANSLATE = TranslateConfig()
LIBRARY = LibraryConfig()
MATCHING = MatchingConfig()
CLI = CLIConfig()
