"""
Utility functions and helpers.

This module intentionally uses lazy attribute loading to avoid importing heavier
submodules (e.g., pandas, bs4) unless they are needed.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "CacheIOTracker",
    "RateLimiter",
    "RunPaths",
    "build_queries",
    "contains_cjk",
    "load_credentials",
    "load_json_cache",
    "normalize_title",
    "pick_best",
    "score_candidate",
    "similarity",
    "strip_html_to_text",
    "write_json",
    "write_tsv",
]


def __getattr__(name: str) -> Any:  # pragma: no cover
    if name in {
        "CacheIOTracker",
        "RateLimiter",
        "RunPaths",
        "contains_cjk",
        "load_credentials",
        "load_json_cache",
        "normalize_title",
        "similarity",
        "strip_html_to_text",
        "write_json",
        "write_tsv",
    }:
        from . import utilities as _u

        return getattr(_u, name)

    if name == "build_queries":
        from .queries import build_queries

        return build_queries

    if name in {"pick_best", "score_candidate"}:
        from .ranking import pick_best, score_candidate

        return pick_best if name == "pick_best" else score_candidate

    raise AttributeError(name)
