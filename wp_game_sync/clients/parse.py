from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any


def as_str(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def as_int(value: object) -> int | None:
    """
    Strict numeric conversion.

    - Accepts: int, integral float
    - Rejects: bool, strings (even if numeric)
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    return None


def as_float(value: object) -> float | None:
    """
    Strict numeric conversion.

    - Accepts: int, float
    - Rejects: bool, strings (even if numeric)
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def parse_int_text(value: object) -> int | None:
    """
    Parse an integer id that may arrive as a number or as digit text (e.g. "1234").
    """
    if isinstance(value, str):
        s = value.strip()
        return int(s) if s.isdigit() else None
    return as_int(value)


def iso_date_from_epoch_seconds(value: object) -> str | None:
    """
    Convert a unix epoch timestamp in seconds to YYYY-MM-DD (UTC).
    """
    ts = as_int(value)
    if ts is None:
        return None
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc).date().isoformat()
    except (OverflowError, OSError, ValueError):
        return None


def get_list_of_dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


def names_list(value: Any) -> tuple[str, ...]:
    """`[{name: ...}, ...]` -> de-duped tuple of non-empty names, order preserved."""
    out: list[str] = []
    for it in get_list_of_dicts(value):
        s = as_str(it.get("name"))
        if s and s not in out:
            out.append(s)
    return tuple(out)


def decode_json_text(value: Any) -> Any:
    """
    Decode a payload that some proxies deliver as a JSON document inside a JSON string.

    Returns the value unchanged when it is not a string, and None when the string is not JSON.
    """
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return None


def unwrap_data_envelope(payload: Any) -> Any:
    """
    Backend responses come as `{success, data}`, `{data}` or bare; return the inner data.
    """
    if isinstance(payload, dict) and "data" in payload:
        return payload.get("data")
    return payload
