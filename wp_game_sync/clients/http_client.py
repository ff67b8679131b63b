from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import requests

from ..config import REQUEST
from ..utils.utilities import RateLimiter


class HTTPStatusError(RuntimeError):
    """A non-success HTTP response, with enough context to diagnose it."""

    def __init__(self, message: str, *, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class UnauthorizedError(HTTPStatusError):
    """The backend rejected our credentials; nothing else in the run can succeed."""


@dataclass(frozen=True)
class JSONResponse:
    status: int
    data: Any
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def error_message(self) -> str:
        """Best-effort error text from a JSON error envelope, else the raw body."""
        if isinstance(self.data, dict):
            for key in ("error", "message"):
                msg = self.data.get(key)
                if isinstance(msg, str) and msg.strip():
                    return msg.strip()
        return self.text.strip() or f"HTTP {self.status}"


@dataclass
class HTTPJSONClient:
    """
    Small helper to standardize request + stats counting.

    Provider clients pass in their own `requests.Session` and `stats` dict. Responses are
    returned whatever their status; callers decide what a failure means for them.
    """

    session: requests.Session
    stats: dict[str, Any] | None = None

    def _bump(self, key: str) -> None:
        if self.stats is None:
            return
        self.stats[key] = int(self.stats.get(key, 0) or 0) + 1

    def _bump_ms(self, key: str, elapsed_ms: int) -> None:
        if self.stats is None:
            return
        ms_key = f"{key}_ms"
        self.stats[ms_key] = int(self.stats.get(ms_key, 0) or 0) + int(elapsed_ms)

    @staticmethod
    def format_timing(stats: dict[str, Any] | None, *, key: str) -> str:
        """
        Format request counter and cumulative time for a key tracked via `_bump()`.
        """
        if not stats:
            return f"{key}=0"
        return f"{key}={int(stats.get(key, 0) or 0)} {key}_ms={int(stats.get(f'{key}_ms', 0) or 0)}"

    def request_json(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: Any | None = None,
        timeout_s: float = REQUEST.timeout_s,
        counter_key: str = "http",
        context: str = "",
    ) -> JSONResponse:
        self._bump(counter_key)
        kwargs: dict[str, Any] = {"timeout": timeout_s}
        if params is not None:
            kwargs["params"] = params
        if headers is not None:
            kwargs["headers"] = headers
        if json_body is not None:
            kwargs["json"] = json_body
        t0 = time.perf_counter()
        r = getattr(self.session, method.lower())(url, **kwargs)
        t1 = time.perf_counter()
        self._bump_ms(counter_key, int(round((t1 - t0) * 1000.0)))

        text = r.text or ""
        try:
            data = r.json() if text.strip() else None
        except ValueError:
            data = None
        if not 200 <= r.status_code < 300:
            logging.debug(f"[HTTP] {context or url}: {r.status_code}")
        return JSONResponse(status=int(r.status_code), data=data, text=text)


@dataclass
class HTTPRequestDefaults:
    ratelimiter: RateLimiter | None = None
    timeout_s: float = REQUEST.timeout_s
    headers: dict[str, str] | None = None
    counter_key: str = "http_get"
    context_prefix: str | None = None


@dataclass
class ConfiguredHTTPJSONClient:
    """
    Convenience wrapper over HTTPJSONClient that carries default parameters.

    The rate limiter pause runs after every request that reached the network, including
    ones that raised.
    """

    http: HTTPJSONClient
    defaults: HTTPRequestDefaults

    def _ctx(self, context: str) -> str:
        prefix = self.defaults.context_prefix
        if prefix:
            return f"{prefix}{': ' if context else ''}{context}"
        return context

    def _send(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None,
        headers: dict[str, str] | None,
        json_body: Any | None,
        counter_key: str | None,
        context: str,
    ) -> JSONResponse:
        try:
            return self.http.request_json(
                method,
                url,
                params=params,
                headers=self.defaults.headers if headers is None else headers,
                json_body=json_body,
                timeout_s=self.defaults.timeout_s,
                counter_key=counter_key or self.defaults.counter_key,
                context=self._ctx(context),
            )
        finally:
            if self.defaults.ratelimiter is not None:
                self.defaults.ratelimiter.pause()

    def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        counter_key: str | None = None,
        context: str = "",
    ) -> JSONResponse:
        return self._send(
            "GET",
            url,
            params=params,
            headers=headers,
            json_body=None,
            counter_key=counter_key,
            context=context,
        )

    def post_json(
        self,
        url: str,
        *,
        json_body: Any | None = None,
        headers: dict[str, str] | None = None,
        counter_key: str | None = None,
        context: str = "",
    ) -> JSONResponse:
        return self._send(
            "POST",
            url,
            params=None,
            headers=headers,
            json_body=json_body,
            counter_key=counter_key,
            context=context,
        )

    def put_json(
        self,
        url: str,
        *,
        json_body: Any | None = None,
        headers: dict[str, str] | None = None,
        counter_key: str | None = None,
        context: str = "",
    ) -> JSONResponse:
        return self._send(
            "PUT",
            url,
            params=None,
            headers=headers,
            json_body=json_body,
            counter_key=counter_key,
            context=context,
        )
