from __future__ import annotations

import json

import requests


class FakeResp:
    def __init__(self, status_code: int, text: str):
        self.status_code = status_code
        self.text = text

    def json(self):
        return json.loads(self.text)


GOOGLE_PAYLOAD = [
    [["Super Mario ", "超級瑪利歐", None, None], ["Bros.", "兄弟", None, None]],
    None,
    "zh-TW",
]


def test_parse_translation_joins_segments() -> None:
    from wp_game_sync.clients.translate_client import parse_translation

    assert parse_translation(GOOGLE_PAYLOAD) == "Super Mario Bros."
    # Some proxies deliver the same document as a JSON string.
    assert parse_translation(json.dumps(GOOGLE_PAYLOAD)) == "Super Mario Bros."
    assert parse_translation({"translated": "x"}) is None
    assert parse_translation([]) is None
    assert parse_translation([[["", "src"]]]) is None
    assert parse_translation("not json") is None


def test_translate_caches_and_pauses_only_on_fetch(monkeypatch):
    from wp_game_sync.clients.translate_client import TranslateClient

    calls = []

    def fake_get(_self, url, **kwargs):
        calls.append(kwargs["params"])
        return FakeResp(200, json.dumps(GOOGLE_PAYLOAD))

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)
    sleeps: list[float] = []
    client = TranslateClient(
        endpoint="https://translate.example.com/t", min_interval_s=0.3, sleep=sleeps.append
    )

    assert client.translate("超級瑪利歐兄弟") == "Super Mario Bros."
    assert client.translate("超級瑪利歐兄弟") == "Super Mario Bros."
    assert len(calls) == 1
    assert calls[0]["client"] == "gtx"
    assert calls[0]["sl"] == "auto"
    assert calls[0]["tl"] == "en"
    assert calls[0]["dt"] == "t"
    assert calls[0]["q"] == "超級瑪利歐兄弟"
    assert sleeps == [0.3]
    assert client.stats["hit"] == 1


def test_translate_stringified_body(monkeypatch):
    from wp_game_sync.clients.translate_client import TranslateClient

    body = json.dumps(json.dumps(GOOGLE_PAYLOAD))
    monkeypatch.setattr("requests.sessions.Session.get", lambda _self, url, **kw: FakeResp(200, body))
    client = TranslateClient(min_interval_s=0.0)
    assert client.translate("超級瑪利歐兄弟") == "Super Mario Bros."


def test_translate_failures_return_none_and_are_cached(monkeypatch):
    from wp_game_sync.clients.translate_client import TranslateClient

    calls = {"get": 0}

    def fake_get(_self, url, **kwargs):
        calls["get"] += 1
        raise requests.ConnectionError("offline")

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)
    sleeps: list[float] = []
    client = TranslateClient(min_interval_s=0.2, sleep=sleeps.append)

    assert client.translate("仙剑奇侠传") is None
    assert client.translate("仙剑奇侠传") is None
    assert calls["get"] == 1
    # The pause still follows a request that raised.
    assert sleeps == [0.2]
    assert client.stats["failed"] == 1


def test_translate_http_error_returns_none(monkeypatch):
    from wp_game_sync.clients.translate_client import TranslateClient

    monkeypatch.setattr(
        "requests.sessions.Session.get", lambda _self, url, **kw: FakeResp(429, "slow down")
    )
    client = TranslateClient(min_interval_s=0.0)
    assert client.translate("仙剑奇侠传") is None
