from __future__ import annotations

import json

import pytest


class FakeResp:
    def __init__(self, status_code: int, payload=None, text: str | None = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ("" if payload is None else json.dumps(payload))

    def json(self):
        return json.loads(self.text)


SEARCH_HITS = [
    {
        "id": 1074,
        "name": "Super Mario 64",
        "first_release_date": 835488000,
        "platforms": [{"name": "Nintendo 64"}, {"name": "Wii"}],
        "total_rating": 92.4,
        "cover": {"image_id": "co2pfs"},
        "screenshots": [{"image_id": "sc1"}, {"image_id": "sc2"}],
        "genres": [{"name": "Platform"}],
        "involved_companies": [
            {"company": {"name": "Nintendo EAD"}, "developer": True, "publisher": False},
            {"company": {"name": "Nintendo"}, "developer": False, "publisher": True},
        ],
    },
    {"name": "no id here"},
    "not a dict",
]


def test_search_parses_envelope_and_caches_by_query(tmp_path, monkeypatch):
    from wp_game_sync.clients.catalog_client import CatalogClient

    calls = []

    def fake_get(_self, url, **kwargs):
        calls.append((url, kwargs))
        return FakeResp(200, {"success": True, "data": SEARCH_HITS})

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)
    sleeps: list[float] = []

    client = CatalogClient("https://api.example.com/", "tok", min_interval_s=0.25, sleep=sleeps.append)
    first = client.search("Super Mario 64")
    second = client.search("Super Mario 64")

    assert len(calls) == 1
    url, kwargs = calls[0]
    assert url == "https://api.example.com/api/search/igdb"
    assert kwargs["params"] == {"query": "Super Mario 64", "limit": 10}
    assert kwargs["headers"]["Authorization"] == "Bearer tok"
    # Only the network call is followed by a pause.
    assert sleeps == [0.25]

    assert first == second
    assert len(first) == 1
    c = first[0]
    assert c.id == 1074
    assert c.platforms == ("Nintendo 64", "Wii")
    assert c.cover_image_id == "co2pfs"
    assert c.screenshot_image_ids == ("sc1", "sc2")
    assert c.developers == ("Nintendo EAD",)
    assert c.publishers == ("Nintendo",)
    assert c.rating_100 == pytest.approx(92.4)
    assert client.stats["by_query_hit"] == 1
    assert client.stats["by_query_fetch"] == 1


def test_search_persists_cache_file(tmp_path, monkeypatch):
    from wp_game_sync.clients.catalog_client import CatalogClient

    calls = {"get": 0}

    def fake_get(_self, url, **kwargs):
        calls["get"] += 1
        return FakeResp(200, [])

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)
    cache_path = tmp_path / "igdb_search_cache.json"

    client = CatalogClient("https://api.example.com", "tok", cache_path=cache_path, min_interval_s=0.0)
    assert client.search("Unknown Game") == []
    client.flush_cache()
    assert client.stats["by_query_negative_fetch"] == 1

    again = CatalogClient("https://api.example.com", "tok", cache_path=cache_path, min_interval_s=0.0)
    assert again.search("Unknown Game") == []
    assert calls["get"] == 1


def test_search_blank_query_skips_network(monkeypatch):
    from wp_game_sync.clients.catalog_client import CatalogClient

    def fake_get(_self, url, **kwargs):
        raise AssertionError("no request expected")

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)
    client = CatalogClient("https://api.example.com", "tok", min_interval_s=0.0)
    assert client.search("   ") == []


def test_search_401_raises_unauthorized(monkeypatch):
    from wp_game_sync.clients import UnauthorizedError
    from wp_game_sync.clients.catalog_client import CatalogClient

    monkeypatch.setattr(
        "requests.sessions.Session.get",
        lambda _self, url, **kwargs: FakeResp(401, {"error": "bad token"}),
    )
    client = CatalogClient("https://api.example.com", "tok", min_interval_s=0.0)
    with pytest.raises(UnauthorizedError):
        client.search("Doom")


def test_search_error_status_raises_with_body(monkeypatch):
    from wp_game_sync.clients import CatalogSearchError
    from wp_game_sync.clients.catalog_client import CatalogClient

    monkeypatch.setattr(
        "requests.sessions.Session.get",
        lambda _self, url, **kwargs: FakeResp(502, text="upstream timeout"),
    )
    client = CatalogClient("https://api.example.com", "tok", min_interval_s=0.0)
    with pytest.raises(CatalogSearchError) as ei:
        client.search("Doom")
    assert ei.value.status == 502
    assert ei.value.body == "upstream timeout"
    assert "HTTP 502" in str(ei.value)


def test_unexpected_payload_shape_is_treated_as_no_results(monkeypatch):
    from wp_game_sync.clients.catalog_client import CatalogClient

    monkeypatch.setattr(
        "requests.sessions.Session.get",
        lambda _self, url, **kwargs: FakeResp(200, {"items": "nope"}),
    )
    client = CatalogClient("https://api.example.com", "tok", min_interval_s=0.0)
    assert client.search("Doom") == []
