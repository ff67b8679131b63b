from __future__ import annotations

from pathlib import Path

import pytest


def test_load_credentials_reads_yaml(tmp_path: Path, monkeypatch) -> None:
    from wp_game_sync.utils import load_credentials

    monkeypatch.delenv("ML_API_TOKEN", raising=False)
    monkeypatch.delenv("API_TOKEN", raising=False)
    monkeypatch.delenv("ML_API_BASE", raising=False)
    p = tmp_path / "credentials.yaml"
    p.write_text("library:\n  api_base: https://api.example.com\n  token: abc\n", encoding="utf-8")

    creds = load_credentials(p)
    assert creds["library"] == {"api_base": "https://api.example.com", "token": "abc"}


def test_environment_overrides_file(tmp_path: Path, monkeypatch) -> None:
    from wp_game_sync.utils import load_credentials

    monkeypatch.delenv("ML_API_TOKEN", raising=False)
    monkeypatch.setenv("API_TOKEN", "from-env")
    monkeypatch.setenv("ML_API_BASE", "https://other.example.com")
    p = tmp_path / "credentials.yaml"
    p.write_text("library:\n  token: abc\n", encoding="utf-8")

    creds = load_credentials(p)
    assert creds["library"]["token"] == "from-env"
    assert creds["library"]["api_base"] == "https://other.example.com"


def test_missing_token_raises(tmp_path: Path, monkeypatch) -> None:
    from wp_game_sync.utils import load_credentials

    monkeypatch.delenv("ML_API_TOKEN", raising=False)
    monkeypatch.delenv("API_TOKEN", raising=False)
    with pytest.raises(FileNotFoundError):
        load_credentials(tmp_path / "credentials.yaml")
