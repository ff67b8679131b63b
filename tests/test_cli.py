from __future__ import annotations

from pathlib import Path

import pytest


def test_main_without_command_exits() -> None:
    from wp_game_sync.cli import main

    with pytest.raises(SystemExit):
        main([])


def test_import_flags_parse() -> None:
    from wp_game_sync.cli import build_parser

    ns = build_parser().parse_args(
        [
            "import",
            "--input",
            "posts.json",
            "--no-translate",
            "--min-score",
            "0.9",
            "--sleep-ms",
            "500",
            "--start",
            "3",
            "--limit",
            "10",
            "--dry-run",
        ]
    )
    assert ns.command == "import"
    assert ns.input == Path("posts.json")
    assert ns.translate is False
    assert ns.min_score == 0.9
    assert ns.sleep_ms == 500
    assert ns.start == 3
    assert ns.limit == 10
    assert ns.dry_run is True
    assert ns.search_limit == 10


def test_sync_flags_parse() -> None:
    from wp_game_sync.cli import build_parser

    ns = build_parser().parse_args(["sync", "--no-placeholders", "--mapping", "m.json"])
    assert ns.command == "sync"
    assert ns.placeholders is False
    assert ns.mapping == Path("m.json")
    assert ns.sleep_ms == 150


def test_default_log_file_is_unique(tmp_path: Path) -> None:
    from wp_game_sync.cli import _default_log_file

    first = _default_log_file(command_name="import", logs_dir=tmp_path)
    assert first.name.startswith("log-") and first.name.endswith("-import.log")
    first.write_text("", encoding="utf-8")
    second = _default_log_file(command_name="import", logs_dir=tmp_path)
    assert second != first


def test_import_command_wires_run_dir_and_settings(tmp_path: Path, monkeypatch) -> None:
    import wp_game_sync.cli as cli

    captured = {}

    def fake_run_import(ctx, **kwargs):
        captured["ctx"] = ctx
        captured.update(kwargs)

    monkeypatch.setattr(cli, "setup_logging", lambda log_file: None)
    monkeypatch.setattr(cli, "run_import", fake_run_import)

    cli.main(["import", "--run-dir", str(tmp_path), "--sleep-ms", "100", "--dry-run"])

    root = tmp_path.resolve()
    assert captured["input_json"] == root / "input" / "game_reviews_full.json"
    assert captured["overrides_path"] == root / "input" / "game_title_overrides.json"
    assert captured["overrides_required"] is False
    assert captured["output_dir"] == root / "output"
    assert captured["settings"].dry_run is True
    ctx = captured["ctx"]
    assert ctx.cache_dir == root / "cache"
    assert ctx.catalog_sleep_s == pytest.approx(0.1)
    # Translation pacing never drops below its floor.
    assert ctx.translate_sleep_s == pytest.approx(0.2)


def test_input_errors_become_system_exit(tmp_path: Path, monkeypatch) -> None:
    import wp_game_sync.cli as cli
    from wp_game_sync.pipelines.inputs import InputDataError

    def boom(ctx, **kwargs):
        raise InputDataError("Input is not an array")

    monkeypatch.setattr(cli, "setup_logging", lambda log_file: None)
    monkeypatch.setattr(cli, "run_sync", boom)

    with pytest.raises(SystemExit) as ei:
        cli.main(["sync", "--run-dir", str(tmp_path)])
    assert "not an array" in str(ei.value)
