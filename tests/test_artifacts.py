from __future__ import annotations

import json
from pathlib import Path

import pandas as pd


def test_find_latest_import_results_picks_newest(tmp_path: Path) -> None:
    from wp_game_sync.pipelines.artifacts import find_latest_import_results

    assert find_latest_import_results(tmp_path / "missing") is None
    for name in (
        "igdb_wp_game_import_1700000000000.results.json",
        "igdb_wp_game_import_1710000000000.results.json",
        "igdb_wp_game_import_1710000000000.unmatched.json",
        "wp_game_sync_1720000000000.results.json",
    ):
        (tmp_path / name).write_text("[]", encoding="utf-8")
    got = find_latest_import_results(tmp_path)
    assert got is not None
    assert got.name == "igdb_wp_game_import_1710000000000.results.json"


def test_load_import_mapping_accepts_both_key_styles(tmp_path: Path) -> None:
    from wp_game_sync.pipelines.artifacts import load_import_mapping

    p = tmp_path / "igdb_wp_game_import_1.results.json"
    p.write_text(
        json.dumps(
            [
                {"wp_title": "空洞骑士", "wp_link": "https://blog.example.com/hk/", "igdb_id": 14593},
                {"wpTitle": "蔚蓝", "igdb_id": 26226},
                {"wp_title": "未匹配", "igdb_id": None},
            ],
            ensure_ascii=False,
        ),
        encoding="utf-8",
    )
    mapping = load_import_mapping(p)
    assert mapping == {
        "空洞骑士": "14593",
        "https://blog.example.com/hk/": "14593",
        "蔚蓝": "26226",
    }

    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")
    assert load_import_mapping(broken) == {}
    assert load_import_mapping(None) == {}


def test_write_sync_artifacts_tsv_columns(tmp_path: Path) -> None:
    from wp_game_sync.pipelines.artifacts import write_sync_artifacts

    actions = [
        {"action": "update", "id": 5, "rawg_id": None, "wpTitle": "A\tB", "wpLink": "x", "ok": True},
        {"action": "update", "id": 6, "rawg_id": 1, "wpTitle": "fail", "wpLink": "", "ok": False},
        {"action": "create_placeholder", "rawg_id": 900000007, "wpTitle": "C\nD", "wpLink": "", "ok": True},
        {"action": "skip", "wpTitle": "E", "wpLink": "", "ok": False, "reason": "not_found_no_placeholders"},
    ]
    out = write_sync_artifacts(tmp_path, actions, stamp=123)

    assert out.results_json.name == "wp_game_sync_123.results.json"
    assert json.loads(out.results_json.read_text(encoding="utf-8")) == actions

    updated = pd.read_csv(out.updated_tsv, sep="\t", dtype=str, keep_default_na=False)
    assert list(updated.columns) == ["action", "id", "rawg_id", "wpTitle", "wpLink"]
    assert updated.to_dict("records") == [
        {"action": "update", "id": "5", "rawg_id": "", "wpTitle": "A B", "wpLink": "x"}
    ]

    placeholders = pd.read_csv(out.placeholders_tsv, sep="\t", dtype=str, keep_default_na=False)
    assert list(placeholders.columns) == ["placeholder_rawg_id", "wpTitle", "wpLink"]
    assert placeholders.to_dict("records") == [
        {"placeholder_rawg_id": "900000007", "wpTitle": "C D", "wpLink": ""}
    ]


def test_write_tsv_empty_rows_keeps_header(tmp_path: Path) -> None:
    from wp_game_sync.utils import write_tsv

    p = tmp_path / "empty.tsv"
    write_tsv([], p, columns=["a", "b"])
    assert p.read_text(encoding="utf-8").splitlines() == ["a\tb"]
