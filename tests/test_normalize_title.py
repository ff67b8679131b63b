from __future__ import annotations


def test_normalize_title_lowercases_and_strips_punctuation() -> None:
    from wp_game_sync.utils import normalize_title

    assert normalize_title("Halo: Combat Evolved") == "halo combat evolved"
    assert normalize_title("  Tom Clancy's   Rainbow Six ") == "tom clancys rainbow six"
    assert normalize_title("Ratchet &amp; Clank") == "ratchet & clank"
    assert normalize_title("Half-Life_2 / Episode One") == "half life 2 episode one"
    assert normalize_title(None) == ""


def test_normalize_title_handles_cjk_punctuation() -> None:
    from wp_game_sync.utils import normalize_title

    assert normalize_title("【塞尔达传说】：旷野之息") == "塞尔达传说 旷野之息"
    assert normalize_title("仙剑·奇侠传") == "仙剑 奇侠传"
    assert normalize_title("最终幻想\u200b7") == "最终幻想7"


def test_normalize_title_is_idempotent() -> None:
    from wp_game_sync.utils import normalize_title

    samples = [
        "Halo: Combat Evolved",
        "&a'mp;amp; Co.",
        "S.T.A.L.K.E.R.: Shadow of Chernobyl",
        "【塞尔达传说】：旷野之息",
        "  --Doom--  (2016) ",
        "",
    ]
    for s in samples:
        once = normalize_title(s)
        assert normalize_title(once) == once


def test_contains_cjk_detects_han_kana_and_hangul() -> None:
    from wp_game_sync.utils import contains_cjk

    assert contains_cjk("超級瑪利歐兄弟")
    assert contains_cjk("ゼルダの伝説")
    assert contains_cjk("스타크래프트")
    assert not contains_cjk("Super Mario Bros.")
    assert not contains_cjk(None)


def test_strip_html_to_text_collapses_whitespace() -> None:
    from wp_game_sync.utils import strip_html_to_text

    html = "<p>Great   game.</p>\n<p>Would <b>play</b> again&nbsp;!</p>"
    assert strip_html_to_text(html) == "Great game. Would play again !"
    assert strip_html_to_text("") == ""
    assert strip_html_to_text(None) == ""
