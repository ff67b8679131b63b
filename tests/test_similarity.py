from __future__ import annotations

import pytest


def test_similarity_identity_and_empty() -> None:
    from wp_game_sync.utils import similarity

    assert similarity("Doom", "Doom") == 1.0
    assert similarity("Halo: Reach", "halo reach") == 1.0
    assert similarity("", "") == 0.0
    assert similarity("Doom", "") == 0.0
    assert similarity(None, "Doom") == 0.0
    # Punctuation-only titles normalize to empty.
    assert similarity("!!!", "...") == 0.0


def test_similarity_substring_rule() -> None:
    from wp_game_sync.config import MATCHING
    from wp_game_sync.utils import similarity

    assert similarity("Hades", "Hades II") == MATCHING.substring_score
    assert similarity("Portal 2: Peer Review", "portal 2") == MATCHING.substring_score


def test_similarity_uses_edit_distance_over_longer_length() -> None:
    from wp_game_sync.utils import similarity

    # kitten -> sitting: 3 edits over 7 chars
    assert similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)
    assert similarity("abc", "xyz") == 0.0


@pytest.mark.parametrize(
    "a,b",
    [
        ("The Witcher 3", "Witcher 3: Wild Hunt"),
        ("Stardew Valley", "Stardew"),
        ("超級瑪利歐兄弟", "Super Mario Bros."),
        ("Celeste", "Celestia"),
    ],
)
def test_similarity_is_symmetric_and_bounded(a: str, b: str) -> None:
    from wp_game_sync.utils import similarity

    s = similarity(a, b)
    assert s == similarity(b, a)
    assert 0.0 <= s <= 1.0
