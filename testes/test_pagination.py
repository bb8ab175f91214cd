import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from models.content_blocks import CutBlock, TextBlock
from src.parsers.block_schema import text_block
from src.parsers.pagination import DEFAULT_BUTTON_TEXT, CutPolicy, insert_cut, join_with_cut, paginate


def _texts(n, prefix="t"):
    return [text_block(f"{prefix}{i}") for i in range(n)]


def _types(blocks):
    return [type(b) for b in blocks]


def test_cut_after_threshold_on_long_posts():
    blocks = insert_cut(_texts(5), threshold=2, min_total=3)
    assert _types(blocks) == [TextBlock, TextBlock, TextBlock, CutBlock, TextBlock, TextBlock]
    assert [b.position for b in blocks] == list(range(6))
    assert blocks[3].data.button_text == DEFAULT_BUTTON_TEXT


def test_short_posts_get_no_cut():
    blocks = insert_cut(_texts(3), threshold=2, min_total=3)
    assert CutBlock not in _types(blocks)


def test_threshold_at_the_end_appends_the_cut():
    blocks = insert_cut(_texts(4), threshold=3, min_total=3)
    assert _types(blocks) == [TextBlock, TextBlock, TextBlock, TextBlock, CutBlock]
    blocks = insert_cut(_texts(4), threshold=10, min_total=0)
    assert isinstance(blocks[-1], CutBlock)
    assert [b.position for b in blocks] == [0, 1, 2, 3, 4]


def test_insert_cut_keeps_input_list_but_renumbers_shared_blocks():
    original = _texts(5)
    result = insert_cut(original, threshold=0, min_total=0)
    assert len(original) == 5
    assert result[2] is original[1]
    assert original[1].position == 2


def test_join_with_cut_separates_primary_and_secondary():
    blocks = join_with_cut(_texts(2, "a"), _texts(1, "b"), button_text="More")
    assert _types(blocks) == [TextBlock, TextBlock, CutBlock, TextBlock]
    assert blocks[2].data.button_text == "More"
    assert [b.position for b in blocks] == [0, 1, 2, 3]


def test_join_with_empty_secondary_adds_nothing():
    blocks = join_with_cut(_texts(2), [])
    assert _types(blocks) == [TextBlock, TextBlock]


def test_paginate_prefers_secondary_over_threshold():
    blocks = paginate(_texts(6, "a"), _texts(2, "b"), CutPolicy(threshold=1, min_total=2))
    cuts = [i for i, b in enumerate(blocks) if isinstance(b, CutBlock)]
    assert cuts == [6]


def test_paginate_with_empty_secondary_adds_no_cut():
    blocks = paginate(_texts(6), [], CutPolicy())
    assert CutBlock not in _types(blocks)


def test_paginate_without_secondary_uses_threshold():
    blocks = paginate(_texts(6), None, CutPolicy(threshold=2, min_total=3))
    assert isinstance(blocks[3], CutBlock)


def test_policy_rejects_negative_values():
    with pytest.raises(ValueError):
        CutPolicy(threshold=-1)
    with pytest.raises(ValueError):
        CutPolicy(min_total=-1)
