"""
Placement of "read more" cut blocks in a post's block list.

Two mutually exclusive policies exist:

* an entity with an explicit second text field gets exactly one cut between
  the blocks of its first and second text (:func:`join_with_cut`);
* otherwise a cut is placed after a fixed block index once the post is
  long enough (:func:`insert_cut`).

:func:`paginate` picks the right one.  All functions return new lists
numbered from zero.  The input sequences are not modified, but the blocks
themselves are shared, so their ``position`` is rewritten in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from models.content_blocks import ContentBlock
from .block_schema import assign_positions, cut_block

DEFAULT_BUTTON_TEXT = "Читать дальше"


@dataclass(frozen=True)
class CutPolicy:
    threshold: int = 2
    min_total: int = 3
    button_text: str = DEFAULT_BUTTON_TEXT

    def __post_init__(self) -> None:
        if self.threshold < 0:
            raise ValueError("threshold must be >= 0")
        if self.min_total < 0:
            raise ValueError("min_total must be >= 0")


def insert_cut(
    blocks: Sequence[ContentBlock],
    threshold: int,
    min_total: int,
    button_text: str = DEFAULT_BUTTON_TEXT,
) -> List[ContentBlock]:
    """
    Put one cut right after ``blocks[threshold]`` when there are more than
    ``min_total`` blocks.  A threshold past the end appends the cut.
    """
    result = list(blocks)
    if len(result) > min_total:
        result.insert(threshold + 1, cut_block(button_text))
    return assign_positions(result)


def join_with_cut(
    primary: Sequence[ContentBlock],
    secondary: Sequence[ContentBlock],
    button_text: str = DEFAULT_BUTTON_TEXT,
) -> List[ContentBlock]:
    result = list(primary)
    if secondary:
        result.append(cut_block(button_text))
        result.extend(secondary)
    return assign_positions(result)


def paginate(
    primary: Sequence[ContentBlock],
    secondary: Optional[Sequence[ContentBlock]] = None,
    policy: CutPolicy = CutPolicy(),
) -> List[ContentBlock]:
    """
    ``secondary`` is ``None`` when the entity has no second text field; an
    empty sequence means the field exists but produced no blocks, in which
    case no cut is added at all.
    """
    if secondary is not None:
        return join_with_cut(primary, secondary, policy.button_text)
    return insert_cut(primary, policy.threshold, policy.min_total, policy.button_text)
