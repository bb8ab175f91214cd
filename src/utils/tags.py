from __future__ import annotations

from html import unescape
import re
from typing import Dict, Iterable, List, Optional

from models.destination import Tag

_WHITESPACE_RE = re.compile(r"\s+")
_KEYWORD_SEPARATORS_RE = re.compile(r"[,;]")


def _normalize_label(value: Optional[str]) -> str:
    """Tag title as stored: entities unescaped and whitespace runs collapsed."""
    if not value:
        return ""
    return _WHITESPACE_RE.sub(" ", unescape(value)).strip()


def parse_keywords_field(field: Optional[str]) -> List[str]:
    """
    Parse and normalize a comma separated keywords field (game SEO keywords).

    - Splits on ',' (';' accepted as well)
    - Unescapes HTML entities and collapses whitespace
    - Deduplicates case-insensitively while preserving first-seen casing
    """
    if not field:
        return []

    # Unescape first: the ";" closing an entity is not a separator.
    labels: Dict[str, str] = {}
    for part in _KEYWORD_SEPARATORS_RE.split(unescape(field)):
        label = _WHITESPACE_RE.sub(" ", part).strip()
        if label:
            labels.setdefault(label.lower(), label)
    return list(labels.values())


class TagRegistry:
    """
    Tags by title.  Titles are matched exactly after normalization; a tag
    that does not exist yet is created once and remembered in
    :attr:`created` so the caller can persist it.
    """

    def __init__(self, existing: Iterable[Tag] = ()) -> None:
        self._by_title: Dict[str, Tag] = {}
        self.created: List[Tag] = []
        for tag in existing:
            self._by_title.setdefault(_normalize_label(tag.title), tag)

    def get(self, title: str) -> Tag:
        label = _normalize_label(title)
        if not label:
            raise ValueError("tag title must not be empty")
        tag = self._by_title.get(label)
        if tag is None:
            tag = Tag(title=label)
            self._by_title[label] = tag
            self.created.append(tag)
        return tag

    def __len__(self) -> int:
        return len(self._by_title)

    def __contains__(self, title: str) -> bool:
        return _normalize_label(title) in self._by_title
