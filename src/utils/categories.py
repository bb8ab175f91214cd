"""
Flattening of legacy category trees into tags.

Article, file and gallery categories of the legacy site form trees through
their ``cat_id`` parent reference.  The destination has flat tags only, so
every category becomes the list of titles on its path from the root
(``Games → RPG → Dragon Age``), each title one tag.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence, TypeVar

from models.destination import Tag
from models.legacy_export import CategoryExport
from .tags import TagRegistry

C = TypeVar("C", bound=CategoryExport)


def index_categories(categories: Sequence[C]) -> Dict[int, C]:
    """Categories by id; the first one wins on duplicated ids."""
    result: Dict[int, C] = {}
    for cat in categories:
        result.setdefault(cat.id, cat)
    return result


def category_chain(cat: C, by_id: Mapping[int, C]) -> List[C]:
    """
    ``cat`` and its ancestors, root first.  A parent missing from the
    export ends the chain; a cycle is cut at the first repeated category.
    """
    chain: List[C] = []
    seen = set()
    current: Optional[C] = cat
    while current is not None and current.id not in seen:
        seen.add(current.id)
        chain.append(current)
        parent_id = current.cat_id or 0
        current = by_id.get(parent_id) if parent_id > 0 else None
    chain.reverse()
    return chain


def category_titles(cat: C, by_id: Mapping[int, C]) -> List[str]:
    return [c.title for c in category_chain(cat, by_id) if c.title and c.title.strip()]


def build_category_tags(categories: Sequence[C], registry: TagRegistry) -> Dict[int, List[Tag]]:
    """Tags for every category id, root→leaf, created through ``registry``."""
    by_id = index_categories(categories)
    result: Dict[int, List[Tag]] = {}
    for cat_id, cat in by_id.items():
        tags: List[Tag] = []
        for title in category_titles(cat, by_id):
            tag = registry.get(title)
            if tag not in tags:
                tags.append(tag)
        result[cat_id] = tags
    return result
