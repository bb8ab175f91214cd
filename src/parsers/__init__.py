"""
Parsers turning legacy HTML into destination content blocks.

:mod:`src.parsers.html_segmenter` does the traversal; embeds, inline
images and "read more" cuts are handled by the sibling modules.
"""

from .html_segmenter import HtmlSegmenter, NodeKind, segment_html
from .pagination import CutPolicy, paginate

__all__ = ["HtmlSegmenter", "NodeKind", "segment_html", "CutPolicy", "paginate"]
