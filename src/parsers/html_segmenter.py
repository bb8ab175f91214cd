"""
Legacy HTML → ordered content blocks.

The legacy site stored post bodies as loosely structured HTML: bare text
next to paragraphs, images dropped inside paragraphs, video players as
iframes.  :class:`HtmlSegmenter` turns such a fragment into the block list
of the destination CMS while keeping the reading order:

* top-level inline siblings (text, links, emphasis, headers, ``<br>``...)
  are gathered into one paragraph per run;
* every top-level node is classified (:class:`NodeKind`) and handed to the
  matching handler;
* inside paragraphs, images and iframes are taken out into their own
  blocks and the text around them is split accordingly.

Media failures never abort a document: a missing picture simply yields no
block.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from bs4.element import CData, Declaration, Doctype, PageElement, ProcessingInstruction

from models.content_blocks import ContentBlock, MediaRef
from src.utils.log import LogFn, log_message
from .block_schema import assign_positions, picture_block, pictures_block, quote_block, text_block
from .embeds import embed_block
from .inline_media import PictureSet, Uploader, upload_image

_DOUBLE_ESCAPED_RE = re.compile(r"&amp;(nbsp|ndash|mdash|quote?|laquo|raquo);", re.IGNORECASE)
_TRAILING_BREAKS_RE = re.compile(r"(?:\s*<br\s*/?>\s*)+$", re.IGNORECASE)

INLINE_TAGS = {
    "a", "span", "em", "strong", "b", "i", "u", "s", "strike", "code",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "small", "del", "sup", "sub", "br",
    "script", "style", "font",
}

_NON_CONTENT_STRINGS = (Comment, CData, Declaration, Doctype, ProcessingInstruction)


class NodeKind(enum.Enum):
    PARAGRAPH = "paragraph"
    QUOTE = "quote"
    EMBED = "embed"
    IMAGE = "image"
    LIST = "list"
    UNKNOWN = "unknown"


_KIND_BY_TAG = {
    "p": NodeKind.PARAGRAPH,
    "div": NodeKind.PARAGRAPH,
    "blockquote": NodeKind.QUOTE,
    "iframe": NodeKind.EMBED,
    "img": NodeKind.IMAGE,
    "ul": NodeKind.LIST,
    "ol": NodeKind.LIST,
    "table": NodeKind.LIST,
}


def normalize_entities(html: str) -> str:
    """Undo the double escaping of common entities (``&amp;nbsp;`` → ``&nbsp;``)."""

    def repl(m: "re.Match[str]") -> str:
        name = m.group(1).lower()
        if name == "quote":
            name = "quot"
        return f"&{name};"

    return _DOUBLE_ESCAPED_RE.sub(repl, html or "")


def _tag_name(node: PageElement) -> str:
    if isinstance(node, Tag):
        return (node.name or "").lower()
    return "#text"


def is_inline(node: PageElement) -> bool:
    if isinstance(node, Tag):
        return _tag_name(node) in INLINE_TAGS
    return isinstance(node, NavigableString) and not isinstance(node, _NON_CONTENT_STRINGS)


def classify_node(node: PageElement) -> NodeKind:
    if isinstance(node, Tag):
        return _KIND_BY_TAG.get(_tag_name(node), NodeKind.UNKNOWN)
    if isinstance(node, NavigableString) and not isinstance(node, _NON_CONTENT_STRINGS):
        return NodeKind.PARAGRAPH
    return NodeKind.UNKNOWN


def visible_text(node: PageElement) -> str:
    """Text a reader would see, without non-breaking spaces, trimmed."""
    if isinstance(node, Tag):
        text = node.get_text()
    else:
        text = str(node)
    return text.replace("&nbsp;", "").replace("\xa0", "").strip()


def outer_html(node: PageElement) -> str:
    if isinstance(node, NavigableString):
        return node.output_ready(formatter="minimal")
    return str(node)


def group_inline_runs(nodes: Iterable[PageElement], soup: BeautifulSoup) -> List[PageElement]:
    """
    Wrap every run of consecutive inline siblings into a synthetic
    ``<div>``.  Any other node ends the run and is kept as is; comments and
    other markup declarations are dropped.
    """
    grouped: List[PageElement] = []
    run: List[PageElement] = []

    def flush_run() -> None:
        if not run:
            return
        wrapper = soup.new_tag("div")
        for item in run:
            wrapper.append(item.extract())
        grouped.append(wrapper)
        run.clear()

    for node in nodes:
        if isinstance(node, _NON_CONTENT_STRINGS):
            continue
        if is_inline(node):
            run.append(node)
            continue
        flush_run()
        grouped.append(node)
    flush_run()
    return grouped


@dataclass(frozen=True)
class _Placeholder:
    """Position of an extracted item inside a paragraph's child list."""

    index: int


@dataclass
class _Context:
    upload_path: str
    gallery_lookup: Optional[PictureSet] = None
    extracted: List[Union[MediaRef, ContentBlock]] = field(default_factory=list)


class HtmlSegmenter:
    """
    Split legacy HTML into content blocks.

    :param uploader: Object with ``upload(url, target_path, file_name=None)``
        returning a :class:`MediaRef` or ``None`` (normally a
        :class:`src.migrators.media_uploader.MediaUploader`).
    :param log: ``log(message, level)`` sink.
    """

    def __init__(self, uploader: Uploader, *, log: LogFn = log_message) -> None:
        self.uploader = uploader
        self._log = log

    def segment(
        self,
        html: Optional[str],
        upload_path: str,
        gallery_lookup: Optional[PictureSet] = None,
    ) -> List[ContentBlock]:
        """
        Blocks for ``html`` in reading order, numbered from zero.

        Never raises: a node that cannot be handled is logged and skipped.
        """
        if not html or not html.strip():
            return []

        soup = BeautifulSoup(normalize_entities(html), "html.parser")
        blocks: List[ContentBlock] = []
        for node in group_inline_runs(list(soup.contents), soup):
            kind = classify_node(node)
            try:
                blocks.extend(self.handle(kind, node, upload_path, gallery_lookup))
            except Exception as e:
                self._log(f"Failed to convert <{_tag_name(node)}> node: {e}", "ERROR")
        return assign_positions(blocks)

    def handle(
        self,
        kind: NodeKind,
        node: PageElement,
        upload_path: str,
        gallery_lookup: Optional[PictureSet] = None,
    ) -> List[ContentBlock]:
        """Run the handler for ``kind`` on a single top-level node."""
        if kind is NodeKind.PARAGRAPH:
            return self.paragraph_blocks(node, _Context(upload_path, gallery_lookup))
        if kind is NodeKind.QUOTE:
            return _as_list(self.quote_block(node))
        if kind is NodeKind.EMBED:
            return _as_list(self.embed_block(node))
        if kind is NodeKind.IMAGE:
            return _as_list(self.image_block(node, upload_path, gallery_lookup))
        if kind is NodeKind.LIST:
            return _as_list(self.list_block(node))
        self._log(f"Unrecognized node <{_tag_name(node)}>, skipping", "WARNING")
        return []

    # --- handlers ---

    def quote_block(self, node: PageElement) -> Optional[ContentBlock]:
        if not isinstance(node, Tag):
            return None
        return quote_block(node.decode_contents())

    def embed_block(self, node: PageElement) -> Optional[ContentBlock]:
        src = _attr(node, "src")
        if not src:
            self._log("Iframe without src, skipping", "WARNING")
            return None
        return embed_block(src)

    def image_block(
        self,
        node: PageElement,
        upload_path: str,
        gallery_lookup: Optional[PictureSet] = None,
    ) -> Optional[ContentBlock]:
        ref = self._upload(node, upload_path, gallery_lookup)
        return picture_block(ref) if ref else None

    def list_block(self, node: PageElement) -> Optional[ContentBlock]:
        # Lists and tables are stored as they are.
        if not visible_text(node):
            return None
        return text_block(outer_html(node))

    def paragraph_blocks(self, node: PageElement, ctx: _Context) -> List[ContentBlock]:
        if isinstance(node, NavigableString):
            return _as_list(text_block(outer_html(node)))
        if not isinstance(node, Tag):
            return []
        tokens = self._extract_media(node, ctx)
        return self._assemble(tokens, ctx)

    # --- paragraph internals ---

    def _extract_media(self, node: Tag, ctx: _Context) -> List[Union[PageElement, _Placeholder]]:
        """
        First pass: replace image and iframe children by placeholders into
        ``ctx.extracted``.  A child that failed to resolve stays in place.
        """
        tokens: List[Union[PageElement, _Placeholder]] = []
        for child in list(node.contents):
            name = _tag_name(child)
            if name in ("img", "iframe"):
                placeholder = self._extract_one(child, ctx)
                tokens.append(placeholder if placeholder is not None else child)
                continue
            if isinstance(child, Tag) and not visible_text(child):
                # Wrappers like <a href="big.jpg"><img ...></a> carry no text
                # of their own; lift the media out of them.
                nested = child.find_all(["img", "iframe"])
                placeholders = [p for p in (self._extract_one(n, ctx) for n in nested) if p is not None]
                if placeholders:
                    tokens.extend(placeholders)
                    continue
            tokens.append(child)
        return tokens

    def _extract_one(self, child: Tag, ctx: _Context) -> Optional[_Placeholder]:
        item: Union[MediaRef, ContentBlock, None]
        if _tag_name(child) == "img":
            item = self._upload(child, ctx.upload_path, ctx.gallery_lookup)
        else:
            item = self.embed_block(child)
        if item is None:
            return None
        ctx.extracted.append(item)
        return _Placeholder(len(ctx.extracted) - 1)

    def _assemble(self, tokens: List[Union[PageElement, _Placeholder]], ctx: _Context) -> List[ContentBlock]:
        """
        Second pass: walk the tokens in order, buffering text and emitting
        extracted blocks where their placeholders stand.  Pictures with no
        text between them end up in one gallery.
        """
        blocks: List[ContentBlock] = []
        buffer: List[str] = []
        pictures: List[MediaRef] = []

        def flush_text() -> None:
            block = text_block(_TRAILING_BREAKS_RE.sub("", "".join(buffer)))
            buffer.clear()
            if block is not None:
                blocks.append(block)

        def flush_pictures() -> None:
            block = pictures_block(pictures)
            pictures.clear()
            if block is not None:
                blocks.append(block)

        for token in tokens:
            if isinstance(token, _Placeholder):
                item = ctx.extracted[token.index]
                flush_text()
                if isinstance(item, MediaRef):
                    pictures.append(item)
                else:
                    flush_pictures()
                    blocks.append(item)
                continue
            if isinstance(token, _NON_CONTENT_STRINGS):
                continue
            if _tag_name(token) == "br":
                # Soft break: only meaningful between pieces of text.
                if buffer:
                    buffer.append(outer_html(token))
                continue
            if not visible_text(token):
                continue
            flush_pictures()
            buffer.append(outer_html(token))

        flush_text()
        flush_pictures()
        return blocks

    def _upload(
        self,
        node: PageElement,
        upload_path: str,
        gallery_lookup: Optional[PictureSet],
    ) -> Optional[MediaRef]:
        src = _attr(node, "src")
        if not src:
            return None
        return upload_image(src, upload_path, self.uploader, gallery_lookup)


def _attr(node: PageElement, name: str) -> str:
    if not isinstance(node, Tag):
        return ""
    value = node.get(name)
    if isinstance(value, list):
        value = value[0] if value else ""
    return (value or "").strip()


def _as_list(block: Optional[ContentBlock]) -> List[ContentBlock]:
    return [block] if block is not None else []


def segment_html(
    html: Optional[str],
    *,
    uploader: Uploader,
    upload_path: str,
    gallery_lookup: Optional[PictureSet] = None,
    log: LogFn = log_message,
) -> List[ContentBlock]:
    """Functional shortcut for ``HtmlSegmenter(uploader, log=log).segment(...)``."""
    return HtmlSegmenter(uploader, log=log).segment(html, upload_path, gallery_lookup)
