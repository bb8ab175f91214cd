from __future__ import annotations

from typing import List, Optional, Sequence

from models.content_blocks import (
    ContentBlock,
    CutBlock,
    CutBlockData,
    FileBlock,
    FileBlockData,
    GalleryBlock,
    GalleryBlockData,
    IframeBlock,
    IframeBlockData,
    MediaRef,
    PictureBlock,
    PictureBlockData,
    QuoteBlock,
    QuoteBlockData,
    TextBlock,
    TextBlockData,
    TwitchBlock,
    TwitchBlockData,
    YoutubeBlock,
    YoutubeBlockData,
)


# --- Builders for content blocks ---

def text_block(text: str) -> Optional[TextBlock]:
    """Text block for ``text`` trimmed, or ``None`` when nothing is left."""
    text = (text or "").strip()
    if not text:
        return None
    return TextBlock(data=TextBlockData(text=text))


def quote_block(text: str) -> Optional[QuoteBlock]:
    text = (text or "").strip()
    if not text:
        return None
    return QuoteBlock(data=QuoteBlockData(text=text))


def picture_block(picture: MediaRef) -> PictureBlock:
    return PictureBlock(data=PictureBlockData(picture=picture))


def pictures_block(pictures: Sequence[MediaRef]) -> Optional[ContentBlock]:
    """
    One picture gives a picture block, two or more a gallery; an empty
    list gives nothing.
    """
    if not pictures:
        return None
    if len(pictures) == 1:
        return picture_block(pictures[0])
    return GalleryBlock(data=GalleryBlockData(pictures=list(pictures)))


def youtube_block(youtube_id: str) -> YoutubeBlock:
    return YoutubeBlock(data=YoutubeBlockData(youtube_id=youtube_id))


def twitch_block(
    video_id: Optional[str] = None,
    channel_id: Optional[str] = None,
    collection_id: Optional[str] = None,
) -> TwitchBlock:
    return TwitchBlock(
        data=TwitchBlockData(video_id=video_id, channel_id=channel_id, collection_id=collection_id)
    )


def iframe_block(src: str) -> IframeBlock:
    return IframeBlock(data=IframeBlockData(src=src))


def file_block(file: MediaRef) -> FileBlock:
    return FileBlock(data=FileBlockData(file=file))


def cut_block(button_text: str = "") -> CutBlock:
    return CutBlock(data=CutBlockData(button_text=button_text))


# --- Sequence helpers ---

def assign_positions(blocks: List[ContentBlock]) -> List[ContentBlock]:
    """Number ``blocks`` 0..n-1 in list order. Returns the same list."""
    for position, block in enumerate(blocks):
        block.position = position
    return blocks
