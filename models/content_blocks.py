from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MediaRef(BaseModel):
    """A stored file: result of a successful upload, shared by reference."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    public_uri: str = Field(..., alias="publicUri")
    file_path: str = Field(..., alias="filePath")
    path: str = ""
    file_name: str = Field(..., alias="fileName")
    file_size: int = Field(0, alias="fileSize")
    type: Literal["image", "other"] = "other"
    date_added: datetime = Field(default_factory=_utcnow, alias="dateAdded")
    date_updated: datetime = Field(default_factory=_utcnow, alias="dateUpdated")


# --- Block payloads ---

class TextBlockData(BaseModel):
    text: str

    @field_validator("text")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("text block must not be empty")
        return v


class QuoteBlockData(TextBlockData):
    pass


class PictureBlockData(BaseModel):
    picture: MediaRef


class GalleryBlockData(BaseModel):
    pictures: List[MediaRef] = Field(..., min_length=2)


class YoutubeBlockData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    youtube_id: str = Field(..., alias="youtubeId", min_length=1)


class TwitchBlockData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_id: Optional[str] = Field(None, alias="videoId")
    channel_id: Optional[str] = Field(None, alias="channelId")
    collection_id: Optional[str] = Field(None, alias="collectionId")


class IframeBlockData(BaseModel):
    src: str


class FileBlockData(BaseModel):
    file: MediaRef


class CutBlockData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    button_text: str = Field("", alias="buttonText")


# --- Blocks ---

class ContentBlock(BaseModel):
    """Base of every block. ``position`` is set by whoever owns the sequence."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, frozen=True)
    position: int = Field(0, ge=0)


class TextBlock(ContentBlock):
    type: Literal["text"] = "text"
    data: TextBlockData


class QuoteBlock(ContentBlock):
    type: Literal["quote"] = "quote"
    data: QuoteBlockData


class PictureBlock(ContentBlock):
    type: Literal["picture"] = "picture"
    data: PictureBlockData


class GalleryBlock(ContentBlock):
    type: Literal["gallery"] = "gallery"
    data: GalleryBlockData


class YoutubeBlock(ContentBlock):
    type: Literal["youtube"] = "youtube"
    data: YoutubeBlockData


class TwitchBlock(ContentBlock):
    type: Literal["twitch"] = "twitch"
    data: TwitchBlockData


class IframeBlock(ContentBlock):
    type: Literal["iframe"] = "iframe"
    data: IframeBlockData


class FileBlock(ContentBlock):
    type: Literal["file"] = "file"
    data: FileBlockData


class CutBlock(ContentBlock):
    type: Literal["cut"] = "cut"
    data: CutBlockData = Field(default_factory=CutBlockData)


AnyBlock = Annotated[
    Union[
        TextBlock,
        QuoteBlock,
        PictureBlock,
        GalleryBlock,
        YoutubeBlock,
        TwitchBlock,
        IframeBlock,
        FileBlock,
        CutBlock,
    ],
    Field(discriminator="type"),
]


def block_to_record(block: ContentBlock) -> Dict[str, Any]:
    """Serialize a block the way the destination CMS stores it (camelCase, JSON-safe)."""
    return block.model_dump(mode="json", by_alias=True)
