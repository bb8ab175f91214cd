from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.content_blocks import AnyBlock, ContentBlock, MediaRef


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Tag(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    title: str = Field(..., min_length=1)
    date_added: datetime = Field(default_factory=_utcnow, alias="dateAdded")
    date_updated: datetime = Field(default_factory=_utcnow, alias="dateUpdated")


class ContentEntity(BaseModel):
    """Anything that owns an ordered block list: sections and posts."""

    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    url: str
    title: str
    site_ids: List[uuid.UUID] = Field(default_factory=list, alias="siteIds")
    is_published: bool = Field(True, alias="isPublished")
    date_added: datetime = Field(default_factory=_utcnow, alias="dateAdded")
    date_updated: datetime = Field(default_factory=_utcnow, alias="dateUpdated")
    date_published: Optional[datetime] = Field(None, alias="datePublished")
    blocks: List[AnyBlock] = Field(default_factory=list)

    def add_blocks(self, blocks: List[ContentBlock]) -> None:
        """Append ``blocks`` and renumber the whole sequence densely from zero."""
        self.blocks.extend(blocks)  # type: ignore[arg-type]
        for position, block in enumerate(self.blocks):
            block.position = position


class SectionData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    logo: Optional[MediaRef] = None
    logo_small: Optional[MediaRef] = Field(None, alias="logoSmall")
    hashtag: str = ""
    platforms: List[str] = Field(default_factory=list)


class Section(ContentEntity):
    type: Literal["developer", "game", "topic"]
    parent_id: Optional[uuid.UUID] = Field(None, alias="parentId")
    data: SectionData = Field(default_factory=SectionData)
    seo: Optional[Dict[str, Any]] = None


class PublishRecord(BaseModel):
    """Link between an imported post and where it was already published."""

    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["twitter", "facebook", "forum"]
    content_id: uuid.UUID = Field(..., alias="contentId")
    external_id: str = Field(..., alias="externalId")
    extra_id: Optional[str] = Field(None, alias="extraId")
    site_ids: List[uuid.UUID] = Field(default_factory=list, alias="siteIds")


class Post(ContentEntity):
    author_id: int = Field(0, alias="authorId")
    tag_ids: List[uuid.UUID] = Field(default_factory=list, alias="tagIds")
    section_ids: List[uuid.UUID] = Field(default_factory=list, alias="sectionIds")

    @field_validator("tag_ids", "section_ids", mode="before")
    @classmethod
    def _dedup_ids(cls, v: Optional[list]):
        if not v:
            return v or []
        seen = set()
        deduped = []
        for item in v:
            if item not in seen:
                seen.add(item)
                deduped.append(item)
        return deduped
