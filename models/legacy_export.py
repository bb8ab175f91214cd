from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class ExportModel(BaseModel):
    """
    Base for records of the legacy JSON export.

    The exporter wrote camelCase keys, older dumps used PascalCase; both are
    accepted by lower-casing the first letter of every incoming key.
    """

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _camelize_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                (k[:1].lower() + k[1:]) if isinstance(k, str) else k: v
                for k, v in data.items()
            }
        return data


def _epoch() -> datetime:
    return datetime(1970, 1, 1, tzinfo=timezone.utc)


class DeveloperExport(ExportModel):
    id: int
    url: str = ""
    full_url: Optional[str] = None
    name: str = ""
    info: Optional[str] = None
    desc: Optional[str] = None
    logo: Optional[str] = None


class GameExport(ExportModel):
    id: int
    developer_id: int = 0
    url: str = ""
    full_url: Optional[str] = None
    title: str = ""
    genre: Optional[str] = None
    release_date: Optional[str] = None
    platforms: Optional[str] = None
    desc: Optional[str] = None
    keywords: Optional[str] = None
    publisher: Optional[str] = None
    localizator: Optional[str] = None
    logo: Optional[str] = None
    small_logo: Optional[str] = None
    date: datetime = Field(default_factory=_epoch)
    tweet_tag: Optional[str] = None


class TopicExport(ExportModel):
    id: int
    title: str = ""
    url: str = ""
    full_url: Optional[str] = None
    logo: Optional[str] = None
    desc: Optional[str] = None


class NewsExport(ExportModel):
    id: int
    game_id: Optional[int] = None
    developer_id: Optional[int] = None
    topic_id: Optional[int] = None
    url: str = ""
    full_url: Optional[str] = None
    source: Optional[str] = None
    title: str = ""
    short_text: Optional[str] = None
    add_text: Optional[str] = None
    author_id: int = 0
    forum_topic_id: Optional[int] = None
    forum_post_id: Optional[int] = None
    sticky: int = 0
    date: datetime = Field(default_factory=_epoch)
    last_change_date: Optional[datetime] = None
    pub: int = 0
    comments: int = 0
    twitter_id: Optional[int] = None
    facebook_id: Optional[str] = None


class CategoryExport(ExportModel):
    """Common shape of article, file and gallery categories."""

    id: int
    cat_id: Optional[int] = None
    game_id: Optional[int] = None
    developer_id: Optional[int] = None
    topic_id: Optional[int] = None
    title: str = ""
    url: str = ""
    full_url: Optional[str] = None
    desc: Optional[str] = None


class ArticleCatExport(CategoryExport):
    content: Optional[str] = None


class FileCatExport(CategoryExport):
    pass


class GalleryCatExport(CategoryExport):
    pass


class ArticleExport(ExportModel):
    id: int
    game_id: Optional[int] = None
    developer_id: Optional[int] = None
    topic_id: Optional[int] = None
    url: str = ""
    full_url: Optional[str] = None
    source: Optional[str] = None
    cat_id: Optional[int] = None
    title: str = ""
    announce: Optional[str] = None
    text: Optional[str] = None
    author_id: int = 0
    count: int = 0
    date: datetime = Field(default_factory=_epoch)
    pub: int = 0


class FileExport(ExportModel):
    id: int
    game_id: Optional[int] = None
    developer_id: Optional[int] = None
    url: str = ""
    full_url: Optional[str] = None
    cat_id: int = 0
    title: str = ""
    desc: Optional[str] = None
    announce: Optional[str] = None
    link: str = ""
    size: int = 0
    yt_id: Optional[str] = None
    author_id: int = 0
    count: int = 0
    date: datetime = Field(default_factory=_epoch)


class GalleryPicExport(ExportModel):
    url: str
    file_name: Optional[str] = None


class GalleryExport(ExportModel):
    id: int
    game_id: Optional[int] = None
    developer_id: Optional[int] = None
    cat_id: int = 0
    desc: Optional[str] = None
    pub: int = 0
    author_id: int = 0
    date: datetime = Field(default_factory=_epoch)
    files: List[GalleryPicExport] = Field(default_factory=list)
    full_url: Optional[str] = None


class Export(ExportModel):
    developers: List[DeveloperExport] = Field(default_factory=list)
    games: List[GameExport] = Field(default_factory=list)
    topics: List[TopicExport] = Field(default_factory=list)
    news: List[NewsExport] = Field(default_factory=list)
    articles_cats: List[ArticleCatExport] = Field(default_factory=list)
    articles: List[ArticleExport] = Field(default_factory=list)
    files_cats: List[FileCatExport] = Field(default_factory=list)
    files: List[FileExport] = Field(default_factory=list)
    gallery_cats: List[GalleryCatExport] = Field(default_factory=list)
    gallery_pics: List[GalleryExport] = Field(default_factory=list)

    def gallery_lookup(self) -> Dict[int, List[GalleryPicExport]]:
        """Picture id → its files, in export order. Built once per run."""
        return {pic.id: list(pic.files) for pic in self.gallery_pics}
