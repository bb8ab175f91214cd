"""
DuckDB persistence for imported content.

Everything an import run produces (sections, posts, their blocks, tags,
stored files and publish records) is written to a single DuckDB database.
A run works inside one transaction: :meth:`ContentRepository.begin` before
the first write, then :meth:`commit` or :meth:`rollback` once at the end,
so a failed or dry run leaves the database untouched.

JSON-shaped columns (block payloads, section data, id lists) are stored as
text produced by pydantic's ``model_dump(mode="json", by_alias=True)``.
"""

from __future__ import annotations

import json
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import duckdb

from models.content_blocks import ContentBlock, FileBlock, GalleryBlock, MediaRef, PictureBlock, block_to_record
from models.destination import ContentEntity, Post, PublishRecord, Section, Tag

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS sections (
        id VARCHAR PRIMARY KEY,
        type VARCHAR NOT NULL,
        url VARCHAR NOT NULL,
        title VARCHAR NOT NULL,
        parent_id VARCHAR,
        site_ids VARCHAR,
        is_published BOOLEAN,
        date_added TIMESTAMP,
        date_updated TIMESTAMP,
        date_published TIMESTAMP,
        data VARCHAR,
        seo VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS posts (
        id VARCHAR PRIMARY KEY,
        url VARCHAR NOT NULL UNIQUE,
        title VARCHAR NOT NULL,
        author_id INTEGER,
        site_ids VARCHAR,
        tag_ids VARCHAR,
        section_ids VARCHAR,
        is_published BOOLEAN,
        date_added TIMESTAMP,
        date_updated TIMESTAMP,
        date_published TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tags (
        id VARCHAR PRIMARY KEY,
        title VARCHAR NOT NULL UNIQUE,
        date_added TIMESTAMP,
        date_updated TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS storage_items (
        id VARCHAR PRIMARY KEY,
        public_uri VARCHAR,
        file_path VARCHAR,
        path VARCHAR,
        file_name VARCHAR,
        file_size BIGINT,
        type VARCHAR,
        date_added TIMESTAMP,
        date_updated TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS blocks (
        id VARCHAR PRIMARY KEY,
        content_id VARCHAR NOT NULL,
        content_type VARCHAR NOT NULL,
        position INTEGER NOT NULL,
        type VARCHAR NOT NULL,
        data VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS publish_records (
        kind VARCHAR NOT NULL,
        content_id VARCHAR NOT NULL,
        external_id VARCHAR NOT NULL,
        extra_id VARCHAR,
        site_ids VARCHAR
    )
    """,
]

TABLES = ("sections", "posts", "tags", "storage_items", "blocks", "publish_records")


def _ts(value: Optional[datetime]) -> Optional[datetime]:
    """Naive UTC timestamp for DuckDB ``TIMESTAMP`` columns."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _ids(values: Iterable[uuid.UUID]) -> str:
    return json.dumps([str(v) for v in values])


def media_in_block(block: ContentBlock) -> List[MediaRef]:
    """Stored files a block points at."""
    if isinstance(block, PictureBlock):
        return [block.data.picture]
    if isinstance(block, GalleryBlock):
        return list(block.data.pictures)
    if isinstance(block, FileBlock):
        return [block.data.file]
    return []


class ContentRepository:
    """
    Thin DuckDB wrapper.  ``database_path`` may be ``":memory:"``.
    """

    def __init__(self, database_path: str = ":memory:") -> None:
        if database_path != ":memory:":
            os.makedirs(os.path.dirname(database_path) or ".", exist_ok=True)
        self.database_path = database_path
        self.con = duckdb.connect(database=database_path, read_only=False)
        self._in_transaction = False
        for statement in _SCHEMA:
            self.con.execute(statement)

    # --- transactions ---

    def begin(self) -> None:
        if self._in_transaction:
            raise RuntimeError("A transaction is already open")
        self.con.begin()
        self._in_transaction = True

    def commit(self) -> None:
        if self._in_transaction:
            self.con.commit()
            self._in_transaction = False

    def rollback(self) -> None:
        if self._in_transaction:
            self.con.rollback()
            self._in_transaction = False

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def close(self) -> None:
        self.rollback()
        self.con.close()

    def __enter__(self) -> "ContentRepository":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- lookups ---

    def post_url_exists(self, url: str) -> bool:
        row = self.con.execute("SELECT 1 FROM posts WHERE url = ? LIMIT 1", [url]).fetchone()
        return row is not None

    def find_section_id(self, section_type: str, title: str) -> Optional[uuid.UUID]:
        row = self.con.execute(
            "SELECT id FROM sections WHERE type = ? AND title = ? LIMIT 1", [section_type, title]
        ).fetchone()
        return uuid.UUID(row[0]) if row else None

    def load_tags(self) -> List[Tag]:
        rows = self.con.execute("SELECT id, title, date_added, date_updated FROM tags").fetchall()
        return [
            Tag(id=uuid.UUID(r[0]), title=r[1], date_added=r[2], date_updated=r[3])
            for r in rows
        ]

    def blocks_for(self, content_id: uuid.UUID) -> List[Dict[str, Any]]:
        """Stored block records of one entity, in position order."""
        rows = self.con.execute(
            "SELECT id, position, type, data FROM blocks WHERE content_id = ? ORDER BY position",
            [str(content_id)],
        ).fetchall()
        return [
            {"id": r[0], "position": r[1], "type": r[2], "data": json.loads(r[3]) if r[3] else None}
            for r in rows
        ]

    # --- writes ---

    def add_tag(self, tag: Tag) -> None:
        self.con.execute(
            "INSERT INTO tags VALUES (?, ?, ?, ?)",
            [str(tag.id), tag.title, _ts(tag.date_added), _ts(tag.date_updated)],
        )

    def add_storage_item(self, item: MediaRef) -> None:
        self.con.execute(
            "INSERT OR IGNORE INTO storage_items VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                str(item.id),
                item.public_uri,
                item.file_path,
                item.path,
                item.file_name,
                item.file_size,
                item.type,
                _ts(item.date_added),
                _ts(item.date_updated),
            ],
        )

    def add_section(self, section: Section) -> None:
        self.con.execute(
            "INSERT INTO sections VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                str(section.id),
                section.type,
                section.url,
                section.title,
                str(section.parent_id) if section.parent_id else None,
                _ids(section.site_ids),
                section.is_published,
                _ts(section.date_added),
                _ts(section.date_updated),
                _ts(section.date_published),
                json.dumps(section.data.model_dump(mode="json", by_alias=True), ensure_ascii=False),
                json.dumps(section.seo, ensure_ascii=False) if section.seo else None,
            ],
        )
        for logo in (section.data.logo, section.data.logo_small):
            if logo is not None:
                self.add_storage_item(logo)
        self._add_blocks(section, "section")

    def add_post(self, post: Post) -> None:
        self.con.execute(
            "INSERT INTO posts VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                str(post.id),
                post.url,
                post.title,
                post.author_id,
                _ids(post.site_ids),
                _ids(post.tag_ids),
                _ids(post.section_ids),
                post.is_published,
                _ts(post.date_added),
                _ts(post.date_updated),
                _ts(post.date_published),
            ],
        )
        self._add_blocks(post, "post")

    def add_publish_record(self, record: PublishRecord) -> None:
        self.con.execute(
            "INSERT INTO publish_records VALUES (?, ?, ?, ?, ?)",
            [record.kind, str(record.content_id), record.external_id, record.extra_id, _ids(record.site_ids)],
        )

    def _add_blocks(self, entity: ContentEntity, content_type: str) -> None:
        for block in entity.blocks:
            for item in media_in_block(block):
                self.add_storage_item(item)
            record = block_to_record(block)
            self.con.execute(
                "INSERT INTO blocks VALUES (?, ?, ?, ?, ?, ?)",
                [
                    str(block.id),
                    str(entity.id),
                    content_type,
                    block.position,
                    block.type,
                    json.dumps(record.get("data"), ensure_ascii=False),
                ],
            )

    # --- statistics ---

    def stats(self) -> Dict[str, int]:
        """Row counts, with sections split by type."""
        result: Dict[str, int] = {}
        for section_type, label in (("developer", "developers"), ("game", "games"), ("topic", "topics")):
            row = self.con.execute("SELECT COUNT(*) FROM sections WHERE type = ?", [section_type]).fetchone()
            result[label] = int(row[0])
        for table in TABLES:
            if table == "sections":
                continue
            row = self.con.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
            result[table] = int(row[0])
        return result
