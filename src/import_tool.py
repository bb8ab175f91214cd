"""
High-level orchestration of the legacy site import.

This module defines a :class:`LegacyImportTool` class that ties together
the extractors, parsers, migrators and utilities into a complete
pipeline.  Given a loaded :class:`models.legacy_export.Export` it imports
sections (developers, games, topics), then news, articles, files and
gallery pictures as posts, re-uploading every referenced picture,
segmenting legacy HTML into content blocks, flattening categories into
tags, and writing a redirect map for the routes that changed.

The whole run is one unit of work: the database transaction and the
storage batch are committed together at the end, or both dropped when
anything fails (and in dry-run mode).

Configuration is supplied via a JSON file path or directly as a
dictionary; the ``BRC_*`` environment variables override it.
"""

from __future__ import annotations

import json
import os
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from models.content_blocks import ContentBlock, MediaRef
from models.destination import Post, PublishRecord, Section, SectionData
from models.legacy_export import CategoryExport, Export, GalleryExport, NewsExport
from src.migrators.content_repository import ContentRepository
from src.migrators.media_uploader import HttpFetcher, MediaUploader
from src.migrators.storage import LocalStorage
from src.parsers.block_schema import file_block, pictures_block, youtube_block
from src.parsers.html_segmenter import HtmlSegmenter
from src.parsers.pagination import DEFAULT_BUTTON_TEXT, CutPolicy, paginate
from src.utils.categories import build_category_tags, index_categories
from src.utils.errors import report_error, report_ok
from src.utils.log import LogFn, log_message
from src.utils.pre_flight_checks import check_site_id
from src.utils.redirects import Redirect, build_redirect, generate_redirects_map
from src.utils.tags import TagRegistry, parse_keywords_field

DEFAULT_EMPTY_LOGO_URL = "https://dummyimage.com/200x200/000/fff"

# Environment variable -> (config section, key, kind)
_ENV_OVERRIDES: List[Tuple[str, str, str, str]] = [
    ("BRC_IMPORT_FILE_PATH", "source", "import_file_path", "str"),
    ("BRC_EXPORT_API_URL", "source", "api_uri", "str"),
    ("BRC_EXPORT_API_TOKEN", "source", "api_token", "str"),
    ("BRC_IMPORT_SITE_ID", "target", "site_id", "str"),
    ("BRC_IMPORT_OUTPUT_PATH", "target", "output_path", "str"),
    ("BRC_IMPORT_NEWS", "import", "news", "bool"),
    ("BRC_IMPORT_ARTICLES", "import", "articles", "bool"),
    ("BRC_IMPORT_FILES", "import", "files", "bool"),
    ("BRC_IMPORT_GALLERY", "import", "gallery", "bool"),
]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def upload_path_for(date: datetime) -> str:
    """Storage directory for media of content dated ``date``."""
    return f"posts/{date.year}/{date.month}"


def rewrite_file_path(link: str, rewrites: Dict[str, str]) -> str:
    """Apply the first matching prefix rewrite to a legacy file link."""
    for old, new in rewrites.items():
        if old and link.startswith(old):
            return new + link[len(old):]
    return link


def load_config(config: Optional[Dict[str, Any]] = None, *, config_file: Optional[str] = None) -> Dict[str, Any]:
    """Read ``config_file`` (if it exists), fill defaults and apply environment overrides."""
    if config_file and os.path.exists(config_file):
        with open(config_file, "r", encoding="utf-8") as f:
            config = json.load(f)
    elif config is None:
        # Default configuration
        config = {}

    # Ensure essential keys exist to prevent KeyErrors
    config.setdefault("source", {})
    config["source"].setdefault("import_file_path", "")
    config["source"].setdefault("api_uri", "")
    config["source"].setdefault("api_token", "")

    config.setdefault("target", {})
    config["target"].setdefault("site_id", "")
    config["target"].setdefault("output_path", "output/files")
    config["target"].setdefault("public_base_url", "")
    config["target"].setdefault("files_base_url", "")
    config["target"].setdefault("database_path", "data/import.duckdb")
    config["target"].setdefault("file_path_rewrites", {})

    config.setdefault("import", {})
    config["import"].setdefault("news", False)
    config["import"].setdefault("articles", False)
    config["import"].setdefault("files", False)
    config["import"].setdefault("gallery", False)
    config["import"].setdefault("dry_run", False)
    config["import"].setdefault("limit", None)
    config["import"].setdefault("empty_logo_url", DEFAULT_EMPTY_LOGO_URL)

    config.setdefault("media", {})
    config["media"].setdefault("requests_per_minute", 180)
    config["media"].setdefault("timeout", 30)
    config["media"].setdefault("cache", True)

    config.setdefault("pagination", {})
    config["pagination"].setdefault("threshold", 2)
    config["pagination"].setdefault("min_total", 3)
    config["pagination"].setdefault("button_text", DEFAULT_BUTTON_TEXT)

    config.setdefault("redirects", {})
    config["redirects"].setdefault("out_path", "reports/import/redirects.map")
    config["redirects"].setdefault("legacy_base_url", "")

    for env_name, section, key, kind in _ENV_OVERRIDES:
        value = os.getenv(env_name)
        if value:
            config[section][key] = _parse_bool(value) if kind == "bool" else value

    rewrites_file = os.getenv("BRC_REWRITES_FILE_PATH")
    if rewrites_file:
        with open(rewrites_file, "r", encoding="utf-8") as f:
            config["target"]["file_path_rewrites"] = json.load(f)

    return config


class LegacyImportTool:
    """
    Encapsulates all state and behavior required to import a legacy
    export.  This class is responsible for reading configuration, turning
    export records into sections and posts, and persisting them.  Detailed
    success and failure information is recorded using the
    :mod:`src.utils.errors` module.

    Collaborators (repository, storage, uploader) are built from the
    configuration unless supplied.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        config_file: Optional[str] = None,
        repository: Optional[ContentRepository] = None,
        uploader: Optional[MediaUploader] = None,
        log: LogFn = log_message,
    ) -> None:
        self.config = load_config(config, config_file=config_file)
        self._log = log

        target = self.config["target"]
        media = self.config["media"]
        if uploader is None:
            storage = LocalStorage(target["output_path"], target["public_base_url"])
            fetcher = HttpFetcher(rpm=int(media["requests_per_minute"]), timeout=float(media["timeout"]))
            uploader = MediaUploader(
                storage,
                fetcher,
                files_base_url=target["files_base_url"],
                cache=bool(media["cache"]),
                log=log,
            )
        self.uploader = uploader
        self.repository = repository or ContentRepository(target["database_path"])
        self.segmenter = HtmlSegmenter(self.uploader, log=log)

        pagination = self.config["pagination"]
        self.policy = CutPolicy(
            threshold=int(pagination["threshold"]),
            min_total=int(pagination["min_total"]),
            button_text=pagination["button_text"],
        )

        self.site_id: Optional[uuid.UUID] = None
        self.tags = TagRegistry()
        self.developers_map: Dict[int, uuid.UUID] = {}
        self.games_map: Dict[int, uuid.UUID] = {}
        self.topics_map: Dict[int, uuid.UUID] = {}
        self.redirects: List[Redirect] = []
        self.posts: List[Post] = []
        self.publish_records: List[PublishRecord] = []
        self._post_urls: set = set()
        self._gallery_lookup: Dict[int, list] = {}

    def log_message(self, message: str, level: str = "INFO") -> None:
        self._log(message, level)

    @property
    def dry_run(self) -> bool:
        return bool(self.config["import"].get("dry_run"))

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self, export: Export) -> bool:
        """
        Import ``export`` in a single unit of work.

        :return: ``True`` when the run completed (committed, or rolled back
            on purpose in dry-run mode), ``False`` when it failed.
        """
        self.site_id = check_site_id(self.config["target"]["site_id"])
        self.log_message("Begin import")
        self.print_stats()

        self.repository.begin()
        self.uploader.begin_batch()
        try:
            self.import_all(export)
            if self.dry_run:
                self.log_message("Dry-run: rolling back database changes and dropping stored files", "WARNING")
                self.uploader.discard_batch()
                self.repository.rollback()
            else:
                written = self.uploader.finish_batch()
                self.repository.commit()
                self.log_message(f"Stored {written} files")
        except Exception as e:
            self.log_message(f"Import failed: {e}", "ERROR")
            report_error("IMPORT_FAILED", {"kind": "run"}, e)
            self.uploader.discard_batch()
            self.repository.rollback()
            return False

        self.print_stats()
        self.write_redirects()
        self.log_message(
            f"Done! Posts: {len(self.posts)}, uploads: {self.uploader.uploaded}, failed uploads: {self.uploader.failed}"
        )
        return True

    def import_all(self, export: Export) -> None:
        options = self.config["import"]
        self.tags = TagRegistry(self.repository.load_tags())
        self._gallery_lookup = export.gallery_lookup()

        empty_logo = self.uploader.upload(options["empty_logo_url"], "tmp", "dummy.png")

        self.log_message(f"Developers: {len(export.developers)}")
        self.import_developers(export, empty_logo)
        self.log_message(f"Games: {len(export.games)}")
        self.import_games(export, empty_logo)
        self.log_message(f"Topics: {len(export.topics)}")
        self.import_topics(export, empty_logo)

        if options["news"]:
            self.log_message("News", "WARNING")
            self.import_news(export)
        if options["articles"]:
            self.log_message("Articles", "WARNING")
            self.import_articles(export)
        if options["files"]:
            self.log_message("Files", "WARNING")
            self.import_files(export)
        if options["gallery"]:
            self.log_message("Gallery", "WARNING")
            self.import_gallery(export)

        self.persist()

    def persist(self) -> None:
        for tag in self.tags.created:
            self.repository.add_tag(tag)
        for post in sorted(self.posts, key=lambda p: p.date_added):
            self.repository.add_post(post)
        for record in self.publish_records:
            self.repository.add_publish_record(record)

    def print_stats(self) -> None:
        for name, count in self.repository.stats().items():
            self.log_message(f"{name}: {count}")

    def write_redirects(self) -> Optional[str]:
        if not self.redirects:
            return None
        out_path = generate_redirects_map(self.redirects, out_path=self.config["redirects"]["out_path"])
        self.log_message(f"Redirect map generated with {len(self.redirects)} entries: {out_path}")
        return out_path

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def segment(self, html: Optional[str], upload_path: str) -> List[ContentBlock]:
        return self.segmenter.segment(html, upload_path, self._gallery_lookup)

    def _add_redirect(self, kind: str, url: str, full_url: Optional[str]) -> None:
        redirect = build_redirect(kind, url, full_url or "", self.config["redirects"]["legacy_base_url"])
        if redirect is not None:
            self.redirects.append(redirect)

    def _limit_reached(self) -> bool:
        limit = self.config["import"].get("limit")
        return limit is not None and len(self.posts) >= int(limit)

    def _post_exists(self, url: str) -> bool:
        return url in self._post_urls or self.repository.post_url_exists(url)

    def _section_id(self, links: Sequence[Tuple[str, Optional[int]]]) -> List[uuid.UUID]:
        """
        Section of a post from ``(kind, legacy id)`` links; later links win,
        unknown sections are skipped with a warning.
        """
        maps = {"developer": self.developers_map, "game": self.games_map, "topic": self.topics_map}
        result: List[uuid.UUID] = []
        for kind, legacy_id in links:
            if not legacy_id or legacy_id <= 0:
                continue
            section_id = maps[kind].get(legacy_id)
            if section_id is None:
                self.log_message(f"Unknown {kind} {legacy_id}, section link skipped", "WARNING")
                continue
            result = [section_id]
        return result

    def _category_section_ids(self, cat: CategoryExport) -> List[uuid.UUID]:
        return self._section_id([("game", cat.game_id), ("developer", cat.developer_id), ("topic", cat.topic_id)])

    def _new_post(self, *, url: str, title: str, date: datetime, author_id: int, is_published: bool,
                  date_updated: Optional[datetime] = None) -> Post:
        return Post(
            url=url,
            title=title,
            site_ids=[self.site_id] if self.site_id else [],
            date_added=date,
            date_updated=date_updated or date,
            date_published=date_updated or date,
            is_published=is_published,
            author_id=author_id,
        )

    def _accept_post(self, post: Post, entity: Dict[str, Any], full_url: Optional[str]) -> None:
        self.posts.append(post)
        self._post_urls.add(post.url)
        self._add_redirect("post", post.url, full_url)
        report_ok("POST_IMPORTED", entity, {"blocks": len(post.blocks)})

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _import_section(
        self,
        kind: str,
        *,
        legacy_id: int,
        title: str,
        url: str,
        full_url: Optional[str],
        desc: Optional[str],
        logo_url: Optional[str],
        small_logo_url: Optional[str],
        empty_logo: Optional[MediaRef],
        date: Optional[datetime] = None,
        parent_id: Optional[uuid.UUID] = None,
        hashtag: str = "",
        platforms: Optional[List[str]] = None,
        seo: Optional[Dict[str, Any]] = None,
    ) -> uuid.UUID:
        entity = {"kind": kind, "id": legacy_id, "url": url, "title": title}
        existing = self.repository.find_section_id(kind, title)
        if existing is not None:
            report_ok("SECTION_REUSED", entity)
            return existing

        logo_path = f"sections/{kind}s"
        logo = self.uploader.upload(logo_url or "", logo_path) or empty_logo
        if small_logo_url is None:
            logo_small = logo
        else:
            logo_small = self.uploader.upload(small_logo_url, logo_path) or empty_logo

        section = Section(
            type=kind,
            url=url,
            title=title,
            site_ids=[self.site_id] if self.site_id else [],
            parent_id=parent_id,
            data=SectionData(logo=logo, logo_small=logo_small, hashtag=hashtag or "", platforms=platforms or []),
            seo=seo,
        )
        if date is not None:
            section.date_added = section.date_updated = section.date_published = date
        else:
            section.date_published = section.date_added
        section.add_blocks(self.segment(desc, upload_path_for(section.date_added)))

        self.repository.add_section(section)
        self._add_redirect(kind, url, full_url)
        report_ok("SECTION_IMPORTED", entity, {"blocks": len(section.blocks)})
        return section.id

    def import_developers(self, export: Export, empty_logo: Optional[MediaRef]) -> None:
        for dev in export.developers:
            self.developers_map[dev.id] = self._import_section(
                "developer",
                legacy_id=dev.id,
                title=dev.name,
                url=dev.url,
                full_url=dev.full_url,
                desc=dev.desc,
                logo_url=dev.logo,
                small_logo_url=None,
                empty_logo=empty_logo,
            )

    def import_games(self, export: Export, empty_logo: Optional[MediaRef]) -> None:
        for game in export.games:
            parent_id = self.developers_map.get(game.developer_id) if game.developer_id > 0 else None
            seo = None
            keywords = parse_keywords_field(game.keywords)
            if keywords:
                seo = {"keywords": ", ".join(keywords), "description": game.desc or ""}
            self.games_map[game.id] = self._import_section(
                "game",
                legacy_id=game.id,
                title=game.title,
                url=game.url,
                full_url=game.full_url,
                desc=game.desc,
                logo_url=game.logo,
                small_logo_url=game.small_logo or "",
                empty_logo=empty_logo,
                date=game.date,
                parent_id=parent_id,
                hashtag=game.tweet_tag or "",
                platforms=parse_keywords_field(game.platforms),
                seo=seo,
            )

    def import_topics(self, export: Export, empty_logo: Optional[MediaRef]) -> None:
        for topic in export.topics:
            self.topics_map[topic.id] = self._import_section(
                "topic",
                legacy_id=topic.id,
                title=topic.title,
                url=topic.url,
                full_url=topic.full_url,
                desc=topic.desc,
                logo_url=topic.logo,
                small_logo_url=None,
                empty_logo=empty_logo,
            )

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    def import_news(self, export: Export) -> None:
        for news in sorted(export.news, key=lambda n: n.id, reverse=True):
            if self._limit_reached():
                break
            url = f"{news.url}_{news.id}"
            entity = {"kind": "news", "id": news.id, "url": url, "title": news.title}
            if self._post_exists(url):
                report_ok("POST_SKIPPED", entity)
                continue

            post = self._new_post(
                url=url,
                title=news.title,
                date=news.date,
                date_updated=news.last_change_date,
                author_id=news.author_id,
                is_published=news.pub == 1,
            )
            upload_path = upload_path_for(news.date)
            primary = self.segment(news.short_text, upload_path)
            secondary = None
            if news.add_text and news.add_text.strip():
                secondary = self.segment(news.add_text, upload_path)
            post.add_blocks(paginate(primary, secondary, self.policy))
            post.section_ids = self._section_id(
                [("developer", news.developer_id), ("game", news.game_id), ("topic", news.topic_id)]
            )

            self._accept_post(post, entity, news.full_url)
            self._add_publish_records(news, post)

    def _add_publish_records(self, news: NewsExport, post: Post) -> None:
        site_ids = list(post.site_ids)
        if news.twitter_id and news.twitter_id > 0:
            self.publish_records.append(
                PublishRecord(kind="twitter", content_id=post.id, external_id=str(news.twitter_id), site_ids=site_ids)
            )
        if news.facebook_id:
            self.publish_records.append(
                PublishRecord(kind="facebook", content_id=post.id, external_id=news.facebook_id, site_ids=site_ids)
            )
        if (news.forum_topic_id or 0) > 0 and (news.forum_post_id or 0) > 0:
            self.publish_records.append(
                PublishRecord(
                    kind="forum",
                    content_id=post.id,
                    external_id=str(news.forum_topic_id),
                    extra_id=str(news.forum_post_id),
                    site_ids=site_ids,
                )
            )

    def _category(
        self, cats_by_id: Dict[int, CategoryExport], cat_id: Optional[int], entity: Dict[str, Any]
    ) -> Optional[CategoryExport]:
        cat = cats_by_id.get(cat_id or 0)
        if cat is None:
            report_error("MISSING_CATEGORY", entity)
        return cat

    def import_articles(self, export: Export) -> None:
        cat_tags = build_category_tags(export.articles_cats, self.tags)
        cats_by_id = index_categories(export.articles_cats)
        for article in export.articles:
            if self._limit_reached():
                break
            url = f"{article.url}_{article.id}"
            entity = {"kind": "article", "id": article.id, "url": url, "title": article.title}
            if self._post_exists(url):
                report_ok("POST_SKIPPED", entity)
                continue

            post = self._new_post(
                url=url,
                title=article.title,
                date=article.date,
                author_id=article.author_id,
                is_published=article.pub == 1,
            )
            post.add_blocks(paginate(self.segment(article.text, upload_path_for(article.date)), None, self.policy))

            cat = self._category(cats_by_id, article.cat_id, entity)
            if cat is not None:
                post.tag_ids = [t.id for t in cat_tags.get(cat.id, [])]
                post.section_ids = self._category_section_ids(cat)
            self._accept_post(post, entity, article.full_url)

    def import_files(self, export: Export) -> None:
        cat_tags = build_category_tags(export.files_cats, self.tags)
        cats_by_id = index_categories(export.files_cats)
        rewrites = self.config["target"]["file_path_rewrites"] or {}
        for file_export in export.files:
            if self._limit_reached():
                break
            url = f"{file_export.url}_{file_export.id}"
            entity = {"kind": "file", "id": file_export.id, "url": url, "title": file_export.title}
            if self._post_exists(url):
                report_ok("POST_SKIPPED", entity)
                continue

            post = self._new_post(
                url=url,
                title=file_export.title,
                date=file_export.date,
                author_id=file_export.author_id,
                is_published=True,
            )
            blocks = self.segment(file_export.desc, upload_path_for(file_export.date))
            if file_export.yt_id:
                blocks.append(youtube_block(file_export.yt_id))
            elif file_export.link:
                link = rewrite_file_path(file_export.link, rewrites)
                blocks.append(file_block(self.uploader.upload_by_path(link, file_export.size, file_export.date)))
            post.add_blocks(blocks)

            cat = self._category(cats_by_id, file_export.cat_id, entity)
            if cat is not None:
                post.tag_ids = [t.id for t in cat_tags.get(cat.id, [])]
                post.section_ids = self._category_section_ids(cat)
            self._accept_post(post, entity, file_export.full_url)

    def import_gallery(self, export: Export) -> None:
        cat_tags = build_category_tags(export.gallery_cats, self.tags)
        for cat in index_categories(export.gallery_cats).values():
            # Pictures of one category uploaded on the same day make one post.
            groups: Dict[Any, List[GalleryExport]] = {}
            for pic in export.gallery_pics:
                if pic.cat_id == cat.id:
                    groups.setdefault(pic.date.date(), []).append(pic)

            for pics in groups.values():
                if self._limit_reached():
                    return
                first = pics[0]
                url = f"gallery_{first.id}"
                entity = {"kind": "gallery", "id": first.id, "url": url, "title": cat.title}
                if self._post_exists(url):
                    report_ok("POST_SKIPPED", entity)
                    continue

                post = self._new_post(
                    url=url,
                    title=cat.title,
                    date=first.date,
                    author_id=first.author_id,
                    is_published=True,
                )
                upload_path = upload_path_for(first.date)
                blocks: List[ContentBlock] = []
                for pic in pics:
                    pictures = []
                    for pic_file in pic.files:
                        item = self.uploader.upload(pic_file.url, upload_path, pic_file.file_name)
                        if item is not None:
                            pictures.append(item)
                    block = pictures_block(pictures)
                    if block is None:
                        report_error("MEDIA_UPLOAD", {**entity, "id": pic.id})
                    else:
                        blocks.append(block)
                    blocks.extend(self.segment(pic.desc, upload_path))
                if not blocks:
                    self.log_message(f"Gallery post {url} has no content, skipping", "WARNING")
                    continue
                post.add_blocks(blocks)
                post.tag_ids = [t.id for t in cat_tags.get(cat.id, [])]
                post.section_ids = self._category_section_ids(cat)
                self._accept_post(post, entity, first.full_url)
