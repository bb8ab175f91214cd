import json
import os
import sys
import uuid

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
pytest.importorskip("bs4")
pytest.importorskip("duckdb")

from models.content_blocks import CutBlock, FileBlock, GalleryBlock, PictureBlock, TextBlock, YoutubeBlock
from models.legacy_export import Export
from src.import_tool import LegacyImportTool, load_config, rewrite_file_path, upload_path_for
from src.migrators.content_repository import ContentRepository
from src.migrators.media_uploader import MediaFetchError, MediaUploader
from src.migrators.storage import LocalStorage

SITE_ID = str(uuid.uuid4())

EXPORT = {
    "Developers": [
        {
            "Id": 1,
            "Url": "bioware",
            "Name": "BioWare",
            "Desc": "<p>Studio</p>",
            "Logo": "https://old.example.com/logos/bioware.png",
            "FullUrl": "https://old.example.com/developers/bioware/",
        }
    ],
    "Games": [
        {
            "Id": 10,
            "DeveloperId": 1,
            "Url": "me2",
            "Title": "Mass Effect 2",
            "Keywords": "rpg, shooter",
            "Platforms": "PC, Xbox 360",
            "Logo": "https://old.example.com/logos/me2.png",
            "SmallLogo": "",
            "Date": "2010-01-26T00:00:00Z",
        }
    ],
    "Topics": [{"Id": 5, "Title": "Community", "Url": "community"}],
    "News": [
        {
            "Id": 100,
            "GameId": 10,
            "Url": "me2-release",
            "Title": "Release",
            "ShortText": "<p>Short</p>",
            "AddText": "<p>More</p>",
            "Pub": 1,
            "Date": "2010-01-26T10:00:00Z",
            "TwitterId": 123,
            "ForumTopicId": 7,
            "ForumPostId": 8,
            "FullUrl": "https://old.example.com/news/100.html",
        },
        {
            "Id": 101,
            "GameId": 10,
            "TopicId": 5,
            "Url": "community-news",
            "Title": "Community news",
            "ShortText": "<p>Hello <img src=\"https://old.example.com/img/a.jpg\"> world</p>",
            "Date": "2011-05-01T10:00:00Z",
        },
    ],
    "ArticlesCats": [
        {"Id": 1, "Title": "Guides", "GameId": 10},
        {"Id": 2, "CatId": 1, "Title": "Walkthrough", "GameId": 10},
    ],
    "Articles": [
        {"Id": 3, "Url": "guide", "CatId": 2, "Title": "Guide", "Text": "<p>Step one</p>", "Pub": 1,
         "Date": "2010-02-01T10:00:00Z"},
        {"Id": 4, "Url": "lost", "CatId": 99, "Title": "Lost", "Text": "<p>Orphan</p>", "Date": "2010-02-02T10:00:00Z"},
    ],
    "FilesCats": [{"Id": 1, "Title": "Mods", "DeveloperId": 1}],
    "Files": [
        {"Id": 7, "Url": "patch", "CatId": 1, "Title": "Patch", "Link": "/old/patch.zip", "Size": 10,
         "Date": "2010-03-01T10:00:00Z"},
        {"Id": 8, "Url": "trailer", "CatId": 1, "Title": "Trailer", "YtId": "abc123", "Desc": "<p>Watch</p>",
         "Date": "2010-03-02T10:00:00Z"},
    ],
    "GalleryCats": [{"Id": 1, "Title": "Screens", "GameId": 10}],
    "GalleryPics": [
        {"Id": 50, "CatId": 1, "Date": "2012-01-01T10:00:00Z", "Desc": "<p>Nice</p>",
         "Files": [{"Url": "https://old.example.com/g/50a.jpg"}, {"Url": "https://old.example.com/g/50b.jpg"}]},
        {"Id": 51, "CatId": 1, "Date": "2012-01-01T12:00:00Z", "Files": [{"Url": "https://old.example.com/g/51.jpg"}]},
        {"Id": 52, "CatId": 1, "Date": "2012-02-01T10:00:00Z", "Files": [{"Url": "https://old.example.com/broken.jpg"}]},
    ],
}


class FakeFetcher:
    def __init__(self):
        self.calls = []

    def __call__(self, url):
        self.calls.append(url)
        if "broken" in url:
            raise MediaFetchError(url, "HTTP 404")
        return b"bytes"


def _config(tmp_path, **import_options):
    options = {"news": True, "articles": True, "files": True, "gallery": True}
    options.update(import_options)
    return {
        "target": {
            "site_id": SITE_ID,
            "output_path": str(tmp_path / "files"),
            "file_path_rewrites": {"/old/": "/new/"},
        },
        "import": options,
        "redirects": {"legacy_base_url": "https://old.example.com"},
    }


@pytest.fixture
def repository():
    repo = ContentRepository()
    yield repo
    repo.close()


def _tool(tmp_path, repository, log_capture, **import_options):
    storage = LocalStorage(str(tmp_path / "files"), "https://cdn.test")
    uploader = MediaUploader(storage, FakeFetcher(), files_base_url="https://files.test/files", log=log_capture)
    return LegacyImportTool(_config(tmp_path, **import_options), repository=repository, uploader=uploader, log=log_capture)


def _post(tool, url):
    return next(p for p in tool.posts if p.url == url)


def _read_jsonl(path):
    with open(path, "r", encoding="utf-8") as f:
        return [json.loads(line) for line in f]


def test_full_import(tmp_path, repository, log_capture):
    tool = _tool(tmp_path, repository, log_capture)
    assert tool.run(Export.model_validate(EXPORT)) is True
    assert not repository.in_transaction

    stats = repository.stats()
    assert stats["developers"] == 1
    assert stats["games"] == 1
    assert stats["topics"] == 1
    assert stats["posts"] == 7
    assert stats["tags"] == 4
    assert stats["publish_records"] == 2

    news = _post(tool, "me2-release_100")
    assert [type(b) for b in news.blocks] == [TextBlock, CutBlock, TextBlock]
    assert news.section_ids == [tool.games_map[10]]
    assert news.is_published
    assert news.site_ids == [uuid.UUID(SITE_ID)]

    community = _post(tool, "community-news_101")
    assert [type(b) for b in community.blocks] == [TextBlock, PictureBlock, TextBlock]
    assert community.section_ids == [tool.topics_map[5]]
    assert not community.is_published
    assert community.blocks[1].data.picture.path == "posts/2011/5"

    guide = _post(tool, "guide_3")
    tag_titles = {t.id: t.title for t in tool.tags.created}
    assert [tag_titles[i] for i in guide.tag_ids] == ["Guides", "Walkthrough"]
    assert guide.section_ids == [tool.games_map[10]]

    lost = _post(tool, "lost_4")
    assert lost.tag_ids == []
    errors = _read_jsonl(os.path.join("reports", "import", "errors.jsonl"))
    assert any(e["code"] == "MISSING_CATEGORY" and e["legacy_id"] == 4 for e in errors)

    patch = _post(tool, "patch_7")
    assert isinstance(patch.blocks[-1], FileBlock)
    assert patch.blocks[-1].data.file.public_uri == "https://files.test/files/new/patch.zip"
    assert patch.section_ids == [tool.developers_map[1]]

    trailer = _post(tool, "trailer_8")
    assert [type(b) for b in trailer.blocks] == [TextBlock, YoutubeBlock]

    gallery = _post(tool, "gallery_50")
    assert [type(b) for b in gallery.blocks] == [GalleryBlock, TextBlock, PictureBlock]
    assert gallery.title == "Screens"
    assert not any(p.url == "gallery_52" for p in tool.posts)
    assert any(e["code"] == "MEDIA_UPLOAD" and e["legacy_id"] == 52 for e in errors)

    section_blocks = repository.blocks_for(tool.developers_map[1])
    assert [b["type"] for b in section_blocks] == ["text"]
    assert (tmp_path / "files" / "sections" / "developers" / "bioware.png").exists()

    with open(os.path.join("reports", "import", "redirects.map"), "r", encoding="utf-8") as f:
        lines = f.read().splitlines()
    assert "/developers/bioware/ /developers/bioware.html;" in lines
    assert "/news/100.html /posts/me2-release_100.html;" in lines


def test_dry_run_leaves_nothing_behind(tmp_path, repository, log_capture):
    tool = _tool(tmp_path, repository, log_capture, dry_run=True)
    assert tool.run(Export.model_validate(EXPORT)) is True
    assert len(tool.posts) == 7
    assert all(count == 0 for count in repository.stats().values())
    assert not (tmp_path / "files" / "sections").exists()
    assert any("Dry-run" in m for m in log_capture.messages("WARNING"))


def test_failure_rolls_back(tmp_path, log_capture):
    class BrokenRepository(ContentRepository):
        def add_post(self, post):
            raise RuntimeError("disk full")

    repo = BrokenRepository()
    try:
        tool = _tool(tmp_path, repo, log_capture)
        assert tool.run(Export.model_validate(EXPORT)) is False
        assert not repo.in_transaction
        assert all(count == 0 for count in repo.stats().values())
        assert not (tmp_path / "files" / "sections").exists()
        errors = _read_jsonl(os.path.join("reports", "import", "errors.jsonl"))
        assert errors[-1]["code"] == "IMPORT_FAILED"
        assert "disk full" in errors[-1]["error"]
    finally:
        repo.close()


def test_second_run_skips_existing_content(tmp_path, repository, log_capture):
    export = Export.model_validate(EXPORT)
    assert _tool(tmp_path, repository, log_capture).run(export) is True

    second = _tool(tmp_path, repository, log_capture)
    assert second.run(export) is True
    assert second.posts == []
    stats = repository.stats()
    assert stats["posts"] == 7
    assert stats["developers"] == 1
    assert stats["tags"] == 4
    skipped = [e for e in _read_jsonl(os.path.join("reports", "import", "success.jsonl")) if e["code"] == "POST_SKIPPED"]
    assert len(skipped) == 7


def test_limit_stops_post_import(tmp_path, repository, log_capture):
    tool = _tool(tmp_path, repository, log_capture, articles=False, files=False, gallery=False, limit=1)
    assert tool.run(Export.model_validate(EXPORT)) is True
    assert [p.url for p in tool.posts] == ["community-news_101"]


def test_invalid_site_id_is_rejected(tmp_path, repository, log_capture):
    tool = _tool(tmp_path, repository, log_capture)
    tool.config["target"]["site_id"] = "nope"
    with pytest.raises(Exception):
        tool.run(Export())
    assert not repository.in_transaction


def test_load_config_defaults_and_env(tmp_path, monkeypatch):
    rewrites = tmp_path / "rewrites.json"
    rewrites.write_text(json.dumps({"/a/": "/b/"}), encoding="utf-8")
    monkeypatch.setenv("BRC_IMPORT_NEWS", "true")
    monkeypatch.setenv("BRC_EXPORT_API_TOKEN", "secret")
    monkeypatch.setenv("BRC_REWRITES_FILE_PATH", str(rewrites))
    config = load_config({"import": {"news": False}})
    assert config["import"]["news"] is True
    assert config["import"]["articles"] is False
    assert config["source"]["api_token"] == "secret"
    assert config["target"]["file_path_rewrites"] == {"/a/": "/b/"}
    assert config["pagination"]["threshold"] == 2


def test_load_config_reads_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"import": {"limit": 5}}), encoding="utf-8")
    config = load_config(config_file=str(path))
    assert config["import"]["limit"] == 5
    assert config["media"]["requests_per_minute"] == 180


def test_small_helpers():
    from datetime import datetime

    assert upload_path_for(datetime(2014, 7, 3)) == "posts/2014/7"
    assert rewrite_file_path("/old/x.zip", {"/old/": "/new/"}) == "/new/x.zip"
    assert rewrite_file_path("/other/x.zip", {"/old/": "/new/"}) == "/other/x.zip"
