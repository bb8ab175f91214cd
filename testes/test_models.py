import os
import sys
import uuid

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
from pydantic import TypeAdapter, ValidationError

from models.content_blocks import (
    AnyBlock,
    CutBlock,
    GalleryBlock,
    GalleryBlockData,
    MediaRef,
    TextBlock,
    TextBlockData,
    YoutubeBlock,
    YoutubeBlockData,
    block_to_record,
)
from models.destination import Post, Section
from models.legacy_export import Export, NewsExport


def _ref(name="a.jpg"):
    return MediaRef(public_uri=f"https://cdn/{name}", file_path=f"p/{name}", file_name=name)


def test_gallery_needs_two_pictures():
    with pytest.raises(ValidationError):
        GalleryBlockData(pictures=[_ref()])
    assert len(GalleryBlockData(pictures=[_ref("a"), _ref("b")]).pictures) == 2


@pytest.mark.parametrize("text", ["", "   ", "\n"])
def test_blank_text_is_rejected(text):
    with pytest.raises(ValidationError):
        TextBlockData(text=text)


def test_record_uses_camel_case():
    block = YoutubeBlock(data=YoutubeBlockData(youtube_id="abc"), position=3)
    record = block_to_record(block)
    assert record["type"] == "youtube"
    assert record["position"] == 3
    assert record["data"] == {"youtubeId": "abc"}
    assert isinstance(record["id"], str)


def test_cut_block_default_payload():
    record = block_to_record(CutBlock())
    assert record["data"] == {"buttonText": ""}


def test_any_block_dispatches_on_type():
    adapter = TypeAdapter(AnyBlock)
    text = TextBlock(data=TextBlockData(text="hi"))
    restored = adapter.validate_python(block_to_record(text))
    assert isinstance(restored, TextBlock)
    assert restored.id == text.id
    gallery = adapter.validate_python(
        {"type": "gallery", "data": {"pictures": [_ref("a").model_dump(), _ref("b").model_dump()]}}
    )
    assert isinstance(gallery, GalleryBlock)


def test_negative_position_is_rejected_on_assignment():
    block = TextBlock(data=TextBlockData(text="hi"))
    with pytest.raises(ValidationError):
        block.position = -1


def test_add_blocks_renumbers_from_zero():
    post = Post(url="news_1", title="News")
    post.add_blocks([TextBlock(data=TextBlockData(text="a"), position=7)])
    post.add_blocks([CutBlock(position=0), TextBlock(data=TextBlockData(text="b"))])
    assert [b.position for b in post.blocks] == [0, 1, 2]


def test_post_deduplicates_tag_and_section_ids():
    a, b = uuid.uuid4(), uuid.uuid4()
    post = Post(url="x", title="X", tag_ids=[a, b, a], section_ids=[b, b])
    assert post.tag_ids == [a, b]
    assert post.section_ids == [b]


def test_section_type_is_restricted():
    with pytest.raises(ValidationError):
        Section(url="x", title="X", type="forum")


def test_export_accepts_pascal_and_camel_keys():
    export = Export.model_validate(
        {
            "Developers": [{"Id": 1, "Url": "bioware", "Name": "BioWare"}],
            "news": [{"id": 5, "title": "Hi", "shortText": "<p>x</p>", "GameId": 3}],
            "GalleryPics": [{"Id": 9, "Files": [{"Url": "https://cdn/9/0.jpg", "FileName": "0.jpg"}]}],
            "unknownKey": [],
        }
    )
    assert export.developers[0].name == "BioWare"
    assert export.news[0].short_text == "<p>x</p>"
    assert export.news[0].game_id == 3
    assert export.gallery_pics[0].files[0].file_name == "0.jpg"


def test_news_defaults():
    news = NewsExport.model_validate({"id": 1})
    assert news.pub == 0
    assert news.date.year == 1970
    assert news.twitter_id is None


def test_gallery_lookup_keeps_file_order():
    export = Export.model_validate(
        {"galleryPics": [{"id": 4, "files": [{"url": "u0"}, {"url": "u1"}]}, {"id": 5, "files": []}]}
    )
    lookup = export.gallery_lookup()
    assert [f.url for f in lookup[4]] == ["u0", "u1"]
    assert lookup[5] == []
