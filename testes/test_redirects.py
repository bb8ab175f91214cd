import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from src.utils.redirects import Redirect, build_redirect, generate_redirects_map, legacy_path, public_path


def test_public_paths():
    assert public_path("post", "news_10") == "/posts/news_10.html"
    assert public_path("game", "me2") == "/games/me2.html"
    with pytest.raises(ValueError):
        public_path("forum", "x")


def test_legacy_path_variants():
    assert legacy_path("https://old.example.com/news/10.html") == "/news/10.html"
    assert legacy_path("https://old.example.com/view.php?id=3") == "/view.php?id=3"
    assert legacy_path("/games/me2/") == "/games/me2/"
    assert legacy_path("games/me2", "https://old.example.com/site/") == "/site/games/me2"
    assert legacy_path("") == ""


def test_build_redirect():
    redirect = build_redirect("game", "me2", "https://old.example.com/games/me2/")
    assert redirect == Redirect("/games/me2/", "/games/me2.html")
    assert build_redirect("game", "me2", "/games/me2.html") is None
    assert build_redirect("game", "me2", None) is None


def test_generate_redirects_map(tmp_path):
    out = tmp_path / "map" / "redirects.map"
    redirects = [
        Redirect("/news/1.html", "/posts/a.html"),
        Redirect("/news/1.html", "/posts/b.html"),
        Redirect("/files/my file.zip", "/posts/c.html"),
    ]
    assert generate_redirects_map(redirects, out_path=str(out)) == str(out)
    assert out.read_text(encoding="utf-8").splitlines() == [
        "/news/1.html /posts/a.html;",
        '"/files/my file.zip" /posts/c.html;',
    ]
