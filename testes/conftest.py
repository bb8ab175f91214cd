import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from models.content_blocks import MediaRef


@pytest.fixture(autouse=True)
def _isolated_reports(tmp_path, monkeypatch):
    # Log and report files are written relative to the working directory.
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("BRC_"):
            monkeypatch.delenv(name, raising=False)


class FakeUploader:
    """Records upload calls and returns a MediaRef for every URL not in ``failing``."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    def upload(self, url, target_path, file_name=None):
        self.calls.append((url, target_path, file_name))
        if url in self.failing:
            return None
        name = file_name or url.rstrip("/").rsplit("/", 1)[-1]
        if not name:
            return None
        return MediaRef(
            public_uri=f"https://cdn.test/{target_path}/{name}",
            file_path=f"{target_path}/{name}",
            path=target_path,
            file_name=name,
            file_size=100,
            type="image",
        )


class LogCapture:
    def __init__(self):
        self.records = []

    def __call__(self, message, level="INFO"):
        self.records.append((level, message))

    def messages(self, level):
        return [m for lvl, m in self.records if lvl == level]


@pytest.fixture
def fake_uploader():
    return FakeUploader()


@pytest.fixture
def log_capture():
    return LogCapture()


@pytest.fixture
def make_uploader():
    return FakeUploader
