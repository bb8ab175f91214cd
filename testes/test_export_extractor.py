import json
import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
import requests

from src.extractors.export_extractor import (
    ExportLoadError,
    download_export,
    load_export,
    load_export_file,
    parse_export,
)

SAMPLE = {"Developers": [{"Id": 1, "Url": "bioware", "Name": "BioWare"}], "News": []}


class FakeResponse:
    def __init__(self, status_code=200, payload=None, bad_json=False):
        self.status_code = status_code
        self.payload = payload
        self.bad_json = bad_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}", response=self)

    def json(self):
        if self.bad_json:
            raise ValueError("Expecting value")
        return self.payload


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, headers, timeout))
        if self.exc is not None:
            raise self.exc
        return self.response


def test_parse_export_rejects_non_objects():
    with pytest.raises(ExportLoadError):
        parse_export([1, 2])


def test_parse_export_wraps_validation_errors():
    with pytest.raises(ExportLoadError) as info:
        parse_export({"news": [{"title": "missing id"}]}, source="dump.json")
    assert "dump.json" in str(info.value)


def test_load_export_file(tmp_path):
    path = tmp_path / "export.json"
    path.write_text(json.dumps(SAMPLE), encoding="utf-8")
    export = load_export_file(str(path))
    assert export.developers[0].url == "bioware"


def test_load_export_file_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_export_file(str(tmp_path / "missing.json"))
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ExportLoadError):
        load_export_file(str(broken))


def test_download_export_sends_bearer_token():
    session = FakeSession(FakeResponse(payload=SAMPLE))
    export = download_export("https://old.example.com/api/export", "secret", session=session)
    assert export.developers[0].name == "BioWare"
    url, headers, timeout = session.calls[0]
    assert url == "https://old.example.com/api/export"
    assert headers["Authorization"] == "Bearer secret"
    assert timeout == 300.0


@pytest.mark.parametrize(
    "session",
    [
        FakeSession(FakeResponse(status_code=401)),
        FakeSession(FakeResponse(bad_json=True)),
        FakeSession(exc=requests.ConnectionError("refused")),
    ],
)
def test_download_export_failures(session):
    with pytest.raises(ExportLoadError):
        download_export("https://old.example.com/api/export", "t", session=session)


def test_load_export_prefers_file(tmp_path, log_capture):
    path = tmp_path / "export.json"
    path.write_text(json.dumps(SAMPLE), encoding="utf-8")
    session = FakeSession(exc=AssertionError("must not download"))
    load_export({"import_file_path": str(path), "api_uri": "https://x"}, session=session, log=log_capture)
    assert session.calls == []
    assert log_capture.messages("INFO") == [f"Read data from {path}"]


def test_load_export_downloads_without_file(log_capture):
    session = FakeSession(FakeResponse(payload=SAMPLE))
    load_export({"api_uri": "https://x/api", "api_token": "t"}, session=session, log=log_capture)
    assert log_capture.messages("INFO") == ["Download data from https://x/api", "Data is downloaded"]


def test_load_export_without_any_source():
    with pytest.raises(ExportLoadError):
        load_export({})
