"""
Loading of the legacy site export.

The legacy site dumps everything the importer needs (sections, news,
articles, files, gallery) into a single JSON document.  It is either read
from disk or downloaded from the export API with a bearer token, then
validated into :class:`models.legacy_export.Export`.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

import requests
from pydantic import ValidationError

from models.legacy_export import Export
from src.utils.log import LogFn, log_message


class ExportLoadError(Exception):
    """The export could not be read, downloaded or validated."""


def parse_export(raw: Any, *, source: str = "export") -> Export:
    """Validate a decoded export document.

    Raises:
        ExportLoadError: If ``raw`` does not match the export shape.
    """
    if not isinstance(raw, dict):
        raise ExportLoadError(f"{source}: expected a JSON object, got {type(raw).__name__}")
    try:
        return Export.model_validate(raw)
    except ValidationError as e:
        raise ExportLoadError(f"{source}: invalid export data: {e}") from e


def load_export_file(file_path: str) -> Export:
    """Read and validate the export stored at ``file_path``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ExportLoadError: If it is not valid JSON or not a valid export.
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Export file not found: {file_path}")
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ExportLoadError(f"Could not read export file {file_path}: {e}") from e
    return parse_export(raw, source=file_path)


def download_export(
    api_uri: str,
    token: str,
    *,
    timeout: float = 300.0,
    session: Optional[requests.Session] = None,
) -> Export:
    """Fetch the export from the legacy API.

    Raises:
        ExportLoadError: On network errors, non-2xx answers or invalid JSON.
    """
    http = session or requests.Session()
    headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
    try:
        resp = http.get(api_uri, headers=headers, timeout=timeout)
        resp.raise_for_status()
        raw = resp.json()
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else "?"
        raise ExportLoadError(f"Export API {api_uri} answered HTTP {status}") from e
    except requests.RequestException as e:
        raise ExportLoadError(f"Could not download export from {api_uri}: {e}") from e
    except ValueError as e:
        raise ExportLoadError(f"Export API {api_uri} returned invalid JSON: {e}") from e
    return parse_export(raw, source=api_uri)


def load_export(
    source: Dict[str, Any],
    *,
    session: Optional[requests.Session] = None,
    log: LogFn = log_message,
) -> Export:
    """
    Load the export described by the ``source`` config section: the file
    at ``import_file_path`` when set, otherwise ``api_uri`` with
    ``api_token``.
    """
    file_path = source.get("import_file_path")
    if file_path:
        log(f"Read data from {file_path}", "INFO")
        return load_export_file(file_path)

    api_uri = source.get("api_uri")
    if not api_uri:
        raise ExportLoadError("Neither an export file nor an export API url is configured")
    log(f"Download data from {api_uri}", "INFO")
    export = download_export(api_uri, source.get("api_token", ""), session=session)
    log("Data is downloaded", "INFO")
    return export
