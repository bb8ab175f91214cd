"""
JSON Lines event reports of an import run.

Every imported, reused, skipped or failed entity leaves one line in
``reports/import/success.jsonl`` or ``reports/import/errors.jsonl``.  The
files are append-only so several runs can be compared afterwards, e.g.
with ``jq 'select(.code == "MEDIA_UPLOAD")'``.

``report_error`` and ``report_ok`` share the event table below; a code the
table does not know is used as its own message.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

# Event code -> message, for failures and successes alike.
ERRORS: Dict[str, str] = {
    "MEDIA_UPLOAD": "Failed to upload media",
    "MISSING_CATEGORY": "Category referenced by the entity is missing from the export",
    "MISSING_SECTION": "Section referenced by the entity was not imported",
    "IMPORT_FAILED": "Import run failed and was rolled back",
    "SECTION_IMPORTED": "Section imported",
    "SECTION_REUSED": "Section already exists, reusing it",
    "POST_IMPORTED": "Post imported",
    "POST_SKIPPED": "Post with this url already exists",
}

_REPORT_DIR = os.path.join("reports", "import")
_ERROR_LOG = os.path.join(_REPORT_DIR, "errors.jsonl")
_OK_LOG = os.path.join(_REPORT_DIR, "success.jsonl")


def _append(path: str, entry: Dict[str, Any]) -> None:
    os.makedirs(_REPORT_DIR, exist_ok=True)
    with open(path, "a", encoding="utf-8") as out:
        out.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")


def _entry(code: str, entity: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "code": code,
        "message": ERRORS.get(code, code),
        "kind": entity.get("kind"),
        "legacy_id": entity.get("id"),
        "url": entity.get("url"),
        "title": entity.get("title"),
    }


def report_error(code: str, entity: Dict[str, Any], exc: Optional[Exception] = None) -> None:
    """Record a failure for ``entity``.

    Parameters
    ----------
    code:
        Event code, normally one of :data:`ERRORS`.
    entity:
        Legacy record involved.  ``kind``, ``id``, ``url`` and ``title`` are
        copied into the entry when present.
    exc:
        The exception behind the failure, stored as text under ``error``.
    """
    entry = _entry(code, entity)
    if exc is not None:
        entry["error"] = str(exc)
    print(f"[ERROR] {entry['message']} - {entity.get('url', '')}")
    _append(_ERROR_LOG, entry)


def report_ok(code: str, entity: Dict[str, Any], extra: Optional[Dict[str, Any]] = None) -> None:
    """Record a successful step for ``entity``; ``extra`` fields are merged in."""
    entry = _entry(code, entity)
    if extra:
        entry.update(extra)
    print(f"[OK] {entry['message']} - {entity.get('url', '')}")
    _append(_OK_LOG, entry)
