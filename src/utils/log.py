"""
Console and file logging shared by the importer and its components.

Messages go to stdout as ``[LEVEL] message`` and are appended to
``reports/import/import.log``.  Components that log take a ``log`` callable
with this signature so callers (and tests) can redirect the output.
"""

from __future__ import annotations

import os
from typing import Callable

LogFn = Callable[[str, str], None]

_LOG_DIR = os.path.join("reports", "import")
_LOG_FILE = os.path.join(_LOG_DIR, "import.log")


def log_message(message: str, level: str = "INFO") -> None:
    print(f"[{level}] {message}")
    os.makedirs(_LOG_DIR, exist_ok=True)
    with open(_LOG_FILE, "a", encoding="utf-8") as f:
        f.write(f"{level}: {message}\n")
