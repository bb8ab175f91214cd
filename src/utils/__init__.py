"""
Utility helpers used by the import tool.

This subpackage exposes convenience functions for console/file logging,
structured JSONL event logs and redirect map generation.
"""

from .errors import ERRORS, report_error, report_ok
from .log import log_message
from .redirects import Redirect, build_redirect, generate_redirects_map

__all__ = [
    "ERRORS",
    "report_error",
    "report_ok",
    "log_message",
    "Redirect",
    "build_redirect",
    "generate_redirects_map",
]
