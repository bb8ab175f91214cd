"""
Extractors for the legacy site export.

The export is a single JSON document, read from disk or downloaded from
the export API, and validated into the models of
:mod:`models.legacy_export`.
"""

from .export_extractor import ExportLoadError, download_export, load_export, load_export_file

__all__ = ["ExportLoadError", "download_export", "load_export", "load_export_file"]
