"""
Top-level package for the legacy site import utility.

This package bundles all components required to load the legacy JSON
export, convert legacy HTML into content blocks, re-upload referenced
media, persist sections and posts, and generate redirect maps.  Modules
are split into subpackages:

* :mod:`src.extractors` – loading of the export file or API
* :mod:`src.parsers` – HTML to content block conversion
* :mod:`src.migrators` – media upload, file storage and persistence
* :mod:`src.utils` – logging, error reports, tags and redirects

Each layer has no direct knowledge of configuration or execution
strategy; orchestration is handled in :mod:`src.import_tool`.
"""
