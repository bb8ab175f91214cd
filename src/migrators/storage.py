"""
File storage for imported media.

:class:`LocalStorage` writes uploaded bytes under a root directory and
hands back :class:`models.content_blocks.MediaRef` records pointing at the
public URL the files will be served from.  Between :meth:`begin_batch` and
:meth:`finish_batch` writes are buffered in memory so a failed import run
can drop them with :meth:`discard_batch` instead of leaving orphan files.
"""

from __future__ import annotations

import os
import posixpath
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Set, Tuple

from models.content_blocks import MediaRef

_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".svg"}


class StorageError(Exception):
    """Raised when a file cannot be stored."""


def _clean_dir(path: str) -> str:
    return (path or "").replace("\\", "/").strip("/")


def _media_type(file_name: str) -> str:
    ext = os.path.splitext(file_name)[1].lower()
    return "image" if ext in _IMAGE_EXTENSIONS else "other"


class LocalStorage:
    def __init__(self, root_dir: str, public_base_url: str) -> None:
        self.root_dir = root_dir
        self.public_base_url = public_base_url.rstrip("/")
        self._batch: Optional[List[Tuple[str, bytes]]] = None
        self._reserved: Set[str] = set()

    # --- batching ---

    def begin_batch(self) -> None:
        self._batch = []

    def finish_batch(self) -> int:
        """Write every buffered file. Returns the number of files written."""
        pending = self._batch or []
        self._batch = None
        for file_path, data in pending:
            self._write(file_path, data)
        return len(pending)

    def discard_batch(self) -> int:
        pending = self._batch or []
        self._batch = None
        for file_path, _ in pending:
            self._reserved.discard(file_path)
        return len(pending)

    @property
    def in_batch(self) -> bool:
        return self._batch is not None

    # --- files ---

    def save_file(self, data: bytes, file_name: str, path: str) -> MediaRef:
        if not file_name:
            raise StorageError("file name is required")
        directory = _clean_dir(path)
        file_path = self._unique_path(directory, file_name)
        if self._batch is not None:
            self._batch.append((file_path, data))
        else:
            self._write(file_path, data)
        now = datetime.now(timezone.utc)
        return MediaRef(
            id=uuid.uuid4(),
            public_uri=f"{self.public_base_url}/{file_path}",
            file_path=file_path,
            path=directory,
            file_name=posixpath.basename(file_path),
            file_size=len(data),
            type=_media_type(file_name),
            date_added=now,
            date_updated=now,
        )

    def _unique_path(self, directory: str, file_name: str) -> str:
        """Pick a path no earlier upload of this run (or a previous run) took."""
        base, ext = os.path.splitext(file_name)
        candidate = posixpath.join(directory, file_name) if directory else file_name
        counter = 0
        while candidate in self._reserved or os.path.exists(self._full_path(candidate)):
            counter += 1
            name = f"{base}_{counter}{ext}"
            candidate = posixpath.join(directory, name) if directory else name
        self._reserved.add(candidate)
        return candidate

    def _full_path(self, file_path: str) -> str:
        return os.path.join(self.root_dir, *file_path.split("/"))

    def _write(self, file_path: str, data: bytes) -> None:
        full_path = self._full_path(file_path)
        try:
            os.makedirs(os.path.dirname(full_path) or ".", exist_ok=True)
            with open(full_path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise StorageError(f"Could not write {full_path}: {e}") from e
