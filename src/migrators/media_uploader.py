"""
Media download and re-upload helpers for the legacy import.

This module moves files referenced by legacy content into the destination
storage.  :class:`HttpFetcher` downloads bytes with ``requests`` behind a
simple rate limiter (the legacy CDN is old and easily overwhelmed), and
:class:`MediaUploader` combines it with a storage backend:

* the file name is derived from the URL when the caller has none;
* a single download attempt is made, any failure is logged and turned
  into ``None`` so callers can simply omit the media;
* successful uploads are memoized by source URL for the duration of the
  run, so an image referenced by several posts is stored once.

Usage example::

    storage = LocalStorage("output/files", "https://cdn.example.com/files")
    uploader = MediaUploader(storage, HttpFetcher(rpm=120))
    uploader.begin_batch()
    ref = uploader.upload("https://old.example.com/images/logo.jpg", "sections/games")
    uploader.finish_batch()
"""

from __future__ import annotations

import os
import posixpath
import threading
import time
import uuid
from datetime import datetime
from typing import Callable, Dict, Optional, Protocol
from urllib.parse import unquote, urlparse

import requests

from models.content_blocks import MediaRef
from src.utils.log import LogFn, log_message

###############################################################################
# Rate limiting and fetching
###############################################################################


class MediaFetchError(Exception):
    """A media download failed (transport error or non-2xx answer)."""

    def __init__(self, url: str, detail: str) -> None:
        super().__init__(f"{url}: {detail}")
        self.url = url
        self.detail = detail


class RateLimiter:
    """
    Simple time-based rate limiter.  Ensures that no more than ``rpm``
    requests are dispatched per minute.  ``rpm <= 0`` disables waiting.
    """

    def __init__(self, rpm: int = 200) -> None:
        self.rpm = rpm
        self.interval = 60.0 / float(rpm) if rpm > 0 else 0.0
        self._last = 0.0

    def wait(self, time_fn: Callable[[], float] = time.time, sleep_fn: Callable[[float], None] = time.sleep) -> None:
        if self.interval <= 0:
            return
        now = time_fn()
        dt = now - self._last
        if dt < self.interval:
            sleep_fn(self.interval - dt)
        self._last = time_fn()


class HttpFetcher:
    """
    ``fetch_bytes(url)`` over ``requests``.  Exactly one GET per call; any
    failure surfaces as :class:`MediaFetchError`, never as a partial body.
    """

    def __init__(
        self,
        *,
        rpm: int = 180,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        user_agent: str = "legacy-importer/1.0",
    ) -> None:
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", user_agent)
        self._limiter = RateLimiter(rpm)

    def __call__(self, url: str) -> bytes:
        self._limiter.wait()
        try:
            resp = self.session.get(url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else "?"
            raise MediaFetchError(url, f"HTTP {status}") from e
        except requests.RequestException as e:
            raise MediaFetchError(url, str(e)) from e
        return resp.content


###############################################################################
# Upload
###############################################################################


class MediaStorage(Protocol):
    def save_file(self, data: bytes, file_name: str, path: str) -> MediaRef: ...

    def begin_batch(self) -> None: ...

    def finish_batch(self) -> int: ...

    def discard_batch(self) -> int: ...


def file_name_from_url(url: str) -> str:
    """Last path segment of ``url`` (URL-decoded), or ``""`` if there is none."""
    if not url:
        return ""
    try:
        path = urlparse(url).path
    except ValueError:
        return ""
    return unquote(posixpath.basename(path))


class MediaUploader:
    """
    Download-and-store with per-run memoization.

    :param storage: Destination storage (see :mod:`src.migrators.storage`).
    :param fetch_bytes: Callable returning the bytes behind a URL and
        raising on failure.  Defaults to a fresh :class:`HttpFetcher`.
    :param files_base_url: Public base URL for files that already live on
        the destination file server (see :meth:`upload_by_path`).
    :param cache: Whether to reuse results for repeated source URLs.
    :param log: ``log(message, level)`` sink.
    """

    def __init__(
        self,
        storage: MediaStorage,
        fetch_bytes: Optional[Callable[[str], bytes]] = None,
        *,
        files_base_url: str = "",
        cache: bool = True,
        log: LogFn = log_message,
    ) -> None:
        self.storage = storage
        self.fetch_bytes = fetch_bytes or HttpFetcher()
        self.files_base_url = files_base_url.rstrip("/")
        self.cache_enabled = cache
        self._log = log
        self._cache: Dict[str, MediaRef] = {}
        self._lock = threading.Lock()
        self.uploaded = 0
        self.failed = 0

    def upload(self, url: str, target_path: str, file_name: Optional[str] = None) -> Optional[MediaRef]:
        """
        Download ``url`` and store it under ``target_path``.

        :return: The stored :class:`MediaRef`, or ``None`` when no file name
            can be derived or anything goes wrong.  Never raises.
        """
        file_name = file_name or file_name_from_url(url)
        if not file_name:
            return None

        if self.cache_enabled:
            with self._lock:
                cached = self._cache.get(url)
            if cached is not None:
                return cached

        try:
            self._log(f"Downloading file from url {url}", "INFO")
            data = self.fetch_bytes(url)
            item = self.storage.save_file(data, file_name, target_path)
        except Exception as e:
            self.failed += 1
            self._log(f"Error while uploading file from url: {url}: {e}", "ERROR")
            return None

        self.uploaded += 1
        if self.cache_enabled:
            with self._lock:
                # Another worker may have won the race; keep the first result.
                item = self._cache.setdefault(url, item)
        return item

    def upload_by_path(self, path: str, size: int, date: datetime) -> MediaRef:
        """
        Reference a file that already sits on the destination file server
        under ``files/<path>``; nothing is downloaded.
        """
        clean = "/" + path.replace("\\", "/").lstrip("/")
        file_path = f"files{clean}"
        return MediaRef(
            id=uuid.uuid4(),
            public_uri=f"{self.files_base_url}{clean}",
            file_path=file_path,
            path=posixpath.dirname(file_path),
            file_name=os.path.basename(clean),
            file_size=size,
            type="other",
            date_added=date,
            date_updated=date,
        )

    def begin_batch(self) -> None:
        self.storage.begin_batch()

    def finish_batch(self) -> int:
        return self.storage.finish_batch()

    def discard_batch(self) -> int:
        with self._lock:
            self._cache.clear()
        return self.storage.discard_batch()
