"""
Resolution of ``<img>`` sources before they are re-uploaded.

Legacy posts often embed gallery thumbnails
(``.../gallery/thumb/<picId>/<w>/<h>/<index>``) instead of the picture
itself.  When the thumbnail points at a picture present in the export,
the full-size file is uploaded instead.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, Sequence

from models.content_blocks import MediaRef

THUMB_URL_RE = re.compile(r"gallery/thumb/([0-9]+)/[0-9]+/[0-9]+/?([0-9]+)?")


class GalleryFile(Protocol):
    url: str
    file_name: Optional[str]


PictureSet = Mapping[int, Sequence[GalleryFile]]


class Uploader(Protocol):
    def upload(self, url: str, target_path: str, file_name: Optional[str] = None) -> Optional[MediaRef]: ...


@dataclass(frozen=True)
class ResolvedSource:
    url: str
    file_name: Optional[str] = None
    from_gallery: bool = False


def resolve_image_source(src: str, gallery_lookup: Optional[PictureSet] = None) -> ResolvedSource:
    """
    Swap a gallery thumbnail URL for the canonical picture URL when the
    picture id is known and the file index is in range; otherwise return
    ``src`` as is.
    """
    match = THUMB_URL_RE.search(src or "")
    if not match or not gallery_lookup:
        return ResolvedSource(url=src)

    pic_id = int(match.group(1))
    index = int(match.group(2)) if match.group(2) else 0
    files = gallery_lookup.get(pic_id) if pic_id > 0 else None
    if not files or index >= len(files):
        return ResolvedSource(url=src)

    picked = files[index]
    return ResolvedSource(url=picked.url, file_name=picked.file_name or None, from_gallery=True)


def upload_image(
    src: str,
    upload_path: str,
    uploader: Uploader,
    gallery_lookup: Optional[PictureSet] = None,
) -> Optional[MediaRef]:
    """Resolve ``src`` and upload it; ``None`` when there is nothing usable."""
    src = (src or "").strip()
    if not src:
        return None
    resolved = resolve_image_source(src, gallery_lookup)
    return uploader.upload(resolved.url, upload_path, resolved.file_name)
