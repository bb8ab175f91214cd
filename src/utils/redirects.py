"""
Generation of the redirect map for changed routes.

The :func:`generate_redirects_map` helper writes an nginx ``map`` include
with one ``old_path new_path;`` line per imported entity whose public route
changed.  Included into the server config, it keeps old links working after
the switch to the new site.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterable, List, Optional
from urllib.parse import urlparse

# Public routes of the new site, keyed by entity kind.
ROUTES = {
    "post": "/posts/{url}.html",
    "developer": "/developers/{url}.html",
    "game": "/games/{url}.html",
    "topic": "/topics/{url}.html",
}


@dataclass(frozen=True)
class Redirect:
    old_path: str
    new_path: str


def public_path(kind: str, url: str) -> str:
    """Route of an entity on the new site."""
    try:
        template = ROUTES[kind]
    except KeyError:
        raise ValueError(f"Unknown entity kind: {kind}") from None
    return template.format(url=url)


def legacy_path(full_url: str, legacy_base_url: str = "") -> str:
    """
    Path part of a legacy URL.  ``full_url`` may be absolute or already a
    path; ``legacy_base_url`` only matters for relative values without a
    leading slash.
    """
    full_url = (full_url or "").strip()
    if not full_url:
        return ""
    parsed = urlparse(full_url)
    if parsed.scheme or parsed.netloc:
        path = parsed.path or "/"
        return f"{path}?{parsed.query}" if parsed.query else path
    if full_url.startswith("/"):
        return full_url
    base_path = urlparse(legacy_base_url).path.rstrip("/") if legacy_base_url else ""
    return f"{base_path}/{full_url}"


def build_redirect(kind: str, url: str, full_url: str, legacy_base_url: str = "") -> Optional[Redirect]:
    """Redirect for one entity, or ``None`` when its route did not change."""
    old = legacy_path(full_url, legacy_base_url)
    if not old:
        return None
    new = public_path(kind, url)
    if old == new:
        return None
    return Redirect(old, new)


def generate_redirects_map(redirects: Iterable[Redirect], *, out_path: str = "reports/import/redirects.map") -> str:
    """Write ``redirects`` as nginx map lines.

    Parameters
    ----------
    redirects:
        Redirects to write.  Duplicated old paths keep their first target.
    out_path:
        Location of the file to be written.  The parent directory is created
        automatically.

    Returns
    -------
    str
        The path of the generated file.
    """
    seen = set()
    lines: List[str] = []
    for redirect in redirects:
        if redirect.old_path in seen:
            continue
        seen.add(redirect.old_path)
        lines.append(f"{_quote(redirect.old_path)} {_quote(redirect.new_path)};\n")

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        f.writelines(lines)
    return out_path


def _quote(path: str) -> str:
    # nginx needs quoting for whitespace, ';' and braces.
    if any(c in path for c in ' \t;{}"\''):
        return '"' + path.replace("\\", "\\\\").replace('"', '\\"') + '"'
    return path
