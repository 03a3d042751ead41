# apps/importer/urls.py
from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urljoin, urlparse

IMG_EXTS = (
    ".jpg", ".jpeg", ".png", ".webp", ".gif", ".avif",
    ".bmp", ".jfif", ".pjpeg", ".svg", ".tif", ".tiff",
)

_CSS_URL_RE = re.compile(r"^url\(\s*(.*?)\s*\)$", re.I | re.S)
_QUOTES = "\"'"


def _unwrap(value: str) -> str:
    v = value.replace("&amp;", "&").strip()
    m = _CSS_URL_RE.match(v)
    if m:
        v = m.group(1)
    return v.strip().strip(_QUOTES).strip()


def normalize_candidate(raw: Optional[str], base_url: str) -> Optional[str]:
    """
    Turn an attribute value into an absolute http(s) URL or a data: URI.
    Anything that cannot be made absolute is dropped (None).
    """
    if not raw:
        return None
    v = _unwrap(raw)
    if not v:
        return None

    if v[:5].lower() == "data:":
        return v

    token = v.split()[0].split(",")[0]
    if not token:
        return None
    if token.startswith("//"):
        token = "https:" + token

    try:
        u = urljoin(base_url, token)
        p = urlparse(u)
    except ValueError:
        return None
    if p.scheme not in ("http", "https") or not p.netloc:
        return None
    return u


def is_data_uri(url: str) -> bool:
    return url[:5].lower() == "data:"


def has_image_ext(url: str) -> bool:
    try:
        path = urlparse(url).path
    except ValueError:
        return False
    return path.lower().endswith(IMG_EXTS)
