# apps/importer/verify.py
from __future__ import annotations

import asyncio
from typing import Optional, Tuple

import httpx

from apps.importer.config import Settings, get_logger, settings as default_settings
from apps.importer.urls import has_image_ext, is_data_uri

log = get_logger("verify")

ACCEPT_IMAGE = "image/*,*/*;q=0.8"


def image_probe_headers(referer: Optional[str], cfg: Settings) -> dict[str, str]:
    headers = {
        "User-Agent": cfg.user_agent,
        "Accept": ACCEPT_IMAGE,
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "no-store",
        "Pragma": "no-cache",
    }
    if referer:
        # header values must be ASCII; httpx percent-encodes IRIs
        try:
            headers["Referer"] = str(httpx.URL(referer))
        except httpx.InvalidURL:
            pass
    return headers


def _looks_like_image(url: str, status_code: int, content_type: str) -> bool:
    if not 200 <= status_code < 300:
        return False
    ct = (content_type or "").lower().split(";", 1)[0].strip()
    return ct.startswith("image/") or has_image_ext(url)


async def _probe(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    headers: dict[str, str],
) -> Tuple[int, str]:
    # streamed: a ranged GET against a server that ignores Range must not pull the body
    async with client.stream(method, url, headers=headers) as r:
        return r.status_code, r.headers.get("Content-Type", "")


async def _attempt(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    headers: dict[str, str],
    timeout: float,
) -> bool:
    try:
        status, ct = await asyncio.wait_for(_probe(client, method, url, headers), timeout)
    except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as e:
        log.debug("%s %s neterr:%s", method, url[:120], type(e).__name__)
        return False
    ok = _looks_like_image(url, status, ct)
    log.debug("%s %s -> %s %s ok=%s", method, url[:120], status, ct or "-", ok)
    return ok


async def is_reachable_image(
    url: str,
    referer: Optional[str],
    client: httpx.AsyncClient,
    cfg: Optional[Settings] = None,
) -> bool:
    """
    HEAD first; on any miss retry once with a one-byte ranged GET.
    data: URIs need no network. Failures are a plain False, never raised.
    """
    if is_data_uri(url):
        return True
    cfg = cfg or default_settings
    headers = image_probe_headers(referer, cfg)

    if await _attempt(client, "HEAD", url, headers, cfg.fetch_timeout):
        return True

    ranged = dict(headers, Range="bytes=0-0")
    return await _attempt(client, "GET", url, ranged, cfg.fetch_timeout)
