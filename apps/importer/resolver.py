# apps/importer/resolver.py
#
# RECIPE IMAGE RESOLVER
#
#   import flow → resolve_recipe_image_url(page_url, candidate_url)
#
#   1. caller-supplied candidate (usually the AI extractor's guess):
#        normalize, verify, return on success (no page fetch at all)
#   2. fetch page HTML (browser headers, hard deadline, text/html only)
#   3. markup + meta + JSON-LD extractors → one ranked candidate list
#   4. verify best-first, first hit wins, at most max_verify_candidates probes
#   5. nothing verified → unverified caller candidate, else None
#
# Never raises for network / content / parse problems: the only failure the
# caller sees is None, which the import flow turns into a generated or
# placeholder image.

from __future__ import annotations

import asyncio
from typing import Optional, Tuple

import httpx

from apps.importer.config import Settings, get_logger, settings as default_settings
from apps.importer.extractors import collect_candidates
from apps.importer.urls import is_data_uri, normalize_candidate
from apps.importer.verify import is_reachable_image

__all__ = [
    "build_client",
    "fetch_page_html",
    "resolve_recipe_image_url",
]

log = get_logger("resolver")

HTML_TYPES = ("text/html", "application/xhtml+xml")


def build_client(cfg: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(cfg.fetch_timeout),
        follow_redirects=True,
        max_redirects=cfg.max_redirects,
        limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
    )


def page_headers(cfg: Settings) -> dict[str, str]:
    return {
        "User-Agent": cfg.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "no-store",
    }


async def _get_html(client: httpx.AsyncClient, url: str, cfg: Settings) -> Optional[Tuple[str, str]]:
    r = await client.get(url, headers=page_headers(cfg))
    if not r.is_success:
        log.debug("page %s -> HTTP %s", url, r.status_code)
        return None
    ct = r.headers.get("Content-Type", "").lower()
    if not any(t in ct for t in HTML_TYPES):
        log.debug("page %s -> not html (%s)", url, ct or "-")
        return None
    return r.text, str(r.url)


async def fetch_page_html(
    page_url: str,
    client: httpx.AsyncClient,
    cfg: Optional[Settings] = None,
) -> Optional[Tuple[str, str]]:
    """GET the page; (html, final_url) or None on any failure."""
    cfg = cfg or default_settings
    try:
        return await asyncio.wait_for(_get_html(client, page_url, cfg), cfg.fetch_timeout)
    except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as e:
        log.warning("page fetch failed for %s: %s", page_url, type(e).__name__)
        return None


async def _resolve(
    client: httpx.AsyncClient,
    page_url: str,
    candidate_url: Optional[str],
    cfg: Settings,
) -> Optional[str]:
    supplied = normalize_candidate(candidate_url, page_url) if candidate_url else None

    if supplied:
        if is_data_uri(supplied) or await is_reachable_image(supplied, page_url, client, cfg):
            log.info("resolved %s -> supplied candidate %s", page_url, supplied[:120])
            return supplied
        log.debug("supplied candidate %s did not verify", supplied[:120])

    page = await fetch_page_html(page_url, client, cfg)
    ranked = collect_candidates(page[0], page[1]) if page else []

    tried = 0
    for url, score in ranked:
        if tried >= cfg.max_verify_candidates:
            log.debug("candidate cap (%d) reached for %s", cfg.max_verify_candidates, page_url)
            break
        if url == supplied:
            continue
        tried += 1
        if await is_reachable_image(url, page_url, client, cfg):
            log.info("resolved %s -> %s (score=%d, rank=%d)", page_url, url[:120], score, tried)
            return url

    if supplied:
        log.info("no verified image for %s; keeping unverified candidate", page_url)
        return supplied
    log.info("no image found for %s (%d candidates)", page_url, len(ranked))
    return None


async def resolve_recipe_image_url(
    page_url: str,
    candidate_url: Optional[str] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
    settings: Optional[Settings] = None,
) -> Optional[str]:
    """
    Best representative photo for a recipe page, confirmed to serve image
    bytes, or None. Pass `client` to reuse a connection pool (or to mock).
    """
    cfg = settings or default_settings
    if client is not None:
        return await _resolve(client, page_url, candidate_url, cfg)
    async with build_client(cfg) as own:
        return await _resolve(own, page_url, candidate_url, cfg)
