# apps/importer/extractors.py
from __future__ import annotations

"""
Extractor layer
---------------
Mines a fetched recipe page for image candidates. Three independent scanners
(markup, meta, JSON-LD) feed one CandidateSet; the set keeps the best score
seen per normalized URL and hands back a ranked list.

Public API:
    CandidateSet
    extract_from_markup(html, base_url, candidates)
    extract_from_meta(html, base_url, candidates)
    extract_from_structured_data(html, base_url, candidates)
    collect_candidates(html, base_url) -> List[ScoredCandidate]
"""

import json
import re
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Tuple

from apps.importer.config import get_logger
from apps.importer.html_attrs import iter_scripts, iter_tags
from apps.importer.scoring import (
    SCORE_JSON_LD,
    SCORE_LAZY_SRC,
    SCORE_META,
    SCORE_SOURCE_SRCSET,
    SCORE_SRC,
    SCORE_SRCSET,
    SOURCE_SRCSET_BONUS_CAP,
    SRCSET_BONUS_CAP,
    descriptor_bonus,
    score_hint,
)
from apps.importer.urls import normalize_candidate

__all__ = [
    "ScoredCandidate",
    "CandidateSet",
    "extract_from_markup",
    "extract_from_meta",
    "extract_from_structured_data",
    "collect_candidates",
    "choose_from_srcset",
    "extract_base_href",
]

log = get_logger("extract")

# ============================== Config ===============================

LAZY_SRC_ATTRS = (
    "data-src",
    "data-lazy-src",
    "data-original",
    "data-orig-src",
    "data-lazyload",
    "data-zoom-image",
    "data-large-file",
    "data-medium-file",
    "data-pin-media",
    "data-hi-res-src",
)

SRCSET_ATTRS = (
    "srcset",
    "data-srcset",
    "data-lazy-srcset",
    "data-pin-srcset",
)

HINT_ATTRS = ("class", "id", "alt", "title", "itemprop", "aria-label")

_URL_ATTRS = frozenset({"src", *LAZY_SRC_ATTRS, *SRCSET_ATTRS})

IMAGE_META_KEYS = frozenset({
    "og:image",
    "og:image:url",
    "og:image:secure_url",
    "twitter:image",
    "twitter:image:src",
    "image",
    "image:url",
    "image:secure_url",
})

JSON_LD_TYPE = "application/ld+json"
JSON_LD_MAX_DEPTH = 24

# split after a descriptor ("800w,") or before whitespace, so "a 300w,b 1200w"
# still parses; the chosen URL is later cut at its first comma by the normalizer
_SRCSET_SPLIT_RE = re.compile(r"(?<=\d[wWxX]),|,(?=\s)|,$")
_DESCRIPTOR_RE = re.compile(r"^(\d+(?:\.\d+)?)([wx])$", re.I)

# ============================== Aggregation ==========================


class ScoredCandidate(NamedTuple):
    url: str
    score: int


class CandidateSet:
    """normalized URL -> best score; discovery order breaks ties."""

    def __init__(self) -> None:
        self._best: Dict[str, int] = {}

    def add(self, raw: Optional[str], base_url: str, hint_text: str, base_score: int) -> Optional[str]:
        url = normalize_candidate(raw, base_url)
        if not url:
            return None
        score = base_score + score_hint(url, hint_text)
        prev = self._best.get(url)
        if prev is None or score > prev:
            self._best[url] = score
        log.debug("candidate %s score=%d (best=%d)", url[:120], score, self._best[url])
        return url

    def ranked(self) -> List[ScoredCandidate]:
        ordered = sorted(self._best.items(), key=lambda kv: kv[1], reverse=True)
        return [ScoredCandidate(u, s) for u, s in ordered]

    def __len__(self) -> int:
        return len(self._best)

# ============================== Helpers ==============================


def _hint_text(attrs: Dict[str, str]) -> str:
    parts = [attrs[k] for k in HINT_ATTRS if attrs.get(k)]
    for k, v in attrs.items():
        if k.startswith("data-") and k not in _URL_ATTRS and v:
            parts.append(v)
    return " ".join(parts)


def _parse_srcset(srcset: str) -> Iterator[Tuple[str, Optional[str], float]]:
    for part in _SRCSET_SPLIT_RE.split(srcset or ""):
        tokens = part.strip().split()
        if not tokens:
            continue
        kind, value = None, 0.0
        if len(tokens) > 1:
            m = _DESCRIPTOR_RE.match(tokens[-1])
            if m:
                kind, value = m.group(2).lower(), float(m.group(1))
        yield tokens[0], kind, value


def choose_from_srcset(srcset: str) -> Optional[Tuple[str, float]]:
    """
    Pick the largest entry of a srcset: widest 'w' descriptor, else highest
    'x' density (scaled x1000). Returns (url, magnitude) or None.
    """
    entries = list(_parse_srcset(srcset))
    if not entries:
        return None
    widths = [(u, v) for u, k, v in entries if k == "w"]
    if widths:
        return max(widths, key=lambda e: e[1])
    densities = [(u, v * 1000) for u, k, v in entries if k == "x"]
    if densities:
        return max(densities, key=lambda e: e[1])
    return entries[0][0], 0.0


def extract_base_href(html_str: str, fallback: str) -> str:
    for _, attrs in iter_tags(html_str, "base"):
        href = normalize_candidate(attrs.get("href"), fallback)
        if href:
            return href
    return fallback

# ============================== Extractors ===========================


def _add_srcset(
    candidates: CandidateSet,
    value: str,
    base_url: str,
    hint: str,
    base_score: int,
    cap: int,
) -> None:
    pick = choose_from_srcset(value)
    if pick:
        url, magnitude = pick
        candidates.add(url, base_url, hint, base_score + descriptor_bonus(magnitude, cap))


def extract_from_markup(html_str: str, base_url: str, candidates: CandidateSet) -> None:
    """<img> src / lazy-load attrs / srcset variants, plus <source> srcsets."""
    for _, attrs in iter_tags(html_str, "img"):
        hint = _hint_text(attrs)
        if attrs.get("src"):
            candidates.add(attrs["src"], base_url, hint, SCORE_SRC)
        for attr in LAZY_SRC_ATTRS:
            if attrs.get(attr):
                candidates.add(attrs[attr], base_url, hint, SCORE_LAZY_SRC)
        for attr in SRCSET_ATTRS:
            if attrs.get(attr):
                _add_srcset(candidates, attrs[attr], base_url, hint, SCORE_SRCSET, SRCSET_BONUS_CAP)

    for _, attrs in iter_tags(html_str, "source"):
        hint = _hint_text(attrs)
        for attr in SRCSET_ATTRS:
            if attrs.get(attr):
                _add_srcset(
                    candidates, attrs[attr], base_url, hint,
                    SCORE_SOURCE_SRCSET, SOURCE_SRCSET_BONUS_CAP,
                )


def extract_from_meta(html_str: str, base_url: str, candidates: CandidateSet) -> None:
    """OpenGraph / Twitter / itemprop preview images and <link rel=image_src>."""
    for _, attrs in iter_tags(html_str, "meta"):
        keys = {
            (attrs.get(k) or "").strip().lower()
            for k in ("property", "name", "itemprop")
        }
        if keys & IMAGE_META_KEYS and attrs.get("content"):
            candidates.add(attrs["content"], base_url, _hint_text(attrs), SCORE_META)

    for _, attrs in iter_tags(html_str, "link"):
        rels = (attrs.get("rel") or "").lower().split()
        if "image_src" in rels and attrs.get("href"):
            candidates.add(attrs["href"], base_url, _hint_text(attrs), SCORE_META)

# ------------------------------ JSON-LD ------------------------------


def _type_names(node: Dict[str, Any]) -> List[str]:
    t = node.get("@type")
    if isinstance(t, str):
        return [t]
    if isinstance(t, list):
        return [x for x in t if isinstance(x, str)]
    return []


def _image_values(value: Any, type_hint: str, depth: int) -> Iterator[Tuple[str, str]]:
    """Strings reachable from an image-ish field (string | list | ImageObject)."""
    if depth > JSON_LD_MAX_DEPTH:
        return
    if isinstance(value, str):
        yield value, type_hint
    elif isinstance(value, list):
        for item in value:
            yield from _image_values(item, type_hint, depth + 1)
    elif isinstance(value, dict):
        for k in ("url", "contentUrl"):
            if isinstance(value.get(k), str):
                yield value[k], type_hint
        yield from _walk_ld(value, depth + 1)


def _walk_ld(node: Any, depth: int = 0) -> Iterator[Tuple[str, str]]:
    """Yield (image_url, hint) pairs from a parsed JSON-LD value."""
    if depth > JSON_LD_MAX_DEPTH:
        return
    if isinstance(node, list):
        for item in node:
            yield from _walk_ld(item, depth + 1)
        return
    if not isinstance(node, dict):
        return

    types = _type_names(node)
    hint = " ".join(types)
    if any("image" in t.lower() for t in types):
        for k in ("url", "contentUrl"):
            if isinstance(node.get(k), str):
                yield node[k], hint

    for key in ("image", "thumbnailUrl"):
        if key in node:
            yield from _image_values(node[key], hint, depth + 1)

    for key in ("@graph", "mainEntity"):
        if key in node:
            yield from _walk_ld(node[key], depth + 1)


def extract_from_structured_data(html_str: str, base_url: str, candidates: CandidateSet) -> None:
    """image / thumbnailUrl / ImageObject urls from every ld+json block."""
    for attrs, body in iter_scripts(html_str):
        if (attrs.get("type") or "").strip().lower() != JSON_LD_TYPE:
            continue
        raw = body.strip()
        if raw.startswith("<!--"):
            raw = raw[4:]
        if raw.endswith("-->"):
            raw = raw[:-3]
        if not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except (ValueError, RecursionError) as e:
            log.debug("skipping malformed ld+json block: %s", type(e).__name__)
            continue
        for url, hint in _walk_ld(data):
            candidates.add(url, base_url, hint, SCORE_JSON_LD)

# ============================ Main entry =============================


def collect_candidates(html_str: str, base_url: str) -> List[ScoredCandidate]:
    """Run every extractor over one page; best-first list of candidates."""
    candidates = CandidateSet()
    if not html_str:
        return []
    base = extract_base_href(html_str, base_url)
    extract_from_markup(html_str, base, candidates)
    extract_from_meta(html_str, base, candidates)
    extract_from_structured_data(html_str, base, candidates)
    ranked = candidates.ranked()
    log.debug("collected %d candidates from %s", len(ranked), base_url)
    return ranked
