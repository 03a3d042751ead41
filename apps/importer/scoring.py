# apps/importer/scoring.py
from __future__ import annotations

from urllib.parse import urlparse

# ============================== Base scores ==========================
# meta / structured data > lazy src > srcset > plain src > <source>

SCORE_META = 90
SCORE_JSON_LD = 85
SCORE_SRCSET = 72
SCORE_LAZY_SRC = 68
SCORE_SRC = 60
SCORE_SOURCE_SRCSET = 55

SRCSET_BONUS_CAP = 10
SOURCE_SRCSET_BONUS_CAP = 8

# ============================== Hint keywords ========================

HINT_BONUS = 6
HINT_PENALTY = 10
SVG_PENALTY = 6

POSITIVE_HINTS = frozenset({
    "recipe",
    "hero",
    "featured",
    "dish",
    "food",
    "gallery",
    "meal",
    "wprm",
    "tasty-recipes",
    "post-image",
    "entry-image",
    "article-image",
    "main-image",
    "primary-image",
})

NEGATIVE_HINTS = frozenset({
    "logo",
    "icon",
    "avatar",
    "banner",
    "placeholder",
    "tracking",
    "pixel",
    "sprite",
    "spinner",
    "loader",
    "spacer",
    "gravatar",
    "emoji",
    "badge",
    "advert",
    "blank.gif",
})


def _is_svg(url: str) -> bool:
    try:
        path = urlparse(url).path
    except ValueError:
        path = url
    return path.lower().endswith(".svg")


def score_hint(url: str, hint_text: str = "") -> int:
    """
    Relevance adjustment for a candidate, from keywords in the URL and the
    markup around it. Every keyword present counts once; hits stack.
    """
    haystack = f"{url} {hint_text}".lower()
    score = 0
    for kw in POSITIVE_HINTS:
        if kw in haystack:
            score += HINT_BONUS
    for kw in NEGATIVE_HINTS:
        if kw in haystack:
            score -= HINT_PENALTY
    if _is_svg(url):
        score -= SVG_PENALTY
    return score


def descriptor_bonus(magnitude: float, cap: int) -> int:
    """srcset winner bonus: one point per 200 units (x descriptors pre-scaled x1000)."""
    if magnitude <= 0:
        return 0
    return min(cap, int(magnitude // 200))
