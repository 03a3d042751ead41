# apps/importer/html_attrs.py
"""
Lightweight start-tag scanning.

No DOM parser: tags are located with regexes and their attributes pulled out
into a plain dict. Broken markup never raises; a tag or attribute that does
not match simply contributes nothing.
"""
from __future__ import annotations

import re
from typing import Dict, Iterator, Tuple

# attr="v" | attr='v' | attr=v   (a bare attribute without a value is skipped)
_ATTR_RE = re.compile(
    r"""([^\s"'<>/=]+)\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+))""",
    re.S,
)
_TAG_NAME_RE = re.compile(r"^<\s*[\w:-]+")

# quoted values may legally contain '>'
_TAG_BODY = r"""(?:[^>"']|"[^"]*"|'[^']*')*"""

_SCRIPT_RE = re.compile(
    rf"<script\b({_TAG_BODY})>(.*?)</script\s*>",
    re.I | re.S,
)

_tag_cache: Dict[str, "re.Pattern[str]"] = {}


def _tag_re(name: str) -> "re.Pattern[str]":
    pat = _tag_cache.get(name)
    if pat is None:
        pat = re.compile(rf"<{re.escape(name)}\b{_TAG_BODY}>", re.I)
        _tag_cache[name] = pat
    return pat


def parse_attrs(tag: str) -> Dict[str, str]:
    """
    Map lower-cased attribute names to their unquoted values.
    Duplicate attributes: the last one wins.
    """
    body = _TAG_NAME_RE.sub("", tag or "", count=1)
    out: Dict[str, str] = {}
    for m in _ATTR_RE.finditer(body):
        name = m.group(1).lower()
        if m.group(2) is not None:
            value = m.group(2)
        elif m.group(3) is not None:
            value = m.group(3)
        else:
            value = m.group(4)
        out[name] = value
    return out


def iter_tags(html_str: str, name: str) -> Iterator[Tuple[str, Dict[str, str]]]:
    """Yield (raw_start_tag, attrs) for every <name ...> start tag."""
    if not html_str:
        return
    for m in _tag_re(name).finditer(html_str):
        raw = m.group(0)
        yield raw, parse_attrs(raw)


def iter_scripts(html_str: str) -> Iterator[Tuple[Dict[str, str], str]]:
    """Yield (attrs, body) for every <script> element."""
    if not html_str:
        return
    for m in _SCRIPT_RE.finditer(html_str):
        yield parse_attrs("<script " + m.group(1) + ">"), m.group(2)
