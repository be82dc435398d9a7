"""Utility helpers shared across the engine."""

from __future__ import annotations

import hashlib
import html
import re
import time
import unicodedata
from typing import Iterable, List, Optional

from bs4 import BeautifulSoup
from dateutil import parser as date_parser
from dateutil import tz

MAX_TAGS = 8
SLUG_MAX_LEN = 120

_BLOCK_TAGS = [
    "p", "div", "br", "li", "ul", "ol", "section", "article", "header", "footer",
    "h1", "h2", "h3", "h4", "h5", "h6", "tr", "table", "blockquote", "pre",
]


def stable_id(*parts: str) -> str:
    """Create a deterministic identifier from a set of string parts."""
    joined = "|".join(p.strip() for p in parts if p is not None)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()


def uniq_norm_tags(items: Iterable[Optional[str]], limit: int = MAX_TAGS) -> List[str]:
    """Lowercase, trim and deduplicate tags preserving first-seen order, capped at `limit`."""
    seen = set()
    out: List[str] = []
    for it in items:
        if not it:
            continue
        tag = str(it).strip().lower()
        if not tag or tag in seen:
            continue
        seen.add(tag)
        out.append(tag)
    return out[:limit]


def truncate_words(text: str, n: int = 60) -> str:
    """Keep the first `n` whitespace-separated words, marking the cut with an ellipsis."""
    words = (text or "").split()
    if len(words) <= n:
        return text or ""
    return " ".join(words[:n]) + "…"


def make_slug(value: str, max_len: int = SLUG_MAX_LEN) -> str:
    """URL-safe lowercase slug; accents are transliterated, everything else becomes '-'."""
    text = unicodedata.normalize("NFKD", str(value or ""))
    text = text.encode("ascii", "ignore").decode("ascii").lower()
    text = re.sub(r"[^a-z0-9]+", "-", text).strip("-")
    return text[:max_len].rstrip("-")


def unique_slug(base: str, guid: str, max_len: int = SLUG_MAX_LEN) -> str:
    """Disambiguate `base` with a short, guid-derived suffix."""
    suffix = stable_id(guid)[:8]
    head = base[: max_len - len(suffix) - 1].rstrip("-")
    return f"{head}-{suffix}" if head else suffix


def to_unixtime(value: Optional[str], default: Optional[int] = None) -> int:
    """Parse a feed date string to unix seconds; unparseable values fall back to `default` or now."""
    fallback = int(time.time()) if default is None else default
    if not value or not value.strip():
        return fallback
    try:
        dt = date_parser.parse(value.strip())
        if dt.tzinfo is None:
            # Feeds without an offset are treated as UTC.
            dt = dt.replace(tzinfo=tz.UTC)
        # Out-of-range offsets only fail here.
        return int(dt.timestamp())
    except (ValueError, OverflowError):
        return fallback


def html_to_text(markup: str) -> str:
    """Convert an HTML fragment (or plain text) to text, one block per line.

    Links keep their text only; scripts and styles are dropped.
    """
    if not markup or not markup.strip():
        return ""
    soup = BeautifulSoup(markup, "lxml")
    for tag in soup(["script", "style", "noscript"]):
        if not tag.decomposed:
            tag.decompose()
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.insert_before("\n")
        tag.insert_after("\n")
    lines = (re.sub(r"[ \t\r\f\v\xa0]+", " ", line).strip() for line in soup.get_text().split("\n"))
    return "\n".join(line for line in lines if line)


def escape_html(text: str) -> str:
    return html.escape(text or "", quote=True)
