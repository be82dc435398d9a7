"""HTML clean-up for stored descriptions.

Everything that ends up in `description_html` passes through
`sanitize_html`, whether it came from the AI, the fallback template, or a
manual submission.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Comment

FORBIDDEN_TAGS = ["script", "iframe", "object", "embed", "link", "style", "noscript"]
DOCUMENT_TAGS = ["html", "head", "body"]
URI_ATTRS = ("href", "src", "action", "formaction", "xlink:href")

_JS_URI_RE = re.compile(r"^javascript:", re.I)
# Browsers drop these from a URL scheme, so "java\tscript:" still runs.
_URI_NOISE_RE = re.compile(r"[\x00-\x20]")
_DOCTYPE_RE = re.compile(r"<!DOCTYPE[^>]*>", re.I)


def _is_js_uri(value) -> bool:
    return bool(_JS_URI_RE.match(_URI_NOISE_RE.sub("", str(value or ""))))


def strip_document_tags(html: str) -> str:
    """Reduce a full HTML document to its fragment: no doctype, html/head/body, meta or title."""
    if not html:
        return ""
    soup = BeautifulSoup(_DOCTYPE_RE.sub("", html), "html.parser")
    for tag in soup.find_all(["head", "meta", "title"]):
        if tag.decomposed:
            continue
        tag.decompose()
    for tag in soup.find_all(DOCUMENT_TAGS):
        tag.unwrap()
    return str(soup).strip()


def sanitize_html(html: str) -> str:
    """Remove active content: dangerous tags, `on*` handlers and `javascript:` URIs."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(FORBIDDEN_TAGS):
        if tag.decomposed:
            continue
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    for tag in soup.find_all(True):
        for attr in list(tag.attrs):
            name = attr.lower()
            if name.startswith("on"):
                del tag[attr]
            elif name in URI_ATTRS and _is_js_uri(tag.get(attr)):
                del tag[attr]
    return str(soup)
