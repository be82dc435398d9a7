"""Streaming item assembly.

`ItemAssembler` turns a stream of XML byte chunks into `RawFeedItem` records
without ever materializing the whole document. Feeds regularly run into the
hundreds of megabytes, so only the item currently being read is kept in
memory: every finished element is cleared from the tree as soon as its end
event has been handled.

The assembler is a two-state machine (`IDLE`, `IN_ITEM`) over the `start`/
`end` events of an `lxml` pull parser.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Iterable, Iterator, Optional

from lxml import etree

from .errors import ParseError
from .models import RawFeedItem

logger = logging.getLogger(__name__)

ROOT_TAGS = frozenset({"job", "item"})

# Leaf tag (lowercase, namespace stripped) -> RawFeedItem field.
FIELD_ALIASES: Dict[str, str] = {
    "title": "title",
    "description": "description",
    "company": "company",
    "url": "link",
    "link": "link",
    "guid": "guid",
    "referencenumber": "guid",
    "pubdate": "pub_date",
    "date_updated": "pub_date",
}

# Fields where the first non-empty value wins; all others are last-write-wins.
FIRST_WINS = frozenset({"guid"})

# Fields that may carry unescaped HTML; their child elements are kept as markup.
MARKUP_FIELDS = frozenset({"description"})


class State(Enum):
    IDLE = "idle"
    IN_ITEM = "in_item"


def _local_name(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return etree.QName(tag).localname.lower()


def _direct_text(elem) -> str:
    """Text (and CDATA) that belongs to `elem` itself, not to its children."""
    parts = [elem.text or ""]
    parts.extend(child.tail or "" for child in elem)
    return "".join(parts).strip()


def _inner_markup(elem) -> str:
    """Everything inside `elem`, child elements serialized back to markup."""
    parts = [elem.text or ""]
    parts.extend(etree.tostring(child, encoding="unicode", with_tail=True) for child in elem)
    return "".join(parts).strip()


class ItemAssembler:
    """Assemble `RawFeedItem`s from XML byte chunks, one item at a time."""

    def __init__(self) -> None:
        self.state = State.IDLE
        self.items = 0
        self._item_elem = None
        self._fields: Dict[str, str] = {}

    def _new_parser(self) -> etree.XMLPullParser:
        return etree.XMLPullParser(
            events=("start", "end"),
            resolve_entities=False,
            no_network=True,
            huge_tree=True,
        )

    def assemble(self, chunks: Iterable[bytes]) -> Iterator[RawFeedItem]:
        """Yield items in feed order.

        Raises:
            ParseError: the document is malformed or truncated. Every item that
                was closed before the error point has been yielded by then.
        """
        parser = self._new_parser()
        self.state = State.IDLE
        self._item_elem = None

        for chunk in chunks:
            if not chunk:
                continue
            error: Optional[etree.XMLSyntaxError] = None
            try:
                parser.feed(chunk)
            except etree.XMLSyntaxError as exc:
                error = exc
            yield from self._drain(parser)
            if error is not None:
                raise ParseError(f"Malformed feed XML: {error}") from error

        error = None
        try:
            parser.close()
        except etree.XMLSyntaxError as exc:
            error = exc
        yield from self._drain(parser)
        if error is not None:
            raise ParseError(f"Truncated or empty feed XML: {error}") from error

    def _drain(self, parser: etree.XMLPullParser) -> Iterator[RawFeedItem]:
        for event, elem in parser.read_events():
            name = _local_name(elem.tag)
            if event == "start":
                if self.state is State.IDLE and name in ROOT_TAGS:
                    self.state = State.IN_ITEM
                    self._item_elem = elem
                    self._fields = {}
                continue

            if self.state is State.IDLE:
                elem.clear()
                continue

            if elem is self._item_elem:
                yield self._emit()
                self._release(elem)
                continue

            field = FIELD_ALIASES.get(name)
            if field:
                text = _inner_markup(elem) if field in MARKUP_FIELDS else _direct_text(elem)
                self._assign(field, text)

    def _assign(self, field: str, value: str) -> None:
        if field in FIRST_WINS and self._fields.get(field):
            return
        self._fields[field] = value

    def _emit(self) -> RawFeedItem:
        self.items += 1
        self.state = State.IDLE
        self._item_elem = None
        fields, self._fields = self._fields, {}
        if self.items % 10000 == 0:
            logger.info(f"[feed] Assembled {self.items:,} items")
        return RawFeedItem(**fields)

    @staticmethod
    def _release(elem) -> None:
        elem.clear(keep_tail=True)
        parent = elem.getparent()
        if parent is None:
            return
        while elem.getprevious() is not None:
            del parent[0]
