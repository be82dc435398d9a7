"""
Unit tests for the streaming item assembler.
"""

import pytest

from feed_engine.assembler import ItemAssembler, State
from feed_engine.errors import ParseError

from .conftest import make_feed


RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Feed title, not a job</title>
    <item>
      <Title>Motorista de carreta</Title>
      <description><![CDATA[<p>Rotas <b>regionais</b></p>]]></description>
      <company>ACME Transportes</company>
      <link>https://jobs.example.com/1</link>
      <guid>guid-1</guid>
      <referencenumber>ref-1</referencenumber>
      <pubDate>Mon, 06 Jan 2025 10:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Cozinheiro</title>
      <url>https://jobs.example.com/2</url>
      <referencenumber></referencenumber>
      <referencenumber>ref-2</referencenumber>
      <guid>guid-2</guid>
      <date_updated>2025-01-07</date_updated>
      <unknown><nested>ignored</nested></unknown>
    </item>
  </channel>
</rss>"""


def _collect(chunks):
    assembler = ItemAssembler()
    return list(assembler.assemble(chunks)), assembler


class TestItemAssembler:
    """Test item assembly from XML byte chunks."""

    def test_assembles_items_in_order(self):
        """Test that each root item becomes one record with aliased fields."""
        items, assembler = _collect([RSS])

        assert [i.title for i in items] == ["Motorista de carreta", "Cozinheiro"]
        first, second = items
        assert first.description == "<p>Rotas <b>regionais</b></p>"
        assert first.company == "ACME Transportes"
        assert first.link == "https://jobs.example.com/1"
        assert first.pub_date == "Mon, 06 Jan 2025 10:00:00 GMT"
        assert second.link == "https://jobs.example.com/2"
        assert second.pub_date == "2025-01-07"
        assert assembler.items == 2
        assert assembler.state is State.IDLE

    def test_first_non_empty_guid_wins(self):
        """Test that guid/referencenumber keep the first non-empty value."""
        items, _ = _collect([RSS])
        assert items[0].guid == "guid-1"
        assert items[1].guid == "ref-2"

    def test_channel_title_outside_items_is_ignored(self):
        """Test that text outside root items never leaks into a record."""
        items, _ = _collect([RSS])
        assert all(i.title != "Feed title, not a job" for i in items)

    def test_tiny_chunks_give_same_result(self):
        """Test that chunk boundaries do not matter."""
        whole, _ = _collect([RSS])
        pieces = [RSS[i:i + 7] for i in range(0, len(RSS), 7)]
        split, _ = _collect(pieces)
        assert [i.model_dump(exclude={"pub_date"}) for i in split] == [
            i.model_dump(exclude={"pub_date"}) for i in whole
        ]

    def test_job_root_and_cdata(self):
        """Test `<job>` roots with CDATA content."""
        data = make_feed([{"title": "A & B", "company": "X", "referencenumber": "r1"}])
        items, _ = _collect([data])
        assert len(items) == 1
        assert items[0].title == "A & B"
        assert items[0].guid == "r1"

    def test_namespaced_tags(self):
        """Test that namespace prefixes are stripped before alias lookup."""
        data = (
            b'<feed xmlns:j="http://example.com/ns"><j:job><j:title>Ns</j:title>'
            b"<j:company>Co</j:company></j:job></feed>"
        )
        items, _ = _collect([data])
        assert items[0].title == "Ns"
        assert items[0].company == "Co"

    def test_description_with_unescaped_markup(self):
        """Test that child elements inside a description are kept as HTML."""
        data = b"<jobs><job><title>T</title><description>Intro <p>Hello</p><p>World</p></description></job></jobs>"
        items, _ = _collect([data])
        assert items[0].description == "Intro <p>Hello</p><p>World</p>"
        assert items[0].title == "T"

    def test_missing_pubdate_defaults_to_now(self):
        """Test that an item without a date still carries a timestamp string."""
        items, _ = _collect([make_feed([{"title": "T"}])])
        assert items[0].pub_date

    def test_generator_is_lazy(self):
        """Test that items are produced before the whole feed has been read."""
        chunks = [b"<jobs><job><title>One</title></job><job>", b"<title>Two</title></job>", b"</jobs>"]
        consumed = []

        def feed():
            for chunk in chunks:
                consumed.append(chunk)
                yield chunk

        gen = ItemAssembler().assemble(feed())
        first = next(gen)
        assert first.title == "One"
        assert len(consumed) == 1
        assert [i.title for i in gen] == ["Two"]


class TestItemAssemblerErrors:
    """Test malformed and truncated input."""

    def test_mismatched_tag_raises_after_earlier_items(self):
        """Test that items closed before the error are still yielded."""
        chunks = [b"<jobs><job><title>A</title></job><job>", b"<title>B</title></jobx></jobs>"]
        seen = []
        with pytest.raises(ParseError):
            for item in ItemAssembler().assemble(chunks):
                seen.append(item.title)
        assert seen == ["A"]

    def test_truncated_feed(self):
        """Test that a feed cut off mid-item fails on close."""
        chunks = [b"<jobs><job><title>A</title></job><job><title>B"]
        seen = []
        with pytest.raises(ParseError):
            for item in ItemAssembler().assemble(chunks):
                seen.append(item.title)
        assert seen == ["A"]

    def test_empty_feed(self):
        """Test that an empty body is a parse error."""
        with pytest.raises(ParseError):
            list(ItemAssembler().assemble([]))
