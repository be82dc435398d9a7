"""
Unit tests for HTML sanitizing.
"""

import pytest

from feed_engine.sanitize import sanitize_html, strip_document_tags


class TestSanitizeHtml:
    def test_removes_forbidden_tags_with_content(self):
        out = sanitize_html("<p>ok</p><script>alert(1)</script><iframe src='x'></iframe><style>p{}</style>")
        assert out == "<p>ok</p>"

    def test_removes_event_handlers(self):
        out = sanitize_html('<p onclick="x()" class="a">t</p>')
        assert "onclick" not in out
        assert 'class="a"' in out

    def test_removes_javascript_uris(self):
        out = sanitize_html('<a href=" javascript:alert(1)">bad</a><a href="https://example.com">good</a>')
        assert "javascript" not in out
        assert '<a href="https://example.com">good</a>' in out

    @pytest.mark.parametrize(
        "href",
        ["java&#x09;script:alert(1)", "java&#x0A;script:alert(1)", "&#x01;javascript:alert(1)", "JaVaScRiPt:alert(1)"],
    )
    def test_removes_obfuscated_javascript_uris(self, href):
        out = sanitize_html(f'<a href="{href}">x</a>')
        assert out == "<a>x</a>"

    def test_removes_comments(self):
        assert sanitize_html("<p>a<!-- hidden --></p>") == "<p>a</p>"

    def test_empty(self):
        assert sanitize_html("") == ""


class TestStripDocumentTags:
    def test_full_document(self):
        doc = "<!DOCTYPE html><html><head><meta charset='utf-8'><title>T</title></head><body><p>x</p></body></html>"
        assert strip_document_tags(doc) == "<p>x</p>"

    def test_fragment_unchanged(self):
        assert strip_document_tags("<section><h2>A</h2></section>") == "<section><h2>A</h2></section>"
