"""
Unit tests for profession matching and tag extraction.
"""

import pytest

from feed_engine.normalize import ProfessionMatcher, extract_tags, parse_keywords, profession_vocabulary
from feed_engine.utils import MAX_TAGS


class TestParseKeywords:
    def test_trims_lowercases_and_drops_empties(self):
        assert parse_keywords(" Motorista , ,CNH ,") == ["motorista", "cnh"]

    def test_empty(self):
        assert parse_keywords("") == []
        assert parse_keywords(None) == []


class TestProfessionMatcher:
    """Test keyword relevance filtering."""

    @pytest.fixture
    def matcher(self):
        return ProfessionMatcher(["caminhoneiro", "Motorista de Carreta"])

    def test_matches_title(self, matcher):
        assert matcher.matches("Caminhoneiro CE categoria", "ACME", "")

    def test_matches_description_only(self, matcher):
        assert matcher.matches("Vaga", "ACME", "<p>Procuramos MOTORISTA DE CARRETA</p>")

    def test_rejects_other_professions(self, matcher):
        assert not matcher.matches("Cozinheiro", "Restaurante", "Cozinha industrial")

    def test_substring_collisions_are_accepted(self):
        """Test that matching is plain substring search."""
        assert ProfessionMatcher(["ce"]).matches("Doceiro", "", "")

    def test_no_keywords_never_matches(self):
        assert not ProfessionMatcher([]).matches("Caminhoneiro", "", "")


class TestExtractTags:
    """Test vocabulary and signal tag extraction."""

    def test_vocabulary_then_signals_then_profession(self):
        tags = extract_tags(
            "Motorista de carreta CNH categoria E",
            "ACME",
            "<p>Longa distância, full-time, remote.</p>",
            "truck driver",
        )
        assert tags == ["categoria e", "cnh", "longa distância", "remote", "full-time", "truck driver"]

    def test_html_is_reduced_to_text(self):
        tags = extract_tags("Vaga", "", "<p>Exige <b>CNH</b></p>", "caminhoneiro")
        assert "cnh" in tags

    def test_unknown_profession_has_only_profession_tag(self):
        assert profession_vocabulary("astronaut") == []
        assert extract_tags("Nothing here", "", "", "Astronaut") == ["astronaut"]

    def test_portuguese_signals(self):
        tags = extract_tags("Motorista", "", "Trabalho remoto, meio período, contrato temporário", "motorista")
        assert tags[:3] == ["remote", "part-time", "contract"]
        assert tags[-1] == "motorista"

    @pytest.mark.parametrize(
        "title,html,profession",
        [
            (
                "Armazém separador embalador carregador",
                "<p>descarregador estoquista almoxarife expedição recebimento inventário remote full-time</p>",
                "warehouse",
            ),
            ("", "", ""),
            ("CNH cnh Cnh", "<p>cnh</p>", "caminhoneiro"),
        ],
    )
    def test_tags_are_bounded_unique_and_non_empty(self, title, html, profession):
        tags = extract_tags(title, "", html, profession)
        assert len(tags) <= MAX_TAGS
        assert len(tags) == len(set(tags))
        assert all(t and t == t.strip().lower() for t in tags)

    def test_cap_drops_later_tags(self):
        tags = extract_tags(
            "armazém separador embalador carregador descarregador estoquista almoxarife expedição recebimento",
            "",
            "",
            "warehouse",
        )
        assert len(tags) == MAX_TAGS
        assert "warehouse" not in tags
