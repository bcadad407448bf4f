"""Unit tests for company and skill entity extraction.

Run: pytest tests/test_entity_extractor.py -v
"""

import pytest

from lumo.matching.entity_extractor import EntityExtractor, ExtractedEntity


@pytest.fixture
def extractor(knowledge):
    return EntityExtractor(knowledge.entities)


class TestKnownEntities:
    """Test verbatim known-entity hits."""

    def test_exact_company(self, extractor):
        """Test a verbatim company name scores 1.0 at its character index."""
        query = "what did he do at invitrace?"
        entities = extractor.extract(query)
        assert entities[0] == ExtractedEntity("company_name", "Invitrace", 1.0, query.find("invitrace"))

    def test_exact_skill(self, extractor):
        """Test skills are found case-insensitively."""
        entity = extractor.extract_entity("does he use FIGMA daily", "skill_name")
        assert entity.value == "Figma"
        assert entity.confidence == 1.0

    def test_max_extractions(self, extractor):
        """Test company entities are capped at two."""
        entities = extractor.extract("invitrace, codefin and peakaccount")
        companies = [e for e in entities if e.type == "company_name"]
        assert len(companies) == 2


class TestFuzzyEntities:
    """Test typo-tolerant token matching."""

    def test_typo_in_company(self, extractor):
        """Test a misspelt company is found with discounted confidence."""
        entity = extractor.extract_entity("tell me about invitrce", "company_name")
        assert entity.value == "Invitrace"
        assert entity.confidence == pytest.approx((1 - 1 / 9) * 0.9)
        assert entity.position == 3

    def test_skills_are_not_fuzzy(self, extractor):
        """Test skill types without fuzzy matching ignore typos."""
        assert extractor.extract_entity("he knows figmo", "skill_name") is None


class TestPatternsAndAliases:
    """Test regex fallback and alias canonicalization."""

    def test_regex_capture(self, extractor):
        """Test the regex captures an unknown company."""
        entity = extractor.extract_entity("his role at acme", "company_name")
        assert entity.value == "acme"
        assert entity.confidence == 0.8

    def test_alias_on_regex_value(self, extractor):
        """Test a captured alias maps to the canonical name."""
        entity = extractor.extract_entity("his time at peak", "company_name")
        assert entity.value == "PeakAccount"

    def test_skill_alias(self, extractor):
        """Test skill aliases canonicalize."""
        entity = extractor.extract_entity("is he skilled in a11y", "skill_name")
        assert entity.value == "Accessibility"


class TestExtractionEdgeCases:
    """Test ordering, misses and relationships."""

    def test_sorted_by_confidence(self, extractor):
        """Test results are ordered best first."""
        entities = extractor.extract("figma work at invitrce")
        confidences = [e.confidence for e in entities]
        assert confidences == sorted(confidences, reverse=True)
        assert entities[0].value == "Figma"

    def test_no_entities(self, extractor):
        """Test plain small talk yields nothing."""
        assert extractor.extract("hello there") == []

    def test_unknown_type(self, extractor):
        """Test an unknown entity type returns None."""
        assert extractor.extract_entity("invitrace", "planet_name") is None

    def test_empty_query(self, extractor):
        """Test empty input never raises."""
        assert extractor.extract("") == []

    def test_relationship(self, extractor):
        """Test a skill and company together form a skill_at_company pair."""
        entities = extractor.extract("figma at invitrace")
        relationships = extractor.find_relationships(entities)
        assert len(relationships) == 1
        assert relationships[0].type == "skill_at_company"
        assert [e.value for e in relationships[0].entities] == ["Figma", "Invitrace"]
