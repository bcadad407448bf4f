"""Unit tests for the fuzzy profile search index.

Run: pytest tests/test_search_engine.py -v
"""

import pytest

from lumo.retrieval.search_engine import SearchEngine, SearchResult, tokenize


@pytest.fixture(scope="module")
def search(knowledge):
    return SearchEngine(knowledge.profile)


class TestIndex:
    """Test index construction."""

    def test_documents_from_profile(self, search, knowledge):
        """Test experience, competency and education documents are indexed."""
        profile = knowledge.profile
        competencies = sum(len(c.competencies) for c in profile.skills.categories.values())
        expected = len(profile.experience.timeline) + competencies + len(profile.education)
        assert len(search.documents) == expected
        assert search.documents["exp-0"].company == "Invitrace"

    def test_tokenize_drops_stopwords(self):
        """Test stopwords and one-letter tokens are removed."""
        assert tokenize("Tell me about a Design System!") == ["design", "system"]


class TestSearch:
    """Test ranking and matching modes."""

    def test_exact_company(self, search):
        """Test a company name ranks its experience first."""
        results = search.search("invitrace")
        assert results[0].id == "exp-0"
        assert SearchEngine.is_confident(results[0])

    def test_prefix(self, search):
        """Test a prefix reaches the full term."""
        results = search.search("invitr")
        assert results[0].company == "Invitrace"
        assert "invitrace" in results[0].match["invitr"]

    def test_typo(self, search):
        """Test a one-letter typo still finds Figma."""
        results = search.search("fgma")
        assert results[0].title == "Figma"

    def test_limit(self, search):
        """Test the result count is capped."""
        assert len(search.search("design", limit=2)) <= 2

    def test_empty_and_stopword_queries(self, search):
        """Test queries without indexable terms return nothing."""
        assert search.search("") == []
        assert search.search("what is the") == []

    def test_read_only(self, search):
        """Test repeated searches return identical rankings."""
        first = [(r.id, r.score) for r in search.search("user research")]
        second = [(r.id, r.score) for r in search.search("user research")]
        assert first == second


class TestConfidence:
    """Test the fallback confidence gate."""

    def test_low_score_rejected(self):
        """Test score must exceed 1."""
        result = SearchResult("x", "skill", "Figma", "", score=0.9, match={"figma": ["figma"]})
        assert not SearchEngine.is_confident(result)

    def test_short_fragment_rejected(self):
        """Test a short query term reaching only a long index term is spurious."""
        result = SearchResult("x", "skill", "Interaction Design", "", score=3.0, match={"int": ["interaction"]})
        assert not SearchEngine.is_confident(result)

    def test_full_term_accepted(self):
        """Test a whole-word hit above the score floor."""
        result = SearchResult("x", "skill", "Figma", "", score=3.0, match={"figma": ["figma"]})
        assert SearchEngine.is_confident(result)
