"""Tests for knowledge loading, profile lookups, the skill graph and suggestions.

Run: pytest tests/test_knowledge_and_retrieval.py -v
"""

import json
import random
import shutil

import pytest
from pydantic import ValidationError

from lumo.config import settings
from lumo.config.knowledge import load_knowledge
from lumo.flows.node_logic.util_suggestions import (
    DEFAULT_SUGGESTIONS,
    SmartRecommender,
    SuggestionGenerator,
    labels_to_suggestions,
)
from lumo.retrieval import KnowledgeGraph
from lumo.retrieval.profile_store import ProfileStore
from lumo.state.user_profiler import UserProfile


@pytest.fixture
def profile_store(knowledge):
    return ProfileStore(knowledge.profile)


@pytest.fixture
def graph(knowledge, profile_store):
    return KnowledgeGraph(knowledge.knowledge_graph, profile_store)


class TestLoadKnowledge:
    """Test reading and validating the data directory."""

    def test_bundled_data(self, knowledge):
        """Test the shipped files load."""
        assert knowledge.intents.intents
        assert knowledge.flows.nodes
        assert knowledge.profile.identity.full_name == "Nate Saentree"

    def test_missing_file(self, tmp_path):
        """Test an empty directory fails loudly."""
        with pytest.raises(FileNotFoundError):
            load_knowledge(tmp_path)

    def test_invalid_file(self, tmp_path):
        """Test a file that breaks its schema is rejected."""
        for path in settings.DATA_DIR.glob("*.json"):
            shutil.copy(path, tmp_path / path.name)
        (tmp_path / "knowledge_graph.json").write_text(json.dumps({"relationships": []}))

        with pytest.raises(ValidationError):
            load_knowledge(tmp_path)


class TestProfileStore:
    """Test profile accessors."""

    def test_timeline_order(self, profile_store):
        """Test document order and date order agree, most recent first."""
        ids = [e.id for e in profile_store.get_work_experience()]
        assert ids == ["invitrace", "doctoranywhere", "peakaccount", "cp_origin", "codefin"]
        assert [e.id for e in profile_store.get_work_experience_sorted()] == ids
        assert profile_store.get_current_experience().id == "invitrace"

    def test_company_lookups(self, profile_store):
        """Test exact and loose company lookups."""
        assert profile_store.get_company_by_name("peakaccount").id == "peakaccount"
        assert profile_store.get_company_by_name("peak") is None
        assert profile_store.find_company("doctor").id == "doctoranywhere"
        assert profile_store.get_experience_by_id("nowhere") is None

    def test_competencies(self, profile_store):
        """Test competency lookups across categories."""
        assert profile_store.get_competency_by_name("figma").level == "expert"
        assert len(profile_store.get_top_competencies(3)) == 3
        assert profile_store.get_nickname() == "Nate"


class TestKnowledgeGraph:
    """Test skill to experience lookups."""

    def test_skill_usage(self, graph):
        """Test underscored skill ids match spaced names."""
        results = graph.find_skill_usage("User Research")
        assert [r.target for r in results] == ["Invitrace", "Doctor Anywhere", "CP Origin"]
        assert results[0].context == "Lead Product Designer"
        assert results[0].relationship == "demonstrated at"

    def test_unknown_skill(self, graph):
        """Test a skill nobody demonstrated."""
        assert graph.find_skill_usage("knitting") == []

    def test_company_skills(self, graph):
        """Test skills per experience."""
        assert graph.find_company_skills("peakaccount") == ["visual design", "prototyping", "figma"]
        assert graph.find_company_skills("nowhere") == []

    def test_company_name_fallback(self, graph):
        """Test ids missing from the name table are capitalized."""
        assert graph.company_name("cp_origin") == "CP Origin"
        assert graph.company_name("acme") == "Acme"
        assert graph.experience_context("acme") == "Product Designer"


class TestSuggestions:
    """Test suggestion buttons and recommendations."""

    def test_labels_to_suggestions(self):
        """Test payloads are lowercased labels and back buttons get their icon."""
        suggestions = labels_to_suggestions(["PeakAccount", "Back to case studies"])
        assert suggestions[0] == {"label": "PeakAccount", "payload": "peakaccount", "icon": "👉"}
        assert suggestions[1]["icon"] == "🔙"
        assert labels_to_suggestions(["Menu"], icon=None) == [{"label": "Menu", "payload": "menu"}]

    def test_active_topic(self, knowledge):
        """Test an active topic centres the buttons on it."""
        suggestions = SuggestionGenerator(knowledge.templates).generate(active_topic="Invitrace")
        assert suggestions[0]["payload"] == "tell me more about Invitrace"

    def test_pool_sample(self, knowledge):
        """Test a typed pool is sampled without repeats."""
        generator = SuggestionGenerator(knowledge.templates, random.Random(3))
        suggestions = generator.generate("greeting", count=3)
        pool = [s.label for s in knowledge.templates.suggestions["greeting"]]
        labels = [s["label"] for s in suggestions]
        assert len(labels) == len(set(labels)) == 3
        assert set(labels) <= set(pool)

    def test_unknown_pool(self, knowledge):
        """Test unknown types fall back to the default buttons."""
        assert SuggestionGenerator(knowledge.templates).generate("nonsense") == DEFAULT_SUGGESTIONS

    def test_company_recommendation(self):
        """Test a single company of interest gets a company-specific nudge."""
        recommendation = SmartRecommender().get_recommendation(UserProfile(company_interest=["Invitrace"]))
        assert "Invitrace" in recommendation.message
        assert recommendation.suggestions[0]["payload"] == "show me projects at Invitrace"

    def test_no_recommendation(self):
        """Test a blank profile gets nothing."""
        assert SmartRecommender().get_recommendation(UserProfile()) is None

    def test_personalize_order(self):
        """Test preferred content and depth float to the top, clicked buttons sink."""
        profile = UserProfile(preferred_content_type="skills", preferred_depth="quick", clicked_suggestions=["Contact"])
        ordered = SmartRecommender().personalize_order(
            [
                {"label": "Contact", "payload": "contact"},
                {"label": "Quick Summary", "payload": "quick summary"},
                {"label": "Skills", "payload": "skills"},
            ],
            profile,
        )
        assert [s["label"] for s in ordered] == ["Skills", "Quick Summary", "Contact"]

    def test_contextual(self):
        """Test contextual button sets."""
        recommender = SmartRecommender()
        assert recommender.get_contextual_suggestions("surprise")[0]["label"] == "Another One!"
        assert recommender.get_contextual_suggestions("nothing") is None
