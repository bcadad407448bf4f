"""Typed models for the JSON knowledge files that drive Lumo.

Every behaviour the engine has beyond pure string matching (intent catalog,
entity lists, canned small talk, scripted flows, fallback lines, greeting
variants, profile content) is data under ``lumo/data``. The files are parsed
into the pydantic models below once at startup, so malformed configuration
fails fast with a ``ValidationError`` instead of surfacing as a confusing
miss in the middle of a conversation.

Design Principles:
- Fail fast: regex patterns are compiled during validation
- Read-only after load: components receive these models by injection
- One loader: ``load_knowledge(data_dir)`` builds the whole bundle

Example:
    from lumo.config.knowledge import load_knowledge

    knowledge = load_knowledge()
    knowledge.intents.intents["experience_query"].primary_keywords
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from lumo.config import settings

logger = logging.getLogger(__name__)


# ============================================================================
# Shared pieces
# ============================================================================

class SuggestionSpec(BaseModel):
    label: str
    payload: str
    icon: Optional[str] = None


class CommandSpec(BaseModel):
    type: str
    value: str


class WeightedText(BaseModel):
    """A canned line with a sampling weight (see lumo.utils.sampling.weighted_choice)."""

    text: str
    weight: float = Field(default=1.0, gt=0)
    action: Optional[str] = None


# ============================================================================
# Intents
# ============================================================================

class IntentDefinition(BaseModel):
    description: str = ""
    primary_keywords: List[str] = Field(default_factory=list)
    secondary_keywords: List[str] = Field(default_factory=list)
    synonyms: Dict[str, List[str]] = Field(default_factory=dict)
    semantic_patterns: List[str] = Field(default_factory=list)
    negative_keywords: List[str] = Field(default_factory=list)
    context_boosters: Dict[str, float] = Field(default_factory=dict)
    confidence_threshold: Optional[float] = Field(default=None, ge=0, le=1)

    @field_validator("semantic_patterns")
    @classmethod
    def _patterns_compile(cls, patterns: List[str]) -> List[str]:
        # Same conversion the classifier performs at match time
        for pattern in patterns:
            converted = re.sub(r"\{([^}]+)\}", r"(\1)", pattern)
            converted = re.sub(r"\s+", r"\\s+", converted)
            try:
                re.compile(converted, re.IGNORECASE)
            except re.error as exc:
                raise ValueError(f"invalid semantic pattern {pattern!r}: {exc}") from exc
        return patterns


class IntentCatalog(BaseModel):
    intents: Dict[str, IntentDefinition]


# ============================================================================
# Entities
# ============================================================================

class EntityTypeDefinition(BaseModel):
    known_entities: List[str] = Field(default_factory=list)
    fuzzy_match: bool = False
    patterns: List[str] = Field(default_factory=list)
    aliases: Dict[str, str] = Field(default_factory=dict)

    @field_validator("patterns")
    @classmethod
    def _patterns_compile(cls, patterns: List[str]) -> List[str]:
        for pattern in patterns:
            try:
                re.compile(pattern, re.IGNORECASE)
            except re.error as exc:
                raise ValueError(f"invalid entity pattern {pattern!r}: {exc}") from exc
        return patterns

    @field_validator("aliases")
    @classmethod
    def _lowercase_alias_keys(cls, aliases: Dict[str, str]) -> Dict[str, str]:
        return {key.lower(): value for key, value in aliases.items()}


class ExtractionRule(BaseModel):
    max_extractions: Optional[int] = Field(default=None, ge=1)


class EntityRelationshipSpec(BaseModel):
    type: str
    query_pattern: str


class EntityCatalog(BaseModel):
    entities: Dict[str, EntityTypeDefinition]
    extraction_rules: Dict[str, ExtractionRule] = Field(default_factory=dict)
    entity_relationships: Dict[str, EntityRelationshipSpec] = Field(default_factory=dict)

    @field_validator("entity_relationships")
    @classmethod
    def _relationship_keys(cls, relationships: Dict[str, EntityRelationshipSpec]) -> Dict[str, EntityRelationshipSpec]:
        for key in relationships:
            if len(key.split(" + ")) != 2:
                raise ValueError(f"relationship key must look like 'type_a + type_b', got {key!r}")
        return relationships


# ============================================================================
# Small talk, references, fallbacks
# ============================================================================

class SmallTalkCategory(BaseModel):
    triggers: List[str]
    responses: List[str] = Field(min_length=1)


class SmallTalkReactions(BaseModel):
    positive: SmallTalkCategory
    laughter: SmallTalkCategory
    surprise: SmallTalkCategory


class SmallTalkCatalog(BaseModel):
    greetings: SmallTalkCategory
    gratitude: SmallTalkCategory
    reactions: SmallTalkReactions
    affirmations: SmallTalkCategory
    farewells: SmallTalkCategory
    confusion: SmallTalkCategory
    encouragement: SmallTalkCategory
    auto_execute_triggers: List[str] = Field(default_factory=list)


class PhraseSet(BaseModel):
    phrases: List[str]


class PronounSet(BaseModel):
    subject_references: List[str]


class ReferencePatternSet(BaseModel):
    pronouns: PronounSet
    follow_up_more: PhraseSet
    follow_up_previous: PhraseSet
    follow_up_next: PhraseSet


class FollowUpIntros(BaseModel):
    more_details_intros: List[str] = Field(min_length=1)
    chronological_previous: List[str] = Field(min_length=1)
    chronological_next: List[str] = Field(min_length=1)
    context_switch: List[str] = Field(min_length=1)


class ReferenceCatalog(BaseModel):
    reference_patterns: ReferencePatternSet
    follow_up_responses: FollowUpIntros


class FallbackCategory(BaseModel):
    responses: List[WeightedText] = Field(min_length=1)


class FallbackCatalog(BaseModel):
    no_context: FallbackCategory
    vague_query: FallbackCategory
    low_confidence: FallbackCategory
    gibberish: FallbackCategory
    too_broad: FallbackCategory


# ============================================================================
# Scripted flows and extras
# ============================================================================

class FlowTransition(BaseModel):
    trigger: str
    target: str
    condition: Optional[str] = None


class FlowNode(BaseModel):
    id: str
    message: str
    suggestions: List[str] = Field(default_factory=list)
    command: Optional[CommandSpec] = None
    transitions: List[FlowTransition] = Field(default_factory=list)


class Surprise(BaseModel):
    content: str
    followup: str = ""
    weight: float = Field(default=1.0, gt=0)


class FlowExtras(BaseModel):
    surprises: List[Surprise] = Field(min_length=1)


class FlowCatalog(BaseModel):
    nodes: Dict[str, FlowNode]
    extras: FlowExtras

    @model_validator(mode="after")
    def _targets_exist(self) -> "FlowCatalog":
        if "root" not in self.nodes:
            raise ValueError("conversation flows need a 'root' node")
        for node_id, node in self.nodes.items():
            if node.id != node_id:
                raise ValueError(f"flow node key {node_id!r} does not match its id {node.id!r}")
            for transition in node.transitions:
                if transition.target not in self.nodes:
                    raise ValueError(f"flow node {node_id!r} points at unknown node {transition.target!r}")
        return self


# ============================================================================
# Greeting system
# ============================================================================

class GreetingVariant(BaseModel):
    message: str
    weight: float = Field(default=1.0, gt=0)
    follow_up_id: Optional[str] = None


class TimeContext(BaseModel):
    variants: List[GreetingVariant] = Field(min_length=1)


class TimeContexts(BaseModel):
    morning: TimeContext
    afternoon: TimeContext
    evening: TimeContext


class FollowUp(BaseModel):
    text: str
    delay_ms: int = 0


class LocationContext(BaseModel):
    text: str
    suggestions: List[str] = Field(default_factory=list)


class IdleNudge(BaseModel):
    text: str
    suggestions: List[str] = Field(default_factory=list)


class RichMedia(BaseModel):
    type: str = "image"
    url: str
    alt: str
    caption: str


class EasterEgg(BaseModel):
    prefix: str
    suffix: str


class GreetingSystem(BaseModel):
    time_contexts: TimeContexts
    follow_ups: Dict[str, FollowUp] = Field(default_factory=dict)
    location_contexts: Dict[str, LocationContext]
    idle_nudges: List[IdleNudge] = Field(min_length=1)
    rich_media: Dict[str, RichMedia] = Field(default_factory=dict)
    easter_eggs: Dict[str, EasterEgg] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _general_location(self) -> "GreetingSystem":
        if "general" not in self.location_contexts:
            raise ValueError("location_contexts needs a 'general' entry")
        return self


# ============================================================================
# Templates, knowledge graph, profile
# ============================================================================

class TemplateCatalog(BaseModel):
    en: Dict[str, List[str]]
    suggestions: Dict[str, List[SuggestionSpec]] = Field(default_factory=dict)


class ExperienceSkills(BaseModel):
    experience_id: str
    demonstrates_skills: List[str]


class ExperienceToSkills(BaseModel):
    examples: List[ExperienceSkills]


class GraphRelationships(BaseModel):
    experience_to_skills: ExperienceToSkills


class KnowledgeGraphData(BaseModel):
    relationships: GraphRelationships
    company_names: Dict[str, str] = Field(default_factory=dict)


class Identity(BaseModel):
    full_name: str
    nickname: str
    current_title: str
    location: str = ""


class Company(BaseModel):
    name: str
    industry: str = ""
    location: str = ""


class Role(BaseModel):
    title: str
    start: str
    end: str = "present"


class Storytelling(BaseModel):
    short: str
    medium: str
    detailed: str


class ExperienceEntry(BaseModel):
    id: str
    company: Company
    role: Role
    storytelling: Storytelling
    highlights: List[str] = Field(default_factory=list)
    link: Optional[str] = None


class ExperienceSummary(BaseModel):
    total_years: str
    industries: List[str]


class Experience(BaseModel):
    summary: ExperienceSummary
    timeline: List[ExperienceEntry] = Field(min_length=1)


class Competency(BaseModel):
    name: str
    description: str
    level: str = ""


class SkillCategory(BaseModel):
    label: str
    competencies: List[Competency]


class Skills(BaseModel):
    categories: Dict[str, SkillCategory]


class EducationEntry(BaseModel):
    degree: str
    institution: str
    field: str
    location: str = ""


class ContactChannel(BaseModel):
    type: str = "email"
    value: str


class SocialLink(BaseModel):
    url: str


class Contact(BaseModel):
    primary: ContactChannel
    social: Dict[str, SocialLink] = Field(default_factory=dict)
    response_time: str = "24-48 hours"


class CareerThemes(BaseModel):
    impact: str


class CareerNarrative(BaseModel):
    elevator_pitch: str
    unique_value: List[str]
    career_themes: CareerThemes


class ProfileDocument(BaseModel):
    identity: Identity
    experience: Experience
    skills: Skills
    education: List[EducationEntry] = Field(default_factory=list)
    contact: Contact
    career_narrative: CareerNarrative
    nlg_factors: Dict[str, Dict[str, str]] = Field(default_factory=dict)


# ============================================================================
# Bundle + loader
# ============================================================================

class KnowledgeBundle(BaseModel):
    intents: IntentCatalog
    entities: EntityCatalog
    small_talk: SmallTalkCatalog
    references: ReferenceCatalog
    fallbacks: FallbackCatalog
    flows: FlowCatalog
    greetings: GreetingSystem
    templates: TemplateCatalog
    knowledge_graph: KnowledgeGraphData
    profile: ProfileDocument


_FILES = {
    "intents": ("intents.json", IntentCatalog),
    "entities": ("entity_patterns.json", EntityCatalog),
    "small_talk": ("smalltalk_patterns.json", SmallTalkCatalog),
    "references": ("reference_patterns.json", ReferenceCatalog),
    "fallbacks": ("fallback_responses.json", FallbackCatalog),
    "flows": ("conversation_flows.json", FlowCatalog),
    "greetings": ("greeting_system.json", GreetingSystem),
    "templates": ("templates.json", TemplateCatalog),
    "knowledge_graph": ("knowledge_graph.json", KnowledgeGraphData),
    "profile": ("profile.json", ProfileDocument),
}


def load_json(path: Union[str, Path]) -> dict:
    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def load_knowledge(data_dir: Optional[Union[str, Path]] = None) -> KnowledgeBundle:
    """Read and validate every knowledge file.

    Args:
        data_dir: Directory with the JSON files. Defaults to ``settings.DATA_DIR``.

    Raises:
        FileNotFoundError: A required file is missing.
        pydantic.ValidationError: A file does not match its schema.
    """
    directory = Path(data_dir) if data_dir else settings.DATA_DIR
    parts = {}
    for field_name, (filename, model) in _FILES.items():
        parts[field_name] = model.model_validate(load_json(directory / filename))

    bundle = KnowledgeBundle(**parts)
    logger.info(
        f"Loaded knowledge from {directory}: {len(bundle.intents.intents)} intents, "
        f"{len(bundle.entities.entities)} entity types, {len(bundle.flows.nodes)} flow nodes"
    )
    return bundle
