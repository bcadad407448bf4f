"""Lexical understanding: fuzzy matching, entities, intents and references."""

from lumo.matching.fuzzy_matcher import FuzzyMatcher, FuzzyMatch, SmartMatch
from lumo.matching.entity_extractor import EntityExtractor, ExtractedEntity, EntityRelationship
from lumo.matching.intent_classifier import IntentClassifier, IntentScore
from lumo.matching.reference_resolver import ReferenceResolver, ReferenceDetection
from lumo.matching.context_resolver import ContextResolver, ResolutionResult, ScoredCandidate

__all__ = [
    "FuzzyMatcher",
    "FuzzyMatch",
    "SmartMatch",
    "EntityExtractor",
    "ExtractedEntity",
    "EntityRelationship",
    "IntentClassifier",
    "IntentScore",
    "ReferenceResolver",
    "ReferenceDetection",
    "ContextResolver",
    "ResolutionResult",
    "ScoredCandidate",
]
