"""Structured entity extraction (company names, skill names) from free text.

For each entity type in ``entity_patterns.json`` the extractor tries, in order:

1. Known entities as verbatim case-insensitive substrings (confidence 1.0)
2. Fuzzy ``smart_match`` of each whitespace token against each known entity,
   when the type enables it (confidence = score * 0.9)
3. Regex patterns over the full query, only when steps 1-2 found nothing
   for the type (confidence 0.8, first capture group preferred)

Extracted values are then canonicalized through the type's alias table and
capped by ``extraction_rules[type].max_extractions``.

Example:
    extractor = EntityExtractor(knowledge.entities)
    extractor.extract("what did he do at invitrace?")
    # [ExtractedEntity(type='company_name', value='Invitrace', confidence=1.0, position=19)]
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import List, Optional

from lumo.config.knowledge import EntityCatalog, EntityTypeDefinition
from lumo.matching.fuzzy_matcher import FuzzyMatcher

logger = logging.getLogger(__name__)

EXTRACTOR_THRESHOLD = 0.8
FUZZY_CONFIDENCE_FACTOR = 0.9
PATTERN_CONFIDENCE = 0.8


@dataclass
class ExtractedEntity:
    type: str
    value: str
    confidence: float
    position: int


@dataclass
class EntityRelationship:
    """Two co-occurring entities plus the question template for the pair."""

    type: str
    entities: List[ExtractedEntity] = field(default_factory=list)
    pattern: str = ""


class EntityExtractor:
    """Pull typed entities out of a query using the entity catalog."""

    def __init__(self, catalog: EntityCatalog, matcher: Optional[FuzzyMatcher] = None):
        self.catalog = catalog
        self.matcher = matcher or FuzzyMatcher(EXTRACTOR_THRESHOLD)
        self._compiled = {
            entity_type: [re.compile(p, re.IGNORECASE) for p in definition.patterns]
            for entity_type, definition in catalog.entities.items()
        }

    def extract(self, query: str) -> List[ExtractedEntity]:
        """All entities across all types, sorted by confidence (stable)."""
        entities: List[ExtractedEntity] = []
        for entity_type, definition in self.catalog.entities.items():
            entities.extend(self.extract_entity_type(query, entity_type, definition))

        return sorted(entities, key=lambda e: e.confidence, reverse=True)

    def extract_entity_type(
        self,
        query: str,
        entity_type: str,
        definition: EntityTypeDefinition,
    ) -> List[ExtractedEntity]:
        entities: List[ExtractedEntity] = []
        lowered = query.lower()

        for known in definition.known_entities:
            position = lowered.find(known.lower())
            if position != -1:
                entities.append(ExtractedEntity(entity_type, known, 1.0, position))
            elif definition.fuzzy_match:
                for index, word in enumerate(query.split()):
                    match = self.matcher.smart_match(word, known)
                    if match.matches:
                        entities.append(
                            ExtractedEntity(entity_type, known, match.score * FUZZY_CONFIDENCE_FACTOR, index)
                        )

        if not entities:
            for regex in self._compiled.get(entity_type, []):
                for match in regex.finditer(query):
                    value = match.group(1) if match.groups() and match.group(1) else match.group(0)
                    entities.append(ExtractedEntity(entity_type, value.strip(), PATTERN_CONFIDENCE, match.start()))

        if definition.aliases:
            entities = [
                replace(entity, value=definition.aliases.get(entity.value.lower(), entity.value))
                for entity in entities
            ]

        rule = self.catalog.extraction_rules.get(entity_type)
        if rule and rule.max_extractions:
            entities = entities[: rule.max_extractions]

        if entities:
            logger.debug(f"Extracted {len(entities)} {entity_type} entities: {[e.value for e in entities]}")
        return entities

    def extract_entity(self, query: str, entity_type: str) -> Optional[ExtractedEntity]:
        """First entity of one type, or None (also None for an unknown type)."""
        definition = self.catalog.entities.get(entity_type)
        if definition is None:
            return None

        entities = self.extract_entity_type(query, entity_type, definition)
        return entities[0] if entities else None

    def find_relationships(self, entities: List[ExtractedEntity]) -> List[EntityRelationship]:
        relationships: List[EntityRelationship] = []

        for key, rule in self.catalog.entity_relationships.items():
            type_a, type_b = key.split(" + ")
            first = next((e for e in entities if e.type == type_a), None)
            second = next((e for e in entities if e.type == type_b), None)
            if first and second:
                relationships.append(EntityRelationship(rule.type, [first, second], rule.query_pattern))

        return relationships
