"""Skill ↔ experience relationships.

Answers "where did he use X?" by walking the ``experience_to_skills``
examples in knowledge_graph.json and decorating each hit with the company's
display name and the role held there.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from lumo.config.knowledge import KnowledgeGraphData
from lumo.retrieval.profile_store import ProfileStore

logger = logging.getLogger(__name__)


@dataclass
class GraphResult:
    entity: str
    relationship: str
    target: str
    context: str


class KnowledgeGraph:
    def __init__(self, data: KnowledgeGraphData, profile_store: ProfileStore):
        self.data = data
        self.profile_store = profile_store

    def find_skill_usage(self, skill: str) -> List[GraphResult]:
        """Experiences whose skill ids (underscores read as spaces) contain ``skill``."""
        normalized = skill.lower()
        results = []

        for entry in self.data.relationships.experience_to_skills.examples:
            if any(normalized in s.replace("_", " ").lower() for s in entry.demonstrates_skills):
                results.append(
                    GraphResult(
                        entity=skill,
                        relationship="demonstrated at",
                        target=self.company_name(entry.experience_id),
                        context=self.experience_context(entry.experience_id),
                    )
                )

        logger.debug(f"Skill {skill!r} found at {len(results)} experiences")
        return results

    def find_company_skills(self, experience_id: str) -> List[str]:
        for entry in self.data.relationships.experience_to_skills.examples:
            if entry.experience_id == experience_id:
                return [s.replace("_", " ") for s in entry.demonstrates_skills]
        return []

    def company_name(self, experience_id: str) -> str:
        name = self.data.company_names.get(experience_id)
        if name:
            return name
        return experience_id[:1].upper() + experience_id[1:]

    def experience_context(self, experience_id: str) -> str:
        experience = self.profile_store.get_experience_by_id(experience_id)
        return experience.role.title if experience else "Product Designer"
