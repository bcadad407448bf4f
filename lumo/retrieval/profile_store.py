"""Read-only accessors over the profile document."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from lumo.config.knowledge import Competency, Contact, ExperienceEntry, ProfileDocument


def _start_date(value: str) -> datetime:
    if value.lower() == "present":
        return datetime.now()
    return datetime.strptime(value, "%Y-%m")


class ProfileStore:
    def __init__(self, profile: ProfileDocument):
        self.profile = profile

    def get_work_experience(self) -> List[ExperienceEntry]:
        """Timeline in document order (most recent role first)."""
        return list(self.profile.experience.timeline)

    def get_work_experience_sorted(self) -> List[ExperienceEntry]:
        return sorted(self.profile.experience.timeline, key=lambda e: _start_date(e.role.start), reverse=True)

    def get_experience_by_id(self, experience_id: str) -> Optional[ExperienceEntry]:
        return next((e for e in self.profile.experience.timeline if e.id == experience_id), None)

    def get_company_by_name(self, name: str) -> Optional[ExperienceEntry]:
        """Exact, case-insensitive company name lookup."""
        lowered = name.lower()
        return next((e for e in self.profile.experience.timeline if e.company.name.lower() == lowered), None)

    def find_company(self, name: str) -> Optional[ExperienceEntry]:
        """Looser lookup: the timeline company name contains ``name``."""
        lowered = name.lower()
        return next((e for e in self.profile.experience.timeline if lowered in e.company.name.lower()), None)

    def get_current_experience(self) -> ExperienceEntry:
        return self.profile.experience.timeline[0]

    def get_competencies(self) -> List[Competency]:
        return [c for category in self.profile.skills.categories.values() for c in category.competencies]

    def get_competency_by_name(self, name: str) -> Optional[Competency]:
        lowered = name.lower()
        return next((c for c in self.get_competencies() if c.name.lower() == lowered), None)

    def get_top_competencies(self, count: int = 5) -> List[Competency]:
        return self.get_competencies()[:count]

    def get_contact_info(self) -> Contact:
        return self.profile.contact

    def get_full_name(self) -> str:
        return self.profile.identity.full_name

    def get_nickname(self) -> str:
        return self.profile.identity.nickname

    def get_current_role(self) -> str:
        return self.profile.identity.current_title

    def get_narrative(self):
        return self.profile.career_narrative

    def get_nlg_factors(self) -> Dict[str, Dict[str, str]]:
        return self.profile.nlg_factors

    def get_education(self):
        return list(self.profile.education)
