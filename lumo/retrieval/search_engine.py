"""Fuzzy full-text search over the profile, used as the last-resort fallback.

The index is built once from the profile (experience entries, flattened
competencies, education) and is read-only afterwards. Scoring is BM25 per
field with field boosts, summed over query terms. Each query term may hit
index terms three ways:

- exact: weight 1.0
- prefix (index term starts with the query term): weight 0.375 scaled by
  how much of the index term the query covers
- fuzzy (Levenshtein distance within 20% of the query term length): weight
  0.45 scaled down by the distance

Callers should only surface a result that passes ``is_confident``: score
above 1 and not a spurious short hit, where every matched index term is
much longer than the query term that reached it.
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from rapidfuzz.distance import Levenshtein

from lumo.config.knowledge import ProfileDocument

logger = logging.getLogger(__name__)

FIELDS = ("title", "description", "company", "role", "category", "keywords")
BOOSTS = {"title": 3.0, "company": 2.0, "keywords": 2.0}

FUZZY_RATIO = 0.2
PREFIX_WEIGHT = 0.375
FUZZY_WEIGHT = 0.45
MIN_TERM_LENGTH = 2
MIN_SCORE = 1.0
MIN_LENGTH_RATIO = 0.6

BM25_K1 = 1.2
BM25_B = 0.7

STOPWORDS = frozenset(
    "a an and are about at be can did do does for from has have he his how i in is it me of on or "
    "she tell that the this to was what when where which who why with you your".split()
)

_TOKEN = re.compile(r"[a-z0-9]+")


def tokenize(text: str) -> List[str]:
    return [t for t in _TOKEN.findall(text.lower()) if len(t) >= MIN_TERM_LENGTH and t not in STOPWORDS]


@dataclass
class SearchDocument:
    id: str
    type: str
    title: str
    description: str = ""
    company: str = ""
    role: str = ""
    category: str = ""
    keywords: str = ""
    link: Optional[str] = None


@dataclass
class SearchResult:
    id: str
    type: str
    title: str
    description: str
    score: float
    company: str = ""
    role: str = ""
    link: Optional[str] = None
    # query term -> index terms it matched
    match: Dict[str, List[str]] = field(default_factory=dict)


class SearchEngine:
    """In-memory fuzzy index.

    Args:
        profile: Profile document to index. Built eagerly in the constructor.
    """

    def __init__(self, profile: ProfileDocument):
        self.documents: Dict[str, SearchDocument] = {}
        # term -> field -> doc id -> term frequency
        self._postings: Dict[str, Dict[str, Dict[str, int]]] = defaultdict(lambda: defaultdict(dict))
        self._field_lengths: Dict[str, Dict[str, int]] = defaultdict(dict)
        self._avg_field_length: Dict[str, float] = {}

        documents = self.build_documents(profile)
        for document in documents:
            self._add(document)
        self._finalize()

        logger.info(f"Search index built with {len(self.documents)} documents, {len(self._postings)} terms")

    @staticmethod
    def build_documents(profile: ProfileDocument) -> List[SearchDocument]:
        documents = []

        for index, exp in enumerate(profile.experience.timeline):
            documents.append(
                SearchDocument(
                    id=f"exp-{index}",
                    type="experience",
                    title=exp.role.title,
                    company=exp.company.name,
                    role=exp.role.title,
                    description=exp.storytelling.medium,
                    keywords=f"{exp.company.name} {exp.role.title} {exp.company.industry} {' '.join(exp.highlights)}",
                    link=exp.link,
                )
            )

        competencies = [c for category in profile.skills.categories.values() for c in category.competencies]
        for index, competency in enumerate(competencies):
            documents.append(
                SearchDocument(
                    id=f"skill-cat-{index}",
                    type="skill",
                    title=competency.name,
                    description=competency.description,
                    category="Competency",
                    keywords=f"{competency.name} {competency.description}",
                )
            )

        for index, edu in enumerate(profile.education):
            documents.append(
                SearchDocument(
                    id=f"edu-{index}",
                    type="education",
                    title=edu.degree,
                    company=edu.institution,
                    description=f"{edu.field} at {edu.location}" if edu.location else edu.field,
                    keywords=f"{edu.institution} {edu.field}",
                )
            )

        return documents

    def _add(self, document: SearchDocument) -> None:
        self.documents[document.id] = document
        for field_name in FIELDS:
            terms = tokenize(getattr(document, field_name) or "")
            self._field_lengths[field_name][document.id] = len(terms)
            for term, count in Counter(terms).items():
                self._postings[term][field_name][document.id] = count

    def _finalize(self) -> None:
        for field_name in FIELDS:
            lengths = self._field_lengths[field_name].values()
            non_empty = [n for n in lengths if n]
            self._avg_field_length[field_name] = sum(non_empty) / len(non_empty) if non_empty else 1.0

    def _expand(self, query_term: str) -> Dict[str, float]:
        """Index terms reachable from one query term, with their match weight."""
        expansions: Dict[str, float] = {}
        max_distance = int(round(len(query_term) * FUZZY_RATIO))

        for term in self._postings:
            if term == query_term:
                expansions[term] = 1.0
                continue

            if term.startswith(query_term):
                expansions[term] = PREFIX_WEIGHT * len(query_term) / len(term)

            if max_distance > 0 and abs(len(term) - len(query_term)) <= max_distance:
                distance = Levenshtein.distance(query_term, term, score_cutoff=max_distance)
                if distance <= max_distance:
                    weight = FUZZY_WEIGHT * len(query_term) / (len(query_term) + distance)
                    expansions[term] = max(expansions.get(term, 0.0), weight)

        return expansions

    def _bm25(self, term: str, field_name: str, doc_id: str, frequency: int) -> float:
        n_docs = len(self.documents)
        n_with_term = len(self._postings[term][field_name])
        idf = math.log(1 + (n_docs - n_with_term + 0.5) / (n_with_term + 0.5))
        length = self._field_lengths[field_name].get(doc_id, 0)
        norm = 1 - BM25_B + BM25_B * length / self._avg_field_length[field_name]
        return idf * frequency * (BM25_K1 + 1) / (frequency + BM25_K1 * norm)

    def search(self, query: str, limit: int = 3) -> List[SearchResult]:
        scores: Dict[str, float] = defaultdict(float)
        matches: Dict[str, Dict[str, List[str]]] = defaultdict(dict)

        for query_term in dict.fromkeys(tokenize(query)):
            for term, weight in self._expand(query_term).items():
                for field_name, postings in self._postings[term].items():
                    boost = BOOSTS.get(field_name, 1.0)
                    for doc_id, frequency in postings.items():
                        scores[doc_id] += boost * weight * self._bm25(term, field_name, doc_id, frequency)
                        hits = matches[doc_id].setdefault(query_term, [])
                        if term not in hits:
                            hits.append(term)

        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)[:limit]
        results = []
        for doc_id, score in ranked:
            document = self.documents[doc_id]
            results.append(
                SearchResult(
                    id=document.id,
                    type=document.type,
                    title=document.title,
                    description=document.description,
                    score=score,
                    company=document.company,
                    role=document.role,
                    link=document.link,
                    match=matches[doc_id],
                )
            )
        return results

    @staticmethod
    def is_confident(result: SearchResult) -> bool:
        if result.score <= MIN_SCORE:
            return False

        # Reject results reached only through short fragments of longer words
        for query_term, terms in result.match.items():
            if any(len(query_term) / len(term) >= MIN_LENGTH_RATIO for term in terms):
                return True
        return False
