# __init__.py for the retrieval module

from .profile_store import ProfileStore
from .knowledge_graph import KnowledgeGraph, GraphResult
from .search_engine import SearchEngine, SearchResult

__all__ = [
    "ProfileStore",
    "KnowledgeGraph",
    "GraphResult",
    "SearchEngine",
    "SearchResult",
]
