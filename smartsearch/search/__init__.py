"""
Search module for smart contact search
Deterministic intent parsing and ranking, remote refinement and coordination
"""

from .models import (
    IntentType, SearchIntent, StructuredQuery, SearchableRecord, SearchResult,
    RemoteIntent, RemoteFilters, RemoteResponse
)
from .parser import IntentParser, parse_query
from .engine import RankingAlgorithm, execute_search
from .filters import RemoteFilterApplier, apply_remote_filters, remote_query
from .remote import RemoteSearchClient
from .coordinator import SearchCoordinator, SearchState
from .exceptions import SmartSearchError, RemoteSearchUnavailable, SearchInvariantError

__all__ = [
    "IntentType",
    "SearchIntent",
    "StructuredQuery",
    "SearchableRecord",
    "SearchResult",
    "RemoteIntent",
    "RemoteFilters",
    "RemoteResponse",
    "IntentParser",
    "parse_query",
    "RankingAlgorithm",
    "execute_search",
    "RemoteFilterApplier",
    "apply_remote_filters",
    "remote_query",
    "RemoteSearchClient",
    "SearchCoordinator",
    "SearchState",
    "SmartSearchError",
    "RemoteSearchUnavailable",
    "SearchInvariantError"
]
