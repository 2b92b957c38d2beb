"""Interaction and recommendation services"""

from .interaction_merge import InteractionState, merge
from .interaction_store import InteractionStore
from .interaction_ingestion import InteractionIngestionService
from .recommendations import RecommendationClient, RecommendationCache

__all__ = [
    "InteractionState",
    "merge",
    "InteractionStore",
    "InteractionIngestionService",
    "RecommendationClient",
    "RecommendationCache",
]
