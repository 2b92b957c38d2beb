"""Shared FastAPI dependencies"""

from typing import Generator, Optional

from ..config import settings
from ..services.recommendations import RecommendationCache, RecommendationClient


def get_recommendation_client() -> Generator[RecommendationClient, None, None]:
    """
    Scoring service client for the duration of a request

    Yields a client and ensures its connection pool is closed after use.
    """

    client = RecommendationClient()
    try:
        yield client
    finally:
        client.close()


def get_recommendation_cache() -> Optional[RecommendationCache]:
    """Response cache, or None when caching is disabled"""

    if not settings.RECOMMENDATION_CACHE_ENABLED:
        return None
    return RecommendationCache()
