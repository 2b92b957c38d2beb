"""Recommendation proxy endpoints"""

from fastapi import APIRouter, Depends
from typing import Optional

from ..schemas.recommendation import RecommendationResponse
from ..services.recommendations import RecommendationCache, RecommendationClient
from ..utils.dependencies import get_recommendation_cache, get_recommendation_client
from ..utils.exceptions import UpstreamError
from ..utils.logging import get_logger
from ..utils.metrics import (
    increment_cache_hit,
    increment_cache_miss,
    record_recommendation_request,
)

logger = get_logger(__name__)

router = APIRouter()


def _proxy(
    user_id: str,
    product_id: Optional[str],
    client: RecommendationClient,
    cache: Optional[RecommendationCache],
) -> RecommendationResponse:
    if cache is not None:
        cached = cache.get(user_id, product_id)
        if cached is not None:
            increment_cache_hit()
            record_recommendation_request("cached")
            return RecommendationResponse(recommendations=cached)
        increment_cache_miss()

    try:
        recommendations = client.get_recommendations(user_id, product_id)
    except UpstreamError:
        record_recommendation_request("upstream_error")
        raise

    if cache is not None:
        cache.set(user_id, product_id, recommendations)

    record_recommendation_request("ok")
    logger.info(
        "Recommendations fetched",
        user_id=user_id,
        product_id=product_id,
        count=len(recommendations),
    )

    return RecommendationResponse(recommendations=recommendations)


@router.get("/{user_id}", response_model=RecommendationResponse)
def get_user_recommendations(
    user_id: str,
    client: RecommendationClient = Depends(get_recommendation_client),
    cache: Optional[RecommendationCache] = Depends(get_recommendation_cache),
):
    """Ranked recommendations for a user from the scoring service"""

    return _proxy(user_id, None, client, cache)


@router.get("/{user_id}/{product_id}", response_model=RecommendationResponse)
def get_product_recommendations(
    user_id: str,
    product_id: str,
    client: RecommendationClient = Depends(get_recommendation_client),
    cache: Optional[RecommendationCache] = Depends(get_recommendation_cache),
):
    """Ranked recommendations for a user viewing a specific product"""

    return _proxy(user_id, product_id, client, cache)
