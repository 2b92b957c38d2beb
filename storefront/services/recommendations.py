"""Recommendation scoring service client and response cache"""

import json
from datetime import datetime, timezone
from typing import Any, List, Optional

import httpx
import redis

from ..config import settings
from ..utils.exceptions import UpstreamError
from ..utils.logging import get_logger

logger = get_logger(__name__)


class RecommendationClient:
    """
    HTTP client for the external recommendation scoring service

    The scoring algorithm is a black box; this client only forwards the
    user (and optionally the product being viewed) and returns the ranked
    product list it answers with.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or settings.RECOMMENDATION_API_URL).rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout or settings.RECOMMENDATION_TIMEOUT,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def get_recommendations(self, user_id: str, product_id: Optional[str] = None) -> List[Any]:
        """
        Fetch ranked recommendations

        Args:
            user_id: User to recommend for
            product_id: Optional product the user is currently viewing

        Returns:
            Ranked list of recommended products

        Raises:
            UpstreamError: If the service is unreachable, answers with an
                error status or returns an unexpected payload
        """

        path = f"/api/v1/recommendations/{user_id}"
        if product_id:
            path += f"/{product_id}"

        try:
            response = self._client.get(path)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Recommendation service returned an error",
                user_id=user_id,
                status_code=e.response.status_code,
            )
            raise UpstreamError(
                f"Recommendation service returned status {e.response.status_code}",
                e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.warning("Recommendation service unreachable", user_id=user_id, error=str(e))
            raise UpstreamError(f"Recommendation service unavailable: {e}") from e
        except ValueError as e:
            raise UpstreamError("Recommendation service returned invalid JSON") from e

        if isinstance(payload, dict):
            payload = payload.get("recommendations")
        if not isinstance(payload, list):
            raise UpstreamError("Recommendation service returned an unexpected payload")

        return payload

    def close(self) -> None:
        self._client.close()


class RecommendationCache:
    """
    Redis cache for recommendation responses

    Best-effort: every failure is logged and reported as a miss, so the
    proxy keeps working when Redis is down.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None, ttl: Optional[int] = None):
        self.redis_client = redis_client or redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            password=settings.REDIS_PASSWORD,
            decode_responses=True
        )
        self.cache_ttl = ttl or settings.RECOMMENDATION_CACHE_TTL

    def get(self, user_id: str, product_id: Optional[str] = None) -> Optional[List[Any]]:
        """
        Get cached recommendations

        Returns:
            List of recommendations or None if not cached
        """

        try:
            value = self.redis_client.get(self._get_cache_key(user_id, product_id))
            if value:
                return json.loads(value).get("recommendations")
            return None

        except Exception as e:
            logger.warning("Error reading cached recommendations", user_id=user_id, error=str(e))
            return None

    def set(self, user_id: str, product_id: Optional[str], recommendations: List[Any]) -> bool:
        """
        Cache recommendations for the configured TTL

        Returns:
            True if successful, False otherwise
        """

        try:
            value = json.dumps({
                "recommendations": recommendations,
                "cached_at": datetime.now(timezone.utc).isoformat(),
            })
            self.redis_client.setex(self._get_cache_key(user_id, product_id), self.cache_ttl, value)
            return True

        except Exception as e:
            logger.warning("Error caching recommendations", user_id=user_id, error=str(e))
            return False

    def _get_cache_key(self, user_id: str, product_id: Optional[str]) -> str:
        """Generate cache key for recommendations"""
        return f"recs:user:{user_id}:{product_id or '_'}"

    def health_check(self) -> bool:
        """
        Check if Redis connection is healthy

        Returns:
            True if healthy, False otherwise
        """

        try:
            return bool(self.redis_client.ping())
        except Exception:
            return False
