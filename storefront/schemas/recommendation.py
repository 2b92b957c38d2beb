"""Recommendation schemas"""

from pydantic import BaseModel
from typing import Any, List


class RecommendationResponse(BaseModel):
    """Ranked products as returned by the scoring service"""

    recommendations: List[Any]
