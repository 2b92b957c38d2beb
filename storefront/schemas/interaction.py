"""Interaction schemas"""

from pydantic import BaseModel, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime
from enum import Enum


class InteractionType(str, Enum):
    """Signal kinds stored on an aggregated record"""

    VIEW = "view"
    ADD_TO_CART = "add_to_cart"
    PURCHASE = "purchase"


class EventType(str, Enum):
    """Signal kinds accepted from clients"""

    VIEW = "view"
    ADD_TO_CART = "add_to_cart"
    PURCHASE = "purchase"
    REVIEW = "review"  # Folded into purchase, requires review_stars
    SEARCH = "search"  # Folded into view, requires search_query


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        str_strip_whitespace = True


class InteractionEvent(CamelModel):
    """Schema for a single interaction event"""

    user_id: str = Field(..., min_length=1, max_length=64)
    product_id: str = Field(..., min_length=1, max_length=64)
    interaction_type: EventType
    value: Optional[int] = Field(None, ge=0)
    review_stars: Optional[float] = Field(None, ge=0, le=5, validate_default=True)
    category: Optional[str] = Field(None, max_length=100)
    session_id: Optional[str] = Field(None, max_length=128)
    search_query: Optional[str] = Field(None, max_length=256, validate_default=True)

    @field_validator("review_stars")
    @classmethod
    def require_stars_for_review(cls, value: Optional[float], info: ValidationInfo) -> Optional[float]:
        if value is None and info.data.get("interaction_type") == EventType.REVIEW:
            raise ValueError("reviewStars is required for review events")
        return value

    @field_validator("search_query")
    @classmethod
    def require_query_for_search(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if not value and info.data.get("interaction_type") == EventType.SEARCH:
            raise ValueError("searchQuery is required for search events")
        return value


class InteractionResponse(CamelModel):
    """Schema for an aggregated interaction record"""

    user_id: str
    product_id: str
    interaction_type: InteractionType
    value: int
    review_stars: Optional[float] = None
    session_id: Optional[str] = None
    search_query: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PurchaseLine(CamelModel):
    """One purchased product in a batch"""

    product_id: str = Field(..., min_length=1, max_length=64)
    value: Optional[int] = Field(None, ge=0)


class PurchaseBatchRequest(CamelModel):
    """Schema for recording every line item of a completed purchase"""

    user_id: str = Field(..., min_length=1, max_length=64)
    products: List[PurchaseLine] = Field(..., min_length=1)


class PurchaseLineStatus(str, Enum):
    """Outcome of a single batch line"""

    CREATED = "created"
    UPDATED = "updated"
    ERROR = "error"


class PurchaseLineResult(CamelModel):
    """Result for one batch line"""

    product_id: str
    status: PurchaseLineStatus
    message: Optional[str] = None


class InteractionStats(CamelModel):
    """Per-type counts of a user's aggregated records"""

    user_id: str
    total_interactions: int
    by_type: dict
