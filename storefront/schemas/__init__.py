"""Pydantic schemas for request/response validation"""

from .interaction import (
    EventType,
    InteractionType,
    InteractionEvent,
    InteractionResponse,
    InteractionStats,
    PurchaseLine,
    PurchaseBatchRequest,
    PurchaseLineStatus,
    PurchaseLineResult,
)
from .product import ProductCreate, ProductResponse
from .recommendation import RecommendationResponse

__all__ = [
    "EventType",
    "InteractionType",
    "InteractionEvent",
    "InteractionResponse",
    "InteractionStats",
    "PurchaseLine",
    "PurchaseBatchRequest",
    "PurchaseLineStatus",
    "PurchaseLineResult",
    "ProductCreate",
    "ProductResponse",
    "RecommendationResponse",
]
