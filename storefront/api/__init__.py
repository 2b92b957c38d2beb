"""API routes"""

from fastapi import APIRouter
from .products import router as products_router
from .interactions import router as interactions_router
from .recommendations import router as recommendations_router

api_router = APIRouter()

api_router.include_router(products_router, prefix="/products", tags=["products"])
api_router.include_router(interactions_router, prefix="/interactions", tags=["interactions"])
api_router.include_router(recommendations_router, prefix="/recommendations", tags=["recommendations"])
