"""Product schemas"""

from pydantic import Field
from typing import Optional
from datetime import datetime

from .interaction import CamelModel


class ProductBase(CamelModel):
    """Base product schema"""

    name: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    price: float = Field(default=0.0, ge=0)
    count_in_stock: int = Field(default=0, ge=0)


class ProductCreate(ProductBase):
    """Schema for creating a product"""

    id: str = Field(..., min_length=1, max_length=64)


class ProductResponse(ProductBase):
    """Schema for product response"""

    id: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
