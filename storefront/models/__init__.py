"""Database models"""

from .product import Product
from .interaction import UserInteraction

__all__ = [
    "Product",
    "UserInteraction",
]
