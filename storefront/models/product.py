"""Product model"""

from sqlalchemy import Column, String, Text, Float, Integer
from .base import Base, TimestampMixin


class Product(Base, TimestampMixin):
    """Catalog entry that interactions are validated against"""

    __tablename__ = "products"

    id = Column(String(64), primary_key=True)
    name = Column(String(500), nullable=False, index=True)
    description = Column(Text)
    category = Column(String(100), index=True)
    price = Column(Float, default=0.0)
    count_in_stock = Column(Integer, default=0)

    def __repr__(self):
        return f"<Product(id='{self.id}', name='{self.name}')>"
