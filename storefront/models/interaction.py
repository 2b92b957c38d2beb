"""Aggregated user-product interaction model"""

from sqlalchemy import Column, Integer, Float, String, Index, UniqueConstraint
from .base import Base, TimestampMixin


class UserInteraction(Base, TimestampMixin):
    """
    One aggregated engagement record per (user, product) pair

    The unique constraint is the concurrency guard for first-time writes;
    the version column makes concurrent updates of the same row detectable.
    """

    __tablename__ = "user_interactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False)
    product_id = Column(String(64), nullable=False)
    interaction_type = Column(String(20), nullable=False)  # view, add_to_cart, purchase
    value = Column(Integer, nullable=False, default=0)  # Cumulative quantity
    review_stars = Column(Float)
    session_id = Column(String(128))
    search_query = Column(String(256))
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="uq_user_product"),
        Index("ix_interaction_product", "product_id"),
        Index("ix_interaction_type", "interaction_type"),
    )

    def __repr__(self):
        return (
            f"<UserInteraction(user_id='{self.user_id}', product_id='{self.product_id}', "
            f"type='{self.interaction_type}', value={self.value})>"
        )
