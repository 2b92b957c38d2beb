"""Interaction API endpoints"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List

from ..config import settings
from ..schemas.interaction import (
    InteractionEvent,
    InteractionResponse,
    InteractionStats,
    PurchaseBatchRequest,
    PurchaseLineResult,
)
from ..models import UserInteraction
from ..services.interaction_ingestion import InteractionIngestionService
from ..services.interaction_store import InteractionStore
from ..utils.database import get_db
from ..utils.exceptions import NotFoundError
from ..utils.rate_limit import limiter

router = APIRouter()


@router.post("", response_model=InteractionResponse)
@limiter.limit(settings.INTERACTIONS_RATE_LIMIT)
def ingest_interaction(request: Request, event: InteractionEvent, db: Session = Depends(get_db)):
    """
    Merge an interaction event into the user's record for the product

    Returns the aggregated record after the merge.
    """

    return InteractionIngestionService(db).ingest(event)


@router.post(
    "/purchase-batch",
    response_model=List[PurchaseLineResult],
    response_model_exclude_none=True,
)
@limiter.limit(settings.INTERACTIONS_RATE_LIMIT)
def ingest_purchase_batch(request: Request, batch: PurchaseBatchRequest, db: Session = Depends(get_db)):
    """
    Record every line item of a completed purchase

    Never fails the whole request for a single bad line item; each line
    reports created, updated or error.
    """

    return InteractionIngestionService(db).ingest_purchase_batch(batch.user_id, batch.products)


@router.get("/user/{user_id}", response_model=List[InteractionResponse])
def get_user_interactions(user_id: str, skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    """Get all aggregated records of a user"""

    return InteractionStore(db).list_for_user(user_id, skip=skip, limit=limit)


@router.get("/product/{product_id}", response_model=List[InteractionResponse])
def get_product_interactions(product_id: str, skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    """Get all aggregated records of a product"""

    return InteractionStore(db).list_for_product(product_id, skip=skip, limit=limit)


@router.get("/stats/user/{user_id}", response_model=InteractionStats)
def get_user_interaction_stats(user_id: str, db: Session = Depends(get_db)):
    """Get per-type record counts for a user"""

    stats = (
        db.query(
            UserInteraction.interaction_type,
            func.count(UserInteraction.id).label('count')
        )
        .filter(UserInteraction.user_id == user_id)
        .group_by(UserInteraction.interaction_type)
        .all()
    )

    total = sum(count for _, count in stats)

    return InteractionStats(
        user_id=user_id,
        total_interactions=total,
        by_type={interaction_type: count for interaction_type, count in stats},
    )


@router.get("/{user_id}/{product_id}", response_model=InteractionResponse)
def get_interaction(user_id: str, product_id: str, db: Session = Depends(get_db)):
    """Get the aggregated record of one (user, product) pair"""

    record = InteractionStore(db).find(user_id, product_id)
    if record is None:
        raise NotFoundError("Interaction", f"{user_id}/{product_id}")

    return record
