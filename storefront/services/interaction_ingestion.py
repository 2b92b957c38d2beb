"""Interaction Ingestion Service"""

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Product, UserInteraction
from ..schemas.interaction import (
    EventType,
    InteractionEvent,
    PurchaseLine,
    PurchaseLineResult,
    PurchaseLineStatus,
)
from ..utils.exceptions import NotFoundError, ServerError, StorefrontError
from ..utils.logging import get_logger
from ..utils.metrics import record_batch_line, record_interaction
from .interaction_merge import merge
from .interaction_store import InteractionStore

logger = get_logger(__name__)


class InteractionIngestionService:
    """
    Boundary between validated events and the record store

    Resolves the product, merges the event into the (user, product) record
    through the store's atomic upsert and returns the persisted record.
    Nothing else is written.
    """

    def __init__(self, db: Session, store: Optional[InteractionStore] = None):
        self.db = db
        self.store = store or InteractionStore(db)

    def ingest(self, event: InteractionEvent) -> UserInteraction:
        """
        Merge a single event into its aggregated record

        Args:
            event: Validated interaction event

        Returns:
            The persisted record

        Raises:
            NotFoundError: If the product does not exist
            ServerError: If persistence fails
        """

        self._require_product(event.product_id)

        record, created = self.store.upsert(
            event.user_id,
            event.product_id,
            lambda current: merge(current, event),
        )

        record_interaction(record.interaction_type, created)
        logger.info(
            "Interaction ingested",
            user_id=event.user_id,
            product_id=event.product_id,
            event_type=event.interaction_type.value,
            record_type=record.interaction_type,
            value=record.value,
            category=event.category,
            created=created,
        )

        return record

    def ingest_purchase_batch(self, user_id: str, lines: List[PurchaseLine]) -> List[PurchaseLineResult]:
        """
        Record every line item of a completed purchase

        Each line is independent: a missing product or a failed write is
        reported on that line and the remaining lines are still processed.

        Args:
            user_id: Purchasing user
            lines: Purchased products with quantities (default 1)

        Returns:
            One result per line, in input order
        """

        results = []
        for line in lines:
            event = InteractionEvent(
                user_id=user_id,
                product_id=line.product_id,
                interaction_type=EventType.PURCHASE,
                value=1 if line.value is None else line.value,
            )

            try:
                self._require_product(event.product_id)
                record, created = self.store.upsert(
                    user_id,
                    line.product_id,
                    lambda current, event=event: merge(current, event),
                )
            except StorefrontError as e:
                logger.warning(
                    "Purchase line failed",
                    user_id=user_id,
                    product_id=line.product_id,
                    error=e.message,
                )
                record_batch_line(PurchaseLineStatus.ERROR.value)
                results.append(
                    PurchaseLineResult(
                        product_id=line.product_id,
                        status=PurchaseLineStatus.ERROR,
                        message=e.message,
                    )
                )
                continue

            status = PurchaseLineStatus.CREATED if created else PurchaseLineStatus.UPDATED
            record_interaction(record.interaction_type, created)
            record_batch_line(status.value)
            results.append(PurchaseLineResult(product_id=line.product_id, status=status))

        logger.info(
            "Purchase batch ingested",
            user_id=user_id,
            lines=len(lines),
            failed=sum(1 for r in results if r.status == PurchaseLineStatus.ERROR),
        )

        return results

    def _require_product(self, product_id: str) -> None:
        try:
            exists = self.db.query(Product.id).filter(Product.id == product_id).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise ServerError("Failed to resolve product", e) from e

        if exists is None:
            raise NotFoundError("Product", product_id)
