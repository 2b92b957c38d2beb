"""Interaction Record Store"""

from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..config import settings
from ..models import UserInteraction
from ..utils.exceptions import ConstraintViolation, ServerError
from ..utils.logging import get_logger
from ..utils.metrics import record_write_conflict
from .interaction_merge import InteractionState

logger = get_logger(__name__)

Mutator = Callable[[Optional[InteractionState]], InteractionState]


class InteractionStore:
    """
    Persisted aggregated interaction records, one per (user, product)

    `upsert` makes read-merge-write atomic per pair: a first-time insert
    that loses to a concurrent insert trips the unique constraint, and an
    update that loses to a concurrent update trips the version check. Either
    way the write is rolled back and the mutator re-runs on the fresh record.
    """

    def __init__(self, db: Session, max_attempts: Optional[int] = None):
        self.db = db
        self.max_attempts = max_attempts or settings.UPSERT_MAX_ATTEMPTS

    def find(self, user_id: str, product_id: str) -> Optional[UserInteraction]:
        """
        Load the record for a pair

        Raises:
            ServerError: If the storage layer fails
        """

        try:
            return self._query_pair(user_id, product_id).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Interaction lookup failed", user_id=user_id, product_id=product_id, error=str(e))
            raise ServerError("Failed to load interaction", e) from e

    def list_for_user(self, user_id: str, skip: int = 0, limit: int = 100) -> List[UserInteraction]:
        """Records of a user, most recently updated first"""

        return (
            self.db.query(UserInteraction)
            .filter(UserInteraction.user_id == user_id)
            .order_by(UserInteraction.updated_at.desc(), UserInteraction.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def list_for_product(self, product_id: str, skip: int = 0, limit: int = 100) -> List[UserInteraction]:
        """Records of a product, most recently updated first"""

        return (
            self.db.query(UserInteraction)
            .filter(UserInteraction.product_id == product_id)
            .order_by(UserInteraction.updated_at.desc(), UserInteraction.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def upsert(self, user_id: str, product_id: str, mutator: Mutator) -> Tuple[UserInteraction, bool]:
        """
        Atomically apply a mutator to the record of a pair, creating it if absent

        Args:
            user_id: User identifier
            product_id: Product identifier
            mutator: Pure function from current state (or None) to new state;
                may be called more than once when writes conflict

        Returns:
            Tuple of (persisted record, whether it was created)

        Raises:
            ServerError: On storage failure, or when conflicts persist
                past max_attempts
        """

        for attempt in range(1, self.max_attempts + 1):
            try:
                return self._write(user_id, product_id, mutator)
            except ConstraintViolation as e:
                record_write_conflict()
                logger.warning(
                    "Concurrent interaction write, retrying",
                    user_id=user_id,
                    product_id=product_id,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error_type=e.details.get("error_type"),
                )

        logger.error(
            "Interaction write conflicts exhausted retries",
            user_id=user_id,
            product_id=product_id,
            attempts=self.max_attempts,
        )
        raise ServerError("Failed to persist interaction after concurrent writes")

    def _query_pair(self, user_id: str, product_id: str):
        return self.db.query(UserInteraction).filter(
            UserInteraction.user_id == user_id,
            UserInteraction.product_id == product_id,
        )

    def _write(self, user_id: str, product_id: str, mutator: Mutator) -> Tuple[UserInteraction, bool]:
        try:
            record = (
                self._query_pair(user_id, product_id)
                .populate_existing()
                .with_for_update()
                .first()
            )
            current = InteractionState.from_record(record) if record is not None else None
            new_state = mutator(current)

            created = record is None
            if created:
                record = UserInteraction(user_id=user_id, product_id=product_id)
                self.db.add(record)
            new_state.apply_to(record)

            self.db.commit()
            self.db.refresh(record)
            return record, created

        except (IntegrityError, StaleDataError) as e:
            self.db.rollback()
            raise ConstraintViolation(user_id, product_id, e) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Interaction write failed", user_id=user_id, product_id=product_id, error=str(e))
            raise ServerError("Failed to persist interaction", e) from e
