"""Interaction Merge Engine

Pure decision logic turning an existing aggregated record (or none) plus an
incoming event into the record's next state. No I/O happens here.

Precedence, weakest to strongest: view < add_to_cart < purchase.

    existing \\ event | view            | add_to_cart          | purchase
    ------------------+-----------------+----------------------+-----------------------------
    none              | view, value=0   | value=v or 1         | value=v or 1, stars
    view              | value=0         | -> add_to_cart, v|1  | -> purchase, v|1, stars
    add_to_cart       | -> view, 0      | value += v or 1      | -> purchase, v|1, stars
    purchase          | unchanged       | unchanged            | value += v (if given), stars

review events take the purchase path and search events take the view path.
session_id and search_query always overwrite when the event carries them.
"""

from dataclasses import dataclass, replace
from typing import Optional

from ..schemas.interaction import EventType, InteractionEvent, InteractionType

EVENT_TYPE_FOLDING = {
    EventType.VIEW: InteractionType.VIEW,
    EventType.SEARCH: InteractionType.VIEW,
    EventType.ADD_TO_CART: InteractionType.ADD_TO_CART,
    EventType.PURCHASE: InteractionType.PURCHASE,
    EventType.REVIEW: InteractionType.PURCHASE,
}


@dataclass(frozen=True)
class InteractionState:
    """Mergeable fields of an aggregated interaction record"""

    interaction_type: InteractionType
    value: int = 0
    review_stars: Optional[float] = None
    session_id: Optional[str] = None
    search_query: Optional[str] = None

    @classmethod
    def from_record(cls, record) -> "InteractionState":
        return cls(
            interaction_type=InteractionType(record.interaction_type),
            value=record.value or 0,
            review_stars=record.review_stars,
            session_id=record.session_id,
            search_query=record.search_query,
        )

    def apply_to(self, record) -> None:
        """Copy this state onto an ORM record"""
        record.interaction_type = self.interaction_type.value
        record.value = self.value
        record.review_stars = self.review_stars
        record.session_id = self.session_id
        record.search_query = self.search_query


def effective_type(event_type: EventType) -> InteractionType:
    """Record-level type an event is merged as"""
    return EVENT_TYPE_FOLDING[EventType(event_type)]


def merge(existing: Optional[InteractionState], event: InteractionEvent) -> InteractionState:
    """
    Compute the next record state for an event

    Args:
        existing: Current state of the (user, product) record, or None
        event: Validated incoming event

    Returns:
        New state; `existing` is never modified
    """

    kind = effective_type(event.interaction_type)

    if existing is None:
        state = _create(kind, event)
    elif existing.interaction_type == InteractionType.PURCHASE:
        state = _merge_into_purchase(existing, kind, event)
    else:
        state = _merge_into_open(existing, kind, event)

    return _overlay_metadata(state, event)


def _quantity(event: InteractionEvent) -> int:
    return event.value or 1


def _create(kind: InteractionType, event: InteractionEvent) -> InteractionState:
    if kind == InteractionType.VIEW:
        return InteractionState(interaction_type=kind, value=0)

    return InteractionState(
        interaction_type=kind,
        value=_quantity(event),
        review_stars=event.review_stars if kind == InteractionType.PURCHASE else None,
    )


def _merge_into_purchase(
    existing: InteractionState, kind: InteractionType, event: InteractionEvent
) -> InteractionState:
    # Purchase is sticky: weaker signals leave type, value and stars alone
    if kind != InteractionType.PURCHASE:
        return existing

    value = existing.value
    if event.value is not None:
        value += event.value

    review_stars = existing.review_stars
    if event.review_stars is not None:
        review_stars = event.review_stars

    return replace(existing, value=value, review_stars=review_stars)


def _merge_into_open(
    existing: InteractionState, kind: InteractionType, event: InteractionEvent
) -> InteractionState:
    """Merge into a view or add_to_cart record"""

    if kind == InteractionType.VIEW:
        return replace(existing, interaction_type=kind, value=0)

    if kind == InteractionType.ADD_TO_CART:
        value = _quantity(event)
        if existing.interaction_type == InteractionType.ADD_TO_CART:
            value += existing.value
        return replace(existing, interaction_type=kind, value=value)

    review_stars = existing.review_stars
    if event.review_stars is not None:
        review_stars = event.review_stars

    return replace(
        existing,
        interaction_type=kind,
        value=_quantity(event),
        review_stars=review_stars,
    )


def _overlay_metadata(state: InteractionState, event: InteractionEvent) -> InteractionState:
    # Last-seen metadata, last writer wins
    changes = {}
    if event.session_id:
        changes["session_id"] = event.session_id
    if event.search_query:
        changes["search_query"] = event.search_query

    if not changes:
        return state

    return replace(state, **changes)
