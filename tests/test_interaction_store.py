"""Tests for the Interaction Record Store"""

from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from storefront.models.base import Base, utcnow
from storefront.models import UserInteraction
from storefront.schemas.interaction import InteractionEvent, InteractionType
from storefront.services.interaction_merge import merge
from storefront.services.interaction_store import InteractionStore
from storefront.utils.exceptions import ServerError


@pytest.fixture
def engine(tmp_path):
    """File-backed database so two sessions use separate connections"""

    engine = create_engine(f"sqlite:///{tmp_path / 'interactions.db'}")
    Base.metadata.create_all(engine)

    yield engine

    engine.dispose()


@pytest.fixture
def sessions(engine):
    """Two independent sessions standing in for two concurrent requests"""

    TestingSessionLocal = sessionmaker(bind=engine)
    first = TestingSessionLocal()
    second = TestingSessionLocal()

    yield first, second

    first.close()
    second.close()


def make_event(interaction_type, **fields):
    return InteractionEvent(user_id="u1", product_id="p1", interaction_type=interaction_type, **fields)


def applying(event):
    return lambda current: merge(current, event)


def test_upsert_creates_then_updates(sessions):
    """First write creates the record, later writes mutate it in place"""

    first, _ = sessions
    store = InteractionStore(first)

    record, created = store.upsert("u1", "p1", applying(make_event("view")))
    assert created is True
    assert record.interaction_type == "view"
    assert record.version == 1

    record, created = store.upsert("u1", "p1", applying(make_event("add_to_cart", value=2)))
    assert created is False
    assert record.interaction_type == "add_to_cart"
    assert record.value == 2
    assert record.version == 2
    assert record.created_at <= record.updated_at

    assert first.query(UserInteraction).count() == 1


def test_find_returns_none_for_unknown_pair(sessions):
    """Lookup of a pair without events"""

    first, _ = sessions

    assert InteractionStore(first).find("u1", "missing") is None


def test_unique_constraint_is_enforced_by_database(sessions):
    """Duplicate pairs are rejected by the schema itself"""

    first, _ = sessions
    first.add(UserInteraction(user_id="u1", product_id="p1", interaction_type="view", value=0))
    first.add(UserInteraction(user_id="u1", product_id="p1", interaction_type="view", value=0))

    with pytest.raises(IntegrityError):
        first.commit()


def test_concurrent_first_writes_collapse_into_one_record(sessions):
    """Losing a create race retries as an update without losing either quantity"""

    first, second = sessions
    rival = make_event("add_to_cart", value=3)
    ours = make_event("add_to_cart", value=2)
    seen = []

    def racing(current):
        if not seen:
            # The other request creates the record between our read and our write
            InteractionStore(second).upsert("u1", "p1", applying(rival))
        seen.append(current)
        return merge(current, ours)

    record, created = InteractionStore(first).upsert("u1", "p1", racing)

    assert created is False
    assert record.interaction_type == "add_to_cart"
    assert record.value == 5
    assert seen[0] is None
    assert seen[1].value == 3
    assert first.query(UserInteraction).count() == 1


def test_concurrent_update_is_not_lost(sessions):
    """A stale update is detected by the version check and re-applied"""

    first, second = sessions
    InteractionStore(second).upsert("u1", "p1", applying(make_event("add_to_cart", value=1)))
    seen = []

    def racing(current):
        if not seen:
            InteractionStore(second).upsert("u1", "p1", applying(make_event("add_to_cart", value=2)))
        seen.append(current)
        return merge(current, make_event("add_to_cart", value=4))

    record, created = InteractionStore(first).upsert("u1", "p1", racing)

    assert created is False
    assert record.value == 7
    assert [state.value for state in seen] == [1, 3]


def test_concurrent_purchase_survives_racing_view(sessions):
    """A purchase that lands first is not downgraded by a view computed from older state"""

    first, second = sessions
    InteractionStore(second).upsert("u1", "p1", applying(make_event("add_to_cart", value=1)))
    seen = []

    def racing(current):
        if not seen:
            InteractionStore(second).upsert("u1", "p1", applying(make_event("purchase", value=2)))
        seen.append(current)
        return merge(current, make_event("view"))

    record, _ = InteractionStore(first).upsert("u1", "p1", racing)

    assert record.interaction_type == InteractionType.PURCHASE.value
    assert record.value == 2


def test_persistent_conflicts_become_server_error(sessions):
    """Retries are bounded"""

    first, second = sessions
    InteractionStore(second).upsert("u1", "p1", applying(make_event("add_to_cart", value=1)))
    attempts = []

    def always_racing(current):
        InteractionStore(second).upsert("u1", "p1", applying(make_event("add_to_cart", value=1)))
        attempts.append(current)
        return merge(current, make_event("add_to_cart", value=1))

    with pytest.raises(ServerError):
        InteractionStore(first, max_attempts=2).upsert("u1", "p1", always_racing)

    assert len(attempts) == 2
    # Only the rival writes landed
    assert InteractionStore(first).find("u1", "p1").value == 3


def test_storage_failure_becomes_server_error(engine, sessions):
    """Errors other than conflicts are not retried"""

    first, _ = sessions
    UserInteraction.__table__.drop(engine)

    with pytest.raises(ServerError):
        InteractionStore(first).upsert("u1", "p1", applying(make_event("view")))

    with pytest.raises(ServerError):
        InteractionStore(first).find("u1", "p1")


def test_list_for_user_and_product(sessions):
    """Listing helpers filter by one side of the pair"""

    first, _ = sessions
    store = InteractionStore(first)
    for user_id, product_id in [("u1", "p1"), ("u1", "p2"), ("u2", "p1")]:
        store.upsert(
            user_id,
            product_id,
            applying(InteractionEvent(user_id=user_id, product_id=product_id, interaction_type="view")),
        )

    assert {r.product_id for r in store.list_for_user("u1")} == {"p1", "p2"}
    assert {r.user_id for r in store.list_for_product("p1")} == {"u1", "u2"}
    assert len(store.list_for_user("u1", limit=1)) == 1


def test_timestamps_are_utc_and_advance(sessions):
    """Timestamps come from an aware UTC clock and updated_at moves on writes"""

    first, _ = sessions
    store = InteractionStore(first)

    assert utcnow().utcoffset() == timedelta(0)

    record, _ = store.upsert("u1", "p1", applying(make_event("view")))
    created_at, updated_at = record.created_at, record.updated_at

    record, _ = store.upsert("u1", "p1", applying(make_event("add_to_cart")))

    assert record.created_at == created_at
    assert record.updated_at >= updated_at
