"""Tests for API endpoints"""

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.main import app
from storefront.models import UserInteraction
from storefront.models.base import Base
from storefront.services.recommendations import RecommendationClient
from storefront.utils.database import get_db
from storefront.utils.dependencies import get_recommendation_cache, get_recommendation_client


class FakeCache:
    """In-memory stand-in for the Redis recommendation cache"""

    def __init__(self):
        self.entries = {}

    def get(self, user_id, product_id=None):
        return self.entries.get((user_id, product_id))

    def set(self, user_id, product_id, recommendations):
        self.entries[(user_id, product_id)] = recommendations
        return True

    def health_check(self):
        return True


@pytest.fixture
def engine():
    """Create a test database"""

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    yield engine

    engine.dispose()


@pytest.fixture
def upstream_calls():
    return []


@pytest.fixture
def test_db(engine, upstream_calls):
    """Wire the app to the test database and a mocked scoring service"""

    TestingSessionLocal = sessionmaker(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    def scoring_service(request: httpx.Request) -> httpx.Response:
        upstream_calls.append(request.url.path)
        if request.url.path.endswith("/broken"):
            return httpx.Response(503, json={"detail": "down"})
        return httpx.Response(200, json={"recommendations": [{"id": "p2", "score": 0.9}]})

    def override_get_recommendation_client():
        client = RecommendationClient(
            base_url="http://scoring.test",
            transport=httpx.MockTransport(scoring_service),
        )
        try:
            yield client
        finally:
            client.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_recommendation_client] = override_get_recommendation_client
    app.dependency_overrides[get_recommendation_cache] = lambda: None

    yield

    app.dependency_overrides.clear()


@pytest.fixture
def client(test_db):
    """Create a test client"""
    return TestClient(app)


@pytest.fixture
def products(client):
    """Register products the interactions refer to"""

    for product_id, category in [("p1", "shoes"), ("p2", "accessories")]:
        response = client.post(
            "/api/v1/products",
            json={"id": product_id, "name": f"Product {product_id}", "category": category, "countInStock": 5},
        )
        assert response.status_code == 201

    return ["p1", "p2"]


def post_event(client, **event):
    return client.post("/api/v1/interactions", json=event)


def test_root_endpoint(client):
    """Test root endpoint"""

    response = client.get("/")
    assert response.status_code == 200
    assert "message" in response.json()


def test_health_endpoint(client):
    """Health reports database status and disabled cache"""

    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"
    assert data["redis"] == "disabled"


def test_create_duplicate_product(client, products):
    """Test creating a duplicate product fails"""

    response = client.post("/api/v1/products", json={"id": "p1", "name": "Again"})

    assert response.status_code == 400


def test_list_and_get_products(client, products):
    """Products are listed by id and filtered by category"""

    response = client.get("/api/v1/products")
    assert [p["id"] for p in response.json()] == ["p1", "p2"]

    response = client.get("/api/v1/products", params={"category": "shoes"})
    assert [p["id"] for p in response.json()] == ["p1"]

    response = client.get("/api/v1/products/p2")
    assert response.status_code == 200
    assert response.json()["countInStock"] == 5

    response = client.get("/api/v1/products/missing")
    assert response.status_code == 404
    assert response.json()["error"] == "Product not found"


def test_ingest_creates_record(client, products):
    """The response carries the aggregated record in camelCase"""

    response = post_event(client, userId="u1", productId="p1", interactionType="add_to_cart", value=2)

    assert response.status_code == 200
    data = response.json()
    assert data["userId"] == "u1"
    assert data["productId"] == "p1"
    assert data["interactionType"] == "add_to_cart"
    assert data["value"] == 2
    assert "createdAt" in data
    assert "updatedAt" in data


def test_ingest_accepts_snake_case(client, products):
    """Field names are accepted in either casing"""

    response = post_event(client, user_id="u1", product_id="p1", interaction_type="view")

    assert response.status_code == 200
    assert response.json()["interactionType"] == "view"


def test_ingest_merges_into_one_record(client, products, engine):
    """Successive events update the same record"""

    post_event(client, userId="u1", productId="p1", interactionType="view", sessionId="s1")
    post_event(client, userId="u1", productId="p1", interactionType="add_to_cart", value=2)
    post_event(client, userId="u1", productId="p1", interactionType="add_to_cart", value=1)
    response = post_event(client, userId="u1", productId="p1", interactionType="view")

    data = response.json()
    assert data["interactionType"] == "view"
    assert data["value"] == 0
    assert data["sessionId"] == "s1"

    db = sessionmaker(bind=engine)()
    try:
        assert db.query(UserInteraction).count() == 1
    finally:
        db.close()


def test_purchase_is_sticky(client, products):
    """Views and cart edits after a purchase leave the record unchanged"""

    post_event(client, userId="u1", productId="p1", interactionType="purchase", value=2, reviewStars=4)
    post_event(client, userId="u1", productId="p1", interactionType="add_to_cart", value=5)
    response = post_event(client, userId="u1", productId="p1", interactionType="view")

    data = response.json()
    assert data["interactionType"] == "purchase"
    assert data["value"] == 2
    assert data["reviewStars"] == 4


def test_review_and_search_events(client, products):
    """Review and search are recorded on the purchase and view paths"""

    response = post_event(client, userId="u1", productId="p1", interactionType="search", searchQuery="sneakers")
    assert response.json()["interactionType"] == "view"
    assert response.json()["searchQuery"] == "sneakers"

    response = post_event(client, userId="u1", productId="p1", interactionType="review", reviewStars=5)
    assert response.json()["interactionType"] == "purchase"
    assert response.json()["reviewStars"] == 5


@pytest.mark.parametrize(
    "event, field",
    [
        ({"productId": "p1", "interactionType": "view"}, "userId"),
        ({"userId": "u1", "interactionType": "view"}, "productId"),
        ({"userId": "u1", "productId": "p1", "interactionType": "like"}, "interactionType"),
        ({"userId": "u1", "productId": "p1", "interactionType": "add_to_cart", "value": -1}, "value"),
        ({"userId": "u1", "productId": "p1", "interactionType": "purchase", "reviewStars": 6}, "reviewStars"),
    ],
)
def test_ingest_invalid_input(client, products, event, field):
    """Malformed events are rejected with field-level details"""

    response = post_event(client, **event)

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "Invalid input"
    assert field in [d["field"] for d in data["details"]]


@pytest.mark.parametrize(
    "event_type, field",
    [("review", "reviewStars"), ("search", "searchQuery")],
)
def test_ingest_folded_event_missing_field(client, products, event_type, field):
    """Reviews need a rating and searches need a query, reported on that field"""

    response = post_event(client, userId="u1", productId="p1", interactionType=event_type)

    assert response.status_code == 400
    details = response.json()["details"]
    assert details[0]["field"] == field
    assert field in details[0]["message"]


def test_invalid_query_parameter(client):
    """Query parameter errors use the same envelope"""

    response = client.get("/api/v1/interactions/user/u1", params={"limit": "many"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid input"
    assert response.json()["details"][0]["field"] == "limit"


def test_ingest_unknown_product(client, products):
    """Interactions with unknown products are rejected"""

    response = post_event(client, userId="u1", productId="ghost", interactionType="view")

    assert response.status_code == 404
    assert response.json()["error"] == "Product not found"


def test_ingest_storage_failure(client, products, engine):
    """Storage failures render as 500 with the error envelope"""

    UserInteraction.__table__.drop(engine)

    response = post_event(client, userId="u1", productId="p1", interactionType="view")

    assert response.status_code == 500
    assert "error" in response.json()


def test_purchase_batch(client, products):
    """Each line reports its own result"""

    post_event(client, userId="u1", productId="p2", interactionType="add_to_cart", value=3)

    response = client.post(
        "/api/v1/interactions/purchase-batch",
        json={
            "userId": "u1",
            "products": [
                {"productId": "p1", "value": 2},
                {"productId": "ghost"},
                {"productId": "p2"},
            ],
        },
    )

    assert response.status_code == 200
    assert response.json() == [
        {"productId": "p1", "status": "created"},
        {"productId": "ghost", "status": "error", "message": "Product not found"},
        {"productId": "p2", "status": "updated"},
    ]

    record = client.get("/api/v1/interactions/u1/p2").json()
    assert record["interactionType"] == "purchase"
    assert record["value"] == 1


def test_purchase_batch_requires_products(client):
    """An empty batch is invalid input"""

    response = client.post("/api/v1/interactions/purchase-batch", json={"userId": "u1", "products": []})

    assert response.status_code == 400


def test_interaction_queries(client, products):
    """Records can be read per user, per product and per pair"""

    post_event(client, userId="u1", productId="p1", interactionType="view")
    post_event(client, userId="u1", productId="p2", interactionType="purchase")
    post_event(client, userId="u2", productId="p1", interactionType="add_to_cart")

    response = client.get("/api/v1/interactions/user/u1")
    assert {r["productId"] for r in response.json()} == {"p1", "p2"}

    response = client.get("/api/v1/interactions/product/p1")
    assert {r["userId"] for r in response.json()} == {"u1", "u2"}

    response = client.get("/api/v1/interactions/u2/p1")
    assert response.status_code == 200
    assert response.json()["interactionType"] == "add_to_cart"

    response = client.get("/api/v1/interactions/u2/p2")
    assert response.status_code == 404


def test_user_interaction_stats(client, products):
    """Stats count records by type"""

    post_event(client, userId="u1", productId="p1", interactionType="view")
    post_event(client, userId="u1", productId="p2", interactionType="purchase")

    response = client.get("/api/v1/interactions/stats/user/u1")

    assert response.status_code == 200
    data = response.json()
    assert data["totalInteractions"] == 2
    assert data["byType"] == {"view": 1, "purchase": 1}


def test_recommendations_proxy(client, upstream_calls):
    """Recommendations are fetched from the scoring service"""

    response = client.get("/api/v1/recommendations/u1")
    assert response.status_code == 200
    assert response.json() == {"recommendations": [{"id": "p2", "score": 0.9}]}

    client.get("/api/v1/recommendations/u1/p1")
    assert upstream_calls == ["/api/v1/recommendations/u1", "/api/v1/recommendations/u1/p1"]


def test_recommendations_upstream_failure(client):
    """Scoring service errors render as 502"""

    response = client.get("/api/v1/recommendations/u1/broken")

    assert response.status_code == 502
    assert response.json()["details"]["upstream_status"] == 503


def test_recommendations_are_cached(client, upstream_calls):
    """A cached response does not reach the scoring service"""

    cache = FakeCache()
    app.dependency_overrides[get_recommendation_cache] = lambda: cache

    first = client.get("/api/v1/recommendations/u1")
    second = client.get("/api/v1/recommendations/u1")

    assert first.json() == second.json()
    assert upstream_calls == ["/api/v1/recommendations/u1"]
