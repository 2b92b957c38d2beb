"""Fire-and-forget interaction emitter for storefront clients

Tracking is best-effort: nothing here raises into the caller. Failed
sends are logged and reported as False.
"""

import asyncio
import time
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import httpx
from pydantic import ValidationError

from ..config import settings
from ..schemas.interaction import EventType, InteractionEvent, PurchaseBatchRequest
from ..utils.logging import get_logger
from .debounce import DeferredCall

logger = get_logger(__name__)

DebounceKey = Tuple[str, ...]


class InteractionEmitter:
    """
    Submits interaction events to the ingestion endpoints

    Views are debounced per (user, product) and searches per user; cart
    and purchase events are sent immediately in the background.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_prefix: str = settings.API_V1_STR,
        debounce_seconds: Optional[float] = None,
        search_window_seconds: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.EMITTER_BASE_URL).rstrip("/")
        self.api_prefix = api_prefix
        self.debounce_seconds = (
            settings.EMITTER_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self.search_window_seconds = (
            settings.EMITTER_SEARCH_WINDOW_SECONDS if search_window_seconds is None else search_window_seconds
        )
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.EMITTER_TIMEOUT,
            transport=transport,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        self._debounced: Dict[DebounceKey, DeferredCall] = {}
        self._background: Set[asyncio.Task] = set()
        self._last_search: Dict[str, Tuple[str, float]] = {}

    async def send(self, event: Dict[str, Any]) -> bool:
        """
        Post one interaction event

        Args:
            event: Event fields, snake_case or camelCase

        Returns:
            True if the service accepted the event
        """

        try:
            payload = InteractionEvent.model_validate(event).model_dump(
                mode="json", by_alias=True, exclude_none=True
            )
        except ValidationError as e:
            logger.warning("Dropping invalid interaction event", errors=e.errors(include_context=False))
            return False

        return await self._post("/interactions", payload)

    async def send_purchase_batch(self, user_id: str, lines: Iterable[Dict[str, Any]]) -> bool:
        """
        Post every line of a completed purchase in one call

        Returns:
            True if the service processed the batch (individual lines may
            still have failed)
        """

        try:
            payload = PurchaseBatchRequest.model_validate(
                {"user_id": user_id, "products": list(lines)}
            ).model_dump(mode="json", by_alias=True, exclude_none=True)
        except ValidationError as e:
            logger.warning("Dropping invalid purchase batch", errors=e.errors(include_context=False))
            return False

        return await self._post("/interactions/purchase-batch", payload)

    def emit(self, event: Dict[str, Any]) -> Optional[asyncio.Task]:
        """Send an event in the background without waiting for it"""

        if not event.get("user_id"):
            logger.debug("Skipping interaction for anonymous user", product_id=event.get("product_id"))
            return None
        return self._spawn(self.send(event))

    def track_view(
        self,
        user_id: Optional[str],
        product_id: str,
        category: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Optional[asyncio.Task]:
        """Record a product page view, collapsing rapid repeats"""

        if not user_id:
            return None

        event = {
            "user_id": user_id,
            "product_id": product_id,
            "interaction_type": EventType.VIEW.value,
            "category": category,
            "session_id": session_id,
        }
        return self._debounce(("view", user_id, product_id), self.send, event)

    def track_add_to_cart(
        self,
        user_id: Optional[str],
        product_id: str,
        value: int = 1,
        category: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Optional[asyncio.Task]:
        """Record quantity added to the cart"""

        return self.emit({
            "user_id": user_id,
            "product_id": product_id,
            "interaction_type": EventType.ADD_TO_CART.value,
            "value": value,
            "category": category,
            "session_id": session_id,
        })

    def track_cart_removal(self, user_id: Optional[str], product_id: str) -> Optional[asyncio.Task]:
        """Record that a product left the cart; resets the cart signal"""

        return self.emit({
            "user_id": user_id,
            "product_id": product_id,
            "interaction_type": EventType.VIEW.value,
            "value": 0,
        })

    def track_review(
        self,
        user_id: Optional[str],
        product_id: str,
        review_stars: float,
        session_id: Optional[str] = None,
    ) -> Optional[asyncio.Task]:
        """Record a product rating"""

        return self.emit({
            "user_id": user_id,
            "product_id": product_id,
            "interaction_type": EventType.REVIEW.value,
            "review_stars": review_stars,
            "session_id": session_id,
        })

    def track_search(
        self,
        user_id: Optional[str],
        search_query: str,
        product_ids: List[str],
        session_id: Optional[str] = None,
    ) -> Optional[asyncio.Task]:
        """
        Record a completed search against its first result

        Ignored for anonymous users, empty or catch-all queries and empty
        result lists. A query already sent for the user within the search
        window is not sent again.
        """

        query = (search_query or "").strip()
        if not user_id or not query or query == "all" or not product_ids:
            return None

        self._evict_searches(time.monotonic())
        last = self._last_search.get(user_id)
        if last is not None and last[0] == query:
            return None

        event = {
            "user_id": user_id,
            "product_id": product_ids[0],
            "interaction_type": EventType.SEARCH.value,
            "search_query": query,
            "session_id": session_id,
        }
        return self._debounce(("search", user_id), self._send_search, event)

    def track_purchase(self, user_id: Optional[str], lines: Iterable[Dict[str, Any]]) -> Optional[asyncio.Task]:
        """Record a confirmed payment as one batch across all line items"""

        if not user_id:
            logger.warning("Purchase tracking skipped without a user id")
            return None
        return self._spawn(self.send_purchase_batch(user_id, lines))

    async def drain(self) -> None:
        """Wait until every pending and in-flight send has finished"""

        for deferred in list(self._debounced.values()):
            await deferred.wait()
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        """Drop pending debounced sends, finish in-flight ones and close"""

        for deferred in self._debounced.values():
            deferred.cancel()
        await self.drain()
        await self._client.aclose()

    async def _send_search(self, event: Dict[str, Any]) -> bool:
        self._last_search[event["user_id"]] = (event["search_query"], time.monotonic())
        return await self.send(event)

    async def _post(self, path: str, payload: Dict[str, Any]) -> bool:
        try:
            response = await self._client.post(f"{self.api_prefix}{path}", json=payload)
        except httpx.HTTPError as e:
            logger.warning("Interaction tracking failed", path=path, error=str(e))
            return False

        if response.is_success:
            return True

        logger.warning(
            "Interaction tracking rejected",
            path=path,
            status_code=response.status_code,
            body=response.text[:500],
        )
        return False

    def _debounce(self, key: DebounceKey, func, *args) -> asyncio.Task:
        deferred = self._debounced.get(key)
        if deferred is None:
            deferred = self._debounced[key] = DeferredCall(self.debounce_seconds)
        task = deferred.schedule(func, *args)
        task.add_done_callback(lambda _: self._release(key, deferred))
        return task

    def _release(self, key: DebounceKey, deferred: DeferredCall) -> None:
        # A rescheduled slot stays until its latest call has finished
        if self._debounced.get(key) is deferred and deferred.idle:
            del self._debounced[key]

    def _evict_searches(self, now: float) -> None:
        expired = [
            user_id for user_id, (_, sent_at) in self._last_search.items()
            if now - sent_at >= self.search_window_seconds
        ]
        for user_id in expired:
            del self._last_search[user_id]

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
