"""Reducer-style shopping cart with injected pricing

The cart is an immutable state object. Every mutation goes through
reduce_cart(state, action, pricing), a pure function; pricing and delivery
calculation is passed in rather than looked up, so the reducer can be
exercised without any pricing backend.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Optional, Tuple, Union

from ..utils.logging import get_logger
from .emitter import InteractionEmitter

logger = get_logger(__name__)


class CartError(Exception):
    """Raised when a cart action cannot be applied"""


@dataclass(frozen=True)
class CartItem:
    """One cart line; identity is product + color + size"""

    product_id: str
    client_id: str
    name: str
    price: float
    quantity: int
    count_in_stock: int
    category: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None

    def same_line(self, other: "CartItem") -> bool:
        return (
            self.product_id == other.product_id
            and self.color == other.color
            and self.size == other.size
        )


@dataclass(frozen=True)
class PriceQuote:
    """Result of the pricing function"""

    items_price: float
    total_price: float
    tax_price: Optional[float] = None
    shipping_price: Optional[float] = None
    delivery_date_index: Optional[int] = None


@dataclass(frozen=True)
class CartState:
    items: Tuple[CartItem, ...] = ()
    items_price: float = 0.0
    tax_price: Optional[float] = None
    shipping_price: Optional[float] = None
    total_price: float = 0.0
    payment_method: Optional[str] = None
    shipping_address: Optional[Dict[str, Any]] = field(default=None, hash=False)
    delivery_date_index: Optional[int] = None

    def find(self, item: CartItem) -> Optional[CartItem]:
        return next((x for x in self.items if x.same_line(item)), None)


# Pricing function: (items, shipping_address, delivery_date_index) -> PriceQuote
PricingFunction = Callable[[Tuple[CartItem, ...], Optional[Dict[str, Any]], Optional[int]], PriceQuote]


@dataclass(frozen=True)
class AddItem:
    item: CartItem
    quantity: int


@dataclass(frozen=True)
class UpdateItem:
    item: CartItem
    quantity: int


@dataclass(frozen=True)
class RemoveItem:
    item: CartItem


@dataclass(frozen=True)
class ClearCart:
    pass


@dataclass(frozen=True)
class SetShippingAddress:
    shipping_address: Dict[str, Any] = field(hash=False)


@dataclass(frozen=True)
class SetPaymentMethod:
    payment_method: str


@dataclass(frozen=True)
class SetDeliveryDateIndex:
    index: int


CartAction = Union[
    AddItem, UpdateItem, RemoveItem, ClearCart,
    SetShippingAddress, SetPaymentMethod, SetDeliveryDateIndex,
]


def _priced(state: CartState, pricing: PricingFunction, **changes) -> CartState:
    state = replace(state, **changes)
    quote = pricing(state.items, state.shipping_address, state.delivery_date_index)
    return replace(
        state,
        items_price=quote.items_price,
        tax_price=quote.tax_price,
        shipping_price=quote.shipping_price,
        total_price=quote.total_price,
        delivery_date_index=quote.delivery_date_index,
    )


def reduce_cart(state: CartState, action: CartAction, pricing: PricingFunction) -> CartState:
    """
    Apply an action to a cart state

    Args:
        state: Current cart
        action: Action to apply
        pricing: Pricing and delivery calculation

    Returns:
        New cart state; `state` is unchanged

    Raises:
        CartError: If stock is insufficient or the action is unknown
    """

    if isinstance(action, AddItem):
        existing = state.find(action.item)
        if existing is not None:
            if existing.count_in_stock < existing.quantity + action.quantity:
                raise CartError("Not enough items in stock")
            items = tuple(
                replace(x, quantity=x.quantity + action.quantity) if x is existing else x
                for x in state.items
            )
        else:
            if action.item.count_in_stock < action.quantity:
                raise CartError("Not enough items in stock")
            items = state.items + (replace(action.item, quantity=action.quantity),)
        return _priced(state, pricing, items=items)

    if isinstance(action, UpdateItem):
        existing = state.find(action.item)
        if existing is None:
            return state
        if existing.count_in_stock < action.quantity:
            raise CartError("Not enough items in stock")
        items = tuple(
            replace(x, quantity=action.quantity) if x is existing else x
            for x in state.items
        )
        return _priced(state, pricing, items=items)

    if isinstance(action, RemoveItem):
        items = tuple(x for x in state.items if not x.same_line(action.item))
        return _priced(state, pricing, items=items)

    if isinstance(action, ClearCart):
        return replace(state, items=())

    if isinstance(action, SetShippingAddress):
        return _priced(state, pricing, shipping_address=action.shipping_address)

    if isinstance(action, SetPaymentMethod):
        return replace(state, payment_method=action.payment_method)

    if isinstance(action, SetDeliveryDateIndex):
        return _priced(state, pricing, delivery_date_index=action.index)

    raise CartError(f"Unknown cart action: {type(action).__name__}")


class CartSession:
    """
    A user's cart plus interaction tracking of its mutations

    Tracking is fire-and-forget and never affects the cart: the new state
    is committed before any event is emitted.
    """

    def __init__(
        self,
        pricing: PricingFunction,
        emitter: Optional[InteractionEmitter] = None,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        state: Optional[CartState] = None,
    ):
        self.pricing = pricing
        self.emitter = emitter
        self.user_id = user_id
        self.session_id = session_id
        self.state = state or CartState()

    def dispatch(self, action: CartAction) -> CartState:
        """Apply an action, then emit the matching tracking event"""

        previous = self.state
        self.state = reduce_cart(previous, action, self.pricing)
        self._track(previous, action)
        return self.state

    def add_item(self, item: CartItem, quantity: int) -> str:
        """Add quantity of an item; returns the cart line's client id"""

        state = self.dispatch(AddItem(item, quantity))
        return state.find(item).client_id

    def update_item(self, item: CartItem, quantity: int) -> CartState:
        return self.dispatch(UpdateItem(item, quantity))

    def remove_item(self, item: CartItem) -> CartState:
        return self.dispatch(RemoveItem(item))

    def clear(self) -> CartState:
        return self.dispatch(ClearCart())

    def _track(self, previous: CartState, action: CartAction) -> None:
        if self.emitter is None or not self.user_id:
            return

        try:
            if isinstance(action, AddItem):
                self.emitter.track_add_to_cart(
                    self.user_id,
                    action.item.product_id,
                    value=action.quantity,
                    category=action.item.category,
                    session_id=self.session_id,
                )
            elif isinstance(action, UpdateItem):
                before = previous.find(action.item)
                increase = action.quantity - before.quantity if before is not None else 0
                if increase > 0:
                    self.emitter.track_add_to_cart(
                        self.user_id,
                        action.item.product_id,
                        value=increase,
                        category=action.item.category,
                        session_id=self.session_id,
                    )
            elif isinstance(action, RemoveItem):
                self.emitter.track_cart_removal(self.user_id, action.item.product_id)
        except Exception as e:
            logger.warning(
                "Cart interaction tracking failed",
                user_id=self.user_id,
                action=type(action).__name__,
                error=str(e),
            )
