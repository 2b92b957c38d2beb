"""Client-side interaction emitter and cart"""

from .debounce import DeferredCall
from .emitter import InteractionEmitter
from .cart import (
    CartError,
    CartItem,
    CartSession,
    CartState,
    PriceQuote,
    reduce_cart,
)

__all__ = [
    "DeferredCall",
    "InteractionEmitter",
    "CartError",
    "CartItem",
    "CartSession",
    "CartState",
    "PriceQuote",
    "reduce_cart",
]
