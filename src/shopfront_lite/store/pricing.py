"""Derived cart totals: subtotal, bundle discount, negotiated discount."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from shopfront_lite.storage.models import CartLine, NegotiatedDiscount

DEFAULT_BUNDLE_DISCOUNT = 50
DEFAULT_BUNDLE_MIN_LINES = 2


@dataclass(frozen=True, slots=True)
class PricingSummary:
    subtotal: float
    bundle_discount: float
    discount_percent: float
    total: int


def subtotal(cart: Sequence[CartLine]) -> float:
    return sum(ln.product.price * ln.quantity for ln in cart)


def bundle_discount(
    cart: Sequence[CartLine],
    amount: float = DEFAULT_BUNDLE_DISCOUNT,
    min_lines: int = DEFAULT_BUNDLE_MIN_LINES,
) -> float:
    """Flat amount off once the cart holds ``min_lines`` distinct products."""
    return amount if len(cart) >= min_lines else 0


def total(
    cart: Sequence[CartLine],
    discount_percent: float = 0.0,
    bundle_amount: float = DEFAULT_BUNDLE_DISCOUNT,
    bundle_min_lines: int = DEFAULT_BUNDLE_MIN_LINES,
) -> int:
    """(subtotal - bundle) scaled by the negotiated percent, rounded once, never below zero."""
    percent = min(100.0, max(0.0, discount_percent))
    raw = (subtotal(cart) - bundle_discount(cart, bundle_amount, bundle_min_lines)) * (
        (100 - percent) / 100
    )
    # Half-up to the nearest whole currency unit.
    return max(0, math.floor(raw + 0.5))


def summarize(
    cart: Sequence[CartLine],
    discount: NegotiatedDiscount,
    bundle_amount: float = DEFAULT_BUNDLE_DISCOUNT,
    bundle_min_lines: int = DEFAULT_BUNDLE_MIN_LINES,
) -> PricingSummary:
    return PricingSummary(
        subtotal=subtotal(cart),
        bundle_discount=bundle_discount(cart, bundle_amount, bundle_min_lines),
        discount_percent=discount.percent,
        total=total(cart, discount.percent, bundle_amount, bundle_min_lines),
    )
