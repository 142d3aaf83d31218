"""Per-delivery price quote for a subscription basket"""

from dataclasses import dataclass
from typing import Iterable

from ...config import DELIVERY_FEE, FREE_DELIVERY_THRESHOLD


@dataclass(frozen=True)
class Quote:
    subtotal: float
    delivery_fee: float
    total: float


def delivery_fee_for(subtotal: float) -> float:
    """Free delivery at or above the threshold, flat fee below it"""
    return 0.0 if subtotal >= FREE_DELIVERY_THRESHOLD else DELIVERY_FEE


def quote(lines: Iterable[tuple[float, int]]) -> Quote:
    """
    Price a basket given (unit_price, quantity) pairs.

    Amounts are rounded to 2 decimal places.
    """
    subtotal = round(sum(price * quantity for price, quantity in lines), 2)
    fee = delivery_fee_for(subtotal)
    return Quote(subtotal=subtotal, delivery_fee=fee, total=round(subtotal + fee, 2))
