"""
Revenue Resolution

Upstream orders are inconsistent: some carry an authoritative charge, some
only computable line items, some neither. Revenue is resolved through a
fixed chain where the first positive stage wins:

1. ``total_charge``
2. sum of embedded line items
3. sum of the loaded normalized item relation
4. ``total_paid``
5. zero

Embedded items and the relation describe the same lines, so they are never
added together. Signs are preserved: a negative charge is not clamped, it
simply fails the ``> 0`` test and falls through.
"""

from decimal import Decimal
from typing import Dict, Iterable, Optional, Tuple

from src.metrics.records import Order, OrderItem, ZERO


def item_value(item: OrderItem) -> Decimal:
    """Line value: ``line_total`` if positive, else ``unit_price * quantity``."""
    if item.line_total > 0:
        return item.line_total
    if item.unit_price > 0 and item.quantity > 0:
        return item.unit_price * item.quantity
    return ZERO


def sum_items(items: Optional[Iterable[OrderItem]]) -> Decimal:
    if not items:
        return ZERO
    return sum((item_value(item) for item in items), ZERO)


def resolve_order_revenue(order: Order) -> Decimal:
    """Apply the fallback chain to one order. Pure, no memoization."""
    if order.total_charge > 0:
        return order.total_charge

    embedded = sum_items(order.items)
    if embedded > 0:
        return embedded

    if order.order_items is not None:
        related = sum_items(order.order_items)
        if related > 0:
            return related

    if order.total_paid > 0:
        return order.total_paid

    return ZERO


class RevenueResolver:
    """
    Memoizing wrapper around :func:`resolve_order_revenue`.

    One resolver belongs to one aggregation run; the memo never outlives it.
    """

    def __init__(self):
        self._memo: Dict[Tuple[str, object], Decimal] = {}

    @staticmethod
    def _memo_key(order: Order) -> Tuple[str, object]:
        if order.id is not None:
            return ("id", order.id)
        if order.order_id:
            return ("order_id", order.order_id)
        return ("object", id(order))

    def resolve(self, order: Order) -> Decimal:
        key = self._memo_key(order)
        value = self._memo.get(key)
        if value is None:
            value = resolve_order_revenue(order)
            self._memo[key] = value
        return value

    def total(self, orders: Iterable[Order]) -> Decimal:
        return sum((self.resolve(order) for order in orders), ZERO)

    def __len__(self) -> int:
        return len(self._memo)
