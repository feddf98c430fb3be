"""
Channel and Status Filters

One definition of the dashboard filters, usable both as an in-memory
predicate over :class:`Order` records and as SQL clauses over the orders
table, so the two aggregation strategies select the same rows.

Status semantics:

    all        no filter
    open_paid  paid
    open       open AND paid
    processed  processed AND paid

"open" also requires payment.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import ColumnElement

from src.database.models import FactOrder
from src.metrics.exceptions import InvalidFilterError
from src.metrics.periods import PeriodWindow
from src.metrics.records import Order

ALL_CHANNELS = "all"


class StatusFilter(str, Enum):
    ALL = "all"
    OPEN_PAID = "open_paid"
    OPEN = "open"
    PROCESSED = "processed"


@dataclass(frozen=True)
class MetricsFilter:
    """Channel + status selection shared by both aggregators"""
    channel: str = ALL_CHANNELS
    status: StatusFilter = StatusFilter.ALL
    excluded_channels: Tuple[str, ...] = field(default=("DIRECT",))

    @classmethod
    def build(
        cls,
        channel: Optional[str] = None,
        status: Optional[str] = None,
        excluded_channels: Optional[Iterable[str]] = None,
    ) -> "MetricsFilter":
        try:
            status_filter = StatusFilter(status or StatusFilter.ALL.value)
        except ValueError as e:
            raise InvalidFilterError(f"Unknown status filter: {status!r}") from e
        excluded = tuple(excluded_channels) if excluded_channels is not None else ("DIRECT",)
        return cls(channel=channel or ALL_CHANNELS, status=status_filter, excluded_channels=excluded)

    @property
    def cache_tag(self) -> str:
        return f"{self.channel}:{self.status.value}"

    def matches(self, order: Order) -> bool:
        if order.channel in self.excluded_channels:
            return False
        if self.channel != ALL_CHANNELS and order.channel != self.channel:
            return False

        if self.status is StatusFilter.OPEN_PAID:
            return order.is_paid
        if self.status is StatusFilter.OPEN:
            return order.is_open and order.is_paid
        if self.status is StatusFilter.PROCESSED:
            return order.is_processed and order.is_paid
        return True

    def apply(self, orders: Iterable[Order], window: Optional[PeriodWindow] = None) -> List[Order]:
        """Filter materialized orders, optionally restricting to a window."""
        return [
            order for order in orders
            if self.matches(order) and (window is None or window.contains(order.received_at))
        ]

    def clauses(self, window: Optional[PeriodWindow] = None) -> List[ColumnElement[bool]]:
        """Equivalent WHERE clauses over :class:`FactOrder`."""
        conditions: List[ColumnElement[bool]] = []
        if window is not None:
            conditions.append(FactOrder.received_at >= window.start_at)
            conditions.append(FactOrder.received_at < window.end_before)
        if self.excluded_channels:
            conditions.append(FactOrder.source.notin_(self.excluded_channels))
        if self.channel != ALL_CHANNELS:
            conditions.append(FactOrder.source == self.channel)

        if self.status is StatusFilter.OPEN_PAID:
            conditions.append(FactOrder.is_paid.is_(True))
        elif self.status is StatusFilter.OPEN:
            conditions.append(FactOrder.is_open.is_(True))
            conditions.append(FactOrder.is_paid.is_(True))
        elif self.status is StatusFilter.PROCESSED:
            conditions.append(FactOrder.is_processed.is_(True))
            conditions.append(FactOrder.is_paid.is_(True))
        return conditions
