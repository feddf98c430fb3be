"""
Daily Bucket Builder

Builds the contiguous, zero-filled day series both aggregators return.
Every date in the requested range gets a bucket up front; partial rows are
then merged in a single pass, so the cost is O(days + rows) regardless of
how the rows were produced (one per order in memory, one per day from SQL).
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

from src.metrics.records import ZERO

DayKey = Union[date, datetime, str]


def format_day_label(day: date) -> str:
    """``Oct 18, 2026`` style label used on charts."""
    return f"{day.strftime('%b')} {day.day}, {day.year}"


def as_date(value: Optional[DayKey]) -> Optional[date]:
    """Normalize a row key (date, datetime or ``YYYY-MM-DD...`` string)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


@dataclass
class BucketRow:
    """A partial aggregate for one day. Many rows may share a day."""
    day: Optional[DayKey]
    orders: int = 0
    revenue: Decimal = ZERO
    items: int = 0
    open_orders: int = 0
    processed_orders: int = 0
    open_revenue: Decimal = ZERO
    processed_revenue: Decimal = ZERO


@dataclass
class DailyBucket:
    """Metrics for one calendar day"""
    day: date
    orders: int = 0
    revenue: Decimal = ZERO
    items: int = 0
    open_orders: int = 0
    processed_orders: int = 0
    open_revenue: Decimal = ZERO
    processed_revenue: Decimal = ZERO
    avg_order_value: Decimal = ZERO

    def merge(self, row: BucketRow) -> None:
        self.orders += row.orders
        self.revenue += row.revenue
        self.items += row.items
        self.open_orders += row.open_orders
        self.processed_orders += row.processed_orders
        self.open_revenue += row.open_revenue
        self.processed_revenue += row.processed_revenue

    def finalize(self) -> None:
        self.avg_order_value = self.revenue / self.orders if self.orders else ZERO

    @property
    def is_empty(self) -> bool:
        return self.orders == 0 and self.revenue == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": format_day_label(self.day),
            "iso_date": self.day.isoformat(),
            "day": self.day.strftime("%a"),
            "revenue": round(float(self.revenue), 2),
            "orders": self.orders,
            "items": self.items,
            "open_orders": self.open_orders,
            "processed_orders": self.processed_orders,
            "open_revenue": round(float(self.open_revenue), 2),
            "processed_revenue": round(float(self.processed_revenue), 2),
            "avg_order_value": round(float(self.avg_order_value), 2),
        }


def build_daily_series(rows: Iterable[BucketRow], start: date, end: date) -> List[DailyBucket]:
    """
    One bucket per day from ``start`` to ``end`` inclusive.

    Rows dated outside the range, or with no usable date, are ignored.
    """
    if end < start:
        return []

    buckets: Dict[date, DailyBucket] = {}
    cursor = start
    while cursor <= end:
        buckets[cursor] = DailyBucket(day=cursor)
        cursor += timedelta(days=1)

    for row in rows:
        bucket = buckets.get(as_date(row.day))
        if bucket is not None:
            bucket.merge(row)

    series = list(buckets.values())
    for bucket in series:
        bucket.finalize()
    return series


def build_padded_day(rows: Iterable[BucketRow], day: date) -> List[DailyBucket]:
    """
    Single-day series padded to three buckets.

    The neighbouring days are always zero, even if rows for them were
    supplied, so a single point renders centred on a chart.
    """
    target = [row for row in rows if as_date(row.day) == day]
    return build_daily_series(target, day - timedelta(days=1), day + timedelta(days=1))


def best_day(series: List[DailyBucket]) -> Optional[DailyBucket]:
    """Highest-revenue bucket; earliest wins ties. None when nothing sold."""
    candidates = [bucket for bucket in series if not bucket.is_empty]
    if not candidates:
        return None
    return max(candidates, key=lambda bucket: bucket.revenue)
