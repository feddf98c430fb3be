"""
In-Memory Sales Metrics

Aggregates a materialized, already-filtered collection of orders. Used for
windows small enough to load; larger windows go through
:mod:`src.metrics.chunked`, which must return the same numbers.

Every figure is derived from :class:`RevenueResolver`, and each instance
owns its own resolver and daily-series memo, so nothing is shared between
requests.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import structlog

from src.metrics.buckets import (
    BucketRow,
    DailyBucket,
    best_day,
    build_daily_series,
    build_padded_day,
)
from src.metrics.periods import PeriodWindow, resolve_period
from src.metrics.records import Catalog, Order, UNKNOWN_PRODUCT, ZERO
from src.metrics.revenue import RevenueResolver, item_value

logger = structlog.get_logger(__name__)


# =============================================================================
# SHARED HELPERS
# =============================================================================

def growth_rate(current: Union[Decimal, float], previous: Union[Decimal, float]) -> float:
    """
    Percentage change from ``previous`` to ``current``.

    With no previous revenue, any current revenue counts as 100% growth.
    """
    current = Decimal(str(current))
    previous = Decimal(str(previous))
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return float((current - previous) / previous * 100)


def money(value: Union[Decimal, float, None]) -> float:
    return round(float(value or 0), 2)


def channel_row(
    channel: str,
    subsource: Optional[str],
    orders: int,
    revenue: Decimal,
    total_revenue: Decimal,
) -> Dict[str, Any]:
    name = f"{subsource} ({channel})" if subsource else channel
    return {
        "name": name,
        "channel": channel,
        "subsource": subsource or None,
        "orders": orders,
        "revenue": money(revenue),
        "avg_order_value": money(revenue / orders) if orders else 0.0,
        "percentage": round(float(revenue / total_revenue * 100), 2) if total_revenue > 0 else 0.0,
    }


def product_row(sku: str, title: str, quantity: int, revenue: Decimal, orders: int) -> Dict[str, Any]:
    return {
        "sku": sku,
        "title": title,
        "quantity": quantity,
        "revenue": money(revenue),
        "orders": orders,
        "avg_price": money(revenue / quantity) if quantity else 0.0,
    }


def catalog_title(catalog: Catalog, sku: str, fallback: Optional[str]) -> str:
    """Prefer the catalog title unless it is itself the placeholder."""
    product = catalog.get(sku)
    if product is not None and product.title and product.title != UNKNOWN_PRODUCT:
        return product.title
    return fallback or UNKNOWN_PRODUCT


def status_breakdown(
    processed: int,
    open_orders: int,
    processed_revenue: Union[Decimal, float],
    open_revenue: Union[Decimal, float],
) -> Dict[str, Any]:
    return {
        "processed": int(processed),
        "open": int(open_orders),
        "processed_revenue": money(processed_revenue),
        "open_revenue": money(open_revenue),
    }


def build_payload(
    window: PeriodWindow,
    totals: Dict[str, Any],
    top_channels: List[Dict[str, Any]],
    channels_grouped: List[Dict[str, Any]],
    top_products: List[Dict[str, Any]],
    series: List[DailyBucket],
    recent_orders: List[Dict[str, Any]],
    status: Dict[str, Any],
    orders_per_day: float,
    best: Optional[Dict[str, Any]],
    growth: float,
    strategy: str,
) -> Dict[str, Any]:
    """The mapping both aggregation strategies return."""
    return {
        "period": window.period,
        "start_date": window.start.isoformat(),
        "end_date": window.end.isoformat(),
        "revenue": money(totals["revenue"]),
        "orders": int(totals["orders"]),
        "items": int(totals["items"]),
        "avg_order_value": money(totals["avg_order_value"]),
        "processed_orders": int(totals["processed_orders"]),
        "open_orders": int(totals["open_orders"]),
        "orders_per_day": orders_per_day,
        "growth_rate": round(growth, 2),
        "top_channels": top_channels,
        "channels_grouped": channels_grouped,
        "top_products": top_products,
        "status_breakdown": status,
        "daily_series": [bucket.to_dict() for bucket in series],
        "recent_orders": recent_orders,
        "best_day": best,
        "strategy": strategy,
        "computed_at": datetime.now(timezone.utc).isoformat(),
    }


# =============================================================================
# AGGREGATOR
# =============================================================================

class SalesMetrics:
    """
    Sales metrics over an in-memory order collection.

    Example:
        metrics = SalesMetrics(orders, catalog)
        metrics.total_revenue()
        metrics.top_channels(limit=6)
        metrics.daily_sales_data("7")
    """

    strategy = "in_memory"

    def __init__(self, orders: Iterable[Order], catalog: Optional[Catalog] = None):
        self.orders: List[Order] = list(orders)
        self.catalog: Catalog = catalog or {}
        self._resolver = RevenueResolver()
        self._daily_memo: Dict[Tuple[str, date, date], List[DailyBucket]] = {}

    def revenue_of(self, order: Order) -> Decimal:
        return self._resolver.resolve(order)

    # -------------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------------

    def total_revenue(self) -> Decimal:
        return self._resolver.total(self.orders)

    def total_orders(self) -> int:
        return len(self.orders)

    def average_order_value(self) -> Decimal:
        count = self.total_orders()
        return self.total_revenue() / count if count else ZERO

    def total_items_sold(self) -> int:
        """
        Units sold, preferring the normalized item relation.

        Embedded items are only summed when the relation total is exactly 0,
        so a window where every order has zero-quantity relation rows but
        populated embedded items reports the embedded units.
        """
        relation_total = sum(
            item.quantity for order in self.orders for item in (order.order_items or [])
        )
        if relation_total != 0:
            return relation_total
        return sum(item.quantity for order in self.orders for item in (order.items or []))

    def total_processed_orders(self) -> int:
        return sum(1 for order in self.orders if order.is_processed)

    def total_open_orders(self) -> int:
        return sum(1 for order in self.orders if order.is_open)

    def processed_orders_revenue(self) -> Decimal:
        return self._resolver.total(order for order in self.orders if order.is_processed)

    def open_orders_revenue(self) -> Decimal:
        return self._resolver.total(order for order in self.orders if order.is_open)

    def growth_rate(self, previous: Union["SalesMetrics", Iterable[Order], Decimal, float]) -> float:
        if isinstance(previous, SalesMetrics):
            previous_revenue = previous.total_revenue()
        elif isinstance(previous, (Decimal, float, int)):
            previous_revenue = previous
        else:
            previous_revenue = SalesMetrics(previous).total_revenue()
        return growth_rate(self.total_revenue(), previous_revenue)

    def orders_per_day(self, days: int) -> float:
        return round(self.total_orders() / days, 2) if days > 0 else 0.0

    def totals(self) -> Dict[str, Any]:
        return {
            "revenue": self.total_revenue(),
            "orders": self.total_orders(),
            "items": self.total_items_sold(),
            "avg_order_value": self.average_order_value(),
            "processed_orders": self.total_processed_orders(),
            "open_orders": self.total_open_orders(),
        }

    # -------------------------------------------------------------------------
    # Breakdowns
    # -------------------------------------------------------------------------

    def top_channels(self, limit: int = 6) -> List[Dict[str, Any]]:
        """Revenue by (channel, subsource), highest first; ties keep first-seen order."""
        groups: Dict[Tuple[str, Optional[str]], List[Any]] = {}
        for order in self.orders:
            key = (order.channel, order.subsource or None)
            group = groups.setdefault(key, [0, ZERO])
            group[0] += 1
            group[1] += self.revenue_of(order)

        total = self.total_revenue()
        ranked = sorted(groups.items(), key=lambda entry: entry[1][1], reverse=True)
        return [
            channel_row(channel, subsource, count, revenue, total)
            for (channel, subsource), (count, revenue) in ranked[:limit]
        ]

    def top_channels_grouped(self, limit: int = 6) -> List[Dict[str, Any]]:
        """Revenue by channel alone, folding subsources together."""
        groups: Dict[str, List[Any]] = {}
        for order in self.orders:
            group = groups.setdefault(order.channel, [0, ZERO])
            group[0] += 1
            group[1] += self.revenue_of(order)

        total = self.total_revenue()
        ranked = sorted(groups.items(), key=lambda entry: entry[1][1], reverse=True)
        return [
            channel_row(channel, None, count, revenue, total)
            for channel, (count, revenue) in ranked[:limit]
        ]

    def top_products(self, limit: int = 5) -> List[Dict[str, Any]]:
        """Best sellers by revenue in one pass over line items, keyed by SKU."""
        stats: Dict[str, Dict[str, Any]] = {}
        for order in self.orders:
            seen_in_order = set()
            for item in order.effective_items:
                if not item.sku:
                    continue
                entry = stats.get(item.sku)
                if entry is None:
                    entry = stats[item.sku] = {
                        "title": item.title,
                        "quantity": 0,
                        "revenue": ZERO,
                        "orders": 0,
                    }
                entry["quantity"] += item.quantity
                entry["revenue"] += item_value(item)
                if item.sku not in seen_in_order:
                    entry["orders"] += 1
                    seen_in_order.add(item.sku)

        ranked = sorted(stats.items(), key=lambda entry: entry[1]["revenue"], reverse=True)
        return [
            product_row(
                sku,
                catalog_title(self.catalog, sku, entry["title"]),
                entry["quantity"],
                entry["revenue"],
                entry["orders"],
            )
            for sku, entry in ranked[:limit]
        ]

    def order_status_breakdown(self) -> Dict[str, Any]:
        return status_breakdown(
            self.total_processed_orders(),
            self.total_open_orders(),
            self.processed_orders_revenue(),
            self.open_orders_revenue(),
        )

    def available_channels(self) -> List[str]:
        return sorted({order.channel for order in self.orders if order.channel})

    def recent_orders(self, limit: int = 15) -> List[Dict[str, Any]]:
        dated = [order for order in self.orders if order.received_at is not None]
        dated.sort(key=lambda order: order.received_at, reverse=True)
        return [self._order_summary(order) for order in dated[:limit]]

    def _order_summary(self, order: Order) -> Dict[str, Any]:
        return {
            "id": order.id,
            "order_id": order.order_id,
            "number": order.number,
            "received_at": order.received_at.isoformat() if order.received_at else None,
            "channel": order.channel,
            "subsource": order.subsource,
            "total_charge": money(order.total_charge),
            "revenue": money(self.revenue_of(order)),
            "is_paid": order.is_paid,
            "is_open": order.is_open,
            "is_processed": order.is_processed,
        }

    # -------------------------------------------------------------------------
    # Daily series
    # -------------------------------------------------------------------------

    @staticmethod
    def _units(order: Order) -> int:
        items = order.order_items if order.order_items else order.items
        return sum(item.quantity for item in (items or []))

    def _bucket_row(self, order: Order) -> BucketRow:
        revenue = self.revenue_of(order)
        return BucketRow(
            day=order.received_at,
            orders=1,
            revenue=revenue,
            items=self._units(order),
            open_orders=1 if order.is_open else 0,
            processed_orders=1 if order.is_processed else 0,
            open_revenue=revenue if order.is_open else ZERO,
            processed_revenue=revenue if order.is_processed else ZERO,
        )

    def daily_series(self, window: PeriodWindow) -> List[DailyBucket]:
        key = (window.period, window.start, window.end)
        series = self._daily_memo.get(key)
        if series is None:
            rows = (self._bucket_row(order) for order in self.orders)
            if window.single_day:
                series = build_padded_day(rows, window.start)
            else:
                series = build_daily_series(rows, window.start, window.end)
            self._daily_memo[key] = series
        return series

    def daily_sales_data(
        self,
        period: str = "7",
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> List[DailyBucket]:
        if start_date is not None and end_date is not None:
            window = PeriodWindow(period=str(period), start=start_date, end=end_date)
        else:
            window = resolve_period(period, today=today)
        return self.daily_series(window)

    def best_performing_day(
        self,
        period: str = "7",
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> Optional[Dict[str, Any]]:
        best = best_day(self.daily_sales_data(period, start_date, end_date, today))
        return best.to_dict() if best is not None else None

    # -------------------------------------------------------------------------
    # Full summary
    # -------------------------------------------------------------------------

    def summary(
        self,
        window: PeriodWindow,
        previous_revenue: Union[Decimal, float] = ZERO,
        channels_limit: int = 6,
        products_limit: int = 5,
        recent_limit: int = 15,
    ) -> Dict[str, Any]:
        logger.debug(
            "Computing in-memory metrics",
            period=window.period,
            orders=len(self.orders),
        )
        return build_payload(
            window=window,
            totals=self.totals(),
            top_channels=self.top_channels(channels_limit),
            channels_grouped=self.top_channels_grouped(channels_limit),
            top_products=self.top_products(products_limit),
            series=self.daily_series(window),
            recent_orders=self.recent_orders(recent_limit),
            status=self.order_status_breakdown(),
            orders_per_day=self.orders_per_day(window.days),
            best=self.best_performing_day(window.period, window.start, window.end),
            growth=growth_rate(self.total_revenue(), previous_revenue),
            strategy=self.strategy,
        )
