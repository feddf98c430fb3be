"""
Database-Pushdown Metrics

Computes the same payload as :class:`src.metrics.sales.SalesMetrics` with
grouped SQL aggregates, so year-long windows never materialize their orders
in application memory. Queries run sequentially on the request's session:

1. totals with conditional sums
2. units sold over ``order_items`` joined to ``orders``
3. one row per day with data, zero-filled by the bucket builder
4. (channel, subsource) and channel-only revenue, limited server-side
5. (sku, title) revenue, limited server-side, plus one catalog lookup
6. most recent orders
7. previous-window revenue for growth

Revenue uses the same fallback chain as the in-memory resolver, with the
line-item stage fed by a per-order pre-aggregate of ``order_items``.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import structlog
from sqlalchemy import and_, case, func, literal_column, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config.settings import MetricsSettings
from src.database.models import DimProduct, FactOrder, FactOrderItem
from src.metrics.buckets import BucketRow, DailyBucket, best_day, build_daily_series, build_padded_day
from src.metrics.exceptions import MetricsStoreUnavailable
from src.metrics.filters import MetricsFilter
from src.metrics.periods import PeriodWindow
from src.metrics.records import Product, ZERO, to_decimal, to_int
from src.metrics.sales import (
    build_payload,
    catalog_title,
    channel_row,
    growth_rate,
    money,
    product_row,
    status_breakdown,
)

logger = structlog.get_logger(__name__)


def item_value_sql():
    """SQL twin of :func:`src.metrics.revenue.item_value`."""
    return case(
        (FactOrderItem.line_total > 0, FactOrderItem.line_total),
        (
            and_(FactOrderItem.unit_price > 0, FactOrderItem.quantity > 0),
            FactOrderItem.unit_price * FactOrderItem.quantity,
        ),
        else_=0,
    )


class _RevenueSource:
    """Per-order item pre-aggregate and the revenue CASE built on it."""

    def __init__(self, conditions: Sequence[Any]):
        in_scope = select(FactOrder.id).where(*conditions)
        self.items = (
            select(
                FactOrderItem.order_id.label("order_pk"),
                func.sum(item_value_sql()).label("items_value"),
                func.sum(FactOrderItem.quantity).label("units"),
            )
            .where(FactOrderItem.order_id.in_(in_scope))
            .group_by(FactOrderItem.order_id)
            .subquery("items_agg")
        )
        self.revenue = case(
            (FactOrder.total_charge > 0, FactOrder.total_charge),
            (func.coalesce(self.items.c.items_value, 0) > 0, self.items.c.items_value),
            (FactOrder.total_paid > 0, FactOrder.total_paid),
            else_=0,
        )
        self.units = func.coalesce(self.items.c.units, 0)
        self.conditions = list(conditions)

    def select_from(self, *columns):
        return (
            select(*columns)
            .select_from(FactOrder)
            .outerjoin(self.items, self.items.c.order_pk == FactOrder.id)
            .where(*self.conditions)
        )


class ChunkedMetricsCalculator:
    """
    Pushdown aggregation for large windows.

    Example:
        calculator = ChunkedMetricsCalculator(session, window, MetricsFilter())
        payload = await calculator.calculate()
    """

    strategy = "pushdown"

    def __init__(
        self,
        session: AsyncSession,
        window: PeriodWindow,
        metrics_filter: Optional[MetricsFilter] = None,
        settings: Optional[MetricsSettings] = None,
    ):
        self.session = session
        self.window = window
        self.settings = settings or MetricsSettings()
        self.filter = metrics_filter or MetricsFilter(
            excluded_channels=tuple(self.settings.excluded_channels)
        )
        self._source = _RevenueSource(self.filter.clauses(window))

    async def _execute(self, stmt, query: str):
        try:
            return await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                "Metrics query failed",
                query=query,
                period=self.window.period,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise MetricsStoreUnavailable(f"Order store unavailable during {query}") from e

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def aggregates(self) -> Dict[str, Any]:
        src = self._source
        processed = FactOrder.is_processed.is_(True)
        is_open = FactOrder.is_open.is_(True)
        stmt = src.select_from(
            func.count(FactOrder.id).label("orders"),
            func.coalesce(func.sum(src.revenue), 0).label("revenue"),
            func.coalesce(func.sum(case((processed, 1), else_=0)), 0).label("processed_orders"),
            func.coalesce(func.sum(case((is_open, 1), else_=0)), 0).label("open_orders"),
            func.coalesce(func.sum(case((processed, src.revenue), else_=0)), 0).label("processed_revenue"),
            func.coalesce(func.sum(case((is_open, src.revenue), else_=0)), 0).label("open_revenue"),
        )
        row = (await self._execute(stmt, "aggregates")).one()

        orders = to_int(row.orders)
        revenue = to_decimal(row.revenue)
        return {
            "orders": orders,
            "revenue": revenue,
            "avg_order_value": revenue / orders if orders else ZERO,
            "processed_orders": to_int(row.processed_orders),
            "open_orders": to_int(row.open_orders),
            "processed_revenue": to_decimal(row.processed_revenue),
            "open_revenue": to_decimal(row.open_revenue),
        }

    async def items_sold(self) -> int:
        stmt = (
            select(func.coalesce(func.sum(FactOrderItem.quantity), 0))
            .select_from(FactOrderItem)
            .join(FactOrder, FactOrder.id == FactOrderItem.order_id)
            .where(*self._source.conditions)
        )
        return to_int((await self._execute(stmt, "items_sold")).scalar())

    async def daily_series(self) -> List[DailyBucket]:
        src = self._source
        day = func.date(FactOrder.received_at)
        processed = FactOrder.is_processed.is_(True)
        is_open = FactOrder.is_open.is_(True)
        stmt = (
            src.select_from(
                day.label("day"),
                func.count(FactOrder.id).label("orders"),
                func.coalesce(func.sum(src.revenue), 0).label("revenue"),
                func.coalesce(func.sum(src.units), 0).label("items"),
                func.coalesce(func.sum(case((is_open, 1), else_=0)), 0).label("open_orders"),
                func.coalesce(func.sum(case((processed, 1), else_=0)), 0).label("processed_orders"),
                func.coalesce(func.sum(case((is_open, src.revenue), else_=0)), 0).label("open_revenue"),
                func.coalesce(func.sum(case((processed, src.revenue), else_=0)), 0).label("processed_revenue"),
            )
            .group_by(day)
            .order_by(day)
        )
        result = await self._execute(stmt, "daily_series")
        rows = [
            BucketRow(
                day=str(row.day)[:10] if row.day is not None else None,
                orders=to_int(row.orders),
                revenue=to_decimal(row.revenue),
                items=to_int(row.items),
                open_orders=to_int(row.open_orders),
                processed_orders=to_int(row.processed_orders),
                open_revenue=to_decimal(row.open_revenue),
                processed_revenue=to_decimal(row.processed_revenue),
            )
            for row in result.all()
        ]
        if self.window.single_day:
            return build_padded_day(rows, self.window.start)
        return build_daily_series(rows, self.window.start, self.window.end)

    def _ranked_channels(self, keys: Sequence[Any], limit: int):
        """Revenue grouped by ``keys``, highest first; ties keep the order their first order was received in."""
        revenue = func.coalesce(func.sum(self._source.revenue), 0)
        return (
            self._source.select_from(
                *keys,
                func.count(FactOrder.id).label("orders"),
                revenue.label("revenue"),
            )
            .group_by(*keys)
            .order_by(revenue.desc(), func.min(FactOrder.received_at), func.min(FactOrder.id))
            .limit(limit)
        )

    async def top_channels(self, total_revenue: Decimal, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        # Empty and missing subsources are the same group
        subsource = func.nullif(FactOrder.subsource, literal_column("''"))
        stmt = self._ranked_channels(
            [FactOrder.source, subsource],
            limit or self.settings.top_channels_limit,
        )
        result = await self._execute(stmt, "top_channels")
        return [
            channel_row(source, sub, to_int(orders), to_decimal(revenue), total_revenue)
            for source, sub, orders, revenue in result.all()
        ]

    async def top_channels_grouped(self, total_revenue: Decimal, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        stmt = self._ranked_channels([FactOrder.source], limit or self.settings.top_channels_limit)
        result = await self._execute(stmt, "top_channels_grouped")
        return [
            channel_row(source, None, to_int(orders), to_decimal(revenue), total_revenue)
            for source, orders, revenue in result.all()
        ]

    async def top_products(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        limit = limit or self.settings.top_products_limit
        revenue = func.coalesce(func.sum(item_value_sql()), 0)
        stmt = (
            select(
                FactOrderItem.sku,
                FactOrderItem.item_title,
                func.coalesce(func.sum(FactOrderItem.quantity), 0).label("quantity"),
                revenue.label("revenue"),
                func.count(func.distinct(FactOrderItem.order_id)).label("order_count"),
            )
            .select_from(FactOrderItem)
            .join(FactOrder, FactOrder.id == FactOrderItem.order_id)
            .where(*self._source.conditions, FactOrderItem.sku.is_not(None))
            .group_by(FactOrderItem.sku, FactOrderItem.item_title)
            .order_by(revenue.desc(), FactOrderItem.sku)
            .limit(limit)
        )
        rows = (await self._execute(stmt, "top_products")).all()
        if not rows:
            return []

        skus = sorted({row.sku for row in rows})
        catalog_rows = await self._execute(
            select(DimProduct).where(DimProduct.sku.in_(skus)), "catalog_titles"
        )
        catalog = {product.sku: Product.from_model(product) for product in catalog_rows.scalars()}

        return [
            product_row(
                row.sku,
                catalog_title(catalog, row.sku, row.item_title),
                to_int(row.quantity),
                to_decimal(row.revenue),
                to_int(row.order_count),
            )
            for row in rows
        ]

    async def recent_orders(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        src = self._source
        limit = limit or self.settings.recent_orders_limit
        stmt = (
            src.select_from(
                FactOrder.id,
                FactOrder.order_id,
                FactOrder.number,
                FactOrder.received_at,
                FactOrder.source,
                FactOrder.subsource,
                FactOrder.total_charge,
                FactOrder.is_paid,
                FactOrder.is_open,
                FactOrder.is_processed,
                src.revenue.label("revenue"),
            )
            .order_by(FactOrder.received_at.desc(), FactOrder.id)
            .limit(limit)
        )
        result = await self._execute(stmt, "recent_orders")
        return [
            {
                "id": row.id,
                "order_id": row.order_id,
                "number": row.number,
                "received_at": row.received_at.isoformat() if row.received_at else None,
                "channel": row.source,
                "subsource": row.subsource,
                "total_charge": money(row.total_charge),
                "revenue": money(row.revenue),
                "is_paid": bool(row.is_paid),
                "is_open": bool(row.is_open),
                "is_processed": bool(row.is_processed),
            }
            for row in result.all()
        ]

    async def previous_revenue(self) -> Decimal:
        src = _RevenueSource(self.filter.clauses(self.window.previous()))
        stmt = src.select_from(func.coalesce(func.sum(src.revenue), 0))
        return to_decimal((await self._execute(stmt, "previous_revenue")).scalar())

    # -------------------------------------------------------------------------
    # Payload
    # -------------------------------------------------------------------------

    async def calculate(self) -> Dict[str, Any]:
        logger.info(
            "Computing pushdown metrics",
            period=self.window.period,
            start=self.window.start.isoformat(),
            end=self.window.end.isoformat(),
            channel=self.filter.channel,
            status=self.filter.status.value,
        )
        totals = await self.aggregates()
        totals["items"] = await self.items_sold()
        series = await self.daily_series()
        channels = await self.top_channels(totals["revenue"])
        grouped = await self.top_channels_grouped(totals["revenue"])
        products = await self.top_products()
        recent = await self.recent_orders()
        previous = await self.previous_revenue()
        best = best_day(series)

        return build_payload(
            window=self.window,
            totals=totals,
            top_channels=channels,
            channels_grouped=grouped,
            top_products=products,
            series=series,
            recent_orders=recent,
            status=status_breakdown(
                totals["processed_orders"],
                totals["open_orders"],
                totals["processed_revenue"],
                totals["open_revenue"],
            ),
            orders_per_day=round(totals["orders"] / self.window.days, 2),
            best=best.to_dict() if best is not None else None,
            growth=growth_rate(totals["revenue"], previous),
            strategy=self.strategy,
        )
