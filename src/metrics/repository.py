"""
Order Repository

Reads the order store for the in-memory strategy and the cache layer.
Every read goes through :class:`MetricsFilter` so the rows selected here
are the rows the pushdown queries aggregate.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Tuple

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.database.models import DimProduct, FactOrder
from src.metrics.exceptions import MetricsStoreUnavailable
from src.metrics.filters import MetricsFilter
from src.metrics.periods import PeriodWindow
from src.metrics.records import Catalog, Order, Product

logger = structlog.get_logger(__name__)


class OrderRepository:
    """Async reads against the orders, order_items and products tables"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _execute(self, stmt, operation: str):
        try:
            return await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Order store query failed", operation=operation, error=str(e))
            raise MetricsStoreUnavailable(f"Order store unavailable during {operation}") from e

    async def load_orders(
        self,
        window: PeriodWindow,
        metrics_filter: MetricsFilter,
        with_items: bool = True,
    ) -> List[Order]:
        """Materialize filtered orders in the window, oldest first."""
        stmt = (
            select(FactOrder)
            .where(*metrics_filter.clauses(window))
            .order_by(FactOrder.received_at, FactOrder.id)
        )
        if with_items:
            stmt = stmt.options(selectinload(FactOrder.order_items))

        result = await self._execute(stmt, "load_orders")
        orders = [Order.from_model(row) for row in result.scalars()]
        logger.debug(
            "Orders loaded",
            period=window.period,
            start=window.start.isoformat(),
            end=window.end.isoformat(),
            count=len(orders),
        )
        return orders

    async def fingerprint_source(
        self,
        window: PeriodWindow,
        metrics_filter: MetricsFilter,
    ) -> Tuple[List[str], Optional[datetime]]:
        """Ids and latest mutation time of the filtered set, without loading rows."""
        stmt = select(FactOrder.order_id, FactOrder.updated_at).where(*metrics_filter.clauses(window))
        result = await self._execute(stmt, "fingerprint_source")

        ids: List[str] = []
        latest: Optional[datetime] = None
        for order_id, updated_at in result.all():
            ids.append(str(order_id))
            if updated_at is not None and (latest is None or updated_at > latest):
                latest = updated_at
        return ids, latest

    async def catalog_for(self, skus: Iterable[str]) -> Catalog:
        """One batched lookup for every SKU given."""
        wanted = sorted({sku for sku in skus if sku})
        if not wanted:
            return {}
        stmt = select(DimProduct).where(DimProduct.sku.in_(wanted))
        result = await self._execute(stmt, "catalog_for")
        return {row.sku: Product.from_model(row) for row in result.scalars()}

    async def channels(self, excluded: Iterable[str] = ()) -> List[str]:
        """Distinct order sources, for the channel selector."""
        stmt = select(FactOrder.source).distinct().order_by(FactOrder.source)
        excluded = tuple(excluded)
        if excluded:
            stmt = stmt.where(FactOrder.source.notin_(excluded))
        result = await self._execute(stmt, "channels")
        return [source for source in result.scalars() if source]
