"""
Metrics Service

Entry point the API and the cache warmer use. Resolves the period, picks
the aggregation strategy by window length, and wraps the computation in
the fingerprint cache:

    window.days >= chunked_threshold_days  ->  ChunkedMetricsCalculator
    otherwise                              ->  SalesMetrics over loaded orders

Custom ranges are computed on every request and never cached.
"""

from datetime import date
from typing import Any, Dict, Iterable, List, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import MetricsSettings, get_settings
from src.metrics.charts import build_chart
from src.metrics.chunked import ChunkedMetricsCalculator
from src.metrics.filters import ALL_CHANNELS, MetricsFilter
from src.metrics.periods import Period, PeriodWindow, resolve_period
from src.metrics.products import ProductMetrics
from src.metrics.repository import OrderRepository
from src.metrics.sales import SalesMetrics
from src.serving.cache import CACHE_ERRORS, CacheManager

logger = structlog.get_logger(__name__)


def default_cache(settings: MetricsSettings) -> CacheManager:
    return CacheManager(
        settings.cache_namespace,
        default_ttl=settings.cache_ttl_seconds,
        status_ttl=settings.status_ttl_seconds,
    )


class MetricsService:
    """
    Request-scoped metrics facade.

    Example:
        service = MetricsService(session)
        payload = await service.dashboard(period="30", channel="EBAY")
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: Optional[CacheManager] = None,
        settings: Optional[MetricsSettings] = None,
    ):
        self.session = session
        self.settings = settings or get_settings().metrics
        self.cache = cache or default_cache(self.settings)
        self.repository = OrderRepository(session)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def build_filter(self, channel: Optional[str] = None, status: Optional[str] = None) -> MetricsFilter:
        return MetricsFilter.build(channel, status, self.settings.excluded_channels)

    def choose_strategy(self, window: PeriodWindow) -> str:
        if window.days >= self.settings.chunked_threshold_days:
            return ChunkedMetricsCalculator.strategy
        return SalesMetrics.strategy

    async def _fingerprint(self, window: PeriodWindow, metrics_filter: MetricsFilter) -> str:
        # Growth compares against the previous window, so its rows count too
        span = PeriodWindow(period=window.period, start=window.previous().start, end=window.end)
        ids, latest = await self.repository.fingerprint_source(span, metrics_filter)
        return CacheManager.fingerprint(ids, latest)

    async def _through_cache(self, key: str, window: PeriodWindow, metrics_filter: MetricsFilter, compute):
        if not window.is_cacheable:
            return await compute()
        fingerprint = await self._fingerprint(window, metrics_filter)
        return await self.cache.cached(key, compute, fingerprint)

    # -------------------------------------------------------------------------
    # Computation
    # -------------------------------------------------------------------------

    async def compute(self, window: PeriodWindow, metrics_filter: MetricsFilter) -> Dict[str, Any]:
        """Compute the dashboard payload without consulting the cache."""
        if self.choose_strategy(window) == ChunkedMetricsCalculator.strategy:
            calculator = ChunkedMetricsCalculator(self.session, window, metrics_filter, self.settings)
            return await calculator.calculate()

        orders = await self.repository.load_orders(window, metrics_filter)
        previous = await self.repository.load_orders(window.previous(), metrics_filter)
        catalog = await self.repository.catalog_for(
            item.sku for order in orders for item in order.effective_items
        )
        metrics = SalesMetrics(orders, catalog)
        return metrics.summary(
            window,
            previous_revenue=SalesMetrics(previous).total_revenue(),
            channels_limit=self.settings.top_channels_limit,
            products_limit=self.settings.top_products_limit,
            recent_limit=self.settings.recent_orders_limit,
        )

    async def dashboard(
        self,
        period: str = "7",
        channel: Optional[str] = None,
        status: Optional[str] = None,
        custom_from: Optional[date] = None,
        custom_to: Optional[date] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        window = resolve_period(period, custom_from, custom_to, today=today)
        metrics_filter = self.build_filter(channel, status)
        key = window.cache_key(metrics_filter.channel, metrics_filter.status.value)

        logger.info(
            "Dashboard metrics requested",
            period=window.period,
            days=window.days,
            channel=metrics_filter.channel,
            status=metrics_filter.status.value,
            strategy=self.choose_strategy(window),
        )
        return await self._through_cache(
            key, window, metrics_filter, lambda: self.compute(window, metrics_filter)
        )

    async def charts(
        self,
        kind: str,
        period: str = "7",
        channel: Optional[str] = None,
        status: Optional[str] = None,
        custom_from: Optional[date] = None,
        custom_to: Optional[date] = None,
        today: Optional[date] = None,
    ) -> Optional[Dict[str, Any]]:
        window = resolve_period(period, custom_from, custom_to, today=today)
        payload = await self.dashboard(period, channel, status, custom_from, custom_to, today)
        return build_chart(kind, payload, single_day=window.single_day, currency=self.settings.currency_symbol)

    async def product_performance(
        self,
        period: str = "30",
        channel: Optional[str] = None,
        status: Optional[str] = None,
        custom_from: Optional[date] = None,
        custom_to: Optional[date] = None,
        today: Optional[date] = None,
        limit: int = 10,
    ) -> Dict[str, Any]:
        window = resolve_period(period, custom_from, custom_to, today=today)
        metrics_filter = self.build_filter(channel, status)
        key = "products:" + window.cache_key(metrics_filter.channel, metrics_filter.status.value)

        async def compute() -> Dict[str, Any]:
            orders = await self.repository.load_orders(window, metrics_filter)
            catalog = await self.repository.catalog_for(
                item.sku for order in orders for item in order.effective_items
            )
            products = ProductMetrics(orders, catalog)
            return {
                "period": window.period,
                "start_date": window.start.isoformat(),
                "end_date": window.end.isoformat(),
                "summary": products.summary(),
                "top_by_revenue": products.top_products_by_revenue(limit),
                "top_by_quantity": products.top_products_by_quantity(limit),
                "categories": products.products_by_category(),
                "stock_alerts": products.low_stock_sellers(self.settings.low_stock_limit),
            }

        return await self._through_cache(key, window, metrics_filter, compute)

    async def available_channels(self) -> List[str]:
        return await self.repository.channels(self.settings.excluded_channels)

    # -------------------------------------------------------------------------
    # Cache management
    # -------------------------------------------------------------------------

    async def warm(
        self,
        periods: Optional[Iterable[str]] = None,
        channels: Optional[Iterable[str]] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Pre-compute every cacheable period for each channel, then mark the cache warm."""
        wanted = list(periods) if periods is not None else list(self.settings.warm_periods)
        cacheable = [p for p in wanted if p != Period.CUSTOM.value]
        channel_list = list(channels) if channels is not None else [ALL_CHANNELS]

        warmed = 0
        for period in cacheable:
            for channel in channel_list:
                await self.dashboard(period=period, channel=channel, today=today)
                warmed += 1

        try:
            await self.cache.mark_warm()
        except CACHE_ERRORS as e:
            logger.warning("Could not record warm status", error=str(e))

        logger.info("Metrics cache warmed", periods=cacheable, channels=channel_list, entries=warmed)
        return {"periods": cacheable, "channels": channel_list, "entries": warmed}

    async def invalidate(self) -> int:
        try:
            return await self.cache.invalidate_all()
        except CACHE_ERRORS as e:
            logger.warning("Cache invalidation skipped", error=str(e))
            return 0

    async def cache_status(self) -> Dict[str, Any]:
        return {
            "namespace": self.cache.namespace,
            "warm": await self.cache.is_warm(),
            "last_warmed": await self.cache.last_warmed(),
        }
