"""
Dashboard API Endpoints

REST API for sales metrics, charts, product performance and cache
management.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from src.config import get_settings
from src.database.connection import get_db_dependency
from src.metrics.charts import CHART_BUILDERS
from src.metrics.service import MetricsService, default_cache
from src.serving.cache import CacheManager

router = APIRouter()
logger = structlog.get_logger(__name__)


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class ChannelBreakdown(BaseModel):
    """Revenue for one channel/subsource pair"""
    name: str
    channel: Optional[str]
    subsource: Optional[str]
    orders: int
    revenue: float
    avg_order_value: float
    percentage: float


class ProductSales(BaseModel):
    """Top product row"""
    sku: str
    title: str
    quantity: int
    revenue: float
    orders: int
    avg_price: float


class DailyBucketData(BaseModel):
    """One day of the gap-filled series"""
    date: str
    iso_date: date
    day: str
    revenue: float
    orders: int
    items: int
    open_orders: int
    processed_orders: int
    open_revenue: float
    processed_revenue: float
    avg_order_value: float


class RecentOrder(BaseModel):
    """Recent order row"""
    id: Optional[int]
    order_id: Optional[str]
    number: Optional[int]
    received_at: Optional[str]
    channel: Optional[str]
    subsource: Optional[str]
    total_charge: float
    revenue: float
    is_paid: bool
    is_open: bool
    is_processed: bool


class StatusBreakdown(BaseModel):
    """Order counts and revenue by processing status"""
    processed: int
    open: int
    processed_revenue: float
    open_revenue: float


class DashboardMetrics(BaseModel):
    """Dashboard metrics response"""
    period: str
    start_date: date
    end_date: date
    revenue: float
    orders: int
    items: int
    avg_order_value: float
    processed_orders: int
    open_orders: int
    orders_per_day: float
    growth_rate: float
    top_channels: List[ChannelBreakdown]
    channels_grouped: List[ChannelBreakdown]
    top_products: List[ProductSales]
    status_breakdown: StatusBreakdown
    daily_series: List[DailyBucketData]
    recent_orders: List[RecentOrder]
    best_day: Optional[DailyBucketData]
    strategy: str
    computed_at: str


class CacheStatus(BaseModel):
    """Cache warm status"""
    namespace: str
    warm: bool
    last_warmed: Optional[str]


class WarmRequest(BaseModel):
    """Cache warm request; defaults come from METRICS_WARM_PERIODS"""
    periods: Optional[List[str]] = None
    channels: Optional[List[str]] = None


class WarmResult(BaseModel):
    periods: List[str]
    channels: List[str]
    entries: int


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_cache_manager() -> CacheManager:
    return default_cache(get_settings().metrics)


def get_metrics_service(
    db: AsyncSession = Depends(get_db_dependency),
    cache: CacheManager = Depends(get_cache_manager),
) -> MetricsService:
    return MetricsService(db, cache=cache)


class MetricsQuery:
    """Period and filter query parameters shared by the metric endpoints"""

    def __init__(
        self,
        period: str = Query("7", description="1, yesterday, 7, 30, 90, 180, 365, 730 or custom"),
        channel: str = Query("all", description="Order source, or 'all'"),
        status: str = Query("all", description="all, open_paid, open or processed"),
        start_date: Optional[date] = Query(None, description="Start of a custom range"),
        end_date: Optional[date] = Query(None, description="End of a custom range"),
    ):
        self.period = period
        self.channel = channel
        self.status = status
        self.start_date = start_date
        self.end_date = end_date

    def as_kwargs(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "channel": self.channel,
            "status": self.status,
            "custom_from": self.start_date,
            "custom_to": self.end_date,
        }


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/metrics", response_model=DashboardMetrics)
async def get_dashboard_metrics(
    query: MetricsQuery = Depends(),
    service: MetricsService = Depends(get_metrics_service),
) -> Dict[str, Any]:
    """
    Headline metrics, breakdowns and the daily series for a period.

    Windows of `chunked_threshold_days` or more are aggregated in the
    database; shorter ones in memory. Both return the same shape.
    """
    return await service.dashboard(**query.as_kwargs())


@router.get("/charts/{chart}")
async def get_chart(
    chart: str,
    query: MetricsQuery = Depends(),
    service: MetricsService = Depends(get_metrics_service),
) -> Dict[str, Any]:
    """Chart-ready datasets for one of the dashboard charts."""
    if chart not in CHART_BUILDERS:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown chart '{chart}'. Available: {', '.join(sorted(CHART_BUILDERS))}",
        )
    return await service.charts(chart, **query.as_kwargs())


@router.get("/channels", response_model=List[str])
async def get_channels(service: MetricsService = Depends(get_metrics_service)) -> List[str]:
    """Channels available for filtering."""
    return await service.available_channels()


@router.get("/products")
async def get_product_performance(
    query: MetricsQuery = Depends(),
    limit: int = Query(10, ge=1, le=100),
    service: MetricsService = Depends(get_metrics_service),
) -> Dict[str, Any]:
    """Best sellers, category breakdown and stock alerts."""
    return await service.product_performance(limit=limit, **query.as_kwargs())


@router.get("/cache/status", response_model=CacheStatus)
async def get_cache_status(service: MetricsService = Depends(get_metrics_service)) -> Dict[str, Any]:
    return await service.cache_status()


@router.post("/cache/warm", response_model=WarmResult)
async def warm_cache(
    request: Optional[WarmRequest] = None,
    service: MetricsService = Depends(get_metrics_service),
) -> Dict[str, Any]:
    """Pre-compute the cacheable periods so dashboard loads hit the cache."""
    request = request or WarmRequest()
    result = await service.warm(periods=request.periods, channels=request.channels)
    logger.info("Cache warm requested via API", entries=result["entries"])
    return result


@router.delete("/cache")
async def clear_cache(service: MetricsService = Depends(get_metrics_service)) -> Dict[str, int]:
    """Drop every cached metrics entry and the warm marker."""
    deleted = await service.invalidate()
    return {"deleted": deleted}
