"""
Sales Metrics Module

Revenue resolution, period windows, filters and the two aggregation
strategies behind the dashboard.
"""

from src.metrics.exceptions import (
    InvalidFilterError,
    InvalidPeriodError,
    MetricsError,
    MetricsStoreUnavailable,
)
from src.metrics.filters import MetricsFilter, StatusFilter
from src.metrics.periods import Period, PeriodWindow, resolve_period
from src.metrics.records import Order, OrderItem, Product
from src.metrics.revenue import RevenueResolver, resolve_order_revenue
from src.metrics.sales import SalesMetrics

__all__ = [
    "InvalidFilterError",
    "InvalidPeriodError",
    "MetricsError",
    "MetricsStoreUnavailable",
    "MetricsFilter",
    "StatusFilter",
    "Period",
    "PeriodWindow",
    "resolve_period",
    "Order",
    "OrderItem",
    "Product",
    "RevenueResolver",
    "resolve_order_revenue",
    "SalesMetrics",
]
