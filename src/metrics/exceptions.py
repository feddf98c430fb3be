"""
Metrics Exceptions
"""


class MetricsError(Exception):
    """Base class for metrics layer errors"""


class InvalidPeriodError(MetricsError, ValueError):
    """Raised when a period name or custom date range cannot be resolved"""


class InvalidFilterError(MetricsError, ValueError):
    """Raised for an unknown status filter value"""


class MetricsStoreUnavailable(MetricsError):
    """Raised when the order store cannot be queried. Never degraded around."""
