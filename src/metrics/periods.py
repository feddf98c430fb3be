"""
Reporting Periods

Maps the dashboard's period selector onto concrete inclusive date windows.

- ``"1"`` (or ``"0"``) is today
- ``"yesterday"`` is the previous calendar day
- a positive number N is the last N calendar days ending today
- ``"custom"`` uses the caller's from/to dates
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import List, Optional, Union

from src.metrics.exceptions import InvalidPeriodError


class Period(str, Enum):
    """Named periods offered by the dashboard"""
    TODAY = "1"
    YESTERDAY = "yesterday"
    SEVEN_DAYS = "7"
    THIRTY_DAYS = "30"
    NINETY_DAYS = "90"
    ONE_EIGHTY_DAYS = "180"
    THREE_SIXTY_FIVE_DAYS = "365"
    SEVEN_THIRTY_DAYS = "730"
    CUSTOM = "custom"

    @property
    def label(self) -> str:
        if self is Period.TODAY:
            return "Today"
        if self is Period.YESTERDAY:
            return "Yesterday"
        if self is Period.CUSTOM:
            return "Custom Range..."
        return f"Last {self.value} days"

    @property
    def is_cacheable(self) -> bool:
        return self is not Period.CUSTOM

    @classmethod
    def cacheable(cls) -> List["Period"]:
        return [period for period in cls if period.is_cacheable]


DateLike = Union[date, datetime, str, None]


def _parse_date(value: DateLike, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise InvalidPeriodError(f"Custom period requires '{field}'")
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as e:
        raise InvalidPeriodError(f"Invalid {field} date: {value!r}") from e


@dataclass(frozen=True)
class PeriodWindow:
    """
    A resolved reporting window.

    ``start`` and ``end`` are inclusive calendar dates. Timestamp filters use
    ``start_at <= received_at < end_before``.
    """
    period: str
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    @property
    def single_day(self) -> bool:
        return self.days == 1

    @property
    def is_custom(self) -> bool:
        return self.period == Period.CUSTOM.value

    @property
    def is_cacheable(self) -> bool:
        return not self.is_custom

    @property
    def start_at(self) -> datetime:
        return datetime.combine(self.start, datetime.min.time())

    @property
    def end_before(self) -> datetime:
        return datetime.combine(self.end + timedelta(days=1), datetime.min.time())

    @property
    def label(self) -> str:
        try:
            return Period(self.period).label
        except ValueError:
            return f"Last {self.days} days"

    def contains(self, moment: Optional[datetime]) -> bool:
        if moment is None:
            return False
        return self.start_at <= moment < self.end_before

    def previous(self) -> "PeriodWindow":
        """The window of equal length immediately before this one."""
        end = self.start - timedelta(days=1)
        start = end - timedelta(days=self.days - 1)
        return PeriodWindow(period=self.period, start=start, end=end)

    def cache_key(self, channel: str = "all", status: str = "all") -> str:
        return f"{self.period}:{channel}:{status}:{self.start.isoformat()}:{self.end.isoformat()}"


def resolve_period(
    period: Union[str, int, Period, None] = "7",
    custom_from: DateLike = None,
    custom_to: DateLike = None,
    today: Optional[date] = None,
) -> PeriodWindow:
    """
    Resolve a period selector into a :class:`PeriodWindow`.

    Custom ranges given back to front are swapped rather than rejected.

    Raises:
        InvalidPeriodError: unknown selector, non-positive day count, or a
            custom range with missing/unparseable dates
    """
    today = today or date.today()
    value = period.value if isinstance(period, Period) else str(period if period is not None else "7").strip()

    if value == Period.CUSTOM.value:
        start = _parse_date(custom_from, "custom_from")
        end = _parse_date(custom_to, "custom_to")
        if start > end:
            start, end = end, start
        return PeriodWindow(period=value, start=start, end=end)

    if value in ("0", Period.TODAY.value):
        return PeriodWindow(period=Period.TODAY.value, start=today, end=today)

    if value == Period.YESTERDAY.value:
        yesterday = today - timedelta(days=1)
        return PeriodWindow(period=value, start=yesterday, end=yesterday)

    try:
        days = int(value)
    except ValueError as e:
        raise InvalidPeriodError(f"Unknown period: {value!r}") from e
    if days < 1:
        raise InvalidPeriodError(f"Period must cover at least one day, got {days}")

    return PeriodWindow(period=value, start=today - timedelta(days=days - 1), end=today)
