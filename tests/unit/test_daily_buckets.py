"""
Unit Tests - Daily Bucket Builder
"""
from datetime import date, datetime, timedelta
from decimal import Decimal

from src.metrics.buckets import (
    BucketRow,
    DailyBucket,
    as_date,
    best_day,
    build_daily_series,
    build_padded_day,
    format_day_label,
)


def row(day, orders=1, revenue="10.00", items=1, is_open=False):
    value = Decimal(revenue)
    return BucketRow(
        day=day,
        orders=orders,
        revenue=value,
        items=items,
        open_orders=orders if is_open else 0,
        processed_orders=0 if is_open else orders,
        open_revenue=value if is_open else Decimal("0"),
        processed_revenue=Decimal("0") if is_open else value,
    )


class TestBuildDailySeries:
    """Tests for the gap-filled series"""

    def test_one_bucket_per_day_inclusive(self):
        series = build_daily_series([], date(2026, 10, 1), date(2026, 10, 7))
        assert len(series) == 7
        assert [bucket.day for bucket in series] == [date(2026, 10, 1) + timedelta(days=i) for i in range(7)]
        assert all(bucket.is_empty for bucket in series)

    def test_gap_days_are_zero(self):
        series = build_daily_series(
            [row(date(2026, 10, 1)), row(date(2026, 10, 3), revenue="30.00")],
            date(2026, 10, 1),
            date(2026, 10, 3),
        )
        assert [bucket.revenue for bucket in series] == [Decimal("10.00"), Decimal("0"), Decimal("30.00")]
        assert series[1].orders == 0
        assert series[1].avg_order_value == Decimal("0")

    def test_rows_sharing_a_day_are_merged(self):
        day = datetime(2026, 10, 2, 9, 30)
        series = build_daily_series(
            [row(day, revenue="10.00"), row(day, revenue="20.00", is_open=True), row("2026-10-02", revenue="6.00")],
            date(2026, 10, 2),
            date(2026, 10, 2),
        )
        bucket = series[0]
        assert bucket.orders == 3
        assert bucket.revenue == Decimal("36.00")
        assert bucket.open_orders == 1
        assert bucket.processed_orders == 2
        assert bucket.open_revenue == Decimal("20.00")
        assert bucket.avg_order_value == Decimal("12.00")

    def test_rows_outside_range_ignored(self):
        series = build_daily_series(
            [row(date(2026, 9, 30)), row(date(2026, 10, 8)), row(None), row("not-a-date")],
            date(2026, 10, 1),
            date(2026, 10, 7),
        )
        assert sum(bucket.orders for bucket in series) == 0

    def test_inverted_range_is_empty(self):
        assert build_daily_series([row(date(2026, 10, 1))], date(2026, 10, 5), date(2026, 10, 1)) == []

    def test_bucket_serialization(self):
        bucket = build_daily_series([row(date(2026, 10, 18), revenue="12.346")], date(2026, 10, 18), date(2026, 10, 18))[0]
        data = bucket.to_dict()
        assert data["date"] == "Oct 18, 2026"
        assert data["iso_date"] == "2026-10-18"
        assert data["day"] == "Sun"
        assert data["revenue"] == 12.35
        assert set(data) == {
            "date", "iso_date", "day", "revenue", "orders", "items", "open_orders",
            "processed_orders", "open_revenue", "processed_revenue", "avg_order_value",
        }


class TestPaddedDay:
    """Tests for the single-day special case"""

    def test_three_buckets_around_the_day(self):
        series = build_padded_day([row(date(2026, 10, 18), revenue="50.00")], date(2026, 10, 18))
        assert [bucket.day for bucket in series] == [date(2026, 10, 17), date(2026, 10, 18), date(2026, 10, 19)]
        assert [bucket.revenue for bucket in series] == [Decimal("0"), Decimal("50.00"), Decimal("0")]

    def test_neighbours_stay_zero(self):
        series = build_padded_day(
            [row(date(2026, 10, 17)), row(date(2026, 10, 18)), row(date(2026, 10, 19))],
            date(2026, 10, 18),
        )
        assert [bucket.orders for bucket in series] == [0, 1, 0]


class TestBestDay:
    """Tests for best_day"""

    def test_highest_revenue(self):
        series = build_daily_series(
            [row(date(2026, 10, 1), revenue="5.00"), row(date(2026, 10, 2), revenue="15.00")],
            date(2026, 10, 1),
            date(2026, 10, 3),
        )
        assert best_day(series).day == date(2026, 10, 2)

    def test_earliest_wins_ties(self):
        series = build_daily_series(
            [row(date(2026, 10, 1), revenue="9.00"), row(date(2026, 10, 3), revenue="9.00")],
            date(2026, 10, 1),
            date(2026, 10, 3),
        )
        assert best_day(series).day == date(2026, 10, 1)

    def test_none_when_nothing_sold(self):
        assert best_day([]) is None
        assert best_day([DailyBucket(day=date(2026, 10, 1))]) is None


class TestHelpers:
    def test_format_day_label_has_no_padding(self):
        assert format_day_label(date(2026, 3, 5)) == "Mar 5, 2026"

    def test_as_date(self):
        assert as_date("2026-10-18 00:00:00") == date(2026, 10, 18)
        assert as_date(datetime(2026, 10, 18, 23, 0)) == date(2026, 10, 18)
        assert as_date("garbage") is None
