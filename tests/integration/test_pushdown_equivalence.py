"""
Integration Tests - In-Memory vs Pushdown Equivalence

Both strategies run against the same seeded SQLite store and must agree to
within 0.01 on every figure they report.
"""
from datetime import date, datetime

import pytest

from src.data.generators import DataGenerator
from src.ingestion.seed_db import load_orders, load_products
from src.metrics.chunked import ChunkedMetricsCalculator
from src.metrics.filters import MetricsFilter
from src.metrics.periods import resolve_period
from src.metrics.repository import OrderRepository
from src.metrics.sales import SalesMetrics
from tests.factories import make_order

pytestmark = pytest.mark.integration

TODAY = date(2026, 10, 18)


@pytest.fixture
async def seeded_db(test_db):
    data = DataGenerator(seed=7).generate_all(
        n_products=25,
        n_orders=2000,
        days=500,
        end_date=datetime(2026, 10, 18, 23, 0),
    )
    await load_products(test_db, data["products"])
    await load_orders(test_db, data["orders"])
    await test_db.commit()
    test_db.expunge_all()
    return test_db


async def in_memory_payload(session, window, metrics_filter):
    repository = OrderRepository(session)
    orders = await repository.load_orders(window, metrics_filter)
    previous = await repository.load_orders(window.previous(), metrics_filter)
    catalog = await repository.catalog_for(item.sku for order in orders for item in order.effective_items)
    metrics = SalesMetrics(orders, catalog)
    return metrics, metrics.summary(window, previous_revenue=SalesMetrics(previous).total_revenue())


class TestEquivalence:
    """The two strategies report the same numbers"""

    @pytest.mark.parametrize("period", ["7", "90", "365"])
    @pytest.mark.parametrize("status", ["all", "open", "processed"])
    async def test_totals_channels_and_series_match(self, seeded_db, period, status):
        window = resolve_period(period, today=TODAY)
        metrics_filter = MetricsFilter.build(status=status)

        metrics, memory = await in_memory_payload(seeded_db, window, metrics_filter)
        pushdown = await ChunkedMetricsCalculator(seeded_db, window, metrics_filter).calculate()

        assert pushdown["strategy"] == "pushdown"
        assert memory["orders"] == pushdown["orders"]
        assert memory["orders"] > 0
        assert memory["revenue"] == pytest.approx(pushdown["revenue"], abs=0.01)
        assert memory["avg_order_value"] == pytest.approx(pushdown["avg_order_value"], abs=0.02)
        assert memory["items"] == pushdown["items"]
        assert memory["processed_orders"] == pushdown["processed_orders"]
        assert memory["open_orders"] == pushdown["open_orders"]
        assert memory["growth_rate"] == pytest.approx(pushdown["growth_rate"], abs=0.02)

        assert [c["name"] for c in memory["top_channels"]] == [c["name"] for c in pushdown["top_channels"]]
        for mine, theirs in zip(memory["top_channels"], pushdown["top_channels"]):
            assert mine["orders"] == theirs["orders"]
            assert mine["revenue"] == pytest.approx(theirs["revenue"], abs=0.01)
            assert mine["percentage"] == pytest.approx(theirs["percentage"], abs=0.02)

        assert [c["name"] for c in memory["channels_grouped"]] == [c["name"] for c in pushdown["channels_grouped"]]
        for mine, theirs in zip(memory["channels_grouped"], pushdown["channels_grouped"]):
            assert mine["orders"] == theirs["orders"]
            assert mine["revenue"] == pytest.approx(theirs["revenue"], abs=0.01)

        assert memory["orders_per_day"] == pushdown["orders_per_day"]
        assert memory["status_breakdown"]["processed"] == pushdown["status_breakdown"]["processed"]
        assert memory["status_breakdown"]["open"] == pushdown["status_breakdown"]["open"]
        assert memory["status_breakdown"]["open_revenue"] == pytest.approx(
            pushdown["status_breakdown"]["open_revenue"], abs=0.01
        )
        assert memory["best_day"]["iso_date"] == pushdown["best_day"]["iso_date"]

        assert len(memory["daily_series"]) == len(pushdown["daily_series"]) == window.days
        for mine, theirs in zip(memory["daily_series"], pushdown["daily_series"]):
            assert mine["iso_date"] == theirs["iso_date"]
            assert mine["orders"] == theirs["orders"]
            assert mine["items"] == theirs["items"]
            assert mine["revenue"] == pytest.approx(theirs["revenue"], abs=0.01)
            assert mine["open_revenue"] == pytest.approx(theirs["open_revenue"], abs=0.01)
            assert mine["processed_revenue"] == pytest.approx(theirs["processed_revenue"], abs=0.01)

        # Equal-revenue SKUs may be ordered differently at the cut-off, so
        # compare the ranked revenues and each reported SKU's own figures
        assert [p["revenue"] for p in memory["top_products"]] == pytest.approx(
            [p["revenue"] for p in pushdown["top_products"]], abs=0.01
        )
        per_sku = {p["sku"]: p for p in metrics.top_products(limit=1000)}
        for product in pushdown["top_products"]:
            assert per_sku[product["sku"]]["quantity"] == product["quantity"]
            assert per_sku[product["sku"]]["title"] == product["title"]

    async def test_channel_filter_matches(self, seeded_db):
        window = resolve_period("90", today=TODAY)
        metrics_filter = MetricsFilter.build(channel="EBAY")

        _, memory = await in_memory_payload(seeded_db, window, metrics_filter)
        pushdown = await ChunkedMetricsCalculator(seeded_db, window, metrics_filter).calculate()

        assert memory["orders"] == pushdown["orders"] > 0
        assert memory["revenue"] == pytest.approx(pushdown["revenue"], abs=0.01)
        assert {c["channel"] for c in pushdown["top_channels"]} == {"EBAY"}

    async def test_excluded_channel_absent_from_both(self, seeded_db):
        window = resolve_period("365", today=TODAY)
        metrics_filter = MetricsFilter.build()

        _, memory = await in_memory_payload(seeded_db, window, metrics_filter)
        pushdown = await ChunkedMetricsCalculator(seeded_db, window, metrics_filter).calculate()

        assert "DIRECT" not in {c["channel"] for c in memory["top_channels"]}
        assert "DIRECT" not in {c["channel"] for c in pushdown["top_channels"]}

    async def test_single_day_padding_matches(self, seeded_db):
        window = resolve_period("1", today=TODAY)
        metrics_filter = MetricsFilter.build()

        _, memory = await in_memory_payload(seeded_db, window, metrics_filter)
        pushdown = await ChunkedMetricsCalculator(seeded_db, window, metrics_filter).calculate()

        assert len(pushdown["daily_series"]) == len(memory["daily_series"]) == 3
        assert pushdown["daily_series"][0]["orders"] == pushdown["daily_series"][2]["orders"] == 0
        assert [d["revenue"] for d in memory["daily_series"]] == pytest.approx(
            [d["revenue"] for d in pushdown["daily_series"]], abs=0.01
        )

    async def test_recent_orders_match(self, seeded_db):
        window = resolve_period("30", today=TODAY)
        metrics_filter = MetricsFilter.build()

        _, memory = await in_memory_payload(seeded_db, window, metrics_filter)
        pushdown = await ChunkedMetricsCalculator(seeded_db, window, metrics_filter).calculate()

        assert [o["order_id"] for o in memory["recent_orders"]] == [o["order_id"] for o in pushdown["recent_orders"]]
        for mine, theirs in zip(memory["recent_orders"], pushdown["recent_orders"]):
            assert mine["revenue"] == pytest.approx(theirs["revenue"], abs=0.01)


class TestChannelRanking:
    """Channel grouping and tie order agree on hand-built rows"""

    @staticmethod
    async def both(session, period="7", limit=6):
        await session.commit()
        session.expunge_all()
        window = resolve_period(period, today=TODAY)
        metrics_filter = MetricsFilter.build()
        orders = await OrderRepository(session).load_orders(window, metrics_filter)
        calculator = ChunkedMetricsCalculator(session, window, metrics_filter)
        total = (await calculator.aggregates())["revenue"]
        return (
            SalesMetrics(orders).top_channels(limit),
            await calculator.top_channels(total, limit),
            SalesMetrics(orders).top_channels_grouped(limit),
            await calculator.top_channels_grouped(total, limit),
        )

    async def test_empty_and_missing_subsource_share_a_row(self, test_db):
        await load_orders(test_db, [
            make_order(received_at=datetime(2026, 10, 15, 9, 0), channel="EBAY", subsource="", total_charge="30.00"),
            make_order(received_at=datetime(2026, 10, 16, 9, 0), channel="EBAY", subsource=None, total_charge="20.00"),
            make_order(received_at=datetime(2026, 10, 17, 9, 0), channel="EBAY", subsource="eBay UK", total_charge="5.00"),
        ])
        memory, pushdown, _, _ = await self.both(test_db)

        expected = [("EBAY", None, 2, 50.0), ("eBay UK (EBAY)", "eBay UK", 1, 5.0)]
        assert [(c["name"], c["subsource"], c["orders"], c["revenue"]) for c in memory] == expected
        assert [(c["name"], c["subsource"], c["orders"], c["revenue"]) for c in pushdown] == expected

    async def test_revenue_ties_keep_first_seen_order(self, test_db):
        await load_orders(test_db, [
            make_order(received_at=datetime(2026, 10, 15, 9, 0), channel="ZALANDO", total_charge="50.00"),
            make_order(received_at=datetime(2026, 10, 16, 9, 0), channel="AMAZON", total_charge="50.00"),
            make_order(received_at=datetime(2026, 10, 17, 9, 0), channel="ETSY", total_charge="80.00"),
        ])
        memory, pushdown, memory_grouped, pushdown_grouped = await self.both(test_db)

        assert [c["name"] for c in memory] == ["ETSY", "ZALANDO", "AMAZON"]
        assert [c["name"] for c in pushdown] == ["ETSY", "ZALANDO", "AMAZON"]
        assert [c["name"] for c in memory_grouped] == [c["name"] for c in pushdown_grouped]

    async def test_limit_cuts_ties_the_same_way(self, test_db):
        await load_orders(test_db, [
            make_order(received_at=datetime(2026, 10, 16, 9, 0), channel="AMAZON", total_charge="50.00"),
            make_order(received_at=datetime(2026, 10, 15, 9, 0), channel="ZALANDO", total_charge="50.00"),
        ])
        memory, pushdown, _, _ = await self.both(test_db, limit=1)

        assert [c["name"] for c in memory] == [c["name"] for c in pushdown] == ["ZALANDO"]
