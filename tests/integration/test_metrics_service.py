"""
Integration Tests - Metrics Service and Order Repository
"""
from datetime import date, datetime

import pytest

from src.database.models import Base
from src.ingestion.seed_db import load_orders, load_products
from src.metrics.exceptions import InvalidPeriodError, MetricsStoreUnavailable
from src.metrics.filters import MetricsFilter
from src.metrics.periods import resolve_period
from src.metrics.repository import OrderRepository
from src.metrics.service import MetricsService
from tests.factories import make_item, make_order, make_product

pytestmark = pytest.mark.integration

TODAY = date(2026, 10, 18)


def at(month: int, day: int, hour: int = 12) -> datetime:
    return datetime(2026, month, day, hour, 0)


@pytest.fixture
async def store(test_db):
    orders = [
        make_order(received_at=at(10, 18, 9), total_charge="25.00", channel="EBAY", subsource="eBay UK",
                   items=[make_item(sku="MUG-1", unit_price="12.50", quantity=2)]),
        make_order(received_at=at(10, 16), total_charge="0", channel="AMAZON",
                   items=[make_item(sku="TEA-1", unit_price="4.00", quantity=3, title="Tea")], is_processed=True),
        make_order(received_at=at(10, 2), total_charge="40.00", channel="EBAY", is_processed=True),
        make_order(received_at=at(9, 25), total_charge="10.00", channel="ETSY", is_paid=False),
        make_order(received_at=at(10, 17), total_charge="500.00", channel="DIRECT"),
        make_order(received_at=at(9, 1), total_charge="60.00", channel="EBAY", is_processed=True),
    ]
    await load_products(test_db, [make_product(sku="MUG-1", title="Big Mug", stock_available=1, stock_minimum=3)])
    await load_orders(test_db, orders)
    await test_db.commit()
    test_db.expunge_all()
    return test_db


@pytest.fixture
def service(store, cache, metrics_settings):
    return MetricsService(store, cache=cache, settings=metrics_settings)


class TestOrderRepository:
    """Tests for filtered store reads"""

    async def test_load_orders_applies_window_and_exclusions(self, store):
        window = resolve_period("7", today=TODAY)
        orders = await OrderRepository(store).load_orders(window, MetricsFilter.build())

        assert [order.channel for order in orders] == ["AMAZON", "EBAY"]
        assert orders[0].order_items is not None
        assert orders[1].items[0].sku == "MUG-1"

    async def test_load_without_items_marks_relation_unloaded(self, store):
        window = resolve_period("7", today=TODAY)
        orders = await OrderRepository(store).load_orders(window, MetricsFilter.build(), with_items=False)
        assert all(order.order_items is None for order in orders)

    async def test_fingerprint_source(self, store):
        window = resolve_period("30", today=TODAY)
        ids, latest = await OrderRepository(store).fingerprint_source(window, MetricsFilter.build())
        assert len(ids) == 4
        assert latest is not None

    async def test_channels(self, store):
        repository = OrderRepository(store)
        assert await repository.channels(["DIRECT"]) == ["AMAZON", "EBAY", "ETSY"]

    async def test_catalog_for(self, store):
        catalog = await OrderRepository(store).catalog_for(["MUG-1", "NOPE", None, "MUG-1"])
        assert list(catalog) == ["MUG-1"]
        assert await OrderRepository(store).catalog_for([]) == {}


class TestDashboard:
    """Tests for MetricsService.dashboard"""

    async def test_in_memory_for_short_windows(self, service):
        payload = await service.dashboard("30", today=TODAY)

        assert payload["strategy"] == "in_memory"
        assert payload["orders"] == 4
        assert payload["revenue"] == 87.0
        assert payload["top_products"][0]["title"] == "Big Mug"
        assert payload["growth_rate"] == 45.0

    async def test_pushdown_from_threshold(self, service):
        payload = await service.dashboard("365", today=TODAY)

        assert payload["strategy"] == "pushdown"
        assert payload["orders"] == 5
        assert payload["revenue"] == 147.0
        assert len(payload["daily_series"]) == 365

    async def test_status_and_channel_filters(self, service):
        assert (await service.dashboard("30", status="processed", today=TODAY))["orders"] == 2
        assert (await service.dashboard("30", status="open_paid", today=TODAY))["orders"] == 3
        assert (await service.dashboard("30", channel="EBAY", today=TODAY))["orders"] == 2

    async def test_cached_until_data_changes(self, service, store, fake_redis):
        first = await service.dashboard("7", today=TODAY)
        again = await service.dashboard("7", today=TODAY)
        assert again == first
        assert len(fake_redis.sets["test-metrics:__keys__"]) == 1

        await load_orders(store, [make_order(received_at=at(10, 18, 15), total_charge="5.00")])
        await store.commit()

        changed = await service.dashboard("7", today=TODAY)
        assert changed["orders"] == first["orders"] + 1
        assert len(fake_redis.sets["test-metrics:__keys__"]) == 1
        assert len(fake_redis.values) == 1

    async def test_custom_ranges_not_cached(self, service, fake_redis):
        payload = await service.dashboard("custom", custom_from="2026-10-01", custom_to="2026-10-18", today=TODAY)
        assert payload["orders"] == 3
        assert fake_redis.values == {}

    async def test_degrades_without_cache(self, store, broken_cache, metrics_settings):
        service = MetricsService(store, cache=broken_cache, settings=metrics_settings)
        assert (await service.dashboard("7", today=TODAY))["orders"] == 2
        assert await service.invalidate() == 0

    async def test_invalid_period(self, service):
        with pytest.raises(InvalidPeriodError):
            await service.dashboard("custom", today=TODAY)

    async def test_store_failure_is_fatal(self, service, test_engine):
        async with test_engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        with pytest.raises(MetricsStoreUnavailable):
            await service.dashboard("7", today=TODAY)


class TestChartsAndProducts:
    """Tests for chart and product endpoints of the service"""

    async def test_today_chart_is_padded(self, service):
        chart = await service.charts("revenue", "1", today=TODAY)
        assert len(chart["labels"]) == 3
        assert chart["datasets"][0]["data"][1] == 25.0
        assert "options" in chart

    async def test_unknown_chart(self, service):
        assert await service.charts("sparkline", "7", today=TODAY) is None

    async def test_product_performance(self, service):
        products = await service.product_performance("30", today=TODAY)
        assert products["summary"]["unique_products"] == 2
        assert products["stock_alerts"][0]["sku"] == "MUG-1"
        assert products["top_by_revenue"][0]["title"] == "Big Mug"

    async def test_available_channels(self, service):
        assert await service.available_channels() == ["AMAZON", "EBAY", "ETSY"]


class TestCacheManagement:
    """Tests for warming, status and invalidation"""

    async def test_warm_then_invalidate(self, service, fake_redis):
        assert (await service.cache_status())["warm"] is False

        result = await service.warm(periods=["1", "7", "custom"], channels=["all", "EBAY"], today=TODAY)
        assert result == {"periods": ["1", "7"], "channels": ["all", "EBAY"], "entries": 4}

        status = await service.cache_status()
        assert status["warm"] is True
        assert status["last_warmed"] is not None

        assert await service.invalidate() == 6
        assert (await service.cache_status())["warm"] is False
