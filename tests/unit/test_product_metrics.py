"""
Unit Tests - Product Analytics
"""
import pytest

from src.metrics.products import ProductMetrics
from tests.factories import make_item, make_order, make_product


@pytest.fixture
def orders():
    return [
        make_order(items=[make_item(sku="A", quantity=2, unit_price="10.00"), make_item(sku="B", quantity=5, unit_price="2.00")]),
        make_order(items=[make_item(sku="A", quantity=1, unit_price="10.00")]),
        make_order(order_items=[make_item(sku="C", quantity=1, unit_price="100.00", title="Line C", category=None)]),
        make_order(items=[make_item(sku=None, quantity=3)]),
    ]


@pytest.fixture
def catalog():
    return {
        "A": make_product(sku="A", title="Alpha", category_name="Kitchen", stock_available=2, stock_minimum=5, cost_price="4.00"),
        "B": make_product(sku="B", title="Bravo", category_name="Kitchen", stock_available=100, stock_minimum=5, cost_price="0"),
    }


class TestProductMetrics:
    """Tests for ProductMetrics"""

    def test_top_by_revenue(self, orders, catalog):
        rows = ProductMetrics(orders, catalog).top_products_by_revenue()

        assert [row["sku"] for row in rows] == ["C", "A", "B"]
        assert rows[1]["title"] == "Alpha"
        assert rows[1]["revenue"] == 30.0
        assert rows[1]["order_count"] == 2
        assert rows[1]["profit_margin"] == pytest.approx(60.0)

    def test_top_by_quantity(self, orders, catalog):
        rows = ProductMetrics(orders, catalog).top_products_by_quantity(limit=2)
        assert [(row["sku"], row["quantity_sold"]) for row in rows] == [("B", 5), ("A", 3)]

    def test_unknown_catalog_entries_use_placeholders(self, orders, catalog):
        row = ProductMetrics(orders, catalog).top_products_by_revenue(limit=1)[0]
        assert row["sku"] == "C"
        assert row["title"] == "Line C"
        assert row["category"] == "Unknown Category"
        assert row["stock_level"] == 0
        assert row["profit_margin"] == 0.0

    def test_categories(self, orders, catalog):
        categories = ProductMetrics(orders, catalog).products_by_category()
        assert categories[0] == {"category": "Unknown Category", "product_count": 1, "quantity_sold": 1, "revenue": 100.0}
        assert categories[1] == {"category": "Kitchen", "product_count": 2, "quantity_sold": 8, "revenue": 40.0}

    def test_low_stock_sellers(self, orders, catalog):
        alerts = ProductMetrics(orders, catalog).low_stock_sellers()
        assert len(alerts) == 1
        assert alerts[0]["sku"] == "A"
        assert alerts[0]["urgency_score"] == 1.5

    def test_summary(self, orders, catalog):
        summary = ProductMetrics(orders, catalog).summary()
        assert summary["unique_products"] == 3
        assert summary["total_units_sold"] == 9
        assert summary["total_revenue"] == 140.0
        assert summary["top_product_by_revenue"]["sku"] == "C"
        assert summary["top_product_by_quantity"]["sku"] == "B"

    def test_empty(self):
        metrics = ProductMetrics([])
        assert metrics.top_products_by_revenue() == []
        assert metrics.low_stock_sellers() == []
        assert metrics.summary()["top_product_by_revenue"] is None
        assert metrics.summary()["avg_units_per_product"] == 0.0
