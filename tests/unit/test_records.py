"""
Unit Tests - Order Records and API Adapters
"""
from datetime import datetime
from decimal import Decimal

import pytest

from src.metrics.records import Order, OrderItem, parse_datetime, to_decimal, to_int
from src.metrics.revenue import resolve_order_revenue


class TestCoercion:
    """Tests for field coercion helpers"""

    @pytest.mark.parametrize("value,expected", [
        ("12.50", Decimal("12.50")),
        (3, Decimal("3")),
        (None, Decimal("0")),
        ("n/a", Decimal("0")),
        (True, Decimal("0")),
        (float("nan"), Decimal("0")),
    ])
    def test_to_decimal(self, value, expected):
        assert to_decimal(value) == expected

    def test_to_int(self):
        assert to_int("4") == 4
        assert to_int("2.0") == 2
        assert to_int(None) == 0
        assert to_int("many") == 0

    def test_parse_datetime(self):
        assert parse_datetime("2026-10-18T09:30:00Z") == datetime(2026, 10, 18, 9, 30)
        assert parse_datetime("2026-10-18T10:30:00+01:00") == datetime(2026, 10, 18, 9, 30)
        assert parse_datetime("0001-01-01T00:00:00") is None
        assert parse_datetime("1970-01-01T00:00:00Z") is None
        assert parse_datetime("") is None
        assert parse_datetime("yesterday-ish") is None


class TestOrderItem:
    """Tests for OrderItem adapters"""

    def test_from_api_keys(self):
        item = OrderItem.from_mapping({"SKU": "ABC", "Title": "Lamp", "Quantity": 2, "PricePerUnit": 7.5, "CategoryName": "Home"})
        assert (item.sku, item.title, item.quantity, item.unit_price, item.category) == ("ABC", "Lamp", 2, Decimal("7.5"), "Home")
        assert item.line_total == Decimal("0")

    def test_store_round_trip_keys(self):
        item = OrderItem(sku="A", title="Mug", quantity=3, unit_price=Decimal("4.00"), line_total=Decimal("12.00"))
        assert OrderItem.from_mapping(item.to_dict()) == item


class TestOrder:
    """Tests for Order helpers and the API adapter"""

    def test_display_name(self):
        assert Order(order_id="1", received_at=None, channel="EBAY", subsource="eBay UK").display_name == "eBay UK (EBAY)"
        assert Order(order_id="1", received_at=None, channel="ETSY").display_name == "ETSY"

    def test_effective_items_never_merges(self):
        embedded = [OrderItem(sku="A", quantity=1)]
        relation = [OrderItem(sku="B", quantity=1)]
        assert Order(order_id="1", received_at=None, items=embedded, order_items=relation).effective_items == embedded
        assert Order(order_id="1", received_at=None, items=[], order_items=relation).effective_items == relation
        assert Order(order_id="1", received_at=None).effective_items == []

    def test_from_api_nested_payload(self):
        payload = {
            "OrderId": "5d1c-77",
            "NumOrderId": 100234,
            "GeneralInfo": {
                "ReceivedDate": "2026-10-17T14:05:00Z",
                "Source": "AMAZON",
                "SubSource": "Amazon UK",
                "Status": 1,
            },
            "TotalsInfo": {"TotalCharge": 0, "PostageCost": 3.95, "Currency": "GBP"},
            "Items": [
                {"SKU": "MUG-1", "Title": "Mug", "Quantity": 2, "PricePerUnit": 6.0, "CategoryName": "Kitchen"},
                {"SKU": "TEA-1", "Title": "Tea", "Quantity": 1, "Cost": 4.5},
            ],
        }
        order = Order.from_api(payload)

        assert order.order_id == "5d1c-77"
        assert order.number == 100234
        assert order.received_at == datetime(2026, 10, 17, 14, 5)
        assert order.display_name == "Amazon UK (AMAZON)"
        assert order.is_paid
        assert order.is_open and not order.is_processed
        assert order.order_items is None
        assert resolve_order_revenue(order) == Decimal("16.5")

    def test_from_api_processed_legacy_payload(self):
        payload = {
            "pkOrderID": "legacy-1",
            "dReceivedDate": "2026-10-10T08:00:00",
            "dProcessedOn": "2026-10-11T08:00:00",
            "Source": "EBAY",
            "fTotalCharge": "25.00",
            "nStatus": 0,
        }
        order = Order.from_api(payload)

        assert order.is_processed and not order.is_open
        assert order.processed_at == datetime(2026, 10, 11, 8, 0)
        assert not order.is_paid
        assert order.total_charge == Decimal("25.00")
        assert order.items is None

    def test_from_api_missing_fields_default(self):
        order = Order.from_api({})
        assert order.order_id == ""
        assert order.received_at is None
        assert order.total_charge == Decimal("0")
        assert resolve_order_revenue(order) == Decimal("0")
