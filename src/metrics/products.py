"""
Product Performance Metrics

Per-SKU and per-category analytics over the line items of a filtered order
set, enriched from the product catalog. Built on Polars frames:

- best sellers by revenue or by units
- category breakdown
- margin per SKU where a cost price is known
- stock alerts: catalog items at or below their minimum that are still selling
"""

from typing import Any, Dict, Iterable, List, Optional

import polars as pl
import structlog

from src.metrics.records import Catalog, Order, UNKNOWN_CATEGORY, UNKNOWN_PRODUCT
from src.metrics.revenue import item_value

logger = structlog.get_logger(__name__)

ITEM_SCHEMA = {
    "order_key": pl.Utf8,
    "sku": pl.Utf8,
    "item_title": pl.Utf8,
    "quantity": pl.Int64,
    "unit_price": pl.Float64,
    "revenue": pl.Float64,
}

CATALOG_SCHEMA = {
    "sku": pl.Utf8,
    "catalog_title": pl.Utf8,
    "category": pl.Utf8,
    "stock_available": pl.Int64,
    "stock_minimum": pl.Int64,
    "cost_price": pl.Float64,
}


def _items_frame(orders: Iterable[Order]) -> pl.DataFrame:
    columns: Dict[str, list] = {name: [] for name in ITEM_SCHEMA}
    for index, order in enumerate(orders):
        order_key = order.identity or f"#{index}"
        for item in order.effective_items:
            if not item.sku:
                continue
            columns["order_key"].append(order_key)
            columns["sku"].append(item.sku)
            columns["item_title"].append(item.title)
            columns["quantity"].append(item.quantity)
            columns["unit_price"].append(float(item.unit_price))
            columns["revenue"].append(float(item_value(item)))
    return pl.DataFrame(columns, schema=ITEM_SCHEMA)


def _catalog_frame(catalog: Catalog) -> pl.DataFrame:
    columns: Dict[str, list] = {name: [] for name in CATALOG_SCHEMA}
    for product in catalog.values():
        columns["sku"].append(product.sku)
        columns["catalog_title"].append(product.title)
        columns["category"].append(product.category_name)
        columns["stock_available"].append(product.stock_available)
        columns["stock_minimum"].append(product.stock_minimum)
        columns["cost_price"].append(float(product.cost_price) if product.cost_price > 0 else None)
    return pl.DataFrame(columns, schema=CATALOG_SCHEMA)


class ProductMetrics:
    """
    Product analytics for one filtered order set.

    Example:
        products = ProductMetrics(orders, catalog)
        products.top_products_by_revenue(10)
        products.low_stock_sellers()
    """

    def __init__(self, orders: Iterable[Order], catalog: Optional[Catalog] = None):
        self.catalog = catalog or {}
        self._items = _items_frame(orders)
        self._catalog = _catalog_frame(self.catalog)
        self._per_sku: Optional[pl.DataFrame] = None

    @property
    def per_sku(self) -> pl.DataFrame:
        """One row per SKU with sales totals joined to catalog attributes."""
        if self._per_sku is None:
            sales = self._items.group_by("sku").agg([
                pl.col("item_title").drop_nulls().first().alias("item_title"),
                pl.col("quantity").sum().alias("quantity_sold"),
                pl.col("revenue").sum().alias("revenue"),
                pl.col("order_key").n_unique().alias("order_count"),
                pl.col("unit_price").mean().alias("avg_price"),
            ])

            frame = sales.join(self._catalog, on="sku", how="left")
            frame = frame.with_columns([
                pl.when(
                    pl.col("catalog_title").is_not_null()
                    & (pl.col("catalog_title") != UNKNOWN_PRODUCT)
                )
                .then(pl.col("catalog_title"))
                .otherwise(pl.col("item_title").fill_null(UNKNOWN_PRODUCT))
                .alias("title"),
                pl.col("category").fill_null(UNKNOWN_CATEGORY),
                pl.col("stock_available").fill_null(0).alias("stock_level"),
                pl.when(pl.col("cost_price").is_not_null() & (pl.col("revenue") > 0))
                .then(
                    (pl.col("revenue") - pl.col("cost_price") * pl.col("quantity_sold"))
                    / pl.col("revenue") * 100
                )
                .otherwise(pl.lit(0.0))
                .alias("profit_margin"),
            ])
            self._per_sku = frame
        return self._per_sku

    @staticmethod
    def _rows(frame: pl.DataFrame) -> List[Dict[str, Any]]:
        return frame.select([
            "sku",
            "title",
            "category",
            "quantity_sold",
            pl.col("revenue").round(2),
            "order_count",
            pl.col("avg_price").fill_null(0.0).round(2),
            "stock_level",
            pl.col("profit_margin").round(2),
        ]).to_dicts()

    def top_products_by_revenue(self, limit: int = 10) -> List[Dict[str, Any]]:
        ranked = self.per_sku.sort(["revenue", "sku"], descending=[True, False])
        return self._rows(ranked.head(limit))

    def top_products_by_quantity(self, limit: int = 10) -> List[Dict[str, Any]]:
        ranked = self.per_sku.sort(["quantity_sold", "sku"], descending=[True, False])
        return self._rows(ranked.head(limit))

    def products_by_category(self) -> List[Dict[str, Any]]:
        categories = (
            self.per_sku.group_by("category")
            .agg([
                pl.col("sku").n_unique().alias("product_count"),
                pl.col("quantity_sold").sum().alias("quantity_sold"),
                pl.col("revenue").sum().round(2).alias("revenue"),
            ])
            .sort(["revenue", "category"], descending=[True, False])
        )
        return categories.to_dicts()

    def low_stock_sellers(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Selling SKUs whose catalog stock is at or below the minimum, most urgent first."""
        alerts = (
            self.per_sku.filter(
                pl.col("stock_minimum").is_not_null()
                & (pl.col("stock_available") <= pl.col("stock_minimum"))
            )
            .with_columns(
                (pl.col("quantity_sold") / pl.max_horizontal(pl.col("stock_available"), pl.lit(1)))
                .round(2)
                .alias("urgency_score")
            )
            .sort(["urgency_score", "sku"], descending=[True, False])
            .select([
                "sku",
                "title",
                "stock_available",
                "stock_minimum",
                "quantity_sold",
                pl.col("revenue").round(2),
                "urgency_score",
            ])
        )
        if limit is not None:
            alerts = alerts.head(limit)
        return alerts.to_dicts()

    def summary(self) -> Dict[str, Any]:
        units = int(self._items["quantity"].sum() or 0)
        revenue = float(self._items["revenue"].sum() or 0.0)
        top_revenue = self.top_products_by_revenue(1)
        top_quantity = self.top_products_by_quantity(1)
        return {
            "unique_products": self.per_sku.height,
            "total_units_sold": units,
            "total_revenue": round(revenue, 2),
            "avg_units_per_product": round(units / self.per_sku.height, 2) if self.per_sku.height else 0.0,
            "top_product_by_revenue": top_revenue[0] if top_revenue else None,
            "top_product_by_quantity": top_quantity[0] if top_quantity else None,
        }
