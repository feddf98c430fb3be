"""
Synthetic Data Generator

Generates realistic marketplace sales data for testing and development.
Includes:
- A product catalog with stock levels, some below their minimum
- Orders across marketplace channels and subsources
- Embedded line items mirrored by the normalized item rows
"""

import random
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from faker import Faker
import numpy as np
import polars as pl
import structlog

from src.metrics.records import Order, OrderItem, Product

logger = structlog.get_logger(__name__)

fake = Faker("en_GB")


def seed_everything(seed: int = 42) -> None:
    """Seed every random source the generators use."""
    random.seed(seed)
    np.random.seed(seed)
    Faker.seed(seed)


# =============================================================================
# CONFIGURATION
# =============================================================================

CATEGORIES = [
    ("Home & Garden", ["Planter", "Lantern", "Doormat", "Cushion", "Throw"]),
    ("Kitchen", ["Mug", "Teapot", "Chopping Board", "Utensil Set", "Storage Jar"]),
    ("Pets", ["Dog Bed", "Cat Tree", "Lead", "Feeding Bowl", "Toy Bundle"]),
    ("Crafts", ["Yarn Pack", "Paint Set", "Sketchbook", "Bead Kit", "Fabric Bundle"]),
    ("Toys", ["Puzzle", "Board Game", "Plush", "Building Set", "Kite"]),
]

# (source, subsources, order share)
CHANNELS = [
    ("EBAY", ["eBay UK", "eBay DE"], 0.35),
    ("AMAZON", ["Amazon UK", "Amazon FR", None], 0.30),
    ("SHOPIFY", ["Main Store"], 0.20),
    ("ETSY", [None], 0.10),
    ("DIRECT", [None], 0.05),
]


# =============================================================================
# GENERATORS
# =============================================================================

class ProductGenerator:
    """Generate a product catalog"""

    def generate(self, n: int = 100) -> List[Product]:
        """Generate n products"""
        products = []

        for index in range(n):
            category, kinds = random.choice(CATEGORIES)
            retail_price = round(random.uniform(4, 120), 2)
            cost_price = round(retail_price * random.uniform(0.3, 0.7), 2)
            stock_minimum = random.randint(2, 15)

            # Roughly one product in eight is at or below its reorder point
            if random.random() < 0.125:
                stock_available = random.randint(0, stock_minimum)
            else:
                stock_available = random.randint(stock_minimum + 1, 400)

            products.append(Product(
                sku=f"SKU-{index + 1:05d}",
                title=f"{fake.word().title()} {random.choice(kinds)}",
                category_name=category,
                stock_available=stock_available,
                stock_minimum=stock_minimum,
                cost_price=Decimal(str(cost_price)),
                retail_price=Decimal(str(retail_price)),
            ))

        return products


class OrderGenerator:
    """Generate orders with line items against a catalog"""

    def __init__(self, products: List[Product]):
        self.products = products

    @staticmethod
    def _channel() -> Tuple[str, Optional[str]]:
        source, subsources, _ = random.choices(CHANNELS, weights=[c[2] for c in CHANNELS])[0]
        return source, random.choice(subsources)

    def _items(self) -> List[OrderItem]:
        num_items = int(np.random.choice([1, 2, 3, 4], p=[0.55, 0.25, 0.15, 0.05]))
        items = []
        for product in random.sample(self.products, min(num_items, len(self.products))):
            quantity = int(np.random.choice([1, 2, 3, 5], p=[0.70, 0.18, 0.09, 0.03]))
            unit_price = product.retail_price
            items.append(OrderItem(
                sku=product.sku,
                title=product.title,
                quantity=quantity,
                unit_price=unit_price,
                line_total=(unit_price * quantity).quantize(Decimal("0.01")),
                category=product.category_name,
            ))
        return items

    def generate(
        self,
        n: int = 2000,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[Order]:
        """Generate n orders received between start_date and end_date"""
        end_date = end_date or datetime.now()
        start_date = start_date or end_date - timedelta(days=730)

        orders = []
        for number in range(1, n + 1):
            received_at = fake.date_time_between(start_date=start_date, end_date=end_date)
            source, subsource = self._channel()
            items = self._items()

            subtotal = sum((item.line_total for item in items), Decimal("0"))
            postage = Decimal("0") if subtotal > 40 else Decimal(random.choice(["2.99", "3.95", "4.50"]))
            discount = Decimal(random.choice(["0", "0", "0", "1.00", "2.50"]))
            total = max(subtotal + postage - discount, Decimal("0"))

            # Some channels report a zero charge; revenue then comes from the items
            total_charge = Decimal("0") if random.random() < 0.05 else total

            age_days = (end_date - received_at).days
            is_processed = age_days > 2 and random.random() < 0.95
            is_paid = random.random() < 0.97
            processed_at = received_at + timedelta(hours=random.randint(2, 48)) if is_processed else None

            orders.append(Order(
                order_id=fake.uuid4(),
                number=number,
                received_at=received_at,
                channel=source,
                subsource=subsource,
                total_charge=total_charge,
                total_paid=total if is_paid else Decimal("0"),
                total_discount=discount,
                postage_cost=postage,
                tax=(total / Decimal("6")).quantize(Decimal("0.01")),
                is_processed=is_processed,
                is_open=not is_processed,
                is_paid=is_paid,
                is_cancelled=random.random() < 0.01,
                processed_at=processed_at,
                dispatched_at=processed_at + timedelta(hours=12) if processed_at else None,
                items=items,
                order_items=list(items),
            ))

        return orders


# =============================================================================
# MAIN GENERATOR
# =============================================================================

class DataGenerator:
    """Main data generator orchestrator"""

    def __init__(self, seed: int = 42):
        seed_everything(seed)

    def generate_all(
        self,
        n_products: int = 100,
        n_orders: int = 2000,
        days: int = 730,
        end_date: Optional[datetime] = None,
    ) -> Dict[str, list]:
        """Generate a catalog and the orders that sell from it"""
        end_date = end_date or datetime.now()

        logger.info("Generating synthetic sales data", products=n_products, orders=n_orders, days=days)
        products = ProductGenerator().generate(n_products)
        orders = OrderGenerator(products).generate(
            n_orders,
            start_date=end_date - timedelta(days=days),
            end_date=end_date,
        )
        return {"products": products, "orders": orders}

    @staticmethod
    def describe(orders: List[Order]) -> pl.DataFrame:
        """Order count and charge per channel, for a quick look at a generated set"""
        frame = pl.DataFrame(
            {
                "channel": [order.channel for order in orders],
                "total_charge": [float(order.total_charge) for order in orders],
            },
            schema={"channel": pl.Utf8, "total_charge": pl.Float64},
        )
        return (
            frame.group_by("channel")
            .agg([
                pl.len().alias("orders"),
                pl.col("total_charge").sum().round(2).alias("total_charge"),
            ])
            .sort("orders", descending=True)
        )
