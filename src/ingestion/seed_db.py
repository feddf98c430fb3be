"""
Database Seeding

Writes product and order records into the local store. Each order is
stored with its embedded item list and the matching normalized
``order_items`` rows, which is what keeps the two aggregation strategies
numerically equivalent on seeded data.
"""

import asyncio
from typing import Iterable, List

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from src.database.connection import get_db, get_engine, init_database, close_database
from src.database.models import Base, DimProduct, FactOrder, FactOrderItem
from src.metrics.records import Order, OrderItem, Product

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 500


def product_to_model(product: Product) -> DimProduct:
    return DimProduct(
        sku=product.sku,
        title=product.title,
        category_name=product.category_name,
        stock_available=product.stock_available,
        stock_minimum=product.stock_minimum,
        cost_price=product.cost_price,
        retail_price=product.retail_price,
        is_active=True,
    )


def item_to_model(item: OrderItem) -> FactOrderItem:
    return FactOrderItem(
        sku=item.sku,
        item_title=item.title,
        category=item.category,
        quantity=item.quantity,
        unit_price=item.unit_price,
        line_total=item.line_total,
    )


def order_to_model(order: Order) -> FactOrder:
    """ORM row for an order, with the embedded JSON and the item rows."""
    relation = order.order_items if order.order_items is not None else (order.items or [])
    return FactOrder(
        order_id=order.order_id,
        number=order.number,
        source=order.channel,
        subsource=order.subsource,
        total_charge=order.total_charge,
        total_paid=order.total_paid,
        total_discount=order.total_discount,
        postage_cost=order.postage_cost,
        tax=order.tax,
        currency=order.currency,
        conversion_rate=order.conversion_rate,
        is_processed=order.is_processed,
        is_open=order.is_open,
        is_paid=order.is_paid,
        is_cancelled=order.is_cancelled,
        received_at=order.received_at,
        processed_at=order.processed_at,
        dispatched_at=order.dispatched_at,
        items=[item.to_dict() for item in order.items] if order.items else None,
        order_items=[item_to_model(item) for item in relation],
    )


async def create_schema(engine: AsyncEngine, drop: bool = False) -> None:
    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Schema ready", dropped=drop)


async def load_products(session: AsyncSession, products: Iterable[Product]) -> int:
    rows = [product_to_model(product) for product in products]
    session.add_all(rows)
    await session.flush()
    logger.info("Products loaded", count=len(rows))
    return len(rows)


async def load_orders(session: AsyncSession, orders: Iterable[Order], chunk_size: int = CHUNK_SIZE) -> int:
    """Insert orders in chunks, flushing between chunks."""
    pending: List[FactOrder] = []
    total = 0
    for order in orders:
        pending.append(order_to_model(order))
        if len(pending) >= chunk_size:
            session.add_all(pending)
            await session.flush()
            total += len(pending)
            pending = []
    if pending:
        session.add_all(pending)
        await session.flush()
        total += len(pending)

    logger.info("Orders loaded", count=total)
    return total


async def seed_database(products: List[Product], orders: List[Order], reset: bool = False) -> dict:
    """Create the schema and load a generated data set in one transaction."""
    await create_schema(get_engine(), drop=reset)
    async with get_db() as session:
        product_count = await load_products(session, products)
        order_count = await load_orders(session, orders)
    return {"products": product_count, "orders": order_count}


async def main() -> None:
    from src.data.generators import DataGenerator

    logger.info("Starting database seeding...")
    await init_database()
    try:
        data = DataGenerator().generate_all()
        counts = await seed_database(data["products"], data["orders"], reset=True)
        logger.info("Database seeding completed", **counts)
    finally:
        await close_database()


if __name__ == "__main__":
    asyncio.run(main())
