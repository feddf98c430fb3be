"""
Database Models - Order Store

Relational substrate the metrics layer reads from:

- FactOrder: synced orders, one row per order, with an optional embedded
  (denormalized JSON) copy of its line items
- FactOrderItem: normalized line items owned by an order
- DimProduct: product catalog used to enrich SKU rows and raise stock alerts

Column types are kept portable so the schema runs on PostgreSQL and SQLite.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# FACT TABLES
# =============================================================================

class FactOrder(Base):
    """
    Order Fact Table

    Grain is one order as received from the order-management system. The
    ``items`` column holds the embedded copy of line items captured at sync
    time; ``order_items`` is the normalized relation. Either may be empty.
    """
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    number: Mapped[Optional[int]] = mapped_column(Integer)

    # Channel
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    subsource: Mapped[Optional[str]] = mapped_column(String(150))

    # Money
    total_charge: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total_discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    postage_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    tax: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    currency: Mapped[str] = mapped_column(String(3), default="GBP")
    conversion_rate: Mapped[Decimal] = mapped_column(Numeric(12, 6), default=1)

    # State
    is_processed: Mapped[bool] = mapped_column(Boolean, default=False)
    is_open: Mapped[bool] = mapped_column(Boolean, default=True)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False)
    is_cancelled: Mapped[bool] = mapped_column(Boolean, default=False)

    # Timestamps
    received_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    dispatched_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Embedded line items as captured from the API payload
    items: Mapped[Optional[list]] = mapped_column(JSON)

    # Audit
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    order_items: Mapped[List["FactOrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_orders_received_at", "received_at"),
        Index("ix_orders_source", "source"),
        Index("ix_orders_status", "is_processed", "is_paid"),
    )


class FactOrderItem(Base):
    """
    Order Item Fact Table

    Line-item detail for orders with grain at order-item level.
    """
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )

    sku: Mapped[Optional[str]] = mapped_column(String(100))
    item_title: Mapped[Optional[str]] = mapped_column(String(255))
    category: Mapped[Optional[str]] = mapped_column(String(150))

    # Measures
    quantity: Mapped[int] = mapped_column(Integer, default=0)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)

    # Relationships
    order: Mapped["FactOrder"] = relationship(back_populates="order_items")

    __table_args__ = (
        Index("ix_order_items_order", "order_id"),
        Index("ix_order_items_sku", "sku"),
    )


# =============================================================================
# DIMENSION TABLES
# =============================================================================

class DimProduct(Base):
    """
    Product Dimension Table

    Catalog entry keyed by SKU. Read-only from the metrics layer.
    """
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sku: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(255))
    category_name: Mapped[Optional[str]] = mapped_column(String(150))

    # Inventory
    stock_available: Mapped[int] = mapped_column(Integer, default=0)
    stock_minimum: Mapped[int] = mapped_column(Integer, default=0)

    # Pricing
    cost_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    retail_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Audit
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_products_category", "category_name"),
    )
