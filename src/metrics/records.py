"""
Order Records

The single concrete shape the aggregators work with. Orders reach the
metrics layer from two places, the local store (ORM rows) and the remote
order-management API (JSON payloads); both are normalized here so nothing
downstream has to guess which keys or attributes exist.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import inspect as sa_inspect

ZERO = Decimal("0")
UNKNOWN_PRODUCT = "Unknown Product"
UNKNOWN_CATEGORY = "Unknown Category"


# =============================================================================
# FIELD COERCION
# =============================================================================

def to_decimal(value: Any) -> Decimal:
    """Coerce a money-ish value to Decimal, defaulting to 0 on anything unusable."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO
    return result if result.is_finite() else ZERO


def to_int(value: Any) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return 0


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an API timestamp into a naive UTC datetime.

    Epoch placeholders (year <= 1970) are treated as missing.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, datetime.min.time())
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    if parsed.year <= 1970:
        return None
    return parsed


def _first(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


# =============================================================================
# RECORD TYPES
# =============================================================================

@dataclass
class OrderItem:
    """One line within an order"""
    sku: Optional[str] = None
    title: Optional[str] = None
    quantity: int = 0
    unit_price: Decimal = ZERO
    line_total: Decimal = ZERO
    category: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "OrderItem":
        """Build from an embedded JSON item (store format or API format)."""
        return cls(
            sku=_first(data, "sku", "SKU", "ItemNumber"),
            title=_first(data, "item_title", "title", "Title", "ItemTitle"),
            quantity=to_int(_first(data, "quantity", "Quantity", default=0)),
            unit_price=to_decimal(_first(data, "unit_price", "price_per_unit", "PricePerUnit", "price")),
            line_total=to_decimal(_first(data, "line_total", "LineTotal", "Cost")),
            category=_first(data, "category", "CategoryName", "category_name"),
        )

    @classmethod
    def from_model(cls, row: Any) -> "OrderItem":
        return cls(
            sku=row.sku,
            title=row.item_title,
            quantity=to_int(row.quantity),
            unit_price=to_decimal(row.unit_price),
            line_total=to_decimal(row.line_total),
            category=row.category,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Embedded JSON representation as stored on the order row."""
        return {
            "sku": self.sku,
            "item_title": self.title,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "line_total": str(self.line_total),
            "category": self.category,
        }


@dataclass
class Order:
    """
    One purchase transaction.

    ``items`` is the embedded (denormalized) copy of the line items and
    ``order_items`` the normalized relation. ``order_items`` is None when the
    relation was not loaded, which is different from an order with no rows.
    """
    order_id: str
    received_at: Optional[datetime]
    channel: str = ""
    subsource: Optional[str] = None
    id: Optional[int] = None
    number: Optional[int] = None

    total_charge: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_discount: Decimal = ZERO
    postage_cost: Decimal = ZERO
    tax: Decimal = ZERO
    currency: str = "GBP"
    conversion_rate: Decimal = Decimal("1")

    is_processed: bool = False
    is_open: bool = True
    is_paid: bool = False
    is_cancelled: bool = False

    processed_at: Optional[datetime] = None
    dispatched_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    items: Optional[List[OrderItem]] = None
    order_items: Optional[List[OrderItem]] = None

    @property
    def display_name(self) -> str:
        if self.subsource:
            return f"{self.subsource} ({self.channel})"
        return self.channel

    @property
    def effective_items(self) -> List[OrderItem]:
        """Embedded items when present, otherwise the loaded relation. Never both."""
        if self.items:
            return self.items
        return self.order_items or []

    @property
    def identity(self) -> str:
        """Stable identifier used for fingerprints."""
        if self.order_id:
            return str(self.order_id)
        return str(self.id) if self.id is not None else ""

    @classmethod
    def from_model(cls, row: Any) -> "Order":
        """
        Adapt a FactOrder row.

        The normalized relation is only read when it was eagerly loaded, so
        this never triggers lazy IO under an async session.
        """
        state = sa_inspect(row)
        if "order_items" in state.unloaded:
            relation = None
        else:
            relation = [OrderItem.from_model(item) for item in row.order_items]

        embedded = None
        if row.items:
            embedded = [
                OrderItem.from_mapping(item) for item in row.items if isinstance(item, Mapping)
            ]

        return cls(
            id=row.id,
            order_id=row.order_id,
            number=row.number,
            received_at=row.received_at,
            channel=row.source or "",
            subsource=row.subsource,
            total_charge=to_decimal(row.total_charge),
            total_paid=to_decimal(row.total_paid),
            total_discount=to_decimal(row.total_discount),
            postage_cost=to_decimal(row.postage_cost),
            tax=to_decimal(row.tax),
            currency=row.currency or "GBP",
            conversion_rate=to_decimal(row.conversion_rate) or Decimal("1"),
            is_processed=bool(row.is_processed),
            is_open=bool(row.is_open),
            is_paid=bool(row.is_paid),
            is_cancelled=bool(row.is_cancelled),
            processed_at=row.processed_at,
            dispatched_at=row.dispatched_at,
            updated_at=row.updated_at,
            items=embedded,
            order_items=relation,
        )

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "Order":
        """
        Adapt an order-management API payload.

        Handles both the nested GetOrdersById shape (GeneralInfo/TotalsInfo)
        and the flat legacy/processed-orders shape.
        """
        general = data.get("GeneralInfo") or {}
        totals = data.get("TotalsInfo") or {}

        received_at = parse_datetime(
            _first(general, "ReceivedDate") or _first(data, "dReceivedDate", "received_date")
        )
        paid_at = parse_datetime(_first(data, "PaidDateTime", "PaidDate", "dPaidDate", "paid_date"))
        status = to_int(_first(general, "Status") if "Status" in general else _first(data, "nStatus", "order_status", default=0))

        processed_at = parse_datetime(
            _first(data, "dProcessedOn", "ProcessedDate", "dProcessedDate")
            or _first(general, "ProcessedDate", "dProcessedDate")
        )
        processed_flag = bool(
            _first(data, "Processed", "bProcessed") or _first(general, "Processed", "bProcessed")
        )
        if processed_at is None and processed_flag:
            processed_at = received_at
        is_processed = processed_flag or processed_at is not None

        raw_items = _first(data, "Items", "items", default=[]) or []
        items = [OrderItem.from_mapping(item) for item in raw_items if isinstance(item, Mapping)]

        number = _first(data, "NumOrderId", "ReferenceNum", "nOrderId", "order_number")

        return cls(
            order_id=str(_first(data, "OrderId", "pkOrderID", "order_id", default="")),
            number=to_int(number) if number is not None else None,
            received_at=received_at,
            channel=_first(general, "Source") or _first(data, "Source", "order_source", default="") or "",
            subsource=_first(general, "SubSource") or _first(data, "SubSource", "subsource"),
            total_charge=to_decimal(_first(totals, "TotalCharge") or _first(data, "fTotalCharge", "total_charge")),
            total_paid=to_decimal(_first(data, "total_paid")),
            total_discount=to_decimal(_first(totals, "TotalDiscount") or _first(data, "total_discount")),
            postage_cost=to_decimal(_first(totals, "PostageCost") or _first(data, "fPostageCost", "postage_cost")),
            tax=to_decimal(_first(totals, "Tax") or _first(data, "fTax", "tax")),
            currency=_first(totals, "Currency") or _first(data, "cCurrency", "currency", default="GBP"),
            conversion_rate=to_decimal(_first(totals, "ConversionRate") or _first(data, "conversion_rate", default=1)),
            is_processed=is_processed,
            is_open=not is_processed,
            is_paid=paid_at is not None or status == 1,
            is_cancelled=bool(_first(general, "HoldOrCancel") or _first(data, "HoldOrCancel", "is_cancelled")),
            processed_at=processed_at,
            updated_at=parse_datetime(_first(data, "updated_at")),
            items=items or None,
        )


@dataclass
class Product:
    """Catalog entry used to enrich SKU rows"""
    sku: str
    title: Optional[str] = None
    category_name: Optional[str] = None
    stock_available: int = 0
    stock_minimum: int = 0
    cost_price: Decimal = ZERO
    retail_price: Decimal = ZERO

    @property
    def display_title(self) -> str:
        return self.title or UNKNOWN_PRODUCT

    @property
    def display_category(self) -> str:
        return self.category_name or UNKNOWN_CATEGORY

    @property
    def is_low_stock(self) -> bool:
        return self.stock_available <= self.stock_minimum

    @classmethod
    def from_model(cls, row: Any) -> "Product":
        return cls(
            sku=row.sku,
            title=row.title,
            category_name=row.category_name,
            stock_available=to_int(row.stock_available),
            stock_minimum=to_int(row.stock_minimum),
            cost_price=to_decimal(row.cost_price),
            retail_price=to_decimal(row.retail_price),
        )


Catalog = Dict[str, Product]
