# Overview: Read-only aggregation queries feeding the report caches and product cost basis.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Iterable, NamedTuple

from sqlalchemy import case, func, literal, select
from sqlalchemy.engine import Connection

from ..models import (
    Customer,
    Item,
    Order,
    OrderItem,
    Payment,
    Product,
    ProductItem,
    Purchase,
    PurchaseLine,
)
from app.time_utils import day_bounds
"""
Report Query Invariants (authoritative)

- Every function here is a pure read against the connection it is given:
  no writes, no retries, no commits. Retrying is the caller's business.
- Soft-deleted rows (deleted_at IS NOT NULL) are invisible: orders for
  rollups, purchase lines for cost lookups.
- Money comes back as Decimal quantized to 0.01 (half-up); SQL NULL sums
  come back as Decimal("0.00"), never None.
- A day is the half-open UTC range [00:00, next 00:00) on orders.created_at.
"""

CENT = Decimal("0.01")

UNKNOWN_PRODUCT_NAME = "Unknown"
GUEST_CUSTOMER_NAME = "Guest"
DEFAULT_PAYMENT_METHOD = "cash"


class NoCostData(LookupError):
    """No usable cost exists for an item (no purchases and no manual cost)."""

    def __init__(self, item_id: int, message: str | None = None):
        super().__init__(message or f"item {item_id} has no cost data")
        self.item_id = item_id


class NoPurchaseHistory(NoCostData):
    """Raised when a purchase-based cost is requested for an item never purchased."""

    def __init__(self, item_id: int):
        super().__init__(item_id, f"item {item_id} has no purchase history")


def to_money(value: Any) -> Decimal:
    """Normalize a DB numeric (Decimal, float, int, None) to a 2-place Decimal."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


# =============================================================================
# ORDERS
# =============================================================================

class OrderItemDetail(NamedTuple):
    name: str
    quantity: int


@dataclass(frozen=True)
class OrderSource:
    """Authoritative order state needed to build a transaction cache row."""
    id: int
    order_number: str
    created_at: datetime
    deleted_at: datetime | None
    customer_name: str
    table_number: str | None
    order_type: str
    status: str
    total_amount: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    notes: str | None
    payment_method: str


def _guest_name(customer_info: Any) -> str | None:
    if isinstance(customer_info, dict):
        name = customer_info.get("name")
        if isinstance(name, str) and name.strip():
            return name.strip()
    return None


def order_source(conn: Connection, order_id: int) -> OrderSource | None:
    """
    Load an order with its display customer name and payment method.

    Customer: linked customer name, else inline guest name, else "Guest".
    Payment: first recorded payment's method, else "cash".
    Returns None if the order row does not exist.
    """
    row = conn.execute(
        select(
            Order.id,
            Order.order_number,
            Order.created_at,
            Order.deleted_at,
            Order.customer_info,
            Customer.name.label("customer_name"),
            Order.table_number,
            Order.order_type,
            Order.status,
            Order.total_amount,
            Order.discount_amount,
            Order.tax_amount,
            Order.notes,
        )
        .select_from(Order)
        .outerjoin(Customer, Customer.id == Order.customer_id)
        .where(Order.id == order_id)
    ).first()
    if row is None:
        return None

    payment_method = conn.execute(
        select(Payment.payment_method)
        .where(Payment.order_id == order_id)
        .order_by(Payment.id.asc())
        .limit(1)
    ).scalar()

    return OrderSource(
        id=row.id,
        order_number=row.order_number,
        created_at=row.created_at,
        deleted_at=row.deleted_at,
        customer_name=row.customer_name or _guest_name(row.customer_info) or GUEST_CUSTOMER_NAME,
        table_number=row.table_number,
        order_type=row.order_type,
        status=row.status,
        total_amount=to_money(row.total_amount),
        discount_amount=to_money(row.discount_amount),
        tax_amount=to_money(row.tax_amount),
        notes=row.notes,
        payment_method=payment_method or DEFAULT_PAYMENT_METHOD,
    )


def order_items(conn: Connection, order_id: int) -> list[OrderItemDetail]:
    """(product name, quantity) per order line, in line order. Missing products read "Unknown"."""
    rows = conn.execute(
        select(
            func.coalesce(Product.name, literal(UNKNOWN_PRODUCT_NAME)).label("name"),
            OrderItem.quantity,
        )
        .select_from(OrderItem)
        .outerjoin(Product, Product.id == OrderItem.product_id)
        .where(OrderItem.order_id == order_id)
        .order_by(OrderItem.id.asc())
    ).all()
    return [OrderItemDetail(name=row.name, quantity=int(row.quantity)) for row in rows]


def order_ids_for_date(conn: Connection, day: date) -> list[int]:
    """Ids of live (not soft-deleted) orders created on a day."""
    start, end = day_bounds(day)
    return list(
        conn.execute(
            select(Order.id)
            .where(
                Order.created_at >= start,
                Order.created_at < end,
                Order.deleted_at.is_(None),
            )
            .order_by(Order.id.asc())
        ).scalars()
    )


@dataclass(frozen=True)
class DailyAggregates:
    total_orders: int
    completed_orders: int
    cancelled_orders: int
    total_revenue: Decimal
    total_discount: Decimal
    total_tax: Decimal
    average_order_value: Decimal


def daily_aggregates(conn: Connection, day: date) -> DailyAggregates:
    """
    Roll up all live orders created on a day.

    Counts cover every status; revenue, discount, tax and the average only
    cover status == "completed". No completed orders -> money fields are 0.
    """
    start, end = day_bounds(day)
    completed = Order.status == "completed"

    row = conn.execute(
        select(
            func.count(Order.id).label("total_orders"),
            func.coalesce(func.sum(case((completed, 1), else_=0)), 0).label("completed_orders"),
            func.coalesce(func.sum(case((Order.status == "cancelled", 1), else_=0)), 0).label("cancelled_orders"),
            func.coalesce(func.sum(case((completed, Order.total_amount), else_=0)), 0).label("total_revenue"),
            func.coalesce(func.sum(case((completed, Order.discount_amount), else_=0)), 0).label("total_discount"),
            func.coalesce(func.sum(case((completed, Order.tax_amount), else_=0)), 0).label("total_tax"),
            func.avg(case((completed, Order.total_amount), else_=None)).label("average_order_value"),
        ).where(
            Order.created_at >= start,
            Order.created_at < end,
            Order.deleted_at.is_(None),
        )
    ).one()

    return DailyAggregates(
        total_orders=int(row.total_orders or 0),
        completed_orders=int(row.completed_orders or 0),
        cancelled_orders=int(row.cancelled_orders or 0),
        total_revenue=to_money(row.total_revenue),
        total_discount=to_money(row.total_discount),
        total_tax=to_money(row.total_tax),
        average_order_value=to_money(row.average_order_value),
    )


# =============================================================================
# COST BASIS
# =============================================================================

def _live_purchase_lines(item_id: int):
    return (
        PurchaseLine.item_id == item_id,
        PurchaseLine.deleted_at.is_(None),
    )


def latest_purchase_cost(conn: Connection, item_id: int) -> Decimal:
    """
    Unit cost of the item's most recent purchase line.

    Most recent = latest purchase date, ties broken by the most recently
    created line (then highest id). Raises NoPurchaseHistory if none.
    """
    unit_cost = conn.execute(
        select(PurchaseLine.unit_cost)
        .join(Purchase, Purchase.id == PurchaseLine.purchase_id)
        .where(*_live_purchase_lines(item_id))
        .order_by(
            Purchase.purchase_date.desc(),
            PurchaseLine.created_at.desc(),
            PurchaseLine.id.desc(),
        )
        .limit(1)
    ).scalar()
    if unit_cost is None:
        raise NoPurchaseHistory(item_id)
    return to_money(unit_cost)


def average_purchase_cost(conn: Connection, item_id: int) -> Decimal:
    """Mean unit cost over the item's live purchase lines. Raises NoPurchaseHistory if none."""
    row = conn.execute(
        select(
            func.count(PurchaseLine.id).label("lines"),
            func.avg(PurchaseLine.unit_cost).label("average"),
        ).where(*_live_purchase_lines(item_id))
    ).one()
    if not row.lines:
        raise NoPurchaseHistory(item_id)
    return to_money(row.average)


@dataclass(frozen=True)
class CompositionLine:
    item_id: int
    item_code: str
    item_name: str
    unit: str | None
    quantity_needed: Decimal
    cost_override: Decimal | None
    item_cost: Decimal | None
    is_critical: bool
    notes: str | None


def composition(conn: Connection, product_id: int) -> list[CompositionLine]:
    """Recipe lines of a product, joined to their items."""
    rows = conn.execute(
        select(
            ProductItem.item_id,
            Item.item_code,
            Item.name.label("item_name"),
            func.coalesce(ProductItem.unit, Item.unit).label("unit"),
            ProductItem.quantity_needed,
            ProductItem.cost_per_unit.label("cost_override"),
            Item.cost_per_unit.label("item_cost"),
            ProductItem.is_critical,
            ProductItem.notes,
        )
        .join(Item, Item.id == ProductItem.item_id)
        .where(ProductItem.product_id == product_id)
        .order_by(ProductItem.id.asc())
    ).all()
    return [
        CompositionLine(
            item_id=row.item_id,
            item_code=row.item_code,
            item_name=row.item_name,
            unit=row.unit,
            quantity_needed=_decimal(row.quantity_needed) or Decimal("0"),
            cost_override=_decimal(row.cost_override),
            item_cost=_decimal(row.item_cost),
            is_critical=bool(row.is_critical),
            notes=row.notes,
        )
        for row in rows
    ]


def products_using_item(conn: Connection, item_id: int) -> list[int]:
    """Fan-out set: ids of every product whose composition references the item."""
    return list(
        conn.execute(
            select(ProductItem.product_id)
            .where(ProductItem.item_id == item_id)
            .distinct()
            .order_by(ProductItem.product_id.asc())
        ).scalars()
    )


def products_with_composition(conn: Connection, *, active_only: bool = True) -> list[int]:
    query = (
        select(Product.id)
        .where(select(ProductItem.id).where(ProductItem.product_id == Product.id).exists())
        .order_by(Product.id.asc())
    )
    if active_only:
        query = query.where(Product.is_active.is_(True))
    return list(conn.execute(query).scalars())


@dataclass(frozen=True)
class ProductCostRow:
    id: int
    name: str
    price: Decimal
    cost: Decimal | None
    cost_method: str | None
    is_active: bool


def product_cost_row(conn: Connection, product_id: int) -> ProductCostRow | None:
    row = conn.execute(
        select(
            Product.id,
            Product.name,
            Product.price,
            Product.cost,
            Product.cost_method,
            Product.is_active,
        ).where(Product.id == product_id)
    ).first()
    if row is None:
        return None
    return ProductCostRow(
        id=row.id,
        name=row.name,
        price=to_money(row.price),
        cost=to_money(row.cost) if row.cost is not None else None,
        cost_method=row.cost_method,
        is_active=bool(row.is_active),
    )


CostLookup = Callable[[CompositionLine], Decimal]


def fold_composition_cost(lines: Iterable[CompositionLine], cost_lookup: CostLookup) -> Decimal:
    """Sum of quantity_needed x unit cost over composition lines."""
    total = Decimal("0")
    for line in lines:
        total += line.quantity_needed * cost_lookup(line)
    return to_money(total)


def weighted_composition_cost(conn: Connection, product_id: int, cost_lookup: CostLookup) -> Decimal:
    """Cost basis of a product from all of its composition lines, using the supplied per-item cost source."""
    return fold_composition_cost(composition(conn, product_id), cost_lookup)
