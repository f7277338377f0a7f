# Overview: Writes for derived report tables and product cost basis (upserts keyed by natural ids).

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal

from sqlalchemy import delete, insert, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection

from ..models import DailySalesSummary, OrderSnapshotCache, Product
from .report_queries import DailyAggregates, OrderItemDetail
from app.time_utils import utcnow
"""
Derived Table Write Rules (authoritative)

- report_transaction_cache is keyed by order_id, report_sales_daily by
  report_date, product cost basis by products.id.
- Upsert = one INSERT .. ON CONFLICT (key) DO UPDATE on PostgreSQL and
  SQLite, so concurrent first writers cannot both insert. Other dialects
  fall back to UPDATE by key, INSERT when nothing matched. Every write carries
  the full row so the last writer wins; nothing accumulates.
- items_detail is serialized to JSON here and only here.
- No commits: callers own the transaction (usually the ORM flush that
  triggered the maintainer).
"""


_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass(frozen=True)
class OrderSnapshot:
    """Fully recomputed transaction-cache row for one order."""
    order_number: str
    order_date: date
    order_time: time
    customer_name: str
    table_number: str | None
    order_type: str
    status: str
    total_amount: Decimal
    payment_method: str
    items: tuple[OrderItemDetail, ...]
    notes: str | None

    @property
    def items_count(self) -> int:
        return len(self.items)


def _items_detail(items) -> list[dict]:
    return [{"name": item.name, "quantity": item.quantity} for item in items]


def _upsert(conn: Connection, table, key_column, key_value, values: dict) -> None:
    row = {key_column.key: key_value, **values}
    dialect_insert = _DIALECT_INSERTS.get(conn.dialect.name)
    if dialect_insert is not None:
        stmt = dialect_insert(table).values(row)
        conn.execute(stmt.on_conflict_do_update(index_elements=[key_column], set_=values))
        return

    result = conn.execute(
        update(table).where(key_column == key_value).values(**values)
    )
    if result.rowcount == 0:
        conn.execute(insert(table).values(row))


def upsert_order_snapshot(conn: Connection, order_id: int, snapshot: OrderSnapshot, *, now: datetime | None = None) -> None:
    table = OrderSnapshotCache.__table__
    _upsert(
        conn,
        table,
        table.c.order_id,
        order_id,
        {
            "order_number": snapshot.order_number,
            "order_date": snapshot.order_date,
            "order_time": snapshot.order_time,
            "customer_name": snapshot.customer_name,
            "table_number": snapshot.table_number,
            "order_type": snapshot.order_type,
            "status": snapshot.status,
            "total_amount": snapshot.total_amount,
            "payment_method": snapshot.payment_method,
            "items_count": snapshot.items_count,
            "items_detail": _items_detail(snapshot.items),
            "notes": snapshot.notes,
            "updated_at": now or utcnow(),
        },
    )


def delete_order_snapshot(conn: Connection, order_id: int) -> int:
    """Remove an order's cache row. Missing rows are not an error."""
    table = OrderSnapshotCache.__table__
    return conn.execute(delete(table).where(table.c.order_id == order_id)).rowcount


def delete_snapshots_for_date(conn: Connection, day: date) -> int:
    table = OrderSnapshotCache.__table__
    return conn.execute(delete(table).where(table.c.order_date == day)).rowcount


def upsert_daily_summary(conn: Connection, day: date, aggregates: DailyAggregates, *, now: datetime | None = None) -> None:
    table = DailySalesSummary.__table__
    _upsert(
        conn,
        table,
        table.c.report_date,
        day,
        {
            "total_orders": aggregates.total_orders,
            "completed_orders": aggregates.completed_orders,
            "cancelled_orders": aggregates.cancelled_orders,
            "total_revenue": aggregates.total_revenue,
            "total_discount": aggregates.total_discount,
            "total_tax": aggregates.total_tax,
            "average_order_value": aggregates.average_order_value,
            "updated_at": now or utcnow(),
        },
    )


def update_product_cost(
    conn: Connection,
    product_id: int,
    cost: Decimal,
    method: str,
    *,
    now: datetime | None = None,
) -> int:
    """Persist a product's cost basis. Returns the number of rows updated (0 if the product is gone)."""
    table = Product.__table__
    return conn.execute(
        update(table)
        .where(table.c.id == product_id)
        .values(cost=cost, cost_method=method, cost_recalculated_at=now or utcnow())
    ).rowcount
