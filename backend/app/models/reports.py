from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class OrderSnapshotCache(db.Model):
    """
    Denormalized transaction-history row, one per live order.

    DERIVED: written only by OrderCacheMaintainer, always rebuilt from the
    authoritative tables (orders, customers, payments, order_items), never
    patched field by field. Absent for soft-deleted orders.

    items_detail is a JSON list of {"name": ..., "quantity": ...} in
    order-item order.
    """
    __tablename__ = "report_transaction_cache"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_report_transaction_cache_order_id"),
        db.Index("ix_report_transaction_cache_date_time", "order_date", "order_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    # No FK: the cache row must be deletable after its order is already gone
    order_id = db.Column(db.Integer, nullable=False)
    order_number = db.Column(db.String(64), nullable=False)
    order_date = db.Column(db.Date, nullable=False, index=True)
    order_time = db.Column(db.Time, nullable=False)
    customer_name = db.Column(db.String(255), nullable=True)
    table_number = db.Column(db.String(16), nullable=True)
    order_type = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, index=True)
    total_amount = db.Column(db.Numeric(15, 2), nullable=False)
    payment_method = db.Column(db.String(32), nullable=True)
    items_count = db.Column(db.Integer, nullable=False, default=0)
    items_detail = db.Column(db.JSON, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "order_date": self.order_date.isoformat(),
            "order_time": self.order_time.strftime("%H:%M:%S"),
            "customer_name": self.customer_name,
            "table_number": self.table_number,
            "order_type": self.order_type,
            "status": self.status,
            "total_amount": str(self.total_amount),
            "payment_method": self.payment_method,
            "items_count": self.items_count,
            "items_detail": self.items_detail or [],
            "notes": self.notes,
            "updated_at": to_utc_z(self.updated_at),
        }


class DailySalesSummary(db.Model):
    """
    Daily sales rollup, one row per calendar (UTC) date.

    DERIVED: fully recomputed by DailySummaryMaintainer on every trigger for
    the date, so it self-heals from any earlier drift. Money columns only
    aggregate orders whose status is "completed".
    """
    __tablename__ = "report_sales_daily"
    __table_args__ = (
        db.UniqueConstraint("report_date", name="uq_report_sales_daily_report_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    report_date = db.Column(db.Date, nullable=False, index=True)
    total_orders = db.Column(db.Integer, nullable=False, default=0)
    completed_orders = db.Column(db.Integer, nullable=False, default=0)
    cancelled_orders = db.Column(db.Integer, nullable=False, default=0)
    total_revenue = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    total_discount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    total_tax = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    average_order_value = db.Column(db.Numeric(15, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "report_date": self.report_date.isoformat(),
            "total_orders": self.total_orders,
            "completed_orders": self.completed_orders,
            "cancelled_orders": self.cancelled_orders,
            "total_revenue": str(self.total_revenue),
            "total_discount": str(self.total_discount),
            "total_tax": str(self.total_tax),
            "average_order_value": str(self.average_order_value),
            "updated_at": to_utc_z(self.updated_at),
        }
