from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, utcnow

ORDER_STATUSES = ("draft", "pending", "preparing", "ready", "completed", "cancelled", "refunded")
ORDER_TYPES = ("dine_in", "takeaway", "delivery")
PAYMENT_METHODS = ("cash", "card", "qris", "transfer", "gofood", "grabfood", "shopeefood")


def _money(value):
    return str(value) if value is not None else None


class Order(db.Model):
    """
    Customer order (authoritative).

    WHY: Orders are the source of truth for the report caches
    (report_transaction_cache, report_sales_daily). The caches are rebuilt
    from these rows whenever status or money fields change.

    SOFT DELETE:
    - deleted_at set   -> order is hidden everywhere, cache row removed
    - deleted_at clear -> order restored, cache row rebuilt
    - session.delete() -> permanent delete, cache row removed

    created_at is the business date used for daily rollups, including when
    an order is deleted later.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        db.Index("ix_orders_created_deleted", "created_at", "deleted_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(64), nullable=False, unique=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    # Walk-in customers: {"name": "...", "phone": "..."}
    customer_info = db.Column(db.JSON, nullable=True)

    order_type = db.Column(db.String(16), nullable=False, default="dine_in", index=True)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    table_number = db.Column(db.String(16), nullable=True)
    guest_count = db.Column(db.Integer, nullable=False, default=1)

    subtotal = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    service_charge = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    # Python-side default so the value is on the instance right after INSERT
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status}>"

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "customer_info": self.customer_info,
            "order_type": self.order_type,
            "status": self.status,
            "table_number": self.table_number,
            "guest_count": self.guest_count,
            "subtotal": _money(self.subtotal),
            "discount_amount": _money(self.discount_amount),
            "tax_amount": _money(self.tax_amount),
            "service_charge": _money(self.service_charge),
            "total_amount": _money(self.total_amount),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "version_id": self.version_id,
        }


class OrderItem(db.Model):
    """Line items on an order. product_id is nulled when the product is removed."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    total_price = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("items", lazy=True, cascade="all, delete-orphan"))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": _money(self.unit_price),
            "total_price": _money(self.total_price),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class Payment(db.Model):
    """
    Payment record for an order.

    TENDER TYPES: cash, card, qris, transfer and the food-delivery
    platforms (gofood, grabfood, shopeefood).

    The first payment recorded for an order is the one shown in the
    transaction history cache; orders without a payment display "cash".
    """
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_method = db.Column(db.String(32), nullable=False, default="cash")
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    bank = db.Column(db.String(64), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    order = db.relationship("Order", backref=db.backref("payments", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "payment_method": self.payment_method,
            "amount": _money(self.amount),
            "bank": self.bank,
            "paid_at": to_utc_z(self.paid_at),
        }
