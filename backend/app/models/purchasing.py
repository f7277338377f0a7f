from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, utcnow


def _money(value):
    return str(value) if value is not None else None


class Purchase(db.Model):
    """
    Purchase order header.

    purchase_date is the business date used to pick an item's latest
    purchase price; lines of soft-deleted purchases still count unless the
    line itself is deleted.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_purchase_date", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_number = db.Column(db.String(64), nullable=False, unique=True)  # PO-2025-001
    supplier_name = db.Column(db.String(255), nullable=True)
    purchase_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="draft")  # draft, sent, partial, received, cancelled
    total_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_number": self.purchase_number,
            "supplier_name": self.supplier_name,
            "purchase_date": self.purchase_date.isoformat() if self.purchase_date else None,
            "status": self.status,
            "total_amount": _money(self.total_amount),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
        }


class PurchaseLine(db.Model):
    """
    Purchase line: quantity of one item bought at unit_cost.

    WHY: unit_cost is the input of product cost basis. Creating, deleting or
    repricing a line re-derives the cost of every product whose recipe uses
    the item.
    """
    __tablename__ = "purchase_items"
    __table_args__ = (
        db.Index("ix_purchase_items_item_created", "item_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)

    quantity_ordered = db.Column(db.Numeric(15, 3), nullable=False)
    quantity_received = db.Column(db.Numeric(15, 3), nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=True)
    unit_cost = db.Column(db.Numeric(15, 2), nullable=False)
    total_cost = db.Column(db.Numeric(15, 2), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    purchase = db.relationship("Purchase", backref=db.backref("lines", lazy=True, cascade="all, delete-orphan"))
    item = db.relationship("Item", backref=db.backref("purchase_lines", lazy=True))

    def __repr__(self) -> str:
        return f"<PurchaseLine id={self.id} item_id={self.item_id} unit_cost={self.unit_cost}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "item_id": self.item_id,
            "quantity_ordered": str(self.quantity_ordered),
            "quantity_received": str(self.quantity_received),
            "unit": self.unit,
            "unit_cost": _money(self.unit_cost),
            "total_cost": _money(self.total_cost),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
        }
