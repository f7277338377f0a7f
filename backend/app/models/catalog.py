from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


def _money(value):
    return str(value) if value is not None else None


class Product(db.Model):
    """
    Sellable product master data.

    COST BASIS (HPP):
    - cost is the per-unit cost derived from the product's composition
      (ProductItem rows), never typed in by the cashier-facing UI.
    - cost_method records which costing method produced the stored cost:
      "current" (recipe/item cost), "latest" (latest purchase price),
      "average" (mean purchase price).
    - cost_recalculated_at is set on every successful recalculation.

    WHY: Purchase prices of raw items move constantly; products keep a
    stored cost so margin reports don't have to walk every recipe.
    Only the cost-basis propagator writes these three columns.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    price = db.Column(db.Numeric(15, 2), nullable=False, default=0)

    # Derived cost basis
    cost = db.Column(db.Numeric(15, 2), nullable=True)
    cost_method = db.Column(db.String(16), nullable=True)
    cost_recalculated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "price": _money(self.price),
            "cost": _money(self.cost),
            "cost_method": self.cost_method,
            "cost_recalculated_at": to_utc_z(self.cost_recalculated_at) if self.cost_recalculated_at else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Item(db.Model):
    """
    Purchasable raw material (flour, milk, cups...).

    cost_per_unit is a manually maintained fallback cost, used when an item
    has no purchase history or the "current" costing method is selected.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.Index("ix_items_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_code = db.Column(db.String(50), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=False, default="pcs")  # kg, gram, liter, ml, pcs
    cost_per_unit = db.Column(db.Numeric(15, 2), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Item id={self.id} code={self.item_code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_code": self.item_code,
            "name": self.name,
            "unit": self.unit,
            "cost_per_unit": _money(self.cost_per_unit),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductItem(db.Model):
    """
    Product composition (recipe / bill of materials).

    One row per (product, item): quantity_needed units of the item go into
    one unit of the product. cost_per_unit optionally overrides the item's
    cost for this recipe only.
    """
    __tablename__ = "product_items"
    __table_args__ = (
        db.UniqueConstraint("product_id", "item_id", name="uq_product_items_product_item"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)

    quantity_needed = db.Column(db.Numeric(15, 3), nullable=False)
    unit = db.Column(db.String(32), nullable=True)
    cost_per_unit = db.Column(db.Numeric(15, 2), nullable=True)
    is_critical = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("composition", lazy=True, cascade="all, delete-orphan"))
    item = db.relationship("Item", backref=db.backref("product_links", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "item_id": self.item_id,
            "quantity_needed": str(self.quantity_needed),
            "unit": self.unit,
            "cost_per_unit": _money(self.cost_per_unit),
            "is_critical": self.is_critical,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
