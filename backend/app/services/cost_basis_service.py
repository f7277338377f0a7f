# Overview: Product cost basis (HPP) propagation from purchase prices through product compositions.

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from sqlalchemy.engine import Connection

from . import report_queries, report_store
from .report_queries import CompositionLine, CostLookup, NoCostData, NoPurchaseHistory, to_money
from app.time_utils import utcnow
"""
Cost Basis Invariants (authoritative)

Costing methods (per composition line):
- current: recipe override cost_per_unit, else items.cost_per_unit
- latest:  unit cost of the item's latest live purchase line, else items.cost_per_unit
- average: mean unit cost of the item's live purchase lines, else items.cost_per_unit

Product cost = SUM(quantity_needed * line cost) over ALL composition lines,
rounded half-up to 0.01. A product whose lines cannot all be costed is
skipped (its stored cost is left alone), never written as 0.

Propagation from a purchase line:
- If the changed item itself has no purchase history, nothing is written.
- Otherwise every product using the item is recalculated, each in its own
  SAVEPOINT: one failing product does not stop the others.
- Nothing raised in here reaches the code that mutated the purchase line.
"""

METHOD_CURRENT = "current"
METHOD_LATEST = "latest"
METHOD_AVERAGE = "average"
COST_METHODS = (METHOD_CURRENT, METHOD_LATEST, METHOD_AVERAGE)

DEFAULT_MARKUP_PCT = 30.0


class CostBasisError(ValueError):
    """Bad HPP request: unknown method, bad markup or unknown product."""


class ProductNotFound(CostBasisError):
    pass


def resolve_method(method: str | None, default: str = METHOD_LATEST) -> str:
    resolved = (method or default).strip().lower()
    if resolved not in COST_METHODS:
        raise CostBasisError(f"method must be one of: {', '.join(COST_METHODS)}")
    return resolved


def make_cost_source(conn: Connection, method: str, *, queries=report_queries) -> CostLookup:
    """
    Per-line cost lookup for a costing method.

    Purchase costs are memoized per item for the lifetime of the returned
    callable (one recalculation pass). Raises NoCostData for a line with
    no usable cost at all.
    """
    purchase_cost = {
        METHOD_LATEST: queries.latest_purchase_cost,
        METHOD_AVERAGE: queries.average_purchase_cost,
    }.get(method)
    memo: dict[int, Decimal | None] = {}

    def lookup(line: CompositionLine) -> Decimal:
        if purchase_cost is None:
            cost = line.cost_override if line.cost_override is not None else line.item_cost
        else:
            if line.item_id not in memo:
                try:
                    memo[line.item_id] = purchase_cost(conn, line.item_id)
                except NoPurchaseHistory:
                    memo[line.item_id] = None
            cost = memo[line.item_id]
            if cost is None:
                cost = line.item_cost
        if cost is None:
            raise NoCostData(line.item_id)
        return cost

    return lookup


@dataclass(frozen=True)
class CostChange:
    product_id: int
    product_name: str
    old_cost: Decimal | None
    new_cost: Decimal
    method: str

    @property
    def difference(self) -> Decimal:
        return self.new_cost - (self.old_cost or Decimal("0.00"))

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "old_cost": str(self.old_cost) if self.old_cost is not None else None,
            "new_cost": str(self.new_cost),
            "difference": str(self.difference),
            "method": self.method,
        }


class CostBasisPropagator:
    """
    Observer of PurchaseLine lifecycle events; owns products.cost,
    products.cost_method and products.cost_recalculated_at.
    """

    def __init__(
        self,
        *,
        queries=report_queries,
        store=report_store,
        default_method: str = METHOD_LATEST,
        logger: logging.Logger | None = None,
    ):
        self.queries = queries
        self.store = store
        self.default_method = resolve_method(default_method)
        self.logger = logger or logging.getLogger(__name__)

    # -- lifecycle hooks -----------------------------------------------------

    def on_created(self, conn: Connection, line) -> list[int]:
        return self._run(conn, line, "created")

    def on_updated(self, conn: Connection, line, dirty_fields: Iterable[str]) -> list[int]:
        if "unit_cost" not in set(dirty_fields):
            return []
        return self._run(conn, line, "updated")

    def on_deleted(self, conn: Connection, line) -> list[int]:
        return self._run(conn, line, "deleted")

    def on_permanently_deleted(self, conn: Connection, line) -> list[int]:
        return self._run(conn, line, "permanently_deleted")

    def on_restored(self, conn: Connection, line) -> list[int]:
        return self._run(conn, line, "restored")

    # -- propagation ---------------------------------------------------------

    def propagate(self, conn: Connection, item_id: int, method: str | None = None) -> list[int]:
        """Recalculate every product using the item. Returns the ids of products whose cost was written."""
        try:
            method = resolve_method(method, self.default_method)
            with conn.begin_nested():
                if method != METHOD_CURRENT:
                    # Raises NoPurchaseHistory: skip the fan-out instead of writing fallback costs
                    if method == METHOD_LATEST:
                        self.queries.latest_purchase_cost(conn, item_id)
                    else:
                        self.queries.average_purchase_cost(conn, item_id)
                product_ids = self.queries.products_using_item(conn, item_id)
        except NoPurchaseHistory:
            self.logger.info(
                "Item %s has no purchase history, skipping HPP update",
                item_id,
                extra={"item_id": item_id, "method": method},
            )
            return []
        except Exception:
            self.logger.exception(
                "Error updating HPP for item %s",
                item_id,
                extra={"item_id": item_id, "method": method},
            )
            return []

        changes = []
        for product_id in product_ids:
            change = self.recalculate_product(conn, product_id, method)
            if change is not None:
                changes.append(change)

        self.logger.info(
            "HPP updated for %s products due to item %s price change",
            len(changes),
            item_id,
            extra={
                "item_id": item_id,
                "method": method,
                "affected_products": [change.to_dict() for change in changes],
            },
        )
        return [change.product_id for change in changes]

    def recalculate_product(self, conn: Connection, product_id: int, method: str | None = None) -> CostChange | None:
        """Recompute and store one product's cost. Returns None when skipped or failed."""
        try:
            method = resolve_method(method, self.default_method)
            with conn.begin_nested():
                return self._recalculate(conn, product_id, method)
        except NoCostData as exc:
            self.logger.warning(
                "Skipping HPP update for product %s: %s",
                product_id,
                exc,
                extra={"product_id": product_id, "item_id": exc.item_id, "method": method},
            )
        except Exception:
            self.logger.exception(
                "Error updating HPP for product %s",
                product_id,
                extra={"product_id": product_id, "method": method},
            )
        return None

    def recalculate_all(self, conn: Connection, method: str | None = None) -> list[CostChange]:
        """Bulk recalculation of every active product that has a composition."""
        method = resolve_method(method, self.default_method)
        changes = []
        product_ids = self.queries.products_with_composition(conn)
        for product_id in product_ids:
            change = self.recalculate_product(conn, product_id, method)
            if change is not None:
                changes.append(change)
        self.logger.info(
            "Bulk HPP update completed for %s of %s products",
            len(changes),
            len(product_ids),
            extra={"method": method},
        )
        return changes

    # -- internals -----------------------------------------------------------

    def _run(self, conn: Connection, line, event: str) -> list[int]:
        line_id = item_id = None
        try:
            line_id = line.id
            item_id = line.item_id
            if item_id is None:
                return []
            self.logger.info(
                "Purchase line %s %s, updating related products HPP",
                line_id,
                event,
                extra={"purchase_item_id": line_id, "item_id": item_id, "operation": event},
            )
            return self.propagate(conn, item_id)
        except Exception:
            self.logger.exception(
                "Error updating HPP after purchase line %s",
                event,
                extra={"purchase_item_id": line_id, "item_id": item_id, "operation": event},
            )
            return []

    def _recalculate(self, conn: Connection, product_id: int, method: str) -> CostChange | None:
        product = self.queries.product_cost_row(conn, product_id)
        if product is None:
            return None
        lines = self.queries.composition(conn, product_id)
        if not lines:
            return None

        new_cost = self.queries.fold_composition_cost(lines, make_cost_source(conn, method, queries=self.queries))
        self.store.update_product_cost(conn, product_id, new_cost, method, now=utcnow())
        return CostChange(
            product_id=product.id,
            product_name=product.name,
            old_cost=product.cost,
            new_cost=new_cost,
            method=method,
        )


# =============================================================================
# READ-ONLY HPP REPORTS
# =============================================================================

def require_product(conn: Connection, product_id: int) -> report_queries.ProductCostRow:
    product = report_queries.product_cost_row(conn, product_id)
    if product is None:
        raise ProductNotFound("Product not found")
    return product


def cost_breakdown(conn: Connection, product_id: int, method: str | None = None) -> dict:
    """
    Line-by-line HPP for a product under one method.

    Lines without any usable cost are reported with cost_per_unit None and
    flip "complete" to False; the total only covers costed lines.
    """
    method = resolve_method(method)
    require_product(conn, product_id)
    lookup = make_cost_source(conn, method)

    rows = []
    total = Decimal("0")
    complete = True
    for line in report_queries.composition(conn, product_id):
        try:
            unit_cost = lookup(line)
        except NoCostData:
            unit_cost = None
            complete = False
        line_cost = to_money(line.quantity_needed * unit_cost) if unit_cost is not None else None
        if line_cost is not None:
            total += line_cost
        rows.append(
            {
                "item_id": line.item_id,
                "item_code": line.item_code,
                "item_name": line.item_name,
                "unit": line.unit,
                "quantity_needed": str(line.quantity_needed),
                "cost_per_unit": str(unit_cost) if unit_cost is not None else None,
                "total_cost": str(line_cost) if line_cost is not None else None,
                "is_critical": line.is_critical,
                "notes": line.notes,
            }
        )

    return {
        "product_id": product_id,
        "method": method,
        "items": rows,
        "total_hpp": str(to_money(total)),
        "complete": complete,
    }


def _method_total(conn: Connection, product_id: int, method: str) -> Decimal | None:
    try:
        return report_queries.weighted_composition_cost(conn, product_id, make_cost_source(conn, method))
    except NoCostData:
        return None


def compare_methods(conn: Connection, product_id: int) -> dict:
    """HPP of a product under every costing method side by side."""
    product = require_product(conn, product_id)
    totals = {method: _method_total(conn, product_id, method) for method in COST_METHODS}
    return {
        "product_id": product.id,
        "product_name": product.name,
        "current_cost": str(product.cost) if product.cost is not None else None,
        "current_price": str(product.price),
        "hpp_methods": {method: (str(total) if total is not None else None) for method, total in totals.items()},
    }


def suggested_price(conn: Connection, product_id: int, markup_pct: float = DEFAULT_MARKUP_PCT) -> dict:
    """Selling price suggestion per method: hpp * (1 + markup/100), rounded to a whole unit."""
    if markup_pct < 0:
        raise CostBasisError("markup must be >= 0")
    product = require_product(conn, product_id)
    markup = Decimal(str(markup_pct))

    suggestions = {}
    for method in COST_METHODS:
        hpp = _method_total(conn, product_id, method)
        if hpp is None:
            suggestions[method] = None
            continue
        price = (hpp * (1 + markup / 100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        suggestions[method] = {
            "hpp": str(hpp),
            "markup_percentage": markup_pct,
            "suggested_price": str(price),
            "profit_margin": str(to_money(price - hpp)),
        }

    return {
        "product_id": product.id,
        "product_name": product.name,
        "current_price": str(product.price),
        "markup_percentage": markup_pct,
        "suggestions": suggestions,
    }
