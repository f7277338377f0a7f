# Overview: Maintains the per-order transaction history cache (report_transaction_cache).

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Iterable

from sqlalchemy.engine import Connection

from . import report_queries, report_store
from .daily_summary_service import DailySummaryMaintainer
from .report_store import OrderSnapshot
from app.time_utils import as_date
"""
Transaction Cache Invariants (authoritative)

- A cache row exists iff its order exists and is not soft-deleted.
- Rows are rebuilt from scratch from orders/customers/payments/order_items;
  no field is ever patched on its own, so any rebuild converges.
- Updates only rebuild when a field shown in reports changed
  (REBUILD_FIELDS). notes is copied on rebuild but never triggers one.
- Every rebuild or removal refreshes the daily rollup of the order's own
  created_at date, including for deletes long after the order was placed.
- Nothing raised in here reaches the code that mutated the order.
"""

REBUILD_FIELDS = frozenset({"status", "total_amount", "discount_amount", "tax_amount"})

OUTCOME_REBUILT = "rebuilt"
OUTCOME_DELETED = "deleted"
OUTCOME_SKIPPED = "skipped"
OUTCOME_MISSING = "missing"
OUTCOME_FAILED = "failed"


def build_snapshot(source: report_queries.OrderSource, items: Iterable[report_queries.OrderItemDetail]) -> OrderSnapshot:
    created_at = source.created_at
    return OrderSnapshot(
        order_number=source.order_number,
        order_date=created_at.date(),
        order_time=created_at.time().replace(microsecond=0),
        customer_name=source.customer_name,
        table_number=source.table_number,
        order_type=source.order_type,
        status=source.status,
        total_amount=source.total_amount,
        payment_method=source.payment_method,
        items=tuple(items),
        notes=source.notes,
    )


class OrderCacheMaintainer:
    """Observer of Order lifecycle events; owns report_transaction_cache rows."""

    def __init__(
        self,
        *,
        summary: DailySummaryMaintainer,
        queries=report_queries,
        store=report_store,
        logger: logging.Logger | None = None,
    ):
        self.summary = summary
        self.queries = queries
        self.store = store
        self.logger = logger or logging.getLogger(__name__)

    # -- lifecycle hooks -----------------------------------------------------

    def on_created(self, conn: Connection, order) -> str:
        return self._run(conn, order, "created", self._rebuild)

    def on_restored(self, conn: Connection, order) -> str:
        return self._run(conn, order, "restored", self._rebuild)

    def on_updated(self, conn: Connection, order, dirty_fields: Iterable[str]) -> str:
        if not REBUILD_FIELDS.intersection(dirty_fields):
            return OUTCOME_SKIPPED
        return self._run(conn, order, "updated", self._rebuild)

    def on_deleted(self, conn: Connection, order) -> str:
        return self._run(conn, order, "deleted", self._remove)

    def on_permanently_deleted(self, conn: Connection, order) -> str:
        return self._run(conn, order, "permanently_deleted", self._remove)

    # -- batch ---------------------------------------------------------------

    def rebuild_for_date(self, conn: Connection, day: date, *, force: bool = False) -> int:
        """
        Rebuild every live order of a day, then that day's rollup.

        force=True first wipes the day's cache rows, dropping rows whose
        order no longer exists. Returns the number of rows rebuilt.
        """
        if force:
            with conn.begin_nested():
                removed = self.store.delete_snapshots_for_date(conn, day)
            self.logger.info("Cleared %s cached transactions for %s", removed, day)

        rebuilt = 0
        for order_id in self.queries.order_ids_for_date(conn, day):
            if self._guarded(conn, order_id, "rebuild", self._rebuild) == OUTCOME_REBUILT:
                rebuilt += 1
        self.summary.refresh(conn, day)
        return rebuilt

    # -- internals -----------------------------------------------------------

    def _run(self, conn: Connection, order, operation: str, step: Callable[[Connection, int], str]) -> str:
        try:
            order_id = order.id
            report_date = as_date(order.created_at) if order.created_at is not None else None
        except Exception:
            self.logger.exception("Failed to read order for report cache (%s)", operation, extra={"operation": operation})
            return OUTCOME_FAILED

        outcome = self._guarded(conn, order_id, operation, step)
        if report_date is not None:
            self.summary.refresh(conn, report_date)
        return outcome

    def _guarded(self, conn: Connection, order_id: int, operation: str, step: Callable[[Connection, int], str]) -> str:
        try:
            with conn.begin_nested():
                return step(conn, order_id)
        except Exception:
            self.logger.exception(
                "Failed to update report cache for order %s (%s)",
                order_id,
                operation,
                extra={"order_id": order_id, "operation": operation},
            )
            return OUTCOME_FAILED

    def _rebuild(self, conn: Connection, order_id: int) -> str:
        source = self.queries.order_source(conn, order_id)
        if source is None or source.deleted_at is not None:
            self.store.delete_order_snapshot(conn, order_id)
            return OUTCOME_MISSING

        items = self.queries.order_items(conn, order_id)
        self.store.upsert_order_snapshot(conn, order_id, build_snapshot(source, items))
        return OUTCOME_REBUILT

    def _remove(self, conn: Connection, order_id: int) -> str:
        self.store.delete_order_snapshot(conn, order_id)
        return OUTCOME_DELETED
