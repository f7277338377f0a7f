# Overview: Maintains the per-day sales rollup (report_sales_daily).

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy.engine import Connection

from . import report_queries, report_store
from app.time_utils import as_date

OUTCOME_REBUILT = "rebuilt"
OUTCOME_FAILED = "failed"


class DailySummaryMaintainer:
    """
    Recompute the rollup row of one calendar date from every live order.

    Always a full recomputation, never an increment: running it twice with
    no data change in between stores the same values, and any earlier
    drift is overwritten. Failures are logged and swallowed; the SAVEPOINT
    around the write keeps them out of the caller's transaction.
    """

    def __init__(self, *, queries=report_queries, store=report_store, logger: logging.Logger | None = None):
        self.queries = queries
        self.store = store
        self.logger = logger or logging.getLogger(__name__)

    def refresh(self, conn: Connection, day: date | datetime) -> str:
        report_date = None
        try:
            report_date = as_date(day)
            with conn.begin_nested():
                aggregates = self.queries.daily_aggregates(conn, report_date)
                self.store.upsert_daily_summary(conn, report_date, aggregates)
        except Exception:
            self.logger.exception(
                "Failed to update daily summary for %s",
                report_date,
                extra={"report_date": str(report_date), "operation": "refresh_daily_summary"},
            )
            return OUTCOME_FAILED
        return OUTCOME_REBUILT
