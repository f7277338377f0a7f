# Overview: Read side of the report cache; serves cached transactions and daily rollups.

from __future__ import annotations

from datetime import date, timedelta

from app.extensions import db
from app.models import DailySalesSummary, OrderSnapshotCache
from app.time_utils import parse_iso_date, utcnow

MAX_RANGE_DAYS = 366


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


def _parse_day(value: str | None, name: str) -> date | None:
    if not value:
        return None
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ReportError(f"{name} must be YYYY-MM-DD")


def transactions_for_date(day: str | None) -> dict:
    """
    Cached transaction history for one date (default: today, UTC), newest first.

    Reads report_transaction_cache only; it never touches orders.
    """
    report_date = _parse_day(day, "date") or utcnow().date()
    rows = (
        db.session.query(OrderSnapshotCache)
        .filter(OrderSnapshotCache.order_date == report_date)
        .order_by(OrderSnapshotCache.order_time.desc(), OrderSnapshotCache.order_id.desc())
        .all()
    )
    return {
        "date": report_date.isoformat(),
        "count": len(rows),
        "transactions": [row.to_dict() for row in rows],
    }


def daily_summaries(start: str | None, end: str | None) -> dict:
    """
    Daily rollup rows for an inclusive date range (default: the last 7 days).

    Dates with no stored row are omitted, not reported as zero.
    """
    end_date = _parse_day(end, "end") or utcnow().date()
    start_date = _parse_day(start, "start") or end_date - timedelta(days=6)
    if start_date > end_date:
        raise ReportError("start must be on or before end")
    if (end_date - start_date).days >= MAX_RANGE_DAYS:
        raise ReportError(f"range must be at most {MAX_RANGE_DAYS} days")

    rows = (
        db.session.query(DailySalesSummary)
        .filter(DailySalesSummary.report_date >= start_date)
        .filter(DailySalesSummary.report_date <= end_date)
        .order_by(DailySalesSummary.report_date.asc())
        .all()
    )
    return {
        "start": start_date.isoformat(),
        "end": end_date.isoformat(),
        "days": [row.to_dict() for row in rows],
    }
