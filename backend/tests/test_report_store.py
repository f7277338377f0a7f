from contextlib import contextmanager
from datetime import date, time
from decimal import Decimal

from sqlalchemy import event

from app.extensions import db
from app.models import DailySalesSummary, OrderSnapshotCache
from app.services import report_store
from app.services.report_queries import DailyAggregates, OrderItemDetail

from conftest import BUSINESS_DAY


def _snapshot(**changes):
    values = dict(
        order_number="ORD-77001",
        order_date=BUSINESS_DAY,
        order_time=time(11, 15),
        customer_name="Guest",
        table_number="B2",
        order_type="dine_in",
        status="pending",
        total_amount=Decimal("30000.00"),
        payment_method="cash",
        items=(OrderItemDetail(name="Es Teh", quantity=2),),
        notes=None,
    )
    values.update(changes)
    return report_store.OrderSnapshot(**values)


def _aggregates(total_orders, revenue):
    return DailyAggregates(
        total_orders=total_orders,
        completed_orders=total_orders,
        cancelled_orders=0,
        total_revenue=Decimal(revenue),
        total_discount=Decimal("0.00"),
        total_tax=Decimal("0.00"),
        average_order_value=(Decimal(revenue) / total_orders).quantize(Decimal("0.01")),
    )


@contextmanager
def _statements():
    seen = []

    def record(conn, cursor, statement, parameters, context, executemany):
        seen.append(statement)

    event.listen(db.engine, "before_cursor_execute", record)
    try:
        yield seen
    finally:
        event.remove(db.engine, "before_cursor_execute", record)


class TestOrderSnapshotUpsert:
    def test_first_write_is_a_single_conflict_aware_insert(self, db_session):
        conn = db_session.connection()

        with _statements() as seen:
            report_store.upsert_order_snapshot(conn, 501, _snapshot())

        assert len(seen) == 1
        assert "ON CONFLICT" in seen[0].upper()

    def test_repeated_writes_keep_one_row_with_latest_values(self, db_session):
        conn = db_session.connection()
        report_store.upsert_order_snapshot(conn, 502, _snapshot())
        report_store.upsert_order_snapshot(
            conn,
            502,
            _snapshot(status="completed", items=(OrderItemDetail(name="Es Teh", quantity=3),)),
        )
        db_session.commit()

        db_session.expire_all()
        rows = db_session.query(OrderSnapshotCache).filter_by(order_id=502).all()
        assert len(rows) == 1
        assert rows[0].status == "completed"
        assert rows[0].items_count == 1
        assert rows[0].items_detail == [{"name": "Es Teh", "quantity": 3}]

    def test_update_then_insert_on_other_dialects(self, db_session, monkeypatch):
        monkeypatch.setattr(report_store, "_DIALECT_INSERTS", {})
        conn = db_session.connection()

        with _statements() as seen:
            report_store.upsert_order_snapshot(conn, 503, _snapshot())
            report_store.upsert_order_snapshot(conn, 503, _snapshot(status="cancelled"))
        db_session.commit()

        assert [s.split()[0].upper() for s in seen] == ["UPDATE", "INSERT", "UPDATE"]
        db_session.expire_all()
        assert db_session.query(OrderSnapshotCache).filter_by(order_id=503).one().status == "cancelled"


class TestDailySummaryUpsert:
    def test_same_day_twice_overwrites(self, db_session):
        conn = db_session.connection()
        day = date(2025, 2, 1)

        with _statements() as seen:
            report_store.upsert_daily_summary(conn, day, _aggregates(1, "10000.00"))
            report_store.upsert_daily_summary(conn, day, _aggregates(2, "50000.00"))
        db_session.commit()

        assert len(seen) == 2
        db_session.expire_all()
        rows = db_session.query(DailySalesSummary).filter_by(report_date=day).all()
        assert len(rows) == 1
        assert rows[0].total_orders == 2
        assert rows[0].total_revenue == Decimal("50000.00")
        assert rows[0].average_order_value == Decimal("25000.00")
