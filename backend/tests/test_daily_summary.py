from datetime import date
from decimal import Decimal

from app.models import DailySalesSummary
from app.services.daily_summary_service import OUTCOME_REBUILT

from conftest import BUSINESS_DAY


class TestDailySummaryMaintainer:
    def test_refresh_is_full_recompute(self, db_session, make_order, report_cache):
        make_order(total="100000.00")
        table = DailySalesSummary.__table__
        db_session.execute(table.update().values(total_revenue=Decimal("1.00"), total_orders=7))
        db_session.commit()

        conn = db_session.connection()
        assert report_cache.summary.refresh(conn, BUSINESS_DAY) == OUTCOME_REBUILT
        assert report_cache.summary.refresh(conn, BUSINESS_DAY) == OUTCOME_REBUILT
        db_session.commit()

        db_session.expire_all()
        rows = db_session.query(DailySalesSummary).filter_by(report_date=BUSINESS_DAY).all()
        assert len(rows) == 1
        assert rows[0].total_orders == 1
        assert rows[0].total_revenue == Decimal("100000.00")

    def test_refresh_of_empty_day_writes_zero_row(self, db_session, report_cache):
        report_cache.summary.refresh(db_session.connection(), date(2025, 3, 1))
        db_session.commit()

        row = db_session.query(DailySalesSummary).filter_by(report_date=date(2025, 3, 1)).one()
        assert row.total_orders == 0
        assert row.average_order_value == Decimal("0.00")

    def test_average_over_completed_orders_only(self, db_session, make_order):
        make_order(status="completed", total="100000.00")
        make_order(status="completed", total="50000.00")
        make_order(status="refunded", total="900000.00")

        db_session.expire_all()
        row = db_session.query(DailySalesSummary).filter_by(report_date=BUSINESS_DAY).one()
        assert row.total_orders == 3
        assert row.completed_orders == 2
        assert row.total_revenue == Decimal("150000.00")
        assert row.average_order_value == Decimal("75000.00")
