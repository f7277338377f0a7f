from datetime import date, datetime
from decimal import Decimal

import pytest

from app.models import Product
from app.services import report_queries
from app.services.report_queries import NoCostData, NoPurchaseHistory

from conftest import BUSINESS_DAY


class TestOrderSource:
    def test_linked_customer_name_and_first_payment(self, db_session, make_order, customer):
        order = make_order(customer=customer, payments=["qris", "cash"])

        source = report_queries.order_source(db_session.connection(), order.id)

        assert source.customer_name == "Budi Santoso"
        assert source.payment_method == "qris"
        assert source.total_amount == Decimal("100000.00")

    def test_guest_info_name_used_without_customer(self, db_session, make_order):
        order = make_order(customer_info={"name": "  Walk-in Sari ", "phone": "0813"})

        source = report_queries.order_source(db_session.connection(), order.id)

        assert source.customer_name == "Walk-in Sari"

    def test_defaults_to_guest_and_cash(self, db_session, make_order):
        order = make_order()

        source = report_queries.order_source(db_session.connection(), order.id)

        assert source.customer_name == report_queries.GUEST_CUSTOMER_NAME
        assert source.payment_method == report_queries.DEFAULT_PAYMENT_METHOD

    def test_missing_order(self, db_session):
        assert report_queries.order_source(db_session.connection(), 999) is None


class TestOrderItems:
    def test_items_in_line_order(self, db_session, make_order, make_product):
        coffee = make_product("Kopi Susu")
        toast = make_product("Roti Bakar")
        order = make_order(items=[(toast, 1), (coffee, 2)])

        items = report_queries.order_items(db_session.connection(), order.id)

        assert items == [("Roti Bakar", 1), ("Kopi Susu", 2)]

    def test_missing_product_reads_unknown(self, db_session, make_order, make_product):
        coffee = make_product("Kopi Susu")
        order = make_order(items=[(coffee, 3)])
        db_session.execute(Product.__table__.delete().where(Product.id == coffee.id))
        db_session.commit()

        items = report_queries.order_items(db_session.connection(), order.id)

        assert items == [(report_queries.UNKNOWN_PRODUCT_NAME, 3)]


class TestDailyAggregates:
    def test_rollup_example(self, db_session, make_order):
        make_order(status="completed", total="100000.00", discount="5000.00", tax="10000.00")
        make_order(status="cancelled", total="40000.00", discount="1000.00", tax="4000.00")
        make_order(status="pending", total="25000.00")

        result = report_queries.daily_aggregates(db_session.connection(), BUSINESS_DAY)

        assert result.total_orders == 3
        assert result.completed_orders == 1
        assert result.cancelled_orders == 1
        assert result.total_revenue == Decimal("100000.00")
        assert result.total_discount == Decimal("5000.00")
        assert result.total_tax == Decimal("10000.00")
        assert result.average_order_value == Decimal("100000.00")

    def test_day_is_half_open(self, db_session, make_order):
        make_order(created_at=datetime(2025, 1, 15, 0, 0, 0))
        make_order(created_at=datetime(2025, 1, 15, 23, 59, 59))
        make_order(created_at=datetime(2025, 1, 16, 0, 0, 0))

        result = report_queries.daily_aggregates(db_session.connection(), BUSINESS_DAY)

        assert result.total_orders == 2

    def test_soft_deleted_orders_excluded(self, db_session, make_order):
        make_order()
        gone = make_order()
        gone.deleted_at = datetime(2025, 1, 16, 8, 0)
        db_session.commit()

        result = report_queries.daily_aggregates(db_session.connection(), BUSINESS_DAY)

        assert result.total_orders == 1

    def test_no_completed_orders_zeroes_money(self, db_session, make_order):
        make_order(status="pending")

        result = report_queries.daily_aggregates(db_session.connection(), BUSINESS_DAY)

        assert result.total_orders == 1
        assert result.total_revenue == Decimal("0.00")
        assert result.average_order_value == Decimal("0.00")

    def test_empty_day(self, db_session):
        result = report_queries.daily_aggregates(db_session.connection(), date(2030, 1, 1))

        assert result.total_orders == 0
        assert result.total_revenue == Decimal("0.00")


class TestPurchaseCosts:
    def test_latest_by_purchase_date_then_creation(self, db_session, make_item, make_purchase_line):
        flour = make_item("Tepung")
        make_purchase_line(flour, "12000.00", purchase_date=date(2025, 1, 10))
        make_purchase_line(flour, "11000.00", purchase_date=date(2025, 1, 12))
        make_purchase_line(flour, "13000.00", purchase_date=date(2025, 1, 12))
        make_purchase_line(flour, "9000.00", purchase_date=date(2025, 1, 5))

        cost = report_queries.latest_purchase_cost(db_session.connection(), flour.id)

        assert cost == Decimal("13000.00")

    def test_average_skips_deleted_lines(self, db_session, make_item, make_purchase_line):
        milk = make_item("Susu")
        make_purchase_line(milk, "10.00")
        make_purchase_line(milk, "20.00")
        removed = make_purchase_line(milk, "90.00")
        removed.deleted_at = datetime(2025, 1, 20)
        db_session.commit()

        cost = report_queries.average_purchase_cost(db_session.connection(), milk.id)

        assert cost == Decimal("15.00")

    def test_no_purchase_history_is_distinct(self, db_session, make_item):
        sugar = make_item("Gula", cost_per_unit="5.00")

        with pytest.raises(NoPurchaseHistory) as excinfo:
            report_queries.latest_purchase_cost(db_session.connection(), sugar.id)
        assert excinfo.value.item_id == sugar.id
        assert isinstance(excinfo.value, NoCostData)

        with pytest.raises(NoPurchaseHistory):
            report_queries.average_purchase_cost(db_session.connection(), sugar.id)


class TestComposition:
    def test_fan_out_set_and_weighted_cost(self, db_session, make_item, make_product):
        x = make_item("X", cost_per_unit="1.00")
        y = make_item("Y", cost_per_unit="10.00")
        p1 = make_product("P1", composition=[(x, 2)])
        p2 = make_product("P2", composition=[(x, 1), (y, 3)])
        make_product("Unrelated", composition=[(y, 1)])

        conn = db_session.connection()
        assert report_queries.products_using_item(conn, x.id) == [p1.id, p2.id]

        cost = report_queries.weighted_composition_cost(
            conn, p2.id, lambda line: Decimal("50") if line.item_id == x.id else line.item_cost
        )
        assert cost == Decimal("80.00")

    def test_fractional_quantities_round_half_up(self):
        line = report_queries.CompositionLine(
            item_id=1, item_code="ITM", item_name="Bubuk", unit="gram",
            quantity_needed=Decimal("0.125"), cost_override=None,
            item_cost=Decimal("0.20"), is_critical=False, notes=None,
        )

        assert report_queries.fold_composition_cost([line], lambda l: l.item_cost) == Decimal("0.03")

    def test_products_with_composition_active_only(self, db_session, make_item, make_product):
        x = make_item("X", cost_per_unit="1.00")
        active = make_product("Active", composition=[(x, 1)])
        make_product("Retired", composition=[(x, 1)], is_active=False)
        make_product("No recipe")

        conn = db_session.connection()
        assert report_queries.products_with_composition(conn) == [active.id]
        assert len(report_queries.products_with_composition(conn, active_only=False)) == 2
