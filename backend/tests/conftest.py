"""
Pytest fixtures for POS back-office backend tests.

Provides the test app (in-memory SQLite, report cache observers attached to
db.session), a per-test clean database, and small factories for orders,
catalog compositions and purchase lines.
"""

from datetime import date, datetime
from decimal import Decimal
from itertools import count

import pytest
from app import create_app
from app.extensions import db
from app.models import (
    Customer,
    Item,
    Order,
    OrderItem,
    Payment,
    Product,
    ProductItem,
    Purchase,
    PurchaseLine,
)
from app.report_cache import get_report_cache

BUSINESS_DAY = date(2025, 1, 15)

_sequence = count(1)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'HPP_DEFAULT_METHOD': 'latest',
        'REPORT_CACHE_ENABLED': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
    get_report_cache(app).events.uninstall()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    return app.test_cli_runner()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema (Core deletes never reach the observers)
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def report_cache(app):
    return get_report_cache(app)


# =============================================================================
# FACTORIES
# =============================================================================

@pytest.fixture(scope='function')
def make_order(db_session):
    """
    Create and commit an order on BUSINESS_DAY (10:30 by default).

    items: list of (Product, quantity); payments: list of payment methods.
    """
    def _make(
        *,
        status="completed",
        total="100000.00",
        discount="0.00",
        tax="0.00",
        created_at=None,
        customer=None,
        customer_info=None,
        items=(),
        payments=(),
        notes=None,
        table_number="A1",
    ):
        order = Order(
            order_number=f"ORD-{next(_sequence):05d}",
            customer=customer,
            customer_info=customer_info,
            order_type="dine_in",
            status=status,
            table_number=table_number,
            subtotal=Decimal(total),
            discount_amount=Decimal(discount),
            tax_amount=Decimal(tax),
            total_amount=Decimal(total),
            notes=notes,
            created_at=created_at or datetime.combine(BUSINESS_DAY, datetime.min.time()).replace(hour=10, minute=30),
        )
        for product, quantity in items:
            order.items.append(
                OrderItem(product=product, quantity=quantity, unit_price=product.price, total_price=product.price * quantity)
            )
        for method in payments:
            order.payments.append(Payment(payment_method=method, amount=Decimal(total)))
        db_session.add(order)
        db_session.commit()
        return order

    return _make


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Budi Santoso", email="budi@example.com", phone="0812000000")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def make_product(db_session):
    def _make(name, price="25000.00", composition=(), is_active=True):
        """composition: list of (Item, quantity_needed) or (Item, quantity_needed, override)."""
        product = Product(sku=f"SKU-{next(_sequence):05d}", name=name, price=Decimal(price), is_active=is_active)
        for entry in composition:
            item, quantity = entry[0], entry[1]
            override = entry[2] if len(entry) > 2 else None
            product.composition.append(
                ProductItem(
                    item=item,
                    quantity_needed=Decimal(str(quantity)),
                    cost_per_unit=Decimal(override) if override is not None else None,
                )
            )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def make_item(db_session):
    def _make(name, cost_per_unit=None, unit="pcs"):
        item = Item(
            item_code=f"ITM-{next(_sequence):05d}",
            name=name,
            unit=unit,
            cost_per_unit=Decimal(cost_per_unit) if cost_per_unit is not None else None,
        )
        db_session.add(item)
        db_session.commit()
        return item

    return _make


@pytest.fixture(scope='function')
def make_purchase_line(db_session):
    """Create and commit a purchase (dated purchase_date) with one line."""
    def _make(item, unit_cost, *, purchase_date=BUSINESS_DAY, quantity="10"):
        purchase = Purchase(
            purchase_number=f"PO-{next(_sequence):05d}",
            supplier_name="CV Sumber Makmur",
            purchase_date=purchase_date,
            status="received",
        )
        line = PurchaseLine(
            item=item,
            quantity_ordered=Decimal(quantity),
            quantity_received=Decimal(quantity),
            unit=item.unit,
            unit_cost=Decimal(unit_cost),
            total_cost=Decimal(unit_cost) * Decimal(quantity),
        )
        purchase.lines.append(line)
        db_session.add(purchase)
        db_session.commit()
        return line

    return _make
