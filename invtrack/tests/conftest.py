"""Pytest configuration and fixtures for service layer tests."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker, scoped_session

from invtrack.models import (
    SKU,
    BOMLine,
    BOMVersion,
    Company,
    Component,
    InventoryBalance,
    Location,
    Lot,
    LotBalance,
    Transaction,
    TransactionLine,
)
from invtrack.models.base import Base
from invtrack.services.database import create_database_engine


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database (shared across threads so the
       FastAPI TestClient can reach it)
    2. Creates all tables
    3. Points the services at a thread-local session registry
    4. Yields a callable returning the separate session fixtures write with
    5. Drops all tables after the test completes

    Fixture data lives in its own session, so a service that rolls back and
    closes its session never expires or detaches it.
    """
    engine = create_database_engine("sqlite:///:memory:", echo=False)

    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)
    fixture_session = session_factory()

    # Monkey-patch the global session factory for tests
    import invtrack.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    yield lambda: fixture_session

    fixture_session.close()
    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    db_module.get_session_factory = original_get_session


# =============================================================================
# Tenant Fixtures
# =============================================================================


def _create_company(session, name, settings=None):
    company = Company(name=name, settings=settings or {})
    session.add(company)
    session.flush()
    location = Location(company_id=company.id, name="Main Warehouse", is_default=True)
    session.add(location)
    session.commit()
    return company, location


@pytest.fixture
def company(test_db):
    """Company with a default location (use company_location for it)."""
    company, _ = _create_company(test_db(), "Acme Goods")
    return company


@pytest.fixture
def company_location(test_db, company):
    return (
        test_db()
        .query(Location)
        .filter(Location.company_id == company.id, Location.is_default.is_(True))
        .one()
    )


@pytest.fixture
def other_company(test_db):
    """A second tenant with its own location."""
    company, _ = _create_company(test_db(), "Other Co")
    return company


@pytest.fixture
def second_location(test_db, company):
    session = test_db()
    location = Location(company_id=company.id, name="3PL East", type="threepl")
    session.add(location)
    session.commit()
    return location


# =============================================================================
# Catalog Fixtures
# =============================================================================


def add_component(session, company_id, name, sku_code, cost="1.00"):
    component = Component(
        company_id=company_id,
        name=name,
        sku_code=sku_code,
        cost_per_unit=Decimal(cost),
    )
    session.add(component)
    session.commit()
    return component


def add_bom(session, sku_id, version_name, start, lines, end=None, is_active=False):
    """Create a BOM version; lines are (component_id, quantity_per_unit) pairs."""
    bom = BOMVersion(
        sku_id=sku_id,
        version_name=version_name,
        effective_start_date=start,
        effective_end_date=end,
        is_active=is_active,
    )
    for position, (component_id, quantity) in enumerate(lines):
        bom.lines.append(
            BOMLine(
                component_id=component_id,
                quantity_per_unit=Decimal(str(quantity)),
                position=position,
            )
        )
    session.add(bom)
    session.commit()
    return bom


def add_stock(session, company_id, component_id, location_id, quantity, lot_id=None):
    """Write an initial ledger line and its balance directly."""
    quantity = Decimal(str(quantity))
    transaction = Transaction(
        company_id=company_id,
        type="initial",
        date=date(2025, 1, 1),
        location_id=location_id,
        created_by_id="fixture",
    )
    transaction.lines.append(
        TransactionLine(
            component_id=component_id,
            lot_id=lot_id,
            location_id=location_id,
            quantity_change=quantity,
        )
    )
    session.add(transaction)
    balance = (
        session.query(InventoryBalance)
        .filter(
            InventoryBalance.component_id == component_id,
            InventoryBalance.location_id == location_id,
        )
        .first()
    )
    if balance is None:
        session.add(
            InventoryBalance(component_id=component_id, location_id=location_id, quantity=quantity)
        )
    else:
        balance.quantity = Decimal(str(balance.quantity)) + quantity
    session.commit()


def add_lot(session, component_id, lot_number, quantity, expiry_date=None):
    lot = Lot(
        component_id=component_id,
        lot_number=lot_number,
        expiry_date=expiry_date,
        received_quantity=Decimal(str(quantity)),
    )
    lot.balance = LotBalance(quantity=Decimal(str(quantity)))
    session.add(lot)
    session.commit()
    return lot


@pytest.fixture
def widget(test_db, company):
    """Component C1, pooled by default."""
    return add_component(test_db(), company.id, "Widget", "C1", cost="2.50")


@pytest.fixture
def gadget(test_db, company):
    return add_component(test_db(), company.id, "Gadget", "C2", cost="1.00")


@pytest.fixture
def sku(test_db, company):
    session = test_db()
    sku = SKU(company_id=company.id, name="Widget Kit", internal_code="KIT-1")
    session.add(sku)
    session.commit()
    return sku


@pytest.fixture
def bom_v1(test_db, sku, widget):
    """v1: 2 x Widget per unit, effective from 2025-01-01, open-ended."""
    return add_bom(test_db(), sku.id, "v1", date(2025, 1, 1), [(widget.id, 2)], is_active=True)


@pytest.fixture
def stocked_widget(test_db, company, company_location, widget):
    """100 Widgets on hand at the default location."""
    add_stock(test_db(), company.id, widget.id, company_location.id, 100)
    return widget


@pytest.fixture
def balance_of(test_db):
    """Fresh read of an InventoryBalance quantity (0 if no row)."""

    def _balance_of(component_id, location_id):
        session = test_db()
        session.expire_all()
        row = (
            session.query(InventoryBalance)
            .filter(
                InventoryBalance.component_id == component_id,
                InventoryBalance.location_id == location_id,
            )
            .first()
        )
        return Decimal(str(row.quantity)) if row else Decimal("0")

    return _balance_of


@pytest.fixture
def lot_balance_of(test_db):
    def _lot_balance_of(lot_id):
        session = test_db()
        session.expire_all()
        row = session.query(LotBalance).filter(LotBalance.lot_id == lot_id).first()
        return Decimal(str(row.quantity)) if row else Decimal("0")

    return _lot_balance_of


@pytest.fixture
def row_count(test_db):
    """Count rows of a model."""

    def _row_count(model):
        session = test_db()
        session.expire_all()
        return session.query(model).count()

    return _row_count
