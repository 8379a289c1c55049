"""Shared pytest fixtures: an in-memory ledger with accounts, rates and owners."""

import datetime
from decimal import Decimal

import pytest

from travel_ledger.database.connection import create_database_engine, get_session
from travel_ledger.database.models import BookingModel
from travel_ledger.database.schema import create_tables
from travel_ledger.fx.converter import RateTable
from travel_ledger.ledger.store import LedgerStore
from travel_ledger.models.account import Account
from travel_ledger.models.booking import OwnerShare


@pytest.fixture()
def setup_session():
    engine = create_database_engine("sqlite://")
    create_tables(engine)
    session = get_session(engine)
    yield session
    session.close()
    engine.dispose()


@pytest.fixture()
def setup_store(setup_session):
    store = LedgerStore(setup_session)
    reference = store.reference
    reference.add_account(Account(id="acc-eur", name="Main EUR", currency="EUR", opening_balance=Decimal("1000")))
    reference.add_account(Account(id="acc-ron", name="Main RON", currency="RON"))
    reference.save_rate_table(RateTable(
        date=datetime.date(2025, 7, 1),
        rates={"RON": Decimal("5.0"), "USD": Decimal("1.10")},
        source="test",
    ))
    reference.save_rate_table(RateTable(
        date=datetime.date(2025, 7, 10),
        rates={"RON": Decimal("4.95"), "USD": Decimal("1.12")},
        source="test",
    ))
    store.commit()
    yield store


@pytest.fixture()
def setup_owners():
    yield [
        OwnerShare(id="a", name="Alice", share=Decimal("50"), aliases=["ALICE POPESCU"]),
        OwnerShare(id="b", name="Bogdan", share=Decimal("50")),
    ]


@pytest.fixture()
def add_booking(setup_session):
    """Insert a booking the way the intake side would."""
    def _add(**fields):
        row = BookingModel(**fields)
        setup_session.add(row)
        setup_session.commit()
        return row.id
    yield _add
