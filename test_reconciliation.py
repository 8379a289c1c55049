import datetime
from decimal import Decimal

import pytest

from travel_ledger.models.account import Account
from travel_ledger.models.common import TransactionStatus
from travel_ledger.models.transaction import Planned, Transaction
from travel_ledger.reconciliation.matcher import find_planned_candidate, reconcile

DUE = datetime.date(2025, 7, 10)


@pytest.fixture()
def setup_planned(setup_store):
    planned = setup_store.save_transaction(Transaction(
        date=DUE,
        due_date=DUE,
        status=TransactionStatus.PLANNED.value,
        kind="in",
        amount=Decimal("100"),
        account_id="acc-eur",
    ))
    yield setup_store, planned


def _find(store, day, amount, side="income", account_id="acc-eur", currency="EUR"):
    return find_planned_candidate(
        store,
        store.reference.rates_for(day),
        account_id=account_id,
        day=day,
        side=side,
        amount_abs=Decimal(amount),
        currency=currency,
        window_days=3,
        tolerance=Decimal("1.00"),
    )


def test_date_window_boundary(setup_planned):
    store, planned = setup_planned
    assert _find(store, DUE + datetime.timedelta(days=3), "100").id == planned.id
    assert _find(store, DUE - datetime.timedelta(days=3), "100").id == planned.id
    assert _find(store, DUE + datetime.timedelta(days=4), "100") is None
    assert _find(store, DUE - datetime.timedelta(days=4), "100") is None


def test_amount_tolerance_boundary(setup_planned):
    store, planned = setup_planned
    assert _find(store, DUE, "101.00").id == planned.id
    assert _find(store, DUE, "98.99") is None
    assert _find(store, DUE, "101.01") is None


def test_side_and_account_must_agree(setup_planned):
    store, _ = setup_planned
    assert _find(store, DUE, "100", side="expense") is None
    assert _find(store, DUE, "100", account_id="acc-ron") is None


def test_closest_candidate_wins_and_ties_keep_earliest(setup_planned):
    store, planned = setup_planned
    closer = store.save_transaction(Transaction(
        date=DUE + datetime.timedelta(days=1),
        status=TransactionStatus.PLANNED.value,
        kind="in",
        amount=Decimal("100.50"),
        account_id="acc-eur",
    ))
    assert _find(store, DUE, "100.60").id == closer.id

    twin = store.save_transaction(Transaction(
        date=DUE + datetime.timedelta(days=2),
        status=TransactionStatus.PLANNED.value,
        kind="in",
        amount=Decimal("100"),
        account_id="acc-eur",
    ))
    assert _find(store, DUE, "100").id == planned.id
    assert twin.id != planned.id


def test_reconcile_legacy_planned_in_foreign_currency(setup_store):
    day = datetime.date(2025, 7, 5)
    legacy = setup_store.add_planned(Planned(
        date=day, side="income", account_id="acc-ron", amount=Decimal("500"), currency="RON"
    ))

    # 502 RON at 5.0 RON/EUR is 0.40 EUR away from the planned 100 EUR
    entry = _find(setup_store, day, "502", account_id="acc-ron", currency="RON")
    assert entry is not None
    assert entry.id == legacy.id
    assert entry.source == "planned"

    tx = Transaction(date=day, actual_date=day, kind="in", amount=Decimal("502"), currency="RON", account_id="acc-ron")
    saved = reconcile(setup_store, tx, entry, commit=True)

    assert saved.status == "reconciled"
    assert saved.matched_planned_id == legacy.id
    assert saved.base_amount == Decimal("100.40")
    assert setup_store.planned_entries(account_id="acc-ron", include_matched=False) == []
    assert _find(setup_store, day, "502", account_id="acc-ron", currency="RON") is None


def test_unconvertible_amounts_never_match(setup_store):
    day = datetime.date(2025, 7, 5)
    setup_store.reference.add_account(Account(id="acc-gbp", name="GBP", currency="GBP"))
    setup_store.add_planned(Planned(
        date=day, side="income", account_id="acc-gbp", amount=Decimal("10"), currency="GBP"
    ))
    # no GBP rate, so both sides would convert to 0.00 EUR
    assert _find(setup_store, day, "5000", account_id="acc-gbp", currency="GBP") is None

    setup_store.add_planned(Planned(
        date=day, side="income", account_id="acc-eur", amount=Decimal("10"), currency="GBP"
    ))
    assert _find(setup_store, day, "0.50") is None
