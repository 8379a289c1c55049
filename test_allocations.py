"""Allocation engine, status lifecycle and planned entries from bookings."""

import datetime
from decimal import Decimal

import pytest

from travel_ledger.errors import InvalidTransitionError, NotFoundError
from travel_ledger.ledger.allocations import booking_remainder, remainder_for, remove_transaction, upsert_allocations
from travel_ledger.ledger.planning import plan_from_booking
from travel_ledger.models.common import TransactionStatus
from travel_ledger.models.transaction import Allocation, Transaction


@pytest.fixture()
def setup_tx(setup_store):
    tx = setup_store.save_transaction(Transaction(
        date=datetime.date(2025, 7, 2),
        kind="in",
        amount=Decimal("1500"),
        currency="RON",
        account_id="acc-ron",
    ))
    yield setup_store, tx


def _order_set(store, tx_id):
    return sorted((o.booking_id, o.base_amount) for o in store.list_orders(tx_id=tx_id))


def test_save_transaction_recomputes_base_amount(setup_store):
    tx = setup_store.save_transaction(Transaction(
        date=datetime.date(2025, 7, 2),
        kind="out",
        amount=Decimal("-250"),
        currency="ron",
        base_amount=Decimal("999"),
        account_id="acc-ron",
    ))
    assert tx.amount == Decimal("250.00")
    assert tx.currency == "RON"
    assert tx.side == "expense"
    assert tx.base_amount == Decimal("50.00")
    assert tx.fx_rate_to_base == Decimal("0.20000000")


def test_upsert_is_idempotent(setup_tx):
    store, tx = setup_tx
    allocations = [
        Allocation(booking_id="b1", base_amount=Decimal("200")),
        Allocation(booking_id="b2", base_amount=Decimal("100")),
        Allocation(booking_id="", base_amount=Decimal("50")),
        Allocation(booking_id="b3", base_amount=Decimal("0")),
    ]
    upsert_allocations(store, tx.id, allocations)
    first = _order_set(store, tx.id)
    upsert_allocations(store, tx.id, allocations)
    second = _order_set(store, tx.id)

    assert first == second == [("b1", Decimal("200.00")), ("b2", Decimal("100.00"))]
    order = store.list_orders(tx_id=tx.id)[0]
    assert order.status == "actual"
    assert order.side == "income"
    assert order.currency == "RON"


def test_upsert_with_empty_list_removes_orders(setup_tx):
    store, tx = setup_tx
    upsert_allocations(store, tx.id, [Allocation(booking_id="b1", base_amount=Decimal("200"))])
    upsert_allocations(store, tx.id, [])
    assert store.list_orders(tx_id=tx.id) == []


def test_upsert_on_missing_transaction(setup_store):
    with pytest.raises(NotFoundError):
        upsert_allocations(setup_store, "nope", [Allocation(booking_id="b1", base_amount=Decimal("1"))])


def test_remove_transaction_cascades(setup_tx):
    store, tx = setup_tx
    upsert_allocations(store, tx.id, [Allocation(booking_id="b1", base_amount=Decimal("300"))])
    remove_transaction(store, tx.id)

    assert store.list_orders(booking_id="b1") == []
    with pytest.raises(NotFoundError):
        store.get_transaction(tx.id)
    with pytest.raises(NotFoundError):
        remove_transaction(store, tx.id)


def test_transition_status_moves_orders(setup_store):
    tx = setup_store.save_transaction(Transaction(
        date=datetime.date(2025, 7, 5),
        status=TransactionStatus.PLANNED.value,
        kind="out",
        amount=Decimal("70"),
        account_id="acc-eur",
    ))
    upsert_allocations(setup_store, tx.id, [Allocation(booking_id="b1", base_amount=Decimal("70"))])

    moved = setup_store.transition_status(tx.id, "actual", actual_date=datetime.date(2025, 7, 6))
    assert moved.status == "actual"
    assert moved.actual_date == datetime.date(2025, 7, 6)
    assert [o.status for o in setup_store.list_orders(tx_id=tx.id)] == ["actual"]

    setup_store.transition_status(tx.id, "reconciled")
    assert [o.status for o in setup_store.list_orders(tx_id=tx.id)] == ["reconciled"]

    with pytest.raises(InvalidTransitionError):
        setup_store.transition_status(tx.id, "actual")
    with pytest.raises(InvalidTransitionError):
        setup_store.transition_status(tx.id, "planned")


def test_booking_remainder_counts_done_orders_only(setup_store, add_booking):
    booking_id = add_booking(id="bk-1", brutto=Decimal("1000"), internal=Decimal("700"))
    paid = setup_store.save_transaction(Transaction(
        date=datetime.date(2025, 7, 2), kind="in", amount=Decimal("600"), account_id="acc-eur",
        status=TransactionStatus.RECONCILED.value,
    ))
    upcoming = setup_store.save_transaction(Transaction(
        date=datetime.date(2025, 7, 20), kind="in", amount=Decimal("400"), account_id="acc-eur",
        status=TransactionStatus.PLANNED.value,
    ))
    cost = setup_store.save_transaction(Transaction(
        date=datetime.date(2025, 7, 3), kind="out", amount=Decimal("800"), account_id="acc-eur",
    ))
    for tx in (paid, upcoming, cost):
        upsert_allocations(setup_store, tx.id, [Allocation(booking_id=booking_id, base_amount=tx.base_amount)])

    remainder = remainder_for(setup_store, booking_id)
    assert remainder.income_done == Decimal("600.00")
    assert remainder.left_income == Decimal("400.00")
    assert remainder.expense_done == Decimal("800.00")
    assert remainder.left_expense == Decimal("0.00")

    booking = setup_store.reference.get_booking(booking_id)
    assert booking_remainder(booking, []).left_income == Decimal("1000.00")


def test_plan_from_booking(setup_store, add_booking):
    booking_id = add_booking(
        id="bk-2",
        brutto=Decimal("1000"),
        internal=Decimal("700"),
        created_at=datetime.date(2025, 7, 1),
        check_in=datetime.date(2025, 8, 15),
    )
    booking = setup_store.reference.get_booking(booking_id)
    planned = plan_from_booking(setup_store, booking, "acc-eur", date_basis="checkin")

    assert sorted((t.kind, t.amount) for t in planned) == [("in", Decimal("1000.00")), ("out", Decimal("700.00"))]
    assert all(t.due_date == datetime.date(2025, 8, 15) for t in planned)

    entries = setup_store.planned_entries(start=datetime.date(2025, 8, 1), end=datetime.date(2025, 8, 31))
    assert sorted(e.side for e in entries) == ["expense", "income"]
    assert all(e.source == "transaction" for e in entries)

    orders = setup_store.list_orders(booking_id=booking_id)
    assert len(orders) == 2
    assert all(o.status == "planned" for o in orders)
    assert remainder_for(setup_store, booking_id).left_income == Decimal("1000.00")

    categories = setup_store.reference.category_map()
    assert {categories[t.category_id].system_key for t in planned} == {"client_payments", "operator_cost"}


def test_save_transaction_cannot_move_status_back(setup_store):
    tx = setup_store.save_transaction(Transaction(
        date=datetime.date(2025, 7, 5),
        status=TransactionStatus.RECONCILED.value,
        kind="out",
        amount=Decimal("70"),
        account_id="acc-eur",
    ))
    upsert_allocations(setup_store, tx.id, [Allocation(booking_id="b1", base_amount=Decimal("70"))])

    with pytest.raises(InvalidTransitionError):
        setup_store.save_transaction(tx.model_copy(update={"status": TransactionStatus.PLANNED.value}))
    setup_store.session.rollback()

    assert setup_store.get_transaction(tx.id).status == "reconciled"
    assert [o.status for o in setup_store.list_orders(tx_id=tx.id)] == ["reconciled"]

    # same status is a plain edit
    edited = setup_store.save_transaction(tx.model_copy(update={"note": "ferry"}))
    assert edited.status == "reconciled"
    assert setup_store.get_transaction(tx.id).note == "ferry"
