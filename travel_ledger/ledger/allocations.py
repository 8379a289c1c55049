"""Booking allocations ("orders") and per-booking remainders."""

from decimal import Decimal
from typing import Dict, Iterable, List

from travel_ledger.ledger.store import LedgerStore
from travel_ledger.logger import get_logger
from travel_ledger.models.booking import Booking, BookingRemainder
from travel_ledger.models.common import DONE_STATUSES, Side, quantize_money
from travel_ledger.models.transaction import Allocation, Order

logger = get_logger(__name__)

ZERO = Decimal("0.00")


def upsert_allocations(store: LedgerStore, tx_id: str, allocations: Iterable[Allocation]) -> List[Order]:
    """Replace the orders of a transaction with ``allocations``.

    Allocations without a booking or with a non-positive amount are
    dropped. Orders copy the parent's date, side, status, account and
    currency. Old and new sets are swapped in a single commit, so calling
    this twice with the same list leaves the same orders behind.
    """
    tx = store.get_transaction(tx_id)

    orders = []
    for allocation in allocations or []:
        if not allocation.booking_id:
            continue
        base_amount = quantize_money(allocation.base_amount)
        if base_amount <= 0:
            continue
        orders.append(
            Order(
                tx_id=tx.id,
                date=tx.date,
                side=tx.side,
                booking_id=str(allocation.booking_id),
                base_amount=base_amount,
                status=tx.status,
                account_id=tx.account_id,
                currency=tx.currency,
                amount=tx.amount,
            )
        )

    store.replace_orders(tx.id, orders)
    allocated = sum((o.base_amount for o in orders), ZERO)
    if tx.base_amount is not None and allocated != tx.base_amount:
        logger.debug("Transaction %s allocated %s of %s EUR", tx.id, allocated, tx.base_amount)
    return orders


def remove_transaction(store: LedgerStore, tx_id: str):
    """Delete a transaction and all of its orders."""
    store.delete_transaction(tx_id)
    logger.info("Removed transaction %s with its orders", tx_id)


def booking_remainder(booking: Booking, orders: Iterable[Order]) -> BookingRemainder:
    """Amounts still to collect from the client and to pay the operator.

    Only orders of actual or reconciled transactions count as done.
    """
    income_done = ZERO
    expense_done = ZERO
    for order in orders:
        if order.booking_id != booking.id or order.status not in DONE_STATUSES:
            continue
        if order.side == Side.INCOME.value:
            income_done += order.base_amount
        elif order.side == Side.EXPENSE.value:
            expense_done += order.base_amount

    brutto = quantize_money(booking.brutto)
    internal = quantize_money(booking.internal)
    return BookingRemainder(
        booking_id=booking.id,
        planned_brutto=brutto,
        planned_internal=internal,
        income_done=quantize_money(income_done),
        expense_done=quantize_money(expense_done),
        left_income=max(ZERO, quantize_money(brutto - income_done)),
        left_expense=max(ZERO, quantize_money(internal - expense_done)),
    )


def remainders_by_booking(bookings: Iterable[Booking], orders: Iterable[Order]) -> Dict[str, BookingRemainder]:
    by_booking: Dict[str, List[Order]] = {}
    for order in orders:
        by_booking.setdefault(order.booking_id, []).append(order)
    return {b.id: booking_remainder(b, by_booking.get(b.id, [])) for b in bookings}


def remainder_for(store: LedgerStore, booking_id: str) -> BookingRemainder:
    booking = store.reference.get_booking(booking_id)
    return booking_remainder(booking, store.list_orders(booking_id=booking_id))
