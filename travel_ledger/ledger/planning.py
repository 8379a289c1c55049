"""Planned client-payment and operator-cost entries for a booking."""

import datetime
from typing import List, Optional

from travel_ledger.ledger.allocations import upsert_allocations
from travel_ledger.ledger.store import LedgerStore
from travel_ledger.logger import get_logger
from travel_ledger.models.booking import Booking
from travel_ledger.models.common import MovementKind, PaymentMethod, TransactionStatus
from travel_ledger.models.transaction import Allocation, Transaction

logger = get_logger(__name__)


def plan_from_booking(
    store: LedgerStore,
    booking: Booking,
    account_id: str,
    date_basis: str = "created",
    today: Optional[datetime.date] = None,
) -> List[Transaction]:
    """Create planned transactions for a booking's expected cash flow.

    One incoming client payment for the brutto total and one outgoing
    operator payment for the internal cost, each allocated back to the
    booking. Zero amounts are skipped.

    Args:
        date_basis: "created" or "checkin"; falls back to ``today`` when
            the booking lacks that date
    """
    today = today or datetime.date.today()
    if date_basis == "checkin":
        day = booking.check_in or today
    else:
        day = booking.created_at or today

    reference = store.reference
    planned = []
    specs = [
        (booking.brutto, MovementKind.IN.value, "client_payments", PaymentMethod.BANK.value, "Planned: client payment"),
        (booking.internal, MovementKind.OUT.value, "operator_cost", PaymentMethod.IBAN.value, "Planned: operator payment"),
    ]
    for amount, kind, category_key, method, note in specs:
        if not amount or amount <= 0:
            continue
        tx = Transaction(
            date=day,
            due_date=day,
            status=TransactionStatus.PLANNED.value,
            kind=kind,
            amount=amount,
            currency="EUR",
            account_id=account_id,
            category_id=reference.ensure_system_category(category_key),
            method=method,
            note=note,
        )
        tx = store.save_transaction(tx, commit=False)
        planned.append(tx)

    store.commit()
    for tx in planned:
        upsert_allocations(store, tx.id, [Allocation(booking_id=booking.id, base_amount=tx.base_amount)])

    logger.info("Planned %d entries for booking %s", len(planned), booking.id)
    return planned
