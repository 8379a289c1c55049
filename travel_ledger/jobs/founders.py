"""Founders cache: owner profit from bookings plus owner movements from transactions."""

import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from travel_ledger.config import get_default_booking_type, get_owner_shares
from travel_ledger.jobs.ownership import completion_ratio, owner_movements_for_tx, split_for_booking
from travel_ledger.jobs.runner import CacheResult, run_cache_job
from travel_ledger.ledger.allocations import remainders_by_booking
from travel_ledger.ledger.store import LedgerStore
from travel_ledger.logger import get_logger
from travel_ledger.models.booking import OwnerShare
from travel_ledger.models.common import DONE_STATUSES, Side, money_float, quantize_money

logger = get_logger(__name__)

JOB_NAME = "founders"
COLLECTION = "founders"
DOC_ID = "summary"
MIN_AMOUNT = Decimal("0.01")


def _iso(day: Optional[datetime.date]) -> Optional[str]:
    return day.isoformat() if day else None


def compute_founders(
    store: LedgerStore,
    owners: List[OwnerShare],
    today: datetime.date,
    default_type: str = "base",
) -> CacheResult:
    reference = store.reference
    bookings = reference.bookings()
    booking_ids = {b.id for b in bookings}
    orders = store.list_orders(statuses=DONE_STATUSES)
    categories = reference.category_map()
    counterparties = reference.counterparty_map()
    issues = []

    last_order: Dict[str, datetime.date] = {}
    for order in orders:
        if order.booking_id not in booking_ids:
            issues.append(f"order {order.id} references missing booking {order.booking_id}")
            continue
        if order.booking_id not in last_order or order.date > last_order[order.booking_id]:
            last_order[order.booking_id] = order.date
    if issues:
        logger.warning("Founders cache: %d orders reference missing bookings", len(issues))

    remainders = remainders_by_booking(bookings, orders)

    moves = []
    for booking in bookings:
        split = split_for_booking(booking, owners, default_type)
        remainder = remainders[booking.id]
        completion = completion_ratio(booking.brutto, booking.internal, remainder.income_done, remainder.expense_done)

        company = quantize_money(split.company_amount * completion)
        shares = {owner_id: quantize_money(value * completion) for owner_id, value in split.owners.items()}
        if abs(company) < MIN_AMOUNT and all(abs(v) < MIN_AMOUNT for v in shares.values()):
            continue

        created = booking.created_at or today
        number = booking.number or booking.id
        moves.append({
            "kind": "booking_income",
            "id": booking.id,
            "date": created.isoformat(),
            "side": Side.INCOME.value,
            "base_amount": money_float(company),
            "owners": {k: money_float(v) for k, v in sorted(shares.items())},
            "booking_id": booking.id,
            "booking_number": number,
            "operator": booking.operator,
            "rule": split.rule,
            "completion": float(round(completion, 4)),
            "date_created": _iso(booking.created_at),
            "date_check_in": _iso(booking.check_in),
            "date_check_out": _iso(booking.check_out),
            "date_last_order": _iso(last_order.get(booking.id)),
            "note": f"Income from booking {number}",
        })
    booking_moves = len(moves)

    for tx in store.list_transactions(statuses=DONE_STATUSES):
        if tx.is_transfer:
            continue
        category = categories.get(tx.category_id) if tx.category_id else None
        counterparty = counterparties.get(tx.counterparty_id) if tx.counterparty_id else None
        amounts = owner_movements_for_tx(
            tx,
            owners,
            category_name=category.name if category else None,
            counterparty_name=counterparty.name if counterparty else None,
        )
        if amounts is None:
            continue
        moves.append({
            "kind": "owner_tx",
            "id": tx.id,
            "date": (tx.actual_date or tx.date).isoformat(),
            "side": tx.side,
            # explicit owner amounts may cover only part of the transaction
            "base_amount": money_float(sum(abs(v) for v in amounts.values())),
            "owners": {k: money_float(v) for k, v in sorted(amounts.items())},
            "tx_id": tx.id,
            "account_id": tx.account_id,
            "category": category.name if category else None,
            "counterparty": counterparty.name if counterparty else None,
            "note": tx.note,
        })

    moves.sort(key=lambda m: (m["date"], m["kind"], m["id"]))

    totals = {o.id: Decimal("0") for o in owners}
    for move in moves:
        for owner_id, value in move["owners"].items():
            totals[owner_id] = totals.get(owner_id, Decimal("0")) + Decimal(str(value))

    payload = {
        "owners": [{"id": o.id, "name": o.name, "share": float(round(o.share, 4))} for o in owners],
        "moves": moves,
        "totals": {k: money_float(v) for k, v in sorted(totals.items())},
    }
    debug = {
        "bookings": len(bookings),
        "booking_moves": booking_moves,
        "tx_moves": len(moves) - booking_moves,
        "issues": issues,
    }
    return CacheResult(documents={COLLECTION: {DOC_ID: payload}}, debug=debug)


def build_founders_cache(
    session: Session,
    today: Optional[datetime.date] = None,
    owners: Optional[List[OwnerShare]] = None,
    default_type: Optional[str] = None,
) -> CacheResult:
    """Rebuild the founders summary document."""
    today = today or datetime.date.today()
    store = LedgerStore(session)
    owners = owners or store.reference.load_owners(get_owner_shares())
    default_type = default_type or get_default_booking_type()
    return run_cache_job(session, JOB_NAME, lambda: compute_founders(store, owners, today, default_type))
