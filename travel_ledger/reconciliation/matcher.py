"""Match imported movements to planned entries.

A candidate must be on the same account and side, dated within the
window around the movement and not already matched. Both sides are
converted to EUR with the movement-date rate table and the closest one
wins if it is within the tolerance.
"""

import datetime
from decimal import Decimal
from typing import Optional

from travel_ledger.config import get_match_tolerance, get_match_window_days
from travel_ledger.fx.converter import RateTable, rate_to_pivot, to_pivot
from travel_ledger.ledger.store import LedgerStore
from travel_ledger.logger import get_logger
from travel_ledger.models.common import TransactionStatus
from travel_ledger.models.transaction import PlannedEntry, Transaction

logger = get_logger(__name__)


def find_planned_candidate(
    store: LedgerStore,
    rates: Optional[RateTable],
    account_id: str,
    day: datetime.date,
    side: str,
    amount_abs: Decimal,
    currency: str,
    window_days: Optional[int] = None,
    tolerance: Optional[Decimal] = None,
) -> Optional[PlannedEntry]:
    """Best unmatched planned entry for a movement, or None.

    Ties keep the earliest candidate.
    """
    window_days = get_match_window_days() if window_days is None else window_days
    tolerance = get_match_tolerance() if tolerance is None else Decimal(str(tolerance))

    start = day - datetime.timedelta(days=window_days)
    end = day + datetime.timedelta(days=window_days)
    candidates = store.planned_entries(
        start=start,
        end=end,
        account_id=account_id,
        side=side,
        include_matched=False,
    )
    if not candidates:
        return None

    # a failed conversion yields 0.00, which would match anything
    if rate_to_pivot(currency, rates) is None:
        logger.warning("No %s rate for %s, movement of %s not matched", currency, day, amount_abs)
        return None
    movement_eur = to_pivot(amount_abs, currency, rates)
    best = None
    best_diff = None
    for entry in candidates:
        if rate_to_pivot(entry.currency, rates) is None:
            logger.warning("No %s rate for %s, planned entry %s skipped", entry.currency, day, entry.id)
            continue
        candidate_eur = to_pivot(entry.amount, entry.currency, rates)
        diff = abs(candidate_eur - movement_eur)
        if best_diff is None or diff < best_diff:
            best = entry
            best_diff = diff

    if best_diff is not None and best_diff <= tolerance:
        logger.debug("Movement %s %s on %s matches planned %s (diff %s)", amount_abs, currency, day, best.id, best_diff)
        return best
    return None


def reconcile(store: LedgerStore, tx: Transaction, entry: PlannedEntry, commit: bool = False) -> Transaction:
    """Link an actual transaction and a planned entry both ways."""
    row_tx = tx.model_copy(update={
        "status": TransactionStatus.RECONCILED.value,
        "matched_planned_id": entry.id,
    })
    saved = store.save_transaction(row_tx, commit=False)
    store.mark_planned_matched(entry, saved.id)
    if commit:
        store.commit()
    return saved
