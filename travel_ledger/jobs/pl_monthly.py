"""Monthly profit and loss by category classification."""

import datetime
from collections import Counter
from decimal import Decimal
from typing import Dict, Optional

import pandas as pd
from sqlalchemy.orm import Session

from travel_ledger.fx.converter import to_pivot
from travel_ledger.jobs.runner import CacheResult, run_cache_job
from travel_ledger.ledger.store import LedgerStore
from travel_ledger.logger import get_logger
from travel_ledger.models.account import Category
from travel_ledger.models.common import DONE_STATUSES, PIVOT_CURRENCY, CategorySide, MovementKind, money_float
from travel_ledger.models.transaction import Transaction

logger = get_logger(__name__)

JOB_NAME = "pl_monthly"
COLLECTION = "pl_monthly"
COGS_NAME_HINTS = ("cost", "operator", "supplier", "cogs")
SAMPLE_LIMIT = 5


def classify(tx: Transaction, category: Optional[Category]) -> str:
    """revenue, cogs or opex."""
    if category is None:
        return "revenue" if tx.kind == MovementKind.IN.value else "opex"
    if category.side == CategorySide.INCOME.value:
        return "revenue"
    name = (category.name or "").lower()
    if category.side == CategorySide.COGS.value or any(hint in name for hint in COGS_NAME_HINTS):
        return "cogs"
    return "opex"


def month_range(start: datetime.date, end: datetime.date):
    return [str(p) for p in pd.period_range(start.isoformat(), end.isoformat(), freq="M")]


def compute_pl_monthly(store: LedgerStore, start: datetime.date, end: datetime.date) -> CacheResult:
    reference = store.reference
    categories = reference.category_map()

    by_actual_date = store.transactions_in_range(("actual_date",), start, end)
    by_date = store.transactions_in_range(("date",), start, end)
    merged: Dict[str, Transaction] = {tx.id: tx for tx in by_actual_date}
    for tx in by_date:
        merged.setdefault(tx.id, tx)

    months = {key: {"revenue": Decimal("0"), "cogs": Decimal("0"), "opex": Decimal("0")} for key in month_range(start, end)}
    by_status = Counter()
    by_kind = Counter()
    amount_source = Counter()
    excluded = Counter()
    samples = []
    issues = []
    included = 0

    def exclude(tx, reason):
        excluded[reason] += 1
        if len(samples) < SAMPLE_LIMIT:
            samples.append({
                "id": tx.id,
                "reason": reason,
                "date": (tx.actual_date or tx.date).isoformat(),
                "status": tx.status,
                "kind": tx.kind,
            })

    for tx in sorted(merged.values(), key=lambda t: (t.date, t.id)):
        by_status[tx.status] += 1
        by_kind[tx.kind] += 1
        day = tx.actual_date or tx.date
        if day < start or day > end:
            exclude(tx, "out_of_range")
            continue
        if tx.status not in DONE_STATUSES:
            exclude(tx, "status")
            continue
        if tx.is_transfer:
            exclude(tx, "transfer")
            continue

        if tx.base_amount is not None and tx.base_amount > 0:
            eur = tx.base_amount
            amount_source["base_amount"] += 1
        elif tx.currency == PIVOT_CURRENCY:
            eur = tx.amount
            amount_source["eur_amount"] += 1
        else:
            eur = to_pivot(tx.amount, tx.currency, reference.rates_for(day))
            amount_source["converted"] += 1
        if not eur:
            exclude(tx, "no_eur_amount")
            continue

        category = categories.get(tx.category_id) if tx.category_id else None
        if tx.category_id and category is None:
            issues.append(f"transaction {tx.id} references missing category {tx.category_id}")
            logger.warning("Transaction %s references missing category %s", tx.id, tx.category_id)

        months[day.strftime("%Y-%m")][classify(tx, category)] += abs(eur)
        included += 1

    documents = {}
    totals = {"revenue": Decimal("0"), "cogs": Decimal("0"), "opex": Decimal("0")}
    for key, sums in months.items():
        gross = sums["revenue"] - sums["cogs"]
        net = gross - sums["opex"]
        documents[key] = {
            "month": key,
            "revenue": money_float(sums["revenue"]),
            "cogs": money_float(sums["cogs"]),
            "opex": money_float(sums["opex"]),
            "gross": money_float(gross),
            "net": money_float(net),
        }
        for bucket in totals:
            totals[bucket] += sums[bucket]

    debug = {
        "total_fetched": len(merged),
        "by_field": {"actual_date": len(by_actual_date), "date": len(by_date)},
        "by_status": dict(sorted(by_status.items())),
        "by_kind": dict(sorted(by_kind.items())),
        "amount_source": dict(sorted(amount_source.items())),
        "included_after_filters": included,
        "excluded": dict(sorted(excluded.items())),
        "sums": {bucket: money_float(value) for bucket, value in totals.items()},
        "sample_excluded": samples,
        "issues": issues,
    }
    return CacheResult(documents={COLLECTION: documents}, debug=debug)


def build_pl_monthly(session: Session, start: datetime.date, end: datetime.date) -> CacheResult:
    """Rebuild P&L for every month touching [start, end].

    The range is widened to whole months so a month document always
    covers its full month.
    """
    if end < start:
        raise ValueError(f"Range end {end} is before start {start}")
    start = start.replace(day=1)
    end = pd.Period(end.isoformat(), freq="M").end_time.date()
    store = LedgerStore(session)
    return run_cache_job(session, JOB_NAME, lambda: compute_pl_monthly(store, start, end), start, end)
