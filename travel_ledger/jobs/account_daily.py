"""Daily planned vs actual cash per calendar day."""

import datetime
from decimal import Decimal
from typing import Dict, List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from travel_ledger.jobs.runner import CacheResult, run_cache_job
from travel_ledger.ledger.store import LedgerStore
from travel_ledger.logger import get_logger
from travel_ledger.models.common import DONE_STATUSES, MovementKind, Side, money_float

logger = get_logger(__name__)

JOB_NAME = "account_daily"
COLLECTION = "account_daily"

FIELDS = (
    "plan_income",
    "plan_expense",
    "plan_income_overdue",
    "plan_expense_overdue",
    "plan_income_matched",
    "plan_expense_matched",
    "actual_income",
    "actual_expense",
)


def day_range(start: datetime.date, end: datetime.date) -> List[datetime.date]:
    return [ts.date() for ts in pd.date_range(start, end, freq="D")]


def compute_account_daily(store: LedgerStore, start: datetime.date, end: datetime.date, today: datetime.date) -> CacheResult:
    """One document per day in [start, end], zero days included."""
    days: Dict[datetime.date, Dict[str, Decimal]] = {
        day: {name: Decimal("0") for name in FIELDS} for day in day_range(start, end)
    }

    planned = store.planned_entries(start=start, end=end)
    for entry in planned:
        agg = days.get(entry.date)
        if agg is None:
            continue
        amount = abs(entry.base_amount or Decimal("0"))
        prefix = "plan_income" if entry.side == Side.INCOME.value else "plan_expense"
        agg[prefix] += amount
        if entry.is_matched:
            agg[f"{prefix}_matched"] += amount
        elif entry.date < today:
            agg[f"{prefix}_overdue"] += amount

    actual = store.transactions_in_range(("actual_date", "date"), start, end, DONE_STATUSES)
    for tx in actual:
        if tx.is_transfer:
            continue
        agg = days.get(tx.actual_date or tx.date)
        if agg is None:
            continue
        amount = abs(tx.base_amount or Decimal("0"))
        if tx.kind == MovementKind.IN.value:
            agg["actual_income"] += amount
        else:
            agg["actual_expense"] += amount

    documents = {}
    for day, agg in days.items():
        payload = {"date": day.isoformat()}
        payload.update({name: money_float(agg[name]) for name in FIELDS})
        documents[day.isoformat()] = payload

    debug = {"days": len(days), "planned_entries": len(planned), "actual_transactions": len(actual)}
    return CacheResult(documents={COLLECTION: documents}, debug=debug)


def build_account_daily(session: Session, start: datetime.date, end: datetime.date, today: Optional[datetime.date] = None) -> CacheResult:
    """Rebuild the account daily cache for [start, end]."""
    today = today or datetime.date.today()
    if end < start:
        raise ValueError(f"Range end {end} is before start {start}")
    store = LedgerStore(session)
    return run_cache_job(session, JOB_NAME, lambda: compute_account_daily(store, start, end, today), start, end)
