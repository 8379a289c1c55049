"""Overview summary: balances, daily flow, upcoming/overdue planned and recent activity."""

import datetime
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from travel_ledger.fx.converter import convert, to_pivot
from travel_ledger.jobs.account_daily import day_range
from travel_ledger.jobs.runner import CacheResult, run_cache_job
from travel_ledger.ledger.store import LedgerStore
from travel_ledger.logger import get_logger
from travel_ledger.models.common import DONE_STATUSES, MovementKind, Side, money_float, quantize_money

logger = get_logger(__name__)

JOB_NAME = "overview"
COLLECTION = "overview"
DOC_ID = "summary"
DEFAULT_DAYS = 30
LIST_LIMIT = 10


def compute_overview(store: LedgerStore, start: datetime.date, end: datetime.date, today: datetime.date) -> CacheResult:
    reference = store.reference
    accounts = {a.id: a for a in reference.accounts(include_archived=False)}
    known_accounts = {a.id for a in reference.accounts()}
    latest = reference.latest_rates()
    done = store.list_transactions(statuses=DONE_STATUSES)
    issues = []

    # Balances: opening balance replayed with every done movement
    native: Dict[str, Decimal] = {acc_id: quantize_money(acc.opening_balance) for acc_id, acc in accounts.items()}

    def apply(account_id, signed_amount, tx):
        if account_id not in known_accounts:
            issues.append(f"transaction {tx.id} references missing account {account_id}")
            return
        if account_id in native:
            # balances are kept in the account's own currency
            native[account_id] += convert(signed_amount, tx.currency, accounts[account_id].currency, latest)

    for tx in done:
        if tx.kind == MovementKind.TRANSFER.value:
            apply(tx.from_account_id, -tx.amount, tx)
            apply(tx.to_account_id, tx.amount, tx)
        elif tx.kind == MovementKind.IN.value:
            apply(tx.account_id, tx.amount, tx)
        else:
            apply(tx.account_id, -tx.amount, tx)

    balances = []
    total_eur = Decimal("0")
    for acc_id, acc in sorted(accounts.items(), key=lambda item: (item[1].name, item[0])):
        eur = to_pivot(native[acc_id], acc.currency, latest)
        total_eur += eur
        balances.append({
            "account_id": acc_id,
            "name": acc.name,
            "currency": acc.currency,
            "balance": money_float(native[acc_id]),
            "balance_eur": money_float(eur),
        })

    # Flow
    flow = {day: {"inflow": Decimal("0"), "outflow": Decimal("0")} for day in day_range(start, end)}
    for tx in done:
        if tx.is_transfer:
            continue
        bucket = flow.get(tx.actual_date or tx.date)
        if bucket is None:
            continue
        key = "inflow" if tx.kind == MovementKind.IN.value else "outflow"
        bucket[key] += abs(tx.base_amount or Decimal("0"))
    flow_daily = [
        {
            "date": day.isoformat(),
            "inflow": money_float(b["inflow"]),
            "outflow": money_float(b["outflow"]),
            "net": money_float(b["inflow"] - b["outflow"]),
        }
        for day, b in flow.items()
    ]

    # Planned
    unmatched = store.planned_entries(include_matched=False)
    upcoming = [e for e in unmatched if e.date >= today][:LIST_LIMIT]
    overdue = sorted((e for e in unmatched if e.date < today), key=lambda e: (e.date, e.id), reverse=True)[:LIST_LIMIT]
    sums = {"upcoming": {}, "overdue": {}}
    for entry in unmatched:
        bucket = sums["upcoming" if entry.date >= today else "overdue"]
        bucket[entry.side] = bucket.get(entry.side, Decimal("0")) + abs(entry.base_amount or Decimal("0"))

    def planned_row(entry):
        return {
            "id": entry.id,
            "source": entry.source,
            "date": entry.date.isoformat(),
            "side": entry.side,
            "account_id": entry.account_id,
            "amount": money_float(entry.amount),
            "currency": entry.currency,
            "base_amount": money_float(entry.base_amount or 0),
            "note": entry.note,
        }

    recent = sorted(done, key=lambda t: (t.actual_date or t.date, t.id), reverse=True)[:LIST_LIMIT]

    payload = {
        "today": today.isoformat(),
        "balances": balances,
        "total_eur": money_float(total_eur),
        "rates_date": latest.date.isoformat() if latest else None,
        "flow_daily": flow_daily,
        "planned": {
            "upcoming": [planned_row(e) for e in upcoming],
            "overdue": [planned_row(e) for e in overdue],
            "sums": {
                name: {side: money_float(bucket.get(side, 0)) for side in (Side.INCOME.value, Side.EXPENSE.value)}
                for name, bucket in sums.items()
            },
        },
        "recent_tx": [
            {
                "id": tx.id,
                "date": (tx.actual_date or tx.date).isoformat(),
                "status": tx.status,
                "kind": tx.kind,
                "account_id": tx.account_id,
                "amount": money_float(tx.amount),
                "currency": tx.currency,
                "base_amount": money_float(tx.base_amount or 0),
                "note": tx.note,
            }
            for tx in recent
        ],
    }
    if issues:
        logger.warning("Overview: %d movements reference missing accounts", len(issues))
    debug = {"accounts": len(accounts), "transactions": len(done), "planned_unmatched": len(unmatched), "issues": issues}
    return CacheResult(documents={COLLECTION: {DOC_ID: payload}}, debug=debug)


def build_overview_cache(
    session: Session,
    start: Optional[datetime.date] = None,
    end: Optional[datetime.date] = None,
    today: Optional[datetime.date] = None,
) -> CacheResult:
    """Rebuild the overview summary; the flow window defaults to the last 30 days."""
    today = today or datetime.date.today()
    end = end or today
    start = start or end - datetime.timedelta(days=DEFAULT_DAYS - 1)
    if end < start:
        raise ValueError(f"Range end {end} is before start {start}")
    store = LedgerStore(session)
    return run_cache_job(session, JOB_NAME, lambda: compute_overview(store, start, end, today), start, end)
