"""Sales dashboard: booking totals per day, overall and per operator."""

import datetime
import re
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from travel_ledger.jobs.runner import CacheResult, run_cache_job
from travel_ledger.ledger.store import LedgerStore
from travel_ledger.logger import get_logger
from travel_ledger.models.booking import Booking
from travel_ledger.models.common import money_float, quantize_money

logger = get_logger(__name__)

JOB_NAME = "sales_dashboard"
DAILY = "sales_daily"
DAILY_BY_OPERATOR = "sales_daily_by_operator"
BASES = ("created", "check_in")
NO_OPERATOR = "(no operator)"


def operator_key(name: str) -> str:
    """Document-id-safe operator key."""
    return re.sub(r"[^\w\-]+", "_", name)[:100]


def booking_day(booking: Booking, basis: str) -> Optional[datetime.date]:
    return booking.created_at if basis == "created" else booking.check_in


def _empty_bucket() -> dict:
    return {"gross": Decimal("0"), "count": 0, "owners": {}}


def _add(bucket: dict, booking: Booking):
    bucket["gross"] += quantize_money(booking.gross)
    bucket["count"] += 1
    for owner_id, value in booking.owner_commissions.items():
        bucket["owners"][owner_id] = bucket["owners"].get(owner_id, Decimal("0")) + quantize_money(value)


def _payload(bucket: dict, **extra) -> dict:
    payload = dict(extra)
    payload["gross"] = money_float(bucket["gross"])
    payload["count"] = bucket["count"]
    payload["owners"] = {k: money_float(v) for k, v in sorted(bucket["owners"].items())}
    return payload


def compute_sales_dashboard(
    store: LedgerStore,
    start: Optional[datetime.date] = None,
    end: Optional[datetime.date] = None,
) -> CacheResult:
    """Bucket bookings by created and check-in day.

    Without a window every booking is scanned and both collections are
    rebuilt from scratch; with a window only documents dated inside it are
    replaced.
    """
    bookings = store.reference.bookings()

    daily: Dict[tuple, dict] = {}
    by_operator: Dict[tuple, dict] = {}
    coverage = {basis: {"from": None, "to": None, "bookings": 0} for basis in BASES}

    for booking in bookings:
        operator = (booking.operator or "").strip() or NO_OPERATOR
        for basis in BASES:
            day = booking_day(booking, basis)
            if day is None:
                continue
            if (start and day < start) or (end and day > end):
                continue
            _add(daily.setdefault((basis, day), _empty_bucket()), booking)
            _add(by_operator.setdefault((basis, day, operator), _empty_bucket()), booking)

            cov = coverage[basis]
            cov["bookings"] += 1
            cov["from"] = day if cov["from"] is None or day < cov["from"] else cov["from"]
            cov["to"] = day if cov["to"] is None or day > cov["to"] else cov["to"]

    daily_docs = {}
    for (basis, day), bucket in sorted(daily.items()):
        daily_docs[f"{basis}_{day.isoformat()}"] = _payload(bucket, basis=basis, date=day.isoformat())

    operator_docs = {}
    for (basis, day, operator), bucket in sorted(by_operator.items()):
        op_id = operator_key(operator)
        operator_docs[f"{basis}_{day.isoformat()}__{op_id}"] = _payload(
            bucket, basis=basis, date=day.isoformat(), operator=operator, operator_id=op_id
        )

    def stale(doc_id: str, payload: dict) -> bool:
        day = payload.get("date")
        if not day:
            return True
        day = datetime.date.fromisoformat(day)
        return not ((start and day < start) or (end and day > end))

    debug = {
        "bookings": len(bookings),
        "coverage": {
            basis: {
                "from": cov["from"].isoformat() if cov["from"] else None,
                "to": cov["to"].isoformat() if cov["to"] else None,
                "bookings": cov["bookings"],
            }
            for basis, cov in coverage.items()
        },
    }
    return CacheResult(
        documents={DAILY: daily_docs, DAILY_BY_OPERATOR: operator_docs},
        stale={DAILY: stale, DAILY_BY_OPERATOR: stale},
        debug=debug,
    )


def build_sales_dashboard(session: Session, start: Optional[datetime.date] = None, end: Optional[datetime.date] = None) -> CacheResult:
    """Rebuild the sales dashboard caches."""
    if start and end and end < start:
        raise ValueError(f"Range end {end} is before start {start}")
    store = LedgerStore(session)
    return run_cache_job(session, JOB_NAME, lambda: compute_sales_dashboard(store, start, end), start, end)
