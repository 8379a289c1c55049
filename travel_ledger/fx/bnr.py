"""National Bank of Romania rate feed.

The feed publishes RON per unit of currency (some currencies per 100
units, signalled by a ``multiplier`` attribute). Tables are converted to
the ledger's EUR base before they are stored.
"""

import datetime
import xml.etree.ElementTree as ET
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional

import httpx
from pydantic import BaseModel, Field

from travel_ledger.config import get_bnr_base_url
from travel_ledger.fx.converter import RateTable
from travel_ledger.logger import get_logger

logger = get_logger(__name__)

SOURCE = "BNR XML (curs.bnr.ro)"
SIX_PLACES = Decimal("0.000001")
SYNC_MODES = ("latest", "fill_missing", "init60")


class BnrDay(BaseModel):
    """One published day in RON base."""

    date: datetime.date
    rates_ron: Dict[str, Decimal] = Field(default_factory=dict, description="RON per 1 unit of currency")


def _local(tag: str) -> str:
    # strip "{namespace}" prefix
    return tag.rsplit("}", 1)[-1]


def parse_bnr_xml(xml_text: str) -> List[BnrDay]:
    """Parse a BNR XML document into days, ascending by date.

    Days without a usable EUR rate are dropped, as are individual rates
    that are missing or non-positive.
    """
    root = ET.fromstring(xml_text)
    days = []
    for cube in root.iter():
        if _local(cube.tag) != "Cube":
            continue
        raw_date = cube.get("date")
        if not raw_date:
            continue
        try:
            day = datetime.date.fromisoformat(raw_date)
        except ValueError:
            logger.warning("BNR cube with invalid date %r skipped", raw_date)
            continue

        rates_ron = {}
        for rate in cube:
            if _local(rate.tag) != "Rate":
                continue
            currency = rate.get("currency")
            if not currency:
                continue
            try:
                value = Decimal((rate.text or "").strip())
                multiplier = Decimal(rate.get("multiplier") or "1")
            except InvalidOperation:
                continue
            if value <= 0:
                continue
            if multiplier > 1:
                value = value / multiplier
            rates_ron[currency.upper()] = value

        if rates_ron.get("EUR", 0) > 0:
            days.append(BnrDay(date=day, rates_ron=rates_ron))

    days.sort(key=lambda d: d.date)
    return days


def to_eur_base(day: BnrDay) -> RateTable:
    """Convert a RON-based day into a table of units per 1 EUR."""
    ron_per_eur = day.rates_ron["EUR"]
    rates = {
        "EUR": Decimal("1"),
        "RON": ron_per_eur.quantize(SIX_PLACES),
    }
    for currency, ron_per_unit in day.rates_ron.items():
        if currency in ("EUR", "RON"):
            continue
        rates[currency] = (ron_per_eur / ron_per_unit).quantize(SIX_PLACES)
    return RateTable(date=day.date, rates=rates, source=SOURCE)


class BnrClient:
    """Fetches BNR publications over HTTP."""

    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.Client] = None, timeout: float = 10.0):
        self.base_url = (base_url or get_bnr_base_url()).rstrip("/")
        self._client = client
        self.timeout = timeout

    def _get(self, path: str) -> str:
        url = f"{self.base_url}/{path}"
        logger.info("Fetching BNR rates from %s", url)
        if self._client is not None:
            response = self._client.get(url)
            response.raise_for_status()
            return response.text
        with httpx.Client(timeout=self.timeout) as client:
            response = client.get(url)
            response.raise_for_status()
            return response.text

    def latest(self) -> RateTable:
        days = parse_bnr_xml(self._get("nbrfxrates.xml"))
        if not days:
            raise ValueError("BNR latest: empty payload")
        return to_eur_base(days[-1])

    def last_10_days(self) -> List[RateTable]:
        return [to_eur_base(d) for d in parse_bnr_xml(self._get("nbrfxrates10days.xml"))]

    def years(self, years: Iterable[int]) -> Dict[datetime.date, RateTable]:
        tables = {}
        for year in years:
            for day in parse_bnr_xml(self._get(f"files/xml/years/nbrfxrates{year}.xml")):
                tables[day.date] = to_eur_base(day)
        return tables


def sync_rates(reference, mode: str = "latest", today: Optional[datetime.date] = None, client: Optional[BnrClient] = None) -> dict:
    """Insert BNR tables missing from the store.

    Modes:
        latest        last ten publications plus the current one
        fill_missing  every date after the newest stored table (this and last year)
        init60        the last 60 publications (this and last year)

    Existing dates are never overwritten.

    Returns:
        Dict with mode, inserted, skipped, checked, from_date, to_date
    """
    if mode not in SYNC_MODES:
        raise ValueError(f"Unknown BNR sync mode {mode!r}, expected one of {', '.join(SYNC_MODES)}")
    today = today or datetime.date.today()
    client = client or BnrClient()

    candidates: Dict[datetime.date, RateTable] = {}
    if mode == "latest":
        for table in client.last_10_days():
            candidates[table.date] = table
        current = client.latest()
        candidates[current.date] = current
    elif mode == "fill_missing":
        by_date = client.years([today.year - 1, today.year])
        stored = reference.rate_table_dates()
        newest = max(stored) if stored else None
        candidates = {d: t for d, t in by_date.items() if newest is None or d > newest}
    else:
        by_date = client.years([today.year - 1, today.year])
        for d in sorted(by_date)[-60:]:
            candidates[d] = by_date[d]

    inserted = 0
    skipped = 0
    try:
        for d in sorted(candidates):
            if reference.save_rate_table(candidates[d]):
                inserted += 1
            else:
                skipped += 1
        reference.session.commit()
    except Exception:
        reference.session.rollback()
        raise

    dates = sorted(candidates)
    result = {
        "mode": mode,
        "inserted": inserted,
        "skipped": skipped,
        "checked": len(dates),
        "from_date": dates[0].isoformat() if dates else None,
        "to_date": dates[-1].isoformat() if dates else None,
    }
    logger.info("BNR sync %s: %d inserted, %d already present", mode, inserted, skipped)
    return result
