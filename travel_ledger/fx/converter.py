"""EUR-pivot currency converter.

Rate tables hold "units of currency per 1 EUR". Converting to EUR
divides by the rate, converting from EUR multiplies. Any other pair goes
through EUR. Conversion never raises: a missing or non-positive rate
yields 0.00 and a warning so batch jobs keep going.
"""

import datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Optional

from pydantic import BaseModel, Field

from travel_ledger.logger import get_logger
from travel_ledger.models.common import PIVOT_CURRENCY, quantize_money

logger = get_logger(__name__)

ZERO = Decimal("0.00")


class RateTable(BaseModel):
    """Rates published for one calendar day."""

    date: datetime.date = Field(..., description="Publication date")
    rates: Dict[str, Decimal] = Field(default_factory=dict, description="Units of currency per 1 EUR")
    base: str = Field(default=PIVOT_CURRENCY, description="Pivot currency")
    source: Optional[str] = Field(None, description="Feed name or 'manual'")


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def pick_rates(day: datetime.date, tables: Iterable[RateTable]) -> Optional[RateTable]:
    """Rate table for ``day``.

    Exact date first, then the most recent table dated on or before the
    day, then the latest table overall. None if there are no tables.
    """
    tables = list(tables)
    if not tables:
        return None

    earlier = None
    latest = None
    for table in tables:
        if table.date == day:
            return table
        if table.date < day and (earlier is None or table.date > earlier.date):
            earlier = table
        if latest is None or table.date > latest.date:
            latest = table
    return earlier or latest


def rate_to_pivot(currency: str, rates: Optional[RateTable]) -> Optional[Decimal]:
    """Units of ``currency`` per 1 EUR, or None when unusable."""
    currency = (currency or PIVOT_CURRENCY).upper()
    if currency == PIVOT_CURRENCY:
        return Decimal("1")
    if rates is None:
        return None
    raw = rates.rates.get(currency)
    if raw is None:
        return None
    try:
        rate = _to_decimal(raw)
    except InvalidOperation:
        return None
    if rate <= 0:
        return None
    return rate


def _to_pivot_exact(amount: Decimal, currency: str, rates: Optional[RateTable]) -> Optional[Decimal]:
    rate = rate_to_pivot(currency, rates)
    if rate is None:
        return None
    return amount / rate


def convert(amount, from_ccy: str, to_ccy: str, rates: Optional[RateTable]) -> Decimal:
    """Convert ``amount`` between currencies through EUR.

    Returns the result rounded to cents, or 0.00 when a needed rate is
    missing or non-positive.
    """
    amount = _to_decimal(amount)
    from_ccy = (from_ccy or PIVOT_CURRENCY).upper()
    to_ccy = (to_ccy or PIVOT_CURRENCY).upper()
    if from_ccy == to_ccy:
        return quantize_money(amount)

    pivot_value = _to_pivot_exact(amount, from_ccy, rates)
    to_rate = rate_to_pivot(to_ccy, rates)
    if pivot_value is None or to_rate is None:
        missing = from_ccy if pivot_value is None else to_ccy
        logger.warning(
            "No usable %s rate for %s (table %s), converting %s %s to %s as 0",
            missing,
            rates.date if rates else "none",
            rates.source if rates else "-",
            amount,
            from_ccy,
            to_ccy,
        )
        return ZERO
    return quantize_money(pivot_value * to_rate)


def to_pivot(amount, currency: str, rates: Optional[RateTable]) -> Decimal:
    return convert(amount, currency, PIVOT_CURRENCY, rates)


def from_pivot(amount, currency: str, rates: Optional[RateTable]) -> Decimal:
    return convert(amount, PIVOT_CURRENCY, currency, rates)


def multiplier_to_pivot(currency: str, rates: Optional[RateTable]) -> Optional[Decimal]:
    """Factor that turns an amount in ``currency`` into EUR (1 / rate)."""
    rate = rate_to_pivot(currency, rates)
    if rate is None:
        return None
    return (Decimal("1") / rate).quantize(Decimal("0.00000001"))
