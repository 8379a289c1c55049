"""MT940 statement adapter.

Transactions are ``:61:`` lines followed by an optional ``:86:``
description that may continue over several lines until the next tag.

    :61:2507240724C123,45NTRFNONREF//REF123
    :86:CARD PAYMENT
    SHOP 42
"""

import datetime
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from travel_ledger.importers.base import ParsedStatement, StatementRow
from travel_ledger.logger import get_logger

logger = get_logger(__name__)

LINE_61 = re.compile(r"^(\d{6})(\d{4})?([CD])(\d+(?:[.,]\d{0,4})?)([A-Z][A-Z0-9]{3})?")
REFERENCE = re.compile(r"//(\S+)\s*$")
TAG = re.compile(r"^:\d{2}[A-Z]?:")


def yymmdd_to_date(value: str) -> datetime.date:
    """Statement date; two-digit years from 70 up are 19xx."""
    yy = int(value[0:2])
    year = 1900 + yy if yy >= 70 else 2000 + yy
    return datetime.date(year, int(value[2:4]), int(value[4:6]))


def parse_amount(value: str) -> Decimal:
    return Decimal(value.replace(",", "."))


def _is_tag(line: str) -> bool:
    return bool(TAG.match(line)) or line.startswith("-}")


def _parse_61(body: str) -> Optional[dict]:
    match = LINE_61.match(body)
    if not match:
        return None
    yymmdd, _entry, sign, amount, code = match.groups()
    try:
        value = parse_amount(amount)
        day = yymmdd_to_date(yymmdd)
    except (InvalidOperation, ValueError):
        return None
    ref_match = REFERENCE.search(body)
    return {
        "date": day,
        "amount": value if sign == "C" else -value,
        "code": code,
        "reference": ref_match.group(1) if ref_match else None,
    }


def parse_mt940(text: str, source: Optional[str] = None) -> ParsedStatement:
    """Parse MT940 text into signed statement rows."""
    lines = [line.strip() for line in text.replace("\r", "").split("\n")]
    rows = []
    malformed = 0
    pending = None
    description = []

    def flush():
        nonlocal pending, description
        if pending is not None:
            text_value = re.sub(r"\s+", " ", " ".join(description)).strip()
            rows.append(StatementRow(description=text_value, **pending))
        pending = None
        description = []

    in_86 = False
    for line in lines:
        if not line:
            continue
        if line.startswith(":61:"):
            flush()
            in_86 = False
            pending = _parse_61(line[4:])
            if pending is None:
                malformed += 1
                logger.warning("Unparseable :61: line skipped: %s", line)
            continue
        if line.startswith(":86:"):
            in_86 = pending is not None
            if in_86:
                description.append(line[4:].strip())
            continue
        if _is_tag(line):
            in_86 = False
            flush()
            continue
        if in_86:
            description.append(line)
    flush()

    logger.info("MT940: %d rows parsed, %d malformed", len(rows), malformed)
    return ParsedStatement(rows=rows, malformed=malformed, source=source or "mt940")
