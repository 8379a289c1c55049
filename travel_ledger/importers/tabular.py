"""CSV/TSV statement adapter.

Columns are discovered by name: a date column, either a signed amount
column or a debit/credit pair, and a description column.
"""

import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional

import pandas as pd
from dateutil import parser as date_parser

from travel_ledger.errors import StatementParseError
from travel_ledger.importers.base import ParsedStatement, StatementRow
from travel_ledger.logger import get_logger

logger = get_logger(__name__)

DATE_WORDS = ["value date", "booking date", "transaction date", "date", "data"]
AMOUNT_WORDS = ["amount", "sum", "suma"]
DEBIT_WORDS = ["debit", "withdrawal"]
CREDIT_WORDS = ["credit", "deposit"]
DESCRIPTION_WORDS = ["description", "details", "memo", "narrative", "note", "detalii"]
REFERENCE_WORDS = ["reference", "ref"]


def detect_delimiter(file_path: str) -> str:
    """Detect delimiter (comma, semicolon or tab) from file extension and content."""
    if file_path.lower().endswith(".tsv"):
        return "\t"

    with open(file_path, "r", encoding="utf-8-sig") as f:
        first_line = f.readline()
    counts = {",": first_line.count(","), ";": first_line.count(";"), "\t": first_line.count("\t")}
    return max(counts, key=counts.get) if any(counts.values()) else ","


def parse_date(date_str: str) -> Optional[datetime.date]:
    """Parse date string in various formats."""
    if not date_str or not str(date_str).strip():
        return None
    date_str = str(date_str).strip()

    formats = ["%Y-%m-%d", "%d.%m.%Y", "%d/%m/%Y", "%m/%d/%Y", "%Y/%m/%d", "%d-%m-%Y"]
    for fmt in formats:
        try:
            return datetime.datetime.strptime(date_str, fmt).date()
        except ValueError:
            continue

    try:
        return date_parser.parse(date_str, dayfirst=True).date()
    except (ValueError, OverflowError):
        return None


def clean_amount(amount_str: str) -> Optional[Decimal]:
    """Clean and parse amount string.

    Handles:
    - Thousand separators (1,234.56 and 1.234,56)
    - Currency symbols ($100.00, 100 EUR)
    - Parentheses for negatives ((100.00) = -100.00)
    - Negative signs
    """
    if amount_str is None:
        return None
    amount_str = str(amount_str).strip()
    if not amount_str:
        return None

    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        amount_str = amount_str[1:-1]
        is_negative = True

    for symbol in ("$", "€", "£", "EUR", "RON", "USD", " "):
        amount_str = amount_str.replace(symbol, "")

    if amount_str.startswith("-"):
        is_negative = not is_negative
        amount_str = amount_str[1:]
    elif amount_str.startswith("+"):
        amount_str = amount_str[1:]

    # decimal comma when it is the last separator
    if "," in amount_str and amount_str.rfind(",") > amount_str.rfind("."):
        amount_str = amount_str.replace(".", "").replace(",", ".")
    else:
        amount_str = amount_str.replace(",", "")

    try:
        amount = Decimal(amount_str)
    except (InvalidOperation, ValueError):
        return None
    return -amount if is_negative else amount


def _find_column(columns: List[str], words: List[str]) -> Optional[str]:
    lowered = {col: col.lower().strip() for col in columns}
    for word in words:
        for col, name in lowered.items():
            if name == word:
                return col
    for word in words:
        for col, name in lowered.items():
            if word in name:
                return col
    return None


def parse_tabular(file_path: str, delimiter: Optional[str] = None) -> ParsedStatement:
    """Parse a CSV/TSV statement into signed rows.

    Raises:
        StatementParseError: when no date or amount column can be found
    """
    delimiter = delimiter or detect_delimiter(file_path)
    df = pd.read_csv(file_path, delimiter=delimiter, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    columns = list(df.columns)

    date_col = _find_column(columns, DATE_WORDS)
    amount_col = _find_column(columns, AMOUNT_WORDS)
    debit_col = _find_column(columns, DEBIT_WORDS)
    credit_col = _find_column(columns, CREDIT_WORDS)
    desc_col = _find_column(columns, DESCRIPTION_WORDS)
    ref_col = _find_column(columns, REFERENCE_WORDS)

    if not date_col or not (amount_col or debit_col or credit_col):
        raise StatementParseError(f"Could not find date and/or amount columns in {file_path}")

    rows = []
    malformed = 0
    for idx, record in df.iterrows():
        day = parse_date(record.get(date_col, ""))
        if amount_col:
            amount = clean_amount(record.get(amount_col, ""))
        else:
            debit = clean_amount(record.get(debit_col, "")) if debit_col else None
            credit = clean_amount(record.get(credit_col, "")) if credit_col else None
            if debit is None and credit is None:
                amount = None
            else:
                amount = (credit or Decimal("0")) - abs(debit or Decimal("0"))

        if day is None or amount is None:
            # blank separator lines are not errors
            if any(str(v).strip() for v in record.values):
                malformed += 1
                logger.warning("Row %d of %s skipped: unreadable date or amount", idx + 2, file_path)
            continue

        rows.append(
            StatementRow(
                date=day,
                amount=amount,
                description=str(record.get(desc_col, "")).strip() if desc_col else "",
                reference=(str(record.get(ref_col, "")).strip() or None) if ref_col else None,
            )
        )

    logger.info("%s: %d rows parsed, %d malformed", file_path, len(rows), malformed)
    return ParsedStatement(rows=rows, malformed=malformed, source=file_path)
