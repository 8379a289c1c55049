"""Common types and enums for ledger models."""

from decimal import Decimal, ROUND_HALF_UP
from enum import Enum

PIVOT_CURRENCY = "EUR"
CENT = Decimal("0.01")


class TransactionStatus(str, Enum):
    """Ledger entry lifecycle status."""
    PLANNED = "planned"
    ACTUAL = "actual"
    RECONCILED = "reconciled"


class MovementKind(str, Enum):
    """Direction of a money movement."""
    IN = "in"
    OUT = "out"
    TRANSFER = "transfer"


class Side(str, Enum):
    """Income/expense side derived from movement kind."""
    INCOME = "income"
    EXPENSE = "expense"


class CategorySide(str, Enum):
    """Category classification for P&L bucketing."""
    INCOME = "income"
    EXPENSE = "expense"
    COGS = "cogs"


class PaymentMethod(str, Enum):
    """Payment method guessed from statement text."""
    CARD = "card"
    IBAN = "iban"
    CASH = "cash"
    BANK = "bank"


class JobStatus(str, Enum):
    """Cache job state."""
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


DONE_STATUSES = (TransactionStatus.ACTUAL.value, TransactionStatus.RECONCILED.value)


def quantize_money(value) -> Decimal:
    """Round a money value to cents (half up)."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def side_for_kind(kind: str):
    """Side for an in/out movement; transfers have none."""
    if kind == MovementKind.IN.value:
        return Side.INCOME.value
    if kind == MovementKind.OUT.value:
        return Side.EXPENSE.value
    return None


def money_float(value) -> float:
    """Rounded money value as a JSON-friendly float."""
    return float(quantize_money(value)) + 0.0  # no negative zero
