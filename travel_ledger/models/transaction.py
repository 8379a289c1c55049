"""Ledger entry models: transactions, legacy planned entries and orders."""

import datetime
from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, Field

from travel_ledger.models.account import new_id
from travel_ledger.models.common import MovementKind, Side, TransactionStatus


class Transaction(BaseModel):
    """A ledger entry.

    Amounts are stored as non-negative magnitudes; direction comes from
    ``kind``. ``base_amount`` is always recomputed by the store at write
    time and never trusted from input.
    """

    id: str = Field(default_factory=new_id, description="Unique transaction identifier")
    date: datetime.date = Field(..., description="Generic transaction date")
    due_date: Optional[datetime.date] = Field(None, description="Target date for planned entries")
    actual_date: Optional[datetime.date] = Field(None, description="Date money actually moved")
    status: TransactionStatus = Field(default=TransactionStatus.ACTUAL.value, description="planned, actual or reconciled")
    kind: MovementKind = Field(..., description="in, out or transfer")

    # Amount
    amount: Decimal = Field(..., description="Magnitude in transaction currency")
    currency: str = Field(default="EUR", description="Currency code")
    base_amount: Optional[Decimal] = Field(None, description="EUR equivalent (derived)")
    fx_rate_to_base: Optional[Decimal] = Field(None, description="Multiplier used for base_amount")
    side: Optional[Side] = Field(None, description="Derived from kind; empty for transfers")

    # Accounts
    account_id: Optional[str] = Field(None, description="Account for in/out movements")
    from_account_id: Optional[str] = Field(None, description="Source account for transfers")
    to_account_id: Optional[str] = Field(None, description="Destination account for transfers")

    # Classification
    category_id: Optional[str] = Field(None, description="Category reference")
    counterparty_id: Optional[str] = Field(None, description="Counterparty reference")
    method: Optional[str] = Field(None, description="Payment method")
    note: Optional[str] = Field(None, description="Free text / statement description")

    # Reconciliation and import
    fingerprint: Optional[str] = Field(None, description="Statement dedup key")
    matched_planned_id: Optional[str] = Field(None, description="Planned entry this movement reconciled")
    matched_tx_id: Optional[str] = Field(None, description="Actual movement that reconciled this planned entry")
    import_batch_id: Optional[str] = Field(None, description="Statement import batch")

    # Owner attribution outside the booking flow
    owner_amounts: Dict[str, Decimal] = Field(default_factory=dict, description="Explicit per-owner EUR amounts")
    owner_who: Optional[str] = Field(None, description="Legacy single-owner tag (owner id, split50, company)")

    created_at: datetime.datetime = Field(default_factory=datetime.datetime.utcnow, description="Record creation timestamp")

    class Config:
        """Pydantic config."""
        use_enum_values = True

    @property
    def is_transfer(self) -> bool:
        return self.kind == MovementKind.TRANSFER.value


class Planned(BaseModel):
    """Legacy standalone planned entry."""

    id: str = Field(default_factory=new_id, description="Unique planned entry identifier")
    date: datetime.date = Field(..., description="Target date")
    side: Side = Field(..., description="income or expense")
    account_id: str = Field(..., description="Expected account")
    amount: Decimal = Field(..., description="Expected magnitude in currency")
    currency: str = Field(default="EUR", description="Currency code")
    category_id: Optional[str] = Field(None, description="Category reference")
    counterparty_id: Optional[str] = Field(None, description="Counterparty reference")
    booking_id: Optional[str] = Field(None, description="Booking the entry was planned for")
    note: Optional[str] = Field(None, description="Free text")
    matched_tx_id: Optional[str] = Field(None, description="Actual transaction that reconciled it")
    matched_at: Optional[datetime.datetime] = Field(None, description="When it was reconciled")

    class Config:
        """Pydantic config."""
        use_enum_values = True


class PlannedEntry(BaseModel):
    """Normalized in-memory shape for both planned sources."""

    id: str
    source: str = Field(..., description="'planned' for the legacy collection, 'transaction' otherwise")
    date: datetime.date
    side: Side
    account_id: Optional[str] = None
    amount: Decimal
    currency: str = "EUR"
    base_amount: Optional[Decimal] = None
    note: Optional[str] = None
    matched_tx_id: Optional[str] = None

    class Config:
        """Pydantic config."""
        use_enum_values = True

    @property
    def is_matched(self) -> bool:
        return bool(self.matched_tx_id)


class Allocation(BaseModel):
    """Operator-entered share of a transaction for one booking."""

    booking_id: str = Field(..., description="Booking receiving the allocation")
    base_amount: Decimal = Field(..., description="EUR amount allocated")


class Order(BaseModel):
    """Allocation of a transaction's base amount to a booking."""

    id: str = Field(default_factory=new_id, description="Unique order identifier")
    tx_id: str = Field(..., description="Parent transaction")
    date: datetime.date = Field(..., description="Parent transaction date")
    side: Optional[Side] = Field(None, description="Parent side")
    booking_id: str = Field(..., description="Booking reference")
    base_amount: Decimal = Field(..., description="EUR amount allocated to the booking")
    status: TransactionStatus = Field(..., description="Mirrors parent status")
    account_id: Optional[str] = Field(None, description="Parent account (display)")
    currency: Optional[str] = Field(None, description="Parent currency (display)")
    amount: Optional[Decimal] = Field(None, description="Parent amount (display)")

    class Config:
        """Pydantic config."""
        use_enum_values = True
