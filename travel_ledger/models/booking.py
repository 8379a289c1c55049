"""Read-only booking view and owner configuration."""

import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class OwnerShare(BaseModel):
    """One company owner and their default profit share (percent)."""

    id: str = Field(..., description="Owner identifier")
    name: str = Field(..., description="Display name, also used for text detection")
    share: Decimal = Field(default=Decimal("0"), description="Share in percent")
    aliases: List[str] = Field(default_factory=list, description="Extra names recognised in free text")


class Booking(BaseModel):
    """Booking totals as exposed by the intake side.

    Commission formulas live elsewhere; this core only reads the results.
    """

    id: str = Field(..., description="Stable booking identifier")
    number: Optional[str] = Field(None, description="Human booking number")
    booking_type: str = Field(default="base", description="Booking kind; non-default kinds split 50/50")
    operator: Optional[str] = Field(None, description="Tour operator name")
    brutto: Decimal = Field(default=Decimal("0"), description="Client total (EUR)")
    client_price: Optional[Decimal] = Field(None, description="Gross shown on sales dashboards")
    internal: Decimal = Field(default=Decimal("0"), description="Internal/net operator cost (EUR)")
    commission: Optional[Decimal] = Field(None, description="Commission computed by intake")
    real_commission: Optional[Decimal] = Field(None, description="Commission after actual costs")
    base_owner: Optional[str] = Field(None, description="Owner id receiving 100% of a default booking")
    owner_shares: Dict[str, Decimal] = Field(default_factory=dict, description="Per-booking percent table")
    manual_override: bool = Field(default=False, description="owner_commissions is authoritative")
    owner_commissions: Dict[str, Decimal] = Field(default_factory=dict, description="Precomputed per-owner commission")
    created_at: Optional[datetime.date] = Field(None, description="Booking creation date")
    check_in: Optional[datetime.date] = Field(None, description="Check-in date")
    check_out: Optional[datetime.date] = Field(None, description="Check-out date")

    @property
    def gross(self) -> Decimal:
        return self.client_price if self.client_price is not None else self.brutto

    @property
    def base_commission(self) -> Decimal:
        if self.real_commission is not None:
            return self.real_commission
        if self.commission is not None:
            return self.commission
        return self.brutto - self.internal


class BookingRemainder(BaseModel):
    """Amounts still owed by or to a booking."""

    booking_id: str
    planned_brutto: Decimal
    planned_internal: Decimal
    income_done: Decimal
    expense_done: Decimal
    left_income: Decimal
    left_expense: Decimal
