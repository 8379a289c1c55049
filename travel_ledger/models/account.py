"""Account, category and counterparty models."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from travel_ledger.models.common import CategorySide


def new_id() -> str:
    return str(uuid4())


class Account(BaseModel):
    """Money account (bank, cash desk, card acquirer).

    The balance is never stored; it is derived by replaying actual and
    reconciled transactions over the opening balance.
    """

    id: str = Field(default_factory=new_id, description="Unique account identifier")
    name: str = Field(..., description="Display name")
    currency: str = Field(default="EUR", description="Account currency code")
    opening_balance: Decimal = Field(default=Decimal("0"), description="Opening balance in account currency")
    archived: bool = Field(default=False, description="Hidden from balances when true")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Record creation timestamp")

    class Config:
        """Pydantic config."""
        use_enum_values = True


class Category(BaseModel):
    """Transaction category used for P&L classification."""

    id: str = Field(default_factory=new_id, description="Unique category identifier")
    name: str = Field(..., description="Category name")
    side: CategorySide = Field(..., description="income, expense or cogs")
    is_system: bool = Field(default=False, description="Protected category used by automated postings")
    system_key: Optional[str] = Field(None, description="Stable key for system categories")
    archived: bool = Field(default=False, description="Hidden from pickers when true")

    class Config:
        """Pydantic config."""
        use_enum_values = True

    @property
    def is_cogs(self) -> bool:
        return self.side == CategorySide.COGS.value


class Counterparty(BaseModel):
    """Optional party tag on a transaction."""

    id: str = Field(default_factory=new_id, description="Unique counterparty identifier")
    name: str = Field(..., description="Counterparty name")
    archived: bool = Field(default=False, description="Hidden from pickers when true")
