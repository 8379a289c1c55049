"""Normalized statement row shape shared by all adapters."""

import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class StatementRow(BaseModel):
    """One booked line of a bank statement."""

    date: datetime.date = Field(..., description="Value date")
    amount: Decimal = Field(..., description="Signed amount: positive credit, negative debit")
    description: str = Field(default="", description="Free text from the bank")
    reference: Optional[str] = Field(None, description="Bank reference, if any")
    code: Optional[str] = Field(None, description="Bank transaction code, if any")


class ParsedStatement(BaseModel):
    """Adapter output: good rows plus a count of lines that could not be read."""

    rows: List[StatementRow] = Field(default_factory=list)
    malformed: int = Field(default=0, description="Lines skipped as unparseable")
    source: Optional[str] = Field(None, description="File name or adapter")
