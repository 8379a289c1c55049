"""Pydantic models for the ledger."""

from travel_ledger.models.account import Account, Category, Counterparty
from travel_ledger.models.booking import Booking, BookingRemainder, OwnerShare
from travel_ledger.models.common import (
    CategorySide,
    JobStatus,
    MovementKind,
    PaymentMethod,
    Side,
    TransactionStatus,
)
from travel_ledger.models.transaction import Allocation, Order, Planned, PlannedEntry, Transaction

__all__ = [
    "Account",
    "Category",
    "Counterparty",
    "Booking",
    "BookingRemainder",
    "OwnerShare",
    "CategorySide",
    "JobStatus",
    "MovementKind",
    "PaymentMethod",
    "Side",
    "TransactionStatus",
    "Allocation",
    "Order",
    "Planned",
    "PlannedEntry",
    "Transaction",
]
