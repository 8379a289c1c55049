"""Reference collections: accounts, categories, counterparties, rates, bookings, owners."""

import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from travel_ledger.database.models import (
    AccountModel,
    BookingModel,
    CategoryModel,
    CounterpartyModel,
    FxRateModel,
    OwnerModel,
)
from travel_ledger.errors import NotFoundError
from travel_ledger.fx.converter import RateTable, pick_rates
from travel_ledger.logger import get_logger
from travel_ledger.models.account import Account, Category, Counterparty
from travel_ledger.models.booking import Booking, OwnerShare
from travel_ledger.models.common import CategorySide

logger = get_logger(__name__)

# Categories used by automated postings: key -> (name, side)
SYSTEM_CATEGORIES = {
    "client_payments": ("Client payments", CategorySide.INCOME.value),
    "operator_cost": ("Operator cost", CategorySide.COGS.value),
    "agent_commission": ("Agent commission", CategorySide.EXPENSE.value),
    "agent_commission_tax": ("Agent commission tax", CategorySide.EXPENSE.value),
    "acquiring_fee": ("Acquiring / bank fee", CategorySide.EXPENSE.value),
    "client_refunds": ("Client refunds", CategorySide.EXPENSE.value),
}


def _rate_table_from_row(row: FxRateModel) -> RateTable:
    return RateTable(
        date=row.date,
        rates={ccy: Decimal(str(value)) for ccy, value in (row.rates or {}).items()},
        base=row.base,
        source=row.source,
    )


class ReferenceData:
    """Access to the slow-changing collections the ledger reads."""

    def __init__(self, session: Session):
        self.session = session
        self._rate_tables: Optional[List[RateTable]] = None

    # Accounts

    def accounts(self, include_archived: bool = True) -> List[Account]:
        query = self.session.query(AccountModel)
        if not include_archived:
            query = query.filter(AccountModel.archived.is_(False))
        return [Account.model_validate(row, from_attributes=True) for row in query.order_by(AccountModel.name).all()]

    def get_account(self, account_id: str) -> Account:
        row = self.session.get(AccountModel, account_id)
        if row is None:
            raise NotFoundError(f"Account {account_id} not found")
        return Account.model_validate(row, from_attributes=True)

    def add_account(self, account: Account) -> Account:
        self.session.add(AccountModel(**account.model_dump()))
        self.session.flush()
        return account

    # Categories

    def categories(self) -> List[Category]:
        rows = self.session.query(CategoryModel).order_by(CategoryModel.name).all()
        return [Category.model_validate(row, from_attributes=True) for row in rows]

    def category_map(self) -> Dict[str, Category]:
        return {c.id: c for c in self.categories()}

    def add_category(self, category: Category) -> Category:
        self.session.add(CategoryModel(**category.model_dump()))
        self.session.flush()
        return category

    def ensure_system_category(self, key: str) -> str:
        """Id of a system category, creating it on first use."""
        if key not in SYSTEM_CATEGORIES:
            raise NotFoundError(f"Unknown system category {key!r}")
        row = self.session.query(CategoryModel).filter(CategoryModel.system_key == key).first()
        if row:
            return row.id

        name, side = SYSTEM_CATEGORIES[key]
        # a category created by hand with the same name and side is adopted
        row = (
            self.session.query(CategoryModel)
            .filter(CategoryModel.name == name, CategoryModel.side == side)
            .first()
        )
        if row:
            row.is_system = True
            row.system_key = key
        else:
            row = CategoryModel(name=name, side=side, is_system=True, system_key=key)
            self.session.add(row)
            logger.info("Created system category %r (%s)", name, side)
        self.session.flush()
        return row.id

    # Counterparties

    def counterparties(self) -> List[Counterparty]:
        rows = self.session.query(CounterpartyModel).order_by(CounterpartyModel.name).all()
        return [Counterparty.model_validate(row, from_attributes=True) for row in rows]

    def counterparty_map(self) -> Dict[str, Counterparty]:
        return {c.id: c for c in self.counterparties()}

    def add_counterparty(self, counterparty: Counterparty) -> Counterparty:
        self.session.add(CounterpartyModel(**counterparty.model_dump()))
        self.session.flush()
        return counterparty

    # FX rates

    def rate_tables(self) -> List[RateTable]:
        if self._rate_tables is None:
            rows = self.session.query(FxRateModel).order_by(FxRateModel.date).all()
            self._rate_tables = [_rate_table_from_row(row) for row in rows]
        return self._rate_tables

    def rate_table_dates(self) -> List[datetime.date]:
        return [row.date for row in self.session.query(FxRateModel.date).order_by(FxRateModel.date).all()]

    def rates_for(self, day: datetime.date) -> Optional[RateTable]:
        return pick_rates(day, self.rate_tables())

    def latest_rates(self) -> Optional[RateTable]:
        tables = self.rate_tables()
        return tables[-1] if tables else None

    def save_rate_table(self, table: RateTable, correction: bool = False) -> bool:
        """Store a rate table.

        Published tables are immutable: an existing date is left alone
        unless ``correction`` is set. Returns True when something was written.
        """
        rates = {ccy.upper(): str(value) for ccy, value in table.rates.items()}
        row = self.session.get(FxRateModel, table.date)
        if row is not None and not correction:
            return False
        if row is None:
            self.session.add(FxRateModel(date=table.date, base=table.base, rates=rates, source=table.source))
        else:
            logger.info("Correcting rate table for %s", table.date)
            row.rates = rates
            row.source = table.source or "manual"
        self.session.flush()
        self._rate_tables = None
        return True

    # Bookings (read-only)

    def bookings(self) -> List[Booking]:
        rows = self.session.query(BookingModel).order_by(BookingModel.id).all()
        return [Booking.model_validate(row, from_attributes=True) for row in rows]

    def booking_map(self) -> Dict[str, Booking]:
        return {b.id: b for b in self.bookings()}

    def get_booking(self, booking_id: str) -> Booking:
        row = self.session.get(BookingModel, booking_id)
        if row is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return Booking.model_validate(row, from_attributes=True)

    # Owners

    def load_owners(self, fallback: Optional[List[OwnerShare]] = None) -> List[OwnerShare]:
        """Owner shares from the owners collection, else ``fallback``.

        Shares are normalized to sum to 100; if they are all zero the
        owners split equally.
        """
        rows = self.session.query(OwnerModel).order_by(OwnerModel.position, OwnerModel.id).all()
        owners = [
            OwnerShare(id=row.id, name=row.name, share=Decimal(str(row.share or 0)), aliases=list(row.aliases or []))
            for row in rows
        ]
        if not owners:
            owners = list(fallback or [])
        return normalize_shares(owners)


def normalize_shares(owners: List[OwnerShare]) -> List[OwnerShare]:
    if not owners:
        return []
    total = sum((o.share for o in owners), Decimal("0"))
    if total <= 0:
        equal = Decimal("100") / len(owners)
        return [o.model_copy(update={"share": equal}) for o in owners]
    if total == Decimal("100"):
        return owners
    return [o.model_copy(update={"share": o.share * Decimal("100") / total}) for o in owners]
