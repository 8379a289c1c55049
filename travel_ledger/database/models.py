"""SQLAlchemy database models."""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, JSON, Numeric, String, Text

from travel_ledger.database.connection import Base
from travel_ledger.models.account import new_id


class AccountModel(Base):
    """SQLAlchemy model for accounts table."""

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    currency = Column(String(3), nullable=False, default="EUR")
    opening_balance = Column(Numeric(19, 2), nullable=False, default=0)
    archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f"<Account(id={self.id}, name='{self.name}', currency='{self.currency}')>"


class CategoryModel(Base):
    """SQLAlchemy model for categories table."""

    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    side = Column(String(20), nullable=False)  # income, expense, cogs
    is_system = Column(Boolean, nullable=False, default=False)
    system_key = Column(String(64), nullable=True, unique=True)
    archived = Column(Boolean, nullable=False, default=False)

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}', side='{self.side}')>"


class CounterpartyModel(Base):
    """SQLAlchemy model for counterparties table."""

    __tablename__ = "counterparties"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    archived = Column(Boolean, nullable=False, default=False)


class FxRateModel(Base):
    """One published rate table: units of each currency per 1 EUR."""

    __tablename__ = "fx_rates"

    date = Column(Date, primary_key=True)
    base = Column(String(3), nullable=False, default="EUR")
    rates = Column(JSON, nullable=False, default=dict)  # {"RON": "4.9750", ...} as strings
    source = Column(String(50), nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<FxRate(date={self.date}, currencies={len(self.rates or {})})>"


class TransactionModel(Base):
    """SQLAlchemy model for transactions table."""

    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=new_id)

    # Date fields
    date = Column(Date, nullable=False, index=True)
    due_date = Column(Date, nullable=True, index=True)
    actual_date = Column(Date, nullable=True, index=True)

    status = Column(String(20), nullable=False, default="actual", index=True)
    kind = Column(String(20), nullable=False)

    # Amount
    amount = Column(Numeric(19, 2), nullable=False)  # magnitude, never negative
    currency = Column(String(3), nullable=False, default="EUR")
    base_amount = Column(Numeric(19, 2), nullable=True)
    fx_rate_to_base = Column(Numeric(19, 8), nullable=True)
    side = Column(String(20), nullable=True)

    # Accounts
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=True, index=True)
    from_account_id = Column(String(36), ForeignKey("accounts.id"), nullable=True)
    to_account_id = Column(String(36), ForeignKey("accounts.id"), nullable=True)

    # Classification
    category_id = Column(String(36), nullable=True, index=True)
    counterparty_id = Column(String(36), nullable=True)
    method = Column(String(20), nullable=True)
    note = Column(Text, nullable=True)

    # Reconciliation and import
    fingerprint = Column(String(255), nullable=True, unique=True)
    matched_planned_id = Column(String(36), nullable=True)
    matched_tx_id = Column(String(36), nullable=True, index=True)  # set on planned entries
    import_batch_id = Column(String(36), nullable=True, index=True)

    owner_amounts = Column(JSON, nullable=False, default=dict)
    owner_who = Column(String(36), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Transaction(id={self.id}, date={self.date}, kind='{self.kind}', amount={self.amount} {self.currency})>"


class PlannedModel(Base):
    """SQLAlchemy model for the legacy planned entries table."""

    __tablename__ = "planned"

    id = Column(String(36), primary_key=True, default=new_id)
    date = Column(Date, nullable=False, index=True)
    side = Column(String(20), nullable=False)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    amount = Column(Numeric(19, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="EUR")
    category_id = Column(String(36), nullable=True)
    counterparty_id = Column(String(36), nullable=True)
    booking_id = Column(String(36), nullable=True)
    note = Column(Text, nullable=True)
    matched_tx_id = Column(String(36), nullable=True, index=True)
    matched_at = Column(DateTime, nullable=True)


class OrderModel(Base):
    """Allocation of a transaction to a booking."""

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_id)
    tx_id = Column(String(36), ForeignKey("transactions.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    side = Column(String(20), nullable=True)
    booking_id = Column(String(36), nullable=False, index=True)
    base_amount = Column(Numeric(19, 2), nullable=False)
    status = Column(String(20), nullable=False)

    # Denormalized parent fields for display
    account_id = Column(String(36), nullable=True)
    currency = Column(String(3), nullable=True)
    amount = Column(Numeric(19, 2), nullable=True)

    def __repr__(self):
        return f"<Order(id={self.id}, tx_id={self.tx_id}, booking_id={self.booking_id}, base_amount={self.base_amount})>"


class BookingModel(Base):
    """Bookings as written by the intake side. Read-only to the ledger."""

    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=new_id)
    number = Column(String(50), nullable=True)
    booking_type = Column(String(50), nullable=False, default="base")
    operator = Column(String(255), nullable=True)
    brutto = Column(Numeric(19, 2), nullable=False, default=0)
    client_price = Column(Numeric(19, 2), nullable=True)
    internal = Column(Numeric(19, 2), nullable=False, default=0)
    commission = Column(Numeric(19, 2), nullable=True)
    real_commission = Column(Numeric(19, 2), nullable=True)
    base_owner = Column(String(36), nullable=True)
    owner_shares = Column(JSON, nullable=False, default=dict)
    manual_override = Column(Boolean, nullable=False, default=False)
    owner_commissions = Column(JSON, nullable=False, default=dict)
    created_at = Column(Date, nullable=True, index=True)
    check_in = Column(Date, nullable=True, index=True)
    check_out = Column(Date, nullable=True)


class OwnerModel(Base):
    """Company owners and their default shares."""

    __tablename__ = "owners"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    share = Column(Numeric(7, 4), nullable=False, default=0)
    aliases = Column(JSON, nullable=False, default=list)
    position = Column(Integer, nullable=False, default=0)


class ImportBatchModel(Base):
    """Tracks statement imports for traceability and rollback."""

    __tablename__ = "import_batches"

    id = Column(String(36), primary_key=True, default=new_id)
    account_id = Column(String(36), nullable=False)
    source = Column(Text, nullable=True)  # file path or adapter name

    imported = Column(Integer, nullable=False, default=0)
    skipped = Column(Integer, nullable=False, default=0)
    duplicates = Column(Integer, nullable=False, default=0)
    matched = Column(Integer, nullable=False, default=0)

    status = Column(String(20), nullable=False, default="running")  # running, done, rolled_back
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    rolled_back_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<ImportBatch(id={self.id}, status='{self.status}', imported={self.imported})>"


class CacheDocumentModel(Base):
    """Derived cache document, keyed by collection and document id."""

    __tablename__ = "cache_documents"

    collection = Column(String(64), primary_key=True)
    doc_id = Column(String(255), primary_key=True)
    payload = Column(JSON, nullable=False)


class CacheMetaModel(Base):
    """Status record for one cache job."""

    __tablename__ = "cache_meta"

    name = Column(String(64), primary_key=True)
    status = Column(String(20), nullable=False)
    range_from = Column(String(10), nullable=True)
    range_to = Column(String(10), nullable=True)
    message = Column(Text, nullable=True)
    debug = Column(JSON, nullable=True)
    started_at = Column(DateTime, nullable=True)
    finished_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<CacheMeta(name='{self.name}', status='{self.status}')>"
