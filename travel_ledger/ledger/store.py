"""Ledger store: transactions, planned entries and orders.

All writes that affect money go through ``LedgerStore`` so the base
amount is always recomputed from the rate table and never taken from the
caller.
"""

import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from travel_ledger.database.models import OrderModel, PlannedModel, TransactionModel
from travel_ledger.errors import InvalidTransitionError, LedgerError, NotFoundError
from travel_ledger.fx.converter import multiplier_to_pivot, to_pivot
from travel_ledger.ledger.reference import ReferenceData
from travel_ledger.logger import get_logger
from travel_ledger.models.common import MovementKind, TransactionStatus, quantize_money, side_for_kind
from travel_ledger.models.transaction import Order, Planned, PlannedEntry, Transaction

logger = get_logger(__name__)

ALLOWED_TRANSITIONS = {
    (TransactionStatus.PLANNED.value, TransactionStatus.ACTUAL.value),
    (TransactionStatus.PLANNED.value, TransactionStatus.RECONCILED.value),
    (TransactionStatus.ACTUAL.value, TransactionStatus.RECONCILED.value),
}

TX_FIELDS = [c.name for c in TransactionModel.__table__.columns if c.name not in ("created_at", "updated_at")]


def _to_transaction(row: TransactionModel) -> Transaction:
    return Transaction.model_validate(row, from_attributes=True)


def _to_order(row: OrderModel) -> Order:
    return Order.model_validate(row, from_attributes=True)


def _json_amounts(amounts: Dict[str, Decimal]) -> Dict[str, str]:
    return {k: str(quantize_money(v)) for k, v in (amounts or {}).items()}


class LedgerStore:
    """Unit-of-work wrapper over the ledger collections."""

    def __init__(self, session: Session, reference: Optional[ReferenceData] = None):
        self.session = session
        self.reference = reference or ReferenceData(session)

    def commit(self):
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    # Transactions

    def save_transaction(self, tx: Transaction, commit: bool = True) -> Transaction:
        """Create or update a transaction.

        Amounts are stored as magnitudes, side is derived from kind and
        ``base_amount`` is recomputed from the rate table for the
        transaction date.
        """
        if tx.kind == MovementKind.TRANSFER.value:
            if not tx.from_account_id or not tx.to_account_id:
                raise LedgerError("Transfer needs both from_account_id and to_account_id")
        elif not tx.account_id:
            raise LedgerError(f"{tx.kind} movement needs account_id")

        amount = abs(quantize_money(tx.amount))
        currency = (tx.currency or "EUR").upper()
        rates = self.reference.rates_for(tx.date)
        updates = {
            "amount": amount,
            "currency": currency,
            "side": side_for_kind(tx.kind),
            "base_amount": to_pivot(amount, currency, rates),
            "fx_rate_to_base": multiplier_to_pivot(currency, rates),
        }
        tx = tx.model_copy(update=updates)

        values = tx.model_dump(include=set(TX_FIELDS))
        values["owner_amounts"] = _json_amounts(tx.owner_amounts)

        row = self.session.get(TransactionModel, tx.id)
        if row is None:
            row = TransactionModel(**values, created_at=tx.created_at)
            self.session.add(row)
        else:
            new_status = values["status"]
            if row.status != new_status and (row.status, new_status) not in ALLOWED_TRANSITIONS:
                raise InvalidTransitionError(f"Cannot move transaction {tx.id} from {row.status} to {new_status}")
            for key, value in values.items():
                setattr(row, key, value)
            self._sync_orders(row)
        self.session.flush()

        if commit:
            self.commit()
        return tx

    def _sync_orders(self, row: TransactionModel):
        for order in self.session.query(OrderModel).filter(OrderModel.tx_id == row.id).all():
            order.status = row.status
            order.date = row.date
            order.side = row.side
            order.account_id = row.account_id
            order.currency = row.currency
            order.amount = row.amount

    def get_transaction(self, tx_id: str) -> Transaction:
        row = self.session.get(TransactionModel, tx_id)
        if row is None:
            raise NotFoundError(f"Transaction {tx_id} not found")
        return _to_transaction(row)

    def fingerprint_exists(self, fingerprint: str) -> bool:
        return (
            self.session.query(TransactionModel.id)
            .filter(TransactionModel.fingerprint == fingerprint)
            .first()
            is not None
        )

    def transition_status(self, tx_id: str, new_status: str, actual_date: Optional[datetime.date] = None) -> Transaction:
        """Move a transaction forward in its lifecycle; orders follow."""
        row = self.session.get(TransactionModel, tx_id)
        if row is None:
            raise NotFoundError(f"Transaction {tx_id} not found")
        new_status = TransactionStatus(new_status).value
        if (row.status, new_status) not in ALLOWED_TRANSITIONS:
            raise InvalidTransitionError(f"Cannot move transaction {tx_id} from {row.status} to {new_status}")

        if row.status == TransactionStatus.PLANNED.value and row.actual_date is None:
            row.actual_date = actual_date or row.date
        row.status = new_status
        self._sync_orders(row)
        self.commit()
        logger.info("Transaction %s is now %s", tx_id, new_status)
        return _to_transaction(row)

    def transactions_in_range(
        self,
        fields: Sequence[str],
        start: datetime.date,
        end: datetime.date,
        statuses: Optional[Iterable[str]] = None,
    ) -> List[Transaction]:
        """Transactions with any of ``fields`` inside [start, end].

        Producers fill different date fields, so every field is queried
        and the results are merged by id.
        """
        statuses = list(statuses) if statuses else None
        merged: Dict[str, TransactionModel] = {}
        for field in fields:
            column = getattr(TransactionModel, field)
            query = self.session.query(TransactionModel).filter(column >= start, column <= end)
            if statuses:
                query = query.filter(TransactionModel.status.in_(statuses))
            for row in query.all():
                merged[row.id] = row
        return sorted((_to_transaction(r) for r in merged.values()), key=lambda t: (t.date, t.id))

    def list_transactions(self, statuses: Optional[Iterable[str]] = None) -> List[Transaction]:
        query = self.session.query(TransactionModel)
        if statuses:
            query = query.filter(TransactionModel.status.in_(list(statuses)))
        rows = query.order_by(TransactionModel.date, TransactionModel.id).all()
        return [_to_transaction(r) for r in rows]

    def delete_transaction(self, tx_id: str):
        """Delete a transaction together with its orders in one commit."""
        if self.session.get(TransactionModel, tx_id) is None:
            raise NotFoundError(f"Transaction {tx_id} not found")
        self.delete_transactions([tx_id])

    def delete_transactions(self, tx_ids: Sequence[str], commit: bool = True):
        """Delete transactions with their orders.

        Planned entries they had reconciled are released.
        """
        try:
            for tx_id in tx_ids:
                self.release_planned_for(tx_id)
                self.session.query(OrderModel).filter(OrderModel.tx_id == tx_id).delete()
                self.session.query(TransactionModel).filter(TransactionModel.id == tx_id).delete()
            self.session.flush()
            if commit:
                self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    # Planned entries

    def add_planned(self, planned: Planned, commit: bool = True) -> Planned:
        values = planned.model_dump()
        values["amount"] = abs(quantize_money(planned.amount))
        values["currency"] = (planned.currency or "EUR").upper()
        self.session.add(PlannedModel(**values))
        self.session.flush()
        if commit:
            self.commit()
        return planned.model_copy(update={"amount": values["amount"], "currency": values["currency"]})

    def planned_entries(
        self,
        start: Optional[datetime.date] = None,
        end: Optional[datetime.date] = None,
        account_id: Optional[str] = None,
        side: Optional[str] = None,
        include_matched: bool = True,
    ) -> List[PlannedEntry]:
        """Legacy planned records and planned transactions in one shape.

        Planned transactions are keyed by due date, falling back to the
        generic date. Results are merged by id and ordered by date.
        """
        entries: Dict[str, PlannedEntry] = {}

        query = self.session.query(PlannedModel)
        if start is not None:
            query = query.filter(PlannedModel.date >= start)
        if end is not None:
            query = query.filter(PlannedModel.date <= end)
        if account_id:
            query = query.filter(PlannedModel.account_id == account_id)
        if side:
            query = query.filter(PlannedModel.side == side)
        rates_for = self.reference.rates_for
        for row in query.all():
            entries[row.id] = PlannedEntry(
                id=row.id,
                source="planned",
                date=row.date,
                side=row.side,
                account_id=row.account_id,
                amount=row.amount,
                currency=row.currency,
                base_amount=to_pivot(row.amount, row.currency, rates_for(row.date)),
                note=row.note,
                matched_tx_id=row.matched_tx_id,
            )

        planned_status = [TransactionStatus.PLANNED.value]
        if start is not None and end is not None:
            rows = self.transactions_in_range(("due_date", "date"), start, end, planned_status)
        else:
            rows = self.list_transactions(planned_status)
        for tx in rows:
            if tx.is_transfer:
                continue
            key_date = tx.due_date or tx.date
            if (start is not None and key_date < start) or (end is not None and key_date > end):
                continue
            if account_id and tx.account_id != account_id:
                continue
            if side and tx.side != side:
                continue
            entries[tx.id] = PlannedEntry(
                id=tx.id,
                source="transaction",
                date=key_date,
                side=tx.side,
                account_id=tx.account_id,
                amount=tx.amount,
                currency=tx.currency,
                base_amount=tx.base_amount,
                note=tx.note,
                matched_tx_id=tx.matched_tx_id,
            )

        result = entries.values()
        if not include_matched:
            result = [e for e in result if not e.is_matched]
        return sorted(result, key=lambda e: (e.date, e.id))

    def mark_planned_matched(self, entry: PlannedEntry, tx_id: Optional[str], commit: bool = False):
        """Link (or with ``tx_id=None`` release) a planned entry."""
        if entry.source == "planned":
            row = self.session.get(PlannedModel, entry.id)
            if row is None:
                raise NotFoundError(f"Planned entry {entry.id} not found")
            row.matched_tx_id = tx_id
            row.matched_at = datetime.datetime.utcnow() if tx_id else None
        else:
            row = self.session.get(TransactionModel, entry.id)
            if row is None:
                raise NotFoundError(f"Planned transaction {entry.id} not found")
            row.matched_tx_id = tx_id
        self.session.flush()
        if commit:
            self.commit()

    def release_planned_for(self, tx_id: str):
        """Clear every planned link pointing at ``tx_id``."""
        for row in self.session.query(PlannedModel).filter(PlannedModel.matched_tx_id == tx_id).all():
            row.matched_tx_id = None
            row.matched_at = None
        for row in self.session.query(TransactionModel).filter(TransactionModel.matched_tx_id == tx_id).all():
            row.matched_tx_id = None
        self.session.flush()

    # Orders

    def replace_orders(self, tx_id: str, orders: List[Order]) -> List[Order]:
        """Delete every order of ``tx_id`` and insert ``orders`` in one commit."""
        try:
            self.session.query(OrderModel).filter(OrderModel.tx_id == tx_id).delete()
            for order in orders:
                self.session.add(OrderModel(**order.model_dump()))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return orders

    def list_orders(
        self,
        tx_id: Optional[str] = None,
        booking_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> List[Order]:
        query = self.session.query(OrderModel)
        if tx_id:
            query = query.filter(OrderModel.tx_id == tx_id)
        if booking_id:
            query = query.filter(OrderModel.booking_id == booking_id)
        if statuses:
            query = query.filter(OrderModel.status.in_(list(statuses)))
        rows = query.order_by(OrderModel.date, OrderModel.id).all()
        return [_to_order(r) for r in rows]
