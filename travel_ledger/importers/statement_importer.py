"""Statement importer: turns parsed statement rows into ledger transactions.

Each row is fingerprinted for deduplication, converted to EUR with the
rate table for its date, matched against planned entries and written
with the import batch id so a whole import can be rolled back.
"""

import datetime
from decimal import Decimal
from typing import Optional

from travel_ledger.database.models import ImportBatchModel, TransactionModel
from travel_ledger.errors import LedgerError, NotFoundError
from travel_ledger.importers.base import ParsedStatement, StatementRow
from travel_ledger.importers.mt940 import parse_mt940
from travel_ledger.importers.tabular import parse_tabular
from travel_ledger.ledger.reference import ReferenceData
from travel_ledger.ledger.store import LedgerStore
from travel_ledger.logger import get_logger
from travel_ledger.models.account import new_id
from travel_ledger.models.common import MovementKind, PaymentMethod, TransactionStatus, side_for_kind
from travel_ledger.models.transaction import Transaction
from travel_ledger.reconciliation.matcher import find_planned_candidate, reconcile

logger = get_logger(__name__)

NOTE_PREFIX_LENGTH = 64


def fingerprint(account_id: str, day: datetime.date, kind: str, amount_abs: Decimal, currency: str, note: Optional[str]) -> str:
    """Deterministic dedup key for a statement line.

    Example:
        acc-1|2025-07-24|in|123.45|EUR|CARD PAYMENT SHOP 42
    """
    amount = Decimal(str(amount_abs)).quantize(Decimal("0.01"))
    return f"{account_id}|{day.isoformat()}|{kind}|{amount:.2f}|{(currency or '').upper()}|{(note or '')[:NOTE_PREFIX_LENGTH]}"


def guess_method(description: Optional[str]) -> str:
    """Payment method from keywords in the statement text, ``bank`` when unsure."""
    text = (description or "").upper()
    if "POS" in text or "CARD" in text:
        return PaymentMethod.CARD.value
    if "IBAN" in text:
        return PaymentMethod.IBAN.value
    if "CASH" in text:
        return PaymentMethod.CASH.value
    if "TRANSFER" in text:
        return PaymentMethod.BANK.value
    return PaymentMethod.BANK.value


def default_category_id(reference: ReferenceData, kind: str) -> str:
    """Placeholder category: client payments for inflows, client refunds for outflows."""
    if kind == MovementKind.IN.value:
        return reference.ensure_system_category("client_payments")
    return reference.ensure_system_category("client_refunds")


def import_statement(
    store: LedgerStore,
    account_id: str,
    parsed: ParsedStatement,
    batch_id: Optional[str] = None,
    category_id: Optional[str] = None,
) -> dict:
    """Import parsed statement rows into an account.

    Rows already present (same fingerprint) are counted as duplicates,
    rows that fail are counted as skipped. The batch is committed once.

    Returns:
        Dictionary with batch_id, imported, skipped, duplicates, matched, errors
    """
    reference = store.reference
    account = reference.get_account(account_id)
    currency = account.currency.upper()
    batch_id = batch_id or new_id()
    session = store.session

    stats = {
        "batch_id": batch_id,
        "imported": 0,
        "skipped": parsed.malformed,
        "duplicates": 0,
        "matched": 0,
        "errors": [],
    }
    batch = ImportBatchModel(id=batch_id, account_id=account_id, source=parsed.source, status="running")
    session.add(batch)

    seen = set()
    try:
        for index, row in enumerate(parsed.rows, start=1):
            try:
                outcome = _import_row(store, account_id, currency, row, batch_id, category_id, seen)
            except (LedgerError, ValueError, ArithmeticError) as e:
                # a bad row never aborts the batch
                stats["skipped"] += 1
                stats["errors"].append(f"row {index}: {e}")
                logger.warning("Row %d of batch %s skipped: %s", index, batch_id, e)
                continue
            if outcome == "duplicate":
                stats["duplicates"] += 1
            else:
                stats["imported"] += 1
                if outcome == "matched":
                    stats["matched"] += 1

        batch.imported = stats["imported"]
        batch.skipped = stats["skipped"]
        batch.duplicates = stats["duplicates"]
        batch.matched = stats["matched"]
        batch.status = "done"
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        "Import %s into %s: %d imported, %d duplicates, %d skipped, %d matched",
        batch_id,
        account.name,
        stats["imported"],
        stats["duplicates"],
        stats["skipped"],
        stats["matched"],
    )
    return stats


def _import_row(store, account_id, currency, row: StatementRow, batch_id, category_id, seen) -> str:
    kind = MovementKind.IN.value if row.amount >= 0 else MovementKind.OUT.value
    amount_abs = abs(row.amount)
    note = (row.description or "").strip()

    fp = fingerprint(account_id, row.date, kind, amount_abs, currency, note)
    if fp in seen or store.fingerprint_exists(fp):
        return "duplicate"
    seen.add(fp)

    reference = store.reference
    tx = Transaction(
        id=new_id(),
        date=row.date,
        actual_date=row.date,
        status=TransactionStatus.ACTUAL.value,
        kind=kind,
        amount=amount_abs,
        currency=currency,
        account_id=account_id,
        category_id=category_id or default_category_id(reference, kind),
        method=guess_method(note),
        note=note or None,
        fingerprint=fp,
        import_batch_id=batch_id,
    )

    rates = reference.rates_for(row.date)
    candidate = find_planned_candidate(
        store,
        rates,
        account_id=account_id,
        day=row.date,
        side=side_for_kind(kind),
        amount_abs=amount_abs,
        currency=currency,
    )
    if candidate is not None:
        reconcile(store, tx, candidate)
        return "matched"
    store.save_transaction(tx, commit=False)
    return "imported"


def rollback_import(store: LedgerStore, batch_id: str) -> int:
    """Delete every transaction of an import batch with its orders.

    Planned entries matched by those transactions become unmatched again.
    Returns the number of deleted transactions.
    """
    session = store.session
    batch = session.get(ImportBatchModel, batch_id)
    if batch is None:
        raise NotFoundError(f"Import batch {batch_id} not found")

    tx_ids = [
        tx_id for (tx_id,) in session.query(TransactionModel.id).filter(TransactionModel.import_batch_id == batch_id).all()
    ]
    try:
        store.delete_transactions(tx_ids, commit=False)
        batch.status = "rolled_back"
        batch.rolled_back_at = datetime.datetime.utcnow()
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("Rolled back import %s: %d transactions removed", batch_id, len(tx_ids))
    return len(tx_ids)


def import_statement_file(store: LedgerStore, account_id: str, file_path: str, statement_format: Optional[str] = None) -> dict:
    """Parse a statement file with the matching adapter and import it."""
    if statement_format is None:
        lower = file_path.lower()
        statement_format = "tabular" if lower.endswith((".csv", ".tsv")) else "mt940"

    if statement_format == "mt940":
        with open(file_path, "r", encoding="utf-8", errors="replace") as f:
            parsed = parse_mt940(f.read(), source=file_path)
    else:
        parsed = parse_tabular(file_path)
    return import_statement(store, account_id, parsed)


if __name__ == "__main__":
    import sys

    from travel_ledger.config import get_database_url
    from travel_ledger.database.connection import create_database_engine, get_session
    from travel_ledger.database.schema import create_tables
    from travel_ledger.logger import setup_logging

    if len(sys.argv) < 3:
        print("Usage: python -m travel_ledger.importers.statement_importer <account_id> <statement_file> [mt940|tabular]")
        print("       python -m travel_ledger.importers.statement_importer --rollback <batch_id>")
        sys.exit(1)

    setup_logging()
    engine = create_database_engine(get_database_url())
    create_tables(engine)
    session = get_session(engine)
    store = LedgerStore(session)

    try:
        if sys.argv[1] == "--rollback":
            removed = rollback_import(store, sys.argv[2])
            print(f"✓ Rolled back batch {sys.argv[2]}: {removed} transactions removed")
        else:
            fmt = sys.argv[3] if len(sys.argv) > 3 else None
            result = import_statement_file(store, sys.argv[1], sys.argv[2], fmt)
            print(f"✓ Imported {result['imported']} transactions (batch {result['batch_id']})")
            print(f"  Duplicates: {result['duplicates']}")
            print(f"  Skipped: {result['skipped']}")
            print(f"  Matched to planned: {result['matched']}")
            for error in result["errors"]:
                print(f"  ✗ {error}")
    except Exception as e:
        print(f"✗ Error: {e}")
        sys.exit(1)
    finally:
        session.close()
