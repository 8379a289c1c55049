"""Statement adapters, fingerprinting, dedup and batch rollback."""

import datetime
from decimal import Decimal

import pytest

from travel_ledger.database.models import ImportBatchModel
from travel_ledger.errors import StatementParseError
from travel_ledger.importers import parse_mt940, parse_tabular
from travel_ledger.importers.statement_importer import (
    fingerprint,
    guess_method,
    import_statement,
    import_statement_file,
    rollback_import,
)
from travel_ledger.importers.tabular import clean_amount
from travel_ledger.models.common import TransactionStatus
from travel_ledger.models.transaction import Transaction

MT940 = """:20:STATEMENT
:25:RO49AAAA1B31007593840000
:28C:00001/001
:60F:C250701EUR1000,00
:61:2507020702C150,00NTRFNONREF//REF1
:86:CLIENT PAYMENT
BOOKING   42
:61:2507030703D25,50NMSCNONREF
:86:POS CARD FEE
:61:XXXXXXX
:62F:C250703EUR1124,50
"""


def test_parse_mt940():
    parsed = parse_mt940(MT940)
    assert parsed.malformed == 1
    assert len(parsed.rows) == 2

    first, second = parsed.rows
    assert first.date == datetime.date(2025, 7, 2)
    assert first.amount == Decimal("150.00")
    assert first.description == "CLIENT PAYMENT BOOKING 42"
    assert first.reference == "REF1"
    assert first.code == "NTRF"
    assert second.amount == Decimal("-25.50")
    assert second.description == "POS CARD FEE"


def test_parse_mt940_old_century():
    parsed = parse_mt940(":61:9912311231C10,00NTRF\n:86:OLD\n")
    assert parsed.rows[0].date == datetime.date(1999, 12, 31)


def test_parse_tabular(tmp_path):
    path = tmp_path / "statement.csv"
    path.write_text(
        "Date,Description,Debit,Credit\n"
        "02/07/2025,Client payment,,150.00\n"
        '03/07/2025,Operator,"1,200.50",\n'
        ",,,\n"
        "bad,Something,10,\n",
        encoding="utf-8",
    )
    parsed = parse_tabular(str(path))
    assert parsed.malformed == 1
    assert [r.amount for r in parsed.rows] == [Decimal("150.00"), Decimal("-1200.50")]
    assert parsed.rows[0].date == datetime.date(2025, 7, 2)
    assert parsed.rows[1].description == "Operator"


def test_parse_tabular_without_amount_column(tmp_path):
    path = tmp_path / "statement.csv"
    path.write_text("Date,Text\n2025-07-02,hello\n", encoding="utf-8")
    with pytest.raises(StatementParseError):
        parse_tabular(str(path))


def test_clean_amount():
    assert clean_amount("(100.00)") == Decimal("-100.00")
    assert clean_amount("$1,234.56") == Decimal("1234.56")
    assert clean_amount("1.234,56 EUR") == Decimal("1234.56")
    assert clean_amount("-12") == Decimal("-12")
    assert clean_amount("abc") is None
    assert clean_amount("") is None


def test_fingerprint():
    day = datetime.date(2025, 7, 2)
    base = fingerprint("acc-eur", day, "in", Decimal("150"), "eur", "CLIENT PAYMENT")
    assert base == "acc-eur|2025-07-02|in|150.00|EUR|CLIENT PAYMENT"
    assert base == fingerprint("acc-eur", day, "in", Decimal("150.00"), "EUR", "CLIENT PAYMENT")
    assert base != fingerprint("acc-eur", day, "in", Decimal("150.01"), "EUR", "CLIENT PAYMENT")
    assert base != fingerprint("acc-eur", day + datetime.timedelta(days=1), "in", Decimal("150"), "EUR", "CLIENT PAYMENT")
    assert base != fingerprint("acc-ron", day, "in", Decimal("150"), "EUR", "CLIENT PAYMENT")
    assert base != fingerprint("acc-eur", day, "out", Decimal("150"), "EUR", "CLIENT PAYMENT")
    assert fingerprint("a", day, "in", Decimal("1"), "EUR", "x" * 100).endswith("|" + "x" * 64)


def test_guess_method():
    assert guess_method("POS 1234 SHOP") == "card"
    assert guess_method("payment to IBAN RO49") == "iban"
    assert guess_method("CASH withdrawal ATM") == "cash"
    assert guess_method("something else") == "bank"


def test_reimport_is_deduplicated(setup_store):
    first = import_statement(setup_store, "acc-eur", parse_mt940(MT940))
    assert first["imported"] == 2
    assert first["skipped"] == 1
    assert first["duplicates"] == 0

    second = import_statement(setup_store, "acc-eur", parse_mt940(MT940))
    assert second["imported"] == 0
    assert second["duplicates"] == 2
    assert len(setup_store.list_transactions()) == 2

    card_fee = [t for t in setup_store.list_transactions() if t.kind == "out"][0]
    assert card_fee.method == "card"
    assert card_fee.base_amount == Decimal("25.50")
    assert card_fee.actual_date == datetime.date(2025, 7, 3)


def test_import_matches_planned_and_rollback_releases_it(setup_store):
    planned = setup_store.save_transaction(Transaction(
        date=datetime.date(2025, 7, 1),
        due_date=datetime.date(2025, 7, 1),
        status=TransactionStatus.PLANNED.value,
        kind="in",
        amount=Decimal("150"),
        account_id="acc-eur",
    ))

    result = import_statement(setup_store, "acc-eur", parse_mt940(MT940))
    assert result["matched"] == 1

    matched = setup_store.get_transaction(planned.id).matched_tx_id
    assert matched is not None
    actual = setup_store.get_transaction(matched)
    assert actual.status == "reconciled"
    assert actual.matched_planned_id == planned.id

    removed = rollback_import(setup_store, result["batch_id"])
    assert removed == 2
    assert [t.id for t in setup_store.list_transactions()] == [planned.id]
    assert setup_store.get_transaction(planned.id).matched_tx_id is None
    assert setup_store.session.get(ImportBatchModel, result["batch_id"]).status == "rolled_back"


def test_import_statement_file(setup_store, tmp_path):
    path = tmp_path / "july.sta"
    path.write_text(MT940, encoding="utf-8")
    result = import_statement_file(setup_store, "acc-eur", str(path))
    assert result["imported"] == 2
    batch = setup_store.session.get(ImportBatchModel, result["batch_id"])
    assert batch.imported == 2
    assert batch.status == "done"
