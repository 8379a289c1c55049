import datetime
from decimal import Decimal

from travel_ledger.config import get_owner_shares, parse_owner_config
from travel_ledger.database.models import OwnerModel
from travel_ledger.jobs.ownership import (
    completion_ratio,
    detect_owner_from_text,
    is_owner_payout,
    owner_movements_for_tx,
    split_amount,
    split_for_booking,
)
from travel_ledger.models.booking import Booking, OwnerShare
from travel_ledger.models.transaction import Transaction


def _tx(side, base_amount, **fields):
    kind = "in" if side == "income" else "out"
    return Transaction(
        date=datetime.date(2025, 7, 1),
        kind=kind,
        side=side,
        amount=Decimal(base_amount),
        base_amount=Decimal(base_amount),
        account_id="acc-eur",
        **fields,
    )


def test_split_amount_gives_rest_to_last_owner():
    owners = [OwnerShare(id=x, name=x.upper(), share=Decimal("1")) for x in "abc"]
    parts = split_amount(Decimal("100"), owners)
    assert parts == {"a": Decimal("33.33"), "b": Decimal("33.33"), "c": Decimal("33.34")}
    assert sum(parts.values()) == Decimal("100.00")

    zero_shares = [OwnerShare(id="a", name="A"), OwnerShare(id="b", name="B")]
    assert split_amount(Decimal("10"), zero_shares) == {"a": Decimal("5.00"), "b": Decimal("5.00")}


def test_split_for_booking_priority(setup_owners):
    base = dict(id="bk", brutto=Decimal("1000"), internal=Decimal("700"))

    manual = split_for_booking(
        Booking(**base, manual_override=True, owner_commissions={"a": Decimal("70"), "b": Decimal("30")}),
        setup_owners,
    )
    assert manual.rule == "manual"
    assert manual.company_amount == Decimal("100.00")
    assert manual.owners == {"a": Decimal("70.00"), "b": Decimal("30.00")}

    other_type = split_for_booking(Booking(**base, booking_type="mice", base_owner="a"), setup_owners)
    assert other_type.rule == "equal"
    assert other_type.owners == {"a": Decimal("150.00"), "b": Decimal("150.00")}

    base_owner = split_for_booking(Booking(**base, base_owner="b"), setup_owners)
    assert base_owner.owners == {"a": Decimal("0.00"), "b": Decimal("300.00")}

    shares = split_for_booking(Booking(**base, owner_shares={"a": Decimal("70"), "b": Decimal("30")}), setup_owners)
    assert shares.owners == {"a": Decimal("210.00"), "b": Decimal("90.00")}

    real = split_for_booking(Booking(**base, real_commission=Decimal("250")), setup_owners)
    assert real.company_amount == Decimal("250.00")


def test_completion_ratio_is_clamped():
    # over-collected income counts as 1.0, so the expense side decides
    assert completion_ratio(Decimal("1000"), Decimal("700"), Decimal("1500"), Decimal("350")) == Decimal("0.5")
    assert completion_ratio(Decimal("1000"), Decimal("700"), Decimal("1000"), Decimal("900")) == Decimal("1")
    assert completion_ratio(Decimal("1000"), Decimal("0"), Decimal("250"), Decimal("0")) == Decimal("0.25")
    assert completion_ratio(Decimal("0"), Decimal("0"), Decimal("10"), Decimal("10")) == Decimal("0")


def test_detect_owner_from_text(setup_owners):
    assert detect_owner_from_text("Transfer to alice popescu", setup_owners) == "a"
    assert detect_owner_from_text("BOGDAN salary", setup_owners) == "b"
    assert detect_owner_from_text("supplier", setup_owners) is None
    assert detect_owner_from_text(None, setup_owners) is None


def test_is_owner_payout(setup_owners):
    assert is_owner_payout("Founder draw", None, None, setup_owners)
    assert is_owner_payout(None, "founder loan", None, setup_owners)
    assert is_owner_payout(None, "Dividend payout", "Bogdan", setup_owners)
    assert not is_owner_payout(None, "payout", "Supplier SRL", setup_owners)
    assert not is_owner_payout("Office rent", "July", None, setup_owners)


def test_owner_movements_priority(setup_owners):
    explicit = _tx("expense", "90", owner_amounts={"a": Decimal("40")}, owner_who="b", note="dividend Bogdan")
    assert owner_movements_for_tx(explicit, setup_owners) == {"a": Decimal("-40.00"), "b": Decimal("0.00")}

    tagged = _tx("income", "100", owner_who="b")
    assert owner_movements_for_tx(tagged, setup_owners) == {"a": Decimal("0.00"), "b": Decimal("100.00")}

    split = _tx("expense", "100", owner_who="split50")
    assert owner_movements_for_tx(split, setup_owners) == {"a": Decimal("-50.00"), "b": Decimal("-50.00")}

    payout = _tx("expense", "80", note="Dividend payout Alice")
    assert owner_movements_for_tx(payout, setup_owners) == {"a": Decimal("-80.00"), "b": Decimal("0.00")}

    unnamed = _tx("expense", "80")
    assert owner_movements_for_tx(unnamed, setup_owners, category_name="Founder draw") == {
        "a": Decimal("-40.00"),
        "b": Decimal("-40.00"),
    }

    assert owner_movements_for_tx(_tx("expense", "80", note="Office rent"), setup_owners) is None
    assert owner_movements_for_tx(_tx("income", "80", owner_who="stranger"), setup_owners) is None


def test_parse_owner_config(monkeypatch):
    owners = parse_owner_config("a:Alice:60, b:Bob:40, broken")
    assert [(o.id, o.name, o.share) for o in owners] == [("a", "Alice", Decimal("60")), ("b", "Bob", Decimal("40"))]

    monkeypatch.setenv("LEDGER_OWNERS", "x:Xena:100")
    assert [o.id for o in get_owner_shares()] == ["x"]

    monkeypatch.setenv("LEDGER_OWNERS", "garbage")
    assert [o.id for o in get_owner_shares()] == ["a", "b"]


def test_load_owners_normalizes_shares(setup_store):
    reference = setup_store.reference
    fallback = [OwnerShare(id="f", name="Fallback", share=Decimal("100"))]
    assert [o.id for o in reference.load_owners(fallback)] == ["f"]

    setup_store.session.add(OwnerModel(id="a", name="Alice", share=Decimal("30"), aliases=[], position=0))
    setup_store.session.add(OwnerModel(id="b", name="Bogdan", share=Decimal("10"), aliases=["Bogdi"], position=1))
    setup_store.commit()

    owners = reference.load_owners(fallback)
    assert [(o.id, o.share) for o in owners] == [("a", Decimal("75")), ("b", Decimal("25"))]
    assert owners[1].aliases == ["Bogdi"]
