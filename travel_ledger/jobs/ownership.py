"""Owner profit-split rules.

Pure functions: owners are always passed in, nothing is read from
configuration here.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from travel_ledger.models.booking import Booking, OwnerShare
from travel_ledger.models.common import Side, quantize_money
from travel_ledger.models.transaction import Transaction

ZERO = Decimal("0.00")
ONE = Decimal("1")

SPLIT_EQUALLY_TAGS = ("split50", "company")
PAYOUT_CATEGORY_WORDS = ("owner", "founder", "dividend")
PAYOUT_TEXT_WORDS = ("payout", "withdrawal", "dividend")


@dataclass
class BookingSplit:
    """Company commission of a booking and its per-owner split."""
    company_amount: Decimal
    owners: Dict[str, Decimal] = field(default_factory=dict)
    rule: str = "shares"


def split_equally(amount: Decimal, owners: List[OwnerShare]) -> Dict[str, Decimal]:
    """Equal parts rounded to cents; the last owner takes the rounding rest."""
    if not owners:
        return {}
    amount = quantize_money(amount)
    part = quantize_money(amount / len(owners))
    result = {o.id: part for o in owners[:-1]}
    result[owners[-1].id] = amount - part * (len(owners) - 1)
    return result


def split_amount(amount: Decimal, owners: List[OwnerShare], shares: Optional[Dict[str, Decimal]] = None) -> Dict[str, Decimal]:
    """Split ``amount`` by percentage shares.

    ``shares`` (owner id -> percent) overrides the owners' default shares
    when given. Shares are normalized by their sum; negative shares count
    as zero. The last owner with a share takes the rounding rest so the
    parts always add up to the rounded amount.
    """
    if not owners:
        return {}
    amount = quantize_money(amount)
    weights = {}
    for owner in owners:
        raw = shares.get(owner.id, 0) if shares else owner.share
        weights[owner.id] = max(Decimal("0"), Decimal(str(raw)))
    total = sum(weights.values(), Decimal("0"))
    if total <= 0:
        return split_equally(amount, owners)

    result = {o.id: ZERO for o in owners}
    holders = [o.id for o in owners if weights[o.id] > 0]
    allotted = ZERO
    for owner_id in holders[:-1]:
        part = quantize_money(amount * weights[owner_id] / total)
        result[owner_id] = part
        allotted += part
    result[holders[-1]] = amount - allotted
    return result


def split_for_booking(booking: Booking, owners: List[OwnerShare], default_type: str = "base") -> BookingSplit:
    """Company commission and owner split of a booking.

    Priority:
        1. manual override: stored per-owner amounts verbatim
        2. non-default booking type: equal split
        3. default type with a base owner: 100% to that owner
        4. default type otherwise: booking shares, else owner shares
    """
    if booking.manual_override:
        amounts = {o.id: quantize_money(booking.owner_commissions.get(o.id, ZERO)) for o in owners}
        for owner_id, value in booking.owner_commissions.items():
            amounts.setdefault(owner_id, quantize_money(value))
        return BookingSplit(company_amount=sum(amounts.values(), ZERO), owners=amounts, rule="manual")

    commission = quantize_money(booking.base_commission)

    if booking.booking_type and booking.booking_type != default_type:
        return BookingSplit(company_amount=commission, owners=split_equally(commission, owners), rule="equal")

    owner_ids = [o.id for o in owners]
    if booking.base_owner and booking.base_owner in owner_ids:
        amounts = {owner_id: ZERO for owner_id in owner_ids}
        amounts[booking.base_owner] = commission
        return BookingSplit(company_amount=commission, owners=amounts, rule="base_owner")

    return BookingSplit(
        company_amount=commission,
        owners=split_amount(commission, owners, booking.owner_shares or None),
        rule="shares",
    )


def _clamp01(value: Decimal) -> Decimal:
    return max(Decimal("0"), min(ONE, value))


def completion_ratio(brutto: Decimal, internal: Decimal, income_done: Decimal, expense_done: Decimal) -> Decimal:
    """Share of a booking's cash flow that actually happened, in [0, 1].

    The smaller of collected/brutto and paid/internal. When one side has
    no planned amount the other side's ratio stands in for it.
    """
    brutto = Decimal(str(brutto or 0))
    internal = Decimal(str(internal or 0))
    income_done = Decimal(str(income_done or 0))
    expense_done = Decimal(str(expense_done or 0))

    if brutto > 0:
        ratio_in = income_done / brutto
    elif internal > 0:
        ratio_in = expense_done / internal
    else:
        ratio_in = Decimal("0")

    if internal > 0:
        ratio_out = expense_done / internal
    elif brutto > 0:
        ratio_out = income_done / brutto
    else:
        ratio_out = Decimal("0")

    return min(_clamp01(ratio_in), _clamp01(ratio_out))


def detect_owner_from_text(text: Optional[str], owners: List[OwnerShare]) -> Optional[str]:
    """Owner id whose name or alias appears in ``text``."""
    value = (text or "").lower()
    if not value:
        return None
    for owner in owners:
        for name in [owner.name, *owner.aliases]:
            if name and name.lower() in value:
                return owner.id
    return None


def is_owner_payout(category_name: Optional[str], note: Optional[str], counterparty_name: Optional[str], owners: List[OwnerShare]) -> bool:
    """Heuristic for movements between the company and its owners."""
    category = (category_name or "").lower()
    if any(word in category for word in PAYOUT_CATEGORY_WORDS):
        return True
    text = " ".join(t for t in (note, counterparty_name) if t).lower()
    if "founder" in text:
        return True
    if any(word in text for word in PAYOUT_TEXT_WORDS) and detect_owner_from_text(text, owners):
        return True
    return False


def owner_movements_for_tx(
    tx: Transaction,
    owners: List[OwnerShare],
    category_name: Optional[str] = None,
    counterparty_name: Optional[str] = None,
) -> Optional[Dict[str, Decimal]]:
    """Per-owner effect of a transaction outside the booking flow, or None.

    Priority: explicit per-owner amounts on an expense, then the legacy
    owner tag, then the payout text heuristic. Payouts are negative,
    contributions positive.
    """
    eur = quantize_money(tx.base_amount or 0)
    owner_ids = [o.id for o in owners]
    amounts = {owner_id: ZERO for owner_id in owner_ids}

    explicit = {k: quantize_money(v) for k, v in (tx.owner_amounts or {}).items() if quantize_money(v) > 0}
    if tx.side == Side.EXPENSE.value and explicit:
        for owner_id, value in explicit.items():
            amounts[owner_id] = -value
        return amounts

    if tx.owner_who:
        sign = 1 if tx.side == Side.INCOME.value else -1
        if tx.owner_who in owner_ids:
            amounts[tx.owner_who] = sign * eur
        elif tx.owner_who in SPLIT_EQUALLY_TAGS:
            amounts.update(split_equally(sign * eur, owners))
        else:
            return None
    elif is_owner_payout(category_name, tx.note, counterparty_name, owners):
        who = detect_owner_from_text(tx.note, owners) or detect_owner_from_text(counterparty_name, owners)
        if who:
            amounts[who] = -eur
        else:
            amounts.update(split_equally(-eur, owners))
    else:
        return None

    if all(abs(v) < Decimal("0.01") for v in amounts.values()):
        return None
    return amounts
