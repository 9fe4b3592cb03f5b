from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy.orm import Session

from gymledger.models.member import Member

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    if value is None or value == "":
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def clamp_due(amount: Any, paid: Any) -> Decimal:
    return max(ZERO, to_money(amount) - to_money(paid))


def total_billable(member: Member) -> Decimal:
    """Registration fee plus package fee minus discount, never below zero."""

    package_fee = member.package_fee if member.package_fee is not None else member.membership_fees
    total = to_money(member.registration_fee) + to_money(package_fee) - to_money(member.discount)
    return max(ZERO, total)


def due_amount(db: Session, member: Member) -> Decimal:
    # Read the ledger rather than the cached column, which can lag behind.
    from gymledger.services.reconciler import ledger_paid_total

    return clamp_due(total_billable(member), ledger_paid_total(db, member.id))
