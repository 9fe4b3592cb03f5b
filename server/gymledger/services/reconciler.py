from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional, TypedDict

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from gymledger.core.errors import NotFoundError
from gymledger.models.member import Member
from gymledger.models.receipt import Receipt
from gymledger.services.fees import clamp_due, to_money, total_billable

logger = logging.getLogger(__name__)


class MemberTotals(TypedDict):
    total_billable: Decimal
    actual_paid: Decimal
    calculated_due: Decimal


def member_ledger_filter(member_id: int):
    """Receipts that count towards a member's paid total."""

    return (
        Receipt.member_id == member_id,
        Receipt.is_current_version.is_(True),
        or_(Receipt.receipt_category == "member", Receipt.receipt_category.is_(None)),
    )


def ledger_paid_total(db: Session, member_id: int) -> Decimal:
    db.flush()
    total = (
        db.query(func.coalesce(func.sum(Receipt.amount_paid), 0))
        .filter(*member_ledger_filter(member_id))
        .scalar()
    )
    return to_money(total)


def _write_paid_amount(member: Member, paid: Decimal) -> bool:
    if to_money(member._paid_amount) == paid:
        return False
    member._paid_amount = paid
    return True


def update_member_due_amount(db: Session, member_id: int) -> Optional[Decimal]:
    """Refresh the cached paid total after a single-receipt change.

    Returns the new paid total, or ``None`` when the member no longer exists.
    """

    member = db.get(Member, member_id)
    if member is None:
        return None
    paid = ledger_paid_total(db, member_id)
    if _write_paid_amount(member, paid):
        db.flush()
    return paid


def recalculate_member_totals(db: Session, member_id: int) -> MemberTotals:
    member = db.get(Member, member_id)
    if member is None:
        raise NotFoundError("Member not found")
    paid = ledger_paid_total(db, member_id)
    changed = _write_paid_amount(member, paid)
    if changed:
        db.flush()
    billable = total_billable(member)
    totals: MemberTotals = {
        "total_billable": billable,
        "actual_paid": paid,
        "calculated_due": clamp_due(billable, paid),
    }
    logger.debug("member_totals_recalculated", extra={"member_id": member_id, "changed": changed, **totals})
    return totals


def reconcile_all(db: Session) -> list[int]:
    """Recompute every member's cached total; returns the ids that drifted."""

    corrected: list[int] = []
    for member in db.query(Member).order_by(Member.id).all():
        paid = ledger_paid_total(db, member.id)
        previous = to_money(member._paid_amount)
        if _write_paid_amount(member, paid):
            corrected.append(member.id)
            logger.warning(
                "member_paid_amount_corrected",
                extra={"member_id": member.id, "cached": str(previous), "ledger": str(paid)},
            )
    db.commit()
    return corrected
