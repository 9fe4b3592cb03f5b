from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from gymledger.core.config import settings
from gymledger.core.errors import ConstraintConflictError, LedgerValidationError, NotFoundError
from gymledger.models.member import Member
from gymledger.models.receipt import Receipt
from gymledger.schemas.receipt import ReceiptCreate, ReceiptUpdate, ReceiptVersionCreate
from gymledger.services import fees, identity, reconciler
from gymledger.services.fees import ZERO, clamp_due, to_money

logger = logging.getLogger(__name__)

MONEY_FIELDS = ("amount", "amount_paid", "due_amount")
FEE_SNAPSHOT_FIELDS = (
    "registration_fee",
    "package_fee",
    "discount",
    "plan_type",
    "subscription_start_date",
    "subscription_end_date",
)


@dataclass
class DuplicateSuppressed:
    """A retried initial receipt; nothing was written."""

    existing: Receipt


@dataclass
class PayDueOutcome:
    member: Member
    receipt: Receipt
    confirmation_message: str


@dataclass
class ClearDueOutcome:
    updated_receipts: int
    cleared_amount: Decimal
    remaining_payment: Decimal


def _base_receipt_query(db: Session) -> Query:
    return db.query(Receipt).order_by(Receipt.created_at.desc(), Receipt.id.desc())


def get_receipt(db: Session, receipt_id: int) -> Receipt:
    receipt = db.get(Receipt, receipt_id)
    if not receipt:
        raise NotFoundError("Receipt not found")
    return receipt


def list_receipts(
    db: Session,
    *,
    page: int = 1,
    page_size: int = 25,
    member_id: Optional[int] = None,
    category: Optional[str] = None,
    include_superseded: bool = False,
) -> tuple[list[Receipt], int]:
    query = _base_receipt_query(db)
    if member_id:
        query = query.filter(Receipt.member_id == member_id)
    if category == "member":
        query = query.filter(or_(Receipt.receipt_category == "member", Receipt.receipt_category.is_(None)))
    elif category:
        query = query.filter(Receipt.receipt_category == category)
    if not include_superseded:
        query = query.filter(Receipt.is_current_version.is_(True))
    total = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return items, total


def list_member_receipts(db: Session, member_id: int) -> list[Receipt]:
    return (
        db.query(Receipt)
        .filter(*reconciler.member_ledger_filter(member_id))
        .order_by(Receipt.created_at.asc(), Receipt.id.asc())
        .all()
    )


def _resolve_member(db: Session, member_id: Optional[int]) -> Optional[Member]:
    if member_id is None:
        return None
    member = db.get(Member, member_id)
    if not member:
        raise NotFoundError("Member not found")
    return member


def _find_initial_receipt(db: Session, member_id: int, category: str) -> Optional[Receipt]:
    return (
        db.query(Receipt)
        .filter(
            Receipt.member_id == member_id,
            Receipt.receipt_category == category,
            Receipt.is_initial.is_(True),
        )
        .first()
    )


def _default_transaction_type(due: Decimal) -> str:
    return "partial_payment" if due > ZERO else "payment"


def _reject_negative_amounts(values: dict) -> None:
    for name in MONEY_FIELDS:
        value = values.get(name)
        if value is not None and to_money(value) < ZERO:
            raise LedgerValidationError(f"{name} cannot be negative")


def _validate_create(payload: ReceiptCreate, member: Optional[Member]) -> tuple[str, Decimal, str]:
    payer = (payload.member_name or (member.name if member else "") or "").strip()
    if not payer:
        raise LedgerValidationError("Payer name is required")
    if payload.amount is None:
        raise LedgerValidationError("Receipt amount is required")
    amount = to_money(payload.amount)
    if amount < ZERO:
        raise LedgerValidationError("Receipt amount cannot be negative")
    _reject_negative_amounts({"amount_paid": payload.amount_paid, "due_amount": payload.due_amount})
    payment_type = (payload.payment_type or "").strip()
    if not payment_type:
        raise LedgerValidationError("Payment method is required")
    return payer, amount, payment_type


def create_receipt(
    db: Session,
    payload: ReceiptCreate,
    *,
    initial: bool = False,
    auto_commit: bool = True,
) -> Receipt | DuplicateSuppressed:
    """Append a receipt to the ledger and reconcile its member.

    Initial receipts are idempotent per member and category: a retry returns
    :class:`DuplicateSuppressed` holding the receipt already on file.
    """

    category = payload.receipt_category or "member"
    is_initial = initial or payload.is_initial
    if category == "member" and payload.member_id is None:
        raise LedgerValidationError("Member receipts require a member reference")
    member = _resolve_member(db, payload.member_id)
    payer, amount, payment_type = _validate_create(payload, member)

    if is_initial and member is not None:
        existing = _find_initial_receipt(db, member.id, category)
        if existing is not None:
            logger.info(
                "initial_receipt_duplicate_suppressed",
                extra={"member_id": member.id, "receipt_id": existing.id},
            )
            return DuplicateSuppressed(existing)

    if payload.receipt_number:
        receipt_number = payload.receipt_number.strip()
        if db.query(Receipt.id).filter(Receipt.receipt_number == receipt_number).first():
            raise ConstraintConflictError(f"Receipt number {receipt_number} already exists")
    else:
        receipt_number = identity.allocate_receipt_number(db)

    amount_paid = to_money(payload.amount_paid) if payload.amount_paid is not None else amount
    if payload.due_amount is not None:
        due = max(ZERO, to_money(payload.due_amount))
    else:
        due = clamp_due(amount, amount_paid)

    snapshot = {}
    for name in FEE_SNAPSHOT_FIELDS:
        value = getattr(payload, name)
        if value is None and member is not None:
            value = member.effective_package_fee if name == "package_fee" else getattr(member, name)
        snapshot[name] = value

    receipt = Receipt(
        receipt_number=receipt_number,
        member_id=member.id if member else None,
        member_name=payer,
        invoice_id=payload.invoice_id,
        amount=amount,
        amount_paid=amount_paid,
        due_amount=due,
        payment_type=payment_type,
        description=payload.description,
        receipt_category=category,
        transaction_type=payload.transaction_type or _default_transaction_type(due),
        is_initial=is_initial,
        created_by=payload.created_by or "System",
        **snapshot,
    )
    try:
        with db.begin_nested():
            db.add(receipt)
            db.flush()
    except IntegrityError:
        if is_initial and member is not None:
            existing = _find_initial_receipt(db, member.id, category)
            if existing is not None:
                logger.info(
                    "initial_receipt_duplicate_suppressed",
                    extra={"member_id": member.id, "receipt_id": existing.id},
                )
                return DuplicateSuppressed(existing)
        raise ConstraintConflictError("Receipt conflicts with an existing ledger entry")

    if member is not None:
        reconciler.update_member_due_amount(db, member.id)
    logger.info(
        "receipt_created",
        extra={
            "receipt_id": receipt.id,
            "receipt_number": receipt.receipt_number,
            "member_id": receipt.member_id,
            "amount": str(amount),
            "amount_paid": str(amount_paid),
            "due_amount": str(due),
        },
    )
    if auto_commit:
        db.commit()
        db.refresh(receipt)
        if member is not None and amount_paid > ZERO:
            from gymledger.services.notifications import notify_payment_receipt

            notify_payment_receipt(receipt)
    return receipt


def update_receipt(db: Session, receipt_id: int, payload: ReceiptUpdate) -> Receipt:
    receipt = get_receipt(db, receipt_id)
    if not receipt.is_current_version:
        raise LedgerValidationError("Superseded receipts cannot be edited; create a new version instead")
    changes = payload.model_dump(exclude_unset=True)
    for name in MONEY_FIELDS:
        if name in changes and changes[name] is None:
            raise LedgerValidationError(f"{name} cannot be cleared")
    _reject_negative_amounts(changes)
    if "payment_type" in changes and not (changes["payment_type"] or "").strip():
        raise LedgerValidationError("Payment method is required")

    for name, value in changes.items():
        setattr(receipt, name, to_money(value) if name in MONEY_FIELDS else value)
    if "due_amount" in changes:
        receipt.due_amount = max(ZERO, to_money(receipt.due_amount))
    elif "amount" in changes or "amount_paid" in changes:
        receipt.due_amount = clamp_due(receipt.amount, receipt.amount_paid)

    if receipt.member_id is not None:
        reconciler.update_member_due_amount(db, receipt.member_id)
    db.commit()
    db.refresh(receipt)
    logger.info("receipt_updated", extra={"receipt_id": receipt.id, "fields": sorted(changes)})
    return receipt


def delete_receipt(db: Session, receipt_id: int) -> None:
    receipt = get_receipt(db, receipt_id)
    member_id = receipt.member_id
    number = receipt.receipt_number
    db.delete(receipt)
    db.flush()
    if member_id is not None:
        reconciler.update_member_due_amount(db, member_id)
    db.commit()
    logger.info("receipt_deleted", extra={"receipt_id": receipt_id, "receipt_number": number, "member_id": member_id})


def mark_receipt_superseded(db: Session, receipt_id: int, *, auto_commit: bool = True) -> Receipt:
    receipt = get_receipt(db, receipt_id)
    receipt.is_current_version = False
    receipt.superseded_at = datetime.utcnow()
    db.flush()
    if receipt.member_id is not None:
        reconciler.update_member_due_amount(db, receipt.member_id)
    if auto_commit:
        db.commit()
    return receipt


def create_receipt_version(db: Session, receipt_id: int, payload: ReceiptVersionCreate) -> Receipt:
    """Replace a receipt with a corrected copy, keeping the old row as history."""

    previous = get_receipt(db, receipt_id)
    if not previous.is_current_version:
        raise LedgerValidationError("Only the current version of a receipt can be corrected")
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    _reject_negative_amounts(changes)
    amount = to_money(changes.get("amount", previous.amount))
    amount_paid = to_money(changes.get("amount_paid", previous.amount_paid if previous.amount_paid is not None else amount))
    if "due_amount" in changes:
        due = max(ZERO, to_money(changes["due_amount"]))
    else:
        due = clamp_due(amount, amount_paid)

    root_id = previous.original_receipt_id or previous.id
    mark_receipt_superseded(db, previous.id, auto_commit=False)
    receipt = Receipt(
        receipt_number=identity.allocate_receipt_number(db),
        member_id=previous.member_id,
        member_name=previous.member_name,
        invoice_id=previous.invoice_id,
        amount=amount,
        amount_paid=amount_paid,
        due_amount=due,
        payment_type=changes.get("payment_type", previous.payment_type),
        description=changes.get("description", previous.description),
        receipt_category=previous.receipt_category,
        transaction_type="correction",
        is_initial=False,
        original_receipt_id=root_id,
        version_number=(previous.version_number or 1) + 1,
        is_current_version=True,
        created_by=changes.get("created_by", "System"),
        **{name: getattr(previous, name) for name in FEE_SNAPSHOT_FIELDS},
    )
    db.add(receipt)
    db.flush()
    if receipt.member_id is not None:
        reconciler.update_member_due_amount(db, receipt.member_id)
    db.commit()
    db.refresh(receipt)
    logger.info(
        "receipt_version_created",
        extra={
            "receipt_id": receipt.id,
            "superseded_receipt_id": previous.id,
            "root_receipt_id": root_id,
            "version_number": receipt.version_number,
        },
    )
    return receipt


def get_receipt_history(db: Session, root_id: int) -> list[Receipt]:
    root = get_receipt(db, root_id)
    root_id = root.original_receipt_id or root.id
    return (
        db.query(Receipt)
        .filter(or_(Receipt.id == root_id, Receipt.original_receipt_id == root_id))
        .order_by(Receipt.version_number.asc(), Receipt.id.asc())
        .all()
    )


def handle_member_payment_update(
    db: Session,
    member: Member,
    old_paid: Decimal,
    new_paid: Decimal,
    *,
    actor: Optional[str] = None,
    policy: Optional[str] = None,
) -> Optional[Receipt]:
    """Bring the ledger in line with a paid total typed in directly.

    ``delta`` appends an adjustment receipt for the difference between the
    ledger and ``new_paid``. ``collapse`` rewrites the latest receipt to the
    full totals and zeroes the earlier ones. Does not commit.
    """

    policy = policy or settings.PAYMENT_EDIT_POLICY
    new_paid = to_money(new_paid)
    total = fees.total_billable(member)
    receipts = list_member_receipts(db, member.id)
    ledger_paid = sum((to_money(r.amount_paid) for r in receipts), ZERO)
    if ledger_paid == new_paid:
        return None

    if not receipts:
        receipt = Receipt(
            receipt_number=identity.allocate_receipt_number(db),
            member_id=member.id,
            member_name=member.name,
            amount=total,
            amount_paid=new_paid,
            due_amount=clamp_due(total, new_paid),
            payment_type=member.payment_mode or "cash",
            description="Payment recorded from member profile",
            receipt_category="member",
            transaction_type=_default_transaction_type(clamp_due(total, new_paid)),
            created_by=actor or "System",
            **_member_fee_snapshot(member),
        )
        db.add(receipt)
    elif policy == "collapse":
        receipt = receipts[-1]
        for earlier in receipts[:-1]:
            earlier.amount_paid = ZERO
            earlier.due_amount = ZERO
        receipt.amount = total
        receipt.amount_paid = new_paid
        receipt.due_amount = clamp_due(total, new_paid)
    else:
        amount = max(ZERO, total - ledger_paid)
        paid = new_paid - ledger_paid
        receipt = Receipt(
            receipt_number=identity.allocate_receipt_number(db),
            member_id=member.id,
            member_name=member.name,
            amount=amount,
            amount_paid=paid,
            due_amount=clamp_due(amount, paid),
            payment_type=member.payment_mode or "cash",
            description=f"Paid amount adjusted from {ledger_paid} to {new_paid}",
            receipt_category="member",
            transaction_type="adjustment",
            created_by=actor or "System",
            **_member_fee_snapshot(member),
        )
        db.add(receipt)
    db.flush()
    reconciler.update_member_due_amount(db, member.id)
    logger.info(
        "member_payment_edited",
        extra={
            "member_id": member.id,
            "policy": policy,
            "old_paid": str(to_money(old_paid)),
            "new_paid": str(new_paid),
            "receipt_id": receipt.id,
        },
    )
    return receipt


def _member_fee_snapshot(member: Member) -> dict:
    return {
        "registration_fee": member.registration_fee,
        "package_fee": member.effective_package_fee,
        "discount": member.discount,
        "plan_type": member.plan_type,
        "subscription_start_date": member.subscription_start_date,
        "subscription_end_date": member.subscription_end_date,
    }


def sync_member_receipts(db: Session, member: Member, *, fees_changed: bool, name_changed: bool) -> int:
    """Copy the member's current name and fee structure onto its live receipts."""

    if not (fees_changed or name_changed):
        return 0
    receipts = list_member_receipts(db, member.id)
    snapshot = _member_fee_snapshot(member)
    for receipt in receipts:
        if name_changed:
            receipt.member_name = member.name
        if fees_changed:
            for name, value in snapshot.items():
                setattr(receipt, name, value)
    db.flush()
    return len(receipts)


def pay_due(
    db: Session,
    member_id: int,
    payment_amount: Decimal,
    payment_type: str,
    actor: Optional[str] = None,
) -> PayDueOutcome:
    member = _resolve_member(db, member_id)
    amount = to_money(payment_amount)
    due_before = fees.due_amount(db, member)
    if due_before <= ZERO:
        raise LedgerValidationError("Member has no outstanding due amount")
    if amount <= ZERO:
        raise LedgerValidationError("Payment amount must be greater than zero")
    if amount > due_before:
        raise LedgerValidationError(f"Payment amount {amount} exceeds the due amount {due_before}")

    remaining = due_before - amount
    receipt = create_receipt(
        db,
        ReceiptCreate(
            member_id=member.id,
            member_name=member.name,
            amount=due_before,
            amount_paid=amount,
            due_amount=remaining,
            payment_type=payment_type,
            description=f"Due payment of {amount} against outstanding {due_before}",
            transaction_type="due_payment",
            created_by=actor,
        ),
        auto_commit=False,
    )
    reconciler.recalculate_member_totals(db, member.id)
    db.commit()
    db.refresh(member)
    db.refresh(receipt)

    from gymledger.services.notifications import notify_payment_receipt

    notify_payment_receipt(receipt)
    if remaining == ZERO:
        message = f"Payment of {amount} received. All dues for {member.name} are cleared."
    else:
        message = f"Payment of {amount} received. Remaining due for {member.name}: {remaining}."
    logger.info(
        "member_due_paid",
        extra={"member_id": member.id, "receipt_id": receipt.id, "amount": str(amount), "remaining": str(remaining)},
    )
    return PayDueOutcome(member=member, receipt=receipt, confirmation_message=message)


def clear_member_due_amounts(db: Session, member_id: int, payment_amount: Decimal) -> ClearDueOutcome:
    """Spread a payment over receipts that still carry a due, oldest first."""

    _resolve_member(db, member_id)
    remaining = to_money(payment_amount)
    if remaining <= ZERO:
        raise LedgerValidationError("Payment amount must be greater than zero")
    updated = 0
    for receipt in list_member_receipts(db, member_id):
        if remaining <= ZERO:
            break
        current_due = to_money(receipt.due_amount)
        if current_due <= ZERO:
            continue
        applied = min(remaining, current_due)
        receipt.amount_paid = to_money(receipt.amount_paid) + applied
        receipt.due_amount = current_due - applied
        remaining -= applied
        updated += 1
    db.flush()
    reconciler.update_member_due_amount(db, member_id)
    db.commit()
    cleared = to_money(payment_amount) - remaining
    logger.info(
        "member_dues_cleared",
        extra={"member_id": member_id, "updated_receipts": updated, "cleared": str(cleared), "remaining": str(remaining)},
    )
    return ClearDueOutcome(updated_receipts=updated, cleared_amount=cleared, remaining_payment=remaining)


def fix_receipt_amounts(db: Session) -> int:
    """Backfill ``amount_paid`` and ``due_amount`` on legacy rows that lack them."""

    rows = (
        db.query(Receipt)
        .filter(or_(Receipt.amount_paid.is_(None), Receipt.due_amount.is_(None)))
        .all()
    )
    members: set[int] = set()
    for receipt in rows:
        if receipt.amount_paid is None:
            receipt.amount_paid = to_money(receipt.amount)
        if receipt.due_amount is None:
            receipt.due_amount = clamp_due(receipt.amount, receipt.amount_paid)
        if receipt.member_id is not None:
            members.add(receipt.member_id)
    db.flush()
    for member_id in members:
        reconciler.update_member_due_amount(db, member_id)
    db.commit()
    logger.info("receipt_amounts_fixed", extra={"fixed": len(rows)})
    return len(rows)
