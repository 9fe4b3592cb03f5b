from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from gymledger.core.errors import ConstraintConflictError, LedgerValidationError, NotFoundError
from gymledger.models.member import Member
from gymledger.models.receipt import Receipt
from gymledger.schemas.member import MemberComplete, MemberCreate, MemberPartialCreate, MemberUpdate
from gymledger.schemas.receipt import ReceiptCreate
from gymledger.services import fees, identity, ledger, reconciler, subscriptions
from gymledger.services.fees import ZERO, to_money

logger = logging.getLogger(__name__)

FEE_FIELDS = {"registration_fee", "package_fee", "membership_fees", "discount", "plan_type"}
SUBSCRIPTION_FIELDS = {"plan_type", "subscription_start_date", "subscription_end_date"}
CONTACT_FIELDS = (
    "name",
    "email",
    "mobile_no",
    "address",
    "occupation",
    "sex",
    "date_of_birth",
    "notes",
)


def get_member(db: Session, member_id: int) -> Member:
    member = db.get(Member, member_id)
    if not member:
        raise NotFoundError("Member not found")
    return member


def list_members(
    db: Session,
    *,
    page: int = 1,
    page_size: int = 25,
    search: Optional[str] = None,
    status: Optional[str] = None,
    subscription_status: Optional[str] = None,
) -> tuple[list[Member], int]:
    query = db.query(Member).order_by(Member.id.asc())
    if search:
        pattern = f"%{search.lower()}%"
        query = query.filter(
            or_(
                func.lower(Member.name).like(pattern),
                func.lower(Member.member_number).like(pattern),
                Member.mobile_no.like(pattern),
            )
        )
    if status:
        query = query.filter(Member.status == status)
    if subscription_status:
        query = query.filter(Member.subscription_status == subscription_status)
    total = query.count()
    return query.offset((page - 1) * page_size).limit(page_size).all(), total


def _claim_member_number(db: Session, requested: Optional[str], member_id: Optional[int] = None) -> str:
    if not requested:
        return identity.allocate_member_number(db)
    requested = requested.strip()
    if identity.is_member_number_taken(db, requested, exclude_member_id=member_id):
        raise ConstraintConflictError(f"Member number {requested} already exists")
    identity.record_member_number(db, requested)
    return requested


def _apply_fee_fields(member: Member, values: dict[str, Any]) -> None:
    # ``membership_fees`` is the legacy name for the package fee; keep both in step.
    if "package_fee" in values and "membership_fees" not in values:
        values["membership_fees"] = values["package_fee"]
    elif "membership_fees" in values and "package_fee" not in values:
        values["package_fee"] = values["membership_fees"]
    for name in ("registration_fee", "discount"):
        if name in values and values[name] is None:
            values[name] = ZERO
    for name, value in values.items():
        setattr(member, name, value)


def _fill_subscription_defaults(member: Member, explicit_end: bool) -> None:
    if member.date_of_registration is None:
        member.date_of_registration = date.today()
    if member.plan_type is None:
        member.plan_type = "monthly"
    if member.subscription_start_date is None:
        member.subscription_start_date = member.date_of_registration
    if not explicit_end or member.subscription_end_date is None:
        member.subscription_end_date = subscriptions.calculate_subscription_end_date(
            member.subscription_start_date, member.plan_type
        )


def _issue_initial_receipt(
    db: Session,
    member: Member,
    paid: Decimal,
    *,
    receipt_number: Optional[str],
    actor: Optional[str],
) -> Receipt | ledger.DuplicateSuppressed | None:
    if paid <= ZERO:
        return None
    return ledger.create_receipt(
        db,
        ReceiptCreate(
            receipt_number=receipt_number,
            member_id=member.id,
            member_name=member.name,
            amount=fees.total_billable(member),
            amount_paid=paid,
            payment_type=member.payment_mode or "cash",
            description="Registration payment",
            created_by=actor,
        ),
        initial=True,
        auto_commit=False,
    )


def _finish_registration(db: Session, member: Member, receipt) -> None:
    reconciler.recalculate_member_totals(db, member.id)
    subscriptions.update_member_subscription_status(db, member.id)
    db.commit()
    db.refresh(member)
    if isinstance(receipt, Receipt):
        from gymledger.services.notifications import notify_payment_receipt

        notify_payment_receipt(receipt)


def create_member(db: Session, payload: MemberCreate) -> Member:
    """Register a member and, when money was taken, its initial receipt."""

    data = payload.model_dump(exclude={"paid_amount", "receipt_number", "created_by", "member_number"})
    explicit_end = data.get("subscription_end_date") is not None
    member = Member(member_number=_claim_member_number(db, payload.member_number))
    contact = {name: data.pop(name) for name in CONTACT_FIELDS}
    for name, value in contact.items():
        setattr(member, name, value)
    fee_values = {name: data.pop(name) for name in ("registration_fee", "package_fee", "membership_fees", "discount")}
    fee_values = {name: value for name, value in fee_values.items() if value is not None}
    _apply_fee_fields(member, fee_values)
    for name, value in data.items():
        setattr(member, name, value)
    if member.status != "partial":
        _fill_subscription_defaults(member, explicit_end)
    db.add(member)
    db.flush()

    receipt = _issue_initial_receipt(
        db,
        member,
        to_money(payload.paid_amount),
        receipt_number=payload.receipt_number,
        actor=payload.created_by,
    )
    _finish_registration(db, member, receipt)
    logger.info(
        "member_created",
        extra={
            "member_id": member.id,
            "member_number": member.member_number,
            "total_billable": str(fees.total_billable(member)),
            "paid_amount": str(member.paid_amount),
        },
    )
    return member


def save_partial_member(db: Session, payload: MemberPartialCreate) -> Member:
    """Store identity and contact details only; fees come later."""

    member = Member(member_number=_claim_member_number(db, payload.member_number), status="partial")
    for name in CONTACT_FIELDS:
        setattr(member, name, getattr(payload, name))
    db.add(member)
    db.commit()
    db.refresh(member)
    logger.info("member_partial_saved", extra={"member_id": member.id, "member_number": member.member_number})
    return member


def complete_partial_member(db: Session, member_id: int, payload: MemberComplete) -> Member:
    member = get_member(db, member_id)
    if not member.is_partial:
        raise LedgerValidationError("Only partial members can be completed")
    data = payload.model_dump(exclude={"paid_amount", "receipt_number", "created_by"}, exclude_none=True)
    explicit_end = "subscription_end_date" in data
    fee_values = {name: data.pop(name) for name in ("registration_fee", "package_fee", "membership_fees", "discount") if name in data}
    _apply_fee_fields(member, fee_values)
    for name, value in data.items():
        setattr(member, name, value)
    member.status = "active"
    _fill_subscription_defaults(member, explicit_end)
    db.flush()

    receipt = _issue_initial_receipt(
        db,
        member,
        to_money(payload.paid_amount),
        receipt_number=payload.receipt_number,
        actor=payload.created_by,
    )
    _finish_registration(db, member, receipt)
    logger.info("member_partial_completed", extra={"member_id": member.id})
    return member


def update_member(db: Session, member_id: int, payload: MemberUpdate) -> Member:
    """Apply profile, fee and payment edits, then reconcile once at the end."""

    member = get_member(db, member_id)
    changes = payload.model_dump(exclude_unset=True)
    new_paid = changes.pop("paid_amount", None)
    actor = changes.pop("updated_by", None)
    if "member_number" in changes:
        requested = changes.pop("member_number")
        if requested and requested != member.member_number:
            member.member_number = _claim_member_number(db, requested, member_id=member.id)
    if "name" in changes and not changes["name"]:
        raise LedgerValidationError("Member name is required")

    previous_name = member.name
    fee_values = {name: changes.pop(name) for name in ("registration_fee", "package_fee", "membership_fees", "discount") if name in changes}
    fees_changed = bool(fee_values) or "plan_type" in changes
    dates_changed = bool(SUBSCRIPTION_FIELDS & changes.keys())
    _apply_fee_fields(member, fee_values)
    for name, value in changes.items():
        setattr(member, name, value)
    if dates_changed and "subscription_end_date" not in changes and member.subscription_start_date and member.plan_type:
        member.subscription_end_date = subscriptions.calculate_subscription_end_date(
            member.subscription_start_date, member.plan_type
        )
    db.flush()

    ledger.sync_member_receipts(
        db,
        member,
        fees_changed=fees_changed or dates_changed,
        name_changed=member.name != previous_name,
    )
    if new_paid is not None:
        ledger.handle_member_payment_update(db, member, member.paid_amount, to_money(new_paid), actor=actor)
    # Fee and payment edits are both flushed before the totals are recomputed.
    reconciler.recalculate_member_totals(db, member.id)
    if dates_changed:
        subscriptions.update_member_subscription_status(db, member.id)
    db.commit()
    db.refresh(member)
    logger.info("member_updated", extra={"member_id": member.id, "fields": sorted(payload.model_dump(exclude_unset=True))})
    return member


def member_due_summary(db: Session, member_id: int) -> dict[str, Any]:
    member = get_member(db, member_id)
    due = fees.due_amount(db, member)
    return {
        "member_id": member.id,
        "due_amount": due,
        "unpaid_invoices": 1 if due > ZERO else 0,
    }
