from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from gymledger.core.errors import LedgerValidationError, NotFoundError
from gymledger.models.invoice import Invoice
from gymledger.models.member import Member
from gymledger.schemas.invoice import InvoiceCreate, InvoicePaymentCreate
from gymledger.schemas.receipt import ReceiptCreate
from gymledger.services import fees, identity, ledger
from gymledger.services.fees import ZERO, clamp_due, to_money

logger = logging.getLogger(__name__)


def _invoice_status(total, paid) -> str:
    if to_money(paid) <= ZERO:
        return "unpaid"
    if clamp_due(total, paid) > ZERO:
        return "partial"
    return "paid"


def get_invoice(db: Session, invoice_id: int) -> Invoice:
    invoice = db.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError("Invoice not found")
    return invoice


def list_invoices(db: Session, *, member_id: Optional[int] = None, status: Optional[str] = None) -> list[Invoice]:
    query = db.query(Invoice).order_by(Invoice.created_at.desc(), Invoice.id.desc())
    if member_id:
        query = query.filter(Invoice.member_id == member_id)
    if status:
        query = query.filter(Invoice.status == status)
    return query.all()


def create_invoice(db: Session, payload: InvoiceCreate) -> Invoice:
    """Bill a member for its current fee structure, or an explicit total."""

    member = db.get(Member, payload.member_id)
    if not member:
        raise NotFoundError("Member not found")
    total = to_money(payload.total_amount) if payload.total_amount is not None else fees.total_billable(member)
    invoice = Invoice(
        invoice_number=identity.allocate_invoice_number(db),
        member_id=member.id,
        member_name=member.name,
        registration_fee=to_money(member.registration_fee),
        package_fee=member.effective_package_fee,
        discount=to_money(member.discount),
        total_amount=total,
        paid_amount=ZERO,
        status="unpaid",
        due_date=payload.due_date or member.subscription_start_date,
    )
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    logger.info(
        "invoice_created",
        extra={"invoice_id": invoice.id, "invoice_number": invoice.invoice_number, "member_id": member.id},
    )
    return invoice


def record_invoice_payment(db: Session, invoice_id: int, payload: InvoicePaymentCreate) -> tuple[Invoice, ledger.Receipt]:
    invoice = get_invoice(db, invoice_id)
    outstanding = clamp_due(invoice.total_amount, invoice.paid_amount)
    amount = to_money(payload.amount)
    if outstanding <= ZERO:
        raise LedgerValidationError("Invoice is already paid")
    if amount > outstanding:
        raise LedgerValidationError(f"Payment amount {amount} exceeds the invoice balance {outstanding}")

    receipt = ledger.create_receipt(
        db,
        ReceiptCreate(
            member_id=invoice.member_id,
            member_name=invoice.member_name,
            invoice_id=invoice.id,
            amount=outstanding,
            amount_paid=amount,
            payment_type=payload.payment_type,
            description=f"Payment against invoice {invoice.invoice_number}",
            created_by=payload.created_by,
        ),
        auto_commit=False,
    )
    invoice.paid_amount = to_money(invoice.paid_amount) + amount
    invoice.status = _invoice_status(invoice.total_amount, invoice.paid_amount)
    db.commit()
    db.refresh(invoice)
    db.refresh(receipt)

    from gymledger.services.notifications import notify_payment_receipt

    notify_payment_receipt(receipt)
    logger.info(
        "invoice_payment_recorded",
        extra={"invoice_id": invoice.id, "receipt_id": receipt.id, "status": invoice.status},
    )
    return invoice, receipt
