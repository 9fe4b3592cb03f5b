from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from gymledger.core.db import get_db, serialized
from gymledger.schemas.invoice import InvoiceCreate, InvoiceOut, InvoicePaymentCreate
from gymledger.services import invoices as invoices_service

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.get("", response_model=list[InvoiceOut])
def list_invoices(
    member_id: Optional[int] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
) -> list[InvoiceOut]:
    with serialized(db):
        items = invoices_service.list_invoices(db, member_id=member_id, status=status_filter)
        return [InvoiceOut.model_validate(item) for item in items]


@router.post("", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def create_invoice(payload: InvoiceCreate, db: Session = Depends(get_db)) -> InvoiceOut:
    with serialized(db):
        return InvoiceOut.model_validate(invoices_service.create_invoice(db, payload))


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(invoice_id: int, db: Session = Depends(get_db)) -> InvoiceOut:
    with serialized(db):
        return InvoiceOut.model_validate(invoices_service.get_invoice(db, invoice_id))


@router.post("/{invoice_id}/payments", response_model=InvoiceOut)
def record_invoice_payment(
    invoice_id: int,
    payload: InvoicePaymentCreate,
    db: Session = Depends(get_db),
) -> InvoiceOut:
    with serialized(db):
        invoice, _ = invoices_service.record_invoice_payment(db, invoice_id, payload)
        return InvoiceOut.model_validate(invoice)
