from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from gymledger.core.db import get_db, serialized
from gymledger.schemas.receipt import (
    ReceiptCreate,
    ReceiptCreateResult,
    ReceiptFixResult,
    ReceiptListResponse,
    ReceiptOut,
    ReceiptUpdate,
    ReceiptVersionCreate,
)
from gymledger.services import ledger, reconciler

router = APIRouter(prefix="/receipts", tags=["receipts"])


@router.get("", response_model=ReceiptListResponse)
def list_receipts(
    *,
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
    member_id: Optional[int] = Query(default=None),
    category: Optional[str] = Query(default=None),
    include_superseded: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> ReceiptListResponse:
    with serialized(db):
        items, total = ledger.list_receipts(
            db,
            page=page,
            page_size=page_size,
            member_id=member_id,
            category=category,
            include_superseded=include_superseded,
        )
        return ReceiptListResponse(
            items=[ReceiptOut.model_validate(item) for item in items],
            total=total,
            page=page,
            page_size=page_size,
        )


@router.post("", response_model=ReceiptCreateResult, status_code=status.HTTP_201_CREATED)
def create_receipt(
    payload: ReceiptCreate,
    response: Response,
    initial: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> ReceiptCreateResult:
    with serialized(db):
        result = ledger.create_receipt(db, payload, initial=initial)
        if isinstance(result, ledger.DuplicateSuppressed):
            response.status_code = status.HTTP_200_OK
            return ReceiptCreateResult(duplicate=True, receipt=ReceiptOut.model_validate(result.existing))
        return ReceiptCreateResult(duplicate=False, receipt=ReceiptOut.model_validate(result))


@router.post("/fix-amounts", response_model=ReceiptFixResult)
def fix_receipt_amounts(db: Session = Depends(get_db)) -> ReceiptFixResult:
    with serialized(db):
        return ReceiptFixResult(fixed=ledger.fix_receipt_amounts(db))


@router.post("/reconcile", response_model=list[int])
def reconcile_all_members(db: Session = Depends(get_db)) -> list[int]:
    with serialized(db):
        return reconciler.reconcile_all(db)


@router.get("/{receipt_id}", response_model=ReceiptOut)
def get_receipt(receipt_id: int, db: Session = Depends(get_db)) -> ReceiptOut:
    with serialized(db):
        return ReceiptOut.model_validate(ledger.get_receipt(db, receipt_id))


@router.patch("/{receipt_id}", response_model=ReceiptOut)
def update_receipt(receipt_id: int, payload: ReceiptUpdate, db: Session = Depends(get_db)) -> ReceiptOut:
    with serialized(db):
        return ReceiptOut.model_validate(ledger.update_receipt(db, receipt_id, payload))


@router.delete("/{receipt_id}", response_model=None, status_code=status.HTTP_204_NO_CONTENT)
def delete_receipt(receipt_id: int, db: Session = Depends(get_db)) -> Response:
    with serialized(db):
        ledger.delete_receipt(db, receipt_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{receipt_id}/versions", response_model=ReceiptOut, status_code=status.HTTP_201_CREATED)
def create_receipt_version(
    receipt_id: int,
    payload: ReceiptVersionCreate,
    db: Session = Depends(get_db),
) -> ReceiptOut:
    with serialized(db):
        return ReceiptOut.model_validate(ledger.create_receipt_version(db, receipt_id, payload))


@router.get("/{receipt_id}/history", response_model=list[ReceiptOut])
def get_receipt_history(receipt_id: int, db: Session = Depends(get_db)) -> list[ReceiptOut]:
    with serialized(db):
        return [ReceiptOut.model_validate(receipt) for receipt in ledger.get_receipt_history(db, receipt_id)]
