from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from gymledger.core.db import get_db, serialized
from gymledger.schemas.deleted_member import DeletedMemberOut
from gymledger.schemas.member import (
    ClearDueRequest,
    ClearDueResult,
    MemberComplete,
    MemberCreate,
    MemberDueOut,
    MemberListResponse,
    MemberNumberUpdate,
    MemberOut,
    MemberPartialCreate,
    MemberTotalsOut,
    MemberUpdate,
    PayDueRequest,
    PayDueResult,
)
from gymledger.schemas.receipt import ReceiptOut
from gymledger.services import archive, identity, ledger, reconciler
from gymledger.services import members as members_service

router = APIRouter(prefix="/members", tags=["members"])


@router.get("", response_model=MemberListResponse, status_code=status.HTTP_200_OK)
def list_members(
    *,
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
    search: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    subscription_status: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
) -> MemberListResponse:
    with serialized(db):
        items, total = members_service.list_members(
            db,
            page=page,
            page_size=page_size,
            search=search,
            status=status_filter,
            subscription_status=subscription_status,
        )
        return MemberListResponse(
            items=[MemberOut.model_validate(item) for item in items],
            total=total,
            page=page,
            page_size=page_size,
        )


@router.post("", response_model=MemberOut, status_code=status.HTTP_201_CREATED)
def create_member(payload: MemberCreate, db: Session = Depends(get_db)) -> MemberOut:
    with serialized(db):
        return MemberOut.model_validate(members_service.create_member(db, payload))


@router.post("/partial", response_model=MemberOut, status_code=status.HTTP_201_CREATED)
def save_partial_member(payload: MemberPartialCreate, db: Session = Depends(get_db)) -> MemberOut:
    with serialized(db):
        return MemberOut.model_validate(members_service.save_partial_member(db, payload))


@router.post("/{member_id}/complete", response_model=MemberOut)
def complete_partial_member(member_id: int, payload: MemberComplete, db: Session = Depends(get_db)) -> MemberOut:
    with serialized(db):
        return MemberOut.model_validate(members_service.complete_partial_member(db, member_id, payload))


@router.get("/{member_id}", response_model=MemberOut)
def get_member(member_id: int, db: Session = Depends(get_db)) -> MemberOut:
    with serialized(db):
        return MemberOut.model_validate(members_service.get_member(db, member_id))


@router.patch("/{member_id}", response_model=MemberOut)
def update_member(member_id: int, payload: MemberUpdate, db: Session = Depends(get_db)) -> MemberOut:
    with serialized(db):
        return MemberOut.model_validate(members_service.update_member(db, member_id, payload))


@router.delete("/{member_id}", response_model=DeletedMemberOut)
def delete_member(
    member_id: int,
    actor: Optional[str] = Query(default=None, max_length=120),
    reason: Optional[str] = Query(default=None, max_length=255),
    db: Session = Depends(get_db),
) -> DeletedMemberOut:
    with serialized(db):
        snapshot = archive.delete_member(db, member_id, actor=actor, reason=reason)
        return DeletedMemberOut.model_validate(snapshot)


@router.get("/{member_id}/receipts", response_model=list[ReceiptOut])
def list_member_receipts(member_id: int, db: Session = Depends(get_db)) -> list[ReceiptOut]:
    with serialized(db):
        members_service.get_member(db, member_id)
        return [ReceiptOut.model_validate(receipt) for receipt in ledger.list_member_receipts(db, member_id)]


@router.get("/{member_id}/due", response_model=MemberDueOut)
def get_member_due(member_id: int, db: Session = Depends(get_db)) -> MemberDueOut:
    with serialized(db):
        return MemberDueOut(**members_service.member_due_summary(db, member_id))


@router.post("/{member_id}/reconcile", response_model=MemberTotalsOut)
def reconcile_member(member_id: int, db: Session = Depends(get_db)) -> MemberTotalsOut:
    with serialized(db):
        totals = reconciler.recalculate_member_totals(db, member_id)
        db.commit()
        return MemberTotalsOut(member_id=member_id, **totals)


@router.post("/{member_id}/pay-due", response_model=PayDueResult)
def pay_due(member_id: int, payload: PayDueRequest, db: Session = Depends(get_db)) -> PayDueResult:
    with serialized(db):
        outcome = ledger.pay_due(db, member_id, payload.payment_amount, payload.payment_type, actor=payload.actor)
        return PayDueResult(
            updated_member_data=MemberOut.model_validate(outcome.member),
            new_receipt=ReceiptOut.model_validate(outcome.receipt),
            confirmation_message=outcome.confirmation_message,
        )


@router.post("/{member_id}/clear-dues", response_model=ClearDueResult)
def clear_member_dues(member_id: int, payload: ClearDueRequest, db: Session = Depends(get_db)) -> ClearDueResult:
    with serialized(db):
        outcome = ledger.clear_member_due_amounts(db, member_id, payload.payment_amount)
        return ClearDueResult(
            updated_receipts=outcome.updated_receipts,
            cleared_amount=outcome.cleared_amount,
            remaining_payment=outcome.remaining_payment,
        )


@router.put("/{member_id}/member-number", response_model=MemberOut)
def update_member_number(member_id: int, payload: MemberNumberUpdate, db: Session = Depends(get_db)) -> MemberOut:
    with serialized(db):
        return MemberOut.model_validate(identity.update_member_number(db, member_id, payload.member_number))
