from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel


class DeletedMemberOut(BaseModel):
    id: int
    original_member_id: int
    member_number: Optional[str]
    name: str
    email: Optional[str]
    mobile_no: Optional[str]
    plan_type: Optional[str]
    registration_fee: Optional[Decimal]
    package_fee: Optional[Decimal]
    discount: Optional[Decimal]
    paid_amount: Optional[Decimal]
    subscription_start_date: Optional[date]
    subscription_end_date: Optional[date]
    subscription_status: Optional[str]
    status: Optional[str]
    deleted_at: datetime
    deleted_by: str
    deletion_reason: Optional[str]

    class Config:
        from_attributes = True


class DeletedMemberDetail(DeletedMemberOut):
    address: Optional[str]
    occupation: Optional[str]
    sex: Optional[str]
    date_of_birth: Optional[date]
    date_of_registration: Optional[date]
    payment_mode: Optional[str]
    membership_fees: Optional[Decimal]
    notes: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    receipts_snapshot: List[dict[str, Any]]


class RestoreResult(BaseModel):
    member_id: int
    restored_receipts: int
