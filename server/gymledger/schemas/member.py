from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from gymledger.schemas.receipt import ReceiptOut

PlanType = Literal["monthly", "quarterly", "half_yearly", "yearly"]
MemberStatus = Literal["active", "inactive", "frozen", "partial"]
SubscriptionStatus = Literal["active", "expiring_soon", "expired"]

Money = Optional[Decimal]


class MemberContact(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    member_number: Optional[str] = Field(None, max_length=32)
    email: Optional[str] = Field(None, max_length=255)
    mobile_no: Optional[str] = Field(None, max_length=25)
    address: Optional[str] = Field(None, max_length=255)
    occupation: Optional[str] = Field(None, max_length=120)
    sex: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    notes: Optional[str] = None


class MemberFees(BaseModel):
    registration_fee: Money = Field(None, ge=0)
    package_fee: Money = Field(None, ge=0)
    membership_fees: Money = Field(None, ge=0)
    discount: Money = Field(None, ge=0)
    plan_type: Optional[PlanType] = None
    payment_mode: Optional[str] = Field(None, max_length=50)
    date_of_registration: Optional[date] = None
    subscription_start_date: Optional[date] = None
    subscription_end_date: Optional[date] = None


class MemberCreate(MemberContact, MemberFees):
    status: MemberStatus = "active"
    paid_amount: Decimal = Field(Decimal("0"), ge=0)
    receipt_number: Optional[str] = Field(None, max_length=32)
    created_by: Optional[str] = Field(None, max_length=120)


class MemberPartialCreate(MemberContact):
    pass


class MemberComplete(MemberFees):
    paid_amount: Decimal = Field(Decimal("0"), ge=0)
    receipt_number: Optional[str] = Field(None, max_length=32)
    created_by: Optional[str] = Field(None, max_length=120)


class MemberUpdate(MemberFees):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    member_number: Optional[str] = Field(None, max_length=32)
    email: Optional[str] = Field(None, max_length=255)
    mobile_no: Optional[str] = Field(None, max_length=25)
    address: Optional[str] = Field(None, max_length=255)
    occupation: Optional[str] = Field(None, max_length=120)
    sex: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    notes: Optional[str] = None
    status: Optional[MemberStatus] = None
    paid_amount: Money = Field(None, ge=0)
    updated_by: Optional[str] = Field(None, max_length=120)


class MemberOut(BaseModel):
    id: int
    member_number: Optional[str]
    name: str
    email: Optional[str]
    mobile_no: Optional[str]
    address: Optional[str]
    occupation: Optional[str]
    sex: Optional[str]
    date_of_birth: Optional[date]
    date_of_registration: Optional[date]
    payment_mode: Optional[str]
    plan_type: Optional[PlanType]
    membership_fees: Money
    registration_fee: Decimal
    package_fee: Money
    discount: Decimal
    paid_amount: Decimal
    subscription_start_date: Optional[date]
    subscription_end_date: Optional[date]
    subscription_status: SubscriptionStatus
    status: MemberStatus
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MemberListResponse(BaseModel):
    items: List[MemberOut]
    total: int
    page: int
    page_size: int


class MemberTotalsOut(BaseModel):
    member_id: int
    total_billable: Decimal
    actual_paid: Decimal
    calculated_due: Decimal


class MemberDueOut(BaseModel):
    member_id: int
    due_amount: Decimal
    unpaid_invoices: int


class MemberNumberUpdate(BaseModel):
    member_number: str = Field(..., min_length=1, max_length=32)


class PayDueRequest(BaseModel):
    payment_amount: Decimal
    payment_type: str = Field("cash", min_length=1, max_length=50)
    actor: Optional[str] = Field(None, max_length=120)


class PayDueResult(BaseModel):
    updated_member_data: MemberOut
    new_receipt: ReceiptOut
    confirmation_message: str


class ClearDueRequest(BaseModel):
    payment_amount: Decimal = Field(..., gt=0)


class ClearDueResult(BaseModel):
    updated_receipts: int
    cleared_amount: Decimal
    remaining_payment: Decimal
