from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

ReceiptCategory = Literal["member", "staff", "admin"]
TransactionType = Literal["payment", "partial_payment", "due_payment", "adjustment", "correction"]


class ReceiptCreate(BaseModel):
    receipt_number: Optional[str] = Field(None, max_length=32)
    member_id: Optional[int] = None
    member_name: Optional[str] = Field(None, max_length=150)
    invoice_id: Optional[int] = None
    amount: Optional[Decimal] = None
    amount_paid: Optional[Decimal] = Field(None, ge=0)
    due_amount: Optional[Decimal] = Field(None, ge=0)
    payment_type: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    receipt_category: ReceiptCategory = "member"
    transaction_type: Optional[TransactionType] = None
    is_initial: bool = False
    plan_type: Optional[str] = None
    registration_fee: Optional[Decimal] = None
    package_fee: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    subscription_start_date: Optional[date] = None
    subscription_end_date: Optional[date] = None
    created_by: Optional[str] = Field(None, max_length=120)


class ReceiptUpdate(BaseModel):
    amount: Optional[Decimal] = None
    amount_paid: Optional[Decimal] = Field(None, ge=0)
    due_amount: Optional[Decimal] = Field(None, ge=0)
    payment_type: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None


class ReceiptVersionCreate(ReceiptUpdate):
    created_by: Optional[str] = Field(None, max_length=120)


class ReceiptOut(BaseModel):
    id: int
    receipt_number: str
    member_id: Optional[int]
    member_name: str
    invoice_id: Optional[int]
    amount: Decimal
    amount_paid: Optional[Decimal]
    due_amount: Optional[Decimal]
    payment_type: str
    description: Optional[str]
    receipt_category: Optional[str]
    transaction_type: str
    is_initial: bool
    plan_type: Optional[str]
    registration_fee: Optional[Decimal]
    package_fee: Optional[Decimal]
    discount: Optional[Decimal]
    subscription_start_date: Optional[date]
    subscription_end_date: Optional[date]
    original_receipt_id: Optional[int]
    version_number: int
    is_current_version: bool
    superseded_at: Optional[datetime]
    created_at: datetime
    created_by: str

    class Config:
        from_attributes = True


class ReceiptCreateResult(BaseModel):
    duplicate: bool
    receipt: ReceiptOut


class ReceiptListResponse(BaseModel):
    items: List[ReceiptOut]
    total: int
    page: int
    page_size: int


class ReceiptFixResult(BaseModel):
    fixed: int
