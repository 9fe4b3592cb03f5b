from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

InvoiceStatus = Literal["unpaid", "partial", "paid"]


class InvoiceCreate(BaseModel):
    member_id: int
    total_amount: Optional[Decimal] = Field(None, ge=0)
    due_date: Optional[date] = None


class InvoicePaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_type: str = Field("cash", min_length=1, max_length=50)
    created_by: Optional[str] = Field(None, max_length=120)


class InvoiceOut(BaseModel):
    id: int
    invoice_number: str
    member_id: int
    member_name: str
    registration_fee: Decimal
    package_fee: Decimal
    discount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    status: InvoiceStatus
    due_date: Optional[date]
    created_at: datetime

    class Config:
        from_attributes = True
