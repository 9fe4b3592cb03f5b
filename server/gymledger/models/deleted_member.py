from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Column, Date, DateTime, Integer, Numeric, String, Text

from gymledger.core.db import Base


class DeletedMember(Base):
    """Snapshot of a member row taken when the member is archived."""

    __tablename__ = "deleted_members"

    id = Column(Integer, primary_key=True)
    original_member_id = Column(Integer, nullable=False, index=True)
    member_number = Column(String(32), nullable=True, index=True)
    name = Column(String(150), nullable=False)
    email = Column(String(255), nullable=True)
    mobile_no = Column(String(25), nullable=True)
    address = Column(String(255), nullable=True)
    occupation = Column(String(120), nullable=True)
    sex = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    date_of_registration = Column(Date, nullable=True)
    payment_mode = Column(String(50), nullable=True)
    plan_type = Column(String(20), nullable=True)
    membership_fees = Column(Numeric(12, 2), nullable=True)
    registration_fee = Column(Numeric(12, 2), nullable=True)
    package_fee = Column(Numeric(12, 2), nullable=True)
    discount = Column(Numeric(12, 2), nullable=True)
    paid_amount = Column(Numeric(12, 2), nullable=True)
    subscription_start_date = Column(Date, nullable=True)
    subscription_end_date = Column(Date, nullable=True)
    subscription_status = Column(String(20), nullable=True)
    status = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)
    receipts_snapshot = Column(JSON, nullable=False, default=list)
    deleted_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    deleted_by = Column(String(120), nullable=False, default="System")
    deletion_reason = Column(String(255), nullable=True)
