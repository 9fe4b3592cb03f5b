from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import relationship

from gymledger.core.db import Base

RECEIPT_CATEGORIES = ("member", "staff", "admin")
TRANSACTION_TYPES = ("payment", "partial_payment", "due_payment", "adjustment", "correction")


class Receipt(Base):
    __tablename__ = "receipts"
    __table_args__ = (
        # One initial receipt per member and category; retried registrations
        # hit this index and are reported as suppressed duplicates.
        Index(
            "uq_receipts_initial_member_category",
            "member_id",
            "receipt_category",
            unique=True,
            sqlite_where=text("is_initial = 1"),
            postgresql_where=text("is_initial"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True)
    receipt_number = Column(String(32), unique=True, nullable=False)
    member_id = Column(Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)
    member_name = Column(String(150), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    amount_paid = Column(Numeric(12, 2), nullable=True)
    due_amount = Column(Numeric(12, 2), nullable=True)
    payment_type = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    receipt_category = Column(String(20), nullable=True, default="member")
    transaction_type = Column(String(30), nullable=False, default="payment")
    is_initial = Column(Boolean, nullable=False, default=False)
    plan_type = Column(String(20), nullable=True)
    registration_fee = Column(Numeric(12, 2), nullable=True)
    package_fee = Column(Numeric(12, 2), nullable=True)
    discount = Column(Numeric(12, 2), nullable=True)
    subscription_start_date = Column(Date, nullable=True)
    subscription_end_date = Column(Date, nullable=True)
    original_receipt_id = Column(Integer, ForeignKey("receipts.id", ondelete="SET NULL"), nullable=True, index=True)
    version_number = Column(Integer, nullable=False, default=1)
    is_current_version = Column(Boolean, nullable=False, default=True)
    superseded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by = Column(String(120), nullable=False, default="System")

    member = relationship("Member", back_populates="receipts")
    invoice = relationship("Invoice", back_populates="receipts")
    original_receipt = relationship("Receipt", remote_side=[id], backref="versions")
