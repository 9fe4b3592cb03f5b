from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Column, Date, DateTime, Enum, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from gymledger.core.db import Base

MemberStatus = Enum("active", "inactive", "frozen", "partial", name="member_status")
SubscriptionStatus = Enum("active", "expiring_soon", "expired", name="subscription_status")
PlanType = Enum("monthly", "quarterly", "half_yearly", "yearly", name="plan_type")

# Columns copied verbatim into a deletion snapshot and back on restore.
MEMBER_SNAPSHOT_FIELDS = (
    "member_number",
    "name",
    "email",
    "mobile_no",
    "address",
    "occupation",
    "sex",
    "date_of_birth",
    "date_of_registration",
    "payment_mode",
    "plan_type",
    "membership_fees",
    "registration_fee",
    "package_fee",
    "discount",
    "paid_amount",
    "subscription_start_date",
    "subscription_end_date",
    "subscription_status",
    "status",
    "notes",
    "created_at",
    "updated_at",
)


class Member(Base):
    __tablename__ = "members"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    member_number = Column(String(32), unique=True, nullable=True, index=True)
    name = Column(String(150), nullable=False)
    email = Column(String(255), nullable=True)
    mobile_no = Column(String(25), nullable=True)
    address = Column(String(255), nullable=True)
    occupation = Column(String(120), nullable=True)
    sex = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    date_of_registration = Column(Date, nullable=True)
    payment_mode = Column(String(50), nullable=True)
    plan_type = Column(PlanType, nullable=True)
    membership_fees = Column(Numeric(12, 2), nullable=True)
    registration_fee = Column(Numeric(12, 2), nullable=False, default=0)
    package_fee = Column(Numeric(12, 2), nullable=True)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    # Written only by gymledger.services.reconciler; read through ``paid_amount``.
    _paid_amount = Column("paid_amount", Numeric(12, 2), nullable=False, default=0)
    subscription_start_date = Column(Date, nullable=True)
    subscription_end_date = Column(Date, nullable=True, index=True)
    subscription_status = Column(SubscriptionStatus, nullable=False, default="active")
    status = Column(MemberStatus, nullable=False, default="active")
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    receipts = relationship(
        "Receipt",
        back_populates="member",
        passive_deletes=True,
        order_by="Receipt.created_at",
    )
    invoices = relationship("Invoice", back_populates="member", passive_deletes=True)

    @property
    def paid_amount(self) -> Decimal:
        return Decimal(str(self._paid_amount or 0))

    @property
    def effective_package_fee(self) -> Decimal:
        if self.package_fee is not None:
            return Decimal(str(self.package_fee))
        return Decimal(str(self.membership_fees or 0))

    @property
    def is_partial(self) -> bool:
        return self.status == "partial"
