from __future__ import annotations

from datetime import date
from typing import List

from pydantic import BaseModel

from gymledger.schemas.member import PlanType, SubscriptionStatus


class SweepOut(BaseModel):
    expired: int
    expiring_soon: int
    active: int
    changed_member_ids: List[int]


class SubscriptionStatusOut(BaseModel):
    member_id: int
    subscription_status: SubscriptionStatus


class EndDateRequest(BaseModel):
    start_date: date
    plan_type: PlanType


class EndDateOut(BaseModel):
    start_date: date
    plan_type: PlanType
    end_date: date
