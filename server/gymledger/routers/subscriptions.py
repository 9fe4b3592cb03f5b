from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gymledger.core.db import get_db, serialized
from gymledger.schemas.subscription import EndDateOut, EndDateRequest, SubscriptionStatusOut, SweepOut
from gymledger.services import subscriptions

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.post("/sweep", response_model=SweepOut)
def sweep_subscriptions(db: Session = Depends(get_db)) -> SweepOut:
    with serialized(db):
        result = subscriptions.run_subscription_sweep(db)
    return SweepOut(**result.counts(), changed_member_ids=sorted(result.changed))


@router.post("/members/{member_id}/refresh", response_model=SubscriptionStatusOut)
def refresh_member_status(member_id: int, db: Session = Depends(get_db)) -> SubscriptionStatusOut:
    with serialized(db):
        status_value = subscriptions.update_member_subscription_status(db, member_id)
        db.commit()
    return SubscriptionStatusOut(member_id=member_id, subscription_status=status_value)


@router.post("/end-date", response_model=EndDateOut)
def calculate_end_date(payload: EndDateRequest) -> EndDateOut:
    end_date = subscriptions.calculate_subscription_end_date(payload.start_date, payload.plan_type)
    return EndDateOut(start_date=payload.start_date, plan_type=payload.plan_type, end_date=end_date)
