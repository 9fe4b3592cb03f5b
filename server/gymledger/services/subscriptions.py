from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import and_, select, update
from sqlalchemy.orm import Session

from gymledger.core.config import settings
from gymledger.core.errors import LedgerValidationError, NotFoundError
from gymledger.models.member import Member

logger = logging.getLogger(__name__)

PLAN_MONTHS = {
    "monthly": 1,
    "quarterly": 3,
    "half_yearly": 6,
    "yearly": 12,
}
NOTIFY_STATUSES = ("expiring_soon", "expired")


@dataclass
class SweepResult:
    expired: int = 0
    expiring_soon: int = 0
    active: int = 0
    changed: dict[int, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.expired + self.expiring_soon + self.active

    def counts(self) -> dict[str, int]:
        return {"expired": self.expired, "expiring_soon": self.expiring_soon, "active": self.active}


def compute_subscription_status(end_date: date, today: date, lookahead_days: int = 7) -> str:
    if end_date < today:
        return "expired"
    if end_date <= today + timedelta(days=lookahead_days):
        return "expiring_soon"
    return "active"


def _add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def calculate_subscription_end_date(start: date, plan_type: str) -> date:
    months = PLAN_MONTHS.get(plan_type)
    if months is None:
        raise LedgerValidationError(f"Unknown plan type: {plan_type}")
    return _add_months(start, months)


def update_member_subscription_status(db: Session, member_id: int, today: Optional[date] = None) -> str:
    """Recompute one member's status from its end date; writes only on change."""

    member = db.get(Member, member_id)
    if member is None:
        raise NotFoundError("Member not found")
    if member.subscription_end_date is None:
        return member.subscription_status
    today = today or date.today()
    computed = compute_subscription_status(
        member.subscription_end_date, today, settings.SUBSCRIPTION_LOOKAHEAD_DAYS
    )
    if member.subscription_status != computed:
        previous = member.subscription_status
        member.subscription_status = computed
        db.flush()
        logger.info(
            "subscription_status_changed",
            extra={"member_id": member.id, "old_status": previous, "new_status": computed},
        )
    return computed


def _status_windows(today: date, lookahead_days: int):
    horizon = today + timedelta(days=lookahead_days)
    end = Member.subscription_end_date
    return {
        "expired": end < today,
        "expiring_soon": and_(end >= today, end <= horizon),
        "active": end > horizon,
    }


def update_all_subscription_statuses(db: Session, today: Optional[date] = None) -> SweepResult:
    """Bring every dated member's status in line with ``today``.

    Each bucket is a guarded UPDATE, so members already in the right state
    are never written and a repeated sweep changes nothing.
    """

    today = today or date.today()
    result = SweepResult()
    for status_value, window in _status_windows(today, settings.SUBSCRIPTION_LOOKAHEAD_DAYS).items():
        guard = and_(
            Member.subscription_end_date.isnot(None),
            window,
            Member.subscription_status != status_value,
        )
        ids = list(db.execute(select(Member.id).where(guard)).scalars())
        if not ids:
            continue
        db.execute(
            update(Member)
            .where(Member.id.in_(ids), guard)
            .values(subscription_status=status_value)
            .execution_options(synchronize_session=False)
        )
        setattr(result, status_value, len(ids))
        for member_id in ids:
            result.changed[member_id] = status_value
    db.commit()
    if result.changed:
        db.expire_all()
    logger.info("subscription_sweep", extra={"today": today.isoformat(), **result.counts()})
    return result


def notify_status_changes(db: Session, result: SweepResult) -> None:
    from gymledger.services.notifications import notify_subscription_status_changed

    for member_id, status_value in result.changed.items():
        if status_value not in NOTIFY_STATUSES:
            continue
        member = db.get(Member, member_id)
        if member is not None:
            notify_subscription_status_changed(member, status_value)


def run_subscription_sweep(db: Session, today: Optional[date] = None) -> SweepResult:
    """Sweep, commit, then hand reminder-worthy transitions to notifications."""

    result = update_all_subscription_statuses(db, today=today)
    notify_status_changes(db, result)
    return result
