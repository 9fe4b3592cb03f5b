from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gymledger.core.errors import ConstraintConflictError, LedgerValidationError, NotFoundError
from gymledger.models.counter import Counter
from gymledger.models.member import Member

logger = logging.getLogger(__name__)

RECEIPT_COUNTER = "receipt_counter"
INVOICE_COUNTER = "invoice_counter"
ENQUIRY_COUNTER = "enquiry_counter"
MEMBER_COUNTER = "member_counter"

COUNTER_DEFAULTS: dict[str, int] = {
    RECEIPT_COUNTER: 1000,
    INVOICE_COUNTER: 1000,
    ENQUIRY_COUNTER: 1000,
    MEMBER_COUNTER: 0,
}

_NUMERIC = re.compile(r"^\d+$")


def _fallback_number() -> str:
    return datetime.utcnow().strftime("%y%m%d%H%M%S%f")


def _ensure_counter(db: Session, key: str) -> None:
    exists = db.execute(select(Counter.key).where(Counter.key == key)).first()
    if exists is None:
        db.add(Counter(key=key, value=COUNTER_DEFAULTS.get(key, 0)))
        db.flush()


def _next_value(db: Session, key: str) -> int:
    """Increment ``key`` and return the new value.

    The UPDATE runs before the read so the row is write-locked for the rest
    of the transaction and no two callers see the same value.
    """

    with db.begin_nested():
        _ensure_counter(db, key)
        db.execute(
            update(Counter)
            .where(Counter.key == key)
            .values(value=Counter.value + 1)
            .execution_options(synchronize_session=False)
        )
        return db.execute(select(Counter.value).where(Counter.key == key)).scalar_one()


def _allocate(db: Session, key: str) -> Optional[int]:
    try:
        return _next_value(db, key)
    except SQLAlchemyError:
        logger.exception("counter_allocation_failed", extra={"counter": key})
        return None


def current_value(db: Session, key: str) -> int:
    value = db.execute(select(Counter.value).where(Counter.key == key)).scalar_one_or_none()
    if value is None:
        return COUNTER_DEFAULTS.get(key, 0)
    return value


def allocate_receipt_number(db: Session) -> str:
    value = _allocate(db, RECEIPT_COUNTER)
    if value is None:
        return _fallback_number()
    return f"{value:06d}"


def allocate_invoice_number(db: Session) -> str:
    value = _allocate(db, INVOICE_COUNTER)
    return f"INV{value if value is not None else _fallback_number()}"


def allocate_enquiry_number(db: Session) -> str:
    value = _allocate(db, ENQUIRY_COUNTER)
    return f"ENQ{value if value is not None else _fallback_number()}"


def is_member_number_taken(db: Session, candidate: str, exclude_member_id: Optional[int] = None) -> bool:
    query = db.query(Member.id).filter(Member.member_number == candidate)
    if exclude_member_id is not None:
        query = query.filter(Member.id != exclude_member_id)
    return db.query(query.exists()).scalar()


def _highest_numeric_member_number(db: Session) -> int:
    highest = 0
    for (number,) in db.query(Member.member_number).filter(Member.member_number.isnot(None)):
        if _NUMERIC.match(number):
            highest = max(highest, int(number))
    return highest


def _raise_member_counter(db: Session, value: int) -> None:
    _ensure_counter(db, MEMBER_COUNTER)
    db.execute(
        update(Counter)
        .where(Counter.key == MEMBER_COUNTER, Counter.value < value)
        .values(value=value)
        .execution_options(synchronize_session=False)
    )


def allocate_member_number(db: Session) -> str:
    """Next free numeric member number.

    Starts above the highest purely numeric number in use and probes upward,
    so manual renames never cause a collision.
    """

    try:
        with db.begin_nested():
            highest = _highest_numeric_member_number(db)
            candidate = highest + 1
            while is_member_number_taken(db, str(candidate)):
                candidate += 1
            _raise_member_counter(db, candidate)
    except SQLAlchemyError:
        fallback = _fallback_number()
        logger.exception("member_number_allocation_failed", extra={"fallback": fallback})
        return fallback
    logger.info("member_number_allocated", extra={"member_number": candidate, "highest": highest})
    return str(candidate)


def record_member_number(db: Session, number: str) -> None:
    """Keep ``member_counter`` at or above a manually chosen numeric number."""

    if _NUMERIC.match(number):
        _raise_member_counter(db, int(number))


def update_member_number(db: Session, member_id: int, new_number: str) -> Member:
    member = db.get(Member, member_id)
    if not member:
        raise NotFoundError("Member not found")
    new_number = (new_number or "").strip()
    if not new_number:
        raise LedgerValidationError("Member number is required")
    if new_number == member.member_number:
        return member
    if is_member_number_taken(db, new_number, exclude_member_id=member_id):
        raise ConstraintConflictError(f"Member number {new_number} already exists")

    previous = member.member_number
    member.member_number = new_number
    record_member_number(db, new_number)
    db.commit()
    logger.info(
        "member_number_changed",
        extra={"member_id": member.id, "old_number": previous, "new_number": new_number},
    )
    return member
