from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gymledger.core.errors import CascadeDeleteError, ConstraintConflictError, NotFoundError
from gymledger.models.activity import Attendance, BodyMeasurement
from gymledger.models.deleted_member import DeletedMember
from gymledger.models.invoice import Invoice
from gymledger.models.member import MEMBER_SNAPSHOT_FIELDS, Member
from gymledger.models.receipt import Receipt
from gymledger.schemas.receipt import ReceiptOut
from gymledger.services import identity, reconciler

logger = logging.getLogger(__name__)

# Child tables first; the member row goes last.
DEPENDENT_MODELS = (Receipt, Invoice, Attendance, BodyMeasurement)


def _receipts_snapshot(db: Session, member_id: int) -> list[dict[str, Any]]:
    receipts = db.query(Receipt).filter(Receipt.member_id == member_id).order_by(Receipt.id.asc()).all()
    return [ReceiptOut.model_validate(receipt).model_dump(mode="json") for receipt in receipts]


def _snapshot_values(member: Member) -> dict[str, Any]:
    return {name: getattr(member, name) for name in MEMBER_SNAPSHOT_FIELDS}


def _relax_foreign_keys(db: Session) -> None:
    if db.get_bind().dialect.name == "sqlite":
        db.execute(text("PRAGMA defer_foreign_keys = ON"))
    else:
        db.execute(text("SET CONSTRAINTS ALL DEFERRED"))


def _cascade_delete(db: Session, member_id: int, *, relaxed: bool = False) -> None:
    with db.begin_nested():
        if relaxed:
            _relax_foreign_keys(db)
        for model in DEPENDENT_MODELS:
            db.query(model).filter(model.member_id == member_id).delete(synchronize_session="fetch")
        db.query(Member).filter(Member.id == member_id).delete(synchronize_session="fetch")


def delete_member(
    db: Session,
    member_id: int,
    actor: Optional[str] = None,
    reason: Optional[str] = None,
) -> DeletedMember:
    """Archive a member, then remove it and its dependent rows.

    The snapshot is flushed before anything is deleted. If the cascade fails
    even with foreign keys deferred, the member stays and the snapshot is
    committed on its own so a later attempt can reuse the audit trail.
    """

    member = db.get(Member, member_id)
    if not member:
        raise NotFoundError("Member not found")

    values = _snapshot_values(member)
    snapshot_data = dict(
        original_member_id=member.id,
        receipts_snapshot=_receipts_snapshot(db, member.id),
        deleted_by=actor or "System",
        deletion_reason=reason,
        **values,
    )
    snapshot = DeletedMember(**snapshot_data)
    db.add(snapshot)
    db.flush()

    try:
        _cascade_delete(db, member_id)
    except IntegrityError as exc:
        logger.warning("member_cascade_retry", extra={"member_id": member_id, "error": str(exc.orig)})
        try:
            _cascade_delete(db, member_id, relaxed=True)
        except IntegrityError as retry_exc:
            db.commit()
            logger.error(
                "member_cascade_failed",
                extra={"member_id": member_id, "snapshot_id": snapshot.id, "error": str(retry_exc.orig)},
            )
            raise CascadeDeleteError(
                "Member could not be deleted because dependent records remain; the archive snapshot was kept"
            ) from retry_exc

    try:
        db.commit()
    except IntegrityError as exc:
        # Deferred constraints are only checked here; keep the snapshot alone.
        db.rollback()
        snapshot = DeletedMember(**snapshot_data)
        db.add(snapshot)
        db.commit()
        logger.error(
            "member_cascade_failed",
            extra={"member_id": member_id, "snapshot_id": snapshot.id, "error": str(exc.orig)},
        )
        raise CascadeDeleteError(
            "Member could not be deleted because dependent records remain; the archive snapshot was kept"
        ) from exc

    from gymledger.services.notifications import notify_member_archived

    notify_member_archived(snapshot)
    return snapshot


def get_deleted_member(
    db: Session,
    snapshot_id: Optional[int] = None,
    *,
    original_member_id: Optional[int] = None,
) -> DeletedMember:
    snapshot = None
    if snapshot_id is not None:
        snapshot = db.get(DeletedMember, snapshot_id)
    elif original_member_id is not None:
        snapshot = (
            db.query(DeletedMember)
            .filter(DeletedMember.original_member_id == original_member_id)
            .order_by(DeletedMember.deleted_at.desc(), DeletedMember.id.desc())
            .first()
        )
    if not snapshot:
        raise NotFoundError("Deleted member not found")
    return snapshot


def list_deleted_members(db: Session, *, page: int = 1, page_size: int = 25) -> tuple[list[DeletedMember], int]:
    query = db.query(DeletedMember).order_by(DeletedMember.deleted_at.desc(), DeletedMember.id.desc())
    total = query.count()
    return query.offset((page - 1) * page_size).limit(page_size).all(), total


def _restore_receipts(db: Session, snapshot: DeletedMember) -> int:
    rows = sorted(snapshot.receipts_snapshot or [], key=lambda row: row["id"])
    for row in rows:
        data = ReceiptOut.model_validate(row).model_dump()
        # Invoices are not archived, so the link cannot be restored.
        data["invoice_id"] = None
        if db.query(Receipt.id).filter(Receipt.receipt_number == data["receipt_number"]).first():
            raise ConstraintConflictError(f"Receipt number {data['receipt_number']} already exists")
        db.add(Receipt(**data))
        db.flush()
    return len(rows)


def restore_deleted_member(db: Session, snapshot_id: int) -> tuple[Member, int]:
    snapshot = get_deleted_member(db, snapshot_id)
    if snapshot.member_number and identity.is_member_number_taken(db, snapshot.member_number):
        raise ConstraintConflictError(f"Member number {snapshot.member_number} already exists")
    if db.get(Member, snapshot.original_member_id) is not None:
        raise ConstraintConflictError(f"Member id {snapshot.original_member_id} already exists")

    values = {name: getattr(snapshot, name) for name in MEMBER_SNAPSHOT_FIELDS if name != "paid_amount"}
    for stamp in ("created_at", "updated_at"):
        if values[stamp] is None:
            del values[stamp]
    values["status"] = "active"
    member = Member(id=snapshot.original_member_id, **values)
    db.add(member)
    db.flush()
    restored = _restore_receipts(db, snapshot)
    reconciler.recalculate_member_totals(db, member.id)
    # Reconciliation touches the row; keep the archived timestamp.
    member.updated_at = snapshot.updated_at or member.updated_at
    db.delete(snapshot)
    db.commit()
    db.refresh(member)
    logger.info(
        "member_restored",
        extra={"member_id": member.id, "snapshot_id": snapshot_id, "restored_receipts": restored},
    )
    return member, restored


def permanently_delete_member(db: Session, snapshot_id: int) -> None:
    snapshot = get_deleted_member(db, snapshot_id)
    original_member_id = snapshot.original_member_id
    db.delete(snapshot)
    db.commit()
    logger.info(
        "member_permanently_deleted",
        extra={"snapshot_id": snapshot_id, "member_id": original_member_id},
    )
