from __future__ import annotations

import logging

from gymledger.models.deleted_member import DeletedMember
from gymledger.models.member import Member
from gymledger.models.receipt import Receipt

logger = logging.getLogger(__name__)


def notify_payment_receipt(receipt: Receipt) -> None:
    """Enqueue a payment notice for the member; delivery lives elsewhere."""

    logger.info(
        "payment_notice_enqueued",
        extra={
            "receipt_id": receipt.id,
            "receipt_number": receipt.receipt_number,
            "member_id": receipt.member_id,
            "amount_paid": str(receipt.amount_paid),
            "due_amount": str(receipt.due_amount),
        },
    )


def notify_subscription_status_changed(member: Member, new_status: str) -> None:
    level = logging.WARNING if new_status == "expired" else logging.INFO
    logger.log(
        level,
        "subscription_reminder_enqueued",
        extra={
            "member_id": member.id,
            "member_number": member.member_number,
            "member_name": member.name,
            "subscription_status": new_status,
            "subscription_end_date": member.subscription_end_date.isoformat()
            if member.subscription_end_date
            else None,
        },
    )


def notify_member_archived(snapshot: DeletedMember) -> None:
    logger.info(
        "member_archived",
        extra={
            "snapshot_id": snapshot.id,
            "member_id": snapshot.original_member_id,
            "deleted_by": snapshot.deleted_by,
            "reason": snapshot.deletion_reason,
        },
    )
