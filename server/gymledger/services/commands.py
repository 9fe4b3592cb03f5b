from __future__ import annotations

import logging
from typing import Any, Callable

from pydantic import ValidationError
from sqlalchemy.orm import Session

from gymledger.core.errors import LedgerError, LedgerValidationError
from gymledger.schemas.deleted_member import DeletedMemberOut
from gymledger.schemas.member import (
    MemberComplete,
    MemberCreate,
    MemberOut,
    MemberPartialCreate,
    MemberUpdate,
)
from gymledger.schemas.receipt import ReceiptCreate, ReceiptOut, ReceiptUpdate, ReceiptVersionCreate
from gymledger.services import archive, identity, ledger, members, reconciler, subscriptions

logger = logging.getLogger(__name__)

CommandHandler = Callable[[Session, dict[str, Any]], dict[str, Any]]
COMMANDS: dict[str, CommandHandler] = {}


def command(name: str) -> Callable[[CommandHandler], CommandHandler]:
    def register(handler: CommandHandler) -> CommandHandler:
        COMMANDS[name] = handler
        return handler

    return register


def _require_id(payload: dict[str, Any], key: str) -> int:
    value = payload.get(key)
    if value is None or value == "":
        raise LedgerValidationError(f"{key} is required")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise LedgerValidationError(f"{key} must be an integer") from exc


def _without(payload: dict[str, Any], *keys: str) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if key not in keys}


def _member_out(member) -> dict[str, Any]:
    return MemberOut.model_validate(member).model_dump(mode="json")


def _receipt_out(receipt) -> dict[str, Any]:
    return ReceiptOut.model_validate(receipt).model_dump(mode="json")


def dispatch(db: Session, name: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
    """Run one command and wrap the outcome in a ``{success, data, error}`` envelope.

    Failures roll the session back so nothing from the failed command leaks
    into the next one.
    """

    handler = COMMANDS.get(name)
    if handler is None:
        return {"success": False, "error": f"Unknown command: {name}"}
    try:
        result = handler(db, dict(payload or {}))
    except LedgerError as exc:
        db.rollback()
        logger.warning("command_failed", extra={"command": name, "code": exc.code, "detail": exc.detail})
        return {"success": False, "error": exc.detail, "code": exc.code}
    except ValidationError as exc:
        db.rollback()
        logger.warning("command_invalid_payload", extra={"command": name, "errors": exc.error_count()})
        return {"success": False, "error": str(exc), "code": LedgerValidationError.code}
    except Exception:
        db.rollback()
        logger.exception("command_crashed", extra={"command": name})
        return {"success": False, "error": "Unexpected error while processing the command"}
    return {"success": True, **result}


@command("member.create")
def _member_create(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    member = members.create_member(db, MemberCreate.model_validate(payload))
    return {"data": True, "member_id": member.id}


@command("member.update")
def _member_update(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    member_id = _require_id(payload, "member_id")
    members.update_member(db, member_id, MemberUpdate.model_validate(_without(payload, "member_id")))
    return {}


@command("member.delete")
def _member_delete(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    snapshot = archive.delete_member(
        db,
        _require_id(payload, "member_id"),
        actor=payload.get("actor"),
        reason=payload.get("reason"),
    )
    return {"snapshot_id": snapshot.id}


@command("member.restore")
def _member_restore(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    member, _ = archive.restore_deleted_member(db, _require_id(payload, "snapshot_id"))
    return {"memberId": member.id}


@command("member.permanentDelete")
def _member_permanent_delete(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    archive.permanently_delete_member(db, _require_id(payload, "snapshot_id"))
    return {}


@command("member.listDeleted")
def _member_list_deleted(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    items, _ = archive.list_deleted_members(db, page=1, page_size=int(payload.get("limit", 100)))
    return {"data": [DeletedMemberOut.model_validate(item).model_dump(mode="json") for item in items]}


@command("member.savePartial")
def _member_save_partial(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    member = members.save_partial_member(db, MemberPartialCreate.model_validate(payload))
    return {"data": _member_out(member)}


@command("member.completePartial")
def _member_complete_partial(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    member_id = _require_id(payload, "member_id")
    member = members.complete_partial_member(db, member_id, MemberComplete.model_validate(_without(payload, "member_id")))
    return {"data": _member_out(member)}


@command("member.payDue")
def _member_pay_due(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    if payload.get("payment_amount") in (None, ""):
        raise LedgerValidationError("payment_amount is required")
    outcome = ledger.pay_due(
        db,
        _require_id(payload, "member_id"),
        payload["payment_amount"],
        payload.get("payment_type") or "cash",
        actor=payload.get("actor"),
    )
    return {
        "updated_member_data": _member_out(outcome.member),
        "new_receipt": _receipt_out(outcome.receipt),
        "confirmation_message": outcome.confirmation_message,
    }


@command("member.dueAmount")
def _member_due_amount(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    summary = members.member_due_summary(db, _require_id(payload, "member_id"))
    return {"dueAmount": float(summary["due_amount"]), "unpaidInvoices": summary["unpaid_invoices"]}


@command("member.updateNumber")
def _member_update_number(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    identity.update_member_number(db, _require_id(payload, "member_id"), str(payload.get("member_number") or ""))
    return {}


@command("member.clearDues")
def _member_clear_dues(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    if payload.get("payment_amount") in (None, ""):
        raise LedgerValidationError("payment_amount is required")
    outcome = ledger.clear_member_due_amounts(db, _require_id(payload, "member_id"), payload["payment_amount"])
    return {
        "updatedReceipts": outcome.updated_receipts,
        "clearedAmount": float(outcome.cleared_amount),
        "remainingPayment": float(outcome.remaining_payment),
    }


@command("receipt.create")
def _receipt_create(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    initial = bool(payload.pop("initial", False))
    result = ledger.create_receipt(db, ReceiptCreate.model_validate(payload), initial=initial)
    if isinstance(result, ledger.DuplicateSuppressed):
        return {"data": False, "duplicate": True, "existing_receipt_id": result.existing.id}
    return {"data": _receipt_out(result)}


@command("receipt.update")
def _receipt_update(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    receipt_id = _require_id(payload, "receipt_id")
    ledger.update_receipt(db, receipt_id, ReceiptUpdate.model_validate(_without(payload, "receipt_id")))
    return {}


@command("receipt.delete")
def _receipt_delete(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    ledger.delete_receipt(db, _require_id(payload, "receipt_id"))
    return {}


@command("receipt.createVersion")
def _receipt_create_version(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    receipt_id = _require_id(payload, "receipt_id")
    receipt = ledger.create_receipt_version(
        db, receipt_id, ReceiptVersionCreate.model_validate(_without(payload, "receipt_id"))
    )
    return {"data": _receipt_out(receipt)}


@command("receipt.history")
def _receipt_history(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    history = ledger.get_receipt_history(db, _require_id(payload, "receipt_id"))
    return {"data": [_receipt_out(receipt) for receipt in history]}


@command("receipt.fixAmounts")
def _receipt_fix_amounts(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    return {"data": ledger.fix_receipt_amounts(db)}


@command("ledger.reconcileAll")
def _ledger_reconcile_all(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    return {"data": reconciler.reconcile_all(db)}


@command("subscription.sweepAll")
def _subscription_sweep_all(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    result = subscriptions.run_subscription_sweep(db)
    return result.counts()


@command("counter.receipt")
def _counter_receipt(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    number = identity.allocate_receipt_number(db)
    db.commit()
    return {"data": number}


@command("counter.invoice")
def _counter_invoice(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    number = identity.allocate_invoice_number(db)
    db.commit()
    return {"data": number}


@command("counter.enquiry")
def _counter_enquiry(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    number = identity.allocate_enquiry_number(db)
    db.commit()
    return {"data": number}


@command("counter.member")
def _counter_member(db: Session, payload: dict[str, Any]) -> dict[str, Any]:
    number = identity.allocate_member_number(db)
    db.commit()
    return {"data": number}
