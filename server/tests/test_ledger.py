from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from gymledger.core.errors import ConstraintConflictError, LedgerValidationError, NotFoundError
from gymledger.models.receipt import Receipt
from gymledger.schemas.receipt import ReceiptCreate, ReceiptUpdate, ReceiptVersionCreate
from gymledger.services import identity, ledger, reconciler


def _ledger_sum(db_session, member_id: int) -> Decimal:
    return reconciler.ledger_paid_total(db_session, member_id)


def test_registration_creates_initial_receipt(db_session, sample_member):
    receipts = ledger.list_member_receipts(db_session, sample_member.id)

    assert len(receipts) == 1
    receipt = receipts[0]
    assert receipt.is_initial is True
    assert receipt.amount == Decimal("2000.00")
    assert receipt.amount_paid == Decimal("1000.00")
    assert receipt.due_amount == Decimal("1000.00")
    assert receipt.transaction_type == "partial_payment"
    assert receipt.package_fee == Decimal("1500.00")
    assert sample_member.paid_amount == Decimal("1000.00")


def test_pay_due_scenario(db_session, sample_member):
    outcome = ledger.pay_due(db_session, sample_member.id, Decimal("1000"), "upi", actor="front-desk")

    assert outcome.receipt.amount_paid == Decimal("1000.00")
    assert outcome.receipt.due_amount == Decimal("0.00")
    assert outcome.receipt.transaction_type == "due_payment"
    assert outcome.member.paid_amount == Decimal("2000.00")
    assert outcome.member.status == "active"
    assert "cleared" in outcome.confirmation_message
    assert len(ledger.list_member_receipts(db_session, sample_member.id)) == 2


@pytest.mark.parametrize("amount", ["0", "-5", "1000.01"])
def test_pay_due_rejects_invalid_amounts(db_session, sample_member, amount):
    with pytest.raises(LedgerValidationError):
        ledger.pay_due(db_session, sample_member.id, Decimal(amount), "cash")


def test_pay_due_rejects_when_nothing_is_due(db_session, make_member):
    member = make_member(paid_amount=Decimal("2000"))

    with pytest.raises(LedgerValidationError):
        ledger.pay_due(db_session, member.id, Decimal("10"), "cash")


def test_initial_receipt_is_idempotent(db_session, make_member):
    member = make_member()
    payload = ReceiptCreate(member_id=member.id, amount=Decimal("2000"), amount_paid=Decimal("500"), payment_type="cash")

    first = ledger.create_receipt(db_session, payload, initial=True)
    second = ledger.create_receipt(db_session, payload, initial=True)

    assert isinstance(first, Receipt)
    assert isinstance(second, ledger.DuplicateSuppressed)
    assert second.existing.id == first.id
    assert db_session.query(Receipt).filter(Receipt.member_id == member.id).count() == 1
    assert db_session.get(type(member), member.id).paid_amount == Decimal("500.00")


def test_unique_index_suppresses_race_past_precheck(db_session, make_member, monkeypatch):
    member = make_member()
    payload = ReceiptCreate(member_id=member.id, amount=Decimal("100"), payment_type="cash")
    first = ledger.create_receipt(db_session, payload, initial=True)

    real_lookup = ledger._find_initial_receipt
    calls = {"count": 0}

    def stale_lookup(db, member_id, category):
        calls["count"] += 1
        # The first look happens before the insert and misses the row.
        if calls["count"] == 1:
            return None
        return real_lookup(db, member_id, category)

    monkeypatch.setattr(ledger, "_find_initial_receipt", stale_lookup)
    second = ledger.create_receipt(db_session, payload, initial=True)

    assert isinstance(second, ledger.DuplicateSuppressed)
    assert second.existing.id == first.id
    assert db_session.query(Receipt).filter(Receipt.member_id == member.id).count() == 1


def test_create_receipt_validates_before_writing(db_session, make_member):
    member = make_member()
    before = db_session.query(Receipt).count()

    with pytest.raises(LedgerValidationError):
        ledger.create_receipt(db_session, ReceiptCreate(member_id=member.id, payment_type="cash"))
    with pytest.raises(LedgerValidationError):
        ledger.create_receipt(db_session, ReceiptCreate(amount=Decimal("10"), payment_type="cash", member_name="X"))
    with pytest.raises(LedgerValidationError):
        ledger.create_receipt(db_session, ReceiptCreate(member_id=member.id, amount=Decimal("10")))
    with pytest.raises(NotFoundError):
        ledger.create_receipt(db_session, ReceiptCreate(member_id=9999, amount=Decimal("10"), payment_type="cash"))

    assert db_session.query(Receipt).count() == before


def test_staff_receipts_do_not_touch_member_totals(db_session, sample_member):
    receipt = ledger.create_receipt(
        db_session,
        ReceiptCreate(
            member_name="Coach Anil",
            amount=Decimal("15000"),
            payment_type="bank",
            receipt_category="staff",
        ),
    )

    assert receipt.member_id is None
    assert receipt.due_amount == Decimal("0.00")
    assert _ledger_sum(db_session, sample_member.id) == Decimal("1000.00")


def test_explicit_receipt_number_must_be_unique(db_session, make_member):
    member = make_member()
    payload = ReceiptCreate(receipt_number="R-1", member_id=member.id, amount=Decimal("10"), payment_type="cash")
    ledger.create_receipt(db_session, payload)

    with pytest.raises(ConstraintConflictError):
        ledger.create_receipt(db_session, payload)


def test_due_is_clamped_to_zero(db_session, make_member):
    member = make_member()
    receipt = ledger.create_receipt(
        db_session,
        ReceiptCreate(member_id=member.id, amount=Decimal("100"), amount_paid=Decimal("250"), payment_type="cash"),
    )
    assert receipt.due_amount == Decimal("0.00")

    updated = ledger.update_receipt(db_session, receipt.id, ReceiptUpdate(amount=Decimal("40")))
    assert updated.due_amount == Decimal("0.00")


def test_update_receipt_recomputes_due_and_reconciles(db_session, sample_member):
    receipt = ledger.list_member_receipts(db_session, sample_member.id)[0]

    updated = ledger.update_receipt(db_session, receipt.id, ReceiptUpdate(amount_paid=Decimal("1500")))

    assert updated.due_amount == Decimal("500.00")
    assert db_session.get(type(sample_member), sample_member.id).paid_amount == Decimal("1500.00")


def test_delete_receipt_shrinks_member_total(db_session, sample_member):
    outcome = ledger.pay_due(db_session, sample_member.id, Decimal("400"), "cash")

    ledger.delete_receipt(db_session, outcome.receipt.id)

    member = db_session.get(type(sample_member), sample_member.id)
    assert member.paid_amount == Decimal("1000.00")
    assert _ledger_sum(db_session, member.id) == member.paid_amount


def test_receipt_version_supersedes_and_keeps_history(db_session, sample_member):
    original = ledger.list_member_receipts(db_session, sample_member.id)[0]

    corrected = ledger.create_receipt_version(
        db_session, original.id, ReceiptVersionCreate(amount_paid=Decimal("1200"), description="Typo fix")
    )
    again = ledger.create_receipt_version(db_session, corrected.id, ReceiptVersionCreate(amount_paid=Decimal("1100")))

    history = ledger.get_receipt_history(db_session, original.id)
    assert [receipt.version_number for receipt in history] == [1, 2, 3]
    assert [receipt.is_current_version for receipt in history] == [False, False, True]
    assert again.original_receipt_id == original.id
    assert again.receipt_number not in {original.receipt_number, corrected.receipt_number}
    assert history[0].superseded_at is not None
    assert history[0].amount_paid == Decimal("1000.00")

    member = db_session.get(type(sample_member), sample_member.id)
    assert member.paid_amount == Decimal("1100.00")


def test_superseded_receipt_cannot_be_edited(db_session, sample_member):
    original = ledger.list_member_receipts(db_session, sample_member.id)[0]
    ledger.create_receipt_version(db_session, original.id, ReceiptVersionCreate(amount_paid=Decimal("900")))

    with pytest.raises(LedgerValidationError):
        ledger.update_receipt(db_session, original.id, ReceiptUpdate(amount_paid=Decimal("1")))


def test_payment_edit_delta_policy_appends_adjustment(db_session, sample_member):
    ledger.pay_due(db_session, sample_member.id, Decimal("300"), "cash")
    member = db_session.get(type(sample_member), sample_member.id)

    adjustment = ledger.handle_member_payment_update(
        db_session, member, member.paid_amount, Decimal("1800"), policy="delta"
    )
    db_session.commit()

    receipts = ledger.list_member_receipts(db_session, member.id)
    assert len(receipts) == 3
    assert [receipt.amount_paid for receipt in receipts[:2]] == [Decimal("1000.00"), Decimal("300.00")]
    assert adjustment.transaction_type == "adjustment"
    assert adjustment.amount_paid == Decimal("500.00")
    assert adjustment.due_amount == Decimal("200.00")
    assert member.paid_amount == Decimal("1800.00")


def test_payment_edit_collapse_policy_rewrites_latest(db_session, sample_member):
    ledger.pay_due(db_session, sample_member.id, Decimal("300"), "cash")
    member = db_session.get(type(sample_member), sample_member.id)

    ledger.handle_member_payment_update(db_session, member, member.paid_amount, Decimal("1800"), policy="collapse")
    db_session.commit()

    receipts = ledger.list_member_receipts(db_session, member.id)
    assert len(receipts) == 2
    assert receipts[0].amount_paid == Decimal("0.00")
    assert receipts[0].due_amount == Decimal("0.00")
    assert receipts[1].amount == Decimal("2000.00")
    assert receipts[1].amount_paid == Decimal("1800.00")
    assert receipts[1].due_amount == Decimal("200.00")
    assert member.paid_amount == Decimal("1800.00")


@pytest.mark.parametrize("policy", ["delta", "collapse"])
def test_payment_edit_without_receipts_synthesizes_one(db_session, make_member, policy):
    member = make_member()
    assert ledger.list_member_receipts(db_session, member.id) == []

    ledger.handle_member_payment_update(db_session, member, Decimal("0"), Decimal("750"), policy=policy)
    db_session.commit()

    receipts = ledger.list_member_receipts(db_session, member.id)
    assert len(receipts) == 1
    assert receipts[0].amount == Decimal("2000.00")
    assert receipts[0].amount_paid == Decimal("750.00")
    assert receipts[0].due_amount == Decimal("1250.00")
    assert member.paid_amount == Decimal("750.00")


def test_clear_member_due_amounts_oldest_first(db_session, make_member):
    member = make_member()
    for paid in ("100", "200"):
        ledger.create_receipt(
            db_session,
            ReceiptCreate(member_id=member.id, amount=Decimal("500"), amount_paid=Decimal(paid), payment_type="cash"),
        )

    outcome = ledger.clear_member_due_amounts(db_session, member.id, Decimal("450"))

    receipts = ledger.list_member_receipts(db_session, member.id)
    assert outcome.updated_receipts == 2
    assert outcome.cleared_amount == Decimal("450.00")
    assert outcome.remaining_payment == Decimal("0.00")
    assert [receipt.due_amount for receipt in receipts] == [Decimal("0.00"), Decimal("250.00")]
    assert db_session.get(type(member), member.id).paid_amount == Decimal("750.00")


def test_fix_receipt_amounts_backfills_legacy_rows(db_session, make_member):
    member = make_member()
    legacy = Receipt(
        receipt_number="L-1",
        member_id=member.id,
        member_name=member.name,
        amount=Decimal("300"),
        amount_paid=None,
        due_amount=None,
        payment_type="cash",
        receipt_category=None,
    )
    db_session.add(legacy)
    db_session.commit()

    assert ledger.fix_receipt_amounts(db_session) == 1
    assert legacy.amount_paid == Decimal("300.00")
    assert legacy.due_amount == Decimal("0.00")
    assert db_session.get(type(member), member.id).paid_amount == Decimal("300.00")


def test_negative_receipt_amounts_are_rejected_by_the_schema():
    with pytest.raises(ValidationError):
        ReceiptCreate(member_id=1, amount=Decimal("100"), amount_paid=Decimal("-5000"), payment_type="cash")
    with pytest.raises(ValidationError):
        ReceiptUpdate(due_amount=Decimal("-1"))
    with pytest.raises(ValidationError):
        ReceiptVersionCreate(amount_paid=Decimal("-1"))


def test_negative_receipt_amounts_never_reach_the_ledger(db_session, sample_member):
    receipt = ledger.list_member_receipts(db_session, sample_member.id)[0]
    unchecked = ReceiptCreate.model_construct(
        member_id=sample_member.id, amount=Decimal("100"), amount_paid=Decimal("-5000"), payment_type="cash"
    )

    with pytest.raises(LedgerValidationError):
        ledger.create_receipt(db_session, unchecked)
    with pytest.raises(LedgerValidationError):
        ledger.update_receipt(db_session, receipt.id, ReceiptUpdate.model_construct(amount_paid=Decimal("-1")))
    with pytest.raises(LedgerValidationError):
        ledger.create_receipt_version(
            db_session, receipt.id, ReceiptVersionCreate.model_construct(due_amount=Decimal("-1"))
        )
    db_session.rollback()

    assert len(ledger.list_member_receipts(db_session, sample_member.id)) == 1
    assert _ledger_sum(db_session, sample_member.id) == Decimal("1000.00")


def test_receipt_number_is_not_reused_after_delete(db_session, sample_member):
    created = ledger.create_receipt(
        db_session,
        ReceiptCreate(member_id=sample_member.id, amount=Decimal("100"), payment_type="cash"),
    )
    deleted_number = created.receipt_number
    ledger.delete_receipt(db_session, created.id)

    following = ledger.create_receipt(
        db_session,
        ReceiptCreate(member_id=sample_member.id, amount=Decimal("100"), payment_type="cash"),
    )

    assert following.receipt_number != deleted_number
    assert int(following.receipt_number) > int(deleted_number)
    assert int(identity.allocate_receipt_number(db_session)) > int(following.receipt_number)


@pytest.mark.parametrize("status", ["inactive", "frozen"])
def test_pay_due_keeps_operator_status(db_session, sample_member, status):
    sample_member.status = status
    db_session.commit()

    outcome = ledger.pay_due(db_session, sample_member.id, Decimal("1000"), "cash")

    assert outcome.member.status == status


def test_pay_due_does_not_reactivate_expired_subscription(db_session, make_member):
    member = make_member(
        paid_amount=Decimal("1000"),
        subscription_start_date=date.today() - timedelta(days=90),
        status="inactive",
    )
    assert member.subscription_status == "expired"

    outcome = ledger.pay_due(db_session, member.id, Decimal("1000"), "cash")

    assert outcome.member.status == "inactive"
