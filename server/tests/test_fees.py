from __future__ import annotations

from decimal import Decimal

import pytest

from gymledger.models.member import Member
from gymledger.services import fees


@pytest.mark.parametrize(
    ("registration", "package", "legacy", "discount", "expected"),
    [
        ("500", "1500", None, "0", "2000.00"),
        ("500", None, "1200", "200", "1500.00"),
        ("0", "1000", "9999", "0", "1000.00"),
        ("100", "100", None, "500", "0.00"),
    ],
)
def test_total_billable(registration, package, legacy, discount, expected):
    member = Member(
        name="Fee Check",
        registration_fee=Decimal(registration),
        package_fee=Decimal(package) if package else None,
        membership_fees=Decimal(legacy) if legacy else None,
        discount=Decimal(discount),
    )
    assert fees.total_billable(member) == Decimal(expected)


def test_due_amount_reads_ledger_not_cached_total(db_session, sample_member):
    # Corrupt the cache; the resolver must still answer from the receipts.
    sample_member._paid_amount = Decimal("1900")
    db_session.flush()

    assert fees.due_amount(db_session, sample_member) == Decimal("1000.00")


def test_due_amount_never_negative(db_session, make_member):
    member = make_member(registration_fee=Decimal("0"), package_fee=Decimal("100"), paid_amount=Decimal("300"))

    assert fees.due_amount(db_session, member) == Decimal("0.00")
    assert fees.clamp_due(Decimal("100"), Decimal("300")) == Decimal("0.00")
