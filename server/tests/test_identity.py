from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from gymledger.core.errors import ConstraintConflictError
from gymledger.models.counter import Counter
from gymledger.models.member import Member
from gymledger.schemas.member import MemberUpdate
from gymledger.services import identity, members


def test_receipt_numbers_are_strictly_increasing(db_session):
    numbers = [identity.allocate_receipt_number(db_session) for _ in range(25)]
    db_session.commit()

    assert numbers[0] == "001001"
    assert len(set(numbers)) == len(numbers)
    assert [int(number) for number in numbers] == sorted(int(number) for number in numbers)
    assert all(len(number) == 6 for number in numbers)
    assert db_session.get(Counter, identity.RECEIPT_COUNTER).value == 1025


def test_invoice_and_enquiry_numbers_use_prefixes(db_session):
    assert identity.allocate_invoice_number(db_session) == "INV1001"
    assert identity.allocate_invoice_number(db_session) == "INV1002"
    assert identity.allocate_enquiry_number(db_session) == "ENQ1001"


def test_counter_survives_rollback_of_unrelated_work(db_session):
    first = identity.allocate_receipt_number(db_session)
    db_session.commit()
    db_session.add(Member(name="Rolled Back"))
    db_session.rollback()
    second = identity.allocate_receipt_number(db_session)

    assert int(second) == int(first) + 1


def test_allocator_falls_back_to_timestamp_on_store_failure(db_session, monkeypatch):
    def broken(db, key):
        raise OperationalError("UPDATE counters", {}, Exception("database is locked"))

    monkeypatch.setattr(identity, "_next_value", broken)
    number = identity.allocate_receipt_number(db_session)

    assert number.isdigit()
    assert len(number) > 6


def test_member_number_probes_past_taken_numbers(db_session):
    db_session.add_all(
        [
            Member(name="A", member_number="7"),
            Member(name="B", member_number="GYM-99"),
            Member(name="C", member_number="3"),
        ]
    )
    db_session.commit()

    assert identity.allocate_member_number(db_session) == "8"
    assert identity.current_value(db_session, identity.MEMBER_COUNTER) == 8


def test_is_member_number_taken_excludes_self(db_session):
    member = Member(name="A", member_number="12")
    db_session.add(member)
    db_session.commit()

    assert identity.is_member_number_taken(db_session, "12") is True
    assert identity.is_member_number_taken(db_session, "12", exclude_member_id=member.id) is False
    assert identity.is_member_number_taken(db_session, "13") is False


def test_update_member_number_rejects_collision(db_session):
    first = Member(name="A", member_number="1")
    second = Member(name="B", member_number="2")
    db_session.add_all([first, second])
    db_session.commit()

    with pytest.raises(ConstraintConflictError):
        identity.update_member_number(db_session, second.id, "1")

    db_session.rollback()
    renamed = identity.update_member_number(db_session, second.id, "50")
    assert renamed.member_number == "50"
    assert identity.current_value(db_session, identity.MEMBER_COUNTER) == 50


@pytest.mark.parametrize("via_profile_edit", [True, False])
def test_manual_numeric_member_number_raises_counter(db_session, make_member, via_profile_edit):
    member = make_member()
    if via_profile_edit:
        members.update_member(db_session, member.id, MemberUpdate(member_number="40"))
    else:
        identity.update_member_number(db_session, member.id, "40")

    assert identity.current_value(db_session, identity.MEMBER_COUNTER) == 40

    members.update_member(db_session, member.id, MemberUpdate(member_number="VIP-1"))
    assert identity.current_value(db_session, identity.MEMBER_COUNTER) == 40


def test_counter_endpoints(client):
    assert client.get("/counters/invoice").json() == {"key": "invoice_counter", "value": 1000}
    response = client.post("/counters/invoice/next")
    assert response.status_code == 200
    assert response.json() == {"counter": "invoice", "number": "INV1001"}
    assert client.get("/counters/invoice").json()["value"] == 1001
    assert client.get("/counters/bogus").status_code == 422
