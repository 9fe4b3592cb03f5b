from __future__ import annotations

from decimal import Decimal

from gymledger.models.member import Member


def _member(db_session, name="Ledger Member") -> Member:
    member = Member(name=name, registration_fee=Decimal("0"), package_fee=Decimal("1000"), discount=Decimal("0"))
    db_session.add(member)
    db_session.commit()
    return member


def test_create_receipt_allocates_number(client, db_session):
    member = _member(db_session)
    response = client.post(
        "/receipts",
        json={"member_id": member.id, "amount": 1000, "amount_paid": 400, "payment_type": "cash"},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["duplicate"] is False
    assert body["receipt"]["receipt_number"] == "001001"
    assert Decimal(body["receipt"]["due_amount"]) == Decimal("600")

    fetched = client.get(f"/members/{member.id}").json()
    assert Decimal(fetched["paid_amount"]) == Decimal("400")


def test_initial_receipt_retry_returns_existing(client, db_session):
    member = _member(db_session)
    payload = {"member_id": member.id, "amount": 1000, "payment_type": "cash"}

    first = client.post("/receipts", params={"initial": True}, json=payload)
    second = client.post("/receipts", params={"initial": True}, json=payload)

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["duplicate"] is True
    assert second.json()["receipt"]["id"] == first.json()["receipt"]["id"]
    assert client.get("/receipts", params={"member_id": member.id}).json()["total"] == 1


def test_member_receipt_without_member_is_rejected(client):
    response = client.post("/receipts", json={"member_name": "Cash Sale", "amount": 10, "payment_type": "cash"})
    assert response.status_code == 400


def test_update_delete_and_history(client, db_session):
    member = _member(db_session)
    created = client.post(
        "/receipts", json={"member_id": member.id, "amount": 1000, "amount_paid": 1000, "payment_type": "cash"}
    ).json()["receipt"]

    response = client.patch(f"/receipts/{created['id']}", json={"amount_paid": 700})
    assert response.status_code == 200
    assert Decimal(response.json()["due_amount"]) == Decimal("300")

    response = client.post(f"/receipts/{created['id']}/versions", json={"amount_paid": 800})
    assert response.status_code == 201
    version = response.json()
    assert version["version_number"] == 2
    assert version["original_receipt_id"] == created["id"]

    history = client.get(f"/receipts/{version['id']}/history").json()
    assert [item["id"] for item in history] == [created["id"], version["id"]]

    listed = client.get("/receipts", params={"member_id": member.id}).json()
    assert [item["id"] for item in listed["items"]] == [version["id"]]
    assert client.get("/receipts", params={"member_id": member.id, "include_superseded": True}).json()["total"] == 2

    assert client.delete(f"/receipts/{version['id']}").status_code == 204
    assert Decimal(client.get(f"/members/{member.id}").json()["paid_amount"]) == Decimal("0")
    assert client.get(f"/receipts/{version['id']}").status_code == 404


def test_reconcile_endpoint_reports_corrected_members(client, db_session):
    member = _member(db_session)
    client.post("/receipts", json={"member_id": member.id, "amount": 1000, "amount_paid": 250, "payment_type": "cash"})
    member._paid_amount = Decimal("9")
    db_session.commit()

    response = client.post("/receipts/reconcile")
    assert response.status_code == 200
    assert response.json() == [member.id]
