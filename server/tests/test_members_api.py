from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal


def _register(client, **overrides):
    payload = {
        "name": "Priya Nair",
        "mobile_no": "9000000001",
        "registration_fee": 500,
        "package_fee": 1500,
        "discount": 0,
        "paid_amount": 1000,
        "plan_type": "monthly",
        "payment_mode": "cash",
        "subscription_start_date": date.today().isoformat(),
    }
    payload.update(overrides)
    response = client.post("/members", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_register_and_pay_due_scenario(client):
    member = _register(client)
    assert Decimal(member["paid_amount"]) == Decimal("1000")
    assert member["member_number"] == "1"

    due = client.get(f"/members/{member['id']}/due").json()
    assert Decimal(due["due_amount"]) == Decimal("1000")
    assert due["unpaid_invoices"] == 1

    receipts = client.get(f"/members/{member['id']}/receipts").json()
    assert len(receipts) == 1
    assert Decimal(receipts[0]["amount_paid"]) == Decimal("1000")
    assert Decimal(receipts[0]["due_amount"]) == Decimal("1000")

    response = client.post(
        f"/members/{member['id']}/pay-due",
        json={"payment_amount": 1000, "payment_type": "upi", "actor": "desk"},
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert Decimal(body["updated_member_data"]["paid_amount"]) == Decimal("2000")
    assert Decimal(body["new_receipt"]["amount_paid"]) == Decimal("1000")
    assert Decimal(body["new_receipt"]["due_amount"]) == Decimal("0")
    assert body["confirmation_message"]

    due = client.get(f"/members/{member['id']}/due").json()
    assert Decimal(due["due_amount"]) == Decimal("0")
    assert due["unpaid_invoices"] == 0


def test_pay_due_over_amount_is_rejected(client):
    member = _register(client)
    response = client.post(f"/members/{member['id']}/pay-due", json={"payment_amount": 5000})
    assert response.status_code == 400
    assert "exceeds" in response.json()["detail"]


def test_register_sets_end_date_and_status(client):
    start = date.today() - timedelta(days=25)
    member = _register(client, subscription_start_date=start.isoformat(), plan_type="monthly")
    assert member["subscription_end_date"] is not None
    assert member["subscription_status"] == "expiring_soon"


def test_duplicate_member_number_conflicts(client):
    _register(client, member_number="77")
    response = client.post("/members", json={"name": "Other", "member_number": "77"})
    assert response.status_code == 409


def test_partial_member_lifecycle(client):
    response = client.post("/members/partial", json={"name": "Walk In", "mobile_no": "9111111111"})
    assert response.status_code == 201, response.text
    partial = response.json()
    assert partial["status"] == "partial"
    assert partial["subscription_end_date"] is None

    response = client.post(
        f"/members/{partial['id']}/complete",
        json={"registration_fee": 300, "package_fee": 1200, "paid_amount": 1500, "plan_type": "quarterly"},
    )
    assert response.status_code == 200, response.text
    completed = response.json()
    assert completed["status"] == "active"
    assert Decimal(completed["paid_amount"]) == Decimal("1500")
    assert completed["subscription_end_date"] is not None

    response = client.post(f"/members/{partial['id']}/complete", json={})
    assert response.status_code == 400


def test_update_member_fee_change_reconciles(client):
    member = _register(client)
    response = client.patch(f"/members/{member['id']}", json={"discount": 500, "paid_amount": 1200})
    assert response.status_code == 200, response.text
    assert Decimal(response.json()["paid_amount"]) == Decimal("1200")

    totals = client.post(f"/members/{member['id']}/reconcile").json()
    assert Decimal(totals["total_billable"]) == Decimal("1500")
    assert Decimal(totals["actual_paid"]) == Decimal("1200")
    assert Decimal(totals["calculated_due"]) == Decimal("300")


def test_rename_updates_receipt_payer(client):
    member = _register(client)
    client.patch(f"/members/{member['id']}", json={"name": "Priya Menon"})
    receipts = client.get(f"/members/{member['id']}/receipts").json()
    assert {receipt["member_name"] for receipt in receipts} == {"Priya Menon"}


def test_update_member_number(client):
    first = _register(client)
    second = _register(client, name="Second")

    response = client.put(f"/members/{second['id']}/member-number", json={"member_number": first["member_number"]})
    assert response.status_code == 409

    response = client.put(f"/members/{second['id']}/member-number", json={"member_number": "500"})
    assert response.status_code == 200
    assert response.json()["member_number"] == "500"
    assert _register(client, name="Third")["member_number"] == "501"


def test_list_members_filters(client):
    _register(client, name="Alpha")
    _register(client, name="Beta")
    response = client.get("/members", params={"search": "alp"})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["name"] == "Alpha"


def test_delete_and_restore_via_api(client):
    member = _register(client)
    response = client.delete(f"/members/{member['id']}", params={"actor": "owner", "reason": "duplicate"})
    assert response.status_code == 200, response.text
    snapshot = response.json()
    assert snapshot["deleted_by"] == "owner"

    assert client.get(f"/members/{member['id']}").status_code == 404
    detail = client.get(f"/deleted-members/by-member/{member['id']}").json()
    assert len(detail["receipts_snapshot"]) == 1

    response = client.post(f"/deleted-members/{snapshot['id']}/restore")
    assert response.status_code == 200, response.text
    assert response.json() == {"member_id": member["id"], "restored_receipts": 1}

    restored = client.get(f"/members/{member['id']}").json()
    assert restored["status"] == "active"
    assert Decimal(restored["paid_amount"]) == Decimal("1000")
    assert client.get("/deleted-members").json() == []


def test_missing_member_is_404(client):
    assert client.get("/members/999").status_code == 404
    assert client.delete("/members/999").status_code == 404
