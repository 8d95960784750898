from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from backend.app import models


def _generate_june(client):
    response = client.post("/invoices/generate", json={"year": 2024, "month": 6})
    assert response.status_code == 200, response.text
    return response.json()


def test_health_check(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_schedule_and_list_deliveries(client, seed_route):
    response = client.post("/deliveries/schedule", json={"target_date": "2024-06-01"})

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["date"] == "2024-06-01"
    assert body["scheduled"] == 2
    assert body["skipped"] == 0

    listing = client.get(
        "/deliveries",
        params={"delivery_date": "2024-06-01", "customer_id": seed_route["daily"].id},
    )
    assert listing.status_code == 200
    payload = listing.json()
    assert payload["total"] == 1
    delivery = payload["items"][0]
    assert delivery["status"] == "pending"
    assert Decimal(delivery["items"][0]["total_amount"]) == Decimal("120.00")


def test_schedule_range_rejects_too_many_days(client, seed_route):
    response = client.post(
        "/deliveries/schedule-range", json={"start_date": "2024-06-01", "days": 40}
    )

    assert response.status_code == 422


def test_schedule_range_totals(client, seed_route):
    response = client.post(
        "/deliveries/schedule-range",
        json={"start_date": "2024-06-01", "days": 3, "mark_delivered": True},
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["scheduled"] == 5
    assert body["skipped"] == 1
    assert body["errors"] == 0
    assert [result["auto_delivered"] for result in body["results"]] == [2, 1, 2]


def test_auto_deliver_endpoint(client, seed_route):
    client.post("/deliveries/schedule", json={"target_date": "2024-06-03"})

    response = client.post("/deliveries/auto-deliver", json={"target_date": "2024-06-03"})

    assert response.status_code == 200
    assert response.json()["delivered"] == 2

    delivered = client.get("/deliveries", params={"status": "delivered"})
    assert delivered.json()["total"] == 2


def test_full_billing_cycle(client, seed_route):
    client.post(
        "/deliveries/schedule", json={"target_date": "2024-06-01", "mark_delivered": True}
    )

    generated = _generate_june(client)
    assert generated["generated"] == 2
    assert generated["skipped"] == 1
    assert Decimal(generated["total_amount"]) == Decimal("158.00")

    asha_id = seed_route["daily"].id
    invoices = client.get("/invoices", params={"customer_id": asha_id}).json()
    assert invoices["total"] == 1
    invoice = invoices["items"][0]
    assert Decimal(invoice["final_amount"]) == Decimal("120.00")
    assert invoice["due_date"] == "2024-07-15"

    first = client.post(
        "/payments",
        json={"customer_id": asha_id, "amount": "50", "invoice_id": invoice["id"]},
    )
    assert first.status_code == 201, first.text
    assert first.json()["invoice"]["payment_status"] == "partial"
    assert Decimal(first.json()["running_balance"]) == Decimal("70.00")

    second = client.post(
        "/payments",
        json={
            "customer_id": asha_id,
            "amount": "70",
            "mode": "upi",
            "invoice_id": invoice["id"],
        },
    )
    assert second.status_code == 201
    assert second.json()["invoice"]["payment_status"] == "paid"
    assert second.json()["invoice"]["effective_status"] == "paid"
    assert Decimal(second.json()["running_balance"]) == Decimal("0.00")

    statement = client.get(f"/ledger/customers/{asha_id}").json()
    assert statement["total"] == 3
    assert Decimal(statement["balance"]) == Decimal("0.00")
    assert [entry["entry_type"] for entry in statement["items"]] == [
        "invoice",
        "payment",
        "payment",
    ]

    again = _generate_june(client)
    assert again["generated"] == 0
    assert again["skipped"] == 3

    integrity = client.get("/ledger/integrity")
    assert integrity.status_code == 200
    assert integrity.json()["is_clean"] is True


def test_overdue_invoices_are_reported_at_read_time(client, delivered_june):
    _generate_june(client)

    response = client.get("/invoices", params={"status": "overdue"})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["effective_status"] == "overdue"
    assert body["items"][0]["payment_status"] == "pending"
    assert Decimal(body["outstanding_amount"]) == Decimal("120.00")

    pending = client.get("/invoices", params={"status": "pending"})
    assert pending.json()["total"] == 0


def test_invoice_lookup_and_pdf(client, delivered_june):
    _generate_june(client)
    invoice_id = client.get("/invoices").json()["items"][0]["id"]

    response = client.get(f"/invoices/{invoice_id}")
    assert response.status_code == 200
    assert response.json()["invoice_number"] == "INV-202406-0001"

    pdf = client.get(f"/invoices/{invoice_id}/pdf")
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert 'filename="INV-202406-0001.pdf"' in pdf.headers["content-disposition"]
    assert pdf.content.startswith(b"%PDF")

    assert client.get("/invoices/missing").status_code == 404
    assert client.get("/invoices/missing/pdf").status_code == 404


def test_single_invoice_conflict(client, delivered_june):
    payload = {
        "customer_id": delivered_june["daily"].id,
        "period_start": "2024-06-01",
        "period_end": "2024-06-30",
    }

    created = client.post("/invoices", json=payload)
    duplicate = client.post("/invoices", json=payload)

    assert created.status_code == 201, created.text
    assert duplicate.status_code == 409

    empty = client.post(
        "/invoices", json={**payload, "customer_id": delivered_june["alternate"].id}
    )
    assert empty.status_code == 400


def test_invoice_listing_validates_period_filters(client):
    response = client.get(
        "/invoices", params={"period_start": "2024-07-01", "period_end": "2024-06-01"}
    )

    assert response.status_code == 400


def test_payment_errors(client, seed_route):
    missing_customer = client.post("/payments", json={"customer_id": "missing", "amount": "10"})
    assert missing_customer.status_code == 404

    negative = client.post(
        "/payments", json={"customer_id": seed_route["daily"].id, "amount": "-10"}
    )
    assert negative.status_code == 422

    assert client.get("/payments/missing").status_code == 404

    bad_range = client.get(
        "/payments", params={"start_date": "2024-07-10", "end_date": "2024-07-01"}
    )
    assert bad_range.status_code == 400


def test_general_payment_shows_up_as_advance(client, seed_route):
    customer_id = seed_route["alternate"].id

    response = client.post(
        "/payments",
        json={"customer_id": customer_id, "amount": "300", "mode": "cash"},
    )

    assert response.status_code == 201
    assert response.json()["invoice"] is None
    statement = client.get(f"/ledger/customers/{customer_id}").json()
    assert Decimal(statement["balance"]) == Decimal("-300.00")
    assert Decimal(statement["advance_balance"]) == Decimal("300.00")

    listing = client.get("/payments", params={"customer_id": customer_id}).json()
    assert listing["total"] == 1
    payment_id = listing["items"][0]["id"]
    assert client.get(f"/payments/{payment_id}").status_code == 200


def test_ledger_adjustment_advance_and_verification(client, seed_route):
    customer_id = seed_route["daily"].id

    adjustment = client.post(
        f"/ledger/customers/{customer_id}/adjustments",
        json={"entry_date": "2024-06-30", "description": "Bottle deposit", "debit": "40"},
    )
    assert adjustment.status_code == 201, adjustment.text
    assert adjustment.json()["entry_type"] == "adjustment"

    advance = client.post(
        f"/ledger/customers/{customer_id}/advances",
        json={"amount": "100", "entry_date": "2024-06-30"},
    )
    assert advance.status_code == 201
    assert Decimal(advance.json()["running_balance"]) == Decimal("-60.00")

    verification = client.get(f"/ledger/customers/{customer_id}/verify").json()
    assert verification["is_consistent"] is True
    assert verification["entry_count"] == 2

    recalculated = client.post(f"/ledger/customers/{customer_id}/recalculate")
    assert recalculated.status_code == 200
    assert Decimal(recalculated.json()["ledger_balance"]) == Decimal("-60.00")

    empty = client.post(
        f"/ledger/customers/{customer_id}/adjustments",
        json={"entry_date": "2024-06-30", "description": "Nothing"},
    )
    assert empty.status_code == 422

    assert client.get("/ledger/customers/missing").status_code == 404
    assert client.get("/ledger/customers/missing/verify").status_code == 404


def test_delivery_status_update_respects_invoiced_periods(client, delivered_june):
    delivery_id = delivered_june["delivery"].id
    _generate_june(client)

    blocked = client.patch(f"/deliveries/{delivery_id}/status", json={"status": "missed"})
    assert blocked.status_code == 409

    missing = client.patch("/deliveries/missing/status", json={"status": "missed"})
    assert missing.status_code == 404


def test_subscription_endpoints(client, seed_route):
    created = client.post(
        "/subscriptions",
        json={
            "customer_id": seed_route["manual"].id,
            "product_id": seed_route["curd"].id,
            "quantity": "1",
            "delivery_pattern": {"kind": "weekly", "days": ["sunday", "wednesday"]},
        },
    )
    assert created.status_code == 201, created.text
    subscription = created.json()
    assert subscription["delivery_pattern"] == {
        "kind": "weekly",
        "days": ["sunday", "wednesday"],
    }

    listing = client.get("/subscriptions", params={"customer_id": seed_route["manual"].id})
    assert listing.json()["total"] == 2

    paused = client.patch(f"/subscriptions/{subscription['id']}", json={"is_active": False})
    assert paused.status_code == 200
    assert paused.json()["is_active"] is False

    bad_pattern = client.post(
        "/subscriptions",
        json={
            "customer_id": seed_route["manual"].id,
            "product_id": seed_route["curd"].id,
            "quantity": "1",
            "delivery_pattern": {"kind": "custom", "days": []},
        },
    )
    assert bad_pattern.status_code == 422

    unknown_product = client.post(
        "/subscriptions",
        json={
            "customer_id": seed_route["manual"].id,
            "product_id": "missing",
            "quantity": "1",
        },
    )
    assert unknown_product.status_code == 404


def test_vacation_endpoints(client, db_session, seed_route):
    customer_id = seed_route["daily"].id
    start = date(2024, 6, 10)

    created = client.post(
        "/vacations",
        json={
            "customer_id": customer_id,
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=4)).isoformat(),
            "reason": "Family wedding",
        },
    )
    assert created.status_code == 201, created.text

    scheduled = client.post("/deliveries/schedule", json={"target_date": "2024-06-12"})
    assert scheduled.json()["skipped_vacation"] == 1

    listing = client.get("/vacations", params={"customer_id": customer_id})
    assert listing.json()["total"] == 1

    vacation_id = created.json()["id"]
    deactivated = client.post(f"/vacations/{vacation_id}/deactivate")
    assert deactivated.status_code == 200
    assert deactivated.json()["is_active"] is False

    reversed_range = client.post(
        "/vacations",
        json={"customer_id": customer_id, "start_date": "2024-06-14", "end_date": "2024-06-10"},
    )
    assert reversed_range.status_code == 422
    assert db_session.query(models.VacationWindow).count() == 1
