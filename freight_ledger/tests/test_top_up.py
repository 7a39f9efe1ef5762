"""
Integration tests for top-up requests.

Customer submission and admin review (approve writes a credit pair).
"""

from decimal import Decimal

import pytest


async def _submit(client, headers, amount="250.00"):
    response = await client.post("/v1/top-up/requests", json={
        "amount": amount,
        "currency": "usd",
        "payment_reference": "WIRE-7781",
        "customer_notes": "March prepay",
    }, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def _balance(client, headers):
    response = await client.get("/v1/balance/transactions", headers=headers)
    return response.json()["balance"]


@pytest.mark.asyncio
async def test_submit_reserves_pending_balance(client, customer_headers, customer):
    body = await _submit(client, customer_headers)

    assert body["status"] == "pending"
    assert body["currency"] == "USD"
    assert body["user_id"] == customer.id

    balance = await _balance(client, customer_headers)
    assert Decimal(balance["pending_balance"]) == Decimal("250.00")
    assert Decimal(balance["current_balance"]) == Decimal("1000.00")


@pytest.mark.asyncio
async def test_admin_cannot_submit(client, admin_headers):
    response = await client.post("/v1/top-up/requests", json={"amount": "10.00"}, headers=admin_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_approve_credits_customer(client, customer_headers, admin_headers):
    request = await _submit(client, customer_headers)

    response = await client.post(
        f"/v1/admin/top-up/requests/{request['id']}/review",
        json={"action": "approve", "approved_amount": "240.00", "admin_notes": "Wire fee deducted"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["request"]["status"] == "approved"
    assert Decimal(body["request"]["approved_amount"]) == Decimal("240.00")
    assert body["request"]["reviewed_at"] is not None
    assert Decimal(body["customer_transaction"]["amount"]) == Decimal("240.00")
    assert body["customer_transaction"]["transaction_type"] == "credit"
    assert body["customer_transaction"]["transaction_id"].startswith("CREDIT-TOPUP")
    # 240 / 1.5
    assert Decimal(body["supervisor_transaction"]["amount"]) == Decimal("160.00")

    balance = await _balance(client, customer_headers)
    assert Decimal(balance["current_balance"]) == Decimal("1240.00")
    assert Decimal(balance["pending_balance"]) == Decimal("0.00")


@pytest.mark.asyncio
async def test_reject_requires_notes(client, customer_headers, admin_headers):
    request = await _submit(client, customer_headers)
    url = f"/v1/admin/top-up/requests/{request['id']}/review"

    missing = await client.post(url, json={"action": "reject"}, headers=admin_headers)
    assert missing.status_code == 400

    response = await client.post(url, json={"action": "reject", "admin_notes": "Payment not received"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["request"]["status"] == "rejected"
    assert response.json()["customer_transaction"] is None

    balance = await _balance(client, customer_headers)
    assert Decimal(balance["pending_balance"]) == Decimal("0.00")
    assert Decimal(balance["current_balance"]) == Decimal("1000.00")


@pytest.mark.asyncio
async def test_review_only_once(client, customer_headers, admin_headers):
    request = await _submit(client, customer_headers)
    url = f"/v1/admin/top-up/requests/{request['id']}/review"
    await client.post(url, json={"action": "approve"}, headers=admin_headers)

    again = await client.post(url, json={"action": "approve"}, headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["details"] == {"status": "approved"}


@pytest.mark.asyncio
async def test_listing(client, customer_headers, admin_headers, other_customer, headers_for):
    await _submit(client, customer_headers)
    await _submit(client, headers_for(other_customer), amount="75.00")

    mine = await client.get("/v1/top-up/requests", headers=customer_headers)
    assert len(mine.json()["requests"]) == 1

    everything = await client.get("/v1/admin/top-up/requests", headers=admin_headers)
    assert len(everything.json()["requests"]) == 2

    pending = await client.get("/v1/admin/top-up/requests", params={"status": "approved"}, headers=admin_headers)
    assert pending.json()["requests"] == []

    forbidden = await client.get("/v1/admin/top-up/requests", headers=customer_headers)
    assert forbidden.status_code == 403
