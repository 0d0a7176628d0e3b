import json
from datetime import date, timedelta
from decimal import Decimal

import pytest
from jose import jwt

from app.utils import qris
from conftest import auth_headers
from netcharge_common import security
from netcharge_common.security import create_access_token


CUSTOMER = {
    "name": "Siti Rahma",
    "email": "siti@example.com",
    "phone": "+6281111111111",
    "package_type": "basic",
    "monthly_rate": "150000",
}


async def _create_customer(client, headers, **overrides):
    resp = await client.post("/api/customers", json={**CUSTOMER, **overrides}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _create_invoice(client, headers, customer_id, amount="100000"):
    today = date.today()
    resp = await client.post("/api/invoices", json={
        "customer_id": customer_id,
        "amount": amount,
        "billing_period_start": str(today.replace(day=1)),
        "billing_period_end": str(today.replace(day=28)),
        "due_date": str(today + timedelta(days=10)),
    }, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(client):
    assert (await client.get("/api/customers")).status_code == 401
    bad = {"Authorization": "Bearer not-a-jwt"}
    assert (await client.get("/api/customers", headers=bad)).status_code == 401


@pytest.mark.asyncio
async def test_token_for_unknown_or_inactive_user_is_rejected(client, db, operator_user):
    ghost = create_access_token({"sub": "999", "email": "ghost@x.test", "role": "admin"})
    resp = await client.get("/api/customers", headers={"Authorization": f"Bearer {ghost}"})
    assert resp.status_code == 401

    operator_user.is_active = False
    db.add(operator_user)
    await db.commit()
    resp = await client.get("/api/customers", headers=auth_headers(operator_user))
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_profile(client, admin_headers):
    resp = await client.get("/api/auth/profile", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["email"] == "admin@netcharge.test"
    assert resp.json()["role"] == "admin"


@pytest.mark.asyncio
async def test_customer_crud_flow(client, operator_headers):
    created = await _create_customer(client, operator_headers)
    assert created["status"] == "active"
    assert Decimal(created["monthly_rate"]) == Decimal("150000")

    dup = await client.post("/api/customers", json=CUSTOMER, headers=operator_headers)
    assert dup.status_code == 409

    invalid = await client.post("/api/customers", json={**CUSTOMER, "email": "nope"}, headers=operator_headers)
    assert invalid.status_code == 422

    by_phone = await client.get(f"/api/customers/by-phone/{CUSTOMER['phone']}", headers=operator_headers)
    assert by_phone.json()["id"] == created["id"]
    assert (await client.get("/api/customers/by-phone/000", headers=operator_headers)).status_code == 404

    patched = await client.patch(f"/api/customers/{created['id']}", json={"address": "Jl. Baru 2"}, headers=operator_headers)
    assert patched.json()["address"] == "Jl. Baru 2"
    assert patched.json()["name"] == CUSTOMER["name"]

    suspended = await client.post(f"/api/customers/{created['id']}/suspend", headers=operator_headers)
    assert suspended.json()["status"] == "suspended"
    listed = await client.get("/api/customers", params={"status": "suspended"}, headers=operator_headers)
    assert [c["id"] for c in listed.json()] == [created["id"]]

    activated = await client.post(f"/api/customers/{created['id']}/activate", headers=operator_headers)
    assert activated.json()["status"] == "active"

    assert (await client.delete(f"/api/customers/{created['id']}", headers=operator_headers)).status_code == 204
    assert (await client.get(f"/api/customers/{created['id']}", headers=operator_headers)).status_code == 404


@pytest.mark.asyncio
async def test_cash_payment_settles_invoice(client, operator_headers):
    customer = await _create_customer(client, operator_headers)
    invoice = await _create_invoice(client, operator_headers, customer["id"])

    payment = await client.post("/api/payments", json={
        "invoice_id": invoice["id"], "amount": "100000", "method": "cash"
    }, headers=operator_headers)
    assert payment.status_code == 201
    assert payment.json()["status"] == "pending"

    confirmed = await client.post(f"/api/payments/{payment.json()['id']}/confirm", headers=operator_headers)
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "completed"

    detail = (await client.get(f"/api/invoices/{invoice['id']}", headers=operator_headers)).json()
    assert detail["status"] == "paid"
    assert Decimal(detail["paid_amount"]) == Decimal("100000")
    assert detail["customer"]["id"] == customer["id"]
    assert len(detail["payments"]) == 1

    again = await client.post("/api/payments", json={
        "invoice_id": invoice["id"], "amount": "1"
    }, headers=operator_headers)
    assert again.status_code == 400

    confirm_again = await client.post(f"/api/payments/{payment.json()['id']}/confirm", headers=operator_headers)
    assert confirm_again.status_code == 400


@pytest.mark.asyncio
async def test_fail_payment_with_reason(client, operator_headers):
    customer = await _create_customer(client, operator_headers)
    invoice = await _create_invoice(client, operator_headers, customer["id"])
    payment = (await client.post("/api/payments", json={
        "invoice_id": invoice["id"], "amount": "100000", "method": "bank_transfer"
    }, headers=operator_headers)).json()

    failed = await client.post(f"/api/payments/{payment['id']}/fail", json={"reason": "Rechazada"}, headers=operator_headers)
    assert failed.json()["status"] == "failed"
    assert failed.json()["notes"] == "Rechazada"

    listed = await client.get(f"/api/payments/invoice/{invoice['id']}", headers=operator_headers)
    assert [p["id"] for p in listed.json()] == [payment["id"]]


@pytest.mark.asyncio
async def test_operator_cannot_delete_or_generate(client, operator_headers, admin_headers):
    customer = await _create_customer(client, operator_headers)
    invoice = await _create_invoice(client, operator_headers, customer["id"])

    assert (await client.delete(f"/api/invoices/{invoice['id']}", headers=operator_headers)).status_code == 403
    assert (await client.post("/api/invoices/generate/monthly", headers=operator_headers)).status_code == 403

    generated = await client.post("/api/invoices/generate/monthly", headers=admin_headers)
    assert generated.status_code == 200
    assert len(generated.json()) == 1
    skipped = await client.post("/api/invoices/generate/monthly", params={"skip_existing": "true"}, headers=admin_headers)
    assert skipped.json() == []

    assert (await client.delete(f"/api/invoices/{invoice['id']}", headers=admin_headers)).status_code == 204
    assert (await client.get(f"/api/invoices/{invoice['id']}", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_invoice_listing_and_stats_routes(client, operator_headers):
    customer = await _create_customer(client, operator_headers)
    invoice = await _create_invoice(client, operator_headers, customer["id"], amount="80000")

    listed = (await client.get("/api/invoices", params={"status": "pending"}, headers=operator_headers)).json()
    assert listed[0]["customer"]["name"] == CUSTOMER["name"]

    by_customer = (await client.get(f"/api/invoices/customer/{customer['id']}", headers=operator_headers)).json()
    assert [i["id"] for i in by_customer] == [invoice["id"]]

    stats = (await client.get("/api/invoices/dashboard/stats", headers=operator_headers)).json()
    assert stats["total_pending"] == 80000.0

    overdue = await client.post("/api/invoices/mark-overdue", headers=operator_headers)
    assert overdue.json() == {"updated": 0}

    patched = await client.patch(f"/api/invoices/{invoice['id']}", json={"description": "Ajuste"}, headers=operator_headers)
    assert patched.json()["description"] == "Ajuste"


@pytest.mark.asyncio
async def test_invoice_pdf(client, operator_headers):
    customer = await _create_customer(client, operator_headers)
    invoice = await _create_invoice(client, operator_headers, customer["id"])

    resp = await client.get(f"/api/invoices/{invoice['id']}/pdf", headers=operator_headers)

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.content.startswith(b"%PDF")


@pytest.mark.asyncio
async def test_qris_generate_and_callback(client, operator_headers):
    customer = await _create_customer(client, operator_headers)
    invoice = await _create_invoice(client, operator_headers, customer["id"])

    generated = await client.post(f"/api/payments/qris/generate/{invoice['id']}", headers=operator_headers)
    assert generated.status_code == 200
    payment = generated.json()["payment"]
    assert generated.json()["qris_code"].endswith("10000000" + payment["payment_number"])

    callback = await client.post("/api/payments/qris/callback", json={
        "transaction_id": payment["payment_number"], "status": "success"
    }, headers=operator_headers)
    assert callback.status_code == 200
    assert callback.json()["status"] == "completed"
    assert callback.json()["invoice"]["status"] == "paid"

    bad_status = await client.post("/api/payments/qris/callback", json={
        "transaction_id": payment["payment_number"], "status": "maybe"
    }, headers=operator_headers)
    assert bad_status.status_code == 422


@pytest.mark.asyncio
async def test_qris_callback_signature_required_when_secret_set(client, operator_headers, monkeypatch):
    monkeypatch.setattr(qris, "QRIS_CALLBACK_SECRET", "s3cret")
    customer = await _create_customer(client, operator_headers)
    invoice = await _create_invoice(client, operator_headers, customer["id"])
    payment = (await client.post(f"/api/payments/qris/generate/{invoice['id']}", headers=operator_headers)).json()["payment"]

    body = json.dumps({"transaction_id": payment["payment_number"], "status": "failed"}).encode()
    headers = {**operator_headers, "Content-Type": "application/json"}

    unsigned = await client.post("/api/payments/qris/callback", content=body, headers=headers)
    assert unsigned.status_code == 401

    signed = await client.post(
        "/api/payments/qris/callback",
        content=body,
        headers={**headers, "X-Callback-Signature": qris.sign_callback(body, "s3cret")}
    )
    assert signed.status_code == 200
    assert signed.json()["status"] == "failed"
    assert signed.json()["notes"] == "QRIS payment failed"


@pytest.mark.asyncio
async def test_analytics_routes(client, operator_headers):
    customer = await _create_customer(client, operator_headers)
    invoice = await _create_invoice(client, operator_headers, customer["id"])
    payment = (await client.post("/api/payments", json={
        "invoice_id": invoice["id"], "amount": "100000"
    }, headers=operator_headers)).json()
    await client.post(f"/api/payments/{payment['id']}/confirm", headers=operator_headers)

    revenue = (await client.get("/api/analytics/revenue", params={"period": "7days"}, headers=operator_headers)).json()
    assert revenue["total"] == 100000.0

    growth = (await client.get("/api/analytics/customers", headers=operator_headers)).json()
    assert growth["period"] == "30days"
    assert growth["total_new"] == 1

    summary = (await client.get("/api/analytics/summary", headers=operator_headers)).json()
    assert summary["invoices"]["paid"] == 1
    assert summary["revenue"]["this_month"] == 100000.0

    top = (await client.get("/api/analytics/top-customers", params={"limit": 3}, headers=operator_headers)).json()
    assert top[0]["customer_id"] == customer["id"]

    activities = (await client.get("/api/analytics/recent-activities", headers=operator_headers)).json()
    assert {a["type"] for a in activities} == {"payment", "invoice"}

    payments = (await client.get("/api/analytics/payments", headers=operator_headers)).json()
    assert payments["total"] == 1

    dist = (await client.get("/api/analytics/status-distribution", headers=operator_headers)).json()
    assert dist["invoices"] == [{"status": "paid", "count": 1, "total": 100000.0}]

    trends = (await client.get("/api/analytics/trends", headers=operator_headers)).json()
    assert trends["revenue"] == 100

    stats = (await client.get("/api/payments/stats", headers=operator_headers)).json()
    assert stats["total_payments"] == 1

    assert (await client.get("/api/analytics/top-customers", params={"limit": 0}, headers=operator_headers)).status_code == 422


@pytest.mark.asyncio
async def test_patch_ignores_paid_amount(client, operator_headers):
    customer = await _create_customer(client, operator_headers)
    invoice = await _create_invoice(client, operator_headers, customer["id"])
    payment = (await client.post("/api/payments", json={
        "invoice_id": invoice["id"], "amount": "100000"
    }, headers=operator_headers)).json()
    await client.post(f"/api/payments/{payment['id']}/confirm", headers=operator_headers)

    patched = await client.patch(
        f"/api/invoices/{invoice['id']}", json={"paid_amount": "0"}, headers=operator_headers
    )

    assert patched.status_code == 200
    assert patched.json()["status"] == "paid"
    assert Decimal(patched.json()["paid_amount"]) == Decimal("100000")


@pytest.mark.asyncio
async def test_forged_admin_token_is_rejected(client, admin_user):
    forged = jwt.encode(
        {"sub": str(admin_user.id), "email": admin_user.email, "role": "admin", "type": "access"},
        "netcharge-pro-secret-key",
        algorithm="HS256"
    )
    resp = await client.post("/api/invoices/generate/monthly", headers={"Authorization": f"Bearer {forged}"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_tokens_rejected_when_secret_missing(client, admin_headers, monkeypatch):
    monkeypatch.setattr(security, "SECRET_KEY", None)
    resp = await client.post("/api/invoices/generate/monthly", headers=admin_headers)
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_qris_callback_body_is_documented(client):
    resp = await client.get("/openapi.json")
    assert resp.status_code == 200
    body = resp.json()["paths"]["/api/payments/qris/callback"]["post"]["requestBody"]
    assert body["required"] is True
    schema = body["content"]["application/json"]["schema"]
    assert set(schema["required"]) == {"transaction_id", "status"}
