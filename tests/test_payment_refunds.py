import pytest
from fastapi.testclient import TestClient

from propertyhub.app.db.base import Base
from propertyhub.app.db.session import engine
from propertyhub.app.main import app
from propertyhub.app.models.user import UserRole
from propertyhub.app.services.payment_gateway import PaymentGatewayError


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def completed_payment(client: TestClient, headers, **overrides):
    payload = {"title": "Rent", "type": "rent", "amount": "100.00", "payment_method": "bank_transfer"}
    payload.update(overrides)
    created = client.post("/payments", json=payload, headers=headers).json()["data"]
    resp = client.post(f"/payments/{created['id']}/process", json={}, headers=headers)
    assert resp.json()["data"]["status"] == "completed"
    return created


def refund(client: TestClient, headers, payment_id: int, **body):
    return client.post(f"/payments/{payment_id}/refund", json=body, headers=headers)


def test_full_refund_defaults_to_original_amount(make_user):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    payment = completed_payment(client, headers)

    resp = refund(client, headers, payment["id"], reason="Tenancy cancelled")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "refunded"
    assert data["refund_status"] == "full_refund"
    assert data["refunded_amount"] == "100.00"
    assert data["refund_reason"] == "Tenancy cancelled"
    assert data["refunded_at"] is not None


def test_partial_refund(make_user):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    payment = completed_payment(client, headers)

    data = refund(client, headers, payment["id"], amount="30.00").json()["data"]

    assert data["status"] == "partially_refunded"
    assert data["refund_status"] == "partial_refund"
    assert data["refunded_amount"] == "30.00"


def test_two_partial_refunds_accumulate(make_user):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    payment = completed_payment(client, headers)

    first = refund(client, headers, payment["id"], amount="40.00")
    second = refund(client, headers, payment["id"], amount="40.00")

    assert first.status_code == 200
    assert second.status_code == 200
    data = second.json()["data"]
    assert data["refunded_amount"] == "80.00"
    assert data["status"] == "partially_refunded"

    final = refund(client, headers, payment["id"], amount="20.00").json()["data"]
    assert final["refunded_amount"] == "100.00"
    assert final["status"] == "refunded"
    assert final["refund_status"] == "full_refund"


def test_refund_above_original_amount_rejected(make_user):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    payment = completed_payment(client, headers)
    refund(client, headers, payment["id"], amount="10.00")

    resp = refund(client, headers, payment["id"], amount="100.01")

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Refund amount cannot exceed payment amount"


def test_refund_requires_completed_payment(make_user):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    created = client.post(
        "/payments",
        json={"title": "Rent", "type": "rent", "amount": "100.00", "payment_method": "cash"},
        headers=headers,
    ).json()["data"]

    resp = refund(client, headers, created["id"])
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Only completed payments can be refunded"

    assert refund(client, headers, 999).status_code == 404


def test_tenant_cannot_refund(make_user):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    tenant_id, tenant_headers = make_user("tenant@example.com")
    payment = completed_payment(client, headers, payer_id=tenant_id)
    assert refund(client, tenant_headers, payment["id"]).status_code == 403


def test_refund_through_gateway_uses_charge(make_user, fake_gateway):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    created = client.post(
        "/payments",
        json={"title": "Rent", "type": "rent", "amount": "100.00", "payment_method": "card"},
        headers=headers,
    ).json()["data"]
    client.post(
        f"/payments/{created['id']}/process",
        json={"stripe_payment_intent_id": created["stripe_payment_intent_id"]},
        headers=headers,
    )

    resp = refund(client, headers, created["id"], amount="25.00", reason="requested_by_customer")

    assert resp.status_code == 200
    (call,) = fake_gateway.calls_to("create_refund")
    assert call["charge_id"] == "ch_test_123"
    assert call["amount_minor"] == 2500
    assert call["reason"] == "requested_by_customer"
    assert call["idempotency_key"] == f"{created['reference']}-refund-1"


def test_gateway_refund_failure_marks_refund_failed(make_user, fake_gateway):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    created = client.post(
        "/payments",
        json={"title": "Rent", "type": "rent", "amount": "100.00", "payment_method": "card"},
        headers=headers,
    ).json()["data"]
    client.post(
        f"/payments/{created['id']}/process",
        json={"stripe_payment_intent_id": created["stripe_payment_intent_id"]},
        headers=headers,
    )
    fake_gateway.failures["create_refund"] = PaymentGatewayError("Charge already refunded")

    resp = refund(client, headers, created["id"])

    assert resp.status_code == 502
    detail = client.get(f"/payments/{created['id']}", headers=headers).json()["data"]
    assert detail["status"] == "completed"
    assert detail["refund_status"] == "refund_failed"
    assert detail["refunded_amount"] == "0.00"
