import pytest
import stripe
from fastapi.testclient import TestClient

from propertyhub.app.db.base import Base
from propertyhub.app.db.session import engine
from propertyhub.app.main import app
from propertyhub.app.models.user import UserRole
from propertyhub.app.services.payment_gateway import PaymentGatewayError, StripeGateway, get_payment_gateway


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def create_payment(client: TestClient, headers, **overrides):
    payload = {"title": "Deposit", "type": "deposit", "amount": "100.00", "payment_method": "bank_transfer"}
    payload.update(overrides)
    resp = client.post("/payments", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def test_manual_processing_completes_payment(make_user):
    client = TestClient(app)
    agent_id, headers = make_user("agent@example.com", role=UserRole.AGENT)
    created = create_payment(client, headers)

    resp = client.post(f"/payments/{created['id']}/process", json={}, headers=headers)

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "completed"
    assert data["is_manual"] is True
    assert data["processed_at"] is not None
    assert data["updated_by"] == agent_id

    detail = client.get(f"/payments/{created['id']}", headers=headers).json()["data"]
    assert [(e["event"], e["from_status"], e["to_status"]) for e in detail["events"]] == [
        ("manual_completed", "pending", "completed")
    ]


def test_processing_twice_is_rejected(make_user):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    created = create_payment(client, headers)
    client.post(f"/payments/{created['id']}/process", json={}, headers=headers)

    resp = client.post(f"/payments/{created['id']}/process", json={}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Payment is not in a processable state"


def test_process_missing_payment(make_user):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    assert client.post("/payments/404/process", json={}, headers=headers).status_code == 404


def test_tenant_can_process_own_payment_only(make_user):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    tenant_id, tenant_headers = make_user("tenant@example.com")
    other_id, _ = make_user("other@example.com")
    mine = create_payment(client, headers, payer_id=tenant_id)
    theirs = create_payment(client, headers, payer_id=other_id)

    assert client.post(f"/payments/{theirs['id']}/process", json={}, headers=tenant_headers).status_code == 403
    resp = client.post(f"/payments/{mine['id']}/process", json={}, headers=tenant_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "completed"


def test_card_payment_creates_gateway_intent(make_user, fake_gateway):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)

    created = create_payment(client, headers, payment_method="card", amount="120.50")

    assert created["status"] == "processing"
    assert created["stripe_payment_intent_id"] == "pi_test_1"
    assert created["processor"] == "stripe"
    (call,) = fake_gateway.calls_to("create_intent")
    assert call["amount_minor"] == 12050
    assert call["currency"] == "GBP"
    assert call["idempotency_key"] == f"{created['reference']}-intent"
    assert call["metadata"]["reference"] == created["reference"]


def test_card_payment_stays_pending_when_gateway_fails(make_user, fake_gateway):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    fake_gateway.failures["create_intent"] = PaymentGatewayError("Stripe is down")

    created = create_payment(client, headers, payment_method="card")

    assert created["status"] == "pending"
    assert created["stripe_payment_intent_id"] is None


def test_non_card_payment_skips_gateway(make_user, fake_gateway):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    create_payment(client, headers, payment_method="cash")
    assert fake_gateway.calls_to("create_intent") == []


def test_gateway_success_completes_payment(make_user, fake_gateway):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    created = create_payment(client, headers, payment_method="card")

    resp = client.post(
        f"/payments/{created['id']}/process",
        json={"stripe_payment_intent_id": created["stripe_payment_intent_id"]},
        headers=headers,
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "completed"
    assert data["stripe_charge_id"] == "ch_test_123"
    assert data["processed_at"] is not None
    assert data["captured_at"] is not None
    assert data["is_manual"] is False


def test_gateway_confirmation_when_requested(make_user, fake_gateway):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    created = create_payment(client, headers, payment_method="card")
    fake_gateway.intent_status = "requires_confirmation"

    resp = client.post(
        f"/payments/{created['id']}/process",
        json={
            "stripe_payment_intent_id": created["stripe_payment_intent_id"],
            "payment_method_id": "pm_card_visa",
            "confirm_payment": True,
        },
        headers=headers,
    )

    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "completed"
    assert fake_gateway.calls_to("confirm_intent") == [
        {"intent_id": created["stripe_payment_intent_id"], "payment_method_id": "pm_card_visa"}
    ]


def test_gateway_requiring_payment_method_fails_payment(make_user, fake_gateway):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    created = create_payment(client, headers, payment_method="card")
    fake_gateway.intent_status = "requires_payment_method"

    resp = client.post(
        f"/payments/{created['id']}/process",
        json={"stripe_payment_intent_id": created["stripe_payment_intent_id"]},
        headers=headers,
    )

    data = resp.json()["data"]
    assert data["status"] == "failed"
    assert data["failure_reason"] == "Payment method required"
    assert data["failed_at"] is not None


def test_other_gateway_status_leaves_payment_unchanged(make_user, fake_gateway):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    created = create_payment(client, headers, payment_method="card")
    fake_gateway.intent_status = "requires_action"

    resp = client.post(
        f"/payments/{created['id']}/process",
        json={"stripe_payment_intent_id": created["stripe_payment_intent_id"]},
        headers=headers,
    )

    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "processing"


def test_gateway_error_marks_payment_failed(make_user, fake_gateway):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    created = create_payment(client, headers, payment_method="card")
    fake_gateway.failures["retrieve_intent"] = PaymentGatewayError("No such payment_intent")

    resp = client.post(
        f"/payments/{created['id']}/process",
        json={"stripe_payment_intent_id": created["stripe_payment_intent_id"]},
        headers=headers,
    )

    assert resp.status_code == 502
    assert resp.json()["detail"] == "No such payment_intent"
    detail = client.get(f"/payments/{created['id']}", headers=headers).json()["data"]
    assert detail["status"] == "failed"
    assert detail["failure_reason"] == "No such payment_intent"
    assert detail["events"][-1]["event"] == "process_error"


def test_intent_id_without_configured_gateway(make_user):
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    created = create_payment(client, headers)

    resp = client.post(
        f"/payments/{created['id']}/process", json={"stripe_payment_intent_id": "pi_123"}, headers=headers
    )

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Payment gateway is not configured"


def test_standalone_payment_intent(make_user, fake_gateway):
    client = TestClient(app)
    tenant_id, headers = make_user("tenant@example.com")

    resp = client.post(
        "/payments/stripe/payment-intent",
        json={"amount": "45.00", "currency": "GBP", "metadata": {"purpose": "deposit"}},
        headers=headers,
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data == {
        "id": "pi_test_1",
        "client_secret": "pi_test_1_secret",
        "status": "requires_payment_method",
        "amount": 4500,
        "currency": "gbp",
    }
    (call,) = fake_gateway.calls_to("create_intent")
    assert call["metadata"] == {"purpose": "deposit", "user_id": tenant_id}


def test_standalone_payment_intent_requires_gateway(make_user):
    client = TestClient(app)
    _, headers = make_user("tenant@example.com")
    resp = client.post("/payments/stripe/payment-intent", json={"amount": "45.00"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Stripe is not configured"


@pytest.fixture
def stripe_gateway():
    app.dependency_overrides[get_payment_gateway] = lambda: StripeGateway(secret_key="sk_test_123")
    yield
    app.dependency_overrides.pop(get_payment_gateway, None)


def test_processing_through_stripe_adapter_completes_payment(make_user, stripe_gateway, monkeypatch):
    def fake_retrieve(intent_id, **kwargs):
        return stripe.PaymentIntent.construct_from(
            {"id": intent_id, "status": "succeeded", "latest_charge": "ch_live_1"}, "sk_test_123"
        )

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", fake_retrieve)
    client = TestClient(app)
    _, headers = make_user("agent@example.com", role=UserRole.AGENT)
    created = create_payment(client, headers)

    resp = client.post(
        f"/payments/{created['id']}/process",
        json={"stripe_payment_intent_id": "pi_live_1"},
        headers=headers,
    )

    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["status"] == "completed"
    assert data["stripe_charge_id"] == "ch_live_1"
