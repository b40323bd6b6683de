import json

import pytest

from propertyhub.app.core.security import create_access_token, get_password_hash
from propertyhub.app.db.session import SessionLocal
from propertyhub.app.main import app
from propertyhub.app.models.property import Property
from propertyhub.app.models.user import User, UserRole
from propertyhub.app.services.payment_gateway import WebhookSignatureError, get_payment_gateway

VALID_SIGNATURE = "t=1,v1=valid"


class FakeGateway:
    """Stands in for StripeGateway and records every call it receives."""

    def __init__(self, configured: bool = True):
        self.is_configured = configured
        self.calls = []
        self.failures = {}
        self.intent_status = "succeeded"
        self.confirmed_status = "succeeded"
        self.latest_charge = "ch_test_123"
        self._intent_counter = 0

    def _record(self, name, **kwargs):
        self.calls.append((name, kwargs))
        if name in self.failures:
            raise self.failures[name]

    def calls_to(self, name):
        return [kwargs for call_name, kwargs in self.calls if call_name == name]

    def create_intent(self, **kwargs):
        self._record("create_intent", **kwargs)
        self._intent_counter += 1
        intent_id = f"pi_test_{self._intent_counter}"
        return {
            "id": intent_id,
            "client_secret": f"{intent_id}_secret",
            "status": "requires_payment_method",
            "amount": kwargs["amount_minor"],
            "currency": kwargs["currency"].lower(),
        }

    def retrieve_intent(self, intent_id):
        self._record("retrieve_intent", intent_id=intent_id)
        return {"id": intent_id, "status": self.intent_status, "latest_charge": self.latest_charge}

    def confirm_intent(self, intent_id, payment_method_id=None):
        self._record("confirm_intent", intent_id=intent_id, payment_method_id=payment_method_id)
        return {"id": intent_id, "status": self.confirmed_status, "latest_charge": self.latest_charge}

    def cancel_intent(self, intent_id):
        self._record("cancel_intent", intent_id=intent_id)
        return {"id": intent_id, "status": "canceled"}

    def create_refund(self, **kwargs):
        self._record("create_refund", **kwargs)
        return {"id": f"re_test_{len(self.calls)}", "amount": kwargs["amount_minor"], "status": "succeeded"}

    def construct_event(self, payload, signature):
        self._record("construct_event", signature=signature)
        if signature != VALID_SIGNATURE:
            raise WebhookSignatureError("Invalid webhook signature")
        return json.loads(payload)


@pytest.fixture
def fake_gateway():
    gateway = FakeGateway()
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield gateway
    app.dependency_overrides.pop(get_payment_gateway, None)


@pytest.fixture
def make_user():
    """Create a user directly in the database and return ``(user_id, auth_headers)``."""

    def _make_user(email: str, role: UserRole = UserRole.TENANT, password: str = "secret", is_active: bool = True):
        db = SessionLocal()
        try:
            user = User(
                email=email,
                full_name=email.split("@")[0].title(),
                hashed_password=get_password_hash(password),
                role=role.value,
                is_active=is_active,
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            token = create_access_token(user_id=user.id)
            return user.id, {"Authorization": f"Bearer {token}"}
        finally:
            db.close()

    return _make_user


@pytest.fixture
def make_property():
    def _make_property(name: str = "Flat 1", landlord_id: int | None = None) -> int:
        db = SessionLocal()
        try:
            prop = Property(name=name, landlord_id=landlord_id, city="London", postcode="E1 6AN")
            db.add(prop)
            db.commit()
            db.refresh(prop)
            return prop.id
        finally:
            db.close()

    return _make_property


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
