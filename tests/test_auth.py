import pytest
from fastapi.testclient import TestClient

from propertyhub.app.db.base import Base
from propertyhub.app.db.session import engine
from propertyhub.app.main import app
from propertyhub.app.models.user import UserRole


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def test_register_login_and_me():
    client = TestClient(app)
    resp = client.post(
        "/auth/register",
        json={"email": "tenant@example.com", "password": "secret", "full_name": "Tina Tenant"},
    )
    assert resp.status_code == 200
    assert resp.json()["role"] == "tenant"

    login = client.post("/auth/login", json={"email": "tenant@example.com", "password": "secret"})
    assert login.status_code == 200
    token = login.json()["access_token"]
    assert login.json()["token_type"] == "bearer"

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "tenant@example.com"
    assert me.json()["full_name"] == "Tina Tenant"


def test_register_as_landlord():
    client = TestClient(app)
    resp = client.post(
        "/auth/register", json={"email": "landlord@example.com", "password": "secret", "role": "landlord"}
    )
    assert resp.status_code == 200
    assert resp.json()["role"] == "landlord"


def test_register_rejects_staff_roles():
    client = TestClient(app)
    resp = client.post("/auth/register", json={"email": "admin@example.com", "password": "secret", "role": "admin"})
    assert resp.status_code == 422


def test_register_duplicate_email():
    client = TestClient(app)
    client.post("/auth/register", json={"email": "dup@example.com", "password": "secret"})
    resp = client.post("/auth/register", json={"email": "dup@example.com", "password": "secret"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Email already registered"


def test_login_with_wrong_password():
    client = TestClient(app)
    client.post("/auth/register", json={"email": "wrong@example.com", "password": "secret"})
    resp = client.post("/auth/login", json={"email": "wrong@example.com", "password": "nope"})
    assert resp.status_code == 400


def test_me_requires_bearer_token():
    client = TestClient(app)
    assert client.get("/auth/me").status_code == 401
    resp = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


def test_inactive_user_is_rejected(make_user):
    client = TestClient(app)
    _, headers = make_user("gone@example.com", role=UserRole.AGENT, is_active=False)
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_tenant_cannot_use_staff_endpoints(make_user):
    client = TestClient(app)
    _, headers = make_user("t@example.com")
    resp = client.get("/payments/dashboard", headers=headers)
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Insufficient role"
