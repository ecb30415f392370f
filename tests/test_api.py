"""
Integration tests for the HTTP surface.
"""
import pytest
from fastapi.testclient import TestClient
from jose import jwt

from app.core import auth_dependency
from app.db.models.usage import UsageEvent
from app.db.session import get_db
from app.main import app
from app.services.billing_service import set_pro_override
from app.services.stripe_service import get_billing_client
from app.services.subscription_store import get_subscription
from conftest import TestSessionLocal, future, make_charge

TEST_SECRET = "test-secret-key"


def make_token(user_id="user-1", role=None, email="user@example.com"):
    claims = {"sub": user_id, "email": email, "aud": "authenticated", "user_metadata": {}}
    if role:
        claims["user_metadata"]["role"] = role
    return jwt.encode(claims, TEST_SECRET, algorithm="HS256")


def auth_headers(**kwargs):
    return {"Authorization": f"Bearer {make_token(**kwargs)}"}


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(db, billing, monkeypatch):
    monkeypatch.setattr(auth_dependency, "SECRET_KEY", TEST_SECRET)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_billing_client] = lambda: billing
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_missing_token_is_unauthorized(client):
    response = client.post("/can-analyze", json={"client_id": "client-a"})
    assert response.status_code == 401


def test_invalid_token_is_unauthorized(client):
    response = client.post(
        "/can-analyze",
        json={"client_id": "client-a"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401


def test_can_analyze_free_user(client, db):
    db.add_all([UsageEvent(user_id="user-1", client_id="client-a") for _ in range(2)])
    db.commit()

    response = client.post("/can-analyze", json={"client_id": "client-a"}, headers=auth_headers())

    assert response.status_code == 200
    assert response.json() == {"allowed": True, "currentCount": 2, "limit": 3, "isPro": False}


def test_can_analyze_blocks_at_limit(client, db):
    db.add_all([UsageEvent(user_id="user-1", client_id="client-a") for _ in range(3)])
    db.commit()

    response = client.post("/can-analyze", json={"client_id": "client-a"}, headers=auth_headers())

    assert response.json()["allowed"] is False


def test_can_analyze_pro_is_unlimited(client, paid_subscription):
    response = client.post("/can-analyze", json={"client_id": "client-a"}, headers=auth_headers())

    body = response.json()
    assert body["isPro"] is True
    assert body["limit"] is None
    assert body["allowed"] is True


def test_record_analysis_until_paywall(client):
    headers = auth_headers()
    for _ in range(3):
        assert client.post("/analyses/client-a", headers=headers).status_code == 201

    response = client.post("/analyses/client-a", headers=headers)

    assert response.status_code == 402
    assert response.json()["detail"]["error"] == "analysis_limit_reached"


def test_override_user_records_past_free_limit(client, db):
    set_pro_override(db, "user-1", True, future(30))
    headers = auth_headers()
    for _ in range(4):
        assert client.post("/analyses/client-a", headers=headers).status_code == 201

    body = client.post("/can-analyze", json={"client_id": "client-a"}, headers=headers).json()

    assert body["allowed"] is True
    assert body["isPro"] is True
    assert body["currentCount"] == 4


def test_error_body_documented_on_admin_routes(client):
    schema = client.get("/openapi.json").json()
    responses = schema["paths"]["/admin/subscription-action"]["post"]["responses"]

    for status in ("400", "404", "500", "502"):
        ref = responses[status]["content"]["application/json"]["schema"]["$ref"]
        assert ref.endswith("/BillingErrorResponse")


def test_admin_routes_require_admin_role(client, paid_subscription):
    response = client.post(
        "/admin/subscription-action",
        json={"user_id": "user-1", "action": "pause"},
        headers=auth_headers(user_id="someone"),
    )
    assert response.status_code == 403


def test_admin_pause(client, db, billing, paid_subscription):
    response = client.post(
        "/admin/subscription-action",
        json={"user_id": "user-1", "action": "pause"},
        headers=auth_headers(user_id="admin-1", role="admin"),
    )

    assert response.status_code == 200
    assert response.json() == {"message": "Subscription paused"}
    assert billing.calls == [("pause_subscription", "sub_123")]
    db.expire_all()
    assert get_subscription(db, "user-1").status == "paused"


def test_admin_unknown_action_is_400(client, paid_subscription):
    response = client.post(
        "/admin/subscription-action",
        json={"user_id": "user-1", "action": "archive"},
        headers=auth_headers(user_id="admin-1", role="admin"),
    )

    assert response.status_code == 400
    assert response.json() == {"error": "client_error", "detail": "Unknown action: archive"}


def test_admin_remote_failure_is_502(client, db, billing, paid_subscription):
    billing.fail.add("pause_subscription")

    response = client.post(
        "/admin/subscription-action",
        json={"user_id": "user-1", "action": "pause"},
        headers=auth_headers(user_id="admin-1", role="admin"),
    )

    assert response.status_code == 502
    assert response.json()["error"] == "provider_error"
    db.expire_all()
    assert get_subscription(db, "user-1").status == "active"


def test_admin_refund_already_refunded_is_404(client, billing, paid_subscription):
    billing.charges["cus_123"] = [make_charge(refunded=True)]

    response = client.post(
        "/admin/subscription-action",
        json={"user_id": "user-1", "action": "refund_last"},
        headers=auth_headers(user_id="admin-1", role="admin"),
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "Last charge already refunded"


def test_admin_refund_returns_amount(client, billing, paid_subscription):
    billing.charges["cus_123"] = [make_charge(amount=4900, currency="eur")]

    response = client.post(
        "/admin/subscription-action",
        json={"user_id": "user-1", "action": "refund_last"},
        headers=auth_headers(user_id="admin-1", role="admin"),
    )

    body = response.json()
    assert response.status_code == 200
    assert body["message"] == "Refund issued"
    assert body["amount"] == 49.0
    assert body["currency"] == "eur"


def test_admin_override_grants_pro(client):
    response = client.post(
        "/admin/subscription-override",
        json={"user_id": "user-1", "override": True, "override_until": future(30).isoformat()},
        headers=auth_headers(user_id="admin-1", role="admin"),
    )

    assert response.status_code == 200
    assert response.json()["subscription"]["is_pro"] is True

    check = client.post("/can-analyze", json={"client_id": "client-a"}, headers=auth_headers())
    assert check.json()["isPro"] is True


def test_sync_own_subscription_without_record_is_404(client):
    response = client.post("/billing/sync", headers=auth_headers())
    assert response.status_code == 404
    assert response.json()["detail"] == "No subscription found"


def test_read_subscription_without_record(client):
    response = client.get("/billing/subscription", headers=auth_headers())
    assert response.status_code == 200
    assert response.json() == {"subscription": None}


def test_portal_redirect(client, paid_subscription):
    response = client.post("/billing/portal", json={}, headers=auth_headers())
    assert response.status_code == 200
    assert response.json() == {"url": "https://billing.stripe.test/cus_123"}
