"""
PayTR Checkout API -- Tests for the HTTP routes

Exercises the checkout token route and the PayTR notification route through
FastAPI's TestClient. The provider singleton is replaced with one wired to
in-memory host services; PayTR itself is never called.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from conftest import sign_notification


@pytest.fixture
def client():
  from app import app
  return TestClient(app)


@pytest.fixture
def patched_provider(paytr_provider, cart_service):
  with patch("routers.webhooks.get_paytr_payment_provider", return_value=paytr_provider), \
       patch("routers.checkout.get_paytr_payment_provider", return_value=paytr_provider), \
       patch("routers.checkout.cart_service", cart_service):
    yield paytr_provider


def _notification_form(status="success", total_amount="2000", merchant_oid="abc123"):
  return {
    "merchant_oid": merchant_oid,
    "status": status,
    "total_amount": total_amount,
    "hash": sign_notification(merchant_oid, status, total_amount),
  }


# ===========================================================================
# Test: PayTR notification route
# ===========================================================================

class TestPaytrNotificationRoute:

  def test_valid_success_notification_returns_ok(self, client, patched_provider, cart_service):
    response = client.post("/api/v1/webhooks/paytr", data=_notification_form())

    assert response.status_code == 200
    assert response.text == "OK"
    assert cart_service.session_data("cart_abc123", "ps_1") == {
      "status": None, "is_pending": False, "merchant_oid": "abc123",
    }

  def test_failed_payment_is_still_acknowledged(self, client, patched_provider, cart_service):
    form = _notification_form(status="failed")
    form["failed_reason_code"] = "2"
    form["failed_reason_msg"] = "Yetersiz bakiye"

    response = client.post("/api/v1/webhooks/paytr", data=form)

    assert response.status_code == 200
    assert response.text == "OK"
    assert cart_service.session_data("cart_abc123", "ps_1")["status"] == 0

  def test_bad_hash_returns_400(self, client, patched_provider, cart_service):
    form = _notification_form()
    form["hash"] = "not-the-right-hash"

    response = client.post("/api/v1/webhooks/paytr", data=form)

    assert response.status_code == 400
    assert "bad hash" in response.text
    assert cart_service.session_data("cart_abc123", "ps_1")["is_pending"] is True

  def test_unknown_session_returns_404(self, client, patched_provider, cart_service):
    form = _notification_form(merchant_oid="zzz999")
    form["cart_id"] = "cart_abc123"

    response = client.post("/api/v1/webhooks/paytr", data=form)

    assert response.status_code == 404
    assert cart_service.session_updates == []

  def test_conflicting_second_notification_returns_404(self, client, patched_provider, cart_service):
    client.post("/api/v1/webhooks/paytr", data=_notification_form())

    response = client.post("/api/v1/webhooks/paytr", data=_notification_form(status="failed"))

    assert response.status_code == 404
    assert cart_service.session_data("cart_abc123", "ps_1")["status"] is None
    assert len(cart_service.session_updates) == 1

  def test_unknown_cart_returns_404(self, client, patched_provider, cart_service):
    response = client.post("/api/v1/webhooks/paytr", data=_notification_form(merchant_oid="nocart"))

    assert response.status_code == 404

  def test_explicit_cart_id_is_used(self, client, patched_provider, cart_service):
    form = _notification_form()
    form["cartId"] = "cart_abc123"

    response = client.post("/api/v1/webhooks/paytr", data=form)

    assert response.status_code == 200
    assert cart_service.retrieve_calls[-1][0] == "cart_abc123"

  def test_relayed_json_notification(self, client, patched_provider, cart_service):
    body = _notification_form()
    body["cartId"] = "cart_abc123"

    response = client.post("/api/v1/webhooks/paytr", json=body)

    assert response.status_code == 200
    assert response.text == "OK"

  def test_invalid_json_body_returns_400(self, client, patched_provider):
    response = client.post(
      "/api/v1/webhooks/paytr",
      content=b"[1, 2",
      headers={"content-type": "application/json"},
    )
    assert response.status_code == 400


# ===========================================================================
# Test: Checkout token route
# ===========================================================================

class TestCheckoutTokenRoute:

  def test_returns_token_and_iframe_url(self, client, patched_provider):
    with patch.object(
      patched_provider, "_post_token_request",
      AsyncMock(return_value={"status": "success", "token": "iframe-token-1"}),
    ):
      response = client.post("/api/v1/checkout/paytr/token", json={"cart_id": "cart_abc123"})

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["data"]["token"] == "iframe-token-1"
    assert body["data"]["iframe_url"].endswith("/iframe-token-1")
    assert body["data"]["merchant_oid"] == "abc123"

  def test_existing_session_is_reused(self, client, patched_provider, cart_service):
    with patch.object(
      patched_provider, "_post_token_request",
      AsyncMock(return_value={"status": "success", "token": "t"}),
    ):
      client.post("/api/v1/checkout/paytr/token", json={"cart_id": "cart_abc123"})

    assert cart_service.created_sessions == []

  def test_session_is_created_when_missing(self, client, patched_provider, cart_service):
    cart_service.carts["cart_abc123"]["payment_sessions"] = []

    with patch.object(
      patched_provider, "_post_token_request",
      AsyncMock(return_value={"status": "success", "token": "t"}),
    ):
      response = client.post("/api/v1/checkout/paytr/token", json={"cart_id": "cart_abc123"})

    assert response.status_code == 200
    assert len(cart_service.created_sessions) == 1
    created = cart_service.created_sessions[0]
    assert created["provider_id"] == "paytr"
    assert created["data"] == {"merchant_oid": "abc123", "is_pending": True, "status": -1}

  def test_gateway_failure_returns_502(self, client, patched_provider):
    with patch.object(
      patched_provider, "_post_token_request",
      AsyncMock(return_value={"status": "failed", "reason": "merchant_oid zaten kullanildi"}),
    ):
      response = client.post("/api/v1/checkout/paytr/token", json={"cart_id": "cart_abc123"})

    assert response.status_code == 502
    body = response.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "PAYMENT_INITIATION_FAILED"
    assert "merchant_oid zaten kullanildi" in body["error"]["message"]

  def test_settled_payment_returns_409(self, client, patched_provider, cart_service):
    cart_service.carts["cart_abc123"]["payment_sessions"][0]["data"] = {
      "merchant_oid": "abc123", "is_pending": False, "status": None,
    }
    post_token_request = AsyncMock(return_value={"status": "success", "token": "t"})

    with patch.object(patched_provider, "_post_token_request", post_token_request):
      response = client.post("/api/v1/checkout/paytr/token", json={"cart_id": "cart_abc123"})

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "PAYMENT_ALREADY_SETTLED"
    post_token_request.assert_not_awaited()
    assert cart_service.created_sessions == []

  def test_unknown_cart_returns_404(self, client, patched_provider):
    response = client.post("/api/v1/checkout/paytr/token", json={"cart_id": "cart_missing"})

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "CART_NOT_FOUND"

  def test_missing_cart_id_returns_400(self, client, patched_provider):
    response = client.post("/api/v1/checkout/paytr/token", json={})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "MISSING_FIELD"

  def test_invalid_json_returns_400(self, client, patched_provider):
    response = client.post(
      "/api/v1/checkout/paytr/token",
      content=b"not json",
      headers={"content-type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_JSON"


# ===========================================================================
# Test: Status route
# ===========================================================================

class TestStatusRoute:

  def test_status_lists_paytr_endpoints(self, client):
    response = client.get("/api/v1/status")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["provider"] == "paytr"
    assert data["endpoints"]["paytr_notification"] == "/api/v1/webhooks/paytr"

