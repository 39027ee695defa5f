"""
Shared fixtures for the PayTR tests.

Host services are replaced with small in-memory fakes so the provider
can be exercised without MySQL. Outbound HTTP is replaced per test with
httpx.MockTransport.
"""

import base64
import copy
import hashlib
import hmac
import os
import sys

import pytest

# Add the api directory to the path so we can import services
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from config import MerchantConfig


TEST_MERCHANT_KEY = "test-merchant-key"
TEST_MERCHANT_SALT = "test-merchant-salt"


def sign_notification(merchant_oid, status, total_amount, key=TEST_MERCHANT_KEY, salt=TEST_MERCHANT_SALT):
  """What PayTR would put in the notification's `hash` field."""
  message = f"{merchant_oid}{salt}{status}{total_amount}"
  digest = hmac.new(key.encode(), message.encode(), hashlib.sha256).digest()
  return base64.b64encode(digest).decode()


class FakeCartService:
  """In-memory stand-in for services.cart_service."""

  def __init__(self, carts=None):
    self.carts = {cart["id"]: cart for cart in (carts or [])}
    self.retrieve_calls = []
    self.created_sessions = []
    self.session_updates = []

  def retrieve(self, cart_id, select=None, relations=None):
    self.retrieve_calls.append((cart_id, select, relations))
    if cart_id not in self.carts:
      from services.cart_service import CartNotFoundError
      raise CartNotFoundError(f"Cart {cart_id} was not found")
    return copy.deepcopy(self.carts[cart_id])

  def create_payment_session(self, cart_id, provider_id, data):
    payment_session = {
      "id": f"ps_{len(self.created_sessions) + 1}",
      "cart_id": cart_id,
      "provider_id": provider_id,
      "status": "pending",
      "data": dict(data),
    }
    self.carts[cart_id].setdefault("payment_sessions", []).append(payment_session)
    self.created_sessions.append(payment_session)
    return payment_session

  def update_payment_session(self, payment_session_id, data):
    self.session_updates.append((payment_session_id, data))
    for cart in self.carts.values():
      for payment_session in cart.get("payment_sessions") or []:
        if payment_session["id"] == payment_session_id:
          payment_session["data"] = dict(data)

  def session_data(self, cart_id, payment_session_id):
    for payment_session in self.carts[cart_id]["payment_sessions"]:
      if payment_session["id"] == payment_session_id:
        return payment_session["data"]
    raise KeyError(payment_session_id)


class FakeRegionService:
  def __init__(self, currency_code="TRY"):
    self.currency_code = currency_code

  def retrieve(self, region_id):
    return {"id": region_id, "name": "Turkey", "currency_code": self.currency_code}


@pytest.fixture
def merchant_config():
  return MerchantConfig(
    merchant_id="123456",
    merchant_key=TEST_MERCHANT_KEY,
    merchant_salt=TEST_MERCHANT_SALT,
    token_endpoint="https://paytr.test/odeme/api/get-token",
    no_installment=0,
    max_installment=0,
    merchant_ok_url="https://shop.test/checkout/ok",
    merchant_fail_url="https://shop.test/checkout/fail",
    timeout_limit=30,
    debug_on=1,
    test_mode=1,
  )


@pytest.fixture
def widget_cart():
  """One Widget at 10.00 TRY x 2, with a pending PayTR session."""
  return {
    "id": "cart_abc123",
    "region_id": "reg_tr",
    "context": {"ip": "85.105.1.20"},
    "items": [{"id": "item_1", "title": "Widget", "unit_price": 1000, "quantity": 2}],
    "billing_address": {
      "first_name": "Ayşe",
      "last_name": "Yılmaz",
      "phone": "+905551112233",
      "address_1": "Bağdat Cd. 12",
      "address_2": None,
      "city": "İstanbul",
      "province": "Kadıköy",
      "postal_code": "34710",
      "country_code": "tr",
    },
    "shipping_address": None,
    "customer": {"id": "cus_1", "email": "ayse@example.com", "metadata": {}},
    "payment_sessions": [
      {
        "id": "ps_1",
        "cart_id": "cart_abc123",
        "provider_id": "paytr",
        "status": "pending",
        "data": {"merchant_oid": "abc123", "is_pending": True, "status": -1},
      },
    ],
    "shipping_total": 0,
    "tax_total": 0,
    "discount_total": 0,
    "gift_card_total": 0,
  }


@pytest.fixture
def cart_service(widget_cart):
  return FakeCartService([widget_cart])


@pytest.fixture
def paytr_provider(cart_service, merchant_config):
  from services import totals_service
  from services.paytr_payment_provider import PayTRPaymentProvider

  return PayTRPaymentProvider(
    cart_service=cart_service,
    totals_service=totals_service,
    region_service=FakeRegionService(),
    merchant_config=merchant_config,
  )
