"""
PayTR Checkout API -- PayTR Payment Provider

PayTR iFrame API integration using direct HTTP calls via httpx.

Checkout:
  cart -> signed token request -> POST {token_endpoint} -> iFrame token
  The buyer is then sent to the PayTR hosted payment page with that token.

Settlement:
  PayTR POSTs a notification (merchant_oid, status, total_amount, hash)
  to our callback URL. We verify the hash and update the cart's pending
  payment session.

Endpoints used:
  POST https://www.paytr.com/odeme/api/get-token  -- get iFrame token

PayTR has no capture/refund/cancel/delete calls in this flow, so those
operations only echo or replace local state.
"""

import dataclasses
import hmac
import logging

import httpx

import config
from services import paytr_token
from services.cart_service import CartNotFoundError
from services.payment_provider_interface import (
  InvalidSignatureError,
  PaymentInitiationError,
  PaymentProviderInterface,
  PaymentSessionStatus,
  SessionNotFoundError,
)

logger = logging.getLogger("paytr.provider")

PENDING_STATUS_CODE = -1
GENERIC_ERROR_STATUS_CODE = 0

# PayTR failure codes; any other stored value counts as authorized.
# NOTE: this fallback is permissive -- an undocumented code would be
# reported as AUTHORIZED. Kept until checked against PayTR's full code table.
ERROR_STATUS_CODES = frozenset({0, 1, 2, 3, 6, 9, 11, 99})

# Fields and relations the host cart service must load for us
CART_SELECT_FIELDS = [
  "gift_card_total",
  "subtotal",
  "tax_total",
  "shipping_total",
  "discount_total",
  "total",
]
CART_RELATIONS = [
  "items",
  "discounts",
  "discounts.rule",
  "discounts.rule.valid_for",
  "gift_cards",
  "billing_address",
  "shipping_address",
  "region",
  "region.payment_providers",
  "payment_sessions",
  "customer",
]

# Never sent to PayTR
_PRIVATE_CONFIG_FIELDS = ("merchant_key", "merchant_salt", "token_endpoint")


class PayTRPaymentProvider(PaymentProviderInterface):
  """PayTR iFrame payment provider."""

  identifier = config.PAYTR_PROVIDER_ID

  def __init__(self, cart_service, totals_service, region_service, merchant_config):
    self._cart_service = cart_service
    self._totals_service = totals_service
    self._region_service = region_service
    self._merchant_config = merchant_config

  # -----------------------------------------------------------------------
  # Checkout token
  # -----------------------------------------------------------------------

  def build_token_request(self, cart, amount, currency_code):
    """
    Assemble the full get-token form for a cart.

    Missing customer/address values are passed through as empty values;
    PayTR rejects the request itself if it needs them.
    """
    merchant_config = self._merchant_config
    customer = cart.get("customer") or {}
    billing_address = cart.get("billing_address") or {}

    merchant_oid = paytr_token.derive_merchant_oid(cart["id"])
    user_basket = paytr_token.encode_basket(cart.get("items"))
    user_ip = paytr_token.resolve_user_ip(cart)
    email = customer.get("email")

    signed_token = paytr_token.build_paytr_token(
      merchant_config,
      user_ip=user_ip,
      merchant_oid=merchant_oid,
      email=email,
      payment_amount=amount,
      user_basket=user_basket,
      currency=currency_code,
    )

    merchant_fields = {
      name: value
      for name, value in dataclasses.asdict(merchant_config).items()
      if name not in _PRIVATE_CONFIG_FIELDS
    }

    return {
      **merchant_fields,
      "paytr_token": signed_token,
      "payment_amount": amount,
      "currency": currency_code,
      "user_name": paytr_token.build_user_name(cart),
      "user_address": paytr_token.build_address_from_cart(cart),
      "email": email,
      "user_phone": billing_address.get("phone"),
      "user_ip": user_ip,
      "user_basket": user_basket,
      "merchant_oid": merchant_oid,
      "lang": paytr_token.resolve_language(cart),
    }

  async def generate_token(self, cart_id):
    """
    Request a PayTR iFrame token for the cart.

    Single attempt. Raises PaymentInitiationError carrying the upstream
    message on transport errors, HTTP errors, or a refused request.
    """
    cart = self.retrieve_cart(cart_id)
    amount = self._totals_service.get_total(cart)
    region = self._region_service.retrieve(cart["region_id"])
    token_request = self.build_token_request(cart, amount, region["currency_code"])

    try:
      token_response = await self._post_token_request(token_request)
    except (httpx.HTTPError, ValueError) as request_error:
      upstream_message = str(request_error) or request_error.__class__.__name__
    else:
      if token_response.get("status") == "success" and token_response.get("token"):
        logger.info(
          "PayTR token created: merchant_oid=%s, amount=%s, currency=%s",
          token_request["merchant_oid"], amount, region["currency_code"],
        )
        return token_response["token"]
      upstream_message = token_response.get("reason") or "PayTR did not return a token"

    logger.error(
      "PayTR token request failed: merchant_oid=%s, error=%s",
      token_request["merchant_oid"], upstream_message,
    )
    raise PaymentInitiationError(
      f"An error occurred while trying to create the payment.\n{upstream_message}"
    )

  async def _post_token_request(self, token_request):
    async with httpx.AsyncClient() as http_client:
      response = await http_client.post(
        self._merchant_config.token_endpoint,
        data=token_request,
        headers={"Accept": "application/json"},
      )
      response.raise_for_status()
      token_response = response.json()

    if not isinstance(token_response, dict):
      raise ValueError(f"Unexpected PayTR response: {token_response!r}")
    return token_response

  # -----------------------------------------------------------------------
  # Payment session lifecycle
  # -----------------------------------------------------------------------

  async def create_payment(self, cart):
    return {
      "merchant_oid": paytr_token.derive_merchant_oid(cart["id"]),
      "is_pending": True,
      "status": PENDING_STATUS_CODE,
    }

  async def get_status(self, payment):
    status = (payment.get("data") or {}).get("status")

    if status == PENDING_STATUS_CODE:
      return PaymentSessionStatus.PENDING

    if status in ERROR_STATUS_CODES:
      return PaymentSessionStatus.ERROR

    return PaymentSessionStatus.AUTHORIZED

  async def retrieve_payment(self, data):
    return data

  async def get_payment_data(self, session):
    return session["data"]

  async def authorize_payment(self, session=None, context=None):
    return {"status": "authorized", "data": {"status": "authorized"}}

  async def update_payment(self, session, update_data):
    return {**(session.get("data") or {}), **update_data}

  async def delete_payment(self, session=None):
    # PayTR has no API for deleting a payment
    return None

  async def capture_payment(self, payment=None):
    return {"status": "captured"}

  async def refund_payment(self, payment, amount=None):
    return payment["data"]

  async def cancel_payment(self, payment=None):
    return {"status": "canceled"}

  # -----------------------------------------------------------------------
  # Payment notification callback
  # -----------------------------------------------------------------------

  def verify_callback_hash(self, notification):
    """True if the notification's `hash` matches our own signature."""
    expected_hash = paytr_token.build_callback_hash(
      self._merchant_config,
      notification.get("merchant_oid"),
      notification.get("status"),
      notification.get("total_amount"),
    )
    received_hash = str(notification.get("hash") or "")
    return hmac.compare_digest(expected_hash.encode("utf-8"), received_hash.encode("utf-8"))

  async def handle_callback(self, notification):
    """
    Apply a PayTR payment notification to the matching payment session.

    notification: dict with merchant_oid, status, total_amount, hash and
    cart_id (`cartId` is accepted too).

    Raises InvalidSignatureError on a bad hash. Raises SessionNotFoundError
    if the cart is unknown, has no session for merchant_oid, or its session
    has already settled with a different outcome. Nothing is written in
    any of these cases.
    """
    merchant_oid = notification.get("merchant_oid")
    cart_id = notification.get("cart_id") or notification.get("cartId")

    if not self.verify_callback_hash(notification):
      logger.warning("PayTR notification rejected (bad hash): merchant_oid=%s", merchant_oid)
      raise InvalidSignatureError("PAYTR notification failed: bad hash")

    try:
      cart = self.retrieve_cart(cart_id)
    except CartNotFoundError as lookup_error:
      logger.warning(
        "PayTR notification for unknown cart: merchant_oid=%s, cart_id=%s",
        merchant_oid, cart_id,
      )
      raise SessionNotFoundError(
        "Unable to complete payment session. The cart was not found."
      ) from lookup_error

    payment_session = find_payment_session(cart.get("payment_sessions"), merchant_oid)
    if payment_session is None:
      logger.warning(
        "PayTR notification for unknown session: merchant_oid=%s, cart_id=%s",
        merchant_oid, cart_id,
      )
      raise SessionNotFoundError(
        "Unable to complete payment session. The payment session was not found."
      )

    is_success = notification.get("status") == "success"
    new_status = None if is_success else GENERIC_ERROR_STATUS_CODE
    session_data = payment_session.get("data") or {}

    # Authorized and error are final; only a repeat of the same outcome is accepted
    if session_data.get("is_pending") is False:
      if session_data.get("status") == new_status:
        logger.info(
          "PayTR notification already applied: merchant_oid=%s, session_id=%s",
          merchant_oid, payment_session["id"],
        )
        return
      logger.warning(
        "PayTR notification conflicts with settled session: merchant_oid=%s, session_id=%s, "
        "stored_status=%s, success=%s",
        merchant_oid, payment_session["id"], session_data.get("status"), is_success,
      )
      raise SessionNotFoundError(
        "Unable to complete payment session. No pending payment session was found."
      )

    updated_data = await self.update_payment(payment_session, {
      "status": new_status,
      "is_pending": False,
      "merchant_oid": merchant_oid,
    })
    self._cart_service.update_payment_session(payment_session["id"], updated_data)

    logger.info(
      "PayTR notification applied: merchant_oid=%s, session_id=%s, success=%s",
      merchant_oid, payment_session["id"], is_success,
    )

  # -----------------------------------------------------------------------
  # Host lookups
  # -----------------------------------------------------------------------

  def retrieve_cart(self, cart_id):
    return self._cart_service.retrieve(
      cart_id, select=CART_SELECT_FIELDS, relations=CART_RELATIONS,
    )


def find_payment_session(payment_sessions, merchant_oid):
  """First session whose data bag carries merchant_oid, or None."""
  if not merchant_oid:
    return None
  for payment_session in payment_sessions or []:
    session_data = payment_session.get("data") or {}
    if session_data.get("merchant_oid") == merchant_oid:
      return payment_session
  return None


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_paytr_provider_singleton = None


def get_paytr_payment_provider():
  """Get the PayTR payment provider singleton, wired to the MySQL host services."""
  global _paytr_provider_singleton
  if _paytr_provider_singleton is None:
    from services import cart_service, region_service, totals_service

    _paytr_provider_singleton = PayTRPaymentProvider(
      cart_service=cart_service,
      totals_service=totals_service,
      region_service=region_service,
      merchant_config=config.load_merchant_config(),
    )
  return _paytr_provider_singleton
