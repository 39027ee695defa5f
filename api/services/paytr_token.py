"""
PayTR Checkout API -- PayTR signing and payload helpers

Pure functions, no I/O:
  - merchant order id derivation from a cart id
  - user_basket encoding (base64 of compact JSON)
  - user_address assembly from the cart's addresses
  - paytr_token signature for the iFrame token request
  - hash check value for the payment notification callback

Signing follows PayTR's iFrame API documentation:
  paytr_token = base64(HMAC-SHA256(merchant_key,
      merchant_id + user_ip + merchant_oid + email + payment_amount +
      user_basket + no_installment + max_installment + currency +
      test_mode + merchant_salt))

  callback hash = base64(HMAC-SHA256(merchant_key,
      merchant_oid + merchant_salt + status + total_amount))
"""

import base64
import hashlib
import hmac
import json

UNKNOWN_USER_IP = "xxx.x.xxx.xxx"
DEFAULT_LANGUAGE = "tr"

_ADDRESS_FIELDS = (
  "address_1",
  "address_2",
  "city",
  "province",
  "postal_code",
  "country_code",
)


def _text(value):
  """None -> "", everything else -> str(value)."""
  return "" if value is None else str(value)


def _hmac_sha256_base64(key, message):
  digest = hmac.new(
    key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
  ).digest()
  return base64.b64encode(digest).decode("ascii")


def derive_merchant_oid(cart_id):
  """The gateway-facing order id is the part of the cart id after the last '_'."""
  return cart_id.split("_")[-1]


def format_unit_price(unit_price):
  """Minor units (kuruş) -> "10.00"."""
  return f"{unit_price / 100:.2f}"


def encode_basket(items):
  """
  Encode cart line items as PayTR's user_basket.

  Each item becomes [title, unit price as "0.00", quantity as str],
  the list is serialized as compact JSON and base64-encoded.
  """
  basket = [
    [
      _text(item.get("title")),
      format_unit_price(item.get("unit_price") or 0),
      _text(item.get("quantity")),
    ]
    for item in items or []
  ]
  basket_json = json.dumps(basket, ensure_ascii=False, separators=(",", ":"))
  return base64.b64encode(basket_json.encode("utf-8")).decode("ascii")


def build_user_name(cart):
  billing_address = cart.get("billing_address") or {}
  first_name = _text(billing_address.get("first_name"))
  last_name = _text(billing_address.get("last_name"))
  return f"{first_name} {last_name}".strip()


def build_address_from_cart(cart):
  """
  Single-line postal address for the buyer.

  Uses the billing address, falling back to the shipping address.
  Empty parts are skipped.
  """
  address = cart.get("billing_address") or cart.get("shipping_address") or {}
  parts = [_text(address.get(field)).strip() for field in _ADDRESS_FIELDS]
  return ", ".join(part for part in parts if part)


def resolve_user_ip(cart):
  context = cart.get("context") or {}
  return context.get("ip") or UNKNOWN_USER_IP


def resolve_language(cart):
  customer = cart.get("customer") or {}
  metadata = customer.get("metadata") or {}
  return metadata.get("lang") or DEFAULT_LANGUAGE


def build_paytr_token(
  merchant_config,
  user_ip,
  merchant_oid,
  email,
  payment_amount,
  user_basket,
  currency,
):
  """Sign an iFrame token request. Missing values sign as empty strings."""
  hash_str = "".join(
    _text(value) for value in (
      merchant_config.merchant_id,
      user_ip,
      merchant_oid,
      email,
      payment_amount,
      user_basket,
      merchant_config.no_installment,
      merchant_config.max_installment,
      currency,
      merchant_config.test_mode,
    )
  )
  return _hmac_sha256_base64(
    merchant_config.merchant_key, hash_str + merchant_config.merchant_salt
  )


def build_callback_hash(merchant_config, merchant_oid, status, total_amount):
  """Expected `hash` of a payment notification. Plain concatenation, no delimiters."""
  message = (
    _text(merchant_oid)
    + merchant_config.merchant_salt
    + _text(status)
    + _text(total_amount)
  )
  return _hmac_sha256_base64(merchant_config.merchant_key, message)
