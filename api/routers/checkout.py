"""
PayTR Checkout API -- Checkout Router

  POST /api/v1/checkout/paytr/token

Starts (or resumes) a PayTR payment for a cart: makes sure the cart has a
PayTR payment session, then asks PayTR for an iFrame token. The storefront
embeds iframe_url to show the hosted payment form.

Request body (JSON):
  {"cart_id": "cart_01HX..."}

Response:
  {
    "ok": true,
    "data": {
      "token": "...",
      "iframe_url": "https://www.paytr.com/odeme/guvenli/...",
      "merchant_oid": "01HX..."
    },
    "error": null
  }
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

import config
from services import cart_service, paytr_token
from services.cart_service import CartNotFoundError
from services.payment_provider_interface import PaymentInitiationError
from services.paytr_payment_provider import (
  find_payment_session,
  get_paytr_payment_provider,
)
from services.region_service import RegionNotFoundError

logger = logging.getLogger("paytr.checkout")

router = APIRouter(prefix="/api/v1/checkout", tags=["checkout"])


def _error_response(http_status_code, error_code, error_message):
  """Build a standard error envelope."""
  return JSONResponse(
    status_code=http_status_code,
    content={
      "ok": False,
      "data": None,
      "error": {"code": error_code, "message": error_message},
    },
  )


def _success_response(data, http_status_code=200):
  """Build a standard success envelope."""
  return JSONResponse(
    status_code=http_status_code,
    content={"ok": True, "data": data, "error": None},
  )


@router.post("/paytr/token")
async def create_paytr_checkout_token(request: Request):
  """Create the cart's PayTR session if needed and return an iFrame token."""
  try:
    body = await request.json()
  except ValueError:
    return _error_response(400, "INVALID_JSON", "Request body must be valid JSON")

  if not isinstance(body, dict):
    return _error_response(400, "INVALID_JSON", "Request body must be a JSON object")

  cart_id = str(body.get("cart_id") or "").strip()
  if not cart_id:
    return _error_response(400, "MISSING_FIELD", "'cart_id' is required")

  paytr = get_paytr_payment_provider()

  # -- Make sure a PayTR session exists for this cart --
  try:
    cart = paytr.retrieve_cart(cart_id)
  except CartNotFoundError as lookup_error:
    return _error_response(404, "CART_NOT_FOUND", str(lookup_error))

  merchant_oid = paytr_token.derive_merchant_oid(cart["id"])
  payment_session = find_payment_session(cart.get("payment_sessions"), merchant_oid)
  if payment_session is not None and (payment_session.get("data") or {}).get("is_pending") is False:
    return _error_response(
      409, "PAYMENT_ALREADY_SETTLED",
      f"The PayTR payment for cart {cart['id']} has already been completed",
    )
  if payment_session is None:
    session_data = await paytr.create_payment(cart)
    cart_service.create_payment_session(cart["id"], paytr.identifier, session_data)
    logger.info("PayTR session started: cart_id=%s, merchant_oid=%s", cart["id"], merchant_oid)

  # -- Ask PayTR for the iFrame token --
  try:
    token = await paytr.generate_token(cart_id)
  except RegionNotFoundError as lookup_error:
    return _error_response(404, "REGION_NOT_FOUND", str(lookup_error))
  except PaymentInitiationError as initiation_error:
    return _error_response(502, "PAYMENT_INITIATION_FAILED", str(initiation_error))

  return _success_response({
    "token": token,
    "iframe_url": f"{config.PAYTR_IFRAME_BASE_URL}{token}",
    "merchant_oid": merchant_oid,
  })
