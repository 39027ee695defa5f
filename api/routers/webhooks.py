"""
PayTR Checkout API -- Webhook Router

Receives PayTR payment notifications ("Bildirim URL") and applies them.

PayTR notification: POST /api/v1/webhooks/paytr
  Content-Type: application/x-www-form-urlencoded
  Fields: merchant_oid, status ("success" | "failed"), total_amount, hash,
          plus failed_reason_code / failed_reason_msg on failure.
  Our own field: cart_id (or cartId). Defaults to PAYTR_CART_ID_PREFIX +
          merchant_oid when absent.

Security:
  - Every notification is hash-verified before anything is read or written
  - Unknown sessions are rejected, never created

Response:
  PayTR keeps re-sending a notification until it receives the plain text
  body "OK". Rejected notifications get a 400/404 with a plain text reason.
"""

import json
import logging
from urllib.parse import parse_qsl

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

import config
from services.payment_provider_interface import (
  InvalidSignatureError,
  SessionNotFoundError,
)
from services.paytr_payment_provider import get_paytr_payment_provider

logger = logging.getLogger("paytr.webhooks")

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


def parse_notification_body(raw_body, content_type):
  """Decode a PayTR notification body (form-encoded, or JSON when relayed)."""
  if "application/json" in (content_type or ""):
    parsed = json.loads(raw_body or b"{}")
    if not isinstance(parsed, dict):
      raise ValueError("Notification body must be a JSON object")
    return parsed
  return dict(parse_qsl(raw_body.decode("utf-8"), keep_blank_values=True))


def build_notification(fields):
  """Pick the fields the provider needs and resolve the cart id."""
  merchant_oid = fields.get("merchant_oid", "")
  cart_id = fields.get("cart_id") or fields.get("cartId")
  if not cart_id:
    cart_id = f"{config.PAYTR_CART_ID_PREFIX}{merchant_oid}"

  return {
    "merchant_oid": merchant_oid,
    "status": fields.get("status", ""),
    "total_amount": fields.get("total_amount", ""),
    "hash": fields.get("hash", ""),
    "cart_id": cart_id,
  }


@router.post("/paytr")
async def receive_paytr_notification(request: Request):
  """
  Receive and apply a PayTR payment notification.

  Returns "OK" once the payment session has been updated.
  """
  raw_body = await request.body()

  try:
    fields = parse_notification_body(raw_body, request.headers.get("content-type"))
  except (ValueError, UnicodeDecodeError):
    logger.error("PayTR notification: unreadable body")
    return PlainTextResponse("invalid body", status_code=400)

  notification = build_notification(fields)

  logger.info(
    "PayTR notification received: merchant_oid=%s, status=%s, total_amount=%s",
    notification["merchant_oid"], notification["status"], notification["total_amount"],
  )
  if notification["status"] != "success":
    logger.info(
      "PayTR payment failed: merchant_oid=%s, reason_code=%s, reason=%s",
      notification["merchant_oid"],
      fields.get("failed_reason_code"),
      fields.get("failed_reason_msg"),
    )

  paytr = get_paytr_payment_provider()
  try:
    await paytr.handle_callback(notification)
  except InvalidSignatureError as signature_error:
    return PlainTextResponse(str(signature_error), status_code=400)
  except SessionNotFoundError as lookup_error:
    logger.warning(
      "PayTR notification not applied: merchant_oid=%s, error=%s",
      notification["merchant_oid"], lookup_error,
    )
    return PlainTextResponse(str(lookup_error), status_code=404)

  return PlainTextResponse("OK")
