"""
PayTR Checkout API

PayTR iFrame payments for the shop's carts.
Port 8190.

Endpoints:
  /api/health                        -- health check
  /api/v1/status                     -- API status and capabilities
  /api/v1/checkout/paytr/token       -- start a PayTR payment for a cart
  /api/v1/webhooks/paytr             -- PayTR payment notification (callback)
  /api/docs                          -- Swagger UI documentation

Run with:
    uvicorn app:app --host 127.0.0.1 --port 8190
"""

import datetime
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import config
from routers import checkout, webhooks
from services.paytr_payment_provider import get_paytr_payment_provider

# --- Logging ---
logging.basicConfig(
  level=logging.INFO,
  format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger("paytr.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
  # Missing merchant settings must stop the service here, not on the first payment
  get_paytr_payment_provider()
  logger.info("PayTR provider configured (merchant_id=%s)", config.PAYTR_MERCHANT_ID)
  yield


# --- FastAPI app ---
app = FastAPI(
  title="PayTR Checkout API",
  description="PayTR iFrame checkout tokens and payment notifications for shop carts.",
  version=config.API_VERSION,
  docs_url="/api/docs",
  redoc_url="/api/redoc",
  openapi_url="/api/openapi.json",
  lifespan=lifespan,
)

# --- Register routers ---
app.include_router(checkout.router)
app.include_router(webhooks.router)


# --- Health and status ---

class HealthResponse(BaseModel):
  status: str
  service: str
  version: str
  timestamp: str
  database: str


@app.get("/api/health", response_model=HealthResponse)
async def health_check():
  """Health check endpoint for monitoring and load balancers."""
  db_status = "unknown"
  try:
    import database
    row = database.execute_query_returning_one_row("SELECT 1 AS alive")
    if row and row.get("alive") == 1:
      db_status = "connected"
    else:
      db_status = "error"
  except Exception as db_error:
    db_status = f"error: {db_error}"

  return HealthResponse(
    status="healthy",
    service="paytr-checkout-api",
    version=config.API_VERSION,
    timestamp=datetime.datetime.now(datetime.timezone.utc).isoformat(),
    database=db_status,
  )


@app.get("/api/v1/status")
async def api_status():
  """API status and capabilities."""
  return JSONResponse(
    content={
      "ok": True,
      "data": {
        "status": "operational",
        "version": config.API_VERSION,
        "provider": config.PAYTR_PROVIDER_ID,
        "capabilities": [
          "health-check",
          "paytr-checkout-token",
          "paytr-notification",
        ],
        "endpoints": {
          "health": "/api/health",
          "checkout_token": "/api/v1/checkout/paytr/token",
          "paytr_notification": "/api/v1/webhooks/paytr",
          "docs": "/api/docs",
        },
      },
      "error": None,
    }
  )


if __name__ == "__main__":
  import uvicorn
  logger.info("Starting PayTR Checkout API on %s:%d", config.API_HOST, config.API_PORT)
  uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
