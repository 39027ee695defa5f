"""
PayTR Checkout API -- Configuration

All configuration values with sensible defaults.
Override via environment variables.

The merchant settings are read once into an immutable MerchantConfig
(see load_merchant_config) and shared by every request.
"""

import os
from dataclasses import dataclass


class ConfigurationError(Exception):
  """Raised at startup when a required merchant setting is missing."""


def _env_int(name, default):
  return int(os.environ.get(name, str(default)))


# --- MySQL Database ---
MYSQL_HOST = os.environ.get("PAYTR_DB_HOST", "127.0.0.1")
MYSQL_PORT = _env_int("PAYTR_DB_PORT", 3306)
MYSQL_USER = os.environ.get("PAYTR_DB_USER", "shop")
# SECURITY: No hardcoded default -- must be set via environment variable or systemd unit
MYSQL_PASSWORD = os.environ.get("PAYTR_DB_PASSWORD", "")
MYSQL_DATABASE = os.environ.get("PAYTR_DB_NAME", "shop")

# --- API Settings ---
API_VERSION = "0.1.0"
API_HOST = os.environ.get("PAYTR_API_HOST", "127.0.0.1")
API_PORT = _env_int("PAYTR_API_PORT", 8190)

# --- PayTR merchant ---
# SECURITY: No hardcoded defaults -- must be set via environment variable or systemd unit
PAYTR_MERCHANT_ID = os.environ.get("PAYTR_MERCHANT_ID", "")
PAYTR_MERCHANT_KEY = os.environ.get("PAYTR_MERCHANT_KEY", "")
PAYTR_MERCHANT_SALT = os.environ.get("PAYTR_MERCHANT_SALT", "")

PAYTR_TOKEN_ENDPOINT = os.environ.get(
  "PAYTR_TOKEN_ENDPOINT", "https://www.paytr.com/odeme/api/get-token"
)
PAYTR_IFRAME_BASE_URL = os.environ.get(
  "PAYTR_IFRAME_BASE_URL", "https://www.paytr.com/odeme/guvenli/"
)

# Installments: no_installment=1 disables them, max_installment=0 means "no limit"
PAYTR_NO_INSTALLMENT = _env_int("PAYTR_NO_INSTALLMENT", 0)
PAYTR_MAX_INSTALLMENT = _env_int("PAYTR_MAX_INSTALLMENT", 0)

PAYTR_MERCHANT_OK_URL = os.environ.get("PAYTR_MERCHANT_OK_URL", "")
PAYTR_MERCHANT_FAIL_URL = os.environ.get("PAYTR_MERCHANT_FAIL_URL", "")
PAYTR_TIMEOUT_LIMIT = _env_int("PAYTR_TIMEOUT_LIMIT", 30)  # minutes
PAYTR_DEBUG_ON = _env_int("PAYTR_DEBUG_ON", 0)
PAYTR_TEST_MODE = _env_int("PAYTR_TEST_MODE", 0)

# Cart ids look like "cart_01H..."; the callback only carries the suffix
PAYTR_CART_ID_PREFIX = os.environ.get("PAYTR_CART_ID_PREFIX", "cart_")

PAYTR_PROVIDER_ID = "paytr"


@dataclass(frozen=True)
class MerchantConfig:
  """Static PayTR merchant settings. Immutable for the process lifetime."""
  merchant_id: str
  merchant_key: str
  merchant_salt: str
  token_endpoint: str
  no_installment: int = 0
  max_installment: int = 0
  merchant_ok_url: str = ""
  merchant_fail_url: str = ""
  timeout_limit: int = 30
  debug_on: int = 0
  test_mode: int = 0


def load_merchant_config():
  """
  Build the MerchantConfig from the module-level settings.

  Raises ConfigurationError if any field needed for signing is empty.
  """
  missing_fields = [
    name for name, value in (
      ("PAYTR_MERCHANT_ID", PAYTR_MERCHANT_ID),
      ("PAYTR_MERCHANT_KEY", PAYTR_MERCHANT_KEY),
      ("PAYTR_MERCHANT_SALT", PAYTR_MERCHANT_SALT),
      ("PAYTR_TOKEN_ENDPOINT", PAYTR_TOKEN_ENDPOINT),
    )
    if not value
  ]
  if missing_fields:
    raise ConfigurationError(
      "Missing PayTR merchant settings: " + ", ".join(missing_fields)
    )

  return MerchantConfig(
    merchant_id=PAYTR_MERCHANT_ID,
    merchant_key=PAYTR_MERCHANT_KEY,
    merchant_salt=PAYTR_MERCHANT_SALT,
    token_endpoint=PAYTR_TOKEN_ENDPOINT,
    no_installment=PAYTR_NO_INSTALLMENT,
    max_installment=PAYTR_MAX_INSTALLMENT,
    merchant_ok_url=PAYTR_MERCHANT_OK_URL,
    merchant_fail_url=PAYTR_MERCHANT_FAIL_URL,
    timeout_limit=PAYTR_TIMEOUT_LIMIT,
    debug_on=PAYTR_DEBUG_ON,
    test_mode=PAYTR_TEST_MODE,
  )
