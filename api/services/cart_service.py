"""
PayTR Checkout API -- Cart Service

Read access to the shop's carts and write access to their payment sessions.

Tables (owned by the shop platform):
  carts             -- id, region_id, customer_id, billing_address_id,
                       shipping_address_id, context (JSON), subtotal,
                       tax_total, shipping_total, discount_total,
                       gift_card_total, total
  cart_line_items   -- id, cart_id, title, unit_price, quantity
  addresses         -- id, first_name, last_name, phone, address_1,
                       address_2, city, province, postal_code, country_code
  customers         -- id, email, metadata (JSON)
  regions           -- id, name, currency_code
  payment_sessions  -- id, cart_id, provider_id, status, data (JSON)

Carts are returned as plain dicts shaped like the shop's own cart objects:
relations are nested under their name (items, billing_address, ...).
"""

import logging
import secrets

logger = logging.getLogger("paytr.carts")

_CART_COLUMNS = (
  "id",
  "region_id",
  "customer_id",
  "billing_address_id",
  "shipping_address_id",
  "context",
)
_TOTAL_COLUMNS = (
  "subtotal",
  "tax_total",
  "shipping_total",
  "discount_total",
  "gift_card_total",
  "total",
)


class CartNotFoundError(LookupError):
  """No cart with the requested id."""


def _get_database():
  """Lazy import to allow unit testing without live DB."""
  import database
  return database


def generate_payment_session_id():
  """Generate a unique payment session ID: ps_<random hex>."""
  return f"ps_{secrets.token_hex(12)}"


# ---------------------------------------------------------------------------
# Relation loaders
# ---------------------------------------------------------------------------

def _load_items(db, cart_row):
  return db.execute_query_returning_all_rows(
    """
    SELECT id, title, unit_price, quantity
    FROM cart_line_items
    WHERE cart_id = %s
    ORDER BY id
    """,
    (cart_row["id"],),
  )


def _load_address(db, address_id):
  if not address_id:
    return None
  return db.execute_query_returning_one_row(
    """
    SELECT id, first_name, last_name, phone, address_1, address_2,
           city, province, postal_code, country_code
    FROM addresses
    WHERE id = %s
    """,
    (address_id,),
  )


def _load_billing_address(db, cart_row):
  return _load_address(db, cart_row.get("billing_address_id"))


def _load_shipping_address(db, cart_row):
  return _load_address(db, cart_row.get("shipping_address_id"))


def _load_customer(db, cart_row):
  if not cart_row.get("customer_id"):
    return None
  customer = db.execute_query_returning_one_row(
    "SELECT id, email, metadata FROM customers WHERE id = %s",
    (cart_row["customer_id"],),
  )
  if customer is not None:
    customer["metadata"] = db.decode_json_column(customer.get("metadata"), {})
  return customer


def _load_region(db, cart_row):
  return db.execute_query_returning_one_row(
    "SELECT id, name, currency_code FROM regions WHERE id = %s",
    (cart_row["region_id"],),
  )


def _load_payment_sessions(db, cart_row):
  sessions = db.execute_query_returning_all_rows(
    """
    SELECT id, cart_id, provider_id, status, data
    FROM payment_sessions
    WHERE cart_id = %s
    ORDER BY id
    """,
    (cart_row["id"],),
  )
  for payment_session in sessions:
    payment_session["data"] = db.decode_json_column(payment_session.get("data"), {})
  return sessions


# Relations without a loader (discounts, gift cards, payment providers)
# are already reflected in the stored totals and are skipped.
_RELATION_LOADERS = {
  "items": _load_items,
  "billing_address": _load_billing_address,
  "shipping_address": _load_shipping_address,
  "customer": _load_customer,
  "region": _load_region,
  "payment_sessions": _load_payment_sessions,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def retrieve(cart_id, select=None, relations=None):
  """
  Load a cart with the requested totals and relations.

  Args:
    cart_id: The cart's id, e.g. "cart_01HX...".
    select: Total columns to include (default: all of them).
    relations: Relation names to load and nest into the cart dict.

  Raises CartNotFoundError if the cart does not exist.
  """
  db = _get_database()

  selected_totals = [
    column for column in (select or _TOTAL_COLUMNS) if column in _TOTAL_COLUMNS
  ]
  columns = ", ".join(_CART_COLUMNS + tuple(selected_totals))
  cart = db.execute_query_returning_one_row(
    f"SELECT {columns} FROM carts WHERE id = %s",
    (cart_id,),
  )
  if cart is None:
    raise CartNotFoundError(f"Cart {cart_id} was not found")

  cart["context"] = db.decode_json_column(cart.get("context"), {})

  for relation in relations or []:
    loader = _RELATION_LOADERS.get(relation)
    if loader is not None:
      cart[relation] = loader(db, cart)

  return cart


def create_payment_session(cart_id, provider_id, data):
  """Insert a pending payment session for a cart. Returns the new session dict."""
  db = _get_database()

  payment_session_id = generate_payment_session_id()
  db.execute_insert_or_update(
    """
    INSERT INTO payment_sessions (id, cart_id, provider_id, status, data)
    VALUES (%s, %s, %s, 'pending', %s)
    """,
    (payment_session_id, cart_id, provider_id, db.encode_json_column(data)),
  )

  logger.info(
    "Payment session created: id=%s, cart_id=%s, provider=%s",
    payment_session_id, cart_id, provider_id,
  )

  return {
    "id": payment_session_id,
    "cart_id": cart_id,
    "provider_id": provider_id,
    "status": "pending",
    "data": data,
  }


def update_payment_session(payment_session_id, data):
  """Replace a payment session's data bag."""
  db = _get_database()
  db.execute_insert_or_update(
    "UPDATE payment_sessions SET data = %s WHERE id = %s",
    (db.encode_json_column(data), payment_session_id),
  )
  logger.info("Payment session updated: id=%s", payment_session_id)
