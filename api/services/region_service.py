"""
PayTR Checkout API -- Region Service

Regions carry the currency a cart is charged in.
"""

import logging

logger = logging.getLogger("paytr.regions")


class RegionNotFoundError(LookupError):
  """No region with the requested id."""


def _get_database():
  """Lazy import to allow unit testing without live DB."""
  import database
  return database


def retrieve(region_id):
  """Return the region row as a dict. Raises RegionNotFoundError."""
  db = _get_database()
  region = db.execute_query_returning_one_row(
    "SELECT id, name, currency_code FROM regions WHERE id = %s",
    (region_id,),
  )
  if region is None:
    logger.warning("Region not found: id=%s", region_id)
    raise RegionNotFoundError(f"Region {region_id} was not found")
  return region
