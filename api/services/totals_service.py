"""
PayTR Checkout API -- Totals Service

Cart total in minor units (kuruş), the amount PayTR expects as payment_amount.
"""


def get_subtotal(cart):
  """Sum of unit_price * quantity over the cart's line items."""
  return sum(
    (item.get("unit_price") or 0) * (item.get("quantity") or 0)
    for item in cart.get("items") or []
  )


def get_total(cart):
  """
  subtotal + shipping + tax - discounts - gift cards, never below zero.

  The line items are authoritative when loaded; otherwise the stored
  subtotal is used.
  """
  if cart.get("items") is not None:
    subtotal = get_subtotal(cart)
  else:
    subtotal = cart.get("subtotal") or 0

  total = (
    subtotal
    + (cart.get("shipping_total") or 0)
    + (cart.get("tax_total") or 0)
    - (cart.get("discount_total") or 0)
    - (cart.get("gift_card_total") or 0)
  )
  return max(int(total), 0)
