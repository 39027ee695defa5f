"""
PayTR Checkout API -- Payment Provider Interface

Abstract base class for payment providers. The host platform talks to a
provider only through these ten operations; which class implements them
does not matter.

Also defines the errors a provider raises to its caller.
"""

import enum
from abc import ABC, abstractmethod


class PaymentSessionStatus(str, enum.Enum):
  """Host-side payment session status."""
  PENDING = "pending"
  AUTHORIZED = "authorized"
  ERROR = "error"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class PaymentProviderError(Exception):
  """Base class for errors raised by a payment provider."""


class PaymentInitiationError(PaymentProviderError):
  """The gateway call that starts a payment failed or was refused."""


class InvalidSignatureError(PaymentProviderError):
  """A gateway notification did not carry a valid signature."""


class SessionNotFoundError(PaymentProviderError):
  """A gateway notification references no known payment session."""


class PaymentProviderInterface(ABC):
  """Abstract base for payment providers."""

  @abstractmethod
  async def create_payment(self, cart):
    """
    Seed the provider data bag for a new payment session.

    Args:
      cart: The host cart dict the session belongs to.

    Returns: dict stored by the host as the session's `data`.
    """
    ...

  @abstractmethod
  async def get_status(self, payment):
    """
    Map a stored session/payment onto PaymentSessionStatus.

    Args:
      payment: dict with a `data` bag previously produced by this provider.

    Returns: PaymentSessionStatus.
    """
    ...

  @abstractmethod
  async def authorize_payment(self, session, context=None):
    """Authorize a session. Returns a dict with `status` and `data`."""
    ...

  @abstractmethod
  async def update_payment(self, session, update_data):
    """Return the session data with `update_data` overlaid on top."""
    ...

  @abstractmethod
  async def capture_payment(self, payment):
    """Capture an authorized payment. Returns a dict with `status`."""
    ...

  @abstractmethod
  async def refund_payment(self, payment, amount=None):
    """Refund a captured payment. Returns the resulting data bag."""
    ...

  @abstractmethod
  async def cancel_payment(self, payment):
    """Cancel a payment. Returns a dict with `status`."""
    ...

  @abstractmethod
  async def delete_payment(self, session):
    """Delete a payment session at the gateway (if supported)."""
    ...

  @abstractmethod
  async def retrieve_payment(self, data):
    """Fetch the current provider-side view of a payment."""
    ...

  @abstractmethod
  async def get_payment_data(self, session):
    """Return the data bag to persist on the payment."""
    ...
