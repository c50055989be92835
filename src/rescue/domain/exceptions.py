"""Domain-level exceptions.

All failures raised by the core are subclasses of DomainException so the
CLI layer can catch them uniformly and display user-friendly messages.

They fall into three families that callers treat differently:

- ``BusinessRuleViolation``: expected outcomes (sold out, wrong pickup
  code, ...).  Returned to the caller, never retried by the system.
- ``TransientFailure``: lock-wait or gateway timeouts.  Safe to retry.
- ``IntegrityViolation``: a defect.  The unit of work is rolled back.
"""


class DomainException(Exception):
    """Base class for all domain errors."""


# ---------------------------------------------------------------------------
# Expected business outcomes
# ---------------------------------------------------------------------------


class BusinessRuleViolation(DomainException):
    """An expected, user-facing rejection."""


class ValidationError(BusinessRuleViolation):
    """A business rule or invariant was violated."""


class EntityNotFoundError(BusinessRuleViolation):
    """A requested entity does not exist."""


class OfferNotFound(EntityNotFoundError):
    """The referenced offer does not exist."""


class OfferInactive(BusinessRuleViolation):
    """The offer exists but is not active or not visible."""


class OutOfStock(BusinessRuleViolation):
    """Not enough quantity left on an offer."""


class CartExpired(BusinessRuleViolation):
    """The cart passed its time-to-live."""


class EmptyCart(BusinessRuleViolation):
    """The cart has no valid lines."""


class CrossOutletCart(ValidationError):
    """A cart may only hold offers from a single outlet."""


class InvalidStatus(BusinessRuleViolation):
    """The requested transition is not legal from the current status."""


class InvalidPickupCode(BusinessRuleViolation):
    """The presented pickup code does not match the order."""


class AccessDenied(BusinessRuleViolation):
    """The caller is not allowed to act on this order or outlet."""


class PaymentFailed(BusinessRuleViolation):
    """The gateway rejected a payment operation."""


# ---------------------------------------------------------------------------
# Transient infrastructure failures
# ---------------------------------------------------------------------------


class TransientFailure(DomainException):
    """A retryable infrastructure failure."""


class Contention(TransientFailure):
    """A row lock could not be acquired within the bounded wait."""


class GatewayTimeout(TransientFailure):
    """The payment gateway did not answer in time."""


# ---------------------------------------------------------------------------
# Defects and security events
# ---------------------------------------------------------------------------


class IntegrityViolation(DomainException):
    """An internal invariant was broken; the operation is aborted."""


class WebhookSignatureInvalid(DomainException):
    """An inbound gateway callback failed authenticity verification."""
