"""Payment gateway port (abstract interface).

Defines the contract every gateway adapter must implement so the
orchestrator can drive pre-authorize -> capture | void -> refund without
knowing which provider sits behind it.

Adapters return a ``GatewayResult`` for answered calls (approved or
declined) and raise ``GatewayTimeout`` when the provider does not answer
within their configured bound.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from rescue.domain.model.value_objects import Money


@dataclass(frozen=True)
class GatewayResult:
    """Outcome of a gateway call that received an answer."""

    success: bool
    transaction_id: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def pre_authorize(
        self,
        amount: Money,
        payment_method: str,
        idempotency_key: str,
    ) -> GatewayResult:
        """Place a hold for ``amount`` on the customer's payment method."""

    @abstractmethod
    def capture(self, pre_auth_transaction_id: str, amount: Money) -> GatewayResult:
        """Turn a hold into a funds transfer."""

    @abstractmethod
    def void(self, pre_auth_transaction_id: str) -> GatewayResult:
        """Release a hold without capturing it."""

    @abstractmethod
    def refund(self, capture_transaction_id: str, amount: Money, reason: str) -> GatewayResult:
        """Return captured funds."""

    @abstractmethod
    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
