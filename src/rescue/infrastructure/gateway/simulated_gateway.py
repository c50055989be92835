"""In-process payment gateway.

Approves everything by default.  Individual operations can be switched
to decline or to time out, which is how the CLI demo and the tests
exercise the failure paths.  Webhooks are signed with HMAC-SHA256 over
the payload's signing string.
"""

from __future__ import annotations

import hashlib
import hmac
import threading
import uuid

import structlog

from rescue.domain.exceptions import GatewayTimeout
from rescue.domain.gateway import GatewayResult, PaymentGateway
from rescue.domain.model.value_objects import Money

logger = structlog.get_logger(__name__)

APPROVE = "approve"
DECLINE = "decline"
TIMEOUT = "timeout"


class SimulatedGateway(PaymentGateway):

    def __init__(self, webhook_secret: str) -> None:
        self._secret = webhook_secret.encode("utf-8")
        self._modes: dict[str, str] = {}
        self._lock = threading.Lock()
        self.calls: list[tuple[str, str]] = []

    def set_mode(self, operation: str, mode: str) -> None:
        """Make ``operation`` (pre_authorize, capture, void, refund) approve, decline or time out."""
        self._modes[operation] = mode

    # --- PaymentGateway -------------------------------------------------------

    def pre_authorize(self, amount: Money, payment_method: str, idempotency_key: str) -> GatewayResult:
        return self._answer("pre_authorize", idempotency_key, "auth")

    def capture(self, pre_auth_transaction_id: str, amount: Money) -> GatewayResult:
        return self._answer("capture", pre_auth_transaction_id, "cap")

    def void(self, pre_auth_transaction_id: str) -> GatewayResult:
        return self._answer("void", pre_auth_transaction_id, "void")

    def refund(self, capture_transaction_id: str, amount: Money, reason: str) -> GatewayResult:
        return self._answer("refund", capture_transaction_id, "ref")

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        return hmac.compare_digest(self.sign(payload), signature or "")

    def sign(self, payload: str) -> str:
        return hmac.new(self._secret, payload.encode("utf-8"), hashlib.sha256).hexdigest()

    # --- Internal helpers -----------------------------------------------------

    def _answer(self, operation: str, reference: str, prefix: str) -> GatewayResult:
        with self._lock:
            self.calls.append((operation, reference))
        mode = self._modes.get(operation, APPROVE)
        if mode == TIMEOUT:
            logger.warning("Simulated gateway timeout", operation=operation, reference=reference)
            raise GatewayTimeout(f"Gateway did not answer {operation} in time")
        if mode == DECLINE:
            return GatewayResult(success=False, failure_reason=f"{operation} declined")
        return GatewayResult(success=True, transaction_id=f"{prefix}_{uuid.uuid4().hex[:12]}")
