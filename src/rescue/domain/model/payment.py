"""Payment aggregate — the money side of one order.

A Payment follows the deferred-capture flow: funds are pre-authorized
when the order is placed and only captured once the outlet accepts.
Like the order, it only moves forward through ``ALLOWED_TRANSITIONS``;
this is what stops a late gateway callback from rewinding it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from rescue.domain.exceptions import InvalidStatus
from rescue.domain.model.value_objects import AuditInfo, Money


class PaymentStatus(Enum):
    PENDING = "PENDING"
    AUTHORIZED = "AUTHORIZED"
    CAPTURED = "CAPTURED"
    VOIDED = "VOIDED"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]

    def can_transition_to(self, target: PaymentStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.AUTHORIZED, PaymentStatus.FAILED}),
    PaymentStatus.AUTHORIZED: frozenset({
        PaymentStatus.CAPTURED,
        PaymentStatus.VOIDED,
        PaymentStatus.FAILED,
    }),
    # A failed capture still holds the customer's funds until voided.
    PaymentStatus.FAILED: frozenset({PaymentStatus.VOIDED}),
    PaymentStatus.CAPTURED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.VOIDED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}


def idempotency_key_for(order_id: str) -> str:
    return f"preauth:{order_id}"


@dataclass
class Payment:
    id: str
    order_id: str
    amount: Money
    idempotency_key: str
    payment_method: str
    audit: AuditInfo
    status: PaymentStatus = PaymentStatus.PENDING

    pre_auth_transaction_id: str | None = None
    capture_transaction_id: str | None = None
    refund_transaction_id: str | None = None
    failure_reason: str | None = None

    authorized_at: datetime | None = None
    captured_at: datetime | None = None
    voided_at: datetime | None = None
    refunded_at: datetime | None = None
    failed_at: datetime | None = None

    @property
    def currency(self) -> str:
        return self.amount.currency

    @property
    def holds_funds(self) -> bool:
        """True while a pre-authorization may still be open at the gateway."""
        return self.pre_auth_transaction_id is not None and self.status in (
            PaymentStatus.AUTHORIZED,
            PaymentStatus.FAILED,
        )

    # --- State transitions ----------------------------------------------------

    def mark_authorized(self, transaction_id: str, now: datetime) -> None:
        self._transition(PaymentStatus.AUTHORIZED, now)
        self.pre_auth_transaction_id = transaction_id
        self.authorized_at = now

    def mark_captured(self, transaction_id: str, now: datetime) -> None:
        self._transition(PaymentStatus.CAPTURED, now)
        self.capture_transaction_id = transaction_id
        self.captured_at = now

    def mark_voided(self, now: datetime) -> None:
        self._transition(PaymentStatus.VOIDED, now)
        self.voided_at = now

    def mark_refunded(self, transaction_id: str | None, now: datetime) -> None:
        self._transition(PaymentStatus.REFUNDED, now)
        self.refund_transaction_id = transaction_id
        self.refunded_at = now

    def mark_failed(self, reason: str, now: datetime) -> None:
        self._transition(PaymentStatus.FAILED, now)
        self.failure_reason = reason
        self.failed_at = now

    def _transition(self, target: PaymentStatus, now: datetime) -> None:
        if not self.status.can_transition_to(target):
            raise InvalidStatus(
                f"Payment cannot move from {self.status.value} to {target.value}"
            )
        self.status = target
        self.audit = self.audit.touched(now)
