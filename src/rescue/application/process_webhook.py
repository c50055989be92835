"""Application service: Process Payment Webhook use case.

Gateway callbacks may arrive late, twice, or out of order.  A callback
is applied only when it moves the Payment forward along its transition
table; a repeat of the current state is a quiet no-op and anything else
is ignored and logged for reconciliation.  A callback whose amount or
currency differs from the Payment is logged and ignored.

``receive`` is the inbound endpoint: it always acknowledges the gateway
so that it stops retrying, and logs whatever went wrong internally.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog

from rescue.application.clock import Clock
from rescue.application.dto import WebhookAck, WebhookPayload
from rescue.application.notifications import (
    EventType,
    Notification,
    NotificationPublisher,
    publish_all,
)
from rescue.domain.exceptions import WebhookSignatureInvalid
from rescue.domain.gateway import PaymentGateway
from rescue.domain.model.payment import Payment, PaymentStatus
from rescue.domain.unit_of_work import UnitOfWork, UnitOfWorkFactory

logger = structlog.get_logger(__name__)

APPLIED = "applied"
DUPLICATE = "duplicate"
IGNORED = "ignored"
AMOUNT_MISMATCH = "amount_mismatch"
UNKNOWN_PAYMENT = "unknown_payment"
REJECTED = "rejected"
FAILED = "failed"

_PRE_AUTH_TARGETS = {
    "SUCCESS": PaymentStatus.AUTHORIZED,
    "FAILED": PaymentStatus.FAILED,
    "CANCELLED": PaymentStatus.VOIDED,
}
_CAPTURE_TARGETS = {
    "SUCCESS": PaymentStatus.CAPTURED,
    "FAILED": PaymentStatus.FAILED,
}


class ProcessWebhookHandler:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        gateway: PaymentGateway,
        publisher: NotificationPublisher,
        clock: Clock,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._publisher = publisher
        self._clock = clock

    def receive(self, raw: dict[str, Any]) -> WebhookAck:
        try:
            outcome = self.handle(WebhookPayload.from_dict(raw))
        except WebhookSignatureInvalid:
            outcome = REJECTED
        except Exception:
            logger.exception("Webhook processing failed", transaction_id=raw.get("transactionId"))
            outcome = FAILED
        return WebhookAck(received=True, outcome=outcome)

    def handle(self, payload: WebhookPayload) -> str:
        """Apply one callback; returns what happened to it."""
        if not self._gateway.verify_webhook_signature(payload.signing_string(), payload.signature):
            logger.warning(
                "Webhook signature rejected",
                security_event=True,
                transaction_id=payload.transaction_id,
                order_reference=payload.order_reference,
            )
            raise WebhookSignatureInvalid("Webhook signature verification failed")

        now = self._clock.now()
        with self._uow_factory() as uow:
            payment = self._find_payment(uow, payload)
            if payment is None:
                logger.warning(
                    "Webhook for unknown payment",
                    transaction_id=payload.transaction_id,
                    idempotency_key=payload.idempotency_key,
                )
                return UNKNOWN_PAYMENT

            uow.lock_order(payment.order_id)
            payment = uow.payments.get_by_order_id(payment.order_id)
            if payment is None:
                return UNKNOWN_PAYMENT
            if not self._matches_payment(payment, payload):
                logger.warning(
                    "Webhook amount does not match payment, ignored",
                    order_id=payment.order_id,
                    transaction_id=payload.transaction_id,
                    reported_amount=payload.amount,
                    reported_currency=payload.currency,
                    expected=str(payment.amount),
                )
                return AMOUNT_MISMATCH
            target = self._target_status(payment, payload)
            if target is None:
                logger.info("Webhook carries no state change", transaction_id=payload.transaction_id, status=payload.normalized_status)
                return IGNORED
            if payment.status == target:
                logger.info("Duplicate webhook", transaction_id=payload.transaction_id, status=target.value)
                return DUPLICATE
            if not payment.status.can_transition_to(target):
                logger.warning(
                    "Webhook transition ignored, needs reconciliation",
                    order_id=payment.order_id,
                    current=payment.status.value,
                    reported=target.value,
                    transaction_id=payload.transaction_id,
                )
                return IGNORED

            self._apply(payment, target, payload, now)
            uow.payments.save(payment)
            order = uow.orders.get_by_id(payment.order_id)
            uow.commit()

        logger.info("Webhook applied", order_id=payment.order_id, status=payment.status.value)
        if order is not None:
            event_type = (
                EventType.PAYMENT_FAILED if target == PaymentStatus.FAILED else EventType.PAYMENT_SUCCEEDED
            )
            publish_all(
                self._publisher,
                [Notification.for_order(event_type, order, payment_status=target.value)],
            )
        return APPLIED

    # --- Internal helpers -----------------------------------------------------

    @staticmethod
    def _find_payment(uow: UnitOfWork, payload: WebhookPayload) -> Payment | None:
        payment = None
        if payload.idempotency_key:
            payment = uow.payments.get_by_idempotency_key(payload.idempotency_key)
        if payment is None:
            payment = uow.payments.get_by_transaction_id(payload.transaction_id)
        return payment

    @staticmethod
    def _matches_payment(payment: Payment, payload: WebhookPayload) -> bool:
        try:
            amount = Decimal(payload.amount)
        except InvalidOperation:
            return False
        return amount == payment.amount.amount and payload.currency.strip().upper() == payment.currency

    @staticmethod
    def _target_status(payment: Payment, payload: WebhookPayload) -> PaymentStatus | None:
        """The Payment status this callback reports, or None."""
        txn = payload.transaction_id
        if txn == payment.capture_transaction_id:
            return _CAPTURE_TARGETS.get(payload.normalized_status)
        if txn == payment.pre_auth_transaction_id or payment.status == PaymentStatus.PENDING:
            return _PRE_AUTH_TARGETS.get(payload.normalized_status)
        # A transaction we have not seen on an authorized payment is its capture.
        return _CAPTURE_TARGETS.get(payload.normalized_status)

    @staticmethod
    def _apply(payment: Payment, target: PaymentStatus, payload: WebhookPayload, now: datetime) -> None:
        if target == PaymentStatus.AUTHORIZED:
            payment.mark_authorized(payload.transaction_id, now)
        elif target == PaymentStatus.CAPTURED:
            payment.mark_captured(payload.transaction_id, now)
        elif target == PaymentStatus.VOIDED:
            payment.mark_voided(now)
        else:
            payment.mark_failed(f"gateway reported {payload.normalized_status.lower()}", now)
