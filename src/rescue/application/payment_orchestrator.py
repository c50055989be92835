"""Application service: Payment Orchestrator.

Drives the deferred-capture flow against the gateway port and keeps the
Payment aggregate in step with what the gateway answered.  All methods
run inside the caller's unit of work; nothing here commits.

Gateway declines are recorded on the Payment.  Timeouts on pre-auth and
capture are recorded as FAILED with a ``gateway timeout`` reason; timeouts
on void and refund propagate so the caller's unit of work rolls back and
the operation can be retried.
"""

from __future__ import annotations

from datetime import datetime

import structlog

from rescue.application.identifiers import IdentifierGenerator
from rescue.domain.exceptions import GatewayTimeout, InvalidStatus, PaymentFailed
from rescue.domain.gateway import PaymentGateway
from rescue.domain.model.order import Order
from rescue.domain.model.payment import Payment, PaymentStatus, idempotency_key_for
from rescue.domain.model.value_objects import AuditInfo
from rescue.domain.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)

GATEWAY_TIMEOUT_REASON = "gateway timeout"


class PaymentOrchestrator:

    def __init__(self, gateway: PaymentGateway, identifiers: IdentifierGenerator) -> None:
        self._gateway = gateway
        self._identifiers = identifiers

    def pre_authorize(
        self,
        uow: UnitOfWork,
        order: Order,
        payment_method: str,
        now: datetime,
    ) -> Payment:
        """Hold the order total on the customer's payment method.

        Returns the Payment in AUTHORIZED or FAILED.  A payment already
        recorded under the same idempotency key is returned unchanged.
        """
        key = idempotency_key_for(order.id)
        existing = uow.payments.get_by_idempotency_key(key)
        if existing is not None:
            logger.info("Pre-authorization replayed", order_id=order.id, status=existing.status.value)
            return existing

        payment = Payment(
            id=self._identifiers.new_id(),
            order_id=order.id,
            amount=order.total,
            idempotency_key=key,
            payment_method=payment_method,
            audit=AuditInfo.new(now),
        )
        try:
            result = self._gateway.pre_authorize(order.total, payment_method, key)
        except GatewayTimeout:
            logger.warning("Gateway timeout during pre-authorization", order_id=order.id)
            payment.mark_failed(GATEWAY_TIMEOUT_REASON, now)
        else:
            if result.success:
                payment.mark_authorized(result.transaction_id, now)  # type: ignore[arg-type]
            else:
                payment.mark_failed(result.failure_reason or "authorization declined", now)

        uow.payments.save(payment)
        logger.info(
            "Pre-authorization recorded",
            order_id=order.id,
            status=payment.status.value,
            amount=str(payment.amount),
        )
        return payment

    def capture(self, uow: UnitOfWork, order_id: str, now: datetime) -> Payment:
        """Capture an AUTHORIZED payment.  Returns it CAPTURED or FAILED.

        A payment the gateway already reported as captured is returned as is.
        """
        payment = self._require(uow, order_id)
        if payment.status == PaymentStatus.CAPTURED:
            logger.info("Payment already captured", order_id=order_id)
            return payment
        if payment.status != PaymentStatus.AUTHORIZED:
            raise InvalidStatus(
                f"Cannot capture payment in status {payment.status.value}"
            )

        try:
            result = self._gateway.capture(payment.pre_auth_transaction_id, payment.amount)  # type: ignore[arg-type]
        except GatewayTimeout:
            logger.warning("Gateway timeout during capture", order_id=order_id)
            payment.mark_failed(GATEWAY_TIMEOUT_REASON, now)
        else:
            if result.success:
                payment.mark_captured(result.transaction_id, now)  # type: ignore[arg-type]
            else:
                payment.mark_failed(result.failure_reason or "capture declined", now)

        uow.payments.save(payment)
        logger.info("Capture recorded", order_id=order_id, status=payment.status.value)
        return payment

    def void_pre_auth(self, uow: UnitOfWork, order_id: str, now: datetime) -> Payment | None:
        """Release the hold on the customer's funds.

        A payment that is already VOIDED, or that never obtained a
        pre-authorization, is left alone.
        """
        payment = uow.payments.get_by_order_id(order_id)
        if payment is None or payment.status == PaymentStatus.VOIDED:
            return payment
        if not payment.holds_funds:
            if payment.status in (PaymentStatus.CAPTURED, PaymentStatus.REFUNDED):
                raise InvalidStatus(
                    f"Cannot void payment in status {payment.status.value}"
                )
            return payment

        result = self._gateway.void(payment.pre_auth_transaction_id)  # type: ignore[arg-type]
        if not result.success:
            logger.error(
                "Void rejected by gateway",
                order_id=order_id,
                reason=result.failure_reason,
            )
            raise PaymentFailed(f"Void failed: {result.failure_reason or 'unknown reason'}")

        payment.mark_voided(now)
        uow.payments.save(payment)
        logger.info("Pre-authorization voided", order_id=order_id)
        return payment

    def refund(self, uow: UnitOfWork, order_id: str, reason: str, now: datetime) -> Payment:
        payment = self._require(uow, order_id)
        if payment.status != PaymentStatus.CAPTURED:
            raise InvalidStatus(
                f"Cannot refund payment in status {payment.status.value}"
            )

        result = self._gateway.refund(
            payment.capture_transaction_id, payment.amount, reason  # type: ignore[arg-type]
        )
        if not result.success:
            logger.error("Refund rejected by gateway", order_id=order_id, reason=result.failure_reason)
            raise PaymentFailed(f"Refund failed: {result.failure_reason or 'unknown reason'}")

        payment.mark_refunded(result.transaction_id, now)
        uow.payments.save(payment)
        logger.info("Payment refunded", order_id=order_id, amount=str(payment.amount))
        return payment

    def return_funds(self, uow: UnitOfWork, order_id: str, reason: str, now: datetime) -> Payment | None:
        """Give the customer's money back for an order that will not be served.

        Voids the hold, or refunds the charge when the gateway already
        captured it through a webhook.
        """
        payment = uow.payments.get_by_order_id(order_id)
        if payment is not None and payment.status == PaymentStatus.CAPTURED:
            logger.warning("Payment captured before acceptance, refunding", order_id=order_id)
            return self.refund(uow, order_id, reason, now)
        return self.void_pre_auth(uow, order_id, now)

    @staticmethod
    def _require(uow: UnitOfWork, order_id: str) -> Payment:
        payment = uow.payments.get_by_order_id(order_id)
        if payment is None:
            raise InvalidStatus(f"Order {order_id} has no payment")
        return payment
