"""Application service: Accept Order use case (outlet action).

Captures the pre-authorized payment.  A successful capture moves the
order to PAID.  A failed capture is not an error for the outlet: the
hold is voided, the inventory released and the order DECLINED, and the
resulting order is returned.
"""

from __future__ import annotations

import structlog

from rescue.application.caller import Caller, ensure_outlet_of
from rescue.application.clock import Clock
from rescue.application.dto import OrderDTO, to_order_dto
from rescue.application.notifications import (
    EventType,
    Notification,
    NotificationPublisher,
    publish_all,
)
from rescue.application.orders import lock_order
from rescue.application.payment_orchestrator import PaymentOrchestrator
from rescue.domain.exceptions import InvalidStatus
from rescue.domain.model.order import OrderStatus
from rescue.domain.model.payment import PaymentStatus
from rescue.domain.service.inventory_ledger import InventoryLedger
from rescue.domain.unit_of_work import UnitOfWorkFactory

logger = structlog.get_logger(__name__)


class AcceptOrderHandler:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        ledger: InventoryLedger,
        payments: PaymentOrchestrator,
        publisher: NotificationPublisher,
        clock: Clock,
    ) -> None:
        self._uow_factory = uow_factory
        self._ledger = ledger
        self._payments = payments
        self._publisher = publisher
        self._clock = clock

    def handle(self, caller: Caller, order_id: str) -> OrderDTO:
        now = self._clock.now()
        with self._uow_factory() as uow:
            order = lock_order(uow, order_id)
            ensure_outlet_of(caller, order)
            if order.status != OrderStatus.PENDING_ACCEPTANCE:
                raise InvalidStatus(
                    f"Cannot accept order {order.order_number} in status {order.status.value}"
                )

            payment = self._payments.capture(uow, order.id, now)
            if payment.status == PaymentStatus.CAPTURED:
                order.accept(now)
                notifications = [
                    Notification.for_order(EventType.ORDER_ACCEPTED, order),
                    Notification.for_order(EventType.PAYMENT_SUCCEEDED, order, stage="capture"),
                ]
            else:
                reason = f"payment capture failed: {payment.failure_reason}"
                payment = self._payments.void_pre_auth(uow, order.id, now) or payment
                self._ledger.release_for_order(uow, order, now)
                order.decline(reason, now)
                notifications = [
                    Notification.for_order(EventType.PAYMENT_FAILED, order, reason=payment.failure_reason),
                    Notification.for_order(EventType.ORDER_DECLINED, order, reason=reason),
                ]
            uow.orders.save(order)
            uow.commit()

        logger.info(
            "Order decision recorded",
            order_id=order.id,
            outlet_id=order.outlet_id,
            status=order.status.value,
            payment_status=payment.status.value,
        )
        publish_all(self._publisher, notifications)
        return to_order_dto(order, payment)
