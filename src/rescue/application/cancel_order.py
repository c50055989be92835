"""Application service: Cancel Order use case (customer action).

Before the outlet accepts, cancelling voids the hold (or refunds a charge
the gateway already captured) and the order ends CANCELLED.  After acceptance (PAID, not yet in preparation) the captured
funds are refunded and the order ends REFUNDED.  In both cases the
reserved quantity goes back on sale.
"""

from __future__ import annotations

import structlog

from rescue.application.caller import Caller, ensure_customer_of
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
from rescue.domain.service.inventory_ledger import InventoryLedger
from rescue.domain.unit_of_work import UnitOfWorkFactory

logger = structlog.get_logger(__name__)

DEFAULT_REASON = "cancelled by customer"


class CancelOrderHandler:

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

    def handle(self, caller: Caller, order_id: str, reason: str | None = None) -> OrderDTO:
        reason = (reason or "").strip() or DEFAULT_REASON
        now = self._clock.now()
        with self._uow_factory() as uow:
            order = lock_order(uow, order_id)
            ensure_customer_of(caller, order)

            if order.status in (OrderStatus.CREATED, OrderStatus.PENDING_ACCEPTANCE):
                payment = self._payments.return_funds(uow, order.id, reason, now)
                self._ledger.release_for_order(uow, order, now)
                order.cancel(reason, now)
            elif order.status == OrderStatus.PAID:
                payment = self._payments.refund(uow, order.id, reason, now)
                self._ledger.release_for_order(uow, order, now)
                order.refund(reason, now)
            else:
                raise InvalidStatus(
                    f"Cannot cancel order {order.order_number} in status {order.status.value}"
                )
            uow.orders.save(order)
            uow.commit()

        logger.info("Order cancelled", order_id=order.id, status=order.status.value, reason=reason)
        publish_all(
            self._publisher,
            [Notification.for_order(EventType.ORDER_CANCELLED, order, reason=reason)],
        )
        return to_order_dto(order, payment)
