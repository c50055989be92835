"""Application service: Decline Order use case (outlet action)."""

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
from rescue.domain.exceptions import InvalidStatus, ValidationError
from rescue.domain.model.order import OrderStatus
from rescue.domain.service.inventory_ledger import InventoryLedger
from rescue.domain.unit_of_work import UnitOfWorkFactory

logger = structlog.get_logger(__name__)


class DeclineOrderHandler:

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

    def handle(self, caller: Caller, order_id: str, reason: str) -> OrderDTO:
        if not reason or not reason.strip():
            raise ValidationError("A decline reason is required")

        now = self._clock.now()
        with self._uow_factory() as uow:
            order = lock_order(uow, order_id)
            ensure_outlet_of(caller, order)
            if order.status != OrderStatus.PENDING_ACCEPTANCE:
                raise InvalidStatus(
                    f"Cannot decline order {order.order_number} in status {order.status.value}"
                )

            payment = self._payments.return_funds(uow, order.id, reason.strip(), now)
            self._ledger.release_for_order(uow, order, now)
            order.decline(reason.strip(), now)
            uow.orders.save(order)
            uow.commit()

        logger.info("Order declined", order_id=order.id, outlet_id=order.outlet_id, reason=order.decline_reason)
        publish_all(
            self._publisher,
            [Notification.for_order(EventType.ORDER_DECLINED, order, reason=order.decline_reason)],
        )
        return to_order_dto(order, payment)
