"""Application service: Fulfill Order use cases (outlet actions).

Moves a paid order through preparation and hand-over:
PAID -> PREPARING -> READY_FOR_PICKUP -> PICKED_UP -> COMPLETED.
The last step normally fires from the expiry sweeper's completion timer.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

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
from rescue.application.policy import OrderPolicy
from rescue.domain.model.order import Order
from rescue.domain.unit_of_work import UnitOfWorkFactory

logger = structlog.get_logger(__name__)


class FulfillOrderHandler:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        publisher: NotificationPublisher,
        clock: Clock,
        policy: OrderPolicy,
    ) -> None:
        self._uow_factory = uow_factory
        self._publisher = publisher
        self._clock = clock
        self._policy = policy

    def mark_preparing(self, caller: Caller, order_id: str) -> OrderDTO:
        return self._apply(caller, order_id, lambda order, now: order.start_preparing(now))

    def mark_ready(self, caller: Caller, order_id: str) -> OrderDTO:
        """Start the pickup window and tell the customer to come by."""
        return self._apply(
            caller,
            order_id,
            lambda order, now: order.mark_ready(now, self._policy.pickup_window),
            EventType.ORDER_READY,
        )

    def verify_pickup(self, caller: Caller, order_id: str, pickup_code: str) -> OrderDTO:
        """Hand the order over if ``pickup_code`` matches (case-insensitive).

        A wrong code raises InvalidPickupCode and leaves the order as is.
        """
        return self._apply(caller, order_id, lambda order, now: order.verify_pickup(pickup_code, now))

    def complete(self, caller: Caller, order_id: str) -> OrderDTO:
        return self._apply(
            caller,
            order_id,
            lambda order, now: order.complete(now),
            EventType.ORDER_COMPLETED,
        )

    def _apply(
        self,
        caller: Caller,
        order_id: str,
        step: Callable[[Order, datetime], None],
        event_type: EventType | None = None,
    ) -> OrderDTO:
        now = self._clock.now()
        with self._uow_factory() as uow:
            order = lock_order(uow, order_id)
            ensure_outlet_of(caller, order)
            step(order, now)
            uow.orders.save(order)
            uow.commit()
            payment = uow.payments.get_by_order_id(order.id)

        logger.info("Order status changed", order_id=order.id, status=order.status.value)
        if event_type is not None:
            publish_all(self._publisher, [Notification.for_order(event_type, order)])
        return to_order_dto(order, payment)
