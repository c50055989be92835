"""Application service: Rate Order use case (customer action)."""

from __future__ import annotations

import structlog

from rescue.application.caller import Caller, ensure_customer_of
from rescue.application.clock import Clock
from rescue.application.dto import OrderDTO, to_order_dto
from rescue.application.orders import lock_order
from rescue.application.policy import OrderPolicy
from rescue.domain.unit_of_work import UnitOfWorkFactory

logger = structlog.get_logger(__name__)


class RateOrderHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory, clock: Clock, policy: OrderPolicy) -> None:
        self._uow_factory = uow_factory
        self._clock = clock
        self._policy = policy

    def handle(self, caller: Caller, order_id: str, rating: int, review: str | None = None) -> OrderDTO:
        """Record the customer's 1-5 rating.

        Only a COMPLETED order can be rated, once, within the review
        window counted from pickup.
        """
        now = self._clock.now()
        with self._uow_factory() as uow:
            order = lock_order(uow, order_id)
            ensure_customer_of(caller, order)
            order.rate(rating, review, now, self._policy.review_window)
            uow.orders.save(order)
            uow.commit()

        logger.info("Order rated", order_id=order.id, outlet_id=order.outlet_id, rating=rating)
        return to_order_dto(order)
