"""Application service: Create Order use case.

Turns the customer's active cart into an order in one unit of work:

1. Lock the cart, then its offers (ascending id), and re-validate the cart.
2. Build the order with price snapshots and totals.
3. Reserve every line through the Inventory Ledger (all-or-nothing).
4. Pre-authorize the total.

If pre-authorization fails, the reservations are returned, the order is
kept as CANCELLED next to its FAILED payment, and PaymentFailed is
raised after the commit.
"""

from __future__ import annotations

import structlog

from rescue.application.carts import lock_active_cart
from rescue.application.clock import Clock
from rescue.application.dto import OrderDTO, to_order_dto
from rescue.application.identifiers import IdentifierGenerator
from rescue.application.notifications import (
    EventType,
    Notification,
    NotificationPublisher,
    publish_all,
)
from rescue.application.payment_orchestrator import PaymentOrchestrator
from rescue.application.policy import OrderPolicy
from rescue.domain.exceptions import CartExpired, EmptyCart, PaymentFailed
from rescue.domain.model.cart import CartStatus
from rescue.domain.model.order import Order
from rescue.domain.model.payment import PaymentStatus
from rescue.domain.service.inventory_ledger import InventoryLedger
from rescue.domain.unit_of_work import UnitOfWork, UnitOfWorkFactory

logger = structlog.get_logger(__name__)


class CreateOrderHandler:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        ledger: InventoryLedger,
        payments: PaymentOrchestrator,
        publisher: NotificationPublisher,
        clock: Clock,
        policy: OrderPolicy,
        identifiers: IdentifierGenerator,
    ) -> None:
        self._uow_factory = uow_factory
        self._ledger = ledger
        self._payments = payments
        self._publisher = publisher
        self._clock = clock
        self._policy = policy
        self._identifiers = identifiers

    def handle(self, customer_id: str, payment_method: str) -> OrderDTO:
        now = self._clock.now()
        with self._uow_factory() as uow:
            cart = lock_active_cart(uow, customer_id)
            if cart is None:
                latest = uow.carts.get_latest_for_customer(customer_id)
                if latest is not None and latest.status == CartStatus.EXPIRED:
                    raise CartExpired("Cart has expired, please add your items again")
                raise EmptyCart("Cart is empty")
            if not cart.lines:
                raise EmptyCart("Cart is empty")

            offer_ids = sorted({line.offer_id for line in cart.lines})
            for offer_id in offer_ids:
                uow.lock_offer(offer_id)
            offers = {}
            for offer_id in offer_ids:
                offer = uow.offers.get_by_id(offer_id)
                if offer is not None:
                    offers[offer_id] = offer
            snapshot = cart.checkout(offers, now, self._policy.cart_ttl)

            order = Order.create(
                order_id=self._identifiers.new_id(),
                order_number=self._unique_order_number(uow),
                pickup_code=self._unique_pickup_code(uow),
                snapshot=snapshot,
                service_fee_rate=self._policy.service_fee_rate,
                now=now,
            )
            self._ledger.reserve_all(uow, order.lines)
            uow.orders.save(order)

            payment = self._payments.pre_authorize(uow, order, payment_method, now)
            if payment.status != PaymentStatus.AUTHORIZED:
                self._ledger.release_for_order(uow, order, now)
                order.cancel(f"payment authorization failed: {payment.failure_reason}", now)
                uow.orders.save(order)
                uow.commit()
            else:
                order.submit(now, self._policy.acceptance_window)
                cart.mark_converted(now)
                uow.orders.save(order)
                uow.carts.save(cart)
                uow.commit()

        if payment.status != PaymentStatus.AUTHORIZED:
            logger.info(
                "Order cancelled, pre-authorization failed",
                order_id=order.id,
                reason=payment.failure_reason,
            )
            publish_all(
                self._publisher,
                [Notification.for_order(EventType.PAYMENT_FAILED, order, reason=payment.failure_reason)],
            )
            raise PaymentFailed(f"Payment authorization failed: {payment.failure_reason}")

        logger.info(
            "Order created",
            order_id=order.id,
            order_number=order.order_number,
            outlet_id=order.outlet_id,
            total=str(order.total),
            adjustments=len(snapshot.adjustments),
        )
        publish_all(
            self._publisher,
            [
                Notification.for_order(EventType.ORDER_CREATED, order, total=str(order.total)),
                Notification.for_order(EventType.PAYMENT_SUCCEEDED, order, stage="pre_authorization"),
            ],
        )
        return to_order_dto(order, payment, snapshot.adjustments)

    # --- Identifiers ----------------------------------------------------------

    def _unique_order_number(self, uow: UnitOfWork) -> str:
        number = self._identifiers.order_number()
        while uow.orders.get_by_number(number) is not None:
            number = self._identifiers.order_number()
        return number

    def _unique_pickup_code(self, uow: UnitOfWork) -> str:
        code = self._identifiers.pickup_code()
        while uow.orders.pickup_code_in_use(code):
            code = self._identifiers.pickup_code()
        return code
