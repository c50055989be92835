"""Application service: Expiry Sweeper.

Background housekeeping run on a fixed interval:

- acceptance timeout: PENDING_ACCEPTANCE orders past their deadline are
  EXPIRED, their money returned and their quantity put back on sale;
- pickup timeout: READY_FOR_PICKUP orders past their pickup deadline are
  EXPIRED and flagged for refund review (payment left as is);
- completion timer: PICKED_UP orders are COMPLETED after a short delay;
- cart TTL: idle ACTIVE carts are EXPIRED.

Each order and each cart is handled in its own unit of work under its
row lock.  When an outlet action or a checkout wins the lock first, the
re-read row no longer qualifies and is skipped.  Any other failure is
logged, reported as failed and picked up again on the next run.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from rescue.application.carts import lock_cart
from rescue.application.clock import Clock
from rescue.application.notifications import (
    EventType,
    Notification,
    NotificationPublisher,
    publish_all,
)
from rescue.application.payment_orchestrator import PaymentOrchestrator
from rescue.application.policy import OrderPolicy
from rescue.domain.exceptions import DomainException
from rescue.domain.model.cart import CartStatus
from rescue.domain.model.order import Order, OrderStatus
from rescue.domain.service.inventory_ledger import InventoryLedger
from rescue.domain.unit_of_work import UnitOfWork, UnitOfWorkFactory

logger = structlog.get_logger(__name__)


@dataclass
class SweepReport:
    acceptance_expired: list[str] = field(default_factory=list)
    pickup_expired: list[str] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)
    carts_expired: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return (
            len(self.acceptance_expired)
            + len(self.pickup_expired)
            + len(self.completed)
            + len(self.carts_expired)
        )


_OrderStep = Callable[[UnitOfWork, Order, datetime], Notification]


class ExpirySweeper:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        ledger: InventoryLedger,
        payments: PaymentOrchestrator,
        publisher: NotificationPublisher,
        clock: Clock,
        policy: OrderPolicy,
    ) -> None:
        self._uow_factory = uow_factory
        self._ledger = ledger
        self._payments = payments
        self._publisher = publisher
        self._clock = clock
        self._policy = policy

    def run_once(self) -> SweepReport:
        report = SweepReport()
        now = self._clock.now()

        self._sweep_orders(
            OrderStatus.PENDING_ACCEPTANCE,
            lambda order: order.acceptance_overdue(now),
            self._expire_unaccepted,
            report.acceptance_expired,
            report,
        )
        self._sweep_orders(
            OrderStatus.READY_FOR_PICKUP,
            lambda order: order.pickup_overdue(now),
            self._expire_uncollected,
            report.pickup_expired,
            report,
        )
        self._sweep_orders(
            OrderStatus.PICKED_UP,
            lambda order: order.completion_due(now, self._policy.completion_delay),
            self._complete,
            report.completed,
            report,
        )
        self._sweep_carts(now, report)

        if report.total or report.failed:
            logger.info(
                "Sweep finished",
                acceptance_expired=len(report.acceptance_expired),
                pickup_expired=len(report.pickup_expired),
                completed=len(report.completed),
                carts_expired=len(report.carts_expired),
                failed=len(report.failed),
            )
        return report

    # --- Order sweeps ---------------------------------------------------------

    def _sweep_orders(
        self,
        status: OrderStatus,
        is_due: Callable[[Order], bool],
        step: _OrderStep,
        done: list[str],
        report: SweepReport,
    ) -> None:
        with self._uow_factory() as uow:
            candidates = [o.id for o in uow.orders.list_orders(status=status) if is_due(o)]

        for order_id in candidates:
            try:
                notification = self._process(order_id, status, is_due, step)
            except DomainException as exc:
                logger.warning("Sweep failed for order, will retry", order_id=order_id, error=str(exc))
                report.failed.append(order_id)
                continue
            if notification is None:
                continue
            done.append(order_id)
            publish_all(self._publisher, [notification])

    def _process(
        self,
        order_id: str,
        status: OrderStatus,
        is_due: Callable[[Order], bool],
        step: _OrderStep,
    ) -> Notification | None:
        now = self._clock.now()
        with self._uow_factory() as uow:
            uow.lock_order(order_id)
            order = uow.orders.get_by_id(order_id)
            if order is None or order.status != status or not is_due(order):
                return None
            notification = step(uow, order, now)
            uow.orders.save(order)
            uow.commit()
        return notification

    def _expire_unaccepted(self, uow: UnitOfWork, order: Order, now: datetime) -> Notification:
        reason = "outlet did not respond in time"
        self._payments.return_funds(uow, order.id, reason, now)
        self._ledger.release_for_order(uow, order, now)
        order.expire(reason, now)
        logger.info("Order expired awaiting acceptance", order_id=order.id, outlet_id=order.outlet_id)
        return Notification.for_order(EventType.ORDER_EXPIRED, order, reason=order.cancellation_reason)

    def _expire_uncollected(self, uow: UnitOfWork, order: Order, now: datetime) -> Notification:
        order.expire("order was not collected in time", now)
        logger.info("Order expired awaiting pickup", order_id=order.id, refund_review_required=True)
        return Notification.for_order(
            EventType.ORDER_EXPIRED,
            order,
            reason=order.cancellation_reason,
            refund_review_required=True,
        )

    def _complete(self, uow: UnitOfWork, order: Order, now: datetime) -> Notification:
        order.complete(now)
        return Notification.for_order(EventType.ORDER_COMPLETED, order)

    # --- Cart sweep -----------------------------------------------------------

    def _sweep_carts(self, now: datetime, report: SweepReport) -> None:
        ttl = self._policy.cart_ttl
        with self._uow_factory() as uow:
            candidates = [
                c.id for c in uow.carts.list_by_status(CartStatus.ACTIVE) if c.is_expired(now, ttl)
            ]

        for cart_id in candidates:
            try:
                with self._uow_factory() as uow:
                    cart = lock_cart(uow, cart_id)
                    if cart is None or not cart.is_expired(now, ttl):
                        continue
                    cart.expire(now)
                    uow.carts.save(cart)
                    uow.commit()
            except DomainException as exc:
                logger.warning("Sweep failed for cart, will retry", cart_id=cart_id, error=str(exc))
                report.failed.append(cart_id)
                continue
            report.carts_expired.append(cart_id)


class PeriodicSweeper:
    """Runs ``ExpirySweeper.run_once`` on a background thread."""

    def __init__(self, sweeper: ExpirySweeper, interval_seconds: float) -> None:
        self._sweeper = sweeper
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="expiry-sweeper", daemon=True)
        self._thread.start()
        logger.info("Expiry sweeper started", interval_seconds=self._interval)

    def wait(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds; True once the sweeper was stopped."""
        return self._stop.wait(timeout)

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        logger.info("Expiry sweeper stopped")

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self._sweeper.run_once()
            except Exception:
                logger.exception("Expiry sweep crashed, retrying next interval")
            self._stop.wait(self._interval)
