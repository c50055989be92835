"""Integration tests for the ExpirySweeper background job."""

import threading
import time

from rescue.application.caller import Caller
from rescue.application.expiry_sweeper import PeriodicSweeper
from rescue.application.notifications import EventType
from rescue.domain.exceptions import InvalidStatus
from rescue.domain.model.order import OrderStatus
from rescue.domain.model.payment import PaymentStatus
from tests.fakes import make_world

OUTLET = Caller.outlet("outlet-1")


def _ready_order(world):
    order_id = world.place_order().id
    world.container.accept_order().handle(OUTLET, order_id)
    fulfil = world.container.fulfill_order()
    fulfil.mark_preparing(OUTLET, order_id)
    fulfil.mark_ready(OUTLET, order_id)
    return order_id


class TestAcceptanceTimeout:

    def test_unanswered_order_expires_and_releases(self):
        world = make_world()
        world.add_offer(quantity=3)
        order_id = world.place_order().id

        world.clock.advance(seconds=300)
        report = world.container.sweeper().run_once()

        assert report.acceptance_expired == [order_id]
        order = world.order(order_id)
        assert order.status == OrderStatus.EXPIRED
        assert order.cancellation_reason == "outlet did not respond in time"
        assert world.payment(order_id).status == PaymentStatus.VOIDED
        assert world.available() == 3
        assert world.publisher.types()[-1] == EventType.ORDER_EXPIRED

    def test_not_due_before_deadline(self):
        world = make_world()
        world.add_offer()
        order_id = world.place_order().id

        world.clock.advance(seconds=299)
        report = world.container.sweeper().run_once()

        assert report.total == 0
        assert world.order(order_id).status == OrderStatus.PENDING_ACCEPTANCE

    def test_second_run_changes_nothing(self):
        world = make_world()
        world.add_offer(quantity=3)
        world.place_order()
        world.clock.advance(seconds=300)
        sweeper = world.container.sweeper()
        sweeper.run_once()

        report = sweeper.run_once()

        assert report.total == 0
        assert world.available() == 3

    def test_order_accepted_first_is_left_alone(self):
        world = make_world()
        world.add_offer()
        order_id = world.place_order().id
        world.clock.advance(seconds=300)
        world.container.accept_order().handle(OUTLET, order_id)

        report = world.container.sweeper().run_once()

        assert report.acceptance_expired == []
        assert world.order(order_id).status == OrderStatus.PAID

    def test_accept_racing_sweep_has_one_winner(self):
        world = make_world(lock_timeout=10.0)
        world.add_offer(quantity=3)
        order_id = world.place_order().id
        world.clock.advance(seconds=300)
        start = threading.Barrier(2)
        accept_errors: list[Exception] = []

        def accept():
            start.wait()
            try:
                world.container.accept_order().handle(OUTLET, order_id)
            except InvalidStatus as exc:
                accept_errors.append(exc)

        def sweep():
            start.wait()
            world.container.sweeper().run_once()

        threads = [threading.Thread(target=accept), threading.Thread(target=sweep)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        order = world.order(order_id)
        payment = world.payment(order_id)
        if order.status == OrderStatus.PAID:
            assert payment.status == PaymentStatus.CAPTURED
            assert world.available() == 2
            assert accept_errors == []
        else:
            assert order.status == OrderStatus.EXPIRED
            assert payment.status == PaymentStatus.VOIDED
            assert world.available() == 3
            assert len(accept_errors) == 1

    def test_failed_void_is_retried_next_run(self):
        world = make_world()
        world.add_offer(quantity=3)
        order_id = world.place_order().id
        world.clock.advance(seconds=300)
        world.gateway.set_mode("void", "decline")
        sweeper = world.container.sweeper()

        report = sweeper.run_once()

        assert report.failed == [order_id]
        assert world.order(order_id).status == OrderStatus.PENDING_ACCEPTANCE
        assert world.available() == 2

        world.gateway.set_mode("void", "approve")
        report = sweeper.run_once()

        assert report.acceptance_expired == [order_id]
        assert world.available() == 3


    def test_order_captured_by_webhook_is_refunded_on_expiry(self):
        world = make_world()
        world.add_offer(quantity=3)
        order_id = world.place_order().id
        payment = world.payment(order_id)
        world.container.process_webhook().receive(
            world.signed_webhook(transactionId="cap_early", status="SUCCESS", idempotencyKey=payment.idempotency_key)
        )

        world.clock.advance(minutes=10)
        report = world.container.sweeper().run_once()

        assert report.acceptance_expired == [order_id]
        assert report.failed == []
        assert world.order(order_id).status == OrderStatus.EXPIRED
        assert world.payment(order_id).status == PaymentStatus.REFUNDED
        assert world.available() == 3

    def test_rejected_refund_is_reported_as_failed(self):
        world = make_world()
        world.add_offer(quantity=3)
        order_id = world.place_order().id
        payment = world.payment(order_id)
        world.container.process_webhook().receive(
            world.signed_webhook(transactionId="cap_early", status="SUCCESS", idempotencyKey=payment.idempotency_key)
        )
        world.gateway.set_mode("refund", "decline")

        world.clock.advance(minutes=10)
        report = world.container.sweeper().run_once()

        assert report.failed == [order_id]
        assert world.order(order_id).status == OrderStatus.PENDING_ACCEPTANCE
        assert world.payment(order_id).status == PaymentStatus.CAPTURED
        assert world.available() == 2

class TestPickupTimeout:

    def test_uncollected_order_is_flagged_not_refunded(self):
        world = make_world()
        world.add_offer(quantity=3)
        order_id = _ready_order(world)

        world.clock.advance(minutes=60)
        report = world.container.sweeper().run_once()

        assert report.pickup_expired == [order_id]
        order = world.order(order_id)
        assert order.status == OrderStatus.EXPIRED
        assert order.refund_review_required is True
        assert world.payment(order_id).status == PaymentStatus.CAPTURED
        assert world.available() == 2

    def test_pickup_before_deadline(self):
        world = make_world()
        world.add_offer()
        order_id = _ready_order(world)

        world.clock.advance(minutes=59)
        report = world.container.sweeper().run_once()

        assert report.pickup_expired == []
        assert world.order(order_id).status == OrderStatus.READY_FOR_PICKUP


class TestCompletionTimer:

    def test_completes_five_minutes_after_pickup(self):
        world = make_world(pickup_codes=["ABC123"])
        world.add_offer()
        order_id = _ready_order(world)
        world.container.fulfill_order().verify_pickup(OUTLET, order_id, "ABC123")
        sweeper = world.container.sweeper()

        world.clock.advance(minutes=4)
        assert sweeper.run_once().completed == []

        world.clock.advance(minutes=1)
        assert sweeper.run_once().completed == [order_id]
        assert world.order(order_id).status == OrderStatus.COMPLETED


class TestCartTimeout:

    def test_idle_cart_expires(self):
        world = make_world()
        world.add_offer()
        cart = world.container.carts().add_line("cust-1", "box-1", 1)

        world.clock.advance(minutes=10)
        report = world.container.sweeper().run_once()

        assert report.carts_expired == [cart.id]
        assert world.container.carts().show("cust-1") is None

    def test_recently_touched_cart_survives(self):
        world = make_world()
        world.add_offer(quantity=5)
        carts = world.container.carts()
        carts.add_line("cust-1", "box-1", 1)
        world.clock.advance(minutes=6)
        carts.update_quantity("cust-1", "box-1", 2)

        world.clock.advance(minutes=6)
        report = world.container.sweeper().run_once()

        assert report.carts_expired == []


class TestPeriodicSweeper:

    def test_runs_in_background_until_stopped(self):
        world = make_world()
        world.add_offer(quantity=3)
        order_id = world.place_order().id
        world.clock.advance(seconds=300)
        periodic = PeriodicSweeper(world.container.sweeper(), interval_seconds=0.01)

        periodic.start()
        try:
            deadline = time.monotonic() + 5
            while world.order(order_id).status != OrderStatus.EXPIRED and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            periodic.stop(timeout=2)

        assert world.order(order_id).status == OrderStatus.EXPIRED
        assert periodic.wait(0) is True
