"""Integration tests for the outlet and customer order actions.

Accept, decline, cancel, fulfilment, pickup and rating, run end to end
through the composition root against the in-memory database.
"""

import pytest

from rescue.application.caller import Caller
from rescue.application.notifications import EventType
from rescue.domain.exceptions import (
    AccessDenied,
    EntityNotFoundError,
    InvalidPickupCode,
    InvalidStatus,
    PaymentFailed,
    ValidationError,
)
from rescue.domain.model.order import OrderStatus
from rescue.domain.model.payment import PaymentStatus
from tests.fakes import FailingPublisher, make_world

OUTLET = Caller.outlet("outlet-1")
CUSTOMER = Caller.customer("cust-1")


def _capture_by_webhook(world, order_id):
    payment = world.payment(order_id)
    world.container.process_webhook().receive(
        world.signed_webhook(transactionId="cap_early", status="SUCCESS", idempotencyKey=payment.idempotency_key)
    )
    assert world.payment(order_id).status == PaymentStatus.CAPTURED


class TestHappyPath:

    def test_order_from_checkout_to_rating(self):
        world = make_world(pickup_codes=["ABC123"])
        world.add_offer(quantity=3)
        order_id = world.place_order().id
        assert world.available() == 2

        accepted = world.container.accept_order().handle(OUTLET, order_id)
        assert accepted.status == "PAID"
        assert accepted.payment.status == "CAPTURED"

        fulfil = world.container.fulfill_order()
        fulfil.mark_preparing(OUTLET, order_id)
        ready = fulfil.mark_ready(OUTLET, order_id)
        assert ready.status == "READY_FOR_PICKUP"
        assert ready.pickup_deadline == "2026-03-02 13:00:00 UTC"

        picked_up = fulfil.verify_pickup(OUTLET, order_id, "abc123")
        assert picked_up.status == "PICKED_UP"

        with pytest.raises(InvalidStatus):
            world.container.rate_order().handle(CUSTOMER, order_id, 5)

        world.clock.advance(minutes=5)
        report = world.container.sweeper().run_once()
        assert report.completed == [order_id]

        rated = world.container.rate_order().handle(CUSTOMER, order_id, 5, "great value")
        assert rated.status == "COMPLETED"
        assert rated.rating == 5
        assert world.available() == 2
        assert world.publisher.types() == [
            EventType.ORDER_CREATED,
            EventType.PAYMENT_SUCCEEDED,
            EventType.ORDER_ACCEPTED,
            EventType.PAYMENT_SUCCEEDED,
            EventType.ORDER_READY,
            EventType.ORDER_COMPLETED,
        ]

    def test_wrong_pickup_code_leaves_order_ready(self):
        world = make_world(pickup_codes=["ABC123"])
        world.add_offer()
        order_id = world.place_order().id
        world.container.accept_order().handle(OUTLET, order_id)
        fulfil = world.container.fulfill_order()
        fulfil.mark_preparing(OUTLET, order_id)
        fulfil.mark_ready(OUTLET, order_id)

        with pytest.raises(InvalidPickupCode):
            fulfil.verify_pickup(OUTLET, order_id, "XYZ789")

        assert world.order(order_id).status == OrderStatus.READY_FOR_PICKUP

    def test_order_can_be_found_by_number(self):
        world = make_world()
        world.add_offer()
        dto = world.place_order()

        shown = world.container.show_order().handle(CUSTOMER, dto.order_number)

        assert shown.id == dto.id

    def test_unknown_order(self):
        world = make_world()
        with pytest.raises(EntityNotFoundError):
            world.container.accept_order().handle(OUTLET, "missing")


class TestDecline:

    def test_decline_voids_and_restores(self):
        world = make_world()
        world.add_offer(quantity=3)
        order_id = world.place_order().id

        dto = world.container.decline_order().handle(OUTLET, order_id, "kitchen closed")

        assert dto.status == "DECLINED"
        assert dto.decline_reason == "kitchen closed"
        assert world.payment(order_id).status == PaymentStatus.VOIDED
        assert world.available() == 3

    def test_decline_refunds_webhook_capture(self):
        world = make_world()
        world.add_offer(quantity=3)
        order_id = world.place_order().id
        _capture_by_webhook(world, order_id)

        dto = world.container.decline_order().handle(OUTLET, order_id, "kitchen closed")

        assert dto.status == "DECLINED"
        assert world.payment(order_id).status == PaymentStatus.REFUNDED
        assert world.available() == 3

    def test_reason_required(self):
        world = make_world()
        world.add_offer()
        order_id = world.place_order().id

        with pytest.raises(ValidationError, match="reason"):
            world.container.decline_order().handle(OUTLET, order_id, "  ")

    def test_cannot_decline_after_accepting(self):
        world = make_world()
        world.add_offer()
        order_id = world.place_order().id
        world.container.accept_order().handle(OUTLET, order_id)

        with pytest.raises(InvalidStatus):
            world.container.decline_order().handle(OUTLET, order_id, "changed my mind")
        assert world.payment(order_id).status == PaymentStatus.CAPTURED

    def test_capture_failure_declines_order(self):
        world = make_world()
        world.add_offer(quantity=3)
        order_id = world.place_order().id
        world.gateway.set_mode("capture", "decline")

        dto = world.container.accept_order().handle(OUTLET, order_id)

        assert dto.status == "DECLINED"
        assert dto.decline_reason.startswith("payment capture failed")
        assert world.payment(order_id).status == PaymentStatus.VOIDED
        assert world.available() == 3
        assert world.publisher.types()[-2:] == [EventType.PAYMENT_FAILED, EventType.ORDER_DECLINED]

    def test_capture_timeout_declines_order(self):
        world = make_world()
        world.add_offer(quantity=3)
        order_id = world.place_order().id
        world.gateway.set_mode("capture", "timeout")

        dto = world.container.accept_order().handle(OUTLET, order_id)

        assert dto.status == "DECLINED"
        assert world.available() == 3

    def test_accepting_twice_is_rejected(self):
        world = make_world()
        world.add_offer()
        order_id = world.place_order().id
        world.container.accept_order().handle(OUTLET, order_id)

        with pytest.raises(InvalidStatus):
            world.container.accept_order().handle(OUTLET, order_id)
        captures = [call for call in world.gateway.calls if call[0] == "capture"]
        assert len(captures) == 1


class TestCancel:

    def test_cancel_pending_order_voids_hold(self):
        world = make_world()
        world.add_offer(quantity=3)
        order_id = world.place_order().id

        dto = world.container.cancel_order().handle(CUSTOMER, order_id)

        assert dto.status == "CANCELLED"
        assert dto.cancellation_reason == "cancelled by customer"
        assert world.payment(order_id).status == PaymentStatus.VOIDED
        assert world.available() == 3
        assert world.publisher.types()[-1] == EventType.ORDER_CANCELLED

    def test_cancel_refunds_webhook_capture(self):
        world = make_world()
        world.add_offer(quantity=3)
        order_id = world.place_order().id
        _capture_by_webhook(world, order_id)

        dto = world.container.cancel_order().handle(CUSTOMER, order_id)

        assert dto.status == "CANCELLED"
        assert world.payment(order_id).status == PaymentStatus.REFUNDED
        assert world.available() == 3

    def test_cancel_paid_order_refunds(self):
        world = make_world()
        world.add_offer(quantity=3)
        order_id = world.place_order().id
        world.container.accept_order().handle(OUTLET, order_id)

        dto = world.container.cancel_order().handle(CUSTOMER, order_id, "plans changed")

        assert dto.status == "REFUNDED"
        assert world.payment(order_id).status == PaymentStatus.REFUNDED
        assert world.available() == 3

    def test_cannot_cancel_once_preparing(self):
        world = make_world()
        world.add_offer()
        order_id = world.place_order().id
        world.container.accept_order().handle(OUTLET, order_id)
        world.container.fulfill_order().mark_preparing(OUTLET, order_id)

        with pytest.raises(InvalidStatus):
            world.container.cancel_order().handle(CUSTOMER, order_id)

    def test_failed_refund_changes_nothing(self):
        world = make_world()
        world.add_offer(quantity=3)
        order_id = world.place_order().id
        world.container.accept_order().handle(OUTLET, order_id)
        world.gateway.set_mode("refund", "decline")

        with pytest.raises(PaymentFailed, match="Refund failed"):
            world.container.cancel_order().handle(CUSTOMER, order_id)

        assert world.order(order_id).status == OrderStatus.PAID
        assert world.payment(order_id).status == PaymentStatus.CAPTURED
        assert world.available() == 2


class TestAccess:

    def test_other_outlet_cannot_accept(self):
        world = make_world()
        world.add_offer()
        order_id = world.place_order().id

        with pytest.raises(AccessDenied):
            world.container.accept_order().handle(Caller.outlet("outlet-2"), order_id)
        assert world.order(order_id).status == OrderStatus.PENDING_ACCEPTANCE

    def test_customer_cannot_accept(self):
        world = make_world()
        world.add_offer()
        order_id = world.place_order().id

        with pytest.raises(AccessDenied):
            world.container.accept_order().handle(CUSTOMER, order_id)

    def test_other_customer_cannot_cancel_or_view(self):
        world = make_world()
        world.add_offer()
        order_id = world.place_order().id
        stranger = Caller.customer("cust-2")

        with pytest.raises(AccessDenied):
            world.container.cancel_order().handle(stranger, order_id)
        with pytest.raises(AccessDenied):
            world.container.show_order().handle(stranger, order_id)

    def test_list_is_scoped_to_caller(self):
        world = make_world()
        world.add_offer(quantity=5)
        world.add_offer(offer_id="box-2", outlet_id="outlet-2", quantity=5)
        world.place_order(customer_id="cust-1")
        world.place_order(customer_id="cust-2")
        world.place_order(customer_id="cust-2", offer_id="box-2")

        assert len(world.container.list_orders().handle(CUSTOMER)) == 1
        assert len(world.container.list_orders().handle(Caller.customer("cust-2"))) == 2
        assert len(world.container.list_orders().handle(OUTLET)) == 2
        assert len(world.container.list_orders().handle(Caller.system())) == 3


class TestNotificationFailures:

    def test_publisher_outage_does_not_block_transitions(self):
        world = make_world(publisher=FailingPublisher())
        world.add_offer(quantity=3)

        order_id = world.place_order().id
        dto = world.container.accept_order().handle(OUTLET, order_id)

        assert dto.status == "PAID"
        assert world.order(order_id).status == OrderStatus.PAID
