"""Tests for the unit of work, row locks and the JSON file store."""

import json
from datetime import datetime, timezone

import pytest

from rescue.domain.exceptions import Contention, IntegrityViolation
from rescue.domain.model.offer import Offer
from rescue.domain.model.payment import Payment
from rescue.domain.model.value_objects import AuditInfo, Money
from rescue.infrastructure.bootstrap import build_container
from rescue.infrastructure.config import Settings
from rescue.infrastructure.persistence.json_database import JsonDatabase
from rescue.infrastructure.persistence.memory_database import InMemoryDatabase
from tests.fakes import FakeClock, RecordingPublisher

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def _offer(offer_id: str = "box-1", quantity: int = 3) -> Offer:
    return Offer(
        id=offer_id,
        outlet_id="outlet-1",
        name="Secret Box",
        price=Money.of("10.00"),
        quantity_available=quantity,
        audit=AuditInfo.new(NOW),
    )


def _payment(payment_id: str, order_id: str, key: str) -> Payment:
    return Payment(
        id=payment_id,
        order_id=order_id,
        amount=Money.of("11.00"),
        idempotency_key=key,
        payment_method="pm_card_visa",
        audit=AuditInfo.new(NOW),
    )


class TestUnitOfWork:

    def test_commit_publishes_staged_rows(self):
        db = InMemoryDatabase()
        with db.unit_of_work() as uow:
            uow.offers.save(_offer())
            uow.commit()
        assert db.read("offers", "box-1").quantity_available == 3

    def test_leaving_without_commit_rolls_back(self):
        db = InMemoryDatabase()
        with db.unit_of_work() as uow:
            uow.offers.save(_offer())
        assert db.read("offers", "box-1") is None

    def test_exception_rolls_back(self):
        db = InMemoryDatabase()
        with pytest.raises(RuntimeError):
            with db.unit_of_work() as uow:
                uow.offers.save(_offer())
                raise RuntimeError("crash between steps")
        assert db.read("offers", "box-1") is None

    def test_staged_rows_visible_inside_the_unit_of_work(self):
        db = InMemoryDatabase()
        with db.unit_of_work() as uow:
            uow.offers.save(_offer())
            assert uow.offers.get_by_id("box-1") is not None
            assert [o.id for o in uow.offers.list_by_outlet("outlet-1")] == ["box-1"]

    def test_reads_are_private_copies(self):
        db = InMemoryDatabase()
        with db.unit_of_work() as uow:
            uow.offers.save(_offer())
            uow.commit()
        with db.unit_of_work() as uow:
            offer = uow.offers.get_by_id("box-1")
            offer.quantity_available = 0
            uow.commit()
        assert db.read("offers", "box-1").quantity_available == 3

    def test_duplicate_idempotency_key_rejected(self):
        db = InMemoryDatabase()
        with db.unit_of_work() as uow:
            uow.payments.save(_payment("pay-1", "order-1", "preauth:order-1"))
            uow.commit()
        with db.unit_of_work() as uow:
            uow.payments.save(_payment("pay-2", "order-2", "preauth:order-1"))
            with pytest.raises(IntegrityViolation, match="Duplicate"):
                uow.commit()
        assert db.read("payments", "pay-2") is None


class TestRowLocks:

    def test_second_locker_gets_contention(self):
        db = InMemoryDatabase(lock_timeout=0.05)
        with db.unit_of_work() as first:
            first.lock_order("order-1")
            with db.unit_of_work() as second:
                with pytest.raises(Contention, match="please retry"):
                    second.lock_order("order-1")

    def test_locks_released_on_exit(self):
        db = InMemoryDatabase(lock_timeout=0.05)
        with db.unit_of_work() as first:
            first.lock_offer("box-1")
        with db.unit_of_work() as second:
            second.lock_offer("box-1")

    def test_relocking_is_a_no_op(self):
        db = InMemoryDatabase(lock_timeout=0.05)
        with db.unit_of_work() as uow:
            uow.lock_offer("box-1")
            uow.lock_offer("box-1")

    def test_different_rows_do_not_block(self):
        db = InMemoryDatabase(lock_timeout=0.05)
        with db.unit_of_work() as first:
            first.lock_offer("box-1")
            with db.unit_of_work() as second:
                second.lock_offer("box-2")

    def test_released_locks_are_forgotten(self):
        db = InMemoryDatabase(lock_timeout=0.05)
        for n in range(5):
            with db.unit_of_work() as uow:
                uow.lock_cart(f"cart-{n}")
                uow.lock_order(f"order-{n}")
                uow.lock_offer(f"box-{n}")
                assert len(db.row_locks) == 3
        assert len(db.row_locks) == 0

    def test_timed_out_waiter_leaves_no_entry(self):
        db = InMemoryDatabase(lock_timeout=0.05)
        with db.unit_of_work() as first:
            first.lock_cart("cart-1")
            with db.unit_of_work() as second:
                with pytest.raises(Contention):
                    second.lock_cart("cart-1")
            assert len(db.row_locks) == 1
        assert len(db.row_locks) == 0


class TestJsonDatabase:

    def test_creates_missing_file(self, tmp_path):
        path = tmp_path / "data" / "rescue.json"
        JsonDatabase(path)
        assert json.loads(path.read_text()) == {}

    def test_state_survives_reopen(self, tmp_path):
        path = tmp_path / "rescue.json"
        container = build_container(
            settings=Settings(data_file=path),
            clock=FakeClock(),
            publisher=RecordingPublisher(),
        )
        with container.uow_factory() as uow:
            uow.offers.save(_offer(quantity=3))
            uow.commit()
        container.carts().add_line("cust-1", "box-1", 2)
        order = container.create_order().handle("cust-1", "pm_card_visa")

        reopened = JsonDatabase(path)

        assert reopened.read("orders", order.id) == container.database.read("orders", order.id)
        assert reopened.scan("payments") == container.database.scan("payments")
        assert reopened.read("offers", "box-1").quantity_available == 1
        assert not path.with_suffix(".tmp").exists()
