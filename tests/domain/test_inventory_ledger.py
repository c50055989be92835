"""Tests for the InventoryLedger domain service.

Run against the in-memory database so locking and rollback are real.
"""

import threading
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from rescue.domain.exceptions import OfferInactive, OfferNotFound, OutOfStock, ValidationError
from rescue.domain.model.cart import CartLine, CartSnapshot
from rescue.domain.model.offer import Offer
from rescue.domain.model.order import Order
from rescue.domain.model.value_objects import AuditInfo, Money, Quantity
from rescue.domain.service.inventory_ledger import InventoryLedger
from rescue.infrastructure.persistence.memory_database import InMemoryDatabase

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db() -> InMemoryDatabase:
    database = InMemoryDatabase(lock_timeout=0.5)
    with database.unit_of_work() as uow:
        for offer_id, quantity in (("box-1", 3), ("box-2", 1)):
            uow.offers.save(
                Offer(
                    id=offer_id,
                    outlet_id="outlet-1",
                    name=f"Box {offer_id}",
                    price=Money.of("10.00"),
                    quantity_available=quantity,
                    audit=AuditInfo.new(NOW),
                )
            )
        uow.commit()
    return database


@pytest.fixture
def ledger() -> InventoryLedger:
    return InventoryLedger()


def _order(*lines: tuple[str, int]) -> Order:
    snapshot = CartSnapshot(
        cart_id="cart-1",
        customer_id="cust-1",
        outlet_id="outlet-1",
        lines=tuple(
            CartLine(offer_id, offer_id, Quantity(qty), Money.of("10.00"))
            for offer_id, qty in lines
        ),
    )
    return Order.create("order-1", "RQ-TEST0001", "ABC123", snapshot, Decimal("0.10"), NOW)


def _available(db: InMemoryDatabase, offer_id: str) -> int:
    return db.read("offers", offer_id).quantity_available


class TestReserve:

    def test_reserve_decrements_on_commit(self, db, ledger):
        with db.unit_of_work() as uow:
            reservation = ledger.reserve(uow, "box-1", 2)
            assert _available(db, "box-1") == 3
            uow.commit()
        assert reservation.remaining == 1
        assert _available(db, "box-1") == 1

    def test_reserve_without_commit_changes_nothing(self, db, ledger):
        with db.unit_of_work() as uow:
            ledger.reserve(uow, "box-1", 2)
        assert _available(db, "box-1") == 3

    def test_reserve_more_than_available(self, db, ledger):
        with db.unit_of_work() as uow:
            with pytest.raises(OutOfStock, match="need 4, have 3"):
                ledger.reserve(uow, "box-1", 4)

    def test_zero_quantity_rejected(self, db, ledger):
        with db.unit_of_work() as uow:
            with pytest.raises(ValidationError):
                ledger.reserve(uow, "box-1", 0)

    def test_unknown_offer(self, db, ledger):
        with db.unit_of_work() as uow:
            with pytest.raises(OfferNotFound):
                ledger.reserve(uow, "box-9", 1)

    def test_inactive_offer(self, db, ledger):
        with db.unit_of_work() as uow:
            offer = uow.offers.get_by_id("box-1")
            offer.is_active = False
            uow.offers.save(offer)
            uow.commit()
        with db.unit_of_work() as uow:
            with pytest.raises(OfferInactive):
                ledger.reserve(uow, "box-1", 1)


    def test_concurrent_reservations_never_oversell(self, ledger):
        db = InMemoryDatabase(lock_timeout=10.0)
        with db.unit_of_work() as uow:
            uow.offers.save(
                Offer(
                    id="box-7",
                    outlet_id="outlet-1",
                    name="Box box-7",
                    price=Money.of("10.00"),
                    quantity_available=7,
                    audit=AuditInfo.new(NOW),
                )
            )
            uow.commit()

        results: list[str] = []
        results_lock = threading.Lock()
        start = threading.Barrier(20)

        def reserve_one() -> None:
            start.wait()
            try:
                with db.unit_of_work() as uow:
                    ledger.reserve(uow, "box-7", 1)
                    uow.commit()
                outcome = "ok"
            except OutOfStock:
                outcome = "out_of_stock"
            with results_lock:
                results.append(outcome)

        threads = [threading.Thread(target=reserve_one) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count("ok") == 7
        assert results.count("out_of_stock") == 13
        assert _available(db, "box-7") == 0

class TestReserveAll:

    def test_all_lines_reserved(self, db, ledger):
        order = _order(("box-2", 1), ("box-1", 2))
        with db.unit_of_work() as uow:
            reservations = ledger.reserve_all(uow, order.lines)
            uow.commit()
        assert [r.offer_id for r in reservations] == ["box-1", "box-2"]
        assert _available(db, "box-1") == 1
        assert _available(db, "box-2") == 0

    def test_one_short_line_reserves_nothing(self, db, ledger):
        order = _order(("box-1", 1), ("box-2", 2))
        with db.unit_of_work() as uow:
            with pytest.raises(OutOfStock):
                ledger.reserve_all(uow, order.lines)
            uow.commit()
        assert _available(db, "box-1") == 3
        assert _available(db, "box-2") == 1


class TestRelease:

    def test_release_for_order_restores_quantity(self, db, ledger):
        order = _order(("box-1", 2))
        with db.unit_of_work() as uow:
            ledger.reserve_all(uow, order.lines)
            uow.commit()
        with db.unit_of_work() as uow:
            assert ledger.release_for_order(uow, order, NOW) is True
            uow.commit()
        assert order.inventory_released is True
        assert _available(db, "box-1") == 3

    def test_second_release_is_a_no_op(self, db, ledger):
        order = _order(("box-1", 2))
        with db.unit_of_work() as uow:
            ledger.reserve_all(uow, order.lines)
            ledger.release_for_order(uow, order, NOW)
            uow.commit()
        with db.unit_of_work() as uow:
            assert ledger.release_for_order(uow, order, NOW) is False
            uow.commit()
        assert _available(db, "box-1") == 3

    def test_restock(self, db, ledger):
        with db.unit_of_work() as uow:
            assert ledger.restock(uow, "box-2", 4) == 5
            uow.commit()
        assert _available(db, "box-2") == 5

    def test_quantity_is_conserved(self, db, ledger):
        order = _order(("box-1", 2), ("box-2", 1))
        with db.unit_of_work() as uow:
            ledger.reserve_all(uow, order.lines)
            uow.commit()
        reserved = sum(line.quantity.value for line in order.lines)
        assert _available(db, "box-1") + _available(db, "box-2") + reserved == 4
