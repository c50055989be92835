"""In-memory transactional store with row-level locks.

``InMemoryDatabase`` holds the committed state of every table plus a
registry of per-row locks.  ``InMemoryUnitOfWork`` gives each operation
a private view: reads return deep copies, writes are staged, and
``commit()`` publishes all staged rows at once under the database's
commit mutex.  A unit of work that exits without committing leaves no
trace, which is what makes a crash between sub-steps harmless.
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Callable, Iterable
from typing import Any

import structlog

from rescue.domain.exceptions import Contention, IntegrityViolation
from rescue.domain.model.cart import Cart, CartStatus
from rescue.domain.model.offer import Offer
from rescue.domain.model.order import Order, OrderStatus
from rescue.domain.model.payment import Payment
from rescue.domain.repository.cart_repository import CartRepository
from rescue.domain.repository.offer_repository import OfferRepository
from rescue.domain.repository.order_repository import OrderRepository
from rescue.domain.repository.payment_repository import PaymentRepository
from rescue.domain.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)

TABLES = ("offers", "carts", "orders", "payments")


class RowLockRegistry:
    """One exclusive lock per (table, row id), kept only while in use.

    An entry counts the units of work holding or waiting for its lock and
    is dropped once that count reaches zero.
    """

    def __init__(self) -> None:
        self._locks: dict[tuple[str, str], list] = {}
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    def acquire(self, key: tuple[str, str], timeout: float) -> bool:
        with self._registry_lock:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        if entry[0].acquire(timeout=timeout):
            return True
        self._forget(key)
        return False

    def release(self, key: tuple[str, str]) -> None:
        with self._registry_lock:
            lock = self._locks[key][0]
        lock.release()
        self._forget(key)

    def _forget(self, key: tuple[str, str]) -> None:
        with self._registry_lock:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]


class InMemoryDatabase:
    """Committed state shared by every unit of work."""

    def __init__(self, lock_timeout: float = 2.0) -> None:
        self.lock_timeout = lock_timeout
        self.tables: dict[str, dict[str, Any]] = {name: {} for name in TABLES}
        self.row_locks = RowLockRegistry()
        self._commit_lock = threading.RLock()

    def unit_of_work(self) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(self)

    def read(self, table: str, row_id: str) -> Any | None:
        with self._commit_lock:
            row = self.tables[table].get(row_id)
            return copy.deepcopy(row)

    def scan(self, table: str) -> list[Any]:
        with self._commit_lock:
            return copy.deepcopy(list(self.tables[table].values()))

    def apply(self, staged: dict[str, dict[str, Any]]) -> None:
        """Publish staged rows atomically."""
        with self._commit_lock:
            self._check_unique(staged)
            for table, rows in staged.items():
                for row_id, row in rows.items():
                    self.tables[table][row_id] = copy.deepcopy(row)
            self.persist()

    def persist(self) -> None:
        """Hook for durable subclasses; called inside the commit mutex."""

    # --- Constraints ----------------------------------------------------------

    def _check_unique(self, staged: dict[str, dict[str, Any]]) -> None:
        self._check_unique_column(staged, "orders", lambda o: o.order_number)
        self._check_unique_column(staged, "payments", lambda p: p.idempotency_key)
        self._check_unique_column(staged, "payments", lambda p: p.order_id)

    def _check_unique_column(
        self,
        staged: dict[str, dict[str, Any]],
        table: str,
        column: Callable[[Any], str],
    ) -> None:
        rows = dict(self.tables[table])
        rows.update(staged.get(table, {}))
        seen: dict[str, str] = {}
        for row_id, row in rows.items():
            value = column(row)
            if value in seen and seen[value] != row_id:
                raise IntegrityViolation(
                    f"Duplicate value {value!r} in {table} "
                    f"(rows {seen[value]} and {row_id})"
                )
            seen[value] = row_id


class InMemoryUnitOfWork(UnitOfWork):

    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db
        self._staged: dict[str, dict[str, Any]] = {name: {} for name in TABLES}
        self._held: list[tuple[str, str]] = []
        self._committed = False
        self.offers = _OfferRepo(self)
        self.carts = _CartRepo(self)
        self.orders = _OrderRepo(self)
        self.payments = _PaymentRepo(self)

    # --- UnitOfWork interface -------------------------------------------------

    @property
    def committed(self) -> bool:
        return self._committed

    def lock_offer(self, offer_id: str) -> None:
        self._lock(("offers", offer_id))

    def lock_order(self, order_id: str) -> None:
        self._lock(("orders", order_id))

    def lock_cart(self, cart_id: str) -> None:
        self._lock(("carts", cart_id))

    def commit(self) -> None:
        self._db.apply(self._staged)
        self._committed = True

    def rollback(self) -> None:
        self._staged = {name: {} for name in TABLES}

    def release_locks(self) -> None:
        while self._held:
            self._db.row_locks.release(self._held.pop())

    # --- Row access used by the repositories ----------------------------------

    def get(self, table: str, row_id: str) -> Any | None:
        if row_id in self._staged[table]:
            return self._staged[table][row_id]
        return self._db.read(table, row_id)

    def rows(self, table: str) -> Iterable[Any]:
        merged = {row.id: row for row in self._db.scan(table)}
        merged.update(self._staged[table])
        return merged.values()

    def stage(self, table: str, row_id: str, row: Any) -> None:
        self._staged[table][row_id] = row

    # --- Internal helpers -----------------------------------------------------

    def _lock(self, key: tuple[str, str]) -> None:
        if key in self._held:
            return
        if not self._db.row_locks.acquire(key, self._db.lock_timeout):
            logger.warning(
                "Row lock wait exceeded",
                table=key[0],
                row_id=key[1],
                timeout=self._db.lock_timeout,
            )
            raise Contention(f"Could not lock {key[0]} row {key[1]}, please retry")
        self._held.append(key)


# ---------------------------------------------------------------------------
# Repositories backed by a unit of work
# ---------------------------------------------------------------------------


class _OfferRepo(OfferRepository):

    def __init__(self, uow: InMemoryUnitOfWork) -> None:
        self._uow = uow

    def get_by_id(self, offer_id: str) -> Offer | None:
        return self._uow.get("offers", offer_id)

    def list_by_outlet(self, outlet_id: str) -> list[Offer]:
        return sorted(
            (o for o in self._uow.rows("offers") if o.outlet_id == outlet_id),
            key=lambda o: o.id,
        )

    def save(self, offer: Offer) -> None:
        self._uow.stage("offers", offer.id, offer)


class _CartRepo(CartRepository):

    def __init__(self, uow: InMemoryUnitOfWork) -> None:
        self._uow = uow

    def get_by_id(self, cart_id: str) -> Cart | None:
        return self._uow.get("carts", cart_id)

    def get_active_for_customer(self, customer_id: str) -> Cart | None:
        for cart in self._uow.rows("carts"):
            if cart.customer_id == customer_id and cart.status == CartStatus.ACTIVE:
                return cart
        return None

    def get_latest_for_customer(self, customer_id: str) -> Cart | None:
        carts = [c for c in self._uow.rows("carts") if c.customer_id == customer_id]
        return max(carts, key=lambda c: c.audit.updated_at, default=None)

    def list_by_status(self, status: CartStatus) -> list[Cart]:
        return [c for c in self._uow.rows("carts") if c.status == status]

    def save(self, cart: Cart) -> None:
        self._uow.stage("carts", cart.id, cart)


class _OrderRepo(OrderRepository):

    def __init__(self, uow: InMemoryUnitOfWork) -> None:
        self._uow = uow

    def get_by_id(self, order_id: str) -> Order | None:
        return self._uow.get("orders", order_id)

    def get_by_number(self, order_number: str) -> Order | None:
        for order in self._uow.rows("orders"):
            if order.order_number == order_number:
                return order
        return None

    def pickup_code_in_use(self, pickup_code: str) -> bool:
        return any(
            o.pickup_code == pickup_code and not o.is_terminal
            for o in self._uow.rows("orders")
        )

    def list_orders(
        self,
        status: OrderStatus | None = None,
        outlet_id: str | None = None,
        customer_id: str | None = None,
    ) -> list[Order]:
        result = [
            o
            for o in self._uow.rows("orders")
            if (status is None or o.status == status)
            and (outlet_id is None or o.outlet_id == outlet_id)
            and (customer_id is None or o.customer_id == customer_id)
        ]
        return sorted(result, key=lambda o: o.audit.created_at)

    def save(self, order: Order) -> None:
        self._uow.stage("orders", order.id, order)


class _PaymentRepo(PaymentRepository):

    def __init__(self, uow: InMemoryUnitOfWork) -> None:
        self._uow = uow

    def get_by_order_id(self, order_id: str) -> Payment | None:
        return self._find(lambda p: p.order_id == order_id)

    def get_by_idempotency_key(self, key: str) -> Payment | None:
        return self._find(lambda p: p.idempotency_key == key)

    def get_by_transaction_id(self, transaction_id: str) -> Payment | None:
        return self._find(
            lambda p: transaction_id in (
                p.pre_auth_transaction_id,
                p.capture_transaction_id,
                p.refund_transaction_id,
            )
        )

    def save(self, payment: Payment) -> None:
        self._uow.stage("payments", payment.id, payment)

    def _find(self, predicate: Callable[[Payment], bool]) -> Payment | None:
        for payment in self._uow.rows("payments"):
            if predicate(payment):
                return payment
        return None
