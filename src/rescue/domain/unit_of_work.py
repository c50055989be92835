"""Unit of work — the single atomicity boundary for state changes.

Every state-changing operation runs as::

    with uow_factory() as uow:
        uow.lock_order(order_id)
        order = uow.orders.get_by_id(order_id)
        ...
        uow.commit()

Writes staged through the repositories become visible only on
``commit()``.  Leaving the block without committing (including by an
exception) rolls everything back.  Row locks taken with ``lock_offer`` /
``lock_order`` / ``lock_cart`` are held until the block exits.

Lock order: cart, then order, then offers in ascending id order.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from types import TracebackType

from rescue.domain.repository.cart_repository import CartRepository
from rescue.domain.repository.offer_repository import OfferRepository
from rescue.domain.repository.order_repository import OrderRepository
from rescue.domain.repository.payment_repository import PaymentRepository


class UnitOfWork(ABC):

    offers: OfferRepository
    carts: CartRepository
    orders: OrderRepository
    payments: PaymentRepository

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            if not self.committed:
                self.rollback()
        finally:
            self.release_locks()

    @property
    @abstractmethod
    def committed(self) -> bool:
        """True once ``commit()`` has succeeded."""

    @abstractmethod
    def lock_offer(self, offer_id: str) -> None:
        """Take the offer's exclusive row lock, waiting a bounded time.

        Raises Contention if the lock cannot be acquired in time.
        Re-locking a row this unit of work already holds is a no-op.
        """

    @abstractmethod
    def lock_order(self, order_id: str) -> None:
        """Take the order's exclusive row lock, waiting a bounded time."""

    @abstractmethod
    def lock_cart(self, cart_id: str) -> None:
        """Take the cart's exclusive row lock, waiting a bounded time."""

    @abstractmethod
    def commit(self) -> None:
        """Atomically publish every staged write."""

    @abstractmethod
    def rollback(self) -> None:
        """Discard every staged write."""

    @abstractmethod
    def release_locks(self) -> None:
        """Release every row lock held by this unit of work."""


UnitOfWorkFactory = Callable[[], UnitOfWork]
