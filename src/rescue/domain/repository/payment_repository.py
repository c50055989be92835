"""Abstract repository for the Payment aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod

from rescue.domain.model.payment import Payment


class PaymentRepository(ABC):

    @abstractmethod
    def get_by_order_id(self, order_id: str) -> Payment | None:
        """Return the payment belonging to an order, or None."""

    @abstractmethod
    def get_by_idempotency_key(self, key: str) -> Payment | None:
        """Return the payment created for ``key``, or None."""

    @abstractmethod
    def get_by_transaction_id(self, transaction_id: str) -> Payment | None:
        """Return the payment whose pre-auth, capture or refund id matches."""

    @abstractmethod
    def save(self, payment: Payment) -> None:
        """Stage a new or updated payment."""
