"""Abstract repository for the Order aggregate.

Scope filters are explicit parameters: callers say which outlet or
customer they are asking for, nothing is filtered implicitly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from rescue.domain.model.order import Order, OrderStatus


class OrderRepository(ABC):

    @abstractmethod
    def get_by_id(self, order_id: str) -> Order | None:
        """Return an order by its ID, or None if not found."""

    @abstractmethod
    def get_by_number(self, order_number: str) -> Order | None:
        """Return an order by its human-facing number, or None."""

    @abstractmethod
    def pickup_code_in_use(self, pickup_code: str) -> bool:
        """True if a non-terminal order already carries ``pickup_code``."""

    @abstractmethod
    def list_orders(
        self,
        status: OrderStatus | None = None,
        outlet_id: str | None = None,
        customer_id: str | None = None,
    ) -> list[Order]:
        """Return orders matching every given filter."""

    @abstractmethod
    def save(self, order: Order) -> None:
        """Stage a new or updated order."""
