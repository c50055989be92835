"""Abstract repository for the Cart aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod

from rescue.domain.model.cart import Cart, CartStatus


class CartRepository(ABC):

    @abstractmethod
    def get_by_id(self, cart_id: str) -> Cart | None:
        """Return a cart by its ID, or None."""

    @abstractmethod
    def get_active_for_customer(self, customer_id: str) -> Cart | None:
        """Return the customer's ACTIVE cart, or None."""

    @abstractmethod
    def get_latest_for_customer(self, customer_id: str) -> Cart | None:
        """Return the customer's most recently changed cart in any status."""

    @abstractmethod
    def list_by_status(self, status: CartStatus) -> list[Cart]:
        """Return every cart in ``status``."""

    @abstractmethod
    def save(self, cart: Cart) -> None:
        """Stage a new or updated cart."""
