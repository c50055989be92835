"""Offer aggregate — a limited-quantity "Secret Box" sold by one outlet.

``quantity_available`` is the hot shared counter of the whole system.
It must only be changed through the Inventory Ledger, which holds the
offer's row lock for the duration of the read-modify-write.
"""

from __future__ import annotations

from dataclasses import dataclass

from rescue.domain.exceptions import OfferInactive, OutOfStock, ValidationError
from rescue.domain.model.value_objects import AuditInfo, Money


@dataclass
class Offer:
    """Aggregate root for a sellable bundle.

    Invariants:
    - ``quantity_available`` is always >= 0
    """

    id: str
    outlet_id: str
    name: str
    price: Money
    quantity_available: int
    audit: AuditInfo
    is_active: bool = True
    is_visible: bool = True

    @property
    def is_sellable(self) -> bool:
        return self.is_active and self.is_visible

    def ensure_sellable(self) -> None:
        if not self.is_sellable:
            raise OfferInactive(f"Offer '{self.name}' is no longer available")

    def decrement(self, quantity: int) -> None:
        """Take ``quantity`` units out of the sellable pool.

        Raises OutOfStock if fewer units remain.
        """
        if quantity <= 0:
            raise ValidationError("Reservation quantity must be positive")
        if quantity > self.quantity_available:
            raise OutOfStock(
                f"Insufficient quantity for {self.name} "
                f"(need {quantity}, have {self.quantity_available} available)"
            )
        self.quantity_available -= quantity

    def increment(self, quantity: int) -> None:
        """Return ``quantity`` units to the sellable pool."""
        if quantity <= 0:
            raise ValidationError("Release quantity must be positive")
        self.quantity_available += quantity
