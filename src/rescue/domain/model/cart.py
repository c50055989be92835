"""Cart aggregate — a customer's pending selections for a single outlet.

Quantities are not reserved while they sit in the cart.  They are only
re-validated at checkout and reserved when the order is created.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from rescue.domain.exceptions import (
    CartExpired,
    CrossOutletCart,
    EmptyCart,
    EntityNotFoundError,
    OutOfStock,
    ValidationError,
)
from rescue.domain.model.offer import Offer
from rescue.domain.model.value_objects import AuditInfo, Money, Quantity

SOLD_OUT = "sold out"


class CartStatus(Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CONVERTED = "CONVERTED"
    ABANDONED = "ABANDONED"


@dataclass(frozen=True)
class CartLine:
    """A selected offer with the price captured when it was added."""

    offer_id: str
    offer_name: str
    quantity: Quantity
    unit_price: Money  # snapshot at add time

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity.value


@dataclass(frozen=True)
class CheckoutAdjustment:
    """One line that checkout had to remove or shrink."""

    offer_id: str
    offer_name: str
    requested: int
    granted: int  # 0 means the line was removed
    reason: str

    @property
    def removed(self) -> bool:
        return self.granted == 0


@dataclass(frozen=True)
class CartSnapshot:
    """The validated contents of a cart at checkout time."""

    cart_id: str
    customer_id: str
    outlet_id: str
    lines: tuple[CartLine, ...]
    adjustments: tuple[CheckoutAdjustment, ...] = ()

    @property
    def removed(self) -> list[CheckoutAdjustment]:
        return [a for a in self.adjustments if a.removed]

    @property
    def adjusted(self) -> list[CheckoutAdjustment]:
        return [a for a in self.adjustments if not a.removed]

    @property
    def subtotal(self) -> Money:
        result = Money.zero(self.lines[0].unit_price.currency)
        for line in self.lines:
            result = result + line.line_total
        return result


@dataclass
class Cart:
    id: str
    customer_id: str
    audit: AuditInfo
    outlet_id: str | None = None
    lines: list[CartLine] = field(default_factory=list)
    status: CartStatus = CartStatus.ACTIVE

    # --- Lifecycle ------------------------------------------------------------

    def is_expired(self, now: datetime, ttl: timedelta) -> bool:
        if self.status == CartStatus.EXPIRED:
            return True
        return self.status == CartStatus.ACTIVE and now - self.audit.updated_at >= ttl

    def expire(self, now: datetime) -> None:
        self._ensure_active()
        self.status = CartStatus.EXPIRED
        self.audit = self.audit.touched(now)

    def abandon(self, now: datetime) -> None:
        self._ensure_active()
        self.status = CartStatus.ABANDONED
        self.audit = self.audit.touched(now)

    def mark_converted(self, now: datetime) -> None:
        self._ensure_active()
        self.status = CartStatus.CONVERTED
        self.audit = self.audit.touched(now)

    # --- Mutations ------------------------------------------------------------

    def add_line(self, offer: Offer, quantity: int, now: datetime) -> None:
        """Add ``quantity`` of ``offer``, merging with an existing line."""
        self._ensure_active()
        offer.ensure_sellable()
        if self.outlet_id is not None and self.lines and offer.outlet_id != self.outlet_id:
            raise CrossOutletCart(
                "Cannot add items from different outlets. Clear the cart first."
            )

        existing = self._find_line(offer.id)
        total = quantity + (existing.quantity.value if existing else 0)
        line = CartLine(
            offer_id=offer.id,
            offer_name=offer.name,
            quantity=Quantity(total),
            unit_price=existing.unit_price if existing else offer.price,
        )
        self._replace_line(offer.id, line)
        self.outlet_id = offer.outlet_id
        self.audit = self.audit.touched(now)

    def update_quantity(self, offer_id: str, quantity: int, now: datetime) -> None:
        self._ensure_active()
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative")
        line = self._find_line(offer_id)
        if line is None:
            raise EntityNotFoundError(f"Offer '{offer_id}' is not in the cart")
        if quantity == 0:
            self.remove_line(offer_id, now)
            return
        self._replace_line(
            offer_id,
            CartLine(line.offer_id, line.offer_name, Quantity(quantity), line.unit_price),
        )
        self.audit = self.audit.touched(now)

    def remove_line(self, offer_id: str, now: datetime) -> None:
        self._ensure_active()
        if self._find_line(offer_id) is None:
            raise EntityNotFoundError(f"Offer '{offer_id}' is not in the cart")
        self.lines = [line for line in self.lines if line.offer_id != offer_id]
        if not self.lines:
            self.outlet_id = None
        self.audit = self.audit.touched(now)

    # --- Checkout -------------------------------------------------------------

    def checkout(
        self,
        offers: dict[str, Offer],
        now: datetime,
        ttl: timedelta,
    ) -> CartSnapshot:
        """Re-validate every line against current offer state.

        Lines whose offer disappeared, went inactive or sold out are
        removed; lines asking for more than is left are reduced.  Every
        change is reported on the snapshot.  The cart itself is updated
        to the validated lines.
        """
        if self.is_expired(now, ttl):
            raise CartExpired("Cart has expired, please add your items again")
        self._ensure_active()

        kept: list[CartLine] = []
        adjustments: list[CheckoutAdjustment] = []
        for line in self.lines:
            requested = line.quantity.value
            offer = offers.get(line.offer_id)
            if offer is None:
                reason = "offer no longer exists"
                granted = 0
            elif not offer.is_sellable:
                reason = "offer is no longer available"
                granted = 0
            elif offer.quantity_available == 0:
                reason = SOLD_OUT
                granted = 0
            elif offer.quantity_available < requested:
                reason = f"only {offer.quantity_available} left"
                granted = offer.quantity_available
            else:
                kept.append(line)
                continue

            adjustments.append(
                CheckoutAdjustment(line.offer_id, line.offer_name, requested, granted, reason)
            )
            if granted:
                kept.append(
                    CartLine(line.offer_id, line.offer_name, Quantity(granted), line.unit_price)
                )

        if adjustments:
            self.lines = kept
            self.audit = self.audit.touched(now)
        if not kept:
            if adjustments and all(a.reason == SOLD_OUT for a in adjustments):
                raise OutOfStock("Every item in the cart is sold out")
            raise EmptyCart("Cart has no available items")

        return CartSnapshot(
            cart_id=self.id,
            customer_id=self.customer_id,
            outlet_id=self.outlet_id,  # type: ignore[arg-type]
            lines=tuple(kept),
            adjustments=tuple(adjustments),
        )

    # --- Internal helpers -----------------------------------------------------

    def _ensure_active(self) -> None:
        if self.status != CartStatus.ACTIVE:
            raise ValidationError(f"Cart is {self.status.value}")

    def _find_line(self, offer_id: str) -> CartLine | None:
        for line in self.lines:
            if line.offer_id == offer_id:
                return line
        return None

    def _replace_line(self, offer_id: str, new_line: CartLine) -> None:
        for i, line in enumerate(self.lines):
            if line.offer_id == offer_id:
                self.lines[i] = new_line
                return
        self.lines.append(new_line)
