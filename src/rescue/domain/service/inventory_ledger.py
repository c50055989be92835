"""Domain service: Inventory Ledger.

The only code allowed to change ``Offer.quantity_available``.  Every
read-modify-write happens while the offer's row lock is held by the
caller's unit of work, so two concurrent reservations can never both
see the same last unit.

Multi-line reservations use a two-phase approach (validate-then-mutate)
so a failing line leaves no partial decrement behind.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

import structlog

from rescue.domain.exceptions import OfferNotFound, OutOfStock
from rescue.domain.model.offer import Offer
from rescue.domain.model.order import Order, OrderLine
from rescue.domain.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Reservation:
    offer_id: str
    quantity: int
    remaining: int


class InventoryLedger:

    def reserve(self, uow: UnitOfWork, offer_id: str, quantity: int) -> Reservation:
        """Take ``quantity`` units of one offer.

        Raises OfferNotFound, OfferInactive or OutOfStock.  The decrement
        becomes visible when ``uow`` commits.
        """
        offer = self._locked_offer(uow, offer_id)
        offer.ensure_sellable()
        offer.decrement(quantity)
        uow.offers.save(offer)
        return Reservation(offer.id, quantity, offer.quantity_available)

    def reserve_all(self, uow: UnitOfWork, lines: Iterable[OrderLine]) -> list[Reservation]:
        """Reserve every line or none of them.

          Phase 1: lock offers in ascending id order and validate that
                   each one is sellable and has enough quantity.
          Phase 2: decrement and stage.
        """
        wanted: dict[str, int] = {}
        for line in lines:
            wanted[line.offer_id] = wanted.get(line.offer_id, 0) + line.quantity.value

        # Phase 1: lock and validate
        offers: list[tuple[Offer, int]] = []
        for offer_id in sorted(wanted):
            offer = self._locked_offer(uow, offer_id)
            offer.ensure_sellable()
            qty = wanted[offer_id]
            if qty > offer.quantity_available:
                logger.info(
                    "Reservation rejected",
                    offer_id=offer_id,
                    requested=qty,
                    available=offer.quantity_available,
                )
                raise OutOfStock(
                    f"Insufficient quantity for {offer.name} "
                    f"(need {qty}, have {offer.quantity_available} available)"
                )
            offers.append((offer, qty))

        # Phase 2: mutate and stage
        reservations = []
        for offer, qty in offers:
            offer.decrement(qty)
            uow.offers.save(offer)
            reservations.append(Reservation(offer.id, qty, offer.quantity_available))
        return reservations

    def release(self, uow: UnitOfWork, offer_id: str, quantity: int) -> None:
        offer = self._locked_offer(uow, offer_id)
        offer.increment(quantity)
        uow.offers.save(offer)

    def release_for_order(self, uow: UnitOfWork, order: Order, now: datetime) -> bool:
        """Return every line of ``order`` to its offer, exactly once.

        The caller must hold the order's lock and save the order after
        this call.  Returns False without touching inventory if the order
        was already released.
        """
        if order.inventory_released:
            logger.error(
                "Inventory already released for order",
                order_id=order.id,
                order_number=order.order_number,
            )
            return False

        quantities: dict[str, int] = {}
        for line in order.lines:
            quantities[line.offer_id] = quantities.get(line.offer_id, 0) + line.quantity.value
        for offer_id in sorted(quantities):
            self.release(uow, offer_id, quantities[offer_id])

        order.inventory_released = True
        order.audit = order.audit.touched(now)
        return True

    def restock(self, uow: UnitOfWork, offer_id: str, quantity: int) -> int:
        """Add units to an offer's sellable pool; returns the new level."""
        offer = self._locked_offer(uow, offer_id)
        offer.increment(quantity)
        uow.offers.save(offer)
        return offer.quantity_available

    def available(self, uow: UnitOfWork, offer_id: str) -> int:
        offer = uow.offers.get_by_id(offer_id)
        if offer is None:
            raise OfferNotFound(f"Offer '{offer_id}' not found")
        return offer.quantity_available

    @staticmethod
    def _locked_offer(uow: UnitOfWork, offer_id: str) -> Offer:
        uow.lock_offer(offer_id)
        offer = uow.offers.get_by_id(offer_id)
        if offer is None:
            raise OfferNotFound(f"Offer '{offer_id}' not found")
        return offer
