"""Application service: offer stock (outlet restock and queries)."""

from __future__ import annotations

import structlog

from rescue.application.caller import Caller, Role
from rescue.application.dto import OfferDTO
from rescue.domain.exceptions import AccessDenied, OfferNotFound
from rescue.domain.service.inventory_ledger import InventoryLedger
from rescue.domain.unit_of_work import UnitOfWorkFactory

logger = structlog.get_logger(__name__)


class RestockOfferHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory, ledger: InventoryLedger) -> None:
        self._uow_factory = uow_factory
        self._ledger = ledger

    def handle(self, caller: Caller, offer_id: str, quantity: int) -> OfferDTO:
        with self._uow_factory() as uow:
            offer = uow.offers.get_by_id(offer_id)
            if offer is None:
                raise OfferNotFound(f"Offer '{offer_id}' not found")
            if caller.role != Role.SYSTEM and (caller.role != Role.OUTLET or caller.id != offer.outlet_id):
                raise AccessDenied(f"Offer '{offer_id}' does not belong to this outlet")
            level = self._ledger.restock(uow, offer_id, quantity)
            uow.commit()
            offer = uow.offers.get_by_id(offer_id)

        logger.info("Offer restocked", offer_id=offer_id, added=quantity, available=level)
        return OfferDTO.from_offer(offer)  # type: ignore[arg-type]


class ShowOffersHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory, ledger: InventoryLedger) -> None:
        self._uow_factory = uow_factory
        self._ledger = ledger

    def handle(self, outlet_id: str) -> list[OfferDTO]:
        with self._uow_factory() as uow:
            return [OfferDTO.from_offer(o) for o in uow.offers.list_by_outlet(outlet_id)]

    def available(self, offer_id: str) -> int:
        with self._uow_factory() as uow:
            return self._ledger.available(uow, offer_id)
