"""Application service: Add Offer use case (outlet action)."""

from __future__ import annotations

import structlog

from rescue.application.caller import Caller, Role
from rescue.application.clock import Clock
from rescue.application.dto import OfferDTO
from rescue.application.identifiers import IdentifierGenerator
from rescue.application.policy import OrderPolicy
from rescue.domain.exceptions import AccessDenied, ValidationError
from rescue.domain.model.offer import Offer
from rescue.domain.model.value_objects import AuditInfo, Money
from rescue.domain.unit_of_work import UnitOfWorkFactory

logger = structlog.get_logger(__name__)


class AddOfferHandler:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        clock: Clock,
        policy: OrderPolicy,
        identifiers: IdentifierGenerator,
    ) -> None:
        self._uow_factory = uow_factory
        self._clock = clock
        self._policy = policy
        self._identifiers = identifiers

    def handle(
        self,
        caller: Caller,
        name: str,
        price: str,
        quantity: int,
        offer_id: str | None = None,
    ) -> OfferDTO:
        """Publish a new offer for the calling outlet."""
        if caller.role != Role.OUTLET:
            raise AccessDenied("Only outlets can publish offers")
        if not name or not name.strip():
            raise ValidationError("Offer name is required")
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative")

        with self._uow_factory() as uow:
            offer_id = offer_id or self._identifiers.new_id()
            if uow.offers.get_by_id(offer_id) is not None:
                raise ValidationError(f"Offer '{offer_id}' already exists")
            offer = Offer(
                id=offer_id,
                outlet_id=caller.id,
                name=name.strip(),
                price=Money.of(price, self._policy.currency),
                quantity_available=quantity,
                audit=AuditInfo.new(self._clock.now()),
            )
            uow.offers.save(offer)
            uow.commit()

        logger.info("Offer added", offer_id=offer.id, outlet_id=offer.outlet_id, quantity=quantity)
        return OfferDTO.from_offer(offer)
