"""Application service: customer carts.

Each customer has at most one ACTIVE cart, started lazily on the first
add.  Availability is checked when lines are added or changed but
nothing is reserved until the order is created.
"""

from __future__ import annotations

import structlog

from rescue.application.carts import lock_active_cart
from rescue.application.clock import Clock
from rescue.application.dto import CartDTO
from rescue.application.identifiers import IdentifierGenerator
from rescue.application.policy import OrderPolicy
from rescue.domain.exceptions import EntityNotFoundError, OfferNotFound, OutOfStock
from rescue.domain.model.cart import Cart
from rescue.domain.model.offer import Offer
from rescue.domain.model.value_objects import AuditInfo
from rescue.domain.unit_of_work import UnitOfWork, UnitOfWorkFactory

logger = structlog.get_logger(__name__)


class CartService:

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

    def add_line(self, customer_id: str, offer_id: str, quantity: int) -> CartDTO:
        now = self._clock.now()
        with self._uow_factory() as uow:
            offer = self._offer(uow, offer_id)
            cart = self._active_cart(uow, customer_id) or Cart(
                id=self._identifiers.new_id(),
                customer_id=customer_id,
                audit=AuditInfo.new(now),
            )
            in_cart = sum(l.quantity.value for l in cart.lines if l.offer_id == offer_id)
            self._check_available(offer, in_cart + quantity)
            cart.add_line(offer, quantity, now)
            uow.carts.save(cart)
            uow.commit()

        logger.info("Cart line added", customer_id=customer_id, offer_id=offer_id, quantity=quantity)
        return CartDTO.from_cart(cart)

    def update_quantity(self, customer_id: str, offer_id: str, quantity: int) -> CartDTO:
        """Set a line's quantity; 0 removes the line."""
        now = self._clock.now()
        with self._uow_factory() as uow:
            cart = self._require_cart(uow, customer_id)
            if quantity > 0:
                self._check_available(self._offer(uow, offer_id), quantity)
            cart.update_quantity(offer_id, quantity, now)
            uow.carts.save(cart)
            uow.commit()
        return CartDTO.from_cart(cart)

    def remove_line(self, customer_id: str, offer_id: str) -> CartDTO:
        now = self._clock.now()
        with self._uow_factory() as uow:
            cart = self._require_cart(uow, customer_id)
            cart.remove_line(offer_id, now)
            uow.carts.save(cart)
            uow.commit()
        return CartDTO.from_cart(cart)

    def clear(self, customer_id: str) -> None:
        """Abandon the customer's active cart, if any."""
        now = self._clock.now()
        with self._uow_factory() as uow:
            cart = self._active_cart(uow, customer_id)
            if cart is None:
                return
            cart.abandon(now)
            uow.carts.save(cart)
            uow.commit()
        logger.info("Cart cleared", customer_id=customer_id, cart_id=cart.id)

    def show(self, customer_id: str) -> CartDTO | None:
        with self._uow_factory() as uow:
            cart = self._active_cart(uow, customer_id)
        return CartDTO.from_cart(cart) if cart is not None else None

    # --- Internal helpers -----------------------------------------------------

    def _active_cart(self, uow: UnitOfWork, customer_id: str) -> Cart | None:
        """The customer's locked ACTIVE cart, expiring it first if it outlived its TTL."""
        now = self._clock.now()
        cart = lock_active_cart(uow, customer_id)
        if cart is not None and cart.is_expired(now, self._policy.cart_ttl):
            cart.expire(now)
            uow.carts.save(cart)
            logger.info("Cart expired", customer_id=customer_id, cart_id=cart.id)
            return None
        return cart

    def _require_cart(self, uow: UnitOfWork, customer_id: str) -> Cart:
        cart = self._active_cart(uow, customer_id)
        if cart is None:
            raise EntityNotFoundError(f"No active cart for customer '{customer_id}'")
        return cart

    @staticmethod
    def _offer(uow: UnitOfWork, offer_id: str) -> Offer:
        offer = uow.offers.get_by_id(offer_id)
        if offer is None:
            raise OfferNotFound(f"Offer '{offer_id}' not found")
        return offer

    @staticmethod
    def _check_available(offer: Offer, quantity: int) -> None:
        if quantity > offer.quantity_available:
            raise OutOfStock(
                f"Insufficient quantity for {offer.name} "
                f"(available: {offer.quantity_available})"
            )
