"""Cart lookup shared by the cart service, checkout and the sweeper."""

from __future__ import annotations

from rescue.domain.model.cart import Cart, CartStatus
from rescue.domain.unit_of_work import UnitOfWork


def lock_active_cart(uow: UnitOfWork, customer_id: str) -> Cart | None:
    """Take the row lock of the customer's ACTIVE cart and return it.

    Returns None if there is none, or if another unit of work converted,
    expired or abandoned it while we waited for the lock.
    """
    cart = uow.carts.get_active_for_customer(customer_id)
    if cart is None:
        return None
    return lock_cart(uow, cart.id)


def lock_cart(uow: UnitOfWork, cart_id: str) -> Cart | None:
    """Take the cart's row lock; its state as of the lock if still ACTIVE."""
    uow.lock_cart(cart_id)
    cart = uow.carts.get_by_id(cart_id)
    if cart is None or cart.status != CartStatus.ACTIVE:
        return None
    return cart
