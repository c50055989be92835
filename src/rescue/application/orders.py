"""Order lookup shared by the order handlers."""

from __future__ import annotations

from rescue.domain.exceptions import EntityNotFoundError
from rescue.domain.model.order import Order
from rescue.domain.unit_of_work import UnitOfWork


def find_order(uow: UnitOfWork, reference: str) -> Order:
    """Look an order up by id or by order number (read only)."""
    order = uow.orders.get_by_id(reference) or uow.orders.get_by_number(reference)
    if order is None:
        raise EntityNotFoundError(f"Order '{reference}' not found")
    return order


def lock_order(uow: UnitOfWork, reference: str) -> Order:
    """Take the order's row lock and return its state as of the lock."""
    order_id = find_order(uow, reference).id
    uow.lock_order(order_id)
    order = uow.orders.get_by_id(order_id)
    if order is None:
        raise EntityNotFoundError(f"Order '{reference}' not found")
    return order
