"""Caller identity and ownership checks.

Authentication happens outside the core; handlers receive an already
resolved ``Caller`` and only assert that it may act on the order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from rescue.domain.exceptions import AccessDenied
from rescue.domain.model.order import Order


class Role(Enum):
    CUSTOMER = "CUSTOMER"
    OUTLET = "OUTLET"
    SYSTEM = "SYSTEM"


@dataclass(frozen=True)
class Caller:
    role: Role
    id: str

    @staticmethod
    def customer(customer_id: str) -> Caller:
        return Caller(Role.CUSTOMER, customer_id)

    @staticmethod
    def outlet(outlet_id: str) -> Caller:
        return Caller(Role.OUTLET, outlet_id)

    @staticmethod
    def system() -> Caller:
        return Caller(Role.SYSTEM, "system")


def ensure_customer_of(caller: Caller, order: Order) -> None:
    if caller.role == Role.SYSTEM:
        return
    if caller.role != Role.CUSTOMER or caller.id != order.customer_id:
        raise AccessDenied(f"Order {order.order_number} does not belong to this customer")


def ensure_outlet_of(caller: Caller, order: Order) -> None:
    if caller.role == Role.SYSTEM:
        return
    if caller.role != Role.OUTLET or caller.id != order.outlet_id:
        raise AccessDenied(f"Order {order.order_number} does not belong to this outlet")


def ensure_party_to(caller: Caller, order: Order) -> None:
    """Either the ordering customer or the fulfilling outlet."""
    if caller.role == Role.CUSTOMER:
        ensure_customer_of(caller, order)
    elif caller.role == Role.OUTLET:
        ensure_outlet_of(caller, order)
