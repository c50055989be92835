"""Application service: Show Order and List Orders use cases (queries)."""

from __future__ import annotations

from rescue.application.caller import Caller, Role, ensure_party_to
from rescue.application.dto import OrderDTO, to_order_dto
from rescue.application.orders import find_order
from rescue.domain.model.order import OrderStatus
from rescue.domain.unit_of_work import UnitOfWorkFactory


class ShowOrderHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def handle(self, caller: Caller, order_id: str) -> OrderDTO:
        with self._uow_factory() as uow:
            order = find_order(uow, order_id)
            ensure_party_to(caller, order)
            payment = uow.payments.get_by_order_id(order.id)
        return to_order_dto(order, payment)


class ListOrdersHandler:
    """Orders visible to the caller, oldest first.

    Customers see their own orders and outlets the orders placed with
    them; the scope comes from the caller, never from a parameter.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    def handle(self, caller: Caller, status: OrderStatus | None = None) -> list[OrderDTO]:
        with self._uow_factory() as uow:
            if caller.role == Role.CUSTOMER:
                orders = uow.orders.list_orders(status=status, customer_id=caller.id)
            elif caller.role == Role.OUTLET:
                orders = uow.orders.list_orders(status=status, outlet_id=caller.id)
            else:
                orders = uow.orders.list_orders(status=status)
            return [to_order_dto(o, uow.payments.get_by_order_id(o.id)) for o in orders]
