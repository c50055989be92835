"""Identifier generation for new carts, orders and payments."""

from __future__ import annotations

import uuid

from rescue.domain.model.order import new_order_number, new_pickup_code


class IdentifierGenerator:

    def new_id(self) -> str:
        return uuid.uuid4().hex

    def order_number(self) -> str:
        return new_order_number()

    def pickup_code(self) -> str:
        return new_pickup_code()
