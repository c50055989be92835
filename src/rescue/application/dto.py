"""Data Transfer Objects — plain containers that cross layer boundaries.

DTOs carry data between the CLI and application layers without
exposing domain internals to the outside world.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from rescue.domain.model.cart import Cart, CheckoutAdjustment
from rescue.domain.model.offer import Offer
from rescue.domain.model.order import Order
from rescue.domain.model.payment import Payment

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


def _fmt(value: datetime | None) -> str | None:
    return value.strftime(TIMESTAMP_FORMAT) if value is not None else None


# --- Offers -------------------------------------------------------------------


@dataclass(frozen=True)
class OfferDTO:
    id: str
    outlet_id: str
    name: str
    price: str  # formatted, e.g. "$10.00"
    quantity_available: int
    is_active: bool

    @staticmethod
    def from_offer(offer: Offer) -> OfferDTO:
        return OfferDTO(
            id=offer.id,
            outlet_id=offer.outlet_id,
            name=offer.name,
            price=str(offer.price),
            quantity_available=offer.quantity_available,
            is_active=offer.is_sellable,
        )


# --- Carts --------------------------------------------------------------------


@dataclass(frozen=True)
class LineDTO:
    """A single cart or order line as displayed to the user."""

    offer_id: str
    offer_name: str
    quantity: int
    unit_price: str
    line_total: str


@dataclass(frozen=True)
class CartDTO:
    id: str
    customer_id: str
    outlet_id: str | None
    status: str
    lines: list[LineDTO]
    subtotal: str

    @staticmethod
    def from_cart(cart: Cart) -> CartDTO:
        lines = [
            LineDTO(
                offer_id=line.offer_id,
                offer_name=line.offer_name,
                quantity=line.quantity.value,
                unit_price=str(line.unit_price),
                line_total=str(line.line_total),
            )
            for line in cart.lines
        ]
        subtotal = "$0.00"
        if cart.lines:
            total = cart.lines[0].line_total
            for line in cart.lines[1:]:
                total = total + line.line_total
            subtotal = str(total)
        return CartDTO(
            id=cart.id,
            customer_id=cart.customer_id,
            outlet_id=cart.outlet_id,
            status=cart.status.value,
            lines=lines,
            subtotal=subtotal,
        )


@dataclass(frozen=True)
class AdjustmentDTO:
    """A cart line that checkout removed or reduced."""

    offer_id: str
    offer_name: str
    requested: int
    granted: int
    reason: str

    @staticmethod
    def from_adjustment(adjustment: CheckoutAdjustment) -> AdjustmentDTO:
        return AdjustmentDTO(
            offer_id=adjustment.offer_id,
            offer_name=adjustment.offer_name,
            requested=adjustment.requested,
            granted=adjustment.granted,
            reason=adjustment.reason,
        )


# --- Payments -----------------------------------------------------------------


@dataclass(frozen=True)
class PaymentDTO:
    order_id: str
    status: str
    amount: str
    pre_auth_transaction_id: str | None
    capture_transaction_id: str | None
    refund_transaction_id: str | None
    failure_reason: str | None

    @staticmethod
    def from_payment(payment: Payment) -> PaymentDTO:
        return PaymentDTO(
            order_id=payment.order_id,
            status=payment.status.value,
            amount=str(payment.amount),
            pre_auth_transaction_id=payment.pre_auth_transaction_id,
            capture_transaction_id=payment.capture_transaction_id,
            refund_transaction_id=payment.refund_transaction_id,
            failure_reason=payment.failure_reason,
        )


# --- Orders -------------------------------------------------------------------


@dataclass(frozen=True)
class OrderDTO:
    """Output: a complete order as displayed to the user."""

    id: str
    order_number: str
    pickup_code: str
    customer_id: str
    outlet_id: str
    status: str
    lines: list[LineDTO]
    subtotal: str
    service_fee: str
    total: str
    created_at: str
    shop_acceptance_deadline: str | None = None
    pickup_deadline: str | None = None
    decline_reason: str | None = None
    cancellation_reason: str | None = None
    refund_review_required: bool = False
    rating: int | None = None
    review: str | None = None
    payment: PaymentDTO | None = None
    adjustments: list[AdjustmentDTO] = field(default_factory=list)


def to_order_dto(
    order: Order,
    payment: Payment | None = None,
    adjustments: tuple[CheckoutAdjustment, ...] = (),
) -> OrderDTO:
    return OrderDTO(
        id=order.id,
        order_number=order.order_number,
        pickup_code=order.pickup_code,
        customer_id=order.customer_id,
        outlet_id=order.outlet_id,
        status=order.status.value,
        lines=[
            LineDTO(
                offer_id=line.offer_id,
                offer_name=line.offer_name,
                quantity=line.quantity.value,
                unit_price=str(line.unit_price),
                line_total=str(line.line_total),
            )
            for line in order.lines
        ],
        subtotal=str(order.subtotal),
        service_fee=str(order.service_fee),
        total=str(order.total),
        created_at=_fmt(order.audit.created_at),  # type: ignore[arg-type]
        shop_acceptance_deadline=_fmt(order.shop_acceptance_deadline),
        pickup_deadline=_fmt(order.pickup_deadline),
        decline_reason=order.decline_reason,
        cancellation_reason=order.cancellation_reason,
        refund_review_required=order.refund_review_required,
        rating=order.rating,
        review=order.review,
        payment=PaymentDTO.from_payment(payment) if payment is not None else None,
        adjustments=[AdjustmentDTO.from_adjustment(a) for a in adjustments],
    )


# --- Gateway webhooks ---------------------------------------------------------


@dataclass(frozen=True)
class WebhookPayload:
    """Input: a payment status callback as sent by the gateway."""

    transaction_id: str
    order_reference: str
    status: str  # SUCCESS | FAILED | PENDING | CANCELLED
    amount: str
    currency: str
    signature: str
    idempotency_key: str | None = None

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> WebhookPayload:
        return WebhookPayload(
            transaction_id=str(raw["transactionId"]),
            order_reference=str(raw.get("orderReference", "")),
            status=str(raw["status"]),
            amount=str(raw.get("amount", "")),
            currency=str(raw.get("currency", "")),
            signature=str(raw.get("signature", "")),
            idempotency_key=raw.get("idempotencyKey"),
        )

    @property
    def normalized_status(self) -> str:
        return self.status.strip().upper()

    def signing_string(self) -> str:
        """The canonical text the gateway signs, fields exactly as received."""
        return "|".join(
            [
                self.transaction_id,
                self.order_reference,
                self.status,
                self.amount,
                self.currency,
                self.idempotency_key or "",
            ]
        )


@dataclass(frozen=True)
class WebhookAck:
    """Output: what the endpoint answers the gateway."""

    received: bool = True
    outcome: str = "processed"
