"""Mapping between domain objects and JSON-compatible dicts."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from rescue.domain.model.cart import Cart, CartLine, CartStatus
from rescue.domain.model.offer import Offer
from rescue.domain.model.order import Order, OrderLine, OrderStatus
from rescue.domain.model.payment import Payment, PaymentStatus
from rescue.domain.model.value_objects import AuditInfo, Money, Quantity

_ORDER_TIMESTAMPS = (
    "shop_acceptance_deadline",
    "pickup_deadline",
    "submitted_at",
    "accepted_at",
    "preparing_at",
    "ready_at",
    "picked_up_at",
    "completed_at",
    "declined_at",
    "cancelled_at",
    "expired_at",
    "refunded_at",
    "reviewed_at",
)
_PAYMENT_TIMESTAMPS = ("authorized_at", "captured_at", "voided_at", "refunded_at", "failed_at")


# --- Primitives ---------------------------------------------------------------


def _dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(raw: str | None) -> datetime | None:
    return datetime.fromisoformat(raw) if raw is not None else None


def _money(money: Money) -> dict:
    return {"amount": str(money.amount), "currency": money.currency}


def _parse_money(raw: dict) -> Money:
    return Money(Decimal(raw["amount"]), raw.get("currency", "USD"))


def _audit(audit: AuditInfo) -> dict:
    return {
        "created_at": audit.created_at.isoformat(),
        "updated_at": audit.updated_at.isoformat(),
        "version": audit.version,
    }


def _parse_audit(raw: dict) -> AuditInfo:
    return AuditInfo(
        created_at=datetime.fromisoformat(raw["created_at"]),
        updated_at=datetime.fromisoformat(raw["updated_at"]),
        version=raw.get("version", 1),
    )


def _line(line: CartLine | OrderLine) -> dict:
    return {
        "offer_id": line.offer_id,
        "offer_name": line.offer_name,
        "quantity": line.quantity.value,
        "unit_price": _money(line.unit_price),
    }


# --- Offer --------------------------------------------------------------------


def offer_to_raw(offer: Offer) -> dict:
    return {
        "id": offer.id,
        "outlet_id": offer.outlet_id,
        "name": offer.name,
        "price": _money(offer.price),
        "quantity_available": offer.quantity_available,
        "is_active": offer.is_active,
        "is_visible": offer.is_visible,
        "audit": _audit(offer.audit),
    }


def offer_from_raw(raw: dict) -> Offer:
    return Offer(
        id=raw["id"],
        outlet_id=raw["outlet_id"],
        name=raw["name"],
        price=_parse_money(raw["price"]),
        quantity_available=raw["quantity_available"],
        is_active=raw.get("is_active", True),
        is_visible=raw.get("is_visible", True),
        audit=_parse_audit(raw["audit"]),
    )


# --- Cart ---------------------------------------------------------------------


def cart_to_raw(cart: Cart) -> dict:
    return {
        "id": cart.id,
        "customer_id": cart.customer_id,
        "outlet_id": cart.outlet_id,
        "status": cart.status.value,
        "lines": [_line(line) for line in cart.lines],
        "audit": _audit(cart.audit),
    }


def cart_from_raw(raw: dict) -> Cart:
    return Cart(
        id=raw["id"],
        customer_id=raw["customer_id"],
        outlet_id=raw.get("outlet_id"),
        status=CartStatus(raw["status"]),
        lines=[
            CartLine(
                offer_id=i["offer_id"],
                offer_name=i["offer_name"],
                quantity=Quantity(i["quantity"]),
                unit_price=_parse_money(i["unit_price"]),
            )
            for i in raw["lines"]
        ],
        audit=_parse_audit(raw["audit"]),
    )


# --- Order --------------------------------------------------------------------


def order_to_raw(order: Order) -> dict:
    raw = {
        "id": order.id,
        "order_number": order.order_number,
        "pickup_code": order.pickup_code,
        "customer_id": order.customer_id,
        "outlet_id": order.outlet_id,
        "cart_id": order.cart_id,
        "status": order.status.value,
        "lines": [_line(line) for line in order.lines],
        "subtotal": _money(order.subtotal),
        "service_fee": _money(order.service_fee),
        "decline_reason": order.decline_reason,
        "cancellation_reason": order.cancellation_reason,
        "inventory_released": order.inventory_released,
        "refund_review_required": order.refund_review_required,
        "rating": order.rating,
        "review": order.review,
        "audit": _audit(order.audit),
    }
    for name in _ORDER_TIMESTAMPS:
        raw[name] = _dt(getattr(order, name))
    return raw


def order_from_raw(raw: dict) -> Order:
    order = Order(
        id=raw["id"],
        order_number=raw["order_number"],
        pickup_code=raw["pickup_code"],
        customer_id=raw["customer_id"],
        outlet_id=raw["outlet_id"],
        cart_id=raw.get("cart_id"),
        status=OrderStatus(raw["status"]),
        lines=[
            OrderLine(
                offer_id=i["offer_id"],
                offer_name=i["offer_name"],
                quantity=Quantity(i["quantity"]),
                unit_price=_parse_money(i["unit_price"]),
            )
            for i in raw["lines"]
        ],
        subtotal=_parse_money(raw["subtotal"]),
        service_fee=_parse_money(raw["service_fee"]),
        decline_reason=raw.get("decline_reason"),
        cancellation_reason=raw.get("cancellation_reason"),
        inventory_released=raw.get("inventory_released", False),
        refund_review_required=raw.get("refund_review_required", False),
        rating=raw.get("rating"),
        review=raw.get("review"),
        audit=_parse_audit(raw["audit"]),
    )
    for name in _ORDER_TIMESTAMPS:
        setattr(order, name, _parse_dt(raw.get(name)))
    return order


# --- Payment ------------------------------------------------------------------


def payment_to_raw(payment: Payment) -> dict:
    raw = {
        "id": payment.id,
        "order_id": payment.order_id,
        "amount": _money(payment.amount),
        "idempotency_key": payment.idempotency_key,
        "payment_method": payment.payment_method,
        "status": payment.status.value,
        "pre_auth_transaction_id": payment.pre_auth_transaction_id,
        "capture_transaction_id": payment.capture_transaction_id,
        "refund_transaction_id": payment.refund_transaction_id,
        "failure_reason": payment.failure_reason,
        "audit": _audit(payment.audit),
    }
    for name in _PAYMENT_TIMESTAMPS:
        raw[name] = _dt(getattr(payment, name))
    return raw


def payment_from_raw(raw: dict) -> Payment:
    payment = Payment(
        id=raw["id"],
        order_id=raw["order_id"],
        amount=_parse_money(raw["amount"]),
        idempotency_key=raw["idempotency_key"],
        payment_method=raw["payment_method"],
        status=PaymentStatus(raw["status"]),
        pre_auth_transaction_id=raw.get("pre_auth_transaction_id"),
        capture_transaction_id=raw.get("capture_transaction_id"),
        refund_transaction_id=raw.get("refund_transaction_id"),
        failure_reason=raw.get("failure_reason"),
        audit=_parse_audit(raw["audit"]),
    )
    for name in _PAYMENT_TIMESTAMPS:
        setattr(payment, name, _parse_dt(raw.get(name)))
    return payment


SERIALIZERS = {
    "offers": (offer_to_raw, offer_from_raw),
    "carts": (cart_to_raw, cart_from_raw),
    "orders": (order_to_raw, order_from_raw),
    "payments": (payment_to_raw, payment_from_raw),
}
