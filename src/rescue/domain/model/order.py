"""Order aggregate — the core of the domain.

The Order is an aggregate root that owns its line items.  Lines are a
price/quantity snapshot and never change after creation; only the
order's status, timestamps and terminal-reason fields move.

Every status change goes through ``transition_to`` which enforces the
legal transition table below.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from rescue.domain.exceptions import InvalidPickupCode, InvalidStatus, ValidationError
from rescue.domain.model.cart import CartSnapshot
from rescue.domain.model.value_objects import AuditInfo, Money, Quantity


class OrderStatus(Enum):
    CREATED = "CREATED"
    PENDING_ACCEPTANCE = "PENDING_ACCEPTANCE"
    PAID = "PAID"
    PREPARING = "PREPARING"
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    PICKED_UP = "PICKED_UP"
    COMPLETED = "COMPLETED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    REFUNDED = "REFUNDED"

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]

    def can_transition_to(self, target: OrderStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.CREATED: frozenset({OrderStatus.PENDING_ACCEPTANCE, OrderStatus.CANCELLED}),
    OrderStatus.PENDING_ACCEPTANCE: frozenset({
        OrderStatus.PAID,
        OrderStatus.DECLINED,
        OrderStatus.CANCELLED,
        OrderStatus.EXPIRED,
    }),
    OrderStatus.PAID: frozenset({OrderStatus.PREPARING, OrderStatus.REFUNDED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY_FOR_PICKUP}),
    OrderStatus.READY_FOR_PICKUP: frozenset({OrderStatus.PICKED_UP, OrderStatus.EXPIRED}),
    OrderStatus.PICKED_UP: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.DECLINED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.EXPIRED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

# Which timestamp field records entry into each status.
_TIMESTAMP_FIELDS: dict[OrderStatus, str] = {
    OrderStatus.PENDING_ACCEPTANCE: "submitted_at",
    OrderStatus.PAID: "accepted_at",
    OrderStatus.PREPARING: "preparing_at",
    OrderStatus.READY_FOR_PICKUP: "ready_at",
    OrderStatus.PICKED_UP: "picked_up_at",
    OrderStatus.COMPLETED: "completed_at",
    OrderStatus.DECLINED: "declined_at",
    OrderStatus.CANCELLED: "cancelled_at",
    OrderStatus.EXPIRED: "expired_at",
    OrderStatus.REFUNDED: "refunded_at",
}

# ---------------------------------------------------------------------------
# Identifier generation
# ---------------------------------------------------------------------------
CODE_ALPHABET = string.ascii_uppercase + string.digits
ORDER_NUMBER_PREFIX = "RQ-"
ORDER_NUMBER_LENGTH = 8
PICKUP_CODE_LENGTH = 6
MIN_RATING = 1
MAX_RATING = 5


def random_code(length: int) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def new_order_number() -> str:
    return ORDER_NUMBER_PREFIX + random_code(ORDER_NUMBER_LENGTH)


def new_pickup_code() -> str:
    return random_code(PICKUP_CODE_LENGTH)


@dataclass(frozen=True)
class OrderLine:
    """Captures the price snapshot of an offer at order-creation time."""

    offer_id: str
    offer_name: str
    quantity: Quantity
    unit_price: Money  # locked at order-creation time

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity.value


@dataclass
class Order:
    """Aggregate root for customer orders.

    Use ``Order.create()`` for new orders.  The ``__init__`` is kept
    simple so the repository can reconstitute persisted orders without
    re-validating.
    """

    id: str
    order_number: str
    pickup_code: str
    customer_id: str
    outlet_id: str
    lines: list[OrderLine]
    subtotal: Money
    service_fee: Money
    audit: AuditInfo
    status: OrderStatus = OrderStatus.CREATED

    shop_acceptance_deadline: datetime | None = None
    pickup_deadline: datetime | None = None

    submitted_at: datetime | None = None
    accepted_at: datetime | None = None
    preparing_at: datetime | None = None
    ready_at: datetime | None = None
    picked_up_at: datetime | None = None
    completed_at: datetime | None = None
    declined_at: datetime | None = None
    cancelled_at: datetime | None = None
    expired_at: datetime | None = None
    refunded_at: datetime | None = None

    decline_reason: str | None = None
    cancellation_reason: str | None = None
    inventory_released: bool = False
    refund_review_required: bool = False

    rating: int | None = None
    review: str | None = None
    reviewed_at: datetime | None = None

    cart_id: str | None = None

    # --- Factory (used for NEW orders only) -----------------------------------

    @staticmethod
    def create(
        order_id: str,
        order_number: str,
        pickup_code: str,
        snapshot: CartSnapshot,
        service_fee_rate: Decimal,
        now: datetime,
    ) -> Order:
        """Build a CREATED order from a validated cart snapshot."""
        if not snapshot.lines:
            raise ValidationError("Order must contain at least one item")

        lines = [
            OrderLine(
                offer_id=line.offer_id,
                offer_name=line.offer_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
            )
            for line in snapshot.lines
        ]
        subtotal = snapshot.subtotal
        return Order(
            id=order_id,
            order_number=order_number,
            pickup_code=pickup_code,
            customer_id=snapshot.customer_id,
            outlet_id=snapshot.outlet_id,
            lines=lines,
            subtotal=subtotal,
            service_fee=subtotal.percentage(service_fee_rate),
            audit=AuditInfo.new(now),
            cart_id=snapshot.cart_id,
        )

    # --- State transitions ----------------------------------------------------

    def transition_to(self, target: OrderStatus, now: datetime) -> None:
        """Move to ``target`` if the transition table allows it.

        Raises InvalidStatus and leaves the order untouched otherwise.
        """
        if not self.status.can_transition_to(target):
            raise InvalidStatus(
                f"Invalid state transition from {self.status.value} to {target.value} "
                f"for order {self.order_number}"
            )
        self.status = target
        setattr(self, _TIMESTAMP_FIELDS[target], now)
        self.audit = self.audit.touched(now)

    def submit(self, now: datetime, acceptance_window: timedelta) -> None:
        """CREATED -> PENDING_ACCEPTANCE, starting the outlet's clock."""
        self.transition_to(OrderStatus.PENDING_ACCEPTANCE, now)
        self.shop_acceptance_deadline = now + acceptance_window

    def accept(self, now: datetime) -> None:
        self.transition_to(OrderStatus.PAID, now)

    def decline(self, reason: str, now: datetime) -> None:
        self.transition_to(OrderStatus.DECLINED, now)
        self.decline_reason = reason

    def cancel(self, reason: str, now: datetime) -> None:
        self.transition_to(OrderStatus.CANCELLED, now)
        self.cancellation_reason = reason

    def refund(self, reason: str, now: datetime) -> None:
        self.transition_to(OrderStatus.REFUNDED, now)
        self.cancellation_reason = reason

    def start_preparing(self, now: datetime) -> None:
        self.transition_to(OrderStatus.PREPARING, now)

    def mark_ready(self, now: datetime, pickup_window: timedelta) -> None:
        self.transition_to(OrderStatus.READY_FOR_PICKUP, now)
        self.pickup_deadline = now + pickup_window

    def verify_pickup(self, code: str, now: datetime) -> None:
        """READY_FOR_PICKUP -> PICKED_UP when ``code`` matches.

        The status is checked first so a wrong code on an order that is
        not ready reports the status problem, not the code.
        """
        if not self.status.can_transition_to(OrderStatus.PICKED_UP):
            raise InvalidStatus(
                f"Order {self.order_number} is {self.status.value}, not ready for pickup"
            )
        if (code or "").strip().upper() != self.pickup_code.upper():
            raise InvalidPickupCode("Invalid pickup code")
        self.transition_to(OrderStatus.PICKED_UP, now)

    def expire(self, reason: str, now: datetime) -> None:
        """Time out a pending or uncollected order.

        An uncollected order has already been paid for, so it is flagged
        for the downstream refund policy instead of being refunded here.
        """
        was_ready = self.status == OrderStatus.READY_FOR_PICKUP
        self.transition_to(OrderStatus.EXPIRED, now)
        self.cancellation_reason = reason
        if was_ready:
            self.refund_review_required = True

    def complete(self, now: datetime) -> None:
        self.transition_to(OrderStatus.COMPLETED, now)

    def rate(self, rating: int, review: str | None, now: datetime, review_window: timedelta) -> None:
        if self.status != OrderStatus.COMPLETED:
            raise InvalidStatus("Can only rate completed orders")
        if not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
        if self.rating is not None:
            raise ValidationError("Order has already been rated")
        if self.picked_up_at is not None and now - self.picked_up_at > review_window:
            raise ValidationError("Review period has expired")
        self.rating = rating
        self.review = review.strip() if review else None
        self.reviewed_at = now
        self.audit = self.audit.touched(now)

    # --- Computed properties --------------------------------------------------

    @property
    def total(self) -> Money:
        return self.subtotal + self.service_fee

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def acceptance_overdue(self, now: datetime) -> bool:
        return (
            self.status == OrderStatus.PENDING_ACCEPTANCE
            and self.shop_acceptance_deadline is not None
            and now >= self.shop_acceptance_deadline
        )

    def pickup_overdue(self, now: datetime) -> bool:
        return (
            self.status == OrderStatus.READY_FOR_PICKUP
            and self.pickup_deadline is not None
            and now >= self.pickup_deadline
        )

    def completion_due(self, now: datetime, completion_delay: timedelta) -> bool:
        return (
            self.status == OrderStatus.PICKED_UP
            and self.picked_up_at is not None
            and now - self.picked_up_at >= completion_delay
        )
