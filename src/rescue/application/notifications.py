"""Outbound notification events.

Events are collected while a unit of work runs and handed to the
publisher only after it commits.  A publisher failure is logged and
never undoes or blocks a state change.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from rescue.domain.model.order import Order

logger = structlog.get_logger(__name__)


class EventType(Enum):
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_ACCEPTED = "ORDER_ACCEPTED"
    ORDER_DECLINED = "ORDER_DECLINED"
    ORDER_READY = "ORDER_READY"
    ORDER_EXPIRED = "ORDER_EXPIRED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    ORDER_COMPLETED = "ORDER_COMPLETED"
    PAYMENT_SUCCEEDED = "PAYMENT_SUCCEEDED"
    PAYMENT_FAILED = "PAYMENT_FAILED"


@dataclass(frozen=True)
class Notification:
    event_type: EventType
    order_id: str
    outlet_id: str
    customer_id: str
    payload: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def for_order(event_type: EventType, order: Order, **payload: Any) -> Notification:
        return Notification(
            event_type=event_type,
            order_id=order.id,
            outlet_id=order.outlet_id,
            customer_id=order.customer_id,
            payload={"order_number": order.order_number, "status": order.status.value, **payload},
        )


class NotificationPublisher(ABC):

    @abstractmethod
    def publish(self, notification: Notification) -> None:
        """Deliver one notification (push, email, in-app...)."""


def publish_all(publisher: NotificationPublisher, notifications: Iterable[Notification]) -> None:
    for notification in notifications:
        try:
            publisher.publish(notification)
        except Exception:
            logger.exception(
                "Notification delivery failed",
                event_type=notification.event_type.value,
                order_id=notification.order_id,
            )
