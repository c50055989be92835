"""Notification publisher that writes every event to the log."""

from __future__ import annotations

import structlog

from rescue.application.notifications import Notification, NotificationPublisher

logger = structlog.get_logger(__name__)


class LoggingPublisher(NotificationPublisher):

    def publish(self, notification: Notification) -> None:
        logger.info(
            "Notification",
            event_type=notification.event_type.value,
            order_id=notification.order_id,
            outlet_id=notification.outlet_id,
            customer_id=notification.customer_id,
            **notification.payload,
        )
