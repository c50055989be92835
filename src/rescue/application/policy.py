"""Business timings and rates the handlers apply."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal


@dataclass(frozen=True)
class OrderPolicy:
    acceptance_window: timedelta = timedelta(seconds=300)
    pickup_window: timedelta = timedelta(minutes=60)
    completion_delay: timedelta = timedelta(minutes=5)
    review_window: timedelta = timedelta(hours=48)
    cart_ttl: timedelta = timedelta(minutes=10)
    service_fee_rate: Decimal = Decimal("0.10")
    currency: str = "USD"
