"""Runtime settings read from ``RESCUE_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

from rescue.application.policy import OrderPolicy

# Resolve data directory relative to the project root.
# When installed in editable mode the project root is the repo root.
_DEFAULT_DATA_FILE = Path(__file__).resolve().parents[3] / "data" / "rescue.json"


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass(frozen=True)
class Settings:
    acceptance_window_seconds: float = 300
    pickup_window_minutes: float = 60
    completion_delay_minutes: float = 5
    review_window_hours: float = 48
    cart_ttl_minutes: float = 10
    service_fee_rate: Decimal = Decimal("0.10")
    currency: str = "USD"
    lock_timeout_seconds: float = 2.0
    sweep_interval_seconds: float = 60
    webhook_secret: str = "dev-webhook-secret"
    gateway_modes: str = ""  # e.g. "capture=decline,void=timeout"
    data_file: Path = _DEFAULT_DATA_FILE

    @staticmethod
    def from_env() -> Settings:
        return Settings(
            acceptance_window_seconds=_env_float("RESCUE_ACCEPTANCE_WINDOW_SECONDS", 300),
            pickup_window_minutes=_env_float("RESCUE_PICKUP_WINDOW_MINUTES", 60),
            completion_delay_minutes=_env_float("RESCUE_COMPLETION_DELAY_MINUTES", 5),
            review_window_hours=_env_float("RESCUE_REVIEW_WINDOW_HOURS", 48),
            cart_ttl_minutes=_env_float("RESCUE_CART_TTL_MINUTES", 10),
            service_fee_rate=Decimal(os.getenv("RESCUE_SERVICE_FEE_RATE", "0.10")),
            currency=os.getenv("RESCUE_CURRENCY", "USD"),
            lock_timeout_seconds=_env_float("RESCUE_LOCK_TIMEOUT_SECONDS", 2.0),
            sweep_interval_seconds=_env_float("RESCUE_SWEEP_INTERVAL_SECONDS", 60),
            webhook_secret=os.getenv("RESCUE_WEBHOOK_SECRET", "dev-webhook-secret"),
            gateway_modes=os.getenv("RESCUE_GATEWAY_MODES", ""),
            data_file=Path(os.getenv("RESCUE_DATA_FILE", str(_DEFAULT_DATA_FILE))),
        )

    def policy(self) -> OrderPolicy:
        return OrderPolicy(
            acceptance_window=timedelta(seconds=self.acceptance_window_seconds),
            pickup_window=timedelta(minutes=self.pickup_window_minutes),
            completion_delay=timedelta(minutes=self.completion_delay_minutes),
            review_window=timedelta(hours=self.review_window_hours),
            cart_ttl=timedelta(minutes=self.cart_ttl_minutes),
            service_fee_rate=self.service_fee_rate,
            currency=self.currency,
        )
