"""Time source for the application layer.

Handlers never call ``datetime.now()`` directly so that deadlines can be
driven deterministically in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
