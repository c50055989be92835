"""Abstract repository for the Offer aggregate.

Defined in the domain layer so the domain never depends on
infrastructure.  Reads hand back private copies; nothing is visible to
other callers until the owning unit of work commits.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from rescue.domain.model.offer import Offer


class OfferRepository(ABC):

    @abstractmethod
    def get_by_id(self, offer_id: str) -> Offer | None:
        """Return an offer by its ID, or None if not found."""

    @abstractmethod
    def list_by_outlet(self, outlet_id: str) -> list[Offer]:
        """Return every offer belonging to one outlet."""

    @abstractmethod
    def save(self, offer: Offer) -> None:
        """Stage a new or updated offer."""
