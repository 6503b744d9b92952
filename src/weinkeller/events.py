"""Plain records passed between the store, the aggregator and the service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .timeutil import to_naive_utc, utcnow


class EventType(str, Enum):
    ADD = "add"
    DRINK = "drink"


@dataclass(frozen=True, slots=True)
class LedgerEvent:
    """An inventory event; ``id`` is ``None`` until the store appends it."""

    wine_id: int
    event_type: str
    quantity: int
    event_date: datetime = field(default_factory=utcnow)
    acquisition_type: Optional[str] = None
    price: Optional[float] = None
    bought_at: Optional[str] = None
    error_quantity: Optional[int] = None
    corrects_event_id: Optional[int] = None
    id: Optional[int] = None
    version: Optional[int] = None
    recorded_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "event_type", EventType(self.event_type).value)
        object.__setattr__(self, "event_date", to_naive_utc(self.event_date))

    @property
    def delta(self) -> int:
        """Net change in bottle count caused by this event."""

        if self.event_type == EventType.ADD.value:
            return self.quantity
        return (self.error_quantity or 0) - self.quantity

    def as_record(self) -> dict[str, object]:
        """Return the interoperable event record."""

        return {
            "id": self.id,
            "wine_id": self.wine_id,
            "event_type": self.event_type,
            "acquisition_type": self.acquisition_type,
            "quantity": self.quantity,
            "price": self.price,
            "bought_at": self.bought_at,
            "event_date": self.event_date.isoformat(),
            "error_quantity": self.error_quantity,
        }
