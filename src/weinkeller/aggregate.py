"""Stock derivation from a wine's inventory events.

Everything here is a pure function of the event sequence: replaying the same
events always yields the same summary, so a stock figure can be recomputed
from the ledger at any time.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

from .errors import NegativeStockError
from .events import EventType, LedgerEvent


@dataclass(frozen=True, slots=True)
class StockSummary:
    current_stock: int = 0
    total_acquired: int = 0
    total_consumed: int = 0
    last_event_at: Optional[datetime] = None

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class BalancePoint:
    """Running balance right after one event was applied."""

    event_id: Optional[int]
    event_date: datetime
    delta: int
    balance: int


def _sort_key(event: LedgerEvent) -> tuple[datetime, float]:
    # unsaved events sort after saved ones sharing the same date
    return event.event_date, math.inf if event.id is None else event.id


def order_events(events: Iterable[LedgerEvent]) -> list[LedgerEvent]:
    """Return *events* in ledger order: ``event_date`` then ``id``."""

    return sorted(events, key=_sort_key)


def balance_history(events: Iterable[LedgerEvent], *, strict: bool = True) -> list[BalancePoint]:
    """Fold *events* into the running balance after each one.

    With ``strict`` a negative balance raises :class:`NegativeStockError`
    naming the event that caused it.
    """

    points: list[BalancePoint] = []
    balance = 0
    for event in order_events(events):
        previous = balance
        balance += event.delta
        if strict and balance < 0:
            raise NegativeStockError(event.id, balance, previous)
        points.append(BalancePoint(event.id, event.event_date, event.delta, balance))
    return points


def summarize(events: Iterable[LedgerEvent]) -> StockSummary:
    """Compute the stock summary of one wine's events."""

    ordered = order_events(events)
    balance = 0
    acquired = 0
    consumed = 0
    for event in ordered:
        previous = balance
        if event.event_type == EventType.ADD.value:
            acquired += event.quantity
        else:
            consumed += event.quantity
        balance += event.delta
        if balance < 0:
            raise NegativeStockError(event.id, balance, previous)
    return StockSummary(
        current_stock=balance,
        total_acquired=acquired,
        total_consumed=consumed,
        last_event_at=ordered[-1].event_date if ordered else None,
    )


def available_at(events: Sequence[LedgerEvent], when: datetime) -> int:
    """Return how many bottles can leave the cellar at *when*.

    A backdated withdrawal lowers every later balance too, so the answer is
    the smallest balance from the insertion point to the end of the ledger.
    """

    points = balance_history(events, strict=False)
    before = 0
    later: list[int] = []
    for point in points:
        if point.event_date <= when:
            before = point.balance
        else:
            later.append(point.balance)
    return max(0, min([before, *later]))
