"""The inventory ledger: the only way bottles enter or leave the cellar."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from . import crud
from .aggregate import BalancePoint, StockSummary, available_at, balance_history, order_events, summarize
from .config import Settings, get_settings
from .database import MAX_INTEGER, SessionLocal, get_engine, session_scope
from .errors import (
    ConcurrencyError,
    InsufficientStockError,
    InvalidQuantityError,
    NegativeStockError,
    NotFoundError,
    StorageError,
)
from .events import EventType, LedgerEvent
from .locks import KeyedLock
from .logging import get_logger
from .store import EventStore
from .timeutil import to_naive_utc, utcnow

log = get_logger(__name__)

History = tuple[LedgerEvent, ...]
Appended = tuple[LedgerEvent, StockSummary]

IMPORT_ACQUISITION = "import"


@dataclass(frozen=True, slots=True)
class InventoryItem:
    """A wine currently in the cellar together with its stock."""

    wine_id: int
    name: str
    producer: Optional[str]
    year: Optional[int]
    type: Optional[str]
    stock: StockSummary


@dataclass(slots=True)
class ImportResult:
    """Outcome of replaying exported inventory data."""

    created: int = 0
    errors: list[str] = field(default_factory=list)


def _require_positive(value: object, name: str = "quantity") -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidQuantityError(f"{name} must be a positive integer, got {value!r}", quantity=value)
    if value > MAX_INTEGER:
        raise InvalidQuantityError(f"{name} must not exceed {MAX_INTEGER}, got {value!r}", quantity=value)
    return value


def _parse_date(value: object) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    raise TypeError(f"event_date must be an ISO-8601 string, got {value!r}")


def _record_order(record: Mapping[str, Any]) -> tuple[datetime, float]:
    when = to_naive_utc(_parse_date(record.get("event_date"))) or datetime.max
    ident = record.get("id")
    return when, ident if isinstance(ident, int) and not isinstance(ident, bool) else math.inf


def _import_failure(record: Mapping[str, Any], exc: Exception) -> str:
    return f"Failed to import event {record.get('id')} for wine {record.get('wine_id')}: {exc}"


class InventoryLedger:
    """Validates and records inventory events and answers stock queries.

    Writes to one wine are serialised through a per-wine lock and an
    optimistic version check in the store; writes to different wines proceed
    independently.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        *,
        store: Optional[EventStore] = None,
        locks: Optional[KeyedLock] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        if session_factory is None:
            get_engine()
            session_factory = SessionLocal
        self._settings = settings or get_settings()
        self._session_factory = session_factory
        self._store = store or EventStore(session_factory)
        self._locks = locks or KeyedLock(timeout=self._settings.lock_timeout)

    # -- mutations ---------------------------------------------------------

    def record_acquisition(
        self,
        wine_id: int,
        quantity: int,
        acquisition_type: Optional[str] = None,
        price: Optional[float] = None,
        bought_at: Optional[str] = None,
        event_date: Optional[datetime] = None,
    ) -> StockSummary:
        """Record bottles entering the cellar."""

        return self._acquire(wine_id, quantity, acquisition_type, price, bought_at, event_date)[1]

    def record_consumption(
        self, wine_id: int, quantity: int, event_date: Optional[datetime] = None
    ) -> StockSummary:
        """Record bottles drunk; rejected when the cellar does not hold them."""

        return self._consume(wine_id, quantity, event_date)[1]

    def record_correction(
        self,
        wine_id: int,
        original_drink_event_id: int,
        error_quantity: int,
        event_date: Optional[datetime] = None,
    ) -> StockSummary:
        """Correct an earlier consumption by appending a referencing event.

        A positive *error_quantity* gives back bottles that were recorded as
        drunk by mistake; a negative one records bottles that left without
        being logged. The correction may not be dated before the drink it
        corrects.
        """

        return self._correct(wine_id, original_drink_event_id, error_quantity, event_date)[1]

    # -- export / import ---------------------------------------------------

    def export_inventory(self) -> dict[str, Any]:
        """Return every event plus a current stock snapshot as JSON-ready data.

        Events appear per wine in ledger order. Each record is the
        interoperable event record extended by ``corrects_event_id`` so that
        corrections can be replayed against the right drink.
        """

        events: list[dict[str, object]] = []
        for wine_id in self._store.wine_ids():
            for event in order_events(self._store.list_by_wine(wine_id)):
                record = event.as_record()
                record["corrects_event_id"] = event.corrects_event_id
                events.append(record)
        inventory = [
            {"wine_id": item.wine_id, "name": item.name, "inventory": item.stock.current_stock}
            for item in self.current_inventory()
        ]
        log.info("Exported {} events and {} inventory items", len(events), len(inventory))
        return {"exported_at": utcnow().isoformat(), "events": events, "inventory": inventory}

    def import_inventory(
        self,
        events: Iterable[Mapping[str, Any]] = (),
        inventory: Iterable[Mapping[str, Any]] = (),
    ) -> ImportResult:
        """Replay exported data through the regular recording operations.

        When *events* are given they are replayed in ledger order, so every
        acquisition, consumption and correction is validated again. Otherwise
        each ``{"wine_id", "inventory"}`` snapshot item becomes one ``add``
        event with acquisition type ``import``. Rejected items are reported in
        :attr:`ImportResult.errors` and do not stop the import; storage
        failures do.
        """

        result = ImportResult()
        events = list(events)
        if events:
            self._import_events(events, result)
        else:
            self._import_stock(inventory, result)
        log.info("Imported {} inventory events ({} rejected)", result.created, len(result.errors))
        return result

    # -- queries -----------------------------------------------------------

    def get_stock(self, wine_id: int) -> StockSummary:
        """Return the summary over the wine's full history."""

        self._require_wine(wine_id)
        summary = summarize(self._store.list_by_wine(wine_id))
        log.debug("Stock for wine {}: {}", wine_id, summary.current_stock)
        return summary

    def list_events(self, wine_id: int) -> History:
        self._require_wine(wine_id)
        return self._store.list_by_wine(wine_id)

    def balance_history(self, wine_id: int) -> list[BalancePoint]:
        self._require_wine(wine_id)
        return balance_history(self._store.list_by_wine(wine_id))

    def history(self, *, limit: int = 100, offset: int = 0) -> History:
        _require_positive(limit, "limit")
        if isinstance(offset, bool) or not isinstance(offset, int) or not 0 <= offset <= MAX_INTEGER:
            raise InvalidQuantityError(f"offset must be a non-negative integer, got {offset!r}", quantity=offset)
        return self._store.list_all(limit=limit, offset=offset)

    def current_inventory(self) -> list[InventoryItem]:
        """Return every wine that currently has bottles in the cellar."""

        stocked: dict[int, StockSummary] = {}
        for wine_id in self._store.wine_ids():
            summary = summarize(self._store.list_by_wine(wine_id))
            if summary.current_stock > 0:
                stocked[wine_id] = summary
        try:
            with session_scope(self._session_factory) as db:
                wines = crud.get_wines(db, list(stocked))
                return [
                    InventoryItem(
                        wine_id=wine_id,
                        name=wines[wine_id].name,
                        producer=wines[wine_id].producer,
                        year=wines[wine_id].year,
                        type=wines[wine_id].type,
                        stock=summary,
                    )
                    for wine_id, summary in stocked.items()
                    if wine_id in wines
                ]
        except SQLAlchemyError as exc:
            raise StorageError("Could not load wines for inventory") from exc

    # -- internals ---------------------------------------------------------

    def _require_wine(self, wine_id: int) -> None:
        if isinstance(wine_id, bool) or not isinstance(wine_id, int) or not 0 < wine_id <= MAX_INTEGER:
            raise NotFoundError("Wine", wine_id)
        try:
            with session_scope(self._session_factory) as db:
                found = crud.get_wine(db, wine_id) is not None
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not look up wine {wine_id}") from exc
        if not found:
            raise NotFoundError("Wine", wine_id)

    def _acquire(
        self,
        wine_id: int,
        quantity: int,
        acquisition_type: Optional[str] = None,
        price: Optional[float] = None,
        bought_at: Optional[str] = None,
        event_date: Optional[datetime] = None,
    ) -> Appended:
        _require_positive(quantity)
        self._require_wine(wine_id)
        event = LedgerEvent(
            wine_id=wine_id,
            event_type=EventType.ADD,
            quantity=quantity,
            acquisition_type=acquisition_type,
            price=price,
            bought_at=bought_at,
            event_date=event_date or utcnow(),
        )
        return self._append(event, requested=quantity)

    def _consume(self, wine_id: int, quantity: int, event_date: Optional[datetime] = None) -> Appended:
        _require_positive(quantity)
        self._require_wine(wine_id)
        event = LedgerEvent(
            wine_id=wine_id,
            event_type=EventType.DRINK,
            quantity=quantity,
            event_date=event_date or utcnow(),
        )
        return self._append(event, requested=quantity)

    def _correct(
        self,
        wine_id: int,
        original_drink_event_id: int,
        error_quantity: int,
        event_date: Optional[datetime] = None,
    ) -> Appended:
        if isinstance(error_quantity, bool) or not isinstance(error_quantity, int) or error_quantity == 0:
            raise InvalidQuantityError(
                f"error_quantity must be a non-zero integer, got {error_quantity!r}",
                quantity=error_quantity,
            )
        if abs(error_quantity) > MAX_INTEGER:
            raise InvalidQuantityError(
                f"error_quantity must not exceed {MAX_INTEGER} in magnitude, got {error_quantity!r}",
                quantity=error_quantity,
            )
        self._require_wine(wine_id)
        event = LedgerEvent(
            wine_id=wine_id,
            event_type=EventType.DRINK,
            quantity=0,
            error_quantity=error_quantity,
            corrects_event_id=original_drink_event_id,
            event_date=event_date or utcnow(),
        )
        return self._append(
            event,
            requested=max(-error_quantity, 0),
            check=lambda history: self._check_correction(history, event),
        )

    def _import_events(self, records: list[Mapping[str, Any]], result: ImportResult) -> None:
        pending: list[tuple[tuple[datetime, float], Mapping[str, Any]]] = []
        for record in records:
            try:
                pending.append((_record_order(record), record))
            except (TypeError, ValueError) as exc:
                result.errors.append(_import_failure(record, exc))
        # exported ids of drinks mapped to the ids they were replayed under
        replayed: dict[int, int] = {}
        for _, record in sorted(pending, key=lambda item: item[0]):
            try:
                self._replay(record, replayed)
            except (InvalidQuantityError, InsufficientStockError, NotFoundError, TypeError, ValueError) as exc:
                result.errors.append(_import_failure(record, exc))
                continue
            result.created += 1

    def _replay(self, record: Mapping[str, Any], replayed: dict[int, int]) -> None:
        wine_id = record.get("wine_id")
        event_date = _parse_date(record.get("event_date"))
        event_type = EventType(record.get("event_type"))
        if event_type is EventType.ADD:
            self._acquire(
                wine_id,
                record.get("quantity"),
                record.get("acquisition_type"),
                price=record.get("price"),
                bought_at=record.get("bought_at"),
                event_date=event_date,
            )
            return
        corrects = record.get("corrects_event_id")
        if corrects is not None:
            if corrects not in replayed:
                raise NotFoundError("Drink event", corrects, wine_id=wine_id)
            self._correct(wine_id, replayed[corrects], record.get("error_quantity"), event_date)
            return
        stored, _ = self._consume(wine_id, record.get("quantity"), event_date)
        if isinstance(record.get("id"), int):
            replayed[record["id"]] = stored.id
        if record.get("error_quantity"):
            # error recorded on the drink itself becomes a correction event
            self._correct(wine_id, stored.id, record["error_quantity"], stored.event_date)

    def _import_stock(self, items: Iterable[Mapping[str, Any]], result: ImportResult) -> None:
        for item in items:
            quantity = item.get("inventory")
            if isinstance(quantity, int) and not isinstance(quantity, bool) and quantity <= 0:
                continue
            try:
                self._acquire(item.get("wine_id"), quantity, IMPORT_ACQUISITION)
            except (InvalidQuantityError, NotFoundError) as exc:
                result.errors.append(f"Failed to import inventory for wine {item.get('wine_id')}: {exc}")
                continue
            result.created += 1

    def _check_correction(self, history: History, event: LedgerEvent) -> None:
        original = next((item for item in history if item.id == event.corrects_event_id), None)
        if original is None or original.event_type != EventType.DRINK.value or original.quantity <= 0:
            raise NotFoundError("Drink event", event.corrects_event_id, wine_id=event.wine_id)
        if event.event_date < original.event_date:
            raise InvalidQuantityError(
                f"Correction dated {event.event_date.isoformat()} precedes drink event {original.id} "
                f"dated {original.event_date.isoformat()}",
                quantity=event.error_quantity,
            )
        corrected = sum(
            item.error_quantity or 0 for item in history if item.corrects_event_id == original.id
        )
        if corrected + (event.error_quantity or 0) > original.quantity:
            raise InvalidQuantityError(
                f"Corrections to event {original.id} would return {corrected + event.error_quantity} "
                f"bottles but only {original.quantity} were recorded as drunk",
                quantity=event.error_quantity,
            )

    def _simulate(self, history: History, event: LedgerEvent, requested: int) -> None:
        try:
            summarize((*history, event))
        except NegativeStockError as exc:
            available = available_at(history, event.event_date)
            log.warning(
                "Rejected {} event for wine {}: requested {}, available {} ({})",
                event.event_type,
                event.wine_id,
                requested,
                available,
                exc,
            )
            raise InsufficientStockError(event.wine_id, requested, available) from exc

    def _append(
        self,
        event: LedgerEvent,
        *,
        requested: int,
        check: Optional[Callable[[History], None]] = None,
    ) -> Appended:
        attempts = self._settings.append_retries + 1
        with self._locks.hold(event.wine_id):
            for attempt in range(1, attempts + 1):
                history = self._store.list_by_wine(event.wine_id)
                version = max((item.version or 0 for item in history), default=0)
                if check is not None:
                    check(history)
                self._simulate(history, event, requested)
                try:
                    stored = self._store.append(event, expected_version=version)
                except ConcurrencyError as exc:
                    log.warning("Retrying append for wine {} (attempt {}): {}", event.wine_id, attempt, exc)
                    continue
                summary = summarize((*history, stored))
                log.info(
                    "Recorded {} event {} for wine {}; stock now {}",
                    stored.event_type,
                    stored.id,
                    stored.wine_id,
                    summary.current_stock,
                )
                return stored, summary
        raise StorageError(f"Could not append event for wine {event.wine_id} after {attempts} attempts")
