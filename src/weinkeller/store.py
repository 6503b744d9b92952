"""Append-only persistence of inventory events."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from . import models
from .database import SessionLocal, get_engine, session_scope
from .errors import ConcurrencyError, StorageError
from .events import LedgerEvent
from .logging import get_logger
from .timeutil import utcnow

log = get_logger(__name__)


def _to_event(row: models.InventoryEvent) -> LedgerEvent:
    return LedgerEvent(
        id=row.id,
        wine_id=row.wine_id,
        event_type=row.event_type,
        acquisition_type=row.acquisition_type,
        quantity=row.quantity,
        price=row.price,
        bought_at=row.bought_at,
        event_date=row.event_date,
        error_quantity=row.error_quantity,
        corrects_event_id=row.corrects_event_id,
        version=row.version,
        recorded_at=row.recorded_at,
    )


def _latest_version(session: Session, wine_id: int) -> int:
    statement = select(func.coalesce(func.max(models.InventoryEvent.version), 0)).where(
        models.InventoryEvent.wine_id == wine_id
    )
    return int(session.scalar(statement) or 0)


class EventStore:
    """Stores :class:`LedgerEvent` rows; never interprets them."""

    def __init__(self, session_factory: Optional[sessionmaker] = None) -> None:
        if session_factory is None:
            get_engine()
            session_factory = SessionLocal
        self._session_factory = session_factory

    def append(self, event: LedgerEvent, *, expected_version: Optional[int] = None) -> LedgerEvent:
        """Persist *event* and return it with id, version and storage time set.

        When *expected_version* is given the append only succeeds if the
        wine's ledger is still at that version.
        """

        if event.id is not None:
            raise ValueError("Event has already been stored")

        next_version = 0
        try:
            with session_scope(self._session_factory) as session:
                current = _latest_version(session, event.wine_id)
                if expected_version is not None and current != expected_version:
                    raise ConcurrencyError(event.wine_id, expected_version, current)
                next_version = current + 1
                row = models.InventoryEvent(
                    wine_id=event.wine_id,
                    event_type=event.event_type,
                    acquisition_type=event.acquisition_type,
                    quantity=event.quantity,
                    price=event.price,
                    bought_at=event.bought_at,
                    event_date=event.event_date,
                    error_quantity=event.error_quantity,
                    corrects_event_id=event.corrects_event_id,
                    version=next_version,
                    recorded_at=utcnow(),
                )
                session.add(row)
                session.flush()
                stored = _to_event(row)
        except IntegrityError as exc:
            # another writer claimed the same (wine_id, version) slot
            raise ConcurrencyError(event.wine_id, next_version - 1, next_version) from exc
        except SQLAlchemyError as exc:
            log.error("Appending event for wine {} failed: {}", event.wine_id, exc)
            raise StorageError(f"Could not append event for wine {event.wine_id}") from exc
        return stored

    def list_by_wine(self, wine_id: int) -> tuple[LedgerEvent, ...]:
        """Return a snapshot of the wine's events in ledger order."""

        statement = (
            select(models.InventoryEvent)
            .where(models.InventoryEvent.wine_id == wine_id)
            .order_by(models.InventoryEvent.event_date, models.InventoryEvent.id)
        )
        try:
            with session_scope(self._session_factory) as session:
                return tuple(_to_event(row) for row in session.scalars(statement))
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not read events for wine {wine_id}") from exc

    def list_all(self, *, limit: int = 100, offset: int = 0) -> tuple[LedgerEvent, ...]:
        """Return events of every wine, newest first."""

        statement = (
            select(models.InventoryEvent)
            .order_by(models.InventoryEvent.event_date.desc(), models.InventoryEvent.id.desc())
            .offset(offset)
            .limit(limit)
        )
        try:
            with session_scope(self._session_factory) as session:
                return tuple(_to_event(row) for row in session.scalars(statement))
        except SQLAlchemyError as exc:
            raise StorageError("Could not read inventory history") from exc

    def wine_ids(self) -> list[int]:
        """Return the ids of wines that have at least one event."""

        statement = select(models.InventoryEvent.wine_id).distinct().order_by(models.InventoryEvent.wine_id)
        try:
            with session_scope(self._session_factory) as session:
                return list(session.scalars(statement))
        except SQLAlchemyError as exc:
            raise StorageError("Could not list wines with inventory") from exc
