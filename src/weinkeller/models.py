"""Database models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base
from .timeutil import utcnow


class Wine(Base):
    """A catalog entry that inventory events can refer to."""

    __tablename__ = "wines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    producer: Mapped[str | None] = mapped_column(String(200), nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<Wine id={self.id} name={self.name!r} year={self.year}>"


class InventoryEvent(Base):
    """One immutable row of the per-wine inventory ledger."""

    __tablename__ = "wine_events"
    __table_args__ = (UniqueConstraint("wine_id", "version", name="uq_wine_events_wine_version"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wine_id: Mapped[int] = mapped_column(Integer, ForeignKey("wines.id"), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(16), nullable=False)
    acquisition_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[float | None] = mapped_column(Float, nullable=True)
    bought_at: Mapped[str | None] = mapped_column(String(200), nullable=True)
    event_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)
    error_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    corrects_event_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("wine_events.id"), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<InventoryEvent id={self.id} wine_id={self.wine_id} {self.event_type} qty={self.quantity}>"
