"""Pydantic schemas for API payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .database import MAX_INTEGER


class WineBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    producer: Optional[str] = Field(None, max_length=200)
    year: Optional[int] = Field(None, ge=1000, le=9999)
    type: Optional[str] = Field(None, max_length=64)


class WineCreate(WineBase):
    pass


class WineRead(WineBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime


class AcquisitionCreate(BaseModel):
    quantity: int = Field(..., le=MAX_INTEGER)
    acquisition_type: Optional[str] = Field(None, max_length=64)
    price: Optional[float] = Field(None, ge=0)
    bought_at: Optional[str] = Field(None, max_length=200)
    event_date: Optional[datetime] = None


class ConsumptionCreate(BaseModel):
    quantity: int = Field(..., le=MAX_INTEGER)
    event_date: Optional[datetime] = None


class CorrectionCreate(BaseModel):
    original_drink_event_id: int = Field(..., ge=1, le=MAX_INTEGER)
    error_quantity: int = Field(..., ge=-MAX_INTEGER, le=MAX_INTEGER)
    event_date: Optional[datetime] = None


class StockSummaryRead(BaseModel):
    """Stock derived from a wine's ledger."""

    model_config = ConfigDict(from_attributes=True)

    wine_id: int
    current_stock: int
    total_acquired: int
    total_consumed: int
    last_event_at: Optional[datetime] = None


class EventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    wine_id: int
    event_type: str
    acquisition_type: Optional[str] = None
    quantity: int
    price: Optional[float] = None
    bought_at: Optional[str] = None
    event_date: datetime
    error_quantity: Optional[int] = None
    corrects_event_id: Optional[int] = None


class BalancePointRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event_id: int
    event_date: datetime
    delta: int
    balance: int


class InventoryItemRead(BaseModel):
    wine_id: int
    name: str
    producer: Optional[str] = None
    year: Optional[int] = None
    type: Optional[str] = None
    current_stock: int
    last_event_at: Optional[datetime] = None


class EventRecord(BaseModel):
    """An exported inventory event."""

    id: Optional[int] = None
    wine_id: int
    event_type: Literal["add", "drink"]
    acquisition_type: Optional[str] = None
    quantity: int
    price: Optional[float] = None
    bought_at: Optional[str] = None
    event_date: Optional[datetime] = None
    error_quantity: Optional[int] = None
    corrects_event_id: Optional[int] = None


class StockLevel(BaseModel):
    wine_id: int
    name: Optional[str] = None
    inventory: int


class InventoryExport(BaseModel):
    """Ledger export; also accepted as import payload."""

    exported_at: Optional[datetime] = None
    events: list[EventRecord] = Field(default_factory=list)
    inventory: list[StockLevel] = Field(default_factory=list)


class ImportResultRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    created: int
    errors: list[str]
