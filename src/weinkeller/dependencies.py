"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from .service import InventoryLedger


def get_ledger(request: Request) -> InventoryLedger:
    """Return the ledger service attached to the running application."""

    return request.app.state.ledger


def get_db(request: Request) -> Generator[Session, None, None]:
    """Provide a database session for FastAPI routes."""

    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
