"""Database access helpers for the wine catalog."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import models, schemas


def list_wines(db: Session, *, skip: int = 0, limit: int = 50) -> list[models.Wine]:
    statement = select(models.Wine).order_by(models.Wine.id).offset(skip).limit(limit)
    return list(db.scalars(statement))


def get_wine(db: Session, wine_id: int) -> Optional[models.Wine]:
    return db.get(models.Wine, wine_id)


def get_wines(db: Session, wine_ids: list[int]) -> dict[int, models.Wine]:
    if not wine_ids:
        return {}
    statement = select(models.Wine).where(models.Wine.id.in_(wine_ids))
    return {wine.id: wine for wine in db.scalars(statement)}


def create_wine(db: Session, payload: schemas.WineCreate) -> models.Wine:
    wine = models.Wine(
        name=payload.name,
        producer=payload.producer,
        year=payload.year,
        type=payload.type,
    )
    db.add(wine)
    db.commit()
    db.refresh(wine)
    return wine
