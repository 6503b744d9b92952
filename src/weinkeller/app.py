"""FastAPI application factory."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from . import __version__, crud, schemas
from .aggregate import StockSummary
from .config import get_settings
from .database import SessionLocal, init_database
from .dependencies import get_db, get_ledger
from .errors import InsufficientStockError, InvalidQuantityError, NotFoundError, StorageError
from .logging import get_logger
from .service import InventoryLedger

log = get_logger(__name__)


def _summary(wine_id: int, summary: StockSummary) -> schemas.StockSummaryRead:
    return schemas.StockSummaryRead(wine_id=wine_id, **summary.as_dict())


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(InvalidQuantityError)
    async def invalid_quantity(request: Request, exc: InvalidQuantityError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

    @app.exception_handler(InsufficientStockError)
    async def insufficient_stock(request: Request, exc: InsufficientStockError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "detail": str(exc),
                "wine_id": exc.wine_id,
                "requested": exc.requested,
                "available": exc.available,
            },
        )

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_failure(request: Request, exc: StorageError) -> JSONResponse:
        log.error("{} {} failed: {}", request.method, request.url.path, exc)
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})


def create_app(
    session_factory: Optional[sessionmaker] = None, ledger: Optional[InventoryLedger] = None
) -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    if session_factory is None:
        init_database()
        session_factory = SessionLocal

    app = FastAPI(title=settings.app_name, version=__version__)
    app.state.session_factory = session_factory
    app.state.ledger = ledger or InventoryLedger(session_factory, settings=settings)
    _register_error_handlers(app)

    @app.get("/health", tags=["system"])
    def health_check() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/wines", response_model=list[schemas.WineRead], tags=["wines"])
    def list_wines(
        skip: int = Query(0, ge=0),
        limit: int = Query(50, ge=1, le=1000),
        db: Session = Depends(get_db),
    ):
        return crud.list_wines(db, skip=skip, limit=limit)

    @app.post("/wines", response_model=schemas.WineRead, status_code=status.HTTP_201_CREATED, tags=["wines"])
    def create_wine(wine: schemas.WineCreate, db: Session = Depends(get_db)):
        return crud.create_wine(db, wine)

    @app.get("/wines/{wine_id}", response_model=schemas.WineRead, tags=["wines"])
    def get_wine(wine_id: int, db: Session = Depends(get_db)):
        wine = crud.get_wine(db, wine_id)
        if not wine:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Wine not found")
        return wine

    @app.post(
        "/wines/{wine_id}/inventory/add",
        response_model=schemas.StockSummaryRead,
        status_code=status.HTTP_201_CREATED,
        tags=["inventory"],
    )
    def add_to_inventory(
        wine_id: int, payload: schemas.AcquisitionCreate, ledger: InventoryLedger = Depends(get_ledger)
    ):
        summary = ledger.record_acquisition(
            wine_id,
            payload.quantity,
            payload.acquisition_type,
            price=payload.price,
            bought_at=payload.bought_at,
            event_date=payload.event_date,
        )
        return _summary(wine_id, summary)

    @app.post(
        "/wines/{wine_id}/inventory/drink",
        response_model=schemas.StockSummaryRead,
        status_code=status.HTTP_201_CREATED,
        tags=["inventory"],
    )
    def consume_wine(
        wine_id: int, payload: schemas.ConsumptionCreate, ledger: InventoryLedger = Depends(get_ledger)
    ):
        summary = ledger.record_consumption(wine_id, payload.quantity, event_date=payload.event_date)
        return _summary(wine_id, summary)

    @app.post(
        "/wines/{wine_id}/inventory/correct",
        response_model=schemas.StockSummaryRead,
        status_code=status.HTTP_201_CREATED,
        tags=["inventory"],
    )
    def correct_consumption(
        wine_id: int, payload: schemas.CorrectionCreate, ledger: InventoryLedger = Depends(get_ledger)
    ):
        summary = ledger.record_correction(
            wine_id, payload.original_drink_event_id, payload.error_quantity, event_date=payload.event_date
        )
        return _summary(wine_id, summary)

    @app.get("/wines/{wine_id}/inventory", response_model=schemas.StockSummaryRead, tags=["inventory"])
    def get_stock(wine_id: int, ledger: InventoryLedger = Depends(get_ledger)):
        return _summary(wine_id, ledger.get_stock(wine_id))

    @app.get("/wines/{wine_id}/inventory/events", response_model=list[schemas.EventRead], tags=["inventory"])
    def list_wine_events(wine_id: int, ledger: InventoryLedger = Depends(get_ledger)):
        return [schemas.EventRead.model_validate(event) for event in ledger.list_events(wine_id)]

    @app.get(
        "/wines/{wine_id}/inventory/history", response_model=list[schemas.BalancePointRead], tags=["inventory"]
    )
    def wine_balance_history(wine_id: int, ledger: InventoryLedger = Depends(get_ledger)):
        return [schemas.BalancePointRead.model_validate(point) for point in ledger.balance_history(wine_id)]

    @app.get("/inventory", response_model=list[schemas.InventoryItemRead], tags=["inventory"])
    def current_inventory(ledger: InventoryLedger = Depends(get_ledger)):
        return [
            schemas.InventoryItemRead(
                wine_id=item.wine_id,
                name=item.name,
                producer=item.producer,
                year=item.year,
                type=item.type,
                current_stock=item.stock.current_stock,
                last_event_at=item.stock.last_event_at,
            )
            for item in ledger.current_inventory()
        ]

    @app.get("/inventory/history", response_model=list[schemas.EventRead], tags=["inventory"])
    def inventory_history(
        limit: int = Query(100, ge=1, le=1000),
        offset: int = Query(0, ge=0),
        ledger: InventoryLedger = Depends(get_ledger),
    ):
        return [schemas.EventRead.model_validate(event) for event in ledger.history(limit=limit, offset=offset)]

    @app.get("/inventory/export", response_model=schemas.InventoryExport, tags=["inventory"])
    def export_inventory(ledger: InventoryLedger = Depends(get_ledger)):
        return ledger.export_inventory()

    @app.post("/inventory/import", response_model=schemas.ImportResultRead, tags=["inventory"])
    def import_inventory(payload: schemas.InventoryExport, ledger: InventoryLedger = Depends(get_ledger)):
        result = ledger.import_inventory(
            events=[record.model_dump() for record in payload.events],
            inventory=[item.model_dump() for item in payload.inventory],
        )
        return schemas.ImportResultRead.model_validate(result)

    return app
