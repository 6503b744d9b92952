import os
import tempfile
from collections.abc import Generator
from typing import Any

# keep the CLI and default engine away from the real home directory
os.environ.setdefault("WEINKELLER_DB", os.path.join(tempfile.mkdtemp(prefix="weinkeller-"), "test.db"))
os.environ.setdefault("WEINKELLER_LOG_LEVEL", "warning")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from weinkeller import crud, schemas
from weinkeller.app import create_app
from weinkeller.config import Settings
from weinkeller.database import create_db_engine, init_database
from weinkeller.service import InventoryLedger
from weinkeller.store import EventStore


@pytest.fixture(name="db_engine")
def db_engine_fixture(tmp_path) -> Generator[Any, None, None]:
    engine = create_db_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session_factory")
def session_factory_fixture(db_engine) -> sessionmaker:
    return sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture(name="settings")
def settings_fixture() -> Settings:
    return Settings(lock_timeout=5.0, append_retries=5)


@pytest.fixture(name="store")
def store_fixture(session_factory) -> EventStore:
    return EventStore(session_factory)


@pytest.fixture(name="ledger")
def ledger_fixture(session_factory, settings) -> InventoryLedger:
    return InventoryLedger(session_factory, settings=settings)


@pytest.fixture(name="make_wine")
def make_wine_fixture(session_factory):
    def _make(name: str = "Riesling Kabinett", **kwargs: Any) -> int:
        with session_factory() as db:
            wine = crud.create_wine(db, schemas.WineCreate(name=name, **kwargs))
            return wine.id

    return _make


@pytest.fixture(name="wine_id")
def wine_id_fixture(make_wine) -> int:
    return make_wine("Spätburgunder", producer="Weingut Huber", year=2019, type="red")


@pytest.fixture(name="client")
def client_fixture(session_factory, ledger) -> Generator[TestClient, None, None]:
    app = create_app(session_factory, ledger)
    with TestClient(app) as client:
        yield client
