import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from weinkeller.errors import InsufficientStockError, StorageError
from weinkeller.locks import KeyedLock
from weinkeller.service import InventoryLedger


def _race(calls):
    barrier = threading.Barrier(len(calls))

    def run(call):
        barrier.wait()
        try:
            return call()
        except InsufficientStockError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        return list(pool.map(run, calls))


def test_concurrent_drinks_on_one_wine(ledger: InventoryLedger, wine_id: int) -> None:
    ledger.record_acquisition(wine_id, 10, "purchase")

    results = _race([lambda: ledger.record_consumption(wine_id, 6)] * 2)

    failures = [r for r in results if isinstance(r, InsufficientStockError)]
    assert len(failures) == 1
    assert failures[0].available == 4
    assert ledger.get_stock(wine_id).current_stock == 4


def test_separate_writers_rely_on_version_check(session_factory, settings, wine_id: int) -> None:
    # two ledgers with their own locks behave like two processes
    first = InventoryLedger(session_factory, settings=settings)
    second = InventoryLedger(session_factory, settings=settings)
    first.record_acquisition(wine_id, 10, "purchase")

    results = _race(
        [lambda: first.record_consumption(wine_id, 6), lambda: second.record_consumption(wine_id, 6)]
    )

    assert sum(isinstance(r, InsufficientStockError) for r in results) == 1
    assert first.get_stock(wine_id).current_stock == 4


def test_different_wines_do_not_block(ledger: InventoryLedger, make_wine) -> None:
    wines = [make_wine(f"Wine {n}") for n in range(4)]
    for wine in wines:
        ledger.record_acquisition(wine, 3, "purchase")

    results = _race([lambda wine=wine: ledger.record_consumption(wine, 3) for wine in wines])

    assert all(r.current_stock == 0 for r in results)


def test_keyed_lock_times_out() -> None:
    locks = KeyedLock(timeout=0.05)
    with locks.hold(1):
        with pytest.raises(StorageError):
            with locks.hold(1):
                pass
        with locks.hold(2):
            assert len(locks) == 2
    assert len(locks) == 0
