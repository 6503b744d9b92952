import random
from datetime import datetime, timedelta

import pytest

from weinkeller.aggregate import StockSummary, available_at, balance_history, order_events, summarize
from weinkeller.errors import NegativeStockError
from weinkeller.events import LedgerEvent

START = datetime(2024, 1, 1, 12, 0, 0)


def add(event_id, quantity, days=0):
    return LedgerEvent(wine_id=1, event_type="add", quantity=quantity, event_date=START + timedelta(days=days), id=event_id)


def drink(event_id, quantity, days=0, error_quantity=None, corrects=None):
    return LedgerEvent(
        wine_id=1,
        event_type="drink",
        quantity=quantity,
        error_quantity=error_quantity,
        corrects_event_id=corrects,
        event_date=START + timedelta(days=days),
        id=event_id,
    )


def test_empty_history_gives_zero_summary() -> None:
    assert summarize([]) == StockSummary(current_stock=0, total_acquired=0, total_consumed=0, last_event_at=None)


def test_add_drink_and_correction() -> None:
    events = [add(1, 12), drink(2, 5, days=1), drink(3, 0, days=2, error_quantity=2, corrects=2)]

    summary = summarize(events)

    assert summary.current_stock == 9
    assert summary.total_acquired == 12
    assert summary.total_consumed == 5
    assert summary.last_event_at == START + timedelta(days=2)


def test_negative_correction_reduces_stock() -> None:
    events = [add(1, 6), drink(2, 2, days=1), drink(3, 0, days=2, error_quantity=-3, corrects=2)]

    assert summarize(events).current_stock == 1


def test_negative_prefix_names_offending_event() -> None:
    events = [add(1, 3, days=2), drink(2, 2, days=1)]

    with pytest.raises(NegativeStockError) as excinfo:
        summarize(events)

    assert excinfo.value.event_id == 2
    assert excinfo.value.balance == -2


def test_same_date_falls_back_to_id() -> None:
    first = add(7, 1)
    second = drink(3, 1)

    assert [e.id for e in order_events([first, second])] == [3, 7]
    with pytest.raises(NegativeStockError):
        summarize([first, second])
    for _ in range(5):
        assert [e.id for e in order_events([second, first])] == [3, 7]


def test_unsaved_event_sorts_last_on_its_date() -> None:
    pending = drink(None, 1)
    stored = add(5, 1)

    assert order_events([pending, stored]) == [stored, pending]
    assert summarize([pending, stored]).current_stock == 0


def test_balance_history_tracks_running_balance() -> None:
    points = balance_history([add(1, 4), drink(2, 1, days=1), add(3, 2, days=2)])

    assert [(p.event_id, p.delta, p.balance) for p in points] == [(1, 4, 4), (2, -1, 3), (3, 2, 5)]


def test_available_at_respects_later_balances() -> None:
    events = [add(1, 10), drink(2, 8, days=4)]

    assert available_at(events, START + timedelta(days=2)) == 2
    assert available_at(events, START + timedelta(days=5)) == 2
    assert available_at(events, START - timedelta(days=1)) == 0


def test_replay_matches_naive_totals() -> None:
    rng = random.Random(20240101)
    for _ in range(50):
        events = []
        balance = 0
        for index in range(1, 40):
            roll = rng.random()
            if roll < 0.4 or balance == 0:
                quantity = rng.randint(1, 12)
                events.append(add(index, quantity, days=index))
                balance += quantity
            elif roll < 0.8:
                quantity = rng.randint(1, balance)
                events.append(drink(index, quantity, days=index))
                balance -= quantity
            else:
                correction = rng.randint(-balance, 3)
                events.append(drink(index, 0, days=index, error_quantity=correction, corrects=index - 1))
                balance += correction

        shuffled = events[:]
        rng.shuffle(shuffled)
        expected = (
            sum(e.quantity for e in events if e.event_type == "add")
            - sum(e.quantity for e in events if e.event_type == "drink")
            + sum(e.error_quantity or 0 for e in events)
        )
        summary = summarize(shuffled)
        assert summary.current_stock == expected == balance
        assert summarize(shuffled) == summary
