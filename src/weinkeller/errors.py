"""Exceptions raised by the inventory ledger."""

from __future__ import annotations

from typing import Optional


class LedgerError(RuntimeError):
    """Base class for errors surfaced to ledger callers."""


class InvalidQuantityError(LedgerError):
    """Raised when a requested quantity is not acceptable input."""

    def __init__(self, message: str, *, quantity: object = None) -> None:
        self.quantity = quantity
        super().__init__(message)


class InsufficientStockError(LedgerError):
    """Raised when an event would drive a wine's stock below zero."""

    def __init__(self, wine_id: int, requested: int, available: int) -> None:
        self.wine_id = wine_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient inventory for wine {wine_id}: requested {requested}, available {available}"
        )


class NotFoundError(LedgerError):
    """Raised when a referenced wine or event does not exist."""

    def __init__(self, resource: str, identifier: int, *, wine_id: Optional[int] = None) -> None:
        self.resource = resource
        self.identifier = identifier
        self.wine_id = wine_id
        super().__init__(f"{resource} {identifier} not found")


class StorageError(LedgerError):
    """Raised when the durability layer fails or times out."""


class ConcurrencyError(StorageError):
    """Raised when another writer appended to the same wine first."""

    def __init__(self, wine_id: int, expected_version: int, actual_version: int) -> None:
        self.wine_id = wine_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Wine {wine_id} ledger moved from version {expected_version} to {actual_version}"
        )


class NegativeStockError(LedgerError):
    """Raised by the aggregator when a prefix of the ledger goes negative."""

    def __init__(self, event_id: Optional[int], balance: int, previous_balance: int) -> None:
        self.event_id = event_id
        self.balance = balance
        self.previous_balance = previous_balance
        label = "pending event" if event_id is None else f"event {event_id}"
        super().__init__(f"Stock would drop to {balance} at {label}")


__all__ = [
    "ConcurrencyError",
    "InsufficientStockError",
    "InvalidQuantityError",
    "LedgerError",
    "NegativeStockError",
    "NotFoundError",
    "StorageError",
]
