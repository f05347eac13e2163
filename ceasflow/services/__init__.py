"""Services package."""

from ceasflow.services.storage import (
    AuditStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    InMemoryLedgerStorage,
    JsonFileLedgerStorage,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    TransactionStorageInterface,
    WalletStorageInterface,
)

__all__ = [
    "AuditStorageInterface",
    "CategoryStorageInterface",
    "DuplicateError",
    "InMemoryLedgerStorage",
    "JsonFileLedgerStorage",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    "TransactionStorageInterface",
    "WalletStorageInterface",
]
