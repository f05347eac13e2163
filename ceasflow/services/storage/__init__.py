"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Ships an in-memory backend and a local JSON file backend.
"""

from ceasflow.services.storage.interface import (
    AuditStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    TransactionStorageInterface,
    WalletStorageInterface,
)
from ceasflow.services.storage.memory import InMemoryLedgerStorage
from ceasflow.services.storage.json_file import JsonFileLedgerStorage

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "CategoryStorageInterface",
    "TransactionStorageInterface",
    "WalletStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # Implementations
    "InMemoryLedgerStorage",
    "JsonFileLedgerStorage",
]
