"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger services free of file/database details
2. Use in-memory storage for testing
3. Swap the local JSON file for a database later

The interface is intentionally simple - we're not building a full ORM.
Each ledger service owns exactly one of these interfaces.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from ceasflow.models.audit import AuditEvent
from ceasflow.models.ledger import Category, Transaction, Wallet


class CategoryStorageInterface(ABC):
    """Persistence for the category catalog."""

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        """
        Load every stored category.

        Returns:
            Categories in storage order (callers sort by `order`)

        Raises:
            StorageError: If the store cannot be read
        """
        pass

    @abstractmethod
    async def put_category(self, category: Category) -> None:
        """
        Insert or replace one category, keyed by id.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def put_categories(self, categories: list[Category]) -> None:
        """
        Insert or replace many categories in one write.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_category(self, category_id: str) -> bool:
        """
        Delete a category by id.

        Returns:
            True if something was deleted
        """
        pass


class WalletStorageInterface(ABC):
    """Persistence for the wallet registry."""

    @abstractmethod
    async def list_wallets(self) -> list[Wallet]:
        """Load every stored wallet, oldest first."""
        pass

    @abstractmethod
    async def save_wallet(self, wallet: Wallet) -> None:
        """
        Save a new wallet.

        Raises:
            DuplicateError: If the id already exists
            StorageError: If the write fails
        """
        pass


class TransactionStorageInterface(ABC):
    """Persistence for the transaction ledger."""

    @abstractmethod
    async def list_transactions(self) -> list[Transaction]:
        """Load every stored transaction in insertion order."""
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        """
        Retrieve a transaction by id.

        Returns:
            The transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> None:
        """
        Save a new transaction.

        Raises:
            DuplicateError: If the id already exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> None:
        """
        Replace an existing transaction.

        Raises:
            NotFoundError: If the transaction doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: UUID) -> bool:
        """
        Delete a transaction by id.

        Returns:
            True if something was deleted
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not open the storage backend."""
    pass
