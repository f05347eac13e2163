"""
In-Memory Storage Implementation

Holds the whole ledger in dicts keyed by id. Used directly for tests
and throwaway sessions, and as the working cache of the JSON file
backend, which only adds a `_flush` step after each mutation.

Returned models are copies, so callers can never mutate stored state
behind the backend's back.

Inside `batch()` mutations only mark the store dirty; one flush runs
when the outermost batch exits.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import UUID

from ceasflow.models.audit import AuditEvent
from ceasflow.models.ledger import Category, Transaction, Wallet
from ceasflow.services.storage.interface import (
    AuditStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    NotFoundError,
    TransactionStorageInterface,
    WalletStorageInterface,
)


class InMemoryLedgerStorage(
    CategoryStorageInterface,
    WalletStorageInterface,
    TransactionStorageInterface,
    AuditStorageInterface,
):
    """All four storage interfaces over plain dicts."""

    def __init__(self):
        self._categories: dict[str, Category] = {}
        self._wallets: dict[UUID, Wallet] = {}
        self._transactions: dict[UUID, Transaction] = {}
        self._audit: list[AuditEvent] = []
        self._batch_depth = 0
        self._dirty = False

    async def _ensure_loaded(self) -> None:
        """Hook for backends that fill the dicts lazily."""
        return None

    async def _persist(self) -> None:
        """Called after every mutation; defers to the batch when one is open."""
        if self._batch_depth:
            self._dirty = True
            return
        await self._flush()

    async def _flush(self) -> None:
        """Hook for backends that write the dicts somewhere durable."""
        return None

    @asynccontextmanager
    async def batch(self) -> AsyncIterator["InMemoryLedgerStorage"]:
        """
        Group many mutations into one durable write.

        The flush runs even when the block raises, so whatever was
        applied before the error is kept. Nested batches join the
        outermost one.
        """
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._dirty = False
                await self._flush()

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def list_categories(self) -> list[Category]:
        await self._ensure_loaded()
        return [c.model_copy(deep=True) for c in self._categories.values()]

    async def put_category(self, category: Category) -> None:
        await self._ensure_loaded()
        self._categories[category.id] = self._stored_category(category)
        await self._persist()

    async def put_categories(self, categories: list[Category]) -> None:
        await self._ensure_loaded()
        for category in categories:
            self._categories[category.id] = self._stored_category(category)
        await self._persist()

    async def delete_category(self, category_id: str) -> bool:
        await self._ensure_loaded()
        if self._categories.pop(category_id, None) is None:
            return False
        await self._persist()
        return True

    @staticmethod
    def _stored_category(category: Category) -> Category:
        """Drop display-only appearance before storing."""
        return Category.model_validate(category.to_storage_dict())

    # -------------------------------------------------------------------------
    # Wallets
    # -------------------------------------------------------------------------

    async def list_wallets(self) -> list[Wallet]:
        await self._ensure_loaded()
        wallets = [w.model_copy(deep=True) for w in self._wallets.values()]
        wallets.sort(key=lambda w: w.created_at)
        return wallets

    async def save_wallet(self, wallet: Wallet) -> None:
        await self._ensure_loaded()
        if wallet.id in self._wallets:
            raise DuplicateError(f"Wallet already exists: {wallet.id}")
        self._wallets[wallet.id] = wallet.model_copy(deep=True)
        await self._persist()

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def list_transactions(self) -> list[Transaction]:
        await self._ensure_loaded()
        return [t.model_copy(deep=True) for t in self._transactions.values()]

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        await self._ensure_loaded()
        transaction = self._transactions.get(transaction_id)
        return transaction.model_copy(deep=True) if transaction else None

    async def save_transaction(self, transaction: Transaction) -> None:
        await self._ensure_loaded()
        if transaction.id in self._transactions:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        self._transactions[transaction.id] = transaction.model_copy(deep=True)
        await self._persist()

    async def update_transaction(self, transaction: Transaction) -> None:
        await self._ensure_loaded()
        if transaction.id not in self._transactions:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        self._transactions[transaction.id] = transaction.model_copy(deep=True)
        await self._persist()

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        await self._ensure_loaded()
        if self._transactions.pop(transaction_id, None) is None:
            return False
        await self._persist()
        return True

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    async def append_event(self, event: AuditEvent) -> bool:
        await self._ensure_loaded()
        self._audit.append(event)
        await self._persist()
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        await self._ensure_loaded()
        events = sorted(self._audit, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
