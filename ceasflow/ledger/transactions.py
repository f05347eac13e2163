"""
Transaction Ledger

Owns the add/update/delete lifecycle of transactions.

DESIGN DECISION: Unlike categories and wallets, transaction mutations
are persistence-first. The store is written before the in-memory list
changes and StorageError propagates, so the ledger never shows an entry
that is not on disk.
"""

from typing import Iterable, Optional, Union
from uuid import UUID

import structlog

from ceasflow.audit import AuditLogger
from ceasflow.events import (
    TRANSACTION_ADDED,
    TRANSACTION_DELETED,
    TRANSACTION_UPDATED,
    Observable,
)
from ceasflow.models.audit import AuditEventBuilder, AuditEventType
from ceasflow.models.ledger import Transaction, TransactionInput, TransactionPatch
from ceasflow.services.storage import (
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)

logger = structlog.get_logger(__name__)


class TransactionNotFoundError(NotFoundError):
    """No transaction with the given id."""
    pass


class TransactionLedger(Observable):
    """
    In-memory list of transactions mirrored to storage.

    Also tracks which ids were added most recently, so a view can
    highlight them until it calls clear_new_transaction_ids().
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__()
        self._storage = storage
        self._audit_logger = audit_logger
        self._transactions: list[Transaction] = []
        self._new_ids: list[UUID] = []
        self._is_loading = False
        self._is_initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def transactions(self) -> list[Transaction]:
        """All transactions in insertion order."""
        return [t.model_copy(deep=True) for t in self._transactions]

    @property
    def new_transaction_ids(self) -> list[UUID]:
        return list(self._new_ids)

    def clear_new_transaction_ids(self, ids: Optional[Iterable[UUID]] = None) -> None:
        """Forget the given ids, or all of them."""
        if ids is None:
            self._new_ids.clear()
        else:
            drop = set(ids)
            self._new_ids = [i for i in self._new_ids if i not in drop]

    def get_by_id(self, transaction_id: UUID) -> Optional[Transaction]:
        index = self._index_of(transaction_id)
        if index is None:
            return None
        return self._transactions[index].model_copy(deep=True)

    async def load(self) -> None:
        """Load transactions once; later calls are no-ops."""
        if self._is_loading or self._is_initialized:
            return

        self._is_loading = True
        try:
            self._transactions = await self._storage.list_transactions()
        except StorageError as e:
            logger.error("transaction_load_failed", error=str(e))
            self._transactions = []
        finally:
            self._is_loading = False

        self._is_initialized = True

    async def add(self, data: TransactionInput) -> Transaction:
        """
        Record a new transaction.

        Raises:
            StorageError: If the write fails; nothing is added in that case
        """
        transaction = Transaction.model_validate(data.model_dump())
        await self._storage.save_transaction(transaction)

        self._transactions.append(transaction)
        self._new_ids.append(transaction.id)
        self._notify(TRANSACTION_ADDED, transaction_id=transaction.id)
        await self._audit(
            AuditEventType.TRANSACTION_ADDED,
            transaction.id,
            {"type": transaction.type.value, "amount": str(transaction.amount)},
        )
        return transaction.model_copy(deep=True)

    async def update(
        self,
        transaction_id: UUID,
        patch: Union[TransactionPatch, dict],
    ) -> Transaction:
        """
        Change any field except the id.

        Raises:
            TransactionNotFoundError: If the id is unknown
            ValueError: If the patched transaction is invalid
            StorageError: If the write fails
        """
        if not isinstance(patch, TransactionPatch):
            patch = TransactionPatch.model_validate(patch)

        index = self._index_of(transaction_id)
        if index is None:
            raise TransactionNotFoundError(f"Transaction not found: {transaction_id}")

        current = self._transactions[index]
        changes = patch.model_dump(exclude_unset=True)
        updated = Transaction.model_validate(
            {**current.model_dump(), **changes, "id": current.id}
        )
        await self._storage.update_transaction(updated)

        self._transactions[index] = updated
        self._notify(TRANSACTION_UPDATED, transaction_id=updated.id)
        await self._audit(
            AuditEventType.TRANSACTION_UPDATED,
            updated.id,
            {"fields": sorted(changes)},
        )
        return updated.model_copy(deep=True)

    async def delete(self, transaction_id: UUID) -> None:
        """
        Remove a transaction for good.

        Raises:
            TransactionNotFoundError: If the id is unknown
            StorageError: If the delete fails
        """
        index = self._index_of(transaction_id)
        if index is None:
            raise TransactionNotFoundError(f"Transaction not found: {transaction_id}")

        await self._storage.delete_transaction(transaction_id)

        del self._transactions[index]
        self.clear_new_transaction_ids([transaction_id])
        self._notify(TRANSACTION_DELETED, transaction_id=transaction_id)
        await self._audit(AuditEventType.TRANSACTION_DELETED, transaction_id)

    def _index_of(self, transaction_id: UUID) -> Optional[int]:
        for index, transaction in enumerate(self._transactions):
            if transaction.id == transaction_id:
                return index
        return None

    async def _audit(
        self,
        event_type: AuditEventType,
        transaction_id: UUID,
        details: Optional[dict] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.transaction_changed(event_type, transaction_id, details)
            )
