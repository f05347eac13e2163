"""
Wallet Registry

Owns wallet definitions. Never stores a balance: balances are derived
from the transaction ledger by the aggregation engine.

The in-memory list is updated before the first await of `add`, so a
caller that checks names and then adds (as the importer does) cannot be
interleaved by another add on the same event loop.
"""

from typing import Optional
from uuid import UUID

import structlog

from ceasflow.audit import AuditLogger
from ceasflow.events import WALLETS_CHANGED, Observable
from ceasflow.models.audit import AuditEventBuilder
from ceasflow.models.ledger import Wallet, WalletInput
from ceasflow.services.storage import StorageError, WalletStorageInterface

logger = structlog.get_logger(__name__)


class WalletRegistry(Observable):
    """The wallets of one installation, oldest first."""

    def __init__(
        self,
        storage: WalletStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__()
        self._storage = storage
        self._audit_logger = audit_logger
        self._wallets: list[Wallet] = []
        self._is_loading = False
        self._is_initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def wallets(self) -> list[Wallet]:
        return [w.model_copy(deep=True) for w in self._wallets]

    def get_by_id(self, wallet_id: UUID) -> Optional[Wallet]:
        for wallet in self._wallets:
            if wallet.id == wallet_id:
                return wallet.model_copy(deep=True)
        return None

    def find_by_name(self, name: str) -> Optional[Wallet]:
        for wallet in self._wallets:
            if wallet.name == name:
                return wallet.model_copy(deep=True)
        return None

    async def load(self) -> None:
        """Load wallets once; later calls are no-ops."""
        if self._is_loading or self._is_initialized:
            return

        self._is_loading = True
        try:
            self._wallets = await self._storage.list_wallets()
        except StorageError as e:
            logger.error("wallet_load_failed", error=str(e))
            self._wallets = []
        finally:
            self._is_loading = False

        self._is_initialized = True
        self._notify(WALLETS_CHANGED, reason="loaded")

    async def add(
        self,
        data: WalletInput,
        correlation_id: Optional[UUID] = None,
    ) -> Wallet:
        """
        Create a wallet with a fresh id and creation time.

        Storage failures are logged, not raised; the wallet stays in memory.
        """
        wallet = Wallet.model_validate(data.model_dump())
        self._wallets.append(wallet)
        self._notify(WALLETS_CHANGED, reason="added", wallet_id=wallet.id)

        try:
            await self._storage.save_wallet(wallet)
        except StorageError as e:
            logger.error("wallet_persist_failed", wallet_id=str(wallet.id), error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_persistence_failed(
                    entity_type="wallet",
                    entity_id=str(wallet.id),
                    operation="add",
                    error_message=str(e),
                )
        else:
            if self._audit_logger:
                await self._audit_logger.log(
                    AuditEventBuilder.wallet_created(wallet.id, wallet.name, correlation_id)
                )

        return wallet.model_copy(deep=True)
