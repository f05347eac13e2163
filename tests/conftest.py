"""Shared fixtures for the CeasFlow tests."""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from ceasflow.audit import AuditLogger
from ceasflow.models.ledger import Transaction, TransactionType, Wallet, WalletType
from ceasflow.services.storage import (
    InMemoryLedgerStorage,
    StorageConnectionError,
    StorageError,
)


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_logger(storage):
    return AuditLogger(storage)


@pytest.fixture
def make_wallet():
    def _make(name="Cash", initial_balance="0", **kwargs):
        return Wallet(name=name, initial_balance=Decimal(initial_balance), **kwargs)
    return _make


@pytest.fixture
def make_transaction():
    def _make(wallet_id=None, amount="100", tx_type=TransactionType.EXPENSE,
              category_id="exp-food", date=None, note=None):
        return Transaction(
            type=tx_type,
            amount=Decimal(amount),
            category_id=category_id,
            wallet_id=wallet_id or uuid4(),
            date=date or datetime(2024, 3, 15, 14, 30),
            note=note,
        )
    return _make


@pytest.fixture
def bank_wallet():
    return Wallet(
        name="กสิกร",
        type=WalletType.BANK,
        icon="🏦",
        initial_balance=Decimal("1000"),
    )


class FailingStorage(InMemoryLedgerStorage):
    """Backend whose writes always fail."""

    def __init__(self, fail_reads: bool = False):
        super().__init__()
        self.fail_reads = fail_reads

    async def _ensure_loaded(self) -> None:
        if self.fail_reads:
            raise StorageConnectionError("store unavailable")

    async def _persist(self) -> None:
        raise StorageError("disk full")


@pytest.fixture
def failing_storage():
    return FailingStorage()
