"""Ledger services: categories, wallets and transactions."""

from ceasflow.ledger.categories import CategoryCatalog
from ceasflow.ledger.defaults import default_categories, enrich_category
from ceasflow.ledger.transactions import TransactionLedger, TransactionNotFoundError
from ceasflow.ledger.wallets import WalletRegistry

__all__ = [
    "CategoryCatalog",
    "TransactionLedger",
    "TransactionNotFoundError",
    "WalletRegistry",
    "default_categories",
    "enrich_category",
]
