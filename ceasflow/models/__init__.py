"""
Data Models Package

This package contains all Pydantic models used in CeasFlow.
All ledger data flowing through the system must conform to these schemas.
"""

from ceasflow.models.ledger import (
    Category,
    CategoryInput,
    DailySummary,
    LedgerFilter,
    LedgerSnapshot,
    MonthlySummary,
    Transaction,
    TransactionInput,
    TransactionPatch,
    TransactionType,
    TransactionWithCategory,
    Wallet,
    WalletBalance,
    WalletInput,
    WalletType,
)
from ceasflow.models.spreadsheet import (
    ExportResult,
    ImportResult,
    OperationProgress,
    ParsedTransaction,
    ParsedWallet,
    ProgressCallback,
    ProgressStatus,
)
from ceasflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Category",
    "CategoryInput",
    "DailySummary",
    "LedgerFilter",
    "LedgerSnapshot",
    "MonthlySummary",
    "Transaction",
    "TransactionInput",
    "TransactionPatch",
    "TransactionType",
    "TransactionWithCategory",
    "Wallet",
    "WalletBalance",
    "WalletInput",
    "WalletType",
    # Spreadsheet models
    "ExportResult",
    "ImportResult",
    "OperationProgress",
    "ParsedTransaction",
    "ParsedWallet",
    "ProgressCallback",
    "ProgressStatus",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
