"""
Spreadsheet Models

Progress reporting, results, and the intermediate form a wallet sheet
is parsed into before anything touches the ledger.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, Field

from ceasflow.models.ledger import TransactionType, WalletType


class ProgressStatus(str, Enum):
    """
    Named stages of an export or import.

    Export walks preparing → writing → finalizing, import walks
    reading → parsing → importing. Both end in complete or error.
    """
    IDLE = "idle"
    PREPARING = "preparing"
    WRITING = "writing"
    FINALIZING = "finalizing"
    READING = "reading"
    PARSING = "parsing"
    IMPORTING = "importing"
    COMPLETE = "complete"
    ERROR = "error"


class OperationProgress(BaseModel):
    """One progress report."""

    status: ProgressStatus
    progress: int = Field(..., ge=0, le=100)
    message: str = ""


ProgressCallback = Callable[[OperationProgress], None]


class ImportResult(BaseModel):
    """Counts of what an import created."""

    wallets_created: int = Field(default=0, ge=0)
    transactions_imported: int = Field(default=0, ge=0)


class ExportResult(BaseModel):
    """A finished workbook, ready to hand to the user."""

    filename: str
    content: bytes
    exported_at: datetime
    sheet_names: list[str] = Field(default_factory=list)


class ParsedTransaction(BaseModel):
    """One table row of a wallet sheet."""

    date: datetime
    type: TransactionType
    category_icon: str = ""
    category_name: str
    amount: Decimal = Field(..., gt=0)
    note: Optional[str] = None


class ParsedWallet(BaseModel):
    """A wallet sheet, parsed but not yet imported."""

    sheet_name: str
    name: str = Field(..., min_length=1)
    icon: str = ""
    type: WalletType = WalletType.CASH
    initial_balance: Decimal = Decimal("0")
    transactions: list[ParsedTransaction] = Field(default_factory=list)
