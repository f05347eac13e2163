"""
Core Data Models for CeasFlow

These models define the strict schemas for all ledger data.
They are designed to:
1. Enforce the ledger invariants at construction time
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Money is Decimal everywhere. Sign is carried by the
transaction type, never by the stored amount. Balances and summaries
are derived models that are never persisted.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)

NAME_MAX_LENGTH = 100
NOTE_MAX_LENGTH = 1000


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Direction of money flow.

    Also used as the category type: every category belongs to
    exactly one side of the ledger.
    """
    EXPENSE = "expense"
    INCOME = "income"


class WalletType(str, Enum):
    """Supported wallet kinds."""
    CASH = "cash"
    BANK = "bank"
    CREDIT_CARD = "credit_card"
    E_WALLET = "e_wallet"
    SAVINGS = "savings"
    DAILY_EXPENSE = "daily_expense"


# =============================================================================
# CATEGORY
# =============================================================================

class CategoryInput(BaseModel):
    """What a caller supplies to create a category."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    type: TransactionType
    icon: Optional[str] = Field(
        default=None,
        description="Custom icon; overrides the default appearance"
    )


class Category(BaseModel):
    """
    An expense or income category.

    Only id, name, type, order, the custom icon and notes are persisted.
    display_icon and color are re-attached from the built-in table
    every time the catalog loads.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: f"cat-{uuid4().hex}",
        min_length=1,
        description="Stable unique identifier"
    )
    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    type: TransactionType
    order: int = Field(
        default=0,
        ge=0,
        description="Dense position within its type (0..n-1)"
    )
    icon: Optional[str] = Field(
        default=None,
        description="Custom icon chosen by the user"
    )
    notes: list[str] = Field(
        default_factory=list,
        description="Recent notes, oldest first"
    )

    # Display-only, never stored
    display_icon: Optional[str] = None
    color: Optional[str] = None

    @field_validator('notes')
    @classmethod
    def reject_duplicate_notes(cls, v: list[str]) -> list[str]:
        """Notes form a set with insertion order."""
        if len(set(v)) != len(v):
            raise ValueError("Category notes must not contain duplicates")
        return v

    @property
    def effective_icon(self) -> str:
        """Icon to show: custom first, then the enriched default."""
        return self.icon or self.display_icon or ""

    def to_storage_dict(self) -> dict:
        """Fields that go to the backing store."""
        return self.model_dump(
            mode="json",
            exclude={"display_icon", "color"},
        )


# =============================================================================
# WALLET
# =============================================================================

class WalletInput(BaseModel):
    """
    A wallet definition without identity.

    DESIGN DECISION: There is no balance field. The current balance is
    always derived from the transaction ledger.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    type: WalletType = WalletType.CASH
    icon: str = Field(default="💰")
    color: str = Field(default="#6366f1")
    currency: str = Field(default="THB", min_length=3, max_length=3)
    initial_balance: Decimal = Field(
        default=Decimal("0"),
        description="Opening balance; may be negative for liabilities"
    )
    is_asset: bool = True


class Wallet(WalletInput):
    """A persisted wallet."""

    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=datetime.now)


# =============================================================================
# TRANSACTION
# =============================================================================

class TransactionInput(BaseModel):
    """What a caller supplies to record a transaction."""
    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Always positive; the type carries the sign"
    )
    category_id: str = Field(..., min_length=1)
    wallet_id: UUID
    date: datetime
    note: Optional[str] = Field(default=None, max_length=NOTE_MAX_LENGTH)

    @field_validator('note')
    @classmethod
    def blank_note_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class Transaction(TransactionInput):
    """A persisted transaction."""

    id: UUID = Field(default_factory=uuid4)


class TransactionPatch(BaseModel):
    """Partial update for a transaction. Unset fields are left alone."""
    model_config = ConfigDict(str_strip_whitespace=True)

    type: Optional[TransactionType] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    category_id: Optional[str] = Field(default=None, min_length=1)
    wallet_id: Optional[UUID] = None
    date: Optional[datetime] = None
    note: Optional[str] = Field(default=None, max_length=NOTE_MAX_LENGTH)


class TransactionWithCategory(BaseModel):
    """
    Transient display join.

    Built at read time only. category is None when the transaction
    points at a category that has since been deleted.
    """

    transaction: Transaction
    category: Optional[Category] = None


# =============================================================================
# DERIVED AGGREGATES (never persisted)
# =============================================================================

class LedgerFilter(BaseModel):
    """The period/wallet selection a view is computed for."""

    month: date = Field(
        ...,
        description="Any date inside the selected month"
    )
    day: Optional[int] = Field(default=None, ge=1, le=31)
    wallet_id: Optional[UUID] = None


class DailySummary(BaseModel):
    """All transactions of one calendar day with subtotals."""

    day: date
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    transactions: list[Transaction] = Field(default_factory=list)


class MonthlySummary(BaseModel):
    """Income/expense totals of the filtered set."""

    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")

    @property
    def balance(self) -> Decimal:
        """Computed on demand, never stored."""
        return self.income - self.expense


class WalletBalance(BaseModel):
    """All-time balance of one wallet."""

    wallet_id: UUID
    initial_balance: Decimal
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")

    @computed_field
    @property
    def balance(self) -> Decimal:
        return self.initial_balance + self.income - self.expense


class LedgerSnapshot(BaseModel):
    """Everything an export needs, captured at one point in time."""

    transactions: list[Transaction] = Field(default_factory=list)
    wallets: list[Wallet] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
