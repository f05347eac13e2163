"""
Aggregation Engine

DESIGN DECISION: Every function here is PURE.
They take a snapshot of transactions (and wallets/categories where
needed) plus a filter, and return freshly built summaries. Nothing is
cached or persisted; callers recompute on read.

All sums are Decimal, so the ratios computed from them by the alert
comparator are exact.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, NamedTuple, Optional, Sequence
from uuid import UUID

from ceasflow.models.ledger import (
    Category,
    DailySummary,
    LedgerFilter,
    MonthlySummary,
    Transaction,
    TransactionType,
    TransactionWithCategory,
    Wallet,
    WalletBalance,
)

ZERO = Decimal("0")


class MonthGroup(NamedTuple):
    """Transactions of one calendar month, oldest first."""
    month: date
    income: Decimal
    expense: Decimal
    transactions: list[Transaction]

    @property
    def net(self) -> Decimal:
        return self.income - self.expense


class CategoryGroup(NamedTuple):
    """Transactions of one category id, oldest first."""
    category_id: str
    type: TransactionType
    category: Optional[Category]
    total: Decimal
    transactions: list[Transaction]


def in_month(moment: datetime, month: date) -> bool:
    return moment.year == month.year and moment.month == month.month


def filter_transactions(
    transactions: Iterable[Transaction],
    ledger_filter: LedgerFilter,
) -> list[Transaction]:
    """Transactions inside the filter's month, day and wallet."""
    result = []
    for tx in transactions:
        if not in_month(tx.date, ledger_filter.month):
            continue
        if ledger_filter.day is not None and tx.date.day != ledger_filter.day:
            continue
        if ledger_filter.wallet_id is not None and tx.wallet_id != ledger_filter.wallet_id:
            continue
        result.append(tx)
    return result


def sum_by_type(transactions: Iterable[Transaction]) -> tuple[Decimal, Decimal]:
    """(income, expense) totals."""
    income = ZERO
    expense = ZERO
    for tx in transactions:
        if tx.type == TransactionType.INCOME:
            income += tx.amount
        else:
            expense += tx.amount
    return income, expense


def group_by_day(
    transactions: Iterable[Transaction],
    ledger_filter: Optional[LedgerFilter] = None,
) -> list[DailySummary]:
    """
    Partition transactions by calendar day.

    Days come most recent first. Inside a day, later times come first;
    equal timestamps keep their insertion order.
    """
    if ledger_filter is not None:
        transactions = filter_transactions(transactions, ledger_filter)

    by_day: dict[date, list[Transaction]] = {}
    for tx in transactions:
        by_day.setdefault(tx.date.date(), []).append(tx)

    summaries = []
    for day in sorted(by_day, reverse=True):
        day_transactions = sorted(by_day[day], key=lambda t: t.date, reverse=True)
        income, expense = sum_by_type(day_transactions)
        summaries.append(
            DailySummary(
                day=day,
                income=income,
                expense=expense,
                transactions=day_transactions,
            )
        )
    return summaries


def monthly_summary(
    transactions: Iterable[Transaction],
    ledger_filter: Optional[LedgerFilter] = None,
) -> MonthlySummary:
    """Income and expense of the filtered set. Empty input gives zeros."""
    if ledger_filter is not None:
        transactions = filter_transactions(transactions, ledger_filter)
    income, expense = sum_by_type(transactions)
    return MonthlySummary(income=income, expense=expense)


def wallet_balance(wallet: Wallet, transactions: Iterable[Transaction]) -> WalletBalance:
    """All-time balance of one wallet; period filters never apply here."""
    income, expense = sum_by_type(t for t in transactions if t.wallet_id == wallet.id)
    return WalletBalance(
        wallet_id=wallet.id,
        initial_balance=wallet.initial_balance,
        income=income,
        expense=expense,
    )


def wallet_balances(
    wallets: Iterable[Wallet],
    transactions: Sequence[Transaction],
) -> list[WalletBalance]:
    return [wallet_balance(wallet, transactions) for wallet in wallets]


def current_balance(
    balances: Iterable[WalletBalance],
    wallet_id: Optional[UUID] = None,
) -> Decimal:
    """
    The balance shown to the user.

    With a wallet id: that wallet's balance, or 0 if it is unknown.
    Without: the sum over every wallet.
    """
    balances = list(balances)
    if wallet_id is not None:
        for balance in balances:
            if balance.wallet_id == wallet_id:
                return balance.balance
        return ZERO
    return sum((b.balance for b in balances), ZERO)


def category_expense_totals(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    """Expense sum per category id, in first-seen order."""
    totals: dict[str, Decimal] = {}
    for tx in transactions:
        if tx.type == TransactionType.EXPENSE:
            totals[tx.category_id] = totals.get(tx.category_id, ZERO) + tx.amount
    return totals


def join_categories(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
) -> list[TransactionWithCategory]:
    """Attach each transaction's category; dangling ids get None."""
    by_id = {c.id: c for c in categories}
    return [
        TransactionWithCategory(transaction=tx, category=by_id.get(tx.category_id))
        for tx in transactions
    ]


def sort_by_date(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Oldest first, stable."""
    return sorted(transactions, key=lambda t: t.date)


def date_range(transactions: Iterable[Transaction]) -> Optional[tuple[datetime, datetime]]:
    """(earliest, latest) transaction date, or None for an empty ledger."""
    dates = [tx.date for tx in transactions]
    if not dates:
        return None
    return min(dates), max(dates)


def group_by_month(transactions: Iterable[Transaction]) -> list[MonthGroup]:
    """Month buckets, oldest month first."""
    by_month: dict[date, list[Transaction]] = {}
    for tx in sort_by_date(transactions):
        by_month.setdefault(date(tx.date.year, tx.date.month, 1), []).append(tx)

    groups = []
    for month in sorted(by_month):
        income, expense = sum_by_type(by_month[month])
        groups.append(MonthGroup(month, income, expense, by_month[month]))
    return groups


def group_by_category(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
) -> list[CategoryGroup]:
    """
    Buckets per (category id, type), largest total first.

    Transactions pointing at a deleted category still get a bucket,
    with category None.
    """
    by_id = {c.id: c for c in categories}
    buckets: dict[tuple[str, TransactionType], list[Transaction]] = {}
    for tx in sort_by_date(transactions):
        buckets.setdefault((tx.category_id, tx.type), []).append(tx)

    groups = [
        CategoryGroup(
            category_id=category_id,
            type=tx_type,
            category=by_id.get(category_id),
            total=sum((t.amount for t in items), ZERO),
            transactions=items,
        )
        for (category_id, tx_type), items in buckets.items()
    ]
    groups.sort(key=lambda g: g.total, reverse=True)
    return groups
