"""Derived views over the ledger."""

from ceasflow.aggregation.alerts import (
    APPROACHING_RATIO,
    EXCEEDED_RATIO,
    AlertKind,
    AlertLevel,
    AlertSettings,
    BudgetAlert,
    CategoryLimit,
    evaluate_alerts,
    evaluate_ratio,
)
from ceasflow.aggregation.engine import (
    CategoryGroup,
    MonthGroup,
    category_expense_totals,
    current_balance,
    date_range,
    filter_transactions,
    group_by_category,
    group_by_day,
    group_by_month,
    join_categories,
    monthly_summary,
    sort_by_date,
    sum_by_type,
    wallet_balance,
    wallet_balances,
)

__all__ = [
    "APPROACHING_RATIO",
    "EXCEEDED_RATIO",
    "AlertKind",
    "AlertLevel",
    "AlertSettings",
    "BudgetAlert",
    "CategoryGroup",
    "CategoryLimit",
    "MonthGroup",
    "category_expense_totals",
    "current_balance",
    "date_range",
    "evaluate_alerts",
    "evaluate_ratio",
    "filter_transactions",
    "group_by_category",
    "group_by_day",
    "group_by_month",
    "join_categories",
    "monthly_summary",
    "sort_by_date",
    "sum_by_type",
    "wallet_balance",
    "wallet_balances",
]
