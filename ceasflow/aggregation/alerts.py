"""
Budget alert comparator.

Consumes the sums produced by the aggregation engine and compares them
against the user's targets. Thresholds are owned here, not by the engine.
"""

from decimal import Decimal
from enum import Enum
from typing import Mapping, Optional

from pydantic import BaseModel, Field

from ceasflow.models.ledger import MonthlySummary

EXCEEDED_RATIO = Decimal("1.0")
APPROACHING_RATIO = Decimal("0.9")


class AlertLevel(str, Enum):
    WARNING = "warning"
    DANGER = "danger"


class AlertKind(str, Enum):
    MONTHLY_TARGET = "monthly_target"
    CATEGORY_LIMIT = "category_limit"


class CategoryLimit(BaseModel):
    category_id: str = Field(..., min_length=1)
    limit: Decimal


class AlertSettings(BaseModel):
    """User alert preferences."""

    monthly_expense_target: Optional[Decimal] = None
    is_monthly_target_enabled: bool = False
    category_limits: list[CategoryLimit] = Field(default_factory=list)
    is_category_limits_enabled: bool = False


class BudgetAlert(BaseModel):
    level: AlertLevel
    kind: AlertKind
    category_id: Optional[str] = None
    actual: Decimal
    target: Decimal
    ratio: Decimal


def evaluate_ratio(actual: Decimal, target: Decimal) -> Optional[tuple[AlertLevel, Decimal]]:
    """Alert level for actual/target, or None below the warning line."""
    if target <= 0:
        return None
    ratio = actual / target
    if ratio >= EXCEEDED_RATIO:
        return AlertLevel.DANGER, ratio
    if ratio >= APPROACHING_RATIO:
        return AlertLevel.WARNING, ratio
    return None


def evaluate_alerts(
    summary: MonthlySummary,
    category_totals: Mapping[str, Decimal],
    settings: AlertSettings,
) -> list[BudgetAlert]:
    """
    All alerts for the visible period.

    The monthly target comes first, then category limits in the order
    they were configured.
    """
    alerts = []

    if settings.is_monthly_target_enabled and settings.monthly_expense_target is not None:
        result = evaluate_ratio(summary.expense, settings.monthly_expense_target)
        if result:
            level, ratio = result
            alerts.append(
                BudgetAlert(
                    level=level,
                    kind=AlertKind.MONTHLY_TARGET,
                    actual=summary.expense,
                    target=settings.monthly_expense_target,
                    ratio=ratio,
                )
            )

    if settings.is_category_limits_enabled:
        for limit in settings.category_limits:
            spent = category_totals.get(limit.category_id, Decimal("0"))
            if spent <= 0:
                continue
            result = evaluate_ratio(spent, limit.limit)
            if result:
                level, ratio = result
                alerts.append(
                    BudgetAlert(
                        level=level,
                        kind=AlertKind.CATEGORY_LIMIT,
                        category_id=limit.category_id,
                        actual=spent,
                        target=limit.limit,
                        ratio=ratio,
                    )
                )

    return alerts
