"""
Built-in category table.

Seeds the catalog on first run and supplies icon/color for every
category on load. Only the id, name, type and order of these entries
are ever written to storage.
"""

from typing import NamedTuple, Optional

from ceasflow.models.ledger import Category, TransactionType


class CategoryAppearance(NamedTuple):
    icon: str
    color: str


TYPE_DEFAULT_APPEARANCE: dict[TransactionType, CategoryAppearance] = {
    TransactionType.EXPENSE: CategoryAppearance("📦", "#ef4444"),
    TransactionType.INCOME: CategoryAppearance("💵", "#22c55e"),
}

# (id, name, icon, color)
_EXPENSE_DEFAULTS = [
    ("exp-food", "อาหาร", "🍜", "#f97316"),
    ("exp-transport", "เดินทาง", "🚗", "#3b82f6"),
    ("exp-shopping", "ช้อปปิ้ง", "🛍️", "#ec4899"),
    ("exp-bills", "ค่าบิล", "🧾", "#eab308"),
    ("exp-housing", "ที่พัก", "🏠", "#8b5cf6"),
    ("exp-health", "สุขภาพ", "💊", "#14b8a6"),
    ("exp-entertainment", "บันเทิง", "🎮", "#6366f1"),
    ("exp-education", "การศึกษา", "📚", "#0ea5e9"),
    ("exp-other", "อื่นๆ", "📦", "#64748b"),
]

_INCOME_DEFAULTS = [
    ("inc-salary", "เงินเดือน", "💼", "#22c55e"),
    ("inc-bonus", "โบนัส", "🎁", "#10b981"),
    ("inc-business", "ธุรกิจ", "🏪", "#84cc16"),
    ("inc-investment", "ลงทุน", "📈", "#06b6d4"),
    ("inc-other", "อื่นๆ", "💵", "#64748b"),
]

DEFAULT_APPEARANCE: dict[str, CategoryAppearance] = {
    cat_id: CategoryAppearance(icon, color)
    for cat_id, _, icon, color in _EXPENSE_DEFAULTS + _INCOME_DEFAULTS
}


def default_categories(category_type: Optional[TransactionType] = None) -> list[Category]:
    """Fresh, enriched copies of the seed set, ordered 0..n-1 per type."""
    tables = {
        TransactionType.EXPENSE: _EXPENSE_DEFAULTS,
        TransactionType.INCOME: _INCOME_DEFAULTS,
    }
    categories = []
    for ctype, rows in tables.items():
        if category_type is not None and ctype != category_type:
            continue
        for order, (cat_id, name, _, _) in enumerate(rows):
            categories.append(
                enrich_category(Category(id=cat_id, name=name, type=ctype, order=order))
            )
    return categories


def enrich_category(category: Category) -> Category:
    """
    Attach display icon and color.

    A custom icon wins, then the seeded entry's icon, then the type default.
    """
    appearance = DEFAULT_APPEARANCE.get(
        category.id, TYPE_DEFAULT_APPEARANCE[category.type]
    )
    return category.model_copy(
        update={
            "display_icon": category.icon or appearance.icon,
            "color": appearance.color,
        }
    )
