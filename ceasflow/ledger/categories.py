"""
Category Catalog

Owns the expense and income category lists, their dense per-type
ordering, and each category's bounded list of recent notes.

DESIGN DECISION: Mutations are optimistic. Memory is updated first and
listeners are notified, then the change is written. A storage failure is
logged and audited but not raised, so memory and storage can disagree
until the next load. For a local-only cache that window is accepted.
"""

from typing import Optional, Sequence, Union

import structlog

from ceasflow.audit import AuditLogger
from ceasflow.config import get_settings
from ceasflow.events import CATEGORIES_CHANGED, Observable
from ceasflow.ledger.defaults import default_categories, enrich_category
from ceasflow.models.audit import AuditEventBuilder
from ceasflow.models.ledger import Category, CategoryInput, TransactionType
from ceasflow.services.storage import CategoryStorageInterface, StorageError

logger = structlog.get_logger(__name__)


class CategoryCatalog(Observable):
    """
    The set of categories of one installation.

    Getters are synchronous and return copies; mutations are async
    because they end in a storage write.
    """

    def __init__(
        self,
        storage: CategoryStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        max_notes: Optional[int] = None,
    ):
        super().__init__()
        self._storage = storage
        self._audit_logger = audit_logger
        self._max_notes = max_notes or get_settings().ledger.max_category_notes
        self._lists: dict[TransactionType, list[Category]] = {
            TransactionType.EXPENSE: [],
            TransactionType.INCOME: [],
        }
        self._is_loading = False
        self._is_initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def expense_categories(self) -> list[Category]:
        return [c.model_copy(deep=True) for c in self._lists[TransactionType.EXPENSE]]

    @property
    def income_categories(self) -> list[Category]:
        return [c.model_copy(deep=True) for c in self._lists[TransactionType.INCOME]]

    def categories_of(self, category_type: TransactionType) -> list[Category]:
        return [c.model_copy(deep=True) for c in self._lists[TransactionType(category_type)]]

    def get_all(self) -> list[Category]:
        """Expense categories first, then income, each in display order."""
        return self.expense_categories + self.income_categories

    def get_by_id(self, category_id: str) -> Optional[Category]:
        category = self._find(category_id)
        return category.model_copy(deep=True) if category else None

    def find_by_name(self, name: str, category_type: TransactionType) -> Optional[Category]:
        """Exact name match within one type."""
        for category in self._lists[TransactionType(category_type)]:
            if category.name == name:
                return category.model_copy(deep=True)
        return None

    def get_notes(self, category_id: str) -> list[str]:
        category = self._find(category_id)
        return list(category.notes) if category else []

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def load(self) -> None:
        """
        Load categories once.

        An empty store is seeded with the default set. On later runs the
        stored categories get their appearance re-attached and are sorted
        by order. If the store cannot be read, the defaults are used.
        """
        if self._is_loading or self._is_initialized:
            return

        self._is_loading = True
        try:
            stored = await self._storage.list_categories()
            if not stored:
                seeded = default_categories()
                self._set_all(seeded)
                try:
                    await self._storage.put_categories(seeded)
                except StorageError as e:
                    await self._persistence_failed(None, "seed", e)
                else:
                    await self._audit(AuditEventBuilder.categories_seeded(len(seeded)))
            else:
                self._set_all([enrich_category(c) for c in stored])
        except StorageError as e:
            logger.error("category_load_failed", error=str(e))
            self._set_all(default_categories())
        finally:
            self._is_loading = False

        self._is_initialized = True
        self._notify(CATEGORIES_CHANGED, reason="loaded")

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def add(
        self,
        name: str,
        category_type: TransactionType,
        icon: Optional[str] = None,
    ) -> Category:
        """Append a category at the end of its type."""
        data = CategoryInput(name=name, type=category_type, icon=icon or None)
        siblings = self._lists[data.type]
        category = enrich_category(
            Category(
                name=data.name,
                type=data.type,
                icon=data.icon,
                order=len(siblings),
            )
        )
        siblings.append(category)
        self._notify(CATEGORIES_CHANGED, reason="added", category_id=category.id)

        try:
            await self._storage.put_category(category)
        except StorageError as e:
            await self._persistence_failed(category.id, "add", e)
        else:
            await self._audit(
                AuditEventBuilder.category_added(category.id, category.name, data.type.value)
            )

        return category.model_copy(deep=True)

    async def delete(self, category_id: str) -> bool:
        """
        Remove a category and renumber its siblings.

        Transactions that reference it are left untouched.
        Returns False if the id is unknown.
        """
        category = self._find(category_id)
        if category is None:
            logger.warning("category_delete_unknown", category_id=category_id)
            return False

        remaining = [c for c in self._lists[category.type] if c.id != category_id]
        renumbered = self._renumber(remaining)
        self._lists[category.type] = renumbered
        self._notify(CATEGORIES_CHANGED, reason="deleted", category_id=category_id)

        try:
            await self._storage.delete_category(category_id)
            if renumbered:
                await self._storage.put_categories(renumbered)
        except StorageError as e:
            await self._persistence_failed(category_id, "delete", e)
        else:
            await self._audit(AuditEventBuilder.category_deleted(category_id, category.name))

        return True

    async def reorder(
        self,
        category_type: TransactionType,
        ordered: Sequence[Union[str, Category]],
    ) -> list[Category]:
        """
        Set the display order of one type.

        `ordered` must contain every category of that type exactly once.
        Both types are written back so the stored order column is
        consistent as a whole.
        """
        category_type = TransactionType(category_type)
        ordered_ids = [c.id if isinstance(c, Category) else c for c in ordered]
        current = {c.id: c for c in self._lists[category_type]}

        if len(set(ordered_ids)) != len(ordered_ids) or set(ordered_ids) != set(current):
            raise ValueError(
                f"Reorder must list every {category_type.value} category exactly once"
            )

        self._lists[category_type] = self._renumber([current[i] for i in ordered_ids])
        self._notify(CATEGORIES_CHANGED, reason="reordered", type=category_type.value)

        try:
            await self._storage.put_categories(
                self._lists[TransactionType.EXPENSE] + self._lists[TransactionType.INCOME]
            )
        except StorageError as e:
            await self._persistence_failed(None, "reorder", e)
        else:
            await self._audit(
                AuditEventBuilder.categories_reordered(category_type.value, ordered_ids)
            )

        return self.categories_of(category_type)

    async def add_note(self, category_id: str, note: str) -> bool:
        """
        Remember a note for a category.

        Blank notes and notes already present are ignored. The list keeps
        the newest `max_notes` entries. Returns True if the list changed.
        """
        trimmed = (note or "").strip()
        if not trimmed:
            return False

        category = self._find(category_id)
        if category is None or trimmed in category.notes:
            return False

        notes = (category.notes + [trimmed])[-self._max_notes:]
        return await self._store_notes(category, notes, trimmed, added=True)

    async def remove_note(self, category_id: str, note: str) -> bool:
        """Forget a note. Returns True if the list changed."""
        trimmed = (note or "").strip()
        category = self._find(category_id)
        if category is None or trimmed not in category.notes:
            return False

        notes = [n for n in category.notes if n != trimmed]
        return await self._store_notes(category, notes, trimmed, added=False)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _store_notes(
        self,
        category: Category,
        notes: list[str],
        note: str,
        added: bool,
    ) -> bool:
        updated = category.model_copy(update={"notes": notes})
        siblings = self._lists[category.type]
        siblings[siblings.index(category)] = updated
        self._notify(CATEGORIES_CHANGED, reason="notes", category_id=category.id)

        try:
            await self._storage.put_category(updated)
        except StorageError as e:
            await self._persistence_failed(category.id, "note", e)
        else:
            await self._audit(AuditEventBuilder.category_note_changed(category.id, note, added))
        return True

    def _find(self, category_id: str) -> Optional[Category]:
        for categories in self._lists.values():
            for category in categories:
                if category.id == category_id:
                    return category
        return None

    def _set_all(self, categories: list[Category]) -> None:
        for category_type in self._lists:
            of_type = [c for c in categories if c.type == category_type]
            of_type.sort(key=lambda c: c.order)
            self._lists[category_type] = self._renumber(of_type)

    @staticmethod
    def _renumber(categories: list[Category]) -> list[Category]:
        return [
            c if c.order == position else c.model_copy(update={"order": position})
            for position, c in enumerate(categories)
        ]

    async def _persistence_failed(
        self,
        category_id: Optional[str],
        operation: str,
        error: StorageError,
    ) -> None:
        logger.error(
            "category_persist_failed",
            category_id=category_id,
            operation=operation,
            error=str(error),
        )
        if self._audit_logger:
            await self._audit_logger.log_persistence_failed(
                entity_type="category",
                entity_id=category_id,
                operation=operation,
                error_message=str(error),
            )

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)
