"""Tests for the Category Catalog."""

import pytest

from ceasflow.audit import AuditLogger
from ceasflow.events import CATEGORIES_CHANGED
from ceasflow.ledger import CategoryCatalog, default_categories
from ceasflow.models.audit import AuditEventType
from ceasflow.models.ledger import Category, TransactionType
from ceasflow.services.storage import InMemoryLedgerStorage


def orders(categories):
    return [c.order for c in categories]


class TestCategoryLoad:
    """Tests for first-run seeding and reloading."""

    @pytest.mark.asyncio
    async def test_seeds_defaults_into_empty_store(self, storage):
        """Test that an empty store is seeded and persisted."""
        catalog = CategoryCatalog(storage)
        await catalog.load()

        assert catalog.is_initialized
        assert len(catalog.get_all()) == len(default_categories())
        stored = await storage.list_categories()
        assert {c.id for c in stored} == {c.id for c in default_categories()}

    @pytest.mark.asyncio
    async def test_load_is_idempotent(self, storage):
        """Test that a second load does not reseed."""
        catalog = CategoryCatalog(storage)
        await catalog.load()
        await catalog.add("กาแฟ", TransactionType.EXPENSE)
        await catalog.load()

        assert catalog.find_by_name("กาแฟ", TransactionType.EXPENSE) is not None

    @pytest.mark.asyncio
    async def test_reload_reattaches_appearance(self, storage):
        """Test that stored categories get icon and color back on load."""
        await CategoryCatalog(storage).load()

        stored = await storage.list_categories()
        assert all(c.display_icon is None and c.color is None for c in stored)

        catalog = CategoryCatalog(storage)
        await catalog.load()
        food = catalog.get_by_id("exp-food")
        assert food.display_icon == "🍜"
        assert food.color == "#f97316"

    @pytest.mark.asyncio
    async def test_custom_category_gets_type_default_appearance(self, storage):
        """Test that an unknown id falls back to the type default."""
        await storage.put_category(
            Category(id="cat-x", name="สัตว์เลี้ยง", type=TransactionType.EXPENSE, order=0)
        )
        catalog = CategoryCatalog(storage)
        await catalog.load()

        pet = catalog.get_by_id("cat-x")
        assert pet.display_icon == "📦"
        assert pet.color == "#ef4444"

    @pytest.mark.asyncio
    async def test_reload_sorts_by_order(self, storage):
        """Test that each type is sorted by its stored order."""
        await storage.put_categories([
            Category(id="b", name="B", type=TransactionType.INCOME, order=1),
            Category(id="a", name="A", type=TransactionType.INCOME, order=0),
        ])
        catalog = CategoryCatalog(storage)
        await catalog.load()

        assert [c.id for c in catalog.income_categories] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_read_failure_falls_back_to_defaults(self, failing_storage):
        """Test that an unreadable store leaves the defaults in memory."""
        failing_storage.fail_reads = True
        catalog = CategoryCatalog(failing_storage)
        await catalog.load()

        assert catalog.is_initialized
        assert catalog.get_by_id("exp-food") is not None


class TestCategoryMutations:
    """Tests for add, delete, reorder and notes."""

    @pytest.mark.asyncio
    async def test_add_appends_at_end(self, storage):
        """Test that a new category gets order == count of its type."""
        catalog = CategoryCatalog(storage)
        await catalog.load()
        before = len(catalog.expense_categories)

        category = await catalog.add("กาแฟ", TransactionType.EXPENSE, icon="☕")

        assert category.order == before
        assert category.effective_icon == "☕"
        assert orders(catalog.expense_categories) == list(range(before + 1))

    @pytest.mark.asyncio
    async def test_add_keeps_memory_on_storage_failure(self, failing_storage):
        """Test that a failed write is logged, not raised."""
        audit_store = InMemoryLedgerStorage()
        catalog = CategoryCatalog(failing_storage, AuditLogger(audit_store))
        await catalog.load()

        category = await catalog.add("กาแฟ", TransactionType.EXPENSE)

        assert catalog.get_by_id(category.id) is not None
        events = await audit_store.get_recent_events()
        assert any(e.event_type == AuditEventType.PERSISTENCE_FAILED for e in events)

    @pytest.mark.asyncio
    async def test_delete_renumbers_densely(self, storage):
        """Test that deleting keeps order 0..n-1."""
        catalog = CategoryCatalog(storage)
        await catalog.load()

        assert await catalog.delete("exp-transport") is True

        expenses = catalog.expense_categories
        assert "exp-transport" not in [c.id for c in expenses]
        assert orders(expenses) == list(range(len(expenses)))
        stored = [c for c in await storage.list_categories() if c.type == TransactionType.EXPENSE]
        assert sorted(orders(stored)) == list(range(len(expenses)))

    @pytest.mark.asyncio
    async def test_delete_unknown_returns_false(self, storage):
        """Test that deleting an unknown id is a no-op."""
        catalog = CategoryCatalog(storage)
        await catalog.load()
        assert await catalog.delete("nope") is False

    @pytest.mark.asyncio
    async def test_reorder_assigns_positions(self, storage):
        """Test that reorder follows the given sequence."""
        catalog = CategoryCatalog(storage)
        await catalog.load()
        reversed_ids = [c.id for c in reversed(catalog.income_categories)]

        result = await catalog.reorder(TransactionType.INCOME, reversed_ids)

        assert [c.id for c in result] == reversed_ids
        assert orders(result) == list(range(len(reversed_ids)))
        stored = {c.id: c.order for c in await storage.list_categories()}
        assert stored[reversed_ids[0]] == 0

    @pytest.mark.asyncio
    async def test_reorder_rejects_partial_list(self, storage):
        """Test that reorder needs every category exactly once."""
        catalog = CategoryCatalog(storage)
        await catalog.load()
        ids = [c.id for c in catalog.income_categories]

        with pytest.raises(ValueError):
            await catalog.reorder(TransactionType.INCOME, ids[:-1])
        with pytest.raises(ValueError):
            await catalog.reorder(TransactionType.INCOME, ids + [ids[0]])

    @pytest.mark.asyncio
    async def test_add_note_trims_and_rejects_duplicates(self, storage):
        """Test note trimming, blank and duplicate rejection."""
        catalog = CategoryCatalog(storage)
        await catalog.load()

        assert await catalog.add_note("exp-food", "  ข้าวผัด  ") is True
        assert await catalog.add_note("exp-food", "ข้าวผัด") is False
        assert await catalog.add_note("exp-food", "   ") is False
        assert catalog.get_notes("exp-food") == ["ข้าวผัด"]

    @pytest.mark.asyncio
    async def test_notes_capped_oldest_evicted(self, storage):
        """Test that the note list keeps only the newest entries."""
        catalog = CategoryCatalog(storage, max_notes=50)
        await catalog.load()

        for i in range(55):
            await catalog.add_note("exp-food", f"note {i}")

        notes = catalog.get_notes("exp-food")
        assert len(notes) == 50
        assert notes[0] == "note 5"
        assert notes[-1] == "note 54"
        assert len(set(notes)) == len(notes)

    @pytest.mark.asyncio
    async def test_remove_note(self, storage):
        """Test that a note can be forgotten."""
        catalog = CategoryCatalog(storage)
        await catalog.load()
        await catalog.add_note("exp-food", "ก๋วยเตี๋ยว")

        assert await catalog.remove_note("exp-food", "ก๋วยเตี๋ยว") is True
        assert await catalog.remove_note("exp-food", "ก๋วยเตี๋ยว") is False
        assert catalog.get_notes("exp-food") == []

    @pytest.mark.asyncio
    async def test_getters_return_copies(self, storage):
        """Test that callers cannot mutate catalog state."""
        catalog = CategoryCatalog(storage)
        await catalog.load()

        catalog.get_by_id("exp-food").notes.append("sneaky")
        assert catalog.get_notes("exp-food") == []

    @pytest.mark.asyncio
    async def test_subscribers_are_notified(self, storage):
        """Test that listeners see mutations and can unsubscribe."""
        catalog = CategoryCatalog(storage)
        seen = []
        unsubscribe = catalog.subscribe(lambda event, payload: seen.append((event, payload)))

        await catalog.load()
        await catalog.add("กาแฟ", TransactionType.EXPENSE)
        unsubscribe()
        await catalog.add("ชา", TransactionType.EXPENSE)

        assert [e for e, _ in seen] == [CATEGORIES_CHANGED, CATEGORIES_CHANGED]
        assert seen[1][1]["reason"] == "added"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
