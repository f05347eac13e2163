"""Tests for the workbook exporter and importer."""

from collections import Counter
from datetime import datetime
from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import Workbook, load_workbook

from ceasflow.ledger import CategoryCatalog, TransactionLedger, WalletRegistry, default_categories
from ceasflow.models.ledger import (
    Category,
    LedgerSnapshot,
    Transaction,
    TransactionType,
    Wallet,
    WalletType,
)
from ceasflow.models.spreadsheet import ProgressStatus
from ceasflow.services.storage import InMemoryLedgerStorage
from ceasflow.spreadsheet import (
    ImportDependencies,
    NoTransactionsFoundError,
    NoWalletSheetsError,
    WorkbookReadError,
    export_filename,
    export_to_excel,
    import_from_excel,
    parse_wallet_sheet,
    resolve_wallet_name,
)
from ceasflow.spreadsheet.layout import TABLE_HEADER


class Ledger:
    """Three services over one in-memory store."""

    def __init__(self):
        storage = InMemoryLedgerStorage()
        self.catalog = CategoryCatalog(storage)
        self.wallets = WalletRegistry(storage)
        self.transactions = TransactionLedger(storage)

    async def load(self):
        await self.catalog.load()
        await self.wallets.load()
        await self.transactions.load()
        return self

    def deps(self):
        return ImportDependencies.from_services(self.catalog, self.wallets, self.transactions)


def sample_snapshot():
    bank = Wallet(name="กสิกร", type=WalletType.BANK, icon="🏦",
                  initial_balance=Decimal("1000"))
    card = Wallet(name="บัตรเครดิต", type=WalletType.CREDIT_CARD, icon="💳",
                  initial_balance=Decimal("-1500.75"), is_asset=False)
    transactions = [
        Transaction(type=TransactionType.EXPENSE, amount=Decimal("120.50"),
                    category_id="exp-food", wallet_id=bank.id,
                    date=datetime(2024, 3, 15, 14, 30), note="ข้าวมันไก่"),
        Transaction(type=TransactionType.INCOME, amount=Decimal("30000"),
                    category_id="inc-salary", wallet_id=bank.id,
                    date=datetime(2024, 2, 28, 9, 0)),
        Transaction(type=TransactionType.EXPENSE, amount=Decimal("2499"),
                    category_id="exp-shopping", wallet_id=card.id,
                    date=datetime(2024, 3, 1, 20, 15), note="รองเท้า"),
    ]
    return LedgerSnapshot(
        transactions=transactions,
        wallets=[bank, card],
        categories=default_categories(),
    )


def wallet_sheet_workbook(rows, title="💰 Test"):
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = title
    for row in rows:
        sheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def tuples(transactions, categories, wallet_id):
    names = {c.id: c.name for c in categories}
    return Counter(
        (t.date.replace(second=0, microsecond=0), t.type, names.get(t.category_id),
         Decimal(t.amount), t.note)
        for t in transactions
        if t.wallet_id == wallet_id
    )


class TestExport:
    """Tests for workbook export."""

    @pytest.mark.asyncio
    async def test_export_sheets_and_layout(self):
        """Test sheet set and the fixed wallet sheet layout."""
        result = await export_to_excel(sample_snapshot(),
                                       exported_at=datetime(2024, 4, 1, 10, 0, 0))

        assert result.filename == "CeasFlow_Export_2024-04-01_100000.xlsx"
        workbook = load_workbook(BytesIO(result.content))
        wallet_sheets = [name for name in workbook.sheetnames if "💰" in name]
        assert len(wallet_sheets) == 2
        assert len(workbook.sheetnames) == 5

        rows = list(workbook[wallet_sheets[0]].iter_rows(values_only=True))
        assert rows[0][0] == "กระเป๋าเงิน: 🏦 กสิกร"
        assert rows[1][0] == "ประเภท: bank"
        assert rows[2][0] == "ยอดเริ่มต้น: ฿1,000.00"
        header_index = next(i for i, r in enumerate(rows) if r[:6] == TABLE_HEADER)
        data = rows[header_index + 1:]
        # Ascending by date
        assert [r[0] for r in data] == ["28 ก.พ. 2567 09:00", "15 มี.ค. 2567 14:30"]
        assert data[0][1] == "รายรับ"
        assert data[1][3] == "อาหาร"

    @pytest.mark.asyncio
    async def test_export_progress_is_monotonic(self):
        """Test stage order and non-decreasing percentages."""
        seen = []
        await export_to_excel(sample_snapshot(), on_progress=seen.append)

        values = [p.progress for p in seen]
        assert values == sorted(values)
        assert seen[0].status == ProgressStatus.PREPARING
        assert seen[-1].status == ProgressStatus.COMPLETE
        assert seen[-1].progress == 100
        assert ProgressStatus.FINALIZING in {p.status for p in seen}

    @pytest.mark.asyncio
    async def test_export_empty_ledger(self):
        """Test that an empty ledger still exports."""
        result = await export_to_excel(LedgerSnapshot())
        assert result.content
        assert not any("💰" in name for name in result.sheet_names)

    def test_filename_embeds_date(self):
        """Test that repeated exports get distinct names."""
        first = export_filename(datetime(2024, 4, 1, 10, 0, 0), "X")
        second = export_filename(datetime(2024, 4, 1, 10, 0, 1), "X")
        assert first != second
        assert "2024-04-01" in first


class TestImport:
    """Tests for workbook import."""

    @pytest.mark.asyncio
    async def test_round_trip_into_empty_ledger(self):
        """Test export then import preserves wallets and transactions."""
        snapshot = sample_snapshot()
        exported = await export_to_excel(snapshot)
        ledger = await Ledger().load()

        result = await import_from_excel(exported.content, ledger.deps())

        assert result.wallets_created == 2
        assert result.transactions_imported == 3
        imported = {w.name: w for w in ledger.wallets.wallets}
        categories = ledger.catalog.get_all()
        for original in snapshot.wallets:
            copy = imported[original.name]
            assert copy.type == original.type
            assert copy.initial_balance == original.initial_balance
            assert copy.icon == original.icon
            assert tuples(ledger.transactions.transactions, categories, copy.id) == tuples(
                snapshot.transactions, snapshot.categories, original.id
            )
        assert imported["บัตรเครดิต"].is_asset is False

    @pytest.mark.asyncio
    async def test_duplicate_wallet_names(self):
        """Test (ซ้ำ) then (ซ้ำ 2) on repeated imports."""
        exported = await export_to_excel(sample_snapshot())
        ledger = await Ledger().load()

        for _ in range(3):
            await import_from_excel(exported.content, ledger.deps())

        names = [w.name for w in ledger.wallets.wallets if w.name.startswith("กสิกร")]
        assert names == ["กสิกร", "กสิกร (ซ้ำ)", "กสิกร (ซ้ำ 2)"]

    def test_resolve_wallet_name(self):
        """Test the duplicate name suffixes."""
        assert resolve_wallet_name("A", set()) == "A"
        assert resolve_wallet_name("A", {"A"}) == "A (ซ้ำ)"
        assert resolve_wallet_name("A", {"A", "A (ซ้ำ)", "A (ซ้ำ 2)"}) == "A (ซ้ำ 3)"

    @pytest.mark.asyncio
    async def test_bad_rows_are_skipped(self):
        """Test that -50, 0, bad dates and short rows are skipped."""
        content = wallet_sheet_workbook([
            ["กระเป๋าเงิน: 💵 เงินสด"],
            ["ประเภท: CASH"],
            ["ยอดเริ่มต้น: ฿500.00"],
            [],
            list(TABLE_HEADER),
            ["15 มี.ค. 2567 14:30", "รายจ่าย", "🍜", "อาหาร", 100, "ok"],
            ["15 มี.ค. 2567", "รายจ่าย", "🍜", "อาหาร", "-50", ""],
            ["15 มี.ค. 2567", "รายจ่าย", "🍜", "อาหาร", "0", ""],
            ["15 มี.ค. 2567", "รายจ่าย", "🍜", "อาหาร", -20, ""],
            ["เมื่อวาน", "รายจ่าย", "🍜", "อาหาร", 10, ""],
            ["15 มี.ค. 2567", "รายจ่าย", "🍜", "อาหาร"],
            ["1 ม.ค. 2569 09:05", "รายรับ", "", "", "฿1,250.00"],
        ])
        ledger = await Ledger().load()

        result = await import_from_excel(content, ledger.deps())

        assert result.transactions_imported == 2
        wallet = ledger.wallets.wallets[0]
        assert wallet.name == "เงินสด"
        assert wallet.icon == "💵"
        assert wallet.initial_balance == Decimal("500.00")
        amounts = sorted(t.amount for t in ledger.transactions.transactions)
        assert amounts == [Decimal("100"), Decimal("1250.00")]
        income = next(t for t in ledger.transactions.transactions
                      if t.type == TransactionType.INCOME)
        assert income.date == datetime(2026, 1, 1, 9, 5)
        assert ledger.catalog.get_by_id(income.category_id).name == "อื่นๆ"

    @pytest.mark.asyncio
    async def test_new_category_created_with_icon(self):
        """Test that unknown categories are created with the parsed icon."""
        content = wallet_sheet_workbook([
            ["กระเป๋าเงิน: เงินสด"],
            ["ประเภท: cash"],
            ["ยอดเริ่มต้น: ฿0.00"],
            list(TABLE_HEADER),
            ["2 ม.ค. 2567", "รายจ่าย", "🐶", "สัตว์เลี้ยง", 300, ""],
            ["3 ม.ค. 2567", "รายจ่าย", "🐶", "สัตว์เลี้ยง", 200, ""],
        ])
        ledger = await Ledger().load()

        await import_from_excel(content, ledger.deps())

        pet = ledger.catalog.find_by_name("สัตว์เลี้ยง", TransactionType.EXPENSE)
        assert pet is not None
        assert pet.icon == "🐶"
        assert len([c for c in ledger.catalog.get_all() if c.name == "สัตว์เลี้ยง"]) == 1
        assert ledger.wallets.wallets[0].icon == "💰"

    @pytest.mark.asyncio
    async def test_no_wallet_sheets(self):
        """Test the missing-marker error and its progress report."""
        content = wallet_sheet_workbook([["hello"]], title="Sheet1")
        ledger = await Ledger().load()
        seen = []

        with pytest.raises(NoWalletSheetsError, match="ไม่พบแผ่นงานกระเป๋าเงินในไฟล์"):
            await import_from_excel(content, ledger.deps(), on_progress=seen.append)

        assert seen[-1].status == ProgressStatus.ERROR
        assert seen[-1].progress == 30
        assert ledger.wallets.wallets == []

    @pytest.mark.asyncio
    async def test_no_transactions(self):
        """Test that a workbook without usable rows fails before importing."""
        content = wallet_sheet_workbook([
            ["กระเป๋าเงิน: เงินสด"],
            ["ประเภท: cash"],
            ["ยอดเริ่มต้น: ฿0.00"],
            list(TABLE_HEADER),
        ])
        ledger = await Ledger().load()

        with pytest.raises(NoTransactionsFoundError, match="ไม่พบข้อมูลรายการในไฟล์"):
            await import_from_excel(content, ledger.deps())
        assert ledger.wallets.wallets == []

    @pytest.mark.asyncio
    async def test_unreadable_bytes(self):
        """Test that non-workbook bytes are rejected."""
        ledger = await Ledger().load()
        with pytest.raises(WorkbookReadError):
            await import_from_excel(b"not a workbook", ledger.deps())

    @pytest.mark.asyncio
    async def test_import_progress(self):
        """Test stage order, per-wallet messages and the final 100."""
        exported = await export_to_excel(sample_snapshot())
        ledger = await Ledger().load()
        seen = []

        await import_from_excel(exported.content, ledger.deps(), on_progress=seen.append)

        values = [p.progress for p in seen]
        assert values == sorted(values)
        assert [p.status for p in seen[:3]] == [
            ProgressStatus.READING, ProgressStatus.PARSING, ProgressStatus.IMPORTING
        ]
        assert seen[-1].status == ProgressStatus.COMPLETE
        assert seen[-1].message == "นำเข้าสำเร็จ! 2 กระเป๋า, 3 รายการ"
        assert any(p.message == 'กำลังนำเข้า "กสิกร"...' for p in seen)
        assert all(50 <= p.progress <= 90 for p in seen[2:-1])

    @pytest.mark.asyncio
    async def test_failure_midway_keeps_committed_wallets(self):
        """Test that an error after some wallets leaves them in place."""
        exported = await export_to_excel(sample_snapshot())
        ledger = await Ledger().load()
        deps = ledger.deps()
        calls = []

        async def failing_add_transaction(data):
            calls.append(data)
            if len(calls) > 2:
                raise RuntimeError("write failed")
            return await ledger.transactions.add(data)

        deps.add_transaction = failing_add_transaction
        seen = []

        with pytest.raises(RuntimeError):
            await import_from_excel(exported.content, deps, on_progress=seen.append)

        assert len(ledger.wallets.wallets) == 2
        assert len(ledger.transactions.transactions) == 2
        assert seen[-1].status == ProgressStatus.ERROR


class TestUserText:
    """Tests for user-entered text in exported and imported cells."""

    @pytest.mark.asyncio
    async def test_formula_like_text_round_trips_as_text(self):
        """Test that notes and category names starting with = stay literal."""
        snapshot = sample_snapshot()
        bank = snapshot.wallets[0]
        snapshot.categories.append(
            Category(id="cat-eq", name="=พิเศษ", type=TransactionType.EXPENSE, order=9)
        )
        snapshot.transactions.append(
            Transaction(type=TransactionType.EXPENSE, amount=Decimal("45"),
                        category_id="cat-eq", wallet_id=bank.id,
                        date=datetime(2024, 3, 20, 12, 0), note="=ค่าข้าว")
        )
        exported = await export_to_excel(snapshot)

        workbook = load_workbook(BytesIO(exported.content))
        sheet = workbook[next(n for n in workbook.sheetnames if "กสิกร" in n)]
        cells = [c for row in sheet.iter_rows() for c in row if c.value == "=ค่าข้าว"]
        assert cells and all(c.data_type == "s" for c in cells)

        ledger = await Ledger().load()
        await import_from_excel(exported.content, ledger.deps())

        notes = {t.note for t in ledger.transactions.transactions}
        assert "=ค่าข้าว" in notes
        special = ledger.catalog.find_by_name("=พิเศษ", TransactionType.EXPENSE)
        assert special is not None
        meal = next(t for t in ledger.transactions.transactions if t.note == "=ค่าข้าว")
        assert meal.category_id == special.id
        assert meal.amount == Decimal("45")

    @pytest.mark.asyncio
    async def test_control_characters_do_not_break_export(self):
        """Test that a vertical tab in a note is dropped instead of failing the export."""
        snapshot = sample_snapshot()
        snapshot.transactions[0].note = "line\x0bbreak"

        exported = await export_to_excel(snapshot)
        ledger = await Ledger().load()
        await import_from_excel(exported.content, ledger.deps())

        notes = {t.note for t in ledger.transactions.transactions}
        assert "linebreak" in notes

    @pytest.mark.asyncio
    async def test_over_long_text_is_truncated(self):
        """Test that long notes and category names are cut, not fatal."""
        content = wallet_sheet_workbook([
            ["กระเป๋าเงิน: เงินสด"],
            ["ประเภท: cash"],
            ["ยอดเริ่มต้น: ฿0.00"],
            list(TABLE_HEADER),
            ["2 ม.ค. 2567", "รายจ่าย", "", "ข" * 150, 300, "น" * 1500],
        ])
        ledger = await Ledger().load()

        result = await import_from_excel(content, ledger.deps())

        assert result.transactions_imported == 1
        transaction = ledger.transactions.transactions[0]
        assert transaction.note == "น" * 1000
        assert transaction.amount == Decimal("300")
        assert ledger.catalog.get_by_id(transaction.category_id).name == "ข" * 100

    @pytest.mark.asyncio
    async def test_long_duplicate_wallet_name_fits(self):
        """Test that the duplicate suffix never pushes a name past the limit."""
        content = wallet_sheet_workbook([
            ["กระเป๋าเงิน: " + "ก" * 120],
            ["ประเภท: cash"],
            ["ยอดเริ่มต้น: ฿0.00"],
            list(TABLE_HEADER),
            ["2 ม.ค. 2567", "รายจ่าย", "", "อาหาร", 50, ""],
        ])
        ledger = await Ledger().load()

        await import_from_excel(content, ledger.deps())
        await import_from_excel(content, ledger.deps())

        names = [w.name for w in ledger.wallets.wallets]
        assert names == ["ก" * 100, "ก" * 94 + " (ซ้ำ)"]

    def test_resolve_wallet_name_with_limit(self):
        """Test that the base is shortened to make room for the suffix."""
        assert resolve_wallet_name("AAAA", {"AAAA"}, max_length=8) == "AA (ซ้ำ)"
        assert resolve_wallet_name("AAAA", {"AAAA"}) == "AAAA (ซ้ำ)"


class TestParseWalletSheet:
    """Tests for parsing a single wallet sheet."""

    def test_sheet_without_name_is_skipped(self):
        """Test that a blank wallet name skips the sheet."""
        assert parse_wallet_sheet("💰", [("กระเป๋าเงิน: ",), ("ประเภท: cash",)]) is None

    def test_sheet_without_header_is_skipped(self):
        """Test that a sheet with no table header is skipped."""
        rows = [("กระเป๋าเงิน: A",), ("ประเภท: cash",), ("ยอดเริ่มต้น: ฿0",)]
        assert parse_wallet_sheet("💰 A", rows) is None

    def test_datetime_cells_accepted(self):
        """Test rows whose date cell is a real datetime."""
        rows = [
            ("กระเป๋าเงิน: A",),
            ("ประเภท: savings",),
            ("ยอดเริ่มต้น: ฿1,000",),
            TABLE_HEADER,
            (datetime(2024, 5, 1, 8, 0), "รายรับ", "", "โบนัส", 5000, None),
        ]
        parsed = parse_wallet_sheet("💰 A", rows)
        assert parsed.type == WalletType.SAVINGS
        assert parsed.initial_balance == Decimal("1000")
        assert parsed.transactions[0].date == datetime(2024, 5, 1, 8, 0)
        assert parsed.transactions[0].note is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
