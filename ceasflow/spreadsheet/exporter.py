"""
Spreadsheet Export Serializer

Turns a ledger snapshot into an .xlsx workbook with an overview sheet,
one sheet per wallet, a monthly sheet and a category sheet.

Wallet sheets are the only ones the importer reads back. Their first
three rows and their table header are fixed; see layout.py.

DESIGN DECISION: The workbook is built fully in memory and only
returned once saved, so a failure never hands out a partial file.

Every string is written as literal text with XML-illegal control
characters removed; a note like "=ค่าข้าว" is never a formula.
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO
from typing import Optional

import structlog
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from ceasflow.aggregation.engine import (
    date_range,
    group_by_category,
    group_by_month,
    sort_by_date,
    sum_by_type,
    wallet_balance,
)
from ceasflow.config import SpreadsheetSettings, get_settings
from ceasflow.models.ledger import (
    Category,
    LedgerSnapshot,
    Transaction,
    TransactionType,
    Wallet,
)
from ceasflow.models.spreadsheet import ExportResult, ProgressCallback, ProgressStatus
from ceasflow.spreadsheet import layout
from ceasflow.spreadsheet.layout import ProgressReporter

logger = structlog.get_logger(__name__)

MONEY_FORMAT = "#,##0.00"

TITLE_FONT = Font(size=16, bold=True)
HEADER_FONT = Font(bold=True, color="1F2933")
HEADER_FILL = PatternFill(start_color="D1D5DB", end_color="D1D5DB", fill_type="solid")
SECTION_FONT = Font(bold=True, size=12)
INCOME_FONT = Font(color="006100")
EXPENSE_FONT = Font(color="9C0006")


def export_filename(exported_at: datetime, prefix: str) -> str:
    """Embeds date and time so repeated exports never share a name."""
    return f"{prefix}_{exported_at:%Y-%m-%d_%H%M%S}.xlsx"


def month_label(month: date) -> str:
    """e.g. มี.ค. 2567"""
    return f"{layout.THAI_MONTHS[month.month - 1]} {month.year + layout.BUDDHIST_ERA_OFFSET}"


async def export_to_excel(
    snapshot: LedgerSnapshot,
    on_progress: Optional[ProgressCallback] = None,
    exported_at: Optional[datetime] = None,
    settings: Optional[SpreadsheetSettings] = None,
) -> ExportResult:
    """
    Serialize a snapshot to workbook bytes.

    Progress walks preparing → writing → finalizing → complete. On
    failure `error` is reported at the last percentage and the exception
    propagates.
    """
    settings = settings or get_settings().spreadsheet
    exported_at = exported_at or datetime.now()
    reporter = ProgressReporter(on_progress, operation="export")

    try:
        reporter.report(ProgressStatus.PREPARING, 5, "กำลังเตรียมข้อมูล...")
        categories = {c.id: c for c in snapshot.categories}
        wallets = snapshot.wallets
        await asyncio.sleep(0)

        workbook = Workbook()
        taken: set[str] = set()

        reporter.report(ProgressStatus.WRITING, 15, "กำลังสร้างแผ่นงานภาพรวม...")
        overview = workbook.active
        overview.title = layout.unique_sheet_name(layout.OVERVIEW_SHEET, taken)
        _write_overview(overview, snapshot, exported_at)
        await asyncio.sleep(0)

        for index, wallet in enumerate(wallets):
            reporter.report(
                ProgressStatus.WRITING,
                20 + (index / max(len(wallets), 1)) * 50,
                f'กำลังสร้างแผ่นงาน "{wallet.name}"...',
            )
            title = layout.unique_sheet_name(
                f"{settings.wallet_sheet_marker} {wallet.name}", taken
            )
            sheet = workbook.create_sheet(title)
            _write_wallet_sheet(sheet, wallet, snapshot.transactions, categories,
                                settings.currency_symbol)
            await asyncio.sleep(0)

        reporter.report(ProgressStatus.WRITING, 75, "กำลังสรุปรายเดือน...")
        monthly = workbook.create_sheet(layout.unique_sheet_name(layout.MONTHLY_SHEET, taken))
        _write_monthly_sheet(monthly, snapshot.transactions, wallets, categories)
        await asyncio.sleep(0)

        reporter.report(ProgressStatus.WRITING, 85, "กำลังสรุปตามหมวดหมู่...")
        by_category = workbook.create_sheet(layout.unique_sheet_name(layout.CATEGORY_SHEET, taken))
        _write_category_sheet(by_category, snapshot.transactions, snapshot.categories, wallets)
        await asyncio.sleep(0)

        reporter.report(ProgressStatus.FINALIZING, 95, "กำลังสร้างไฟล์...")
        buffer = BytesIO()
        workbook.save(buffer)
        result = ExportResult(
            filename=export_filename(exported_at, settings.export_filename_prefix),
            content=buffer.getvalue(),
            exported_at=exported_at,
            sheet_names=list(workbook.sheetnames),
        )
    except Exception as e:
        logger.exception("export_failed", error=str(e))
        reporter.error(f"ส่งออกไม่สำเร็จ: {e}")
        raise

    reporter.report(
        ProgressStatus.COMPLETE,
        100,
        f"ส่งออกสำเร็จ! {len(wallets)} กระเป๋า, {len(snapshot.transactions)} รายการ",
    )
    logger.info(
        "export_completed",
        filename=result.filename,
        sheets=len(result.sheet_names),
        transactions=len(snapshot.transactions),
    )
    return result


# =============================================================================
# SHEETS
# =============================================================================

def _write_overview(
    sheet: Worksheet,
    snapshot: LedgerSnapshot,
    exported_at: datetime,
) -> None:
    income, expense = sum_by_type(snapshot.transactions)
    span = date_range(snapshot.transactions)

    _append(sheet, ["CeasFlow - รายงานสรุป"])
    sheet["A1"].font = TITLE_FONT
    _append(sheet, ["ส่งออกเมื่อ:", layout.format_thai_date(exported_at)])
    _append(sheet, [])

    summary_rows = [
        ("รายรับทั้งหมด", income),
        ("รายจ่ายทั้งหมด", expense),
        ("คงเหลือสุทธิ", income - expense),
    ]
    for label, amount in summary_rows:
        _append(sheet, [label, float(amount)])
        sheet.cell(row=sheet.max_row, column=2).number_format = MONEY_FORMAT
    _append(sheet, ["จำนวนรายการ", len(snapshot.transactions)])
    if span:
        first, last = span
        _append(sheet, [
            "ช่วงวันที่",
            f"{layout.format_thai_date(first, with_time=False)} - "
            f"{layout.format_thai_date(last, with_time=False)}",
        ])
    else:
        _append(sheet, ["ช่วงวันที่", "-"])
    _append(sheet, [])

    _append_header(sheet, ["กระเป๋าเงิน", "ประเภท", "ยอดเริ่มต้น", "ยอดคงเหลือ"])
    total = Decimal("0")
    for wallet in snapshot.wallets:
        balance = wallet_balance(wallet, snapshot.transactions).balance
        total += balance
        _append(sheet, [
            f"{wallet.icon} {wallet.name}".strip(),
            wallet.type.value,
            float(wallet.initial_balance),
            float(balance),
        ])
        _money_columns(sheet, sheet.max_row, 3, 4)
    _append(sheet, ["รวม", "", "", float(total)])
    sheet.cell(row=sheet.max_row, column=1).font = HEADER_FONT
    _money_columns(sheet, sheet.max_row, 4)

    _set_widths(sheet, [28, 22, 16, 16])


def _write_wallet_sheet(
    sheet: Worksheet,
    wallet: Wallet,
    transactions: list[Transaction],
    categories: dict[str, Category],
    symbol: str,
) -> None:
    own = sort_by_date(t for t in transactions if t.wallet_id == wallet.id)
    balance = wallet_balance(wallet, own)

    identity = f"{wallet.icon} {wallet.name}" if wallet.icon else wallet.name
    _append(sheet, [f"{layout.WALLET_LABEL} {identity}"])
    sheet["A1"].font = SECTION_FONT
    _append(sheet, [f"{layout.TYPE_LABEL} {wallet.type.value}"])
    _append(sheet, [
        f"{layout.INITIAL_BALANCE_LABEL} "
        f"{layout.format_currency(wallet.initial_balance, symbol)}"
    ])
    _append(sheet, [f"{layout.CURRENT_BALANCE_LABEL} {layout.format_currency(balance.balance, symbol)}"])
    _append(sheet, [f"{layout.INCOME_TOTAL_LABEL} {layout.format_currency(balance.income, symbol)}"])
    _append(sheet, [f"{layout.EXPENSE_TOTAL_LABEL} {layout.format_currency(balance.expense, symbol)}"])
    _append(sheet, [f"{layout.COUNT_LABEL} {len(own)}"])
    _append(sheet, [])

    _append_header(sheet, list(layout.TABLE_HEADER))
    header_row = sheet.max_row

    for tx in own:
        category = categories.get(tx.category_id)
        _append(sheet, [
            layout.format_thai_date(tx.date),
            layout.type_label(tx.type),
            category.effective_icon if category else "",
            category.name if category else "",
            float(tx.amount),
            tx.note or "",
        ])
        _money_columns(sheet, sheet.max_row, 5)
        sheet.cell(row=sheet.max_row, column=5).font = (
            INCOME_FONT if tx.type == TransactionType.INCOME else EXPENSE_FONT
        )

    sheet.freeze_panes = f"A{header_row + 1}"
    _set_widths(sheet, [22, 10, 8, 20, 14, 36])


def _write_monthly_sheet(
    sheet: Worksheet,
    transactions: list[Transaction],
    wallets: list[Wallet],
    categories: dict[str, Category],
) -> None:
    groups = group_by_month(transactions)
    wallet_names = {w.id: w.name for w in wallets}

    _append_header(sheet, ["เดือน", "รายรับ", "รายจ่าย", "สุทธิ", "จำนวนรายการ"])
    for group in groups:
        _append(sheet, [
            month_label(group.month),
            float(group.income),
            float(group.expense),
            float(group.net),
            len(group.transactions),
        ])
        _money_columns(sheet, sheet.max_row, 2, 3, 4)

    for group in groups:
        _append(sheet, [])
        _append(sheet, [month_label(group.month)])
        sheet.cell(row=sheet.max_row, column=1).font = SECTION_FONT
        _append_header(sheet, ["วันที่", "กระเป๋าเงิน", "ประเภท", "หมวดหมู่", "จำนวนเงิน", "หมายเหตุ"])
        for tx in group.transactions:
            category = categories.get(tx.category_id)
            _append(sheet, [
                layout.format_thai_date(tx.date),
                wallet_names.get(tx.wallet_id, ""),
                layout.type_label(tx.type),
                category.name if category else "",
                float(tx.amount),
                tx.note or "",
            ])
            _money_columns(sheet, sheet.max_row, 5)

    _set_widths(sheet, [22, 20, 14, 20, 14, 36])


def _write_category_sheet(
    sheet: Worksheet,
    transactions: list[Transaction],
    categories: list[Category],
    wallets: list[Wallet],
) -> None:
    groups = group_by_category(transactions, categories)
    wallet_names = {w.id: w.name for w in wallets}

    _append_header(sheet, ["ประเภท", "ไอคอน", "หมวดหมู่", "ยอดรวม", "จำนวนรายการ"])
    for group in groups:
        _append(sheet, [
            layout.type_label(group.type),
            group.category.effective_icon if group.category else "",
            group.category.name if group.category else group.category_id,
            float(group.total),
            len(group.transactions),
        ])
        _money_columns(sheet, sheet.max_row, 4)

    for group in groups:
        name = group.category.name if group.category else group.category_id
        _append(sheet, [])
        _append(sheet, [f"{layout.type_label(group.type)}: {name}"])
        sheet.cell(row=sheet.max_row, column=1).font = SECTION_FONT
        _append_header(sheet, ["วันที่", "กระเป๋าเงิน", "จำนวนเงิน", "หมายเหตุ"])
        for tx in group.transactions:
            _append(sheet, [
                layout.format_thai_date(tx.date),
                wallet_names.get(tx.wallet_id, ""),
                float(tx.amount),
                tx.note or "",
            ])
            _money_columns(sheet, sheet.max_row, 3)

    _set_widths(sheet, [22, 20, 20, 14, 14])


# =============================================================================
# STYLING
# =============================================================================

def _append(sheet: Worksheet, values: list) -> None:
    """Append a row; strings are stored as literal text, never as formulas."""
    values = [layout.sheet_text(v) if isinstance(v, str) else v for v in values]
    sheet.append(values)
    row = sheet.max_row
    for column, value in enumerate(values, start=1):
        if isinstance(value, str) and value:
            sheet.cell(row=row, column=column).data_type = "s"


def _append_header(sheet: Worksheet, labels: list[str]) -> None:
    _append(sheet, labels)
    for column in range(1, len(labels) + 1):
        cell = sheet.cell(row=sheet.max_row, column=column)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center")


def _money_columns(sheet: Worksheet, row: int, *columns: int) -> None:
    for column in columns:
        sheet.cell(row=row, column=column).number_format = MONEY_FORMAT


def _set_widths(sheet: Worksheet, widths: list[int]) -> None:
    for index, width in enumerate(widths, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width
