"""
Spreadsheet Import Parser

Reads a workbook produced by the exporter (or edited by hand in the same
layout) and replays it into the ledger.

DESIGN DECISION: Parsing and importing are separate passes.
The whole workbook is parsed into ParsedWallet objects first, so a file
that yields nothing fails before any wallet is created. The importing
pass then goes only through the injected ImportDependencies, never the
storage layer, and is not atomic: wallets committed before a failure
stay committed.
"""

import asyncio
from io import BytesIO
from pathlib import Path
from typing import Any, Awaitable, BinaryIO, Callable, Optional, Sequence, Union
from uuid import UUID
from zipfile import BadZipFile

import structlog
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook.workbook import Workbook
from pydantic import BaseModel

from ceasflow.config import LedgerSettings, SpreadsheetSettings, get_settings
from ceasflow.models.ledger import (
    NAME_MAX_LENGTH,
    NOTE_MAX_LENGTH,
    Category,
    Transaction,
    TransactionInput,
    TransactionType,
    Wallet,
    WalletInput,
    WalletType,
)
from ceasflow.models.spreadsheet import (
    ImportResult,
    ParsedTransaction,
    ParsedWallet,
    ProgressCallback,
    ProgressStatus,
)
from ceasflow.spreadsheet import layout
from ceasflow.spreadsheet.errors import (
    NoTransactionsFoundError,
    NoWalletSheetsError,
    WorkbookReadError,
)
from ceasflow.spreadsheet.layout import ProgressReporter

logger = structlog.get_logger(__name__)

DUPLICATE_MARKER = "ซ้ำ"

WorkbookSource = Union[bytes, str, Path, BinaryIO]


class ImportDependencies(BaseModel):
    """
    The ledger operations an import is allowed to call.

    Tests pass plain functions; the app builds one from its services
    with from_services().
    """

    get_wallets: Callable[[], Sequence[Wallet]]
    find_category: Callable[[str, TransactionType], Optional[Category]]
    add_category: Callable[[str, TransactionType, Optional[str]], Awaitable[Category]]
    add_wallet: Callable[[WalletInput], Awaitable[Wallet]]
    add_transaction: Callable[[TransactionInput], Awaitable[Transaction]]

    @classmethod
    def from_services(
        cls,
        catalog,
        wallets,
        transactions,
        correlation_id: Optional[UUID] = None,
    ) -> "ImportDependencies":
        """Bind to a CategoryCatalog, WalletRegistry and TransactionLedger."""
        return cls(
            get_wallets=lambda: wallets.wallets,
            find_category=catalog.find_by_name,
            add_category=catalog.add,
            add_wallet=lambda data: wallets.add(data, correlation_id),
            add_transaction=transactions.add,
        )


# =============================================================================
# READING
# =============================================================================

def read_workbook(source: WorkbookSource, max_bytes: Optional[int] = None) -> Workbook:
    """
    Load an .xlsx workbook from bytes, a path or a binary file object.

    Raises:
        WorkbookReadError: If the data is too large or not a workbook
    """
    try:
        if isinstance(source, (bytes, bytearray)):
            data = bytes(source)
        elif isinstance(source, (str, Path)):
            data = Path(source).read_bytes()
        else:
            data = source.read()
    except OSError as e:
        raise WorkbookReadError(f"ไม่สามารถอ่านไฟล์ได้: {e}") from e

    if max_bytes is not None and len(data) > max_bytes:
        raise WorkbookReadError(
            f"ไฟล์มีขนาดใหญ่เกินไป ({len(data)} ไบต์, สูงสุด {max_bytes} ไบต์)"
        )

    try:
        return load_workbook(BytesIO(data), data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError, ValueError) as e:
        raise WorkbookReadError(f"ไฟล์ไม่ใช่สเปรดชีตที่รองรับ: {e}") from e


# =============================================================================
# PARSING
# =============================================================================

def parse_transaction_row(
    row: Sequence[Any],
    symbol: str = layout.CURRENCY_SYMBOL,
) -> Optional[ParsedTransaction]:
    """
    One table row, or None if it must be skipped.

    Skipped: fewer than five populated columns, an unparseable date, or
    an amount that is not positive. Over-long notes and category names
    are cut to what the ledger accepts.
    """
    values = layout.trimmed_row(tuple(row))
    if len(values) < layout.MIN_POPULATED_COLUMNS:
        return None

    moment = layout.parse_thai_date(values[0])
    if moment is None:
        logger.debug("import_row_skipped", reason="date", value=str(values[0]))
        return None

    amount = layout.parse_amount_cell(values[4], symbol)
    if amount <= 0:
        logger.debug("import_row_skipped", reason="amount", value=str(values[4]))
        return None

    note = layout.cell_text(values[5]) if len(values) > 5 else ""
    category_name = _clip(layout.cell_text(values[3]), NAME_MAX_LENGTH, "category_name")
    return ParsedTransaction(
        date=moment,
        type=layout.parse_type_label(values[1]),
        category_icon=layout.cell_text(values[2]),
        category_name=category_name or layout.DEFAULT_CATEGORY_NAME,
        amount=amount,
        note=_clip(note, NOTE_MAX_LENGTH, "note") or None,
    )


def _clip(text: str, limit: int, field: str) -> str:
    if len(text) <= limit:
        return text
    logger.info("import_text_truncated", field=field, length=len(text), limit=limit)
    return text[:limit].rstrip()


def find_table_header(rows: Sequence[Sequence[Any]]) -> Optional[int]:
    """Index of the first row whose first two cells hold the date and type labels."""
    for index, row in enumerate(rows):
        values = layout.trimmed_row(tuple(row))
        if (
            len(values) >= 4
            and layout.DATE_HEADER in layout.cell_text(values[0])
            and layout.TYPE_HEADER in layout.cell_text(values[1])
        ):
            return index
    return None


def parse_wallet_sheet(
    sheet_name: str,
    rows: Sequence[Sequence[Any]],
    symbol: str = layout.CURRENCY_SYMBOL,
) -> Optional[ParsedWallet]:
    """
    Parse one wallet sheet.

    Returns None when the sheet has no wallet name or no table header.
    """
    def first_cell(index: int) -> Any:
        if index < len(rows) and rows[index]:
            return rows[index][0]
        return None

    identity = layout.cell_text(first_cell(0))
    if identity.startswith(layout.WALLET_LABEL):
        icon, name = layout.split_icon_and_name(layout.strip_label(identity, layout.WALLET_LABEL))
    else:
        icon, name = "", identity
    if not name:
        logger.info("wallet_sheet_skipped", sheet=sheet_name, reason="no_name")
        return None
    name = _clip(name, NAME_MAX_LENGTH, "wallet_name")

    wallet_type = layout.parse_wallet_type(layout.strip_label(first_cell(1), layout.TYPE_LABEL))
    initial_balance = layout.parse_currency_string(
        layout.strip_label(first_cell(2), layout.INITIAL_BALANCE_LABEL), symbol
    )

    header_index = find_table_header(rows)
    if header_index is None:
        logger.info("wallet_sheet_skipped", sheet=sheet_name, reason="no_table_header")
        return None

    transactions = []
    for row in rows[header_index + 1:]:
        parsed = parse_transaction_row(row, symbol)
        if parsed is not None:
            transactions.append(parsed)

    return ParsedWallet(
        sheet_name=sheet_name,
        name=name,
        icon=icon,
        type=wallet_type,
        initial_balance=initial_balance,
        transactions=transactions,
    )


def parse_workbook(
    workbook: Workbook,
    settings: Optional[SpreadsheetSettings] = None,
) -> list[ParsedWallet]:
    """
    Every wallet sheet of a workbook, in sheet order.

    Raises:
        NoWalletSheetsError: If no sheet name carries the wallet marker
    """
    settings = settings or get_settings().spreadsheet
    wallet_sheets = [ws for ws in workbook.worksheets if settings.wallet_sheet_marker in ws.title]
    if not wallet_sheets:
        raise NoWalletSheetsError()

    parsed = []
    for sheet in wallet_sheets:
        rows = list(sheet.iter_rows(values_only=True))
        wallet = parse_wallet_sheet(sheet.title, rows, settings.currency_symbol)
        if wallet is not None:
            parsed.append(wallet)
    return parsed


def resolve_wallet_name(
    name: str,
    existing: set[str],
    max_length: Optional[int] = None,
) -> str:
    """
    name, then "name (ซ้ำ)", then "name (ซ้ำ 2)", ... until unused.

    With max_length, the name is shortened so name plus suffix fits.
    """
    if name not in existing:
        return name

    def with_suffix(suffix: str) -> str:
        base = name
        if max_length is not None:
            base = base[:max(max_length - len(suffix), 1)].rstrip()
        return base + suffix

    candidate = with_suffix(f" ({DUPLICATE_MARKER})")
    counter = 2
    while candidate in existing:
        candidate = with_suffix(f" ({DUPLICATE_MARKER} {counter})")
        counter += 1
    return candidate


# =============================================================================
# IMPORTING
# =============================================================================

async def import_from_excel(
    source: WorkbookSource,
    deps: ImportDependencies,
    on_progress: Optional[ProgressCallback] = None,
    settings: Optional[SpreadsheetSettings] = None,
    ledger_settings: Optional[LedgerSettings] = None,
) -> ImportResult:
    """
    Import every wallet sheet of a workbook.

    Progress: reading 10, parsing 30, importing 50 to 90 in proportion to
    wallets done, complete 100. On failure `error` is reported at the
    last percentage and the exception propagates; whatever was already
    imported stays.

    Raises:
        WorkbookReadError: The file cannot be read
        NoWalletSheetsError: No sheet carries the wallet marker
        NoTransactionsFoundError: The wallet sheets hold no usable rows
    """
    settings = settings or get_settings().spreadsheet
    ledger_settings = ledger_settings or get_settings().ledger
    reporter = ProgressReporter(on_progress, operation="import")

    wallets_created = 0
    transactions_imported = 0
    try:
        reporter.report(ProgressStatus.READING, 10, "กำลังอ่านไฟล์...")
        workbook = read_workbook(source, settings.max_import_size_bytes)
        await asyncio.sleep(0)

        reporter.report(ProgressStatus.PARSING, 30, "กำลังวิเคราะห์ข้อมูล...")
        parsed_wallets = parse_workbook(workbook, settings)
        if sum(len(w.transactions) for w in parsed_wallets) == 0:
            raise NoTransactionsFoundError()
        await asyncio.sleep(0)

        reporter.report(ProgressStatus.IMPORTING, 50, "กำลังนำเข้าข้อมูล...")
        total = len(parsed_wallets)
        for index, parsed in enumerate(parsed_wallets):
            reporter.report(
                ProgressStatus.IMPORTING,
                50 + ((index + 0.5) / total) * 40,
                f'กำลังนำเข้า "{parsed.name}"...',
            )
            wallet, count = await _import_wallet(parsed, deps, ledger_settings)
            wallets_created += 1
            transactions_imported += count
            reporter.report(
                ProgressStatus.IMPORTING,
                50 + ((index + 1) / total) * 40,
                f'นำเข้า "{wallet.name}" สำเร็จ ({count} รายการ)',
            )
            await asyncio.sleep(0)
    except Exception as e:
        logger.error(
            "import_failed",
            error=str(e),
            wallets_created=wallets_created,
            transactions_imported=transactions_imported,
        )
        reporter.error(str(e))
        raise

    reporter.report(
        ProgressStatus.COMPLETE,
        100,
        f"นำเข้าสำเร็จ! {wallets_created} กระเป๋า, {transactions_imported} รายการ",
    )
    return ImportResult(
        wallets_created=wallets_created,
        transactions_imported=transactions_imported,
    )


async def _import_wallet(
    parsed: ParsedWallet,
    deps: ImportDependencies,
    ledger_settings: LedgerSettings,
) -> tuple[Wallet, int]:
    # No await between the name check and add_wallet.
    existing = {w.name for w in deps.get_wallets()}
    name = resolve_wallet_name(parsed.name, existing, NAME_MAX_LENGTH)
    wallet = await deps.add_wallet(
        WalletInput(
            name=name,
            type=parsed.type,
            icon=parsed.icon or ledger_settings.default_wallet_icon,
            color=ledger_settings.default_wallet_color,
            currency=ledger_settings.default_currency,
            initial_balance=parsed.initial_balance,
            is_asset=parsed.type != WalletType.CREDIT_CARD,
        )
    )
    if name != parsed.name:
        logger.info("wallet_renamed_on_import", original=parsed.name, name=name)

    count = 0
    for row in parsed.transactions:
        category = deps.find_category(row.category_name, row.type)
        if category is None:
            category = await deps.add_category(row.category_name, row.type, row.category_icon or None)
        await deps.add_transaction(
            TransactionInput(
                type=row.type,
                amount=row.amount,
                category_id=category.id,
                wallet_id=wallet.id,
                date=row.date,
                note=row.note,
            )
        )
        count += 1
    return wallet, count
