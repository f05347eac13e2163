"""
Workbook layout shared by the exporter and the importer.

Labels, the Buddhist-calendar date format, currency strings, the
icon/name split of a wallet header and sheet naming all live here, so
that what the exporter writes is exactly what the importer reads.
"""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

import regex
import structlog
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from ceasflow.models.ledger import TransactionType, WalletType
from ceasflow.models.spreadsheet import OperationProgress, ProgressCallback, ProgressStatus

logger = structlog.get_logger(__name__)


# =============================================================================
# LABELS
# =============================================================================

WALLET_LABEL = "กระเป๋าเงิน:"
TYPE_LABEL = "ประเภท:"
INITIAL_BALANCE_LABEL = "ยอดเริ่มต้น:"
CURRENT_BALANCE_LABEL = "ยอดคงเหลือ:"
INCOME_TOTAL_LABEL = "รายรับรวม:"
EXPENSE_TOTAL_LABEL = "รายจ่ายรวม:"
COUNT_LABEL = "จำนวนรายการ:"

DATE_HEADER = "วันที่"
TYPE_HEADER = "ประเภท"
TABLE_HEADER = (DATE_HEADER, TYPE_HEADER, "ไอคอน", "หมวดหมู่", "จำนวนเงิน", "หมายเหตุ")

INCOME_LABEL = "รายรับ"
EXPENSE_LABEL = "รายจ่าย"

DEFAULT_CATEGORY_NAME = "อื่นๆ"

OVERVIEW_SHEET = "📊 ภาพรวม"
MONTHLY_SHEET = "📅 รายเดือน"
CATEGORY_SHEET = "🏷️ หมวดหมู่"

# Excel counts the 31-character title limit in UTF-16 units
SHEET_TITLE_LIMIT = 31
_FORBIDDEN_SHEET_CHARS = re.compile(r"[\[\]:*?/\\]")

MIN_POPULATED_COLUMNS = 5


def type_label(tx_type: TransactionType) -> str:
    return INCOME_LABEL if tx_type == TransactionType.INCOME else EXPENSE_LABEL


def parse_type_label(label: Any) -> TransactionType:
    """Exact match on the income label; anything else is an expense."""
    if isinstance(label, str) and label.strip() == INCOME_LABEL:
        return TransactionType.INCOME
    return TransactionType.EXPENSE


def strip_label(text: Any, label: str) -> str:
    """Cell text with a leading label removed."""
    text = cell_text(text)
    if text.startswith(label):
        text = text[len(label):]
    return text.strip()


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def sheet_text(value: str) -> str:
    """Drop control characters a worksheet cannot hold."""
    return ILLEGAL_CHARACTERS_RE.sub("", value)


# =============================================================================
# BUDDHIST-CALENDAR DATES
# =============================================================================

BUDDHIST_ERA_OFFSET = 543

THAI_MONTHS = (
    "ม.ค.", "ก.พ.", "มี.ค.", "เม.ย.", "พ.ค.", "มิ.ย.",
    "ก.ค.", "ส.ค.", "ก.ย.", "ต.ค.", "พ.ย.", "ธ.ค.",
)
THAI_MONTH_NUMBERS = {abbr: number for number, abbr in enumerate(THAI_MONTHS, start=1)}


def format_thai_date(moment: datetime, with_time: bool = True) -> str:
    """e.g. 15 มี.ค. 2567 14:30"""
    text = (
        f"{moment.day} {THAI_MONTHS[moment.month - 1]} "
        f"{moment.year + BUDDHIST_ERA_OFFSET}"
    )
    if with_time:
        text += f" {moment.hour:02d}:{moment.minute:02d}"
    return text


def parse_thai_date(value: Any) -> Optional[datetime]:
    """
    Parse "D MMM YYYY[ HH:MM]" with a Thai month abbreviation and a
    Buddhist-era year. A cell that already holds a datetime is returned
    as is. Returns None for anything unparseable.
    """
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None

    parts = value.split()
    if len(parts) < 3:
        return None

    month = THAI_MONTH_NUMBERS.get(parts[1])
    if month is None:
        return None

    try:
        day = int(parts[0])
        year = int(parts[2]) - BUDDHIST_ERA_OFFSET
    except ValueError:
        return None

    hour = minute = 0
    if len(parts) >= 4 and ":" in parts[3]:
        hh, _, mm = parts[3].partition(":")
        try:
            hour = int(hh)
            minute = int(mm[:2])
        except ValueError:
            hour = minute = 0

    try:
        return datetime(year, month, day, hour, minute)
    except ValueError:
        return None


# =============================================================================
# CURRENCY
# =============================================================================

CURRENCY_SYMBOL = "฿"


def format_currency(amount: Decimal, symbol: str = CURRENCY_SYMBOL) -> str:
    """e.g. ฿1,000.00 or -฿250.50"""
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def parse_currency_string(value: Any, symbol: str = CURRENCY_SYMBOL) -> Decimal:
    """
    Number in a currency-formatted string.

    The symbol, thousands separators and whitespace are removed first.
    Anything that is still not a finite number gives 0.
    """
    if value is None:
        return Decimal("0")
    cleaned = re.sub(rf"[{re.escape(symbol)},\s]", "", str(value))
    try:
        number = Decimal(cleaned)
    except InvalidOperation:
        return Decimal("0")
    return number if number.is_finite() else Decimal("0")


def parse_amount_cell(value: Any, symbol: str = CURRENCY_SYMBOL) -> Decimal:
    """Amount column: numeric cells are taken directly, strings are parsed."""
    if isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, (int, float, Decimal)):
        number = Decimal(str(value))
        return number if number.is_finite() else Decimal("0")
    return parse_currency_string(value, symbol)


# =============================================================================
# WALLET HEADER
# =============================================================================

_GRAPHEME = regex.compile(r"\X")
_EMOJI = regex.compile(r"[\p{Extended_Pictographic}\p{Regional_Indicator}\uFE0F\u20E3]")


def split_icon_and_name(text: str) -> tuple[str, str]:
    """
    Split "🏦 Name" into ("🏦", "Name").

    Only a whole leading grapheme cluster that is an emoji counts as the
    icon, so multi-codepoint emoji (flags, ZWJ sequences, keycaps) stay
    intact. Without one, the icon is empty and everything is the name.
    """
    text = text.strip()
    match = _GRAPHEME.match(text)
    if match and _EMOJI.search(match.group()):
        return match.group(), text[match.end():].strip()
    return "", text


def parse_wallet_type(token: Any) -> WalletType:
    """Case-insensitive match against the wallet types, else cash."""
    cleaned = cell_text(token).lower()
    try:
        return WalletType(cleaned)
    except ValueError:
        return WalletType.CASH


# =============================================================================
# SHEET NAMES
# =============================================================================

def excel_length(text: str) -> int:
    """Length as Excel counts it: astral characters such as emoji count twice."""
    return len(text.encode("utf-16-le")) // 2


def _fit(text: str, limit: int) -> str:
    while text and excel_length(text) > limit:
        text = text[:-1]
    return text.rstrip()


def unique_sheet_name(name: str, taken: set[str]) -> str:
    """
    A valid, unused sheet title. Adds the result to `taken`.

    Comparison is case-insensitive, matching how spreadsheet programs
    treat titles. A " (n)" suffix is made to fit by shortening the base.
    """
    cleaned = sheet_text(_FORBIDDEN_SHEET_CHARS.sub("_", name)).strip()
    base = _fit(cleaned, SHEET_TITLE_LIMIT) or "Sheet"
    lowered = {t.lower() for t in taken}
    candidate = base
    counter = 2
    while candidate.lower() in lowered:
        suffix = f" ({counter})"
        candidate = _fit(base, SHEET_TITLE_LIMIT - len(suffix)) + suffix
        counter += 1
    taken.add(candidate)
    return candidate


def trimmed_row(row: tuple) -> list:
    """Row values with trailing empty cells dropped."""
    values = list(row)
    while values and (values[-1] is None or cell_text(values[-1]) == ""):
        values.pop()
    return values


# =============================================================================
# PROGRESS
# =============================================================================

class ProgressReporter:
    """
    Wraps an optional progress callback.

    Progress never goes backwards within one operation: a lower value
    than the last one reported is raised to it.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None, operation: str = ""):
        self._callback: Optional[Callable[[OperationProgress], None]] = callback
        self._operation = operation
        self._last = 0

    @property
    def last_progress(self) -> int:
        return self._last

    def report(self, status: ProgressStatus, progress: float, message: str = "") -> None:
        value = max(self._last, min(100, int(round(progress))))
        self._last = value
        logger.info(
            "progress",
            operation=self._operation,
            status=status.value,
            progress=value,
            message=message,
        )
        if self._callback is not None:
            self._callback(OperationProgress(status=status, progress=value, message=message))

    def error(self, message: str) -> None:
        """Report failure at the point reached so far."""
        self.report(ProgressStatus.ERROR, self._last, message)
