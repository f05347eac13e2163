"""Workbook export and import."""

from ceasflow.spreadsheet.errors import (
    NoTransactionsFoundError,
    NoWalletSheetsError,
    OperationInProgressError,
    SpreadsheetError,
    WorkbookReadError,
)
from ceasflow.spreadsheet.exporter import export_filename, export_to_excel
from ceasflow.spreadsheet.importer import (
    ImportDependencies,
    import_from_excel,
    parse_wallet_sheet,
    parse_workbook,
    read_workbook,
    resolve_wallet_name,
)

__all__ = [
    "ImportDependencies",
    "NoTransactionsFoundError",
    "NoWalletSheetsError",
    "OperationInProgressError",
    "SpreadsheetError",
    "WorkbookReadError",
    "export_filename",
    "export_to_excel",
    "import_from_excel",
    "parse_wallet_sheet",
    "parse_workbook",
    "read_workbook",
    "resolve_wallet_name",
]
