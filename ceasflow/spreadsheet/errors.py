"""Spreadsheet import/export errors."""


class SpreadsheetError(Exception):
    """Base exception for workbook operations."""
    pass


class WorkbookReadError(SpreadsheetError):
    """The bytes are not a readable workbook, or the file is too large."""
    pass


class NoWalletSheetsError(SpreadsheetError):
    """The workbook has no sheet carrying the wallet marker."""

    def __init__(self, message: str = "ไม่พบแผ่นงานกระเป๋าเงินในไฟล์"):
        super().__init__(message)


class NoTransactionsFoundError(SpreadsheetError):
    """Wallet sheets were found but none holds a usable transaction row."""

    def __init__(self, message: str = "ไม่พบข้อมูลรายการในไฟล์"):
        super().__init__(message)


class OperationInProgressError(SpreadsheetError):
    """An import or export is already running."""
    pass
