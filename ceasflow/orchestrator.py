"""
Main Orchestrator for CeasFlow

This module ties together all the components and defines the
end-to-end flows for:
1. Ledger views (daily groups, monthly totals, balances, alerts)
2. Workbook export (snapshot → workbook bytes)
3. Workbook import (workbook → wallets, categories, transactions)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Import and export each run at most once at a time
- Import only reaches the ledger through ImportDependencies
- Every import/export outcome is audited

Views are recomputed on every call from the services' current state;
nothing derived is cached.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from ceasflow.aggregation import (
    AlertSettings,
    BudgetAlert,
    category_expense_totals,
    current_balance,
    evaluate_alerts,
    filter_transactions,
    group_by_day,
    join_categories,
    monthly_summary,
    wallet_balances,
)
from ceasflow.audit import AuditLogger, create_correlation_id
from ceasflow.config import Settings, get_settings
from ceasflow.ledger import CategoryCatalog, TransactionLedger, WalletRegistry
from ceasflow.models.audit import AuditEventBuilder, AuditEventType
from ceasflow.models.ledger import (
    DailySummary,
    LedgerFilter,
    LedgerSnapshot,
    MonthlySummary,
    TransactionWithCategory,
    WalletBalance,
)
from ceasflow.models.spreadsheet import ExportResult, ImportResult, ProgressCallback
from ceasflow.services.storage import InMemoryLedgerStorage, JsonFileLedgerStorage
from ceasflow.spreadsheet import (
    ImportDependencies,
    OperationInProgressError,
    export_to_excel,
    import_from_excel,
)
from ceasflow.spreadsheet.importer import WorkbookSource

logger = structlog.get_logger(__name__)


class CeasFlowApp:
    """
    One local installation: the three ledger services over one store.

    Flow:
    1. load() → categories (seeded on first run), wallets, transactions
    2. Mutate through catalog / wallets / transactions
    3. Read views computed by the aggregation engine
    4. export_workbook() / import_workbook() for backup and migration
    """

    def __init__(
        self,
        storage: Optional[InMemoryLedgerStorage] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
    ):
        self._settings = settings or get_settings()
        self._storage = storage or InMemoryLedgerStorage()
        self._audit_logger = audit_logger

        self.catalog = CategoryCatalog(
            self._storage,
            audit_logger,
            max_notes=self._settings.ledger.max_category_notes,
        )
        self.wallets = WalletRegistry(self._storage, audit_logger)
        self.transactions = TransactionLedger(self._storage, audit_logger)

        self._export_lock = asyncio.Lock()
        self._import_lock = asyncio.Lock()

    @property
    def storage(self) -> InMemoryLedgerStorage:
        return self._storage

    @property
    def is_exporting(self) -> bool:
        return self._export_lock.locked()

    @property
    def is_importing(self) -> bool:
        return self._import_lock.locked()

    async def load(self) -> None:
        """Load every service; safe to call more than once."""
        await self.catalog.load()
        await self.wallets.load()
        await self.transactions.load()
        logger.info(
            "ledger_loaded",
            categories=len(self.catalog.get_all()),
            wallets=len(self.wallets.wallets),
            transactions=len(self.transactions.transactions),
        )

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            transactions=self.transactions.transactions,
            wallets=self.wallets.wallets,
            categories=self.catalog.get_all(),
        )

    def daily_summaries(self, ledger_filter: LedgerFilter) -> list[DailySummary]:
        return group_by_day(self.transactions.transactions, ledger_filter)

    def monthly_summary(self, ledger_filter: LedgerFilter) -> MonthlySummary:
        return monthly_summary(self.transactions.transactions, ledger_filter)

    def wallet_balances(self) -> list[WalletBalance]:
        return wallet_balances(self.wallets.wallets, self.transactions.transactions)

    def current_balance(self, wallet_id: Optional[UUID] = None) -> Decimal:
        return current_balance(self.wallet_balances(), wallet_id)

    def category_expense_totals(self, ledger_filter: LedgerFilter) -> dict[str, Decimal]:
        return category_expense_totals(
            filter_transactions(self.transactions.transactions, ledger_filter)
        )

    def alerts(
        self,
        ledger_filter: LedgerFilter,
        alert_settings: AlertSettings,
    ) -> list[BudgetAlert]:
        visible = filter_transactions(self.transactions.transactions, ledger_filter)
        return evaluate_alerts(
            monthly_summary(visible),
            category_expense_totals(visible),
            alert_settings,
        )

    def transactions_with_categories(
        self,
        ledger_filter: Optional[LedgerFilter] = None,
    ) -> list[TransactionWithCategory]:
        transactions = self.transactions.transactions
        if ledger_filter is not None:
            transactions = filter_transactions(transactions, ledger_filter)
        return join_categories(transactions, self.catalog.get_all())

    # -------------------------------------------------------------------------
    # Workbook round-trip
    # -------------------------------------------------------------------------

    def import_dependencies(self, correlation_id: Optional[UUID] = None) -> ImportDependencies:
        return ImportDependencies.from_services(
            self.catalog,
            self.wallets,
            self.transactions,
            correlation_id=correlation_id,
        )

    async def export_workbook(
        self,
        on_progress: Optional[ProgressCallback] = None,
        exported_at: Optional[datetime] = None,
    ) -> ExportResult:
        """
        Export the current ledger.

        Raises:
            OperationInProgressError: If an export is already running
        """
        if self._export_lock.locked():
            raise OperationInProgressError("กำลังส่งออกข้อมูลอยู่")

        async with self._export_lock:
            snapshot = self.snapshot()
            try:
                result = await export_to_excel(
                    snapshot,
                    on_progress=on_progress,
                    exported_at=exported_at,
                    settings=self._settings.spreadsheet,
                )
            except Exception as e:
                await self._audit(
                    AuditEventBuilder.operation_failed(AuditEventType.EXPORT_FAILED, str(e))
                )
                raise

            await self._audit(
                AuditEventBuilder.export_completed(
                    result.filename,
                    len(result.sheet_names),
                    len(snapshot.transactions),
                )
            )
            return result

    async def import_workbook(
        self,
        source: WorkbookSource,
        on_progress: Optional[ProgressCallback] = None,
        source_name: str = "workbook",
    ) -> ImportResult:
        """
        Import a workbook into the ledger.

        A failure leaves what was already imported in place. Storage
        writes are batched, so the ledger file is written once at the end
        of the run, including after a failure.

        Raises:
            OperationInProgressError: If an import is already running
            SpreadsheetError: If the workbook cannot be read or holds no data
            StorageError: If writing the imported data fails
        """
        if self._import_lock.locked():
            raise OperationInProgressError("กำลังนำเข้าข้อมูลอยู่")

        async with self._import_lock:
            correlation_id = create_correlation_id()
            await self._audit(AuditEventBuilder.import_started(correlation_id, source_name))
            try:
                # One durable write for the whole workbook
                async with self._storage.batch():
                    result = await import_from_excel(
                        source,
                        self.import_dependencies(correlation_id),
                        on_progress=on_progress,
                        settings=self._settings.spreadsheet,
                        ledger_settings=self._settings.ledger,
                    )
            except Exception as e:
                await self._audit(
                    AuditEventBuilder.operation_failed(
                        AuditEventType.IMPORT_FAILED,
                        str(e),
                        correlation_id=correlation_id,
                        details={"error_type": type(e).__name__},
                    )
                )
                raise

            await self._audit(
                AuditEventBuilder.import_completed(
                    result.wallets_created,
                    result.transactions_imported,
                    correlation_id,
                )
            )
            return result

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)


def create_app_components(
    use_storage: bool = True,
) -> tuple[CeasFlowApp, AuditLogger]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use the configured backend.
                    Set to False for an in-memory ledger.

    Returns:
        (app, audit_logger)
    """
    settings = get_settings()
    storage: InMemoryLedgerStorage

    if use_storage and settings.storage.backend == "json":
        storage = JsonFileLedgerStorage(
            path=settings.storage.ledger_path,
            max_write_attempts=settings.storage.max_write_attempts,
            audit_log_limit=settings.storage.audit_log_limit,
        )
        logger.info("storage_configured", backend="json", path=str(storage.path))
    else:
        # Nothing survives the process
        storage = InMemoryLedgerStorage()

    audit_logger = AuditLogger(storage)
    app = CeasFlowApp(storage=storage, audit_logger=audit_logger, settings=settings)
    return app, audit_logger
