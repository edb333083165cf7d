"""
Main Orchestrator for Household Ledger

This module ties together all the components:
1. Load (storage → validate → LedgerStore)
2. Mutate (LedgerStore, audited)
3. Save (explicit, once per batch of mutations)
4. Views (forecast, upcoming payments, dashboard, transaction lists)

DESIGN DECISION: Persistence is EXPLICIT.
Mutations never write to storage by themselves. The caller saves after
a batch of mutations, either with save() or with the batch() context
manager, so one user action produces one write.

DESIGN DECISION: Views are computed on snapshots.
The forecast engine and the queries receive a frozen snapshot, never
the live store.
"""

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import date
from typing import Any, Optional, Union

import structlog

from household_ledger.audit import AuditLogger, configure_logging
from household_ledger.config import get_settings
from household_ledger.config.settings import LedgerSettings
from household_ledger.forecast import (
    ForecastEngine,
    debt_summary,
    investment_summary,
    monthly_summary,
    total_balance,
)
from household_ledger.ledger import LedgerStore
from household_ledger.models.entities import Transaction
from household_ledger.models.forecast import (
    DashboardSummary,
    Forecast,
    ForecastHorizon,
    UpcomingPayment,
)
from household_ledger.models.query import TransactionFilter
from household_ledger.models.snapshot import Snapshot, ValidationResult
from household_ledger.queries import TransactionQueryExecutor
from household_ledger.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSnapshotStorage,
    InMemorySnapshotStorage,
    JsonFileSnapshotStorage,
    SnapshotStorageInterface,
    StorageError,
)


logger = structlog.get_logger("household_ledger.orchestrator")


class LedgerService:
    """
    Application service around one LedgerStore.

    Flow:
    1. Construct → snapshot loaded from storage (None means first run)
    2. Mutate through `service.store`
    3. save() or leave a batch() block → snapshot written to storage

    Usage:
        service = LedgerService(JsonFileSnapshotStorage("ledger.json"))
        with service.batch() as store:
            person_id = store.add_person({"name": "Alex"})
        forecast = service.forecast("6months")
    """

    def __init__(
        self,
        storage: SnapshotStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
        forecast_engine: Optional[ForecastEngine] = None,
        query_executor: Optional[TransactionQueryExecutor] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().ledger
        self._engine = forecast_engine or ForecastEngine()
        self._queries = query_executor or TransactionQueryExecutor()
        self._store = self._load()

    @property
    def store(self) -> LedgerStore:
        return self._store

    @property
    def storage(self) -> SnapshotStorageInterface:
        return self._storage

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _load(self) -> LedgerStore:
        """
        Load the saved ledger.

        Raises:
            StorageError: If the backend cannot be read
            SnapshotImportError: If the saved ledger fails validation
        """
        backend = self._storage.backend_name
        try:
            snapshot = self._storage.load()
        except StorageError as e:
            self._audit_logger.log_storage_error(backend, str(e))
            raise

        self._audit_logger.log_snapshot_loaded(snapshot is not None, backend)
        return LedgerStore.from_snapshot(
            snapshot,
            audit_logger=self._audit_logger,
            default_currency=self._settings.default_currency,
        )

    def save(self) -> Snapshot:
        """
        Write the current ledger to storage.

        Returns:
            The snapshot that was written
        """
        snapshot = self._store.snapshot()
        backend = self._storage.backend_name
        try:
            self._storage.save(snapshot)
        except StorageError as e:
            self._audit_logger.log_storage_error(backend, str(e))
            raise

        self._audit_logger.log_snapshot_saved(backend, snapshot.timestamp)
        return snapshot

    @contextmanager
    def batch(self) -> Iterator[LedgerStore]:
        """
        Group mutations into one save.

        The ledger is saved once when the block exits normally; if the
        block raises, nothing is saved.
        """
        yield self._store
        self.save()

    def export_snapshot(self) -> Snapshot:
        return self._store.export_snapshot()

    def import_snapshot(
        self,
        snapshot: Union[Snapshot, Mapping[str, Any]],
    ) -> ValidationResult:
        """Replace the ledger with a backup and save it."""
        result = self._store.import_snapshot(snapshot)
        self.save()
        return result

    def reset(self) -> None:
        """Start over with the starter categories and save."""
        self._store.reset()
        self.save()

    # =========================================================================
    # VIEWS
    # =========================================================================

    def forecast(
        self,
        horizon: Optional[Union[ForecastHorizon, str]] = None,
        today: Optional[date] = None,
    ) -> Forecast:
        """Long-horizon forecast; the horizon defaults to the configured one."""
        return self._engine.forecast(
            self._store.snapshot(),
            horizon or self._settings.default_horizon,
            today=today,
        )

    def upcoming_payments(self, today: Optional[date] = None) -> list[UpcomingPayment]:
        return self._engine.upcoming_payments(
            self._store.snapshot(),
            today=today,
            window_days=self._settings.upcoming_window_days,
            limit=self._settings.upcoming_limit,
        )

    def transactions(
        self,
        criteria: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        """Filtered transaction list, newest first."""
        return self._queries.filter(self._store.snapshot(), criteria)

    def dashboard(self, today: Optional[date] = None) -> DashboardSummary:
        """
        Everything the overview screen shows.

        All figures come from one snapshot, so they are consistent
        with each other.
        """
        today = today or date.today()
        snapshot = self._store.snapshot()

        return DashboardSummary(
            as_of=today,
            total_balance=total_balance(snapshot),
            monthly=monthly_summary(snapshot, today),
            investments=investment_summary(snapshot),
            debts=debt_summary(snapshot),
            upcoming_payments=self._engine.upcoming_payments(
                snapshot,
                today=today,
                window_days=self._settings.upcoming_window_days,
                limit=self._settings.upcoming_limit,
            ),
            recent_transactions=self._queries.recent(
                snapshot,
                limit=self._settings.recent_transactions_limit,
            ),
        )


def create_app_components(
    backend: Optional[str] = None,
) -> tuple[LedgerService, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        backend: "memory", "json" or "google_sheets".
                Defaults to the configured storage backend.

    Returns:
        (ledger_service, sheets_client)
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    backend = backend or settings.storage.backend
    sheets_client = None
    storage: SnapshotStorageInterface

    if backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient(settings.google_sheets)
            storage = GoogleSheetsSnapshotStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Sheets not configured - continue in memory
            logger.warning("storage_not_configured", backend=backend, error=str(e))
            sheets_client = None
            storage = InMemorySnapshotStorage()
            audit_logger = AuditLogger()  # Local-only logging
    elif backend == "json":
        storage = JsonFileSnapshotStorage(settings.storage.snapshot_file)
        audit_logger = AuditLogger()
    else:
        storage = InMemorySnapshotStorage()
        audit_logger = AuditLogger()

    service = LedgerService(
        storage,
        audit_logger=audit_logger,
        settings=settings.ledger,
    )

    return service, sheets_client
