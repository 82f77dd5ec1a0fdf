"""
Main Orchestrator for BillCycle

This module ties the components together behind a single service object
that a UI calls into:
1. Bill management (create → validate → persist → remind)
2. Payments (mark paid → advance cycle → ledger expense)
3. Reads (status recomputed per read, analytics, upcoming/overdue)

DESIGN DECISION: The orchestrator holds no state of its own.
Every call goes to the store, the payment processor or the query
executor; it only threads correlation ids through so that all events of
one user action can be traced together.
"""

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Union
from uuid import UUID

import structlog

from billcycle.audit import AuditLogger, create_correlation_id
from billcycle.config import get_settings
from billcycle.models.bill import (
    Bill,
    BillCategory,
    BillCreate,
    BillNotification,
    BillPayment,
    BillsAnalytics,
    PaymentIntent,
)
from billcycle.models.ledger import FundsCheck
from billcycle.payments import PaymentProcessor
from billcycle.queries import BillQueryExecutor
from billcycle.services.ledger import InMemoryLedger, LedgerInterface
from billcycle.services.storage import (
    BillStore,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueAuditStorage,
    KeyValueStoreInterface,
)


logger = structlog.get_logger(__name__)


class BillsService:
    """
    Public entry point for the bills engine.

    Flow for a payment:
    1. check_sufficient_funds (advisory, optional)
    2. mark_bill_as_paid
    3. retry_ledger_writes later if step 2 raised LedgerWriteError
    """

    def __init__(
        self,
        store: BillStore,
        ledger: LedgerInterface,
        audit_logger: Optional[AuditLogger] = None,
        processor: Optional[PaymentProcessor] = None,
        queries: Optional[BillQueryExecutor] = None,
    ):
        self._store = store
        self._ledger = ledger
        self._audit_logger = audit_logger
        self._processor = processor or PaymentProcessor(store, ledger, audit_logger)
        self._queries = queries or BillQueryExecutor(store)

    @property
    def store(self) -> BillStore:
        return self._store

    @property
    def ledger(self) -> LedgerInterface:
        return self._ledger

    # =========================================================================
    # BILLS
    # =========================================================================

    async def initialize_categories(self) -> bool:
        return await self._store.initialize_categories()

    async def create_bill(
        self,
        data: Union[BillCreate, dict[str, Any]],
        correlation_id: Optional[UUID] = None,
    ) -> Bill:
        return await self._store.create_bill(data, correlation_id or create_correlation_id())

    async def get_all_bills(self, now: Optional[datetime] = None) -> list[Bill]:
        return await self._store.get_all_bills(now)

    async def get_bill_by_id(self, bill_id: str) -> Optional[Bill]:
        return await self._store.get_bill_by_id(bill_id)

    async def update_bill(
        self,
        bill_id: str,
        updates: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Bill:
        return await self._store.update_bill(bill_id, updates, correlation_id or create_correlation_id())

    async def delete_bill(self, bill_id: str, correlation_id: Optional[UUID] = None) -> bool:
        return await self._store.delete_bill(bill_id, correlation_id or create_correlation_id())

    async def clear_all_bills(self) -> None:
        await self._store.clear_all_bills()

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    async def mark_bill_as_paid(
        self,
        bill_id: str,
        wallet_id: str,
        amount: Optional[Decimal] = None,
        notes: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> BillPayment:
        """
        Pay a bill from a wallet.

        Raises:
            NotFoundError: Unknown bill or wallet
            LedgerWriteError: Bill marked paid but the ledger write failed;
                call retry_ledger_writes() to finish it
        """
        return await self._processor.mark_paid(
            bill_id,
            wallet_id,
            amount=amount,
            notes=notes,
            correlation_id=correlation_id or create_correlation_id(),
        )

    async def get_bill_payments(self, bill_id: Optional[str] = None) -> list[BillPayment]:
        return await self._store.get_bill_payments(bill_id)

    async def check_sufficient_funds(self, wallet_id: str, amount: Decimal) -> FundsCheck:
        return await self._processor.check_sufficient_funds(wallet_id, amount)

    async def retry_ledger_writes(self) -> list[PaymentIntent]:
        return await self._processor.retry_ledger_writes()

    async def get_unreconciled_payments(self) -> list[PaymentIntent]:
        return await self._processor.get_unreconciled_intents()

    # =========================================================================
    # CATEGORIES & NOTIFICATIONS
    # =========================================================================

    async def get_bill_categories(self) -> list[BillCategory]:
        return await self._store.get_bill_categories()

    async def create_bill_category(self, name: str, **kwargs: Any) -> BillCategory:
        return await self._store.create_bill_category(name, **kwargs)

    async def get_bill_notifications(self, bill_id: Optional[str] = None) -> list[BillNotification]:
        return await self._store.get_bill_notifications(bill_id)

    async def mark_notification_read(self, notification_id: str) -> BillNotification:
        return await self._store.mark_notification_read(notification_id)

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_bills_analytics(self, month_year: Optional[str] = None) -> BillsAnalytics:
        return await self._queries.get_bills_analytics(month_year)

    async def get_upcoming_bills(self, days: Optional[int] = None) -> list[Bill]:
        return await self._queries.get_upcoming_bills(days)

    async def get_overdue_bills(self) -> list[Bill]:
        return await self._queries.get_overdue_bills()


def create_app_components(
    data_dir: Optional[Path] = None,
    ledger: Optional[LedgerInterface] = None,
    in_memory: bool = False,
) -> BillsService:
    """
    Factory function to create all application components.

    Args:
        data_dir: Directory for the JSON file store (defaults to settings)
        ledger: Wallet/transaction collaborator. Defaults to an empty
                in-memory ledger.
        in_memory: Keep everything in memory. Use for tests and demos.

    Returns:
        A ready-to-use BillsService
    """
    settings = get_settings()

    if in_memory:
        kv_store: KeyValueStoreInterface = InMemoryKeyValueStore()
    else:
        kv_store = JsonFileKeyValueStore(data_dir or settings.storage.data_dir)

    audit_logger = AuditLogger(KeyValueAuditStorage(kv_store))
    store = BillStore(kv_store, audit_logger=audit_logger)

    logger.info(
        "bills_service_created",
        backend="memory" if in_memory else "json_file",
        environment=settings.app.app_environment,
    )
    return BillsService(store, ledger or InMemoryLedger(), audit_logger)
