"""
Bill Store

Owns every bill-side collection: bills, payments, categories,
notifications and payment intents. No other component writes them.

DESIGN DECISIONS:
- Status is recomputed on every bulk read and never written back as a
  side effect of reading. The stored status only changes on explicit
  writes (creation, edits, payments).
- The bulk bill read goes through a short-lived cache. Every write
  invalidates it before returning.
- Deleting a bill cascades to its payments and notifications.
- Reminder notifications are best-effort: a failure is logged and the
  bill is still created.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from billcycle.config import get_settings
from billcycle.lifecycle.schedule import initial_due_datetime
from billcycle.lifecycle.status import compute_status
from billcycle.models.bill import (
    DEFAULT_BILL_CATEGORIES,
    Bill,
    BillCategory,
    BillCreate,
    BillNotification,
    BillPayment,
    IntentStage,
    NotificationType,
    PaymentIntent,
    as_naive_utc,
    utcnow,
)
from billcycle.services.storage.cache import ReadThroughCache
from billcycle.services.storage.interface import (
    KeyValueStoreInterface,
    NotFoundError,
    StorageError,
)
from billcycle.validation.validator import BillValidator

if TYPE_CHECKING:
    from billcycle.audit.logger import AuditLogger


logger = structlog.get_logger(__name__)


class BillStore:
    """
    Persistence and read-path logic for bills.

    Collections are stored under "<prefix>bills", "<prefix>bill_payments",
    "<prefix>bill_categories", "<prefix>bill_notifications" and
    "<prefix>bill_payment_intents".
    """

    def __init__(
        self,
        store: KeyValueStoreInterface,
        cache: Optional[ReadThroughCache] = None,
        audit_logger: Optional["AuditLogger"] = None,
        validator: Optional[BillValidator] = None,
        clock: Callable[[], datetime] = utcnow,
        key_prefix: Optional[str] = None,
        bills_ttl_seconds: Optional[float] = None,
        categories_ttl_seconds: Optional[float] = None,
        currency_symbol: Optional[str] = None,
    ):
        settings = get_settings()
        prefix = key_prefix if key_prefix is not None else settings.storage.key_prefix

        self._store = store
        self._cache = cache or ReadThroughCache()
        self._audit_logger = audit_logger
        self._validator = validator or BillValidator()
        self._clock = clock

        self.bills_key = f"{prefix}bills"
        self.payments_key = f"{prefix}bill_payments"
        self.categories_key = f"{prefix}bill_categories"
        self.notifications_key = f"{prefix}bill_notifications"
        self.intents_key = f"{prefix}bill_payment_intents"

        cache_settings = settings.cache
        self._bills_ttl = (
            bills_ttl_seconds if bills_ttl_seconds is not None
            else cache_settings.bills_ttl_seconds
        )
        self._categories_ttl = (
            categories_ttl_seconds if categories_ttl_seconds is not None
            else cache_settings.categories_ttl_seconds
        )
        self._currency_symbol = currency_symbol or settings.app.currency_symbol

    @property
    def cache(self) -> ReadThroughCache:
        return self._cache

    def now(self) -> datetime:
        return as_naive_utc(self._clock())

    # =========================================================================
    # RAW COLLECTION ACCESS
    # =========================================================================

    async def _load(self, key: str, model: type, use_cache: bool = False, ttl: float = 0.0) -> list:
        records = self._cache.get(key) if use_cache else None
        if records is None:
            records = await self._store.get(key) or []
            if use_cache:
                self._cache.set(key, records, ttl)
        try:
            return [model.model_validate(record) for record in records]
        except ValidationError as e:
            raise StorageError(f"Malformed record in {key}: {e}") from e

    async def _save(self, key: str, items: Iterable[Any]) -> None:
        # Invalidate first so a failed write never leaves a stale cache behind
        self._cache.invalidate(key)
        await self._store.set(key, [item.to_record() for item in items])
        self._cache.invalidate(key)

    async def _load_bills(self) -> list[Bill]:
        """Bills exactly as stored (stored status, no recomputation)."""
        return await self._load(self.bills_key, Bill, use_cache=True, ttl=self._bills_ttl)

    # =========================================================================
    # BILLS
    # =========================================================================

    async def get_all_bills(self, now: Optional[datetime] = None) -> list[Bill]:
        """
        All bills with their status recomputed for `now`.

        The recomputed status is returned, not persisted.
        """
        now = as_naive_utc(now) if now else self.now()
        bills = await self._load_bills()

        refreshed = []
        for bill in bills:
            status = compute_status(bill, now)
            if status != bill.status:
                logger.debug(
                    "bill_status_changed",
                    bill_id=bill.id,
                    title=bill.title,
                    stored=bill.status.value,
                    computed=status.value,
                )
                bill = bill.model_copy(update={"status": status})
            refreshed.append(bill)
        return refreshed

    async def get_bill_by_id(self, bill_id: str, now: Optional[datetime] = None) -> Optional[Bill]:
        for bill in await self.get_all_bills(now):
            if bill.id == bill_id:
                return bill
        return None

    async def require_bill(self, bill_id: str, now: Optional[datetime] = None) -> Bill:
        """Like get_bill_by_id, but a missing bill raises NotFoundError."""
        bill = await self.get_bill_by_id(bill_id, now)
        if bill is None:
            raise NotFoundError(f"Bill not found: {bill_id}")
        return bill

    async def create_bill(
        self,
        data: Union[BillCreate, dict[str, Any]],
        correlation_id: Optional[UUID] = None,
    ) -> Bill:
        """
        Create and persist a bill.

        The store assigns id and created_at, derives next_due_date from
        due_date, and starts an empty payment history. A status supplied in
        the payload is kept as the stored status; otherwise it is computed.

        Raises:
            BillValidationError: If required fields are missing or invalid
            StorageError: If the write fails
        """
        payload = self._validator.validate_create(data)
        for warning in self._validator.check_semantics(payload).warnings:
            logger.warning("bill_validation_warning", field=warning.field, message=warning.message)

        now = self.now()
        bill = Bill(
            **payload.model_dump(exclude={"status"}),
            created_at=now,
            next_due_date=initial_due_datetime(payload.due_date),
        )
        bill = bill.model_copy(update={"status": payload.status or compute_status(bill, now)})

        bills = await self._load_bills()
        bills.append(bill)
        await self._save(self.bills_key, bills)

        if self._audit_logger:
            await self._audit_logger.log_bill_created(
                bill_id=bill.id,
                title=bill.title,
                amount=str(bill.amount),
                correlation_id=correlation_id,
            )

        if bill.reminder_days > 0:
            await self._create_notification_best_effort(bill, correlation_id)

        return bill

    async def update_bill(
        self,
        bill_id: str,
        updates: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Bill:
        """
        Apply user edits to a bill.

        Raises:
            NotFoundError: If the bill doesn't exist
            BillValidationError: On invalid values or immutable-field edits
        """
        bills = await self._load_bills()
        for idx, existing in enumerate(bills):
            if existing.id == bill_id:
                updated = self._validator.validate_update(existing, updates)
                bills[idx] = updated
                await self._save(self.bills_key, bills)
                if self._audit_logger:
                    await self._audit_logger.log_bill_updated(
                        bill_id=bill_id,
                        fields=list(updates),
                        correlation_id=correlation_id,
                    )
                return updated

        raise NotFoundError(f"Bill not found: {bill_id}")

    async def save_bill(self, bill: Bill) -> Bill:
        """
        Replace a stored bill wholesale.

        Used by the payment processor, which manages paid_history,
        last_paid_date and next_due_date itself.

        Raises:
            NotFoundError: If the bill doesn't exist
        """
        bills = await self._load_bills()
        for idx, existing in enumerate(bills):
            if existing.id == bill.id:
                bills[idx] = bill
                await self._save(self.bills_key, bills)
                return bill

        raise NotFoundError(f"Bill not found: {bill.id}")

    async def delete_bill(
        self,
        bill_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete a bill with its payments and notifications.

        Returns:
            True if the bill existed
        """
        bills = await self._load_bills()
        remaining = [bill for bill in bills if bill.id != bill_id]
        if len(remaining) == len(bills):
            return False

        await self._save(self.bills_key, remaining)
        await self._delete_bill_payments(bill_id)
        await self._delete_bill_notifications(bill_id)

        if self._audit_logger:
            await self._audit_logger.log_bill_deleted(bill_id, correlation_id=correlation_id)
        return True

    async def clear_all_bills(self) -> None:
        """Remove bills, payments, notifications and payment intents."""
        for key in (self.bills_key, self.payments_key, self.notifications_key, self.intents_key):
            self._cache.invalidate(key)
            await self._store.remove(key)
        if self._audit_logger:
            await self._audit_logger.log_bills_cleared()

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    async def get_bill_payments(self, bill_id: Optional[str] = None) -> list[BillPayment]:
        """All payments in the order they were made, optionally for one bill."""
        payments = await self._load(self.payments_key, BillPayment)
        if bill_id is None:
            return payments
        return [payment for payment in payments if payment.bill_id == bill_id]

    async def save_bill_payment(self, payment: BillPayment) -> None:
        payments = await self._load(self.payments_key, BillPayment)
        if any(existing.id == payment.id for existing in payments):
            # Payments are immutable; re-saving the same one is a no-op
            return
        payments.append(payment)
        await self._save(self.payments_key, payments)

    async def _delete_bill_payments(self, bill_id: str) -> None:
        payments = await self._load(self.payments_key, BillPayment)
        await self._save(self.payments_key, [p for p in payments if p.bill_id != bill_id])

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def initialize_categories(self) -> bool:
        """
        Persist the default categories if none are stored yet.

        Idempotent: existing categories, including user-created ones,
        are never touched.

        Returns:
            True if the defaults were written by this call
        """
        if await self._store.get(self.categories_key) is not None:
            return False

        await self._save(self.categories_key, DEFAULT_BILL_CATEGORIES)
        if self._audit_logger:
            await self._audit_logger.log_categories_seeded(len(DEFAULT_BILL_CATEGORIES))
        return True

    async def get_bill_categories(self) -> list[BillCategory]:
        """Stored categories, or the defaults if nothing was stored yet."""
        records = self._cache.get(self.categories_key)
        if records is None:
            stored = await self._store.get(self.categories_key)
            if stored is None:
                stored = [category.to_record() for category in DEFAULT_BILL_CATEGORIES]
            records = stored
            self._cache.set(self.categories_key, records, self._categories_ttl)
        try:
            return [BillCategory.model_validate(record) for record in records]
        except ValidationError as e:
            raise StorageError(f"Malformed record in {self.categories_key}: {e}") from e

    async def get_bill_category(self, category_id: str) -> Optional[BillCategory]:
        for category in await self.get_bill_categories():
            if category.id == category_id:
                return category
        return None

    async def create_bill_category(
        self,
        name: str,
        icon: str = "document-text",
        color: str = "#6B7280",
        description: Optional[str] = None,
    ) -> BillCategory:
        """Append a user-defined category after the existing ones."""
        category = BillCategory(name=name, icon=icon, color=color, description=description)
        categories = await self.get_bill_categories()
        categories.append(category)
        await self._save(self.categories_key, categories)
        if self._audit_logger:
            await self._audit_logger.log_category_created(category.id, category.name)
        return category

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    def _reminder_for(self, bill: Bill) -> BillNotification:
        return BillNotification(
            bill_id=bill.id,
            title=f"Bill Reminder: {bill.title}",
            message=(
                f"Your {bill.title} bill of {self._currency_symbol}{bill.amount} "
                f"is due on {bill.next_due_date:%b %d, %Y}"
            ),
            due_date=bill.next_due_date,
            type=NotificationType.REMINDER,
            created_at=self.now(),
        )

    async def create_bill_notification(self, bill: Bill) -> BillNotification:
        notification = self._reminder_for(bill)
        notifications = await self._load(self.notifications_key, BillNotification)
        notifications.append(notification)
        await self._save(self.notifications_key, notifications)
        return notification

    async def _create_notification_best_effort(
        self,
        bill: Bill,
        correlation_id: Optional[UUID],
    ) -> Optional[BillNotification]:
        try:
            return await self.create_bill_notification(bill)
        except (StorageError, ValidationError) as e:
            logger.warning("bill_notification_failed", bill_id=bill.id, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_notification_failed(
                    bill_id=bill.id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return None

    async def get_bill_notifications(self, bill_id: Optional[str] = None) -> list[BillNotification]:
        notifications = await self._load(self.notifications_key, BillNotification)
        if bill_id is None:
            return notifications
        return [n for n in notifications if n.bill_id == bill_id]

    async def mark_notification_read(self, notification_id: str) -> BillNotification:
        notifications = await self._load(self.notifications_key, BillNotification)
        for idx, notification in enumerate(notifications):
            if notification.id == notification_id:
                notifications[idx] = notification.model_copy(update={"is_read": True})
                await self._save(self.notifications_key, notifications)
                return notifications[idx]
        raise NotFoundError(f"Notification not found: {notification_id}")

    async def _delete_bill_notifications(self, bill_id: str) -> None:
        notifications = await self._load(self.notifications_key, BillNotification)
        await self._save(self.notifications_key, [n for n in notifications if n.bill_id != bill_id])

    # =========================================================================
    # PAYMENT INTENTS
    # =========================================================================

    async def save_payment_intent(self, intent: PaymentIntent) -> PaymentIntent:
        """Insert or replace an intent, stamping updated_at."""
        intent = intent.model_copy(update={"updated_at": self.now()})
        intents = await self._load(self.intents_key, PaymentIntent)
        for idx, existing in enumerate(intents):
            if existing.id == intent.id:
                intents[idx] = intent
                break
        else:
            intents.append(intent)
        await self._save(self.intents_key, intents)
        return intent

    async def get_payment_intents(
        self,
        stages: Optional[Iterable[IntentStage]] = None,
    ) -> list[PaymentIntent]:
        intents = await self._load(self.intents_key, PaymentIntent)
        if stages is None:
            return intents
        wanted = set(stages)
        return [intent for intent in intents if intent.stage in wanted]
