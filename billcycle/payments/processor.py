"""
Bill Payment Processor

Marks bills paid and links each payment to a ledger expense.

FLOW (mark_paid):
1. Load the bill (NotFoundError if missing)
2. Build the payment; it is late if now is past next_due_date
3. Record a payment intent (outbox) at stage "started"
4. Append the payment to the bill, set last_paid_date and status=paid;
   recurring bills advance next_due_date and go straight to "upcoming"
   when the new due date is further away than reminder_days
5. Persist the bill                          -> intent "bill_updated"
6. Persist the payment                       -> intent "payment_recorded"
7. Ask the ledger to record an expense       -> intent "completed"

CRITICAL: Steps 5-7 are separate writes. If step 7 fails, the bill stays
paid and the payment stays recorded; the intent is parked at
"ledger_failed", a LEDGER_INCONSISTENCY audit event is written and the
caller gets LedgerWriteError. retry_ledger_writes() finishes parked
intents later. A storage failure after step 5 is audited the same way;
an intent stuck at "started" is recognized by its payment already being
in the bill's paid_history.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import structlog

from billcycle.audit.logger import AuditLogger, create_correlation_id
from billcycle.lifecycle.schedule import next_due_date
from billcycle.lifecycle.status import days_between
from billcycle.models.bill import (
    Bill,
    BillPayment,
    BillStatus,
    IntentStage,
    PaymentIntent,
    as_naive_utc,
)
from billcycle.models.ledger import FundsCheck, LedgerTransaction, TransactionType
from billcycle.payments.categories import match_ledger_category
from billcycle.services.ledger.interface import LedgerInterface, LedgerWriteError
from billcycle.services.storage.bill_store import BillStore
from billcycle.services.storage.interface import NotFoundError, StorageError


logger = structlog.get_logger(__name__)

RETRYABLE_STAGES = (
    IntentStage.BILL_UPDATED,
    IntentStage.PAYMENT_RECORDED,
    IntentStage.LEDGER_FAILED,
)


def apply_payment(bill: Bill, payment: BillPayment, now: datetime) -> Bill:
    """
    Return the bill as it looks after `payment`.

    Pure: the caller persists the result.
    """
    update = {
        "status": BillStatus.PAID,
        "last_paid_date": payment.paid_date,
        "paid_history": [*bill.paid_history, payment],
    }

    if bill.is_recurring:
        advanced = next_due_date(bill.next_due_date, bill.frequency)
        update["next_due_date"] = advanced
        # New cycle is far enough away that there is nothing to remind about
        if days_between(advanced, now) > bill.reminder_days:
            update["status"] = BillStatus.UPCOMING

    return bill.model_copy(update=update)


def build_ledger_transaction(
    bill: Bill,
    payment: BillPayment,
    category_id: str,
) -> LedgerTransaction:
    return LedgerTransaction(
        amount=payment.amount,
        description=bill.title,
        type=TransactionType.EXPENSE,
        date=payment.paid_date.date(),
        notes=payment.notes or f"Bill payment for {bill.category}",
        wallet_id=payment.wallet_id,
        category_id=category_id,
    )


def _bill_has_payment(bill: Bill, intent: PaymentIntent) -> bool:
    return any(p.id == intent.payment.id for p in bill.paid_history)


class PaymentProcessor:
    """
    Orchestrates a bill payment across the bill store and the ledger.

    The processor never changes wallet balances itself; it only asks the
    ledger to create a transaction.
    """

    def __init__(
        self,
        store: BillStore,
        ledger: LedgerInterface,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._ledger = ledger
        self._audit_logger = audit_logger
        self._clock = clock or store.now

    async def mark_paid(
        self,
        bill_id: str,
        wallet_id: str,
        amount: Optional[Decimal] = None,
        notes: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> BillPayment:
        """
        Mark a bill paid from a wallet.

        Args:
            bill_id: Bill to pay
            wallet_id: Wallet to charge (checked by the ledger)
            amount: Amount paid; defaults to the bill's amount when omitted
            notes: Optional payment notes

        Returns:
            The recorded payment

        Raises:
            NotFoundError: If the bill (or, at the ledger step, the wallet)
                doesn't exist
            LedgerWriteError: If the ledger step failed after the bill
                was already marked paid
            StorageError: If a bill-side write fails
        """
        correlation_id = correlation_id or create_correlation_id()
        now = as_naive_utc(self._clock())

        bill = await self._store.require_bill(bill_id, now)

        payment = BillPayment(
            bill_id=bill.id,
            amount=amount if amount is not None else bill.amount,
            paid_date=now,
            wallet_id=wallet_id,
            notes=notes,
            is_late=now > bill.next_due_date,
        )
        updated = apply_payment(bill, payment, now)
        intent = None
        bill_saved = False
        try:
            intent = await self._store.save_payment_intent(
                PaymentIntent(bill_id=bill.id, payment=payment, created_at=now)
            )
            await self._store.save_bill(updated)
            bill_saved = True
            intent = await self._advance(intent, IntentStage.BILL_UPDATED)

            await self._store.save_bill_payment(payment)
            intent = await self._advance(intent, IntentStage.PAYMENT_RECORDED)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="payment_storage_failed",
                    error_message=str(e),
                    details={"bill_id": bill.id, "payment_id": payment.id},
                    correlation_id=correlation_id,
                )
            if bill_saved:
                # Bill already shows the payment; retry_ledger_writes() picks it up
                await self._report_inconsistency(intent, bill.id, str(e), correlation_id)
            raise

        logger.info(
            "bill_paid",
            bill_id=bill.id,
            payment_id=payment.id,
            is_recurring=bill.is_recurring,
            next_due_date=updated.next_due_date.isoformat(),
            status=updated.status.value,
        )
        if self._audit_logger:
            await self._audit_logger.log_payment_recorded(
                payment_id=payment.id,
                bill_id=bill.id,
                amount=str(payment.amount),
                is_late=payment.is_late,
                next_status=updated.status.value,
                correlation_id=correlation_id,
            )

        await self._write_ledger(intent, updated, correlation_id)
        return payment

    async def retry_ledger_writes(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> list[PaymentIntent]:
        """
        Finish payments whose ledger transaction never landed.

        Picks up intents parked at "ledger_failed" and intents left at
        "bill_updated" or "payment_recorded" by an interrupted run. An
        intent still at "started" is resumed only when its payment is
        already in the bill's paid_history; otherwise the bill write
        never happened and there is nothing to finish.

        Returns:
            Intents completed by this call
        """
        correlation_id = correlation_id or create_correlation_id()
        completed = []

        for intent in await self._store.get_payment_intents((IntentStage.STARTED, *RETRYABLE_STAGES)):
            bill = await self._store.get_bill_by_id(intent.bill_id)
            if bill is None:
                if intent.stage != IntentStage.STARTED:
                    logger.warning("payment_intent_orphaned", intent_id=intent.id, bill_id=intent.bill_id)
                continue

            if intent.stage == IntentStage.STARTED:
                if not _bill_has_payment(bill, intent):
                    continue
                intent = await self._advance(intent, IntentStage.BILL_UPDATED)

            if intent.stage == IntentStage.BILL_UPDATED:
                await self._store.save_bill_payment(intent.payment)
                intent = await self._advance(intent, IntentStage.PAYMENT_RECORDED)

            try:
                intent = await self._write_ledger(intent, bill, correlation_id)
            except (LedgerWriteError, NotFoundError):
                continue  # Already recorded on the intent and in the audit log

            if self._audit_logger:
                await self._audit_logger.log_ledger_retry_succeeded(
                    intent_id=intent.id,
                    attempts=intent.attempts,
                    correlation_id=correlation_id,
                )
            completed.append(intent)

        return completed

    async def get_unreconciled_intents(self) -> list[PaymentIntent]:
        """Payments that are recorded on the bill but not (yet) in the ledger."""
        unreconciled = []
        for intent in await self._store.get_payment_intents((IntentStage.STARTED, *RETRYABLE_STAGES)):
            if intent.stage == IntentStage.STARTED:
                bill = await self._store.get_bill_by_id(intent.bill_id)
                if bill is None or not _bill_has_payment(bill, intent):
                    continue
                # Stage as it would be had the advance write landed
                intent = intent.model_copy(update={"stage": IntentStage.BILL_UPDATED})
            unreconciled.append(intent)
        return unreconciled

    async def check_sufficient_funds(
        self,
        wallet_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> FundsCheck:
        """
        Advisory balance check to run before mark_paid.

        The payment is never blocked by this; callers decide whether to
        warn the user.

        Raises:
            NotFoundError: If the wallet doesn't exist
        """
        wallet = await self._ledger.get_wallet(wallet_id)
        if wallet is None:
            raise NotFoundError(f"Wallet not found: {wallet_id}")

        check = FundsCheck(
            wallet_id=wallet.id,
            balance=wallet.balance,
            amount=amount,
            checked_at=as_naive_utc(self._clock()),
        )
        if not check.is_sufficient and self._audit_logger:
            await self._audit_logger.log_insufficient_funds(
                wallet_id=wallet.id,
                balance=str(wallet.balance),
                amount=str(amount),
                correlation_id=correlation_id,
            )
        return check

    async def _advance(self, intent: PaymentIntent, stage: IntentStage) -> PaymentIntent:
        return await self._store.save_payment_intent(intent.model_copy(update={"stage": stage}))

    async def _report_inconsistency(
        self,
        intent: PaymentIntent,
        bill_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        logger.error(
            "ledger_inconsistency",
            intent_id=intent.id,
            bill_id=bill_id,
            payment_id=intent.payment.id,
            error=error_message,
        )
        if self._audit_logger:
            await self._audit_logger.log_ledger_inconsistency(
                intent_id=intent.id,
                bill_id=bill_id,
                payment_id=intent.payment.id,
                error_message=error_message,
                correlation_id=correlation_id,
            )

    async def _write_ledger(
        self,
        intent: PaymentIntent,
        bill: Bill,
        correlation_id: UUID,
    ) -> PaymentIntent:
        payment = intent.payment
        attempts = intent.attempts + 1
        try:
            categories = await self._ledger.get_categories()
            category_id = match_ledger_category(bill.category, bill.category_id, categories)
            await self._ledger.create_transaction(
                build_ledger_transaction(bill, payment, category_id)
            )
        except Exception as e:
            await self._report_inconsistency(intent, bill.id, str(e), correlation_id)
            try:
                await self._store.save_payment_intent(intent.model_copy(update={
                    "stage": IntentStage.LEDGER_FAILED,
                    "attempts": attempts,
                    "last_error": str(e),
                }))
            except StorageError as save_error:
                # The intent stays at its previous retryable stage
                logger.error(
                    "payment_intent_save_failed",
                    intent_id=intent.id,
                    error=str(save_error),
                )
            if isinstance(e, (NotFoundError, LedgerWriteError)):
                raise
            raise LedgerWriteError(
                f"Bill {bill.id} marked paid but ledger transaction failed: {e}",
                payment=payment,
                intent_id=intent.id,
            ) from e

        if self._audit_logger:
            await self._audit_logger.log_ledger_transaction_created(
                payment_id=payment.id,
                wallet_id=payment.wallet_id,
                category_id=category_id,
                correlation_id=correlation_id,
            )
        return await self._store.save_payment_intent(intent.model_copy(update={
            "stage": IntentStage.COMPLETED,
            "attempts": attempts,
            "last_error": None,
        }))
