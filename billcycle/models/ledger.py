"""
Ledger Models

Records owned by the wallet/transaction collaborator. The engine only
builds LedgerTransaction requests and reads wallets and categories;
balances are never changed from this package's own code paths.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from billcycle.models.bill import RecordModel, UtcDatetime, new_id, utcnow


class TransactionType(str, Enum):
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"


class Wallet(RecordModel):
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)
    balance: Decimal = Decimal("0")


class LedgerCategory(RecordModel):
    """A transaction category from the ledger's own taxonomy."""
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)


class LedgerTransaction(RecordModel):
    """
    A ledger entry requested by the payment processor.

    The date is the calendar day of the payment (YYYY-MM-DD on disk).
    """
    id: str = Field(default_factory=new_id)
    amount: Decimal = Field(..., ge=0)
    description: str
    type: TransactionType = TransactionType.EXPENSE
    date: date
    notes: Optional[str] = None
    wallet_id: str = Field(..., min_length=1)
    category_id: Optional[str] = None
    created_at: UtcDatetime = Field(default_factory=utcnow)


class FundsCheck(RecordModel):
    """Advisory result of comparing a wallet balance with a payment."""
    wallet_id: str
    balance: Decimal
    amount: Decimal
    checked_at: datetime = Field(default_factory=utcnow)

    @property
    def is_sufficient(self) -> bool:
        return self.balance >= self.amount

    @property
    def shortfall(self) -> Decimal:
        return max(self.amount - self.balance, Decimal("0"))
