"""
Wallet/Transaction Collaborator Interface

DESIGN DECISION: The engine never touches wallet balances itself.
It asks the ledger to record an expense; the ledger owns balances,
transactions and its own category taxonomy.
"""

from abc import ABC, abstractmethod
from typing import Optional

from billcycle.models.bill import BillPayment
from billcycle.models.ledger import LedgerCategory, LedgerTransaction, Wallet


class LedgerInterface(ABC):
    """What the payment processor needs from the wallet/transaction side."""

    @abstractmethod
    async def create_transaction(self, transaction: LedgerTransaction) -> LedgerTransaction:
        """
        Record a transaction and apply it to the wallet balance.

        Raises:
            NotFoundError: If the wallet does not exist
            LedgerWriteError: If the ledger could not record it
        """
        pass

    @abstractmethod
    async def get_categories(self) -> list[LedgerCategory]:
        """Ledger categories, in the ledger's own display order."""
        pass

    @abstractmethod
    async def get_wallets(self) -> list[Wallet]:
        pass

    async def get_wallet(self, wallet_id: str) -> Optional[Wallet]:
        for wallet in await self.get_wallets():
            if wallet.id == wallet_id:
                return wallet
        return None


class LedgerWriteError(Exception):
    """
    The ledger step of a payment failed after the bill was marked paid.

    The bill and payment writes are already committed; the payment intent
    identified by intent_id can be retried.
    """

    def __init__(
        self,
        message: str,
        payment: Optional[BillPayment] = None,
        intent_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.payment = payment
        self.intent_id = intent_id
