"""
In-Memory Ledger

A self-contained wallet/transaction ledger. Handy for tests, demos and
for apps that keep bills and wallets in the same process.
"""

from decimal import Decimal
from typing import Iterable, Optional

from billcycle.models.ledger import (
    LedgerCategory,
    LedgerTransaction,
    TransactionType,
    Wallet,
)
from billcycle.services.ledger.interface import LedgerInterface
from billcycle.services.storage.interface import NotFoundError


class InMemoryLedger(LedgerInterface):

    def __init__(
        self,
        wallets: Optional[Iterable[Wallet]] = None,
        categories: Optional[Iterable[LedgerCategory]] = None,
    ):
        self._wallets: dict[str, Wallet] = {w.id: w for w in wallets or ()}
        self._categories: list[LedgerCategory] = list(categories or ())
        self.transactions: list[LedgerTransaction] = []

    async def create_transaction(self, transaction: LedgerTransaction) -> LedgerTransaction:
        wallet = self._wallets.get(transaction.wallet_id)
        if wallet is None:
            raise NotFoundError(f"Wallet not found: {transaction.wallet_id}")

        if transaction.type == TransactionType.EXPENSE:
            delta = -transaction.amount
        else:
            delta = transaction.amount
        self._wallets[wallet.id] = wallet.model_copy(
            update={"balance": wallet.balance + delta}
        )
        self.transactions.append(transaction)
        return transaction

    async def get_categories(self) -> list[LedgerCategory]:
        return list(self._categories)

    async def get_wallets(self) -> list[Wallet]:
        return list(self._wallets.values())

    def add_wallet(self, name: str, balance: Decimal = Decimal("0")) -> Wallet:
        wallet = Wallet(name=name, balance=balance)
        self._wallets[wallet.id] = wallet
        return wallet
