"""Wallet/transaction ledger collaborator."""

from billcycle.services.ledger.interface import LedgerInterface, LedgerWriteError
from billcycle.services.ledger.memory import InMemoryLedger

__all__ = ["InMemoryLedger", "LedgerInterface", "LedgerWriteError"]
