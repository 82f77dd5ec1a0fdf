"""Bill payment processing."""

from billcycle.payments.categories import match_ledger_category
from billcycle.payments.processor import (
    PaymentProcessor,
    apply_payment,
    build_ledger_transaction,
)

__all__ = [
    "PaymentProcessor",
    "apply_payment",
    "build_ledger_transaction",
    "match_ledger_category",
]
