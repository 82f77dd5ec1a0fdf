"""
Ledger Category Matching

Maps a bill's category name onto the ledger's own category taxonomy.
This is a best-effort heuristic; the fallback chain is explicit and
walks the ledger categories in the order the ledger returns them:

1. Case-insensitive substring match in either direction
   ("Utilities" matches "Bills & Utilities", "Phone" matches "Phone")
2. The first category whose name mentions "bill" or "util"
3. The bill's own category id
"""

from typing import Iterable, Optional

from billcycle.models.ledger import LedgerCategory


GENERIC_BILL_MARKERS = ("bill", "util")


def _names_overlap(bill_category: str, ledger_name: str) -> bool:
    return bill_category in ledger_name or ledger_name in bill_category


def find_matching_category(
    bill_category: str,
    categories: Iterable[LedgerCategory],
) -> Optional[LedgerCategory]:
    """Step 1 of the chain, or None."""
    needle = bill_category.strip().lower()
    if not needle:
        return None
    for category in categories:
        name = category.name.strip().lower()
        if name and _names_overlap(needle, name):
            return category
    return None


def find_generic_bills_category(
    categories: Iterable[LedgerCategory],
) -> Optional[LedgerCategory]:
    """Step 2 of the chain, or None."""
    for category in categories:
        name = category.name.lower()
        if any(marker in name for marker in GENERIC_BILL_MARKERS):
            return category
    return None


def match_ledger_category(
    bill_category: str,
    fallback_id: str,
    categories: Iterable[LedgerCategory],
) -> str:
    """
    Pick the ledger category id for a bill payment.

    Args:
        bill_category: The bill's category name
        fallback_id: The bill's own category id, used when nothing matches
        categories: Ledger categories in ledger order

    Returns:
        A ledger category id, or fallback_id
    """
    categories = list(categories)
    matched = (
        find_matching_category(bill_category, categories)
        or find_generic_bills_category(categories)
    )
    return matched.id if matched else fallback_id
