"""
BillCycle - Source Package

The bills engine of a personal-finance app: recurring bills, their
status lifecycle, payments linked to a wallet ledger, and analytics.

DESIGN PRINCIPLES:
1. Status is derived from dates, never trusted from storage
2. Fail early, fail visibly
3. A paid bill without a ledger entry is recorded, never hidden
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "BillCycle Team"
