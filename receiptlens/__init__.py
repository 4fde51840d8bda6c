"""
ReceiptLens - Ledger Core

The persistent ledger and domain-rules engine behind the ReceiptLens
expense tracker: expenses, budgets, categories, recurring transactions
and the free / trial / premium subscription lifecycle.

DESIGN PRINCIPLES:
1. AI suggests → Human confirms → Ledger records
2. Every mutation is one read-modify-write against the record store
3. Derived data (recurring occurrences) is generated exactly once
4. Storage failures are loud, corrupt data is tolerated
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "ReceiptLens Team"
