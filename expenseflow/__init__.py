"""
ExpenseFlow - Source Package

A personal finance tracker: transactions, category budgets and
savings goals for a single account.

DESIGN PRINCIPLES:
1. Money is Decimal, quantized to cents, never binary float
2. Budget "spent" is derived from the ledger, never typed in
3. Aggregations never fail - only store calls can
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "ExpenseFlow Team"
