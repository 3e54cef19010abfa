"""
BudgT Ledger - Source Package

A local personal finance ledger. Accounts carry a cached balance that is
derived from the transactions recorded against them.

DESIGN PRINCIPLES:
1. Balances change only through transaction lifecycle operations
2. Every mutation runs in one atomic unit (all or nothing)
3. Fail early, fail visibly
4. No silent corrections
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "BudgT Team"
