"""
Group Ledger - Source Package

The shared-expense core of a personal expense tracker: splits group
expenses, replays balances and suggests who pays whom to settle up.

DESIGN PRINCIPLES:
1. Validate first, then write - never a partial write
2. Fail early, fail visibly
3. No silent corrections
4. Every mutation must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Group Ledger Team"
