"""
FinTrack - Core Package

The domain core of a multi-tenant personal/household finance tracker:
groups with role-based permissions, accounts with balance snapshots and
credit billing cycles, and safe account deletion.

DESIGN PRINCIPLES:
1. The group owner can always do everything
2. Built-in roles are never modified
3. Balances are an append-only ledger
4. Nothing referenced by a transaction disappears without an explicit choice
5. Every mutation is auditable
6. The backend is swappable (REST or in-memory)
"""

__version__ = "1.0.0"
__author__ = "FinTrack Team"
