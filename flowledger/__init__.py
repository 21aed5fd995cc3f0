"""
Flow Ledger - Core Package

The storage and subscription engine behind the Flow personal finance tracker.

DESIGN PRINCIPLES:
1. Every stored collection is encrypted per user
2. Wrong password and missing data are never confused with an empty ledger
3. Subscriptions advance one billing period at a time
4. Projections are derived, never persisted
5. Storage backend is swappable
"""

__version__ = "1.0.0"
__author__ = "Flow Ledger Team"
