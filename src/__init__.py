"""
Ledger - Source Package

A small double-entry accounting engine for a personal or micro-business
lending and resale operation: credits to clients, investments bought for
resale, and a monthly close into capital.

DESIGN PRINCIPLES:
1. Every money movement is one balanced transaction
2. Balances are derived from the ledger, never edited in passing
3. Business-rule failures are results, not crashes
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Ledger Team"
