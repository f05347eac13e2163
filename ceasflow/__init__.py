"""
CeasFlow - Source Package

A local-first personal-finance ledger: transactions recorded against
wallets and categories, rolling summaries for budget alerts, and a
round-trip spreadsheet export/import for backup and migration.

DESIGN PRINCIPLES:
1. Balances are always derived, never stored
2. Money is Decimal end to end
3. Every mutation goes through one service per entity
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "CeasFlow Team"
