"""
Stock Kernel - multi-tenant stock-quantity ledger

Per-warehouse, per-product stock bookkeeping with:
- Locked, version-stamped stock level mutations
- Append-only inventory transactions with running balances
- Manual adjustments, two-phase transfers, sale deduction and void
- Atomic units of work with tagged operation results
"""

__version__ = "0.1.0"
