"""
Purchasing Kernel

Purchase order lifecycle and goods receiving over an append-only
inventory ledger:
- Per-organization, per-year order numbering via locked counter rows
- Explicit order lifecycle state machine
- All-or-nothing receipt reconciliation under row-level locks
- Stock derived from ledger history, never stored
"""

__version__ = "0.1.0"
