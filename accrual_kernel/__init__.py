"""
Accrual Kernel

The balance ledger and accrual engine for time-boxed contracts:
- Per-period profit accrual with idempotent period records
- Backfill of every period missed by irregular distribution runs
- Multi-component owner balances with an append-only transaction log
- Atomic units of work with row-level locking per owner
"""

__version__ = "0.1.0"
