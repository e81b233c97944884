"""
tokenlock vesting ledger.

- Plans: write-once table of (offset, percent) unlock steps
- Schedule: vested percent and next unlock for a plan at a moment
- Ledger: per-beneficiary locked and withdrawn totals
- Engine: freeze, claim and administration on top of the above
"""

from .engine import ClaimReceipt, NextUnlock, VestingEngine
from .ledger import Balance, BeneficiaryLedger, LedgerEntry
from .plans import LockPlan, PlanStep, PlanTable
from .schedule import VestingStatus, resolve_vested, unlock_timeline, vested_amount

__all__ = [
    # Engine
    "VestingEngine",
    "ClaimReceipt",
    "NextUnlock",
    # Ledger
    "BeneficiaryLedger",
    "LedgerEntry",
    "Balance",
    # Plans
    "PlanTable",
    "LockPlan",
    "PlanStep",
    # Schedule
    "VestingStatus",
    "resolve_vested",
    "unlock_timeline",
    "vested_amount",
]
