"""
tokenlock - Plan-Based Token Vesting Ledger

Grants a fixed token supply to beneficiaries under pre-defined lock plans
and settles whatever has unlocked since a single release time.

Main Components:
- Vesting: plan table, unlock schedule resolver, beneficiary ledger, engine
- Contracts: reference fungible token ledger
- Treasury: cashbox the engine draws frozen tokens from
- Core: configuration, logging, errors, events, capabilities, persistence
- CLI: operator commands for validating plans and simulating unlocks
"""

__version__ = "0.1.0"
__author__ = "tokenlock Development Team"

__all__ = []
