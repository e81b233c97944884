"""
Beneficiary ledger.

One row per (beneficiary, plan): the cumulative amount ever frozen
(``locked``) and the cumulative amount ever paid (``withdrawn``). Both only
grow, and ``withdrawn`` never exceeds ``locked``. A per-plan aggregate of
``locked`` is kept alongside the rows.

Writes made inside ``transaction()`` are journalled and undone if the
block raises, so an operation that fails halfway leaves no trace.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

from tokenlock.core.access import normalize_address
from tokenlock.core.vesting_exceptions import (
    InvalidArgumentError,
    InvalidBeneficiaryError,
    VestingError,
)

logger = logging.getLogger(__name__)

LedgerKey = Tuple[str, int]


@dataclass
class LedgerEntry:
    beneficiary: str
    plan_id: int
    locked: int = 0
    withdrawn: int = 0

    @property
    def frozen(self) -> int:
        return self.locked - self.withdrawn


class Balance(NamedTuple):
    total: int
    frozen: int
    withdrawn: int


class BeneficiaryLedger:
    def __init__(self) -> None:
        self._entries: Dict[LedgerKey, LedgerEntry] = {}
        self._plan_totals: Dict[int, int] = {}
        self._journal: Optional[List[Tuple[str, object, object]]] = None

    # ==================== Reads ====================

    @staticmethod
    def key(beneficiary: str, plan_id: int) -> LedgerKey:
        normalized = normalize_address(beneficiary)
        if not normalized:
            raise InvalidBeneficiaryError("Beneficiary cannot be empty.")
        return normalized, plan_id

    def entry(self, beneficiary: str, plan_id: int) -> LedgerEntry:
        """Copy of a row; rows never written read as zero."""
        key = self.key(beneficiary, plan_id)
        current = self._entries.get(key)
        if current is None:
            return LedgerEntry(beneficiary=key[0], plan_id=plan_id)
        return LedgerEntry(current.beneficiary, current.plan_id, current.locked, current.withdrawn)

    def balance_of(self, beneficiary: str, plan_id: int) -> Balance:
        row = self.entry(beneficiary, plan_id)
        return Balance(total=row.locked, frozen=row.frozen, withdrawn=row.withdrawn)

    def total_balance_of(self, beneficiary: str) -> Balance:
        normalized = self.key(beneficiary, 0)[0]
        total = frozen = withdrawn = 0
        for (owner, _plan_id), row in list(self._entries.items()):
            if owner != normalized:
                continue
            total += row.locked
            frozen += row.frozen
            withdrawn += row.withdrawn
        return Balance(total=total, frozen=frozen, withdrawn=withdrawn)

    def plan_total(self, plan_id: int) -> int:
        return self._plan_totals.get(plan_id, 0)

    def plan_totals(self) -> Dict[int, int]:
        return dict(self._plan_totals)

    def beneficiaries(self, plan_id: Optional[int] = None) -> List[str]:
        return sorted(
            {owner for (owner, pid) in list(self._entries) if plan_id is None or pid == plan_id}
        )

    def entries(self) -> Iterator[LedgerEntry]:
        for key in sorted(self._entries):
            row = self._entries[key]
            yield LedgerEntry(row.beneficiary, row.plan_id, row.locked, row.withdrawn)

    # ==================== Writes ====================

    def add_locked(self, beneficiary: str, plan_id: int, amount: int) -> LedgerEntry:
        if amount < 0:
            raise InvalidArgumentError("Locked amount cannot decrease.")
        key = self.key(beneficiary, plan_id)
        row = self._entries.get(key)
        self._record("entry", key, None if row is None else (row.locked, row.withdrawn))
        self._record("total", plan_id, self._plan_totals.get(plan_id))
        if row is None:
            row = LedgerEntry(beneficiary=key[0], plan_id=plan_id)
            self._entries[key] = row
        row.locked += amount
        self._plan_totals[plan_id] = self._plan_totals.get(plan_id, 0) + amount
        return self.entry(beneficiary, plan_id)

    def set_withdrawn(self, beneficiary: str, plan_id: int, withdrawn: int) -> LedgerEntry:
        """
        Set a row's cumulative withdrawn amount.

        The value is absolute, not a delta; it may not shrink and may not
        pass ``locked``.
        """
        key = self.key(beneficiary, plan_id)
        row = self._entries.get(key)
        if row is None:
            raise InvalidArgumentError(
                "Nothing is locked for this beneficiary and plan.",
                details={"plan_id": plan_id},
            )
        if withdrawn < row.withdrawn or withdrawn > row.locked:
            raise InvalidArgumentError(
                "Withdrawn amount must stay between its previous value and locked.",
                details={"plan_id": plan_id, "withdrawn": withdrawn, "locked": row.locked},
            )
        self._record("entry", key, (row.locked, row.withdrawn))
        row.withdrawn = withdrawn
        return self.entry(beneficiary, plan_id)

    # ==================== Transactions ====================

    @contextmanager
    def transaction(self) -> Iterator["BeneficiaryLedger"]:
        """Undo every write in the block if it raises. Nested blocks join the outer one."""
        if self._journal is not None:
            yield self
            return
        self._journal = []
        try:
            yield self
        except BaseException:
            self._rollback()
            raise
        finally:
            self._journal = None

    def _record(self, kind: str, key: object, previous: object) -> None:
        if self._journal is not None:
            self._journal.append((kind, key, previous))

    def _rollback(self) -> None:
        journal = self._journal or []
        for kind, key, previous in reversed(journal):
            if kind == "entry":
                if previous is None:
                    self._entries.pop(key, None)
                else:
                    locked, withdrawn = previous
                    row = self._entries[key]
                    row.locked = locked
                    row.withdrawn = withdrawn
            elif previous is None:
                self._plan_totals.pop(key, None)
            else:
                self._plan_totals[key] = previous
        if journal:
            logger.warning(
                "Ledger rolled back %d staged writes",
                len(journal),
                extra={"event": "ledger.rollback", "writes": len(journal)},
            )

    # ==================== Integrity ====================

    def check_invariants(self) -> None:
        """Raise VestingError if any row or plan total is inconsistent."""
        sums: Dict[int, int] = {}
        for row in self._entries.values():
            if not 0 <= row.withdrawn <= row.locked:
                raise VestingError(
                    "Ledger row has withdrawn outside [0, locked].",
                    details={"beneficiary": row.beneficiary, "plan_id": row.plan_id},
                )
            sums[row.plan_id] = sums.get(row.plan_id, 0) + row.locked
        for plan_id in set(sums) | set(self._plan_totals):
            if sums.get(plan_id, 0) != self._plan_totals.get(plan_id, 0):
                raise VestingError(
                    "Plan total does not match the sum of locked amounts.",
                    details={
                        "plan_id": plan_id,
                        "plan_total": self._plan_totals.get(plan_id, 0),
                        "sum_locked": sums.get(plan_id, 0),
                    },
                )

    # ==================== Serialization ====================

    def to_dict(self) -> dict:
        return {
            "ledger": [
                {
                    "beneficiary": row.beneficiary,
                    "plan_id": row.plan_id,
                    "locked": row.locked,
                    "withdrawn": row.withdrawn,
                }
                for row in self.entries()
            ],
            "plan_totals": {str(pid): total for pid, total in sorted(self._plan_totals.items())},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BeneficiaryLedger":
        ledger = cls()
        for item in data.get("ledger", []):
            key = cls.key(item["beneficiary"], int(item["plan_id"]))
            ledger._entries[key] = LedgerEntry(
                beneficiary=key[0],
                plan_id=key[1],
                locked=int(item["locked"]),
                withdrawn=int(item["withdrawn"]),
            )
        ledger._plan_totals = {
            int(pid): int(total) for pid, total in data.get("plan_totals", {}).items()
        }
        ledger.check_invariants()
        return ledger
