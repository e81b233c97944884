"""
Vesting ledger engine.

Ties the plan table, the unlock schedule and the beneficiary ledger to the
token and treasury collaborators:

- ``define_plan`` (owner) fills a write-once plan slot
- ``freeze`` (freezer) draws tokens from the treasury and locks them for a
  beneficiary under a plan
- ``claim`` / ``claim_all`` (beneficiary) pay out whatever has vested since
  the release time and has not been paid yet

Every public operation runs under one lock and either completes or leaves
no state change behind.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence

from tokenlock.core.access import VestingCapabilities, normalize_address
from tokenlock.core.config import VestingConfig
from tokenlock.core.events import (
    EventLog,
    PlanAdded,
    ReleaseTimeSet,
    TokensClaimed,
    TokensLocked,
)
from tokenlock.core.protocols import ITokenLedger, ITreasury
from tokenlock.core.vesting_exceptions import (
    CannotRecoverVestingTokenError,
    InsufficientTreasuryError,
    InvalidArgumentError,
    InvalidBeneficiaryError,
    PlanNotFoundError,
    ReleaseTimeAlreadySetError,
    ReleaseTimeNotSetError,
    TransferFailedError,
)

from .ledger import Balance, BeneficiaryLedger
from .plans import LockPlan, PlanTable
from .schedule import VestingStatus, resolve_vested, unlock_timeline, vested_amount

logger = logging.getLogger(__name__)


class NextUnlock(NamedTuple):
    timestamp: Optional[int]
    amount: int


@dataclass
class ClaimReceipt:
    beneficiary: str
    payouts: Dict[int, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.payouts.values())


class VestingEngine:
    def __init__(
        self,
        token: ITokenLedger,
        treasury: ITreasury,
        capabilities: VestingCapabilities,
        release_time: Optional[int] = None,
        config: Optional[VestingConfig] = None,
        time_provider: Callable[[], int] | None = None,
        event_log: Optional[EventLog] = None,
    ):
        self.config = (config or VestingConfig()).validate()
        self.token = token
        self.treasury = treasury
        self.capabilities = capabilities
        self.address = normalize_address(self.config.engine_address)
        self.plans = PlanTable(self.config.max_lock_plans, self.config.max_plan_steps)
        self.ledger = BeneficiaryLedger()
        self.events = event_log if event_log is not None else EventLog()
        self._time_provider = time_provider or (lambda: int(time.time()))
        self._release_time: Optional[int] = None
        self._lock = threading.RLock()

        if release_time is not None:
            self._write_release_time(release_time)

        logger.info(
            "VestingEngine initialized. Plans: %d, release time: %s",
            self.config.max_lock_plans,
            self._release_time,
            extra={"event": "vesting.initialized", "engine": self.address[:10]},
        )

    def _current_time(self) -> int:
        timestamp = self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise InvalidArgumentError(
                "time_provider must return an integer timestamp.",
                details={"timestamp": repr(timestamp)},
            ) from exc

    # ==================== Release Time ====================

    @property
    def release_time(self) -> Optional[int]:
        return self._release_time

    def set_release_time(self, caller: str, release_time: int) -> int:
        """Write the release time once (owner only)."""
        with self._lock:
            self.capabilities.require_owner(caller)
            return self._write_release_time(release_time)

    def _write_release_time(self, release_time: int) -> int:
        if self._release_time is not None:
            raise ReleaseTimeAlreadySetError(
                "Release time is already set.",
                details={"release_time": self._release_time},
            )
        if not isinstance(release_time, int) or isinstance(release_time, bool):
            raise InvalidArgumentError("Release time must be an integer timestamp.")
        now = self._current_time()
        if release_time <= now:
            raise InvalidArgumentError(
                "Release time must lie in the future.",
                details={"release_time": release_time, "now": now},
            )
        self._release_time = release_time
        self.events.emit(ReleaseTimeSet(timestamp=now, release_time=release_time))
        logger.info(
            "Release time set to %d",
            release_time,
            extra={"event": "vesting.release_time_set", "release_time": release_time},
        )
        return release_time

    # ==================== Plan Table ====================

    def define_plan(
        self, caller: str, plan_id: int, offsets: Sequence[int], percents: Sequence[int]
    ) -> LockPlan:
        with self._lock:
            self.capabilities.require_owner(caller)
            plan = self.plans.define_plan(plan_id, offsets, percents)
            self.events.emit(
                PlanAdded(
                    timestamp=self._current_time(),
                    plan_id=plan_id,
                    offsets=plan.offsets,
                    percents=plan.percents,
                )
            )
            return plan

    def get_plan(self, plan_id: int) -> LockPlan:
        return self.plans.get_plan(plan_id)

    def get_plan_length(self, plan_id: int) -> int:
        return self.plans.plan_length(plan_id)

    def get_unlock_timeline(self, plan_id: int) -> list:
        if self._release_time is None:
            raise ReleaseTimeNotSetError("Release time is not set.")
        return unlock_timeline(self.plans.get_plan(plan_id), self._release_time)

    # ==================== Views ====================

    def resolve(self, plan_id: int, now: Optional[int] = None) -> VestingStatus:
        current = self._current_time() if now is None else now
        return resolve_vested(self.plans.get_plan(plan_id), current, self._release_time)

    def balance_of(self, beneficiary: str, plan_id: int) -> Balance:
        self.plans.require_valid_id(plan_id)
        with self._lock:
            return self.ledger.balance_of(beneficiary, plan_id)

    def total_balance_of(self, beneficiary: str) -> Balance:
        with self._lock:
            return self.ledger.total_balance_of(beneficiary)

    def plan_total(self, plan_id: int) -> int:
        self.plans.require_valid_id(plan_id)
        with self._lock:
            return self.ledger.plan_total(plan_id)

    def vested_amount_of(self, beneficiary: str, plan_id: int, now: Optional[int] = None) -> int:
        """Amount of one row that has vested by ``now``, paid or not."""
        self.plans.require_valid_id(plan_id)
        with self._lock:
            status = self.resolve(plan_id, now)
            return vested_amount(self.ledger.entry(beneficiary, plan_id).locked, status.percent_vested)

    def pending_reward(self, beneficiary: str, plan_id: int, now: Optional[int] = None) -> int:
        """Vested but unpaid amount for one ledger row."""
        self.plans.require_valid_id(plan_id)
        with self._lock:
            row = self.ledger.entry(beneficiary, plan_id)
            vested = vested_amount(row.locked, self.resolve(plan_id, now).percent_vested)
            return max(0, vested - row.withdrawn)

    def total_pending_reward(self, beneficiary: str, now: Optional[int] = None) -> int:
        with self._lock:
            current = self._current_time() if now is None else now
            return sum(self.pending_reward(beneficiary, pid, current) for pid in self.plans.plan_ids())

    def get_next_unlock_at(self, plan_id: int, now: Optional[int] = None) -> NextUnlock:
        """Time and plan-wide amount of the next step still pending."""
        self.plans.require_valid_id(plan_id)
        with self._lock:
            status = self.resolve(plan_id, now)
            if status.next_unlock_time is None:
                return NextUnlock(timestamp=None, amount=0)
            amount = vested_amount(self.ledger.plan_total(plan_id), status.next_unlock_percent)
            return NextUnlock(timestamp=status.next_unlock_time, amount=amount)

    def get_next_unlock_for(
        self, beneficiary: str, plan_id: int, now: Optional[int] = None
    ) -> NextUnlock:
        """Time and amount of the next step still pending for one beneficiary."""
        self.plans.require_valid_id(plan_id)
        with self._lock:
            status = self.resolve(plan_id, now)
            if status.next_unlock_time is None:
                return NextUnlock(timestamp=None, amount=0)
            locked = self.ledger.entry(beneficiary, plan_id).locked
            step_amount = vested_amount(
                locked, status.percent_vested + status.next_unlock_percent
            ) - vested_amount(locked, status.percent_vested)
            return NextUnlock(timestamp=status.next_unlock_time, amount=step_amount)

    # ==================== Freeze ====================

    def freeze(self, caller: str, beneficiary: str, amount: int, plan_id: int) -> int:
        """
        Lock ``amount`` tokens for ``beneficiary`` under ``plan_id``.

        The treasury moves the tokens into the engine's custody; if it
        refuses, nothing is recorded.

        Raises:
            UnauthorizedError: If caller is not the freezer
            InvalidPlanError: If plan_id is out of range
            PlanNotFoundError: If the plan has not been defined
            InvalidBeneficiaryError: If beneficiary is empty
            InvalidArgumentError: If amount is negative or not an integer
            InsufficientTreasuryError: If the treasury cannot fund the lock
        """
        with self._lock:
            self.capabilities.require_freezer(caller)
            self.plans.require_valid_id(plan_id)
            if not self.plans.is_defined(plan_id):
                raise PlanNotFoundError(
                    f"Plan {plan_id} has not been defined.", details={"plan_id": plan_id}
                )
            target = normalize_address(beneficiary)
            if not target:
                raise InvalidBeneficiaryError("Beneficiary cannot be empty.")
            if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
                raise InvalidArgumentError(
                    "Freeze amount must be a non-negative integer.", details={"amount": amount}
                )
            if amount == 0:
                logger.warning(
                    "Zero-amount freeze for %s on plan %d ignored",
                    target[:10],
                    plan_id,
                    extra={"event": "vesting.freeze_zero", "plan_id": plan_id},
                )
                return 0

            with self.ledger.transaction():
                self.ledger.add_locked(target, plan_id, amount)
                self._draw_from_treasury(amount)

            self.events.emit(
                TokensLocked(
                    timestamp=self._current_time(),
                    beneficiary=target,
                    plan_id=plan_id,
                    amount=amount,
                )
            )
            logger.info(
                "Locked %d tokens for %s on plan %d",
                amount,
                target[:10],
                plan_id,
                extra={"event": "vesting.locked", "plan_id": plan_id, "amount": amount},
            )
            return amount

    def _draw_from_treasury(self, amount: int) -> None:
        try:
            ok = self.treasury.withdraw(self.address, amount)
        except Exception as exc:
            raise InsufficientTreasuryError(
                f"Treasury could not fund freeze: {exc}", requested=amount
            ) from exc
        if ok is False:
            raise InsufficientTreasuryError("Treasury refused the withdrawal.", requested=amount)

    # ==================== Claim ====================

    def claim(self, caller: str, plan_id: int) -> int:
        """
        Pay the caller whatever has vested on ``plan_id`` and is unpaid.

        Returns the amount paid; 0 is a no-op, not an error.

        Raises:
            PlanNotFoundError: If plan_id is out of range
            ReleaseTimeNotSetError: If the release time was never set
            TransferFailedError: If the payout fails
        """
        with self._lock:
            if not self.plans.is_valid_id(plan_id):
                raise PlanNotFoundError(
                    f"Plan id {plan_id!r} is out of range.", details={"plan_id": plan_id}
                )
            receipt = self._settle(caller, [plan_id])
            return receipt.total

    def claim_all(self, caller: str) -> ClaimReceipt:
        """Settle every plan for the caller with a single payout."""
        with self._lock:
            return self._settle(caller, list(self.plans.plan_ids()))

    def _settle(self, caller: str, plan_ids: List[int]) -> ClaimReceipt:
        if self._release_time is None:
            raise ReleaseTimeNotSetError("Release time is not set.")
        beneficiary = normalize_address(caller)
        if not beneficiary:
            raise InvalidBeneficiaryError("Caller cannot be empty.")

        now = self._current_time()
        receipt = ClaimReceipt(beneficiary=beneficiary)
        with self.ledger.transaction():
            for plan_id in plan_ids:
                row = self.ledger.entry(beneficiary, plan_id)
                vested = vested_amount(row.locked, self.resolve(plan_id, now).percent_vested)
                pending = vested - row.withdrawn
                if pending <= 0:
                    continue
                self.ledger.set_withdrawn(beneficiary, plan_id, vested)
                receipt.payouts[plan_id] = pending
            if receipt.total:
                self._pay(beneficiary, receipt.total)

        for plan_id, amount in receipt.payouts.items():
            self.events.emit(
                TokensClaimed(timestamp=now, beneficiary=beneficiary, plan_id=plan_id, amount=amount)
            )
        if receipt.total:
            logger.info(
                "Claimed %d tokens for %s across %d plans",
                receipt.total,
                beneficiary[:10],
                len(receipt.payouts),
                extra={"event": "vesting.claimed", "amount": receipt.total},
            )
        else:
            logger.debug(
                "Nothing to claim for %s",
                beneficiary[:10],
                extra={"event": "vesting.claim_noop"},
            )
        return receipt

    def _pay(self, recipient: str, amount: int, token: Optional[Any] = None) -> None:
        ledger = token or self.token
        try:
            ok = ledger.transfer(self.address, recipient, amount)
        except Exception as exc:
            raise TransferFailedError(
                f"Transfer failed: {exc}", recipient=recipient, amount=amount
            ) from exc
        if not ok:
            raise TransferFailedError(
                "Token ledger rejected the transfer.", recipient=recipient, amount=amount
            )

    # ==================== Administration ====================

    def transfer_any_misplaced_asset(
        self, caller: str, token: ITokenLedger, beneficiary: str, amount: int
    ) -> int:
        """
        Return tokens of another asset sent to the engine by mistake (owner only).

        The vesting token itself can never leave through this path.
        """
        with self._lock:
            self.capabilities.require_owner(caller)
            if token is self.token or normalize_address(token.address) == normalize_address(
                self.token.address
            ):
                raise CannotRecoverVestingTokenError(
                    "The vesting token cannot be recovered.",
                    details={"token": token.address},
                )
            target = normalize_address(beneficiary)
            if not target:
                raise InvalidBeneficiaryError("Beneficiary cannot be empty.")
            if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
                raise InvalidArgumentError("Recovery amount must be a positive integer.")
            self._pay(target, amount, token=token)
            logger.warning(
                "Recovered %d misplaced tokens to %s",
                amount,
                target[:10],
                extra={"event": "vesting.asset_recovered", "token": token.address[:10]},
            )
            return amount

    # ==================== Integrity & Snapshots ====================

    def check_invariants(self) -> None:
        with self._lock:
            self.ledger.check_invariants()

    def snapshot(self) -> dict:
        """Serializable copy of plans, release time, ledger and plan totals."""
        with self._lock:
            state = {
                "release_time": self._release_time,
                "plans": {
                    str(plan.plan_id): [[s.offset, s.percent] for s in plan.steps]
                    for plan in self.plans.defined_plans()
                },
            }
            state.update(self.ledger.to_dict())
            return state

    @classmethod
    def restore(
        cls,
        state: dict,
        token: ITokenLedger,
        treasury: ITreasury,
        capabilities: VestingCapabilities,
        config: Optional[VestingConfig] = None,
        time_provider: Callable[[], int] | None = None,
    ) -> "VestingEngine":
        """Rebuild an engine from ``snapshot()`` output without re-emitting events."""
        engine = cls(
            token=token,
            treasury=treasury,
            capabilities=capabilities,
            config=config,
            time_provider=time_provider,
        )
        for plan_id, steps in sorted(state.get("plans", {}).items(), key=lambda item: int(item[0])):
            engine.plans.define_plan(
                int(plan_id), [int(s[0]) for s in steps], [int(s[1]) for s in steps]
            )
        ledger = BeneficiaryLedger.from_dict(state)
        for row in ledger.entries():
            engine.plans.require_valid_id(row.plan_id)
        engine.ledger = ledger
        release_time = state.get("release_time")
        engine._release_time = None if release_time is None else int(release_time)
        return engine
