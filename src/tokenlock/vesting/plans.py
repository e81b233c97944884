"""
Lock plan table.

A lock plan is an ordered list of (offset, percent) steps. Offsets are
seconds after the release time and strictly increase; percents are the
incremental share unlocked at that step and sum to exactly 100. A plan
slot is written once and never changes afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Sequence

from tokenlock.core import config
from tokenlock.core.vesting_exceptions import (
    InvalidPlanError,
    MalformedPlanError,
    PlanAlreadyDefinedError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanStep:
    offset: int
    percent: int


@dataclass(frozen=True)
class LockPlan:
    plan_id: int
    steps: tuple[PlanStep, ...]

    @property
    def offsets(self) -> tuple[int, ...]:
        return tuple(step.offset for step in self.steps)

    @property
    def percents(self) -> tuple[int, ...]:
        return tuple(step.percent for step in self.steps)

    @property
    def duration(self) -> int:
        """Offset of the final step; the plan is fully vested after it."""
        return self.steps[-1].offset if self.steps else 0

    def __len__(self) -> int:
        return len(self.steps)


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_steps(
    offsets: Sequence[int],
    percents: Sequence[int],
    max_steps: int = config.MAX_PLAN_STEPS,
) -> tuple[PlanStep, ...]:
    """
    Check offsets/percents against the plan rules and build the steps.

    Raises:
        MalformedPlanError: If any rule is violated
    """
    if len(offsets) != len(percents):
        raise MalformedPlanError(
            "Offsets and percents must have the same length.",
            details={"offsets": len(offsets), "percents": len(percents)},
        )
    if not offsets:
        raise MalformedPlanError("A plan needs at least one step.")
    if len(offsets) >= max_steps:
        raise MalformedPlanError(
            f"A plan may have at most {max_steps - 1} steps.",
            details={"steps": len(offsets), "max_steps": max_steps},
        )

    steps = []
    previous_offset = None
    for index, (offset, percent) in enumerate(zip(offsets, percents)):
        if not _is_int(offset) or not _is_int(percent):
            raise MalformedPlanError(f"Step {index} must use integer offset and percent.")
        if offset < 0:
            raise MalformedPlanError(f"Step {index} offset cannot be negative.")
        if percent <= 0 or percent > config.PERCENT_DENOMINATOR:
            raise MalformedPlanError(
                f"Step {index} percent must be within (0, 100].",
                details={"step": index, "percent": percent},
            )
        if previous_offset is not None and offset <= previous_offset:
            raise MalformedPlanError(
                f"Step {index} offset must be greater than the previous one.",
                details={"step": index, "offset": offset, "previous": previous_offset},
            )
        previous_offset = offset
        steps.append(PlanStep(offset=offset, percent=percent))

    total = sum(percents)
    if total != config.PERCENT_DENOMINATOR:
        raise MalformedPlanError(
            f"Plan percents must sum to 100, got {total}.",
            details={"total": total},
        )
    return tuple(steps)


class PlanTable:
    """Fixed number of write-once plan slots."""

    def __init__(
        self,
        max_lock_plans: int = config.MAX_LOCK_PLANS,
        max_plan_steps: int = config.MAX_PLAN_STEPS,
    ):
        if max_lock_plans <= 0:
            raise ValueError("max_lock_plans must be positive.")
        self.max_lock_plans = max_lock_plans
        self.max_plan_steps = max_plan_steps
        self._plans: dict[int, LockPlan] = {}

    def is_valid_id(self, plan_id: object) -> bool:
        return _is_int(plan_id) and 0 <= plan_id < self.max_lock_plans

    def require_valid_id(self, plan_id: object) -> None:
        if not self.is_valid_id(plan_id):
            raise InvalidPlanError(
                f"Plan id {plan_id!r} is out of range.",
                details={"plan_id": plan_id, "max_lock_plans": self.max_lock_plans},
            )

    def define_plan(
        self, plan_id: int, offsets: Sequence[int], percents: Sequence[int]
    ) -> LockPlan:
        """
        Store a new plan in an empty slot.

        Raises:
            InvalidPlanError: If plan_id is out of range
            PlanAlreadyDefinedError: If the slot already has steps
            MalformedPlanError: If offsets/percents break the plan rules
        """
        self.require_valid_id(plan_id)
        if plan_id in self._plans:
            raise PlanAlreadyDefinedError(
                f"Plan {plan_id} is already defined and cannot be updated.",
                details={"plan_id": plan_id},
            )
        steps = validate_steps(list(offsets), list(percents), self.max_plan_steps)
        plan = LockPlan(plan_id=plan_id, steps=steps)
        self._plans[plan_id] = plan
        logger.info(
            "Lock plan %d defined with %d steps",
            plan_id,
            len(steps),
            extra={"event": "plans.defined", "plan_id": plan_id, "steps": len(steps)},
        )
        return plan

    def get_plan(self, plan_id: int) -> LockPlan:
        """Plan in a slot; an undefined slot yields a plan with no steps."""
        self.require_valid_id(plan_id)
        return self._plans.get(plan_id, LockPlan(plan_id=plan_id, steps=()))

    def is_defined(self, plan_id: int) -> bool:
        return plan_id in self._plans

    def plan_length(self, plan_id: int) -> int:
        return len(self.get_plan(plan_id))

    def plan_ids(self) -> range:
        return range(self.max_lock_plans)

    def defined_plans(self) -> Iterator[LockPlan]:
        for plan_id in sorted(self._plans):
            yield self._plans[plan_id]

    def __len__(self) -> int:
        return len(self._plans)
