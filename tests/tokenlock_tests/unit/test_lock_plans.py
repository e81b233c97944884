"""
Unit tests for the lock plan table and plan validation.
"""

import pytest

from tokenlock.core.vesting_exceptions import (
    InvalidPlanError,
    MalformedPlanError,
    PlanAlreadyDefinedError,
)
from tokenlock.vesting.plans import LockPlan, PlanStep, PlanTable, validate_steps

DAY = 86400


class TestValidateSteps:
    def test_valid_plan_builds_steps(self):
        steps = validate_steps([DAY * 7, DAY * 14, DAY * 21], [35, 35, 30])

        assert steps == (
            PlanStep(DAY * 7, 35),
            PlanStep(DAY * 14, 35),
            PlanStep(DAY * 21, 30),
        )

    def test_single_step_at_release(self):
        assert validate_steps([0], [100]) == (PlanStep(0, 100),)

    @pytest.mark.parametrize(
        "offsets,percents",
        [
            ([DAY, DAY * 2], [50, 49]),  # sums to 99
            ([DAY, DAY * 2], [50, 51]),  # sums to 101
            ([DAY, DAY * 2], [0, 100]),  # zero percent step
            ([DAY, DAY * 2], [-10, 110]),  # negative percent
            ([DAY * 2, DAY], [50, 50]),  # decreasing offsets
            ([DAY, DAY], [50, 50]),  # repeated offset
            ([DAY, DAY * 2], [100]),  # length mismatch
            ([], []),  # empty plan
            ([-DAY, DAY], [50, 50]),  # negative offset
            ([DAY, DAY * 2.5], [50, 50]),  # float offset
            ([DAY, DAY * 2], [50.0, 50]),  # float percent
            ([DAY, DAY * 2], [True, 99]),  # bool percent
        ],
    )
    def test_malformed_plans_rejected(self, offsets, percents):
        with pytest.raises(MalformedPlanError):
            validate_steps(offsets, percents)

    def test_step_count_cap(self):
        offsets = list(range(1, 33))
        percents = [1] * 31 + [69]

        with pytest.raises(MalformedPlanError):
            validate_steps(offsets, percents, max_steps=32)

        steps = validate_steps(offsets[:31], [1] * 30 + [70], max_steps=32)
        assert len(steps) == 31

    def test_malformed_error_carries_details(self):
        with pytest.raises(MalformedPlanError) as excinfo:
            validate_steps([DAY, DAY * 2], [60, 60])

        assert excinfo.value.details == {"total": 120}


class TestPlanTable:
    def test_define_and_read_back(self):
        table = PlanTable(max_lock_plans=3)

        plan = table.define_plan(1, [DAY * 5, DAY * 10], [40, 60])

        assert table.get_plan(1) == plan
        assert plan.offsets == (DAY * 5, DAY * 10)
        assert plan.percents == (40, 60)
        assert plan.duration == DAY * 10
        assert table.plan_length(1) == 2
        assert table.is_defined(1)
        assert len(table) == 1

    def test_undefined_slot_reads_as_empty(self):
        table = PlanTable(max_lock_plans=3)

        plan = table.get_plan(2)

        assert plan == LockPlan(plan_id=2, steps=())
        assert len(plan) == 0
        assert plan.duration == 0
        assert not table.is_defined(2)

    def test_redefinition_rejected(self):
        table = PlanTable(max_lock_plans=3)
        table.define_plan(0, [DAY], [100])

        with pytest.raises(PlanAlreadyDefinedError):
            table.define_plan(0, [DAY * 2], [100])
        assert table.get_plan(0).offsets == (DAY,)

    def test_redefinition_checked_before_shape(self):
        table = PlanTable(max_lock_plans=3)
        table.define_plan(0, [DAY], [100])

        with pytest.raises(PlanAlreadyDefinedError):
            table.define_plan(0, [DAY], [99])

    @pytest.mark.parametrize("plan_id", [-1, 3, 100, "1", None, 1.0, True])
    def test_out_of_range_ids(self, plan_id):
        table = PlanTable(max_lock_plans=3)

        assert not table.is_valid_id(plan_id)
        with pytest.raises(InvalidPlanError):
            table.define_plan(plan_id, [DAY], [100])
        with pytest.raises(InvalidPlanError):
            table.get_plan(plan_id)

    def test_rejected_definition_leaves_slot_empty(self):
        table = PlanTable(max_lock_plans=3)

        with pytest.raises(MalformedPlanError):
            table.define_plan(0, [DAY, DAY * 2], [50, 49])

        assert not table.is_defined(0)
        assert len(table) == 0
        table.define_plan(0, [DAY, DAY * 2], [50, 50])
        assert table.is_defined(0)

    def test_defined_plans_sorted_by_id(self):
        table = PlanTable(max_lock_plans=4)
        table.define_plan(3, [DAY], [100])
        table.define_plan(0, [DAY], [100])

        assert [plan.plan_id for plan in table.defined_plans()] == [0, 3]
        assert list(table.plan_ids()) == [0, 1, 2, 3]

    def test_table_needs_positive_size(self):
        with pytest.raises(ValueError):
            PlanTable(max_lock_plans=0)

    def test_definition_accepts_any_sequence(self):
        table = PlanTable()

        plan = table.define_plan(0, (DAY, DAY * 2), (30, 70))

        assert plan.steps[1] == PlanStep(DAY * 2, 70)
