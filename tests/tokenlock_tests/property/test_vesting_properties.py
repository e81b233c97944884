"""
Property-based tests for vesting accounting.

These tests check that, for arbitrary plans, amounts and claim times:
- withdrawn never exceeds locked for any ledger row
- tokens are conserved between the cashbox, the engine and beneficiaries
- pending rewards never decrease while time moves forward
- a fully vested row pays out exactly what was locked
- malformed plans are always rejected

Uses Hypothesis for property-based testing with random inputs.
"""

import pytest
from hypothesis import assume, given, settings, strategies as st

from factories import (
    ENGINE_ADDRESS,
    FREEZER,
    HOLDER,
    OWNER,
    RELEASE_TIME,
    FakeClock,
    build_cashbox,
    build_engine,
    build_token,
)
from tokenlock.core.vesting_exceptions import MalformedPlanError
from tokenlock.vesting.plans import LockPlan, validate_steps
from tokenlock.vesting.schedule import resolve_vested, vested_amount


@st.composite
def lock_plans(draw, max_steps=8):
    """Strictly increasing offsets with positive percents summing to 100."""
    size = draw(st.integers(min_value=1, max_value=max_steps))
    cuts = sorted(draw(st.sets(st.integers(min_value=1, max_value=99), min_size=size - 1, max_size=size - 1)))
    bounds = [0] + cuts + [100]
    percents = [bounds[i + 1] - bounds[i] for i in range(size)]
    gaps = draw(st.lists(st.integers(min_value=1, max_value=30 * 86400), min_size=size, max_size=size))
    first = draw(st.integers(min_value=0, max_value=86400))
    offsets = []
    current = first
    for gap in gaps:
        offsets.append(current)
        current += gap
    return offsets, percents


amounts = st.integers(min_value=0, max_value=10**24)
times = st.integers(min_value=0, max_value=400 * 86400)


class TestPlanProperties:
    @given(plan=lock_plans())
    @settings(max_examples=100)
    def test_generated_plans_are_accepted(self, plan):
        offsets, percents = plan

        steps = validate_steps(offsets, percents)

        assert sum(step.percent for step in steps) == 100

    @given(plan=lock_plans(), delta=st.integers(min_value=-50, max_value=50))
    @settings(max_examples=100)
    def test_wrong_sums_are_rejected(self, plan, delta):
        offsets, percents = plan
        assume(delta != 0)
        percents = list(percents)
        percents[-1] += delta
        assume(0 < percents[-1] <= 100)

        with pytest.raises(MalformedPlanError):
            validate_steps(offsets, percents)

    @given(plan=lock_plans(), elapsed=st.lists(times, min_size=2, max_size=6))
    @settings(max_examples=100)
    def test_vested_percent_is_monotone(self, plan, elapsed):
        offsets, percents = plan
        lock_plan = LockPlan(plan_id=0, steps=validate_steps(offsets, percents))

        observed = [
            resolve_vested(lock_plan, RELEASE_TIME + t, RELEASE_TIME).percent_vested
            for t in sorted(elapsed)
        ]

        assert observed == sorted(observed)
        assert all(0 <= p <= 100 for p in observed)

    @given(locked=amounts, low=st.integers(0, 100), high=st.integers(0, 100))
    def test_vested_amount_monotone_and_bounded(self, locked, low, high):
        low, high = sorted((low, high))

        assert vested_amount(locked, low) <= vested_amount(locked, high) <= locked


class TestEngineProperties:
    @given(
        plan=lock_plans(),
        freezes=st.lists(st.integers(min_value=0, max_value=10**21), min_size=1, max_size=4),
        claim_times=st.lists(times, min_size=1, max_size=6),
    )
    @settings(max_examples=60, deadline=None)
    def test_claims_conserve_tokens_and_never_overdraw(self, plan, freezes, claim_times):
        offsets, percents = plan
        clock = FakeClock()
        token = build_token()
        cashbox = build_cashbox(token)
        engine = build_engine(clock=clock, token=token, cashbox=cashbox, plans={0: (offsets, percents)})
        supply_outside = token.total_supply - token.balance_of(OWNER)
        for amount in freezes:
            engine.freeze(FREEZER, HOLDER, amount, 0)

        paid = 0
        for t in sorted(claim_times):
            clock.travel_to(RELEASE_TIME + t)
            paid += engine.claim(HOLDER, 0)
            balance = engine.balance_of(HOLDER, 0)
            assert balance.withdrawn <= balance.total
            assert balance.withdrawn == paid
            assert token.balance_of(ENGINE_ADDRESS) == balance.frozen
            assert (
                cashbox.get_balance() + token.balance_of(ENGINE_ADDRESS) + token.balance_of(HOLDER)
                == supply_outside
            )
            engine.check_invariants()

    @given(
        plan=lock_plans(),
        amount=amounts,
        checkpoints=st.lists(times, min_size=2, max_size=8),
    )
    @settings(max_examples=60, deadline=None)
    def test_pending_never_decreases_without_claims(self, plan, amount, checkpoints):
        offsets, percents = plan
        clock = FakeClock()
        engine = build_engine(clock=clock, plans={0: (offsets, percents)})
        amount = min(amount, 10**23)
        engine.freeze(FREEZER, HOLDER, amount, 0)

        previous = 0
        for t in sorted(checkpoints):
            pending = engine.pending_reward(HOLDER, 0, now=RELEASE_TIME + t)
            assert pending >= previous
            previous = pending

    @given(plan=lock_plans(), freezes=st.lists(st.integers(min_value=1, max_value=10**21), min_size=1, max_size=4))
    @settings(max_examples=60, deadline=None)
    def test_full_vesting_returns_every_token(self, plan, freezes):
        offsets, percents = plan
        clock = FakeClock()
        token = build_token()
        engine = build_engine(clock=clock, token=token, plans={0: (offsets, percents)})
        for amount in freezes:
            engine.freeze(FREEZER, HOLDER, amount, 0)

        clock.travel_to(RELEASE_TIME + offsets[-1])
        paid = engine.claim_all(HOLDER).total

        assert paid == sum(freezes)
        assert token.balance_of(ENGINE_ADDRESS) == 0
        assert engine.balance_of(HOLDER, 0).frozen == 0
        assert engine.claim(HOLDER, 0) == 0
