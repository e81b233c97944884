"""
Tests for vesting state persistence.
"""

import json

import pytest

from factories import FREEZER, HOLDER, ONE_DAY, OWNER, RELEASE_TIME
from tokenlock.core.access import VestingCapabilities
from tokenlock.core.state_store import STATE_VERSION, VestingStateStore, validate_state
from tokenlock.core.vesting_exceptions import StateStoreError
from tokenlock.vesting.engine import VestingEngine


def test_missing_file_loads_none(tmp_path):
    store = VestingStateStore(str(tmp_path / "state.json"))

    assert not store.exists()
    assert store.load() is None


def test_empty_path_rejected():
    with pytest.raises(ValueError):
        VestingStateStore("")


def test_engine_snapshot_survives_disk(tmp_path, engine, clock, token, cashbox):
    engine.freeze(FREEZER, HOLDER, 1_000, 0)
    clock.travel_to(RELEASE_TIME + ONE_DAY * 7)
    engine.claim(HOLDER, 0)
    store = VestingStateStore(str(tmp_path / "nested" / "state.json"))

    store.save(engine.snapshot())
    loaded = store.load()

    assert loaded == engine.snapshot()
    restored = VestingEngine.restore(
        loaded,
        token=token,
        treasury=cashbox,
        capabilities=VestingCapabilities(owner=OWNER, freezer=FREEZER),
        config=engine.config,
        time_provider=clock,
    )
    assert restored.balance_of(HOLDER, 0) == engine.balance_of(HOLDER, 0)
    assert restored.get_plan(2) == engine.get_plan(2)


def test_saved_file_carries_version(tmp_path):
    path = tmp_path / "state.json"
    VestingStateStore(str(path)).save({"release_time": None, "plans": {}, "ledger": [], "plan_totals": {}})

    document = json.loads(path.read_text())

    assert document["version"] == STATE_VERSION
    assert [p.name for p in tmp_path.iterdir()] == ["state.json"]


@pytest.mark.parametrize(
    "content",
    [
        "{broken",
        "[]",
        json.dumps({"version": 99, "plans": {}}),
        json.dumps({"plans": {}}),
    ],
)
def test_bad_documents_rejected(tmp_path, content):
    path = tmp_path / "state.json"
    path.write_text(content)

    with pytest.raises(StateStoreError):
        VestingStateStore(str(path)).load()


@pytest.mark.parametrize(
    "state",
    [
        {"release_time": "soon"},
        {"release_time": True},
        {"plans": []},
        {"ledger": [{"beneficiary": "a", "plan_id": 0, "locked": 1}]},
        {"ledger": [{"beneficiary": "a", "plan_id": 0, "locked": 1, "withdrawn": 2}], "plan_totals": {"0": 1}},
        {"ledger": [{"beneficiary": "a", "plan_id": 0, "locked": 5, "withdrawn": 0}], "plan_totals": {}},
        {"ledger": [{"beneficiary": "", "plan_id": 0, "locked": 0, "withdrawn": 0}]},
    ],
)
def test_validate_state_rejects(state):
    with pytest.raises(StateStoreError):
        validate_state(state)


def test_validate_state_accepts_empty():
    validate_state({"release_time": None, "plans": {}, "ledger": [], "plan_totals": {}})
