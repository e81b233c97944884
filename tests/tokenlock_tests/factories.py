"""
Builders shared by unit, property and CLI tests.

Kept outside conftest.py so hypothesis tests can build fresh engines per
example instead of reusing function-scoped fixtures.
"""

from __future__ import annotations

from tokenlock.contracts.erc20 import ERC20Token
from tokenlock.core.access import VestingCapabilities
from tokenlock.core.config import VestingConfig
from tokenlock.core.vesting_exceptions import TokenError
from tokenlock.treasury.cashbox import Cashbox
from tokenlock.vesting.engine import VestingEngine

ONE_DAY = 60 * 60 * 24

OWNER = "owner_address"
FREEZER = "freeze_master"
HOLDER = "holder_address"
HACKER = "hacker_address"
ENGINE_ADDRESS = "vesting_contract_address"

START_TIME = 1_700_000_000
RELEASE_TIME = START_TIME + 100

TOTAL_SUPPLY = 250_000_000 * 10**18
HOLDER_GRANT = 5_000 * 10**18

# Plan catalogue the engine fixture is built with
DEFAULT_PLANS = {
    0: ([ONE_DAY * 7, ONE_DAY * 14, ONE_DAY * 21], [33, 33, 34]),
    1: ([ONE_DAY * 5, ONE_DAY * 10, ONE_DAY * 15, ONE_DAY * 20], [25, 25, 25, 25]),
    2: ([ONE_DAY * 3, ONE_DAY * 6, ONE_DAY * 9, ONE_DAY * 12, ONE_DAY * 15], [20, 20, 20, 20, 20]),
}


class FakeClock:
    """Deterministic time provider that tests move by hand."""

    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now

    def travel_to(self, timestamp: int) -> int:
        self.now = timestamp
        return self.now


class RejectingToken:
    """Token ledger whose payouts can be switched to fail.

    Modes: ``ok``, ``false`` (transfer returns False), ``raise`` (TokenError)
    and ``offline`` (ConnectionError, as from a remote ledger).
    """

    def __init__(self, inner: ERC20Token, mode: str = "ok"):
        self.inner = inner
        self.address = inner.address
        self.mode = mode

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        if sender.lower() == ENGINE_ADDRESS:
            if self.mode == "false":
                return False
            if self.mode == "raise":
                raise TokenError("ledger offline")
            if self.mode == "offline":
                raise ConnectionError("ledger offline")
        return self.inner.transfer(sender, recipient, amount)

    def balance_of(self, account: str) -> int:
        return self.inner.balance_of(account)


class UnreachableTreasury:
    """Treasury whose withdrawals fail with a transport error."""

    def __init__(self, inner: Cashbox):
        self.inner = inner

    def withdraw(self, caller: str, amount: int) -> bool:
        raise ConnectionError("cashbox unreachable")

    def get_balance(self) -> int:
        return self.inner.get_balance()

    def get_wallet_limit(self, address: str) -> int:
        return self.inner.get_wallet_limit(address)

    def get_wallet_withdrawals(self, address: str) -> int:
        return self.inner.get_wallet_withdrawals(address)


def build_token() -> ERC20Token:
    token = ERC20Token(name="Vesting Token", symbol="VST", owner=OWNER, address="token_address")
    token.mint(OWNER, OWNER, TOTAL_SUPPLY)
    return token


def build_cashbox(token, funds: int = TOTAL_SUPPLY - 2 * HOLDER_GRANT, limit: int | None = None) -> Cashbox:
    cashbox = Cashbox(token=token, owner=OWNER)
    token.transfer(OWNER, cashbox.address, funds)
    cashbox.set_wallet_limit(OWNER, ENGINE_ADDRESS, funds if limit is None else limit)
    return cashbox


def build_engine(
    clock: FakeClock | None = None,
    token=None,
    cashbox=None,
    release_time: int | None = RELEASE_TIME,
    plans: dict | None = None,
    max_lock_plans: int = 3,
) -> VestingEngine:
    clock = clock or FakeClock()
    token = token or build_token()
    cashbox = cashbox or build_cashbox(getattr(token, "inner", token))
    engine = VestingEngine(
        token=token,
        treasury=cashbox,
        capabilities=VestingCapabilities(owner=OWNER, freezer=FREEZER),
        release_time=release_time,
        config=VestingConfig(max_lock_plans=max_lock_plans, engine_address=ENGINE_ADDRESS),
        time_provider=clock,
    )
    for plan_id, (offsets, percents) in (DEFAULT_PLANS if plans is None else plans).items():
        engine.define_plan(OWNER, plan_id, offsets, percents)
    return engine
