import sys
from pathlib import Path

import pytest

# factories.py lives beside this file and is imported by test modules
sys.path.insert(0, str(Path(__file__).parent))

from factories import (  # noqa: E402
    HOLDER,
    HOLDER_GRANT,
    OWNER,
    FakeClock,
    build_cashbox,
    build_engine,
    build_token,
)


@pytest.fixture
def clock():
    """Clock parked 100 seconds before the release time"""
    return FakeClock()


@pytest.fixture
def token():
    token = build_token()
    token.transfer(OWNER, HOLDER, HOLDER_GRANT)
    return token


@pytest.fixture
def cashbox(token):
    return build_cashbox(token)


@pytest.fixture
def engine(clock, token, cashbox):
    """Engine with the three default plans and a release time 100s ahead"""
    return build_engine(clock=clock, token=token, cashbox=cashbox)
