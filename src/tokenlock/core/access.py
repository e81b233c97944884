"""
Capability checks for privileged vesting operations.

Two capabilities exist: the owner may define plans, set the release time
and recover misplaced assets; the freezer may lock tokens for
beneficiaries. Both identities are fixed when the engine is built.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .vesting_exceptions import InvalidArgumentError, UnauthorizedError

logger = logging.getLogger(__name__)


class Capability(Enum):
    OWNER = "owner"
    FREEZER = "freezer"


def normalize_address(address: Optional[str]) -> str:
    """Normalize an identity to the form ledgers key on."""
    if address is None:
        return ""
    return address.strip().lower()


@dataclass(frozen=True)
class VestingCapabilities:
    """Owner and freezer identities, compared by normalized equality."""

    owner: str
    freezer: str

    def __post_init__(self) -> None:
        owner = normalize_address(self.owner)
        freezer = normalize_address(self.freezer)
        if not owner:
            raise InvalidArgumentError("Owner identity cannot be empty.")
        if not freezer:
            raise InvalidArgumentError("Freezer identity cannot be empty.")
        object.__setattr__(self, "owner", owner)
        object.__setattr__(self, "freezer", freezer)

    def holder_of(self, capability: Capability) -> str:
        return self.owner if capability is Capability.OWNER else self.freezer

    def has(self, caller: Optional[str], capability: Capability) -> bool:
        return normalize_address(caller) == self.holder_of(capability)

    def require(self, caller: Optional[str], capability: Capability) -> None:
        if self.has(caller, capability):
            return
        logger.warning(
            "Access denied: caller lacks capability",
            extra={
                "event": "access.denied",
                "capability": capability.value,
                "caller": normalize_address(caller)[:10],
            },
        )
        raise UnauthorizedError(
            f"caller is not the {capability.value}",
            details={"capability": capability.value},
        )

    def require_owner(self, caller: Optional[str]) -> None:
        self.require(caller, Capability.OWNER)

    def require_freezer(self, caller: Optional[str]) -> None:
        self.require(caller, Capability.FREEZER)
