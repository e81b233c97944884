"""
Reference fungible token ledger.

An ERC20-style token kept in memory. It serves as the vested asset and as
the balance behind a cashbox. Accounts are plain identity strings and are
compared case-insensitively. Every balance change is recorded as a
``Transfer`` event; mints come from and burns go to ``ZERO_ADDRESS``.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List

from tokenlock.core.vesting_exceptions import TokenError

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40
UINT256_MAX = 2**256 - 1


def _account(address: str) -> str:
    return (address or "").strip().lower()


@dataclass
class TokenEvent:
    """A ``Transfer`` or ``Approval`` record."""

    event_type: str
    from_address: str
    to_address: str
    value: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ERC20Token:
    name: str
    symbol: str
    decimals: int = 18
    total_supply: int = 0
    address: str = ""
    owner: str = ""
    max_supply: int = 0  # 0 means uncapped
    balances: Dict[str, int] = field(default_factory=dict)
    allowances: Dict[str, Dict[str, int]] = field(default_factory=dict)
    events: List[TokenEvent] = field(default_factory=list)

    UINT256_MAX = UINT256_MAX

    def __post_init__(self) -> None:
        if not self.address:
            seed = f"{self.name}:{self.symbol}:{time.time_ns()}".encode()
            self.address = "0x" + hashlib.sha3_256(seed).hexdigest()[-40:]
        self.address = _account(self.address)
        self.owner = _account(self.owner)

    # ==================== Views ====================

    def balance_of(self, account: str) -> int:
        return self.balances.get(_account(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get(_account(owner), {}).get(_account(spender), 0)

    # ==================== Transfers ====================

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Move ``amount`` from ``sender`` to ``recipient``.

        Raises:
            TokenError: On a zero recipient, a bad amount or a short balance
        """
        self._move(_account(sender), _account(recipient), amount)
        return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        spender_key = _account(spender)
        self._check_recipient(spender_key, "spender")
        self._check_amount(amount)
        owner_key = _account(owner)
        self.allowances.setdefault(owner_key, {})[spender_key] = amount
        self.events.append(TokenEvent("Approval", owner_key, spender_key, amount))
        return True

    def transfer_from(self, spender: str, from_addr: str, to_addr: str, amount: int) -> bool:
        """Spend part of ``from_addr``'s allowance for ``spender``. UINT256_MAX never runs down."""
        self._check_amount(amount)
        source = _account(from_addr)
        spender_key = _account(spender)
        granted = self.allowance(source, spender_key)
        if granted < amount:
            raise TokenError(f"ERC20: insufficient allowance ({granted} < {amount})")
        self._move(source, _account(to_addr), amount)
        if granted != UINT256_MAX:
            self.allowances.setdefault(source, {})[spender_key] = granted - amount
        return True

    # ==================== Supply ====================

    def mint(self, minter: str, to: str, amount: int) -> bool:
        """Create tokens for ``to`` (owner only), within ``max_supply`` when set."""
        if _account(minter) != self.owner:
            raise TokenError("ERC20: caller is not owner")
        recipient = _account(to)
        self._check_recipient(recipient, "recipient")
        self._check_amount(amount)
        if self.max_supply and self.total_supply + amount > self.max_supply:
            raise TokenError(
                f"ERC20: mint would exceed max supply ({self.total_supply + amount} > {self.max_supply})"
            )
        self.total_supply += amount
        self._credit(recipient, amount)
        self.events.append(TokenEvent("Transfer", ZERO_ADDRESS, recipient, amount))
        logger.info(
            "Minted %d %s",
            amount,
            self.symbol,
            extra={"event": "erc20.mint", "to": recipient[:10], "supply": self.total_supply},
        )
        return True

    def burn(self, holder: str, amount: int) -> bool:
        self._check_amount(amount)
        account = _account(holder)
        self._debit(account, amount, "burn")
        self.total_supply -= amount
        self.events.append(TokenEvent("Transfer", account, ZERO_ADDRESS, amount))
        return True

    # ==================== Internals ====================

    def _move(self, source: str, target: str, amount: int) -> None:
        self._check_recipient(target, "recipient")
        self._check_amount(amount)
        self._debit(source, amount, "transfer")
        self._credit(target, amount)
        self.events.append(TokenEvent("Transfer", source, target, amount))
        logger.debug(
            "Token transfer",
            extra={"event": "erc20.transfer", "from": source[:10], "to": target[:10], "amount": amount},
        )

    def _debit(self, account: str, amount: int, action: str) -> None:
        held = self.balances.get(account, 0)
        if held < amount:
            raise TokenError(f"ERC20: {action} amount exceeds balance ({amount} > {held})")
        self.balances[account] = held - amount

    def _credit(self, account: str, amount: int) -> None:
        self.balances[account] = self.balances.get(account, 0) + amount

    @staticmethod
    def _check_recipient(account: str, role: str) -> None:
        if not account or account == ZERO_ADDRESS:
            raise TokenError(f"ERC20: {role} is zero address")

    @staticmethod
    def _check_amount(amount: Any) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise TokenError("ERC20: amount must be an integer")
        if not 0 <= amount <= UINT256_MAX:
            raise TokenError(f"ERC20: amount {amount} out of range")

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "total_supply": self.total_supply,
            "address": self.address,
            "owner": self.owner,
            "max_supply": self.max_supply,
            "balances": dict(self.balances),
            "allowances": {owner: dict(grants) for owner, grants in self.allowances.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ERC20Token":
        return cls(
            name=data["name"],
            symbol=data["symbol"],
            decimals=data.get("decimals", 18),
            total_supply=data.get("total_supply", 0),
            address=data.get("address", ""),
            owner=data.get("owner", ""),
            max_supply=data.get("max_supply", 0),
            balances=dict(data.get("balances", {})),
            allowances={owner: dict(grants) for owner, grants in data.get("allowances", {}).items()},
        )
