"""
tokenlock - Collaborator Protocol Interfaces

The engine never owns tokens directly. It talks to a token ledger for
payouts and to a treasury for funding, both injected at construction.
Protocols keep those seams structural so tests can substitute fakes.

Thread Safety: implementations are called while the engine holds its lock
and must not call back into the engine.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ITokenLedger(Protocol):
    """
    Protocol for the fungible token the engine vests.

    ``transfer`` moves ``amount`` from ``sender`` to ``recipient``. A
    rejected transfer either returns False or raises; the engine treats
    both as a failed payout.
    """

    address: str

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        ...

    def balance_of(self, account: str) -> int:
        ...


@runtime_checkable
class ITreasury(Protocol):
    """
    Protocol for the cashbox that funds freezes.

    ``withdraw`` must move ``amount`` tokens into ``caller``'s custody or
    raise. It must not partially succeed.
    """

    def withdraw(self, caller: str, amount: int) -> bool:
        ...

    def get_balance(self) -> int:
        ...

    def get_wallet_limit(self, address: str) -> int:
        ...

    def get_wallet_withdrawals(self, address: str) -> int:
        ...
