"""
tokenlock reference contracts.

- ERC20: fungible token ledger the engine vests and pays out
"""

from .erc20 import ERC20Token, TokenEvent

__all__ = [
    "ERC20Token",
    "TokenEvent",
]
