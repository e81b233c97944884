"""
tokenlock treasury.

- Cashbox: token reserve that funds freezes up to per-wallet limits
"""

from .cashbox import Cashbox

__all__ = ["Cashbox"]
