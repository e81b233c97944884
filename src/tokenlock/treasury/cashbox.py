from typing import List, Dict, Any
import logging
import threading
import time

from tokenlock.core.protocols import ITokenLedger
from tokenlock.core.vesting_exceptions import TokenError, TreasuryError

logger = logging.getLogger(__name__)


class Cashbox:
    def __init__(self, token: ITokenLedger, owner: str, address: str = "cashbox_address"):
        """
        Initialize a token reserve that pays out to approved wallets.

        Args:
            token: Token ledger holding the cashbox balance
            owner: Address allowed to set wallet limits
            address: The cashbox's own address in the token ledger
        """
        if not owner:
            raise ValueError("Owner cannot be empty.")
        if not address:
            raise ValueError("Cashbox address cannot be empty.")

        self.token = token
        self.owner = owner.lower()
        self.address = address.lower()

        # Spending ceiling and running total per wallet
        self.wallet_limits: Dict[str, int] = {}
        self.wallet_withdrawals: Dict[str, int] = {}

        self.executed_withdrawals: List[Dict[str, Any]] = []

        self._lock = threading.RLock()

        logger.info(
            "Cashbox initialized. Owner: %s, address: %s",
            self.owner[:10],
            self.address[:10],
        )

    def get_balance(self) -> int:
        """Returns the cashbox's token balance."""
        return self.token.balance_of(self.address)

    def get_wallet_limit(self, address: str) -> int:
        return self.wallet_limits.get(address.lower(), 0)

    def get_wallet_withdrawals(self, address: str) -> int:
        return self.wallet_withdrawals.get(address.lower(), 0)

    def get_remaining_limit(self, address: str) -> int:
        return max(0, self.get_wallet_limit(address) - self.get_wallet_withdrawals(address))

    def set_wallet_limit(self, caller: str, wallet: str, limit: int) -> None:
        """
        Set the total a wallet may ever withdraw (owner only).

        Args:
            caller: Address making the change
            wallet: Wallet whose limit changes
            limit: New lifetime limit
        """
        if caller.lower() != self.owner:
            raise TreasuryError(f"{caller} is not the cashbox owner.")
        if not wallet:
            raise ValueError("Wallet cannot be empty.")
        if not isinstance(limit, int) or limit < 0:
            raise ValueError("Wallet limit must be a non-negative integer.")

        with self._lock:
            self.wallet_limits[wallet.lower()] = limit
            logger.info("Wallet limit for %s set to %d", wallet.lower()[:10], limit)

    def withdraw(self, caller: str, amount: int) -> bool:
        """
        Pay ``amount`` tokens to ``caller`` within its wallet limit.

        Either the full amount moves or nothing changes.

        Raises:
            TreasuryError: If the limit or balance is insufficient or the
                token transfer fails
        """
        if not isinstance(amount, int) or amount <= 0:
            raise TreasuryError("Withdrawal amount must be a positive integer.")

        wallet = caller.lower()
        with self._lock:
            remaining = self.get_remaining_limit(wallet)
            if amount > remaining:
                raise TreasuryError(
                    f"Withdrawal of {amount} exceeds remaining wallet limit {remaining}."
                )
            balance = self.get_balance()
            if amount > balance:
                raise TreasuryError(
                    f"Insufficient cashbox balance. Requested {amount}, available {balance}."
                )

            try:
                ok = self.token.transfer(self.address, wallet, amount)
            except TokenError as exc:
                raise TreasuryError(f"Cashbox transfer failed: {exc}") from exc
            if not ok:
                raise TreasuryError("Cashbox transfer was rejected by the token ledger.")

            self.wallet_withdrawals[wallet] = self.get_wallet_withdrawals(wallet) + amount
            self.executed_withdrawals.append(
                {"wallet": wallet, "amount": amount, "executed_at": time.time()}
            )
            logger.info(
                "Cashbox paid %d to %s. Remaining limit: %d",
                amount,
                wallet[:10],
                self.get_remaining_limit(wallet),
            )
            return True

    def get_withdrawal_history(self, wallet: str = "") -> List[Dict[str, Any]]:
        with self._lock:
            if not wallet:
                return list(self.executed_withdrawals)
            return [w for w in self.executed_withdrawals if w["wallet"] == wallet.lower()]
