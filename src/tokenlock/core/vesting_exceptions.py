"""
Vesting-specific exception hierarchy for tokenlock.

Provides typed exceptions for vesting operations so callers can tell an
authorization failure from a malformed plan or a failed payout, and so the
CLI can report each one precisely.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class VestingError(Exception):
    """Base exception for all vesting-related errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Authorization Errors ====================


class UnauthorizedError(VestingError):
    """Raised when a caller lacks the capability a privileged operation requires."""
    pass


# ==================== Argument Errors ====================


class InvalidArgumentError(VestingError):
    """Raised when an operation receives an argument it cannot accept."""
    pass


class InvalidPlanError(InvalidArgumentError):
    """Raised when a plan id falls outside the plan table."""
    pass


class PlanNotFoundError(InvalidPlanError):
    """Raised when a plan id names no usable plan."""
    pass


class InvalidBeneficiaryError(InvalidArgumentError):
    """Raised when a beneficiary identity is null or empty."""
    pass


class MalformedPlanError(InvalidArgumentError):
    """Raised when plan offsets or percents violate the plan rules.

    Examples: mismatched lengths, zero percent, non-increasing offsets,
    percents not summing to exactly 100.
    """
    pass


class PlanAlreadyDefinedError(VestingError):
    """Raised when redefining a plan slot that already has steps."""
    pass


# ==================== Release Time Errors ====================


class ReleaseTimeNotSetError(VestingError):
    """Raised when settlement is attempted before the release time exists."""
    pass


class ReleaseTimeAlreadySetError(VestingError):
    """Raised on a second attempt to write the release time."""
    pass


# ==================== Collaborator Errors ====================


class InsufficientTreasuryError(VestingError):
    """Raised when the treasury cannot fund a freeze."""

    def __init__(
        self,
        message: str,
        requested: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.requested = requested


class TransferFailedError(VestingError):
    """Raised when the token ledger refuses or fails a payout."""

    def __init__(
        self,
        message: str,
        recipient: Optional[str] = None,
        amount: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.recipient = recipient
        self.amount = amount


class CannotRecoverVestingTokenError(VestingError):
    """Raised when the asset recovery hatch is pointed at the vesting token."""
    pass


# ==================== Storage Errors ====================


class StateStoreError(VestingError):
    """Raised when a persisted state snapshot cannot be written or trusted."""
    pass


# ==================== Collaborator-side Errors ====================


class TokenError(Exception):
    """Raised by the reference token ledger when an operation is rejected."""
    pass


class TreasuryError(Exception):
    """Raised by the reference cashbox when a withdrawal is rejected."""
    pass
