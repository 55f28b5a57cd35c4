"""
Operation Outcome Module

Tagged results for ledger operations. Ordinary business outcomes such as
insufficient funds or an invalid deposit are returned as values so callers
branch on the error kind instead of catching exceptions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar


T = TypeVar("T")


class LedgerError(Enum):
    """Recoverable outcomes of a rejected ledger operation"""
    ACCOUNT_NOT_FOUND = "account_not_found"
    DUPLICATE_ACCOUNT = "duplicate_account"
    INVALID_AMOUNT = "invalid_amount"          # Non-positive or not a multiple of 5
    INSUFFICIENT_FUNDS = "insufficient_funds"
    LIMIT_EXCEEDED = "limit_exceeded"          # Daily withdrawal cap
    NOTHING_TO_DISPENSE = "nothing_to_dispense"  # No-op, not a failure

    @property
    def is_noop(self) -> bool:
        return self is LedgerError.NOTHING_TO_DISPENSE


class StorageError(Exception):
    """Raised when account records cannot be read or written"""
    pass


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """
    Result of a ledger operation: either a value or an error kind, never both.
    No state was changed when error is set.
    """
    value: Optional[T] = None
    error: Optional[LedgerError] = None
    message: str = ""

    def __post_init__(self):
        if self.value is not None and self.error is not None:
            raise ValueError("Outcome cannot carry both a value and an error")

    @classmethod
    def success(cls, value: T, message: str = "") -> "Outcome[T]":
        return cls(value=value, message=message)

    @classmethod
    def failure(cls, error: LedgerError, message: str = "") -> "Outcome[T]":
        return cls(error=error, message=message or error.value.replace("_", " "))

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_noop(self) -> bool:
        """True for outcomes that changed nothing without being errors"""
        return self.error is not None and self.error.is_noop

    def __bool__(self) -> bool:
        return self.ok
