"""
Transaction Log Module

Append-only record of the cash moved in and out of an account. Deposits carry
a positive amount and withdrawals a negative one, so the sum of the log is
always the net change of the account balance.
"""

from decimal import Decimal
from datetime import date, datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional
from enum import Enum
import uuid

from .amounts import ZERO, to_amount


class TransactionKind(Enum):
    """Kinds of monetary events recorded on an account"""
    DEPOSIT = "Deposit"
    WITHDRAWAL = "Withdrawal"


@dataclass(frozen=True)
class Transaction:
    """
    Immutable ledger entry with a signed amount
    """
    id: str
    timestamp: datetime
    amount: Decimal
    kind: TransactionKind

    def __post_init__(self):
        object.__setattr__(self, 'amount', to_amount(self.amount))

        if self.amount == ZERO:
            raise ValueError("Transaction amount cannot be zero")

        if self.kind == TransactionKind.DEPOSIT and self.amount < ZERO:
            raise ValueError("Deposit amount must be positive")

        if self.kind == TransactionKind.WITHDRAWAL and self.amount > ZERO:
            raise ValueError("Withdrawal amount must be negative")

    @classmethod
    def deposit(cls, amount: Decimal, timestamp: datetime) -> 'Transaction':
        return cls(
            id=str(uuid.uuid4()),
            timestamp=timestamp,
            amount=amount,
            kind=TransactionKind.DEPOSIT
        )

    @classmethod
    def withdrawal(cls, amount: Decimal, timestamp: datetime) -> 'Transaction':
        """Create a withdrawal entry; amount is the positive magnitude dispensed"""
        return cls(
            id=str(uuid.uuid4()),
            timestamp=timestamp,
            amount=-amount,
            kind=TransactionKind.WITHDRAWAL
        )

    @property
    def magnitude(self) -> Decimal:
        """Cash moved, regardless of direction"""
        return abs(self.amount)

    @property
    def is_withdrawal(self) -> bool:
        return self.kind == TransactionKind.WITHDRAWAL

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            'id': self.id,
            'timestamp': self.timestamp.isoformat(),
            'amount': str(self.amount),
            'kind': self.kind.value
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        """Create instance from dictionary"""
        timestamp = data['timestamp']
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        return cls(
            id=data['id'],
            timestamp=timestamp,
            amount=Decimal(str(data['amount'])),
            kind=TransactionKind(data['kind'])
        )


class TransactionLog:
    """
    Ordered, append-only sequence of transactions.

    Entries can only be added at the end. The one exception is
    `rollback_last`, which the ledger uses to undo an append whose
    persistence failed.
    """

    def __init__(self, transactions: Optional[List[Transaction]] = None):
        self._entries: List[Transaction] = list(transactions or [])

    def append(self, transaction: Transaction) -> None:
        self._entries.append(transaction)

    def rollback_last(self, transaction: Transaction) -> None:
        """Remove the most recent entry, which must be `transaction`"""
        if not self._entries or self._entries[-1] is not transaction:
            raise ValueError("Only the most recent transaction can be rolled back")
        self._entries.pop()

    def __iter__(self) -> Iterator[Transaction]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index):
        return self._entries[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, TransactionLog):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"TransactionLog({len(self._entries)} entries)"

    def total(self) -> Decimal:
        """Net sum of all signed amounts"""
        return sum((t.amount for t in self._entries), ZERO)

    def withdrawals_on(self, day: date) -> List[Transaction]:
        """Withdrawals whose timestamp falls on the given UTC calendar date"""
        return [
            t for t in self._entries
            if t.is_withdrawal and t.timestamp.astimezone(timezone.utc).date() == day
        ]

    def most_recent(self, count: int) -> List[Transaction]:
        """
        Newest first by timestamp, truncated to count.
        Entries sharing a timestamp are returned latest-appended first.
        """
        if count <= 0:
            return []
        indexed = sorted(
            enumerate(self._entries),
            key=lambda pair: (pair[1].timestamp, pair[0]),
            reverse=True
        )
        return [t for _, t in indexed[:count]]

    def to_list(self) -> List[Dict[str, Any]]:
        return [t.to_dict() for t in self._entries]

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]]) -> 'TransactionLog':
        return cls([Transaction.from_dict(item) for item in data])
