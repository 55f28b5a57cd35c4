"""
Account Module

Cash account held by a cardholder: credentials, balance, and the append-only
transaction log the balance is reconciled against.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import uuid

from .amounts import ZERO, to_amount
from .transactions import Transaction, TransactionLog


@dataclass
class Account:
    """
    Cardholder account. Balance only changes together with a log entry,
    so balance - opening_balance always equals the sum of the log.
    """
    id: str
    card_number: str
    pin: str
    balance: Decimal = ZERO
    transactions: TransactionLog = field(default_factory=TransactionLog)
    opening_balance: Optional[Decimal] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not self.id:
            raise ValueError("Account id is required")
        if not self.card_number:
            raise ValueError("Card number is required")

        self.balance = to_amount(self.balance)
        if self.balance < ZERO:
            raise ValueError(f"Account balance cannot be negative: {self.balance}")

        if not isinstance(self.transactions, TransactionLog):
            self.transactions = TransactionLog(list(self.transactions))

        if self.opening_balance is None:
            self.opening_balance = self.balance - self.transactions.total()
        else:
            self.opening_balance = to_amount(self.opening_balance)

    @classmethod
    def open(cls, card_number: str, pin: str, account_id: Optional[str] = None) -> 'Account':
        """New account with zero balance and an empty log"""
        return cls(
            id=account_id or str(uuid.uuid4()),
            card_number=card_number,
            pin=pin,
            balance=ZERO,
            opening_balance=ZERO
        )

    def pin_matches(self, pin: str) -> bool:
        return pin is not None and self.pin == pin

    def apply(self, transaction: Transaction) -> None:
        """Post a transaction: move the balance and append to the log"""
        new_balance = self.balance + transaction.amount
        if new_balance < ZERO:
            raise ValueError(
                f"Transaction {transaction.id} would overdraw account {self.id}"
            )
        self.balance = new_balance
        self.transactions.append(transaction)

    def revert(self, transaction: Transaction) -> None:
        """Undo the last applied transaction"""
        self.transactions.rollback_last(transaction)
        self.balance = self.balance - transaction.amount

    def reconciles(self) -> bool:
        """Check that the log accounts for every change to the balance"""
        return self.transactions.total() == self.balance - self.opening_balance

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            'id': self.id,
            'card_number': self.card_number,
            'pin': self.pin,
            'balance': str(self.balance),
            'opening_balance': str(self.opening_balance),
            'created_at': self.created_at.isoformat(),
            'transactions': self.transactions.to_list()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        """Create instance from dictionary"""
        created_at = data.get('created_at')
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        if created_at is None:
            created_at = datetime.now(timezone.utc)

        opening_balance = data.get('opening_balance')

        return cls(
            id=str(data['id']),
            card_number=str(data['card_number']),
            pin=str(data['pin']),
            balance=Decimal(str(data['balance'])),
            transactions=TransactionLog.from_list(data.get('transactions', [])),
            opening_balance=Decimal(str(opening_balance)) if opening_balance is not None else None,
            created_at=created_at
        )
