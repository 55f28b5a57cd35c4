"""
Account Directory Module

Authoritative in-memory owner of every account. Lookups are indexed by id and
by card number, every mutation is written through to the configured store,
and each account has its own lock so read-check-write sequences on one
account are serialized.
"""

from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional
import threading

from .accounts import Account
from .logging_config import get_logger, log_action
from .outcomes import LedgerError, Outcome
from .storage import AccountStore


class AccountDirectory:
    """
    Keyed collection of accounts with a write-through persistence hook
    """

    def __init__(self, store: Optional[AccountStore] = None):
        self.store = store
        self._accounts: Dict[str, Account] = {}
        self._by_card: Dict[str, str] = {}
        self._lock = threading.RLock()
        self._account_locks: Dict[str, threading.RLock] = {}
        self.logger = get_logger("cash_terminal.directory")

    @classmethod
    def from_store(cls, store: AccountStore) -> 'AccountDirectory':
        """Build a directory holding every account persisted in store"""
        directory = cls(store=store)
        accounts = store.load_all()
        with directory._lock:
            for account in accounts:
                if account.id in directory._accounts or account.card_number in directory._by_card:
                    raise ValueError(f"Store contains duplicate account {account.id}")
                directory._index(account)
        directory.logger.info(f"Loaded {len(accounts)} accounts from {type(store).__name__}")
        return directory

    def _index(self, account: Account) -> None:
        self._accounts[account.id] = account
        self._by_card[account.card_number] = account.id

    def find_by_id(self, account_id: str) -> Optional[Account]:
        """Get account by ID"""
        with self._lock:
            return self._accounts.get(account_id)

    def find_by_card(self, card_number: str) -> Optional[Account]:
        """Get account by card number"""
        with self._lock:
            account_id = self._by_card.get(card_number)
            return self._accounts.get(account_id) if account_id else None

    def add(self, account: Account) -> Outcome[Account]:
        """Register a new account; id and card number must both be unused"""
        with self._lock:
            if account.id in self._accounts:
                return Outcome.failure(
                    LedgerError.DUPLICATE_ACCOUNT, f"Account {account.id} already exists"
                )
            if account.card_number in self._by_card:
                return Outcome.failure(
                    LedgerError.DUPLICATE_ACCOUNT, "Card number is already issued"
                )

            if self.store:
                self.store.save(account)
            self._index(account)

        log_action(
            self.logger, "info", "Account added",
            account_id=account.id, action="account_added", resource="account"
        )
        return Outcome.success(account)

    def update(self, account: Account) -> Outcome[Account]:
        """
        Replace the stored record with the same id and persist it.
        Never creates: an unknown id is reported as ACCOUNT_NOT_FOUND.
        """
        with self._lock:
            current = self._accounts.get(account.id)
            if current is None:
                return Outcome.failure(
                    LedgerError.ACCOUNT_NOT_FOUND, f"Account {account.id} not found"
                )
            if current.card_number != account.card_number:
                raise ValueError("Card number of an account cannot change")

            if self.store:
                self.store.save(account)
            self._accounts[account.id] = account

        return Outcome.success(account)

    def all(self) -> List[Account]:
        """Snapshot of directory contents in insertion order"""
        with self._lock:
            return list(self._accounts.values())

    @contextmanager
    def account_lock(self, account_id: str) -> Iterator[None]:
        """Mutual-exclusion scope for one account"""
        with self._lock:
            lock = self._account_locks.get(account_id)
            if lock is None:
                lock = threading.RLock()
                self._account_locks[account_id] = lock
        with lock:
            yield

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)

    def __contains__(self, account_id: str) -> bool:
        with self._lock:
            return account_id in self._accounts
