"""
Ledger Service Module

Public operations of the cash terminal: authentication, PIN change, balance
and history queries, deposits and withdrawals. Resolves accounts through the
directory and delegates every balance change to the AccountLedger.
"""

from decimal import Decimal
from typing import List, Optional
import re
import secrets

from .amounts import AmountLike
from .accounts import Account
from .config import TerminalConfig, get_config
from .denominations import DenominationBreakdown, compute_denominations
from .directory import AccountDirectory
from .ledger import AccountLedger, WithdrawalReceipt
from .limits import DailyLimitPolicy, LimitCheck
from .logging_config import get_logger, log_action
from .outcomes import LedgerError, Outcome
from .transactions import Transaction


MAX_CARD_NUMBER_ATTEMPTS = 100


class LedgerService:
    """
    Orchestrates the directory, limit policy, denomination calculator and
    ledger into the operations a terminal front end consumes.

    Withdrawals are not idempotent: a successful outcome is the only record
    that cash left the vault, so callers must not retry one blindly.
    """

    def __init__(
        self,
        directory: AccountDirectory,
        ledger: Optional[AccountLedger] = None,
        limit_policy: Optional[DailyLimitPolicy] = None,
        config: Optional[TerminalConfig] = None
    ):
        self.config = config or get_config()
        self.directory = directory
        if ledger is None:
            policy = limit_policy or DailyLimitPolicy(
                max_amount=self.config.daily_limit_amount,
                max_count=self.config.daily_withdrawal_count
            )
            ledger = AccountLedger(directory, policy)
        self.ledger = ledger
        self.logger = get_logger("cash_terminal.service")

    # Credentials

    def authenticate(self, card_number: str, pin: str) -> bool:
        """True iff a card with this number exists and the PIN matches exactly"""
        account = self.directory.find_by_card(card_number)
        if account is not None and account.pin_matches(pin):
            return True

        log_action(
            self.logger, "warning", "Authentication failed",
            account_id=account.id if account else None,
            action="authenticate", resource="card"
        )
        return False

    def change_pin(self, card_number: str, old_pin: str, new_pin: str) -> bool:
        """Replace the PIN when old_pin matches; the new PIN must be valid"""
        account = self.directory.find_by_card(card_number)
        if account is None:
            return False

        if not self.is_valid_pin(new_pin):
            log_action(
                self.logger, "warning", "PIN change rejected: invalid new PIN",
                account_id=account.id, action="change_pin", resource="card"
            )
            return False

        with self.directory.account_lock(account.id):
            if not account.pin_matches(old_pin):
                log_action(
                    self.logger, "warning", "PIN change rejected: current PIN mismatch",
                    account_id=account.id, action="change_pin", resource="card"
                )
                return False

            previous = account.pin
            account.pin = new_pin
            try:
                result = self.directory.update(account)
            except Exception:
                account.pin = previous
                raise
            if not result.ok:
                account.pin = previous
                return False

        log_action(
            self.logger, "info", "PIN changed",
            account_id=account.id, action="change_pin", resource="card"
        )
        return True

    def is_valid_pin(self, pin: Optional[str]) -> bool:
        if not pin:
            return False
        if self.config.pin_pattern:
            return re.fullmatch(self.config.pin_pattern, pin) is not None
        return True

    # Queries

    def get_balance(self, account_id: str) -> Decimal:
        return self.ledger.balance(self.directory.find_by_id(account_id))

    def get_recent_transactions(self, account_id: str, count: Optional[int] = None) -> List[Transaction]:
        if count is None:
            count = self.config.recent_transactions_default
        return self.ledger.recent_transactions(self.directory.find_by_id(account_id), count)

    def get_by_card_number(self, card_number: str) -> Optional[Account]:
        return self.directory.find_by_card(card_number)

    def calculate_denominations(self, amount: AmountLike) -> DenominationBreakdown:
        return compute_denominations(amount)

    def daily_limit_status(self, account_id: str) -> Optional[LimitCheck]:
        """Today's withdrawal totals and what remains under the caps"""
        account = self.directory.find_by_id(account_id)
        if account is None:
            return None
        return self.ledger.limit_policy.evaluate(account, 0, self.ledger.clock())

    # Mutations

    def deposit(self, account_id: str, amount: AmountLike) -> Outcome[Transaction]:
        return self.ledger.deposit(self.directory.find_by_id(account_id), amount)

    def withdraw(self, account_id: str, amount: AmountLike) -> Outcome[WithdrawalReceipt]:
        return self.ledger.withdraw(self.directory.find_by_id(account_id), amount)

    def create_account(self, account: Account) -> Outcome[Account]:
        return self.directory.add(account)

    def open_account(self) -> Account:
        """
        Issue a new zero-balance account with a random unique card number
        and PIN

        Raises:
            RuntimeError: If no unused card number could be generated
        """
        for _ in range(MAX_CARD_NUMBER_ATTEMPTS):
            account = Account.open(
                card_number=self._generate_card_number(),
                pin=self._generate_pin()
            )
            result = self.directory.add(account)
            if result.ok:
                log_action(
                    self.logger, "info", "Account opened",
                    account_id=account.id, action="open_account", resource="account"
                )
                return account
            if result.error is not LedgerError.DUPLICATE_ACCOUNT:
                break
        raise RuntimeError("Could not issue a unique card number")

    def _generate_card_number(self) -> str:
        return "".join(str(secrets.randbelow(10)) for _ in range(self.config.card_number_length))

    def _generate_pin(self) -> str:
        return str(secrets.randbelow(10 ** self.config.pin_length)).zfill(self.config.pin_length)
