"""
Account Ledger Engine

Applies deposits and withdrawals to accounts. Every precondition is checked
before anything changes; a rejected operation leaves balance and transaction
log exactly as they were. Withdrawals debit the dispensed amount, never the
requested amount, and run their whole check-compute-commit sequence inside
the account's lock.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .amounts import ZERO, AmountLike, format_amount, is_multiple_of, to_amount
from .accounts import Account
from .denominations import SMALLEST_DENOMINATION, DenominationBreakdown, compute_denominations
from .directory import AccountDirectory
from .limits import DailyLimitPolicy
from .logging_config import get_logger, log_action
from .outcomes import LedgerError, Outcome
from .transactions import Transaction


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class WithdrawalReceipt:
    """What left the vault for one committed withdrawal"""
    transaction: Transaction
    breakdown: DenominationBreakdown

    @property
    def requested_amount(self) -> Decimal:
        return self.breakdown.requested_amount

    @property
    def dispensed_amount(self) -> Decimal:
        return self.breakdown.dispensed_amount

    @property
    def undispensed_residue(self) -> Decimal:
        return self.breakdown.residue

    @property
    def notes(self) -> Dict[int, int]:
        return dict(self.breakdown.notes())


class AccountLedger:
    """
    Owns balance mutation for accounts held by an AccountDirectory
    """

    def __init__(
        self,
        directory: AccountDirectory,
        limit_policy: Optional[DailyLimitPolicy] = None,
        clock: Optional[Clock] = None
    ):
        self.directory = directory
        self.limit_policy = limit_policy or DailyLimitPolicy()
        self.clock = clock or utc_now
        self.logger = get_logger("cash_terminal.ledger")

    def _resolve(self, account: Optional[Account]) -> Optional[Account]:
        if account is None:
            return None
        return self.directory.find_by_id(account.id)

    def _commit(self, account: Account, transaction: Transaction) -> None:
        """Apply a transaction and persist it, undoing the apply if persisting fails"""
        account.apply(transaction)
        try:
            result = self.directory.update(account)
        except Exception:
            account.revert(transaction)
            raise
        if not result.ok:
            account.revert(transaction)
            raise RuntimeError(f"Account {account.id} vanished during commit")

    def _reject(self, account_id: Optional[str], action: str, error: LedgerError,
                message: str, **extra) -> Outcome:
        log_action(
            self.logger, "warning", f"{action} rejected: {message}",
            account_id=account_id, action=action, resource="account",
            extra=dict(extra, error=error.value)
        )
        return Outcome.failure(error, message)

    def deposit(self, account: Optional[Account], amount: AmountLike) -> Outcome[Transaction]:
        """
        Credit cash to an account

        The amount must be positive and made of whole notes, i.e. a multiple
        of the smallest denomination. The account is checked before the amount.

        Returns:
            Outcome carrying the created deposit Transaction
        """
        if account is None:
            return self._reject(None, "deposit", LedgerError.ACCOUNT_NOT_FOUND, "Account not found")

        with self.directory.account_lock(account.id):
            current = self._resolve(account)
            if current is None:
                return self._reject(
                    account.id, "deposit", LedgerError.ACCOUNT_NOT_FOUND,
                    f"Account {account.id} not found"
                )

            try:
                value = to_amount(amount, exact=True)
            except ValueError:
                return self._reject(
                    current.id, "deposit", LedgerError.INVALID_AMOUNT,
                    f"Invalid deposit amount {amount!r}"
                )

            if value <= ZERO or not is_multiple_of(value, SMALLEST_DENOMINATION):
                return self._reject(
                    current.id, "deposit", LedgerError.INVALID_AMOUNT,
                    f"Deposit must be a positive multiple of {SMALLEST_DENOMINATION}, got {value}"
                )

            transaction = Transaction.deposit(value, self.clock())
            self._commit(current, transaction)

        log_action(
            self.logger, "info", f"Deposited {format_amount(value)}",
            account_id=current.id, action="deposit", resource="account",
            extra={"transaction_id": transaction.id, "amount": str(value),
                   "balance": str(current.balance)}
        )
        return Outcome.success(transaction)

    def withdraw(self, account: Optional[Account], requested_amount: AmountLike) -> Outcome[WithdrawalReceipt]:
        """
        Dispense cash from an account

        Checks, in order: account exists, the amount is a whole number of
        cents, balance covers the request, the dispensable amount fits the
        daily limit, something can be dispensed.
        Only then is the dispensed amount debited.

        Returns:
            Outcome carrying a WithdrawalReceipt, or the first failed check
        """
        if account is None:
            return self._reject(None, "withdraw", LedgerError.ACCOUNT_NOT_FOUND, "Account not found")

        with self.directory.account_lock(account.id):
            current = self._resolve(account)
            if current is None:
                return self._reject(
                    account.id, "withdraw", LedgerError.ACCOUNT_NOT_FOUND,
                    f"Account {account.id} not found"
                )

            try:
                requested = to_amount(requested_amount, exact=True)
            except ValueError:
                return self._reject(
                    current.id, "withdraw", LedgerError.INVALID_AMOUNT,
                    f"Invalid withdrawal amount {requested_amount!r}"
                )

            if current.balance < requested:
                return self._reject(
                    current.id, "withdraw", LedgerError.INSUFFICIENT_FUNDS,
                    f"Balance {format_amount(current.balance)} does not cover {format_amount(requested)}",
                    requested=str(requested)
                )

            breakdown = compute_denominations(requested)
            now = self.clock()

            check = self.limit_policy.evaluate(current, breakdown.dispensed_amount, now)
            if check.exceeded:
                return self._reject(
                    current.id, "withdraw", LedgerError.LIMIT_EXCEEDED,
                    f"Daily withdrawal limit reached: maximum {check.max_count} withdrawals "
                    f"or {format_amount(check.max_amount)} per day",
                    withdrawn_today=str(check.withdrawn_today), count_today=check.count_today,
                    dispensed=str(breakdown.dispensed_amount)
                )

            if breakdown.dispensed_amount == ZERO:
                log_action(
                    self.logger, "info", "Nothing to dispense",
                    account_id=current.id, action="withdraw", resource="account",
                    extra={"requested": str(requested)}
                )
                return Outcome.failure(
                    LedgerError.NOTHING_TO_DISPENSE,
                    f"{format_amount(requested)} cannot be dispensed in available notes"
                )

            transaction = Transaction.withdrawal(breakdown.dispensed_amount, now)
            self._commit(current, transaction)

        receipt = WithdrawalReceipt(transaction=transaction, breakdown=breakdown)
        log_action(
            self.logger, "info", f"Dispensed {format_amount(receipt.dispensed_amount)}",
            account_id=current.id, action="withdraw", resource="account",
            extra={"transaction_id": transaction.id, "requested": str(requested),
                   "dispensed": str(receipt.dispensed_amount),
                   "residue": str(receipt.undispensed_residue),
                   "balance": str(current.balance)}
        )
        return Outcome.success(receipt)

    def recent_transactions(self, account: Optional[Account], count: int) -> List[Transaction]:
        """Most recent transactions, newest first"""
        if account is None:
            return []
        return account.transactions.most_recent(count)

    def balance(self, account: Optional[Account]) -> Decimal:
        """Current balance, or zero for a missing account"""
        if account is None:
            return ZERO
        return account.balance
