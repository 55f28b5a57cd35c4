"""
Test suite for the account ledger

Validates deposit and withdrawal rules, the ordering of withdrawal checks,
balance conservation, and that rejected operations change nothing.
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone, timedelta

from cash_terminal.accounts import Account
from cash_terminal.directory import AccountDirectory
from cash_terminal.ledger import AccountLedger, WithdrawalReceipt
from cash_terminal.limits import DailyLimitPolicy
from cash_terminal.outcomes import LedgerError, StorageError
from cash_terminal.storage import InMemoryAccountStore
from cash_terminal.transactions import Transaction, TransactionKind


class FakeClock:
    """Clock that only moves when told to"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FailingStore(InMemoryAccountStore):
    """Store whose writes can be switched off"""

    def __init__(self):
        super().__init__()
        self.fail = False

    def save(self, account):
        if self.fail:
            raise StorageError("disk full")
        super().save(account)


def state_of(account: Account):
    return account.balance, list(account.transactions)


class TestAccountLedger:
    """Test ledger operations"""

    def setup_method(self):
        self.clock = FakeClock(datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc))
        self.store = FailingStore()
        self.directory = AccountDirectory(store=self.store)
        self.ledger = AccountLedger(self.directory, DailyLimitPolicy(), clock=self.clock)
        self.account = Account.open(card_number="4000123412341234", pin="1234")
        self.directory.add(self.account)

    def fund(self, amount):
        outcome = self.ledger.deposit(self.account, Decimal(amount))
        assert outcome.ok
        return outcome

    # Deposits

    def test_deposit(self):
        """Test deposit credits balance and appends one entry"""
        outcome = self.fund('250')

        assert isinstance(outcome.value, Transaction)
        assert outcome.value.kind == TransactionKind.DEPOSIT
        assert outcome.value.amount == Decimal('250.00')
        assert outcome.value.timestamp == self.clock.now
        assert self.account.balance == Decimal('250.00')
        assert len(self.account.transactions) == 1
        assert self.account.reconciles()

    def test_deposit_persists(self):
        self.fund('100')
        assert self.store.load(self.account.id).balance == Decimal('100.00')

    @pytest.mark.parametrize("amount", [Decimal('7'), Decimal('0'), Decimal('-5'), Decimal('12.50'), "abc"])
    def test_invalid_deposit_changes_nothing(self, amount):
        """Test rejected deposits leave balance and log untouched"""
        self.fund('20')
        before = state_of(self.account)

        outcome = self.ledger.deposit(self.account, amount)

        assert not outcome.ok
        assert outcome.error == LedgerError.INVALID_AMOUNT
        assert state_of(self.account) == before

    @pytest.mark.parametrize("amount", [10 ** 30, "1" + "0" * 30, "4.999", "1e2", "5x"])
    def test_unusable_deposit_amount_is_invalid(self, amount):
        """Test oversized, sub-cent and malformed amounts become INVALID_AMOUNT"""
        before = state_of(self.account)

        outcome = self.ledger.deposit(self.account, amount)

        assert outcome.error == LedgerError.INVALID_AMOUNT
        assert state_of(self.account) == before

    def test_stale_account_reported_before_bad_amount(self):
        """Test a deposit to a removed account reports the account, not the amount"""
        stranger = Account.open(card_number="9999", pin="0000")
        assert self.ledger.deposit(stranger, Decimal('7')).error == LedgerError.ACCOUNT_NOT_FOUND
        assert self.ledger.withdraw(stranger, "abc").error == LedgerError.ACCOUNT_NOT_FOUND

    def test_deposit_missing_account(self):
        assert self.ledger.deposit(None, Decimal('20')).error == LedgerError.ACCOUNT_NOT_FOUND

        stranger = Account.open(card_number="9999", pin="0000")
        assert self.ledger.deposit(stranger, Decimal('20')).error == LedgerError.ACCOUNT_NOT_FOUND
        assert len(stranger.transactions) == 0

    # Withdrawals

    def test_withdraw_dispensed_amount(self):
        """Test the balance drops by the dispensed amount, not the request"""
        self.fund('500')

        outcome = self.ledger.withdraw(self.account, Decimal('137'))

        assert outcome.ok
        receipt = outcome.value
        assert isinstance(receipt, WithdrawalReceipt)
        assert receipt.requested_amount == Decimal('137.00')
        assert receipt.dispensed_amount == Decimal('135')
        assert receipt.undispensed_residue == Decimal('2.00')
        assert receipt.notes == {100: 1, 20: 1, 10: 1, 5: 1}
        assert receipt.breakdown.counts[50] == 0
        assert receipt.transaction.amount == Decimal('-135.00')
        assert receipt.transaction.kind == TransactionKind.WITHDRAWAL
        assert self.account.balance == Decimal('365.00')
        assert self.account.reconciles()

    @pytest.mark.parametrize("amount", [10 ** 30, "1e2", "5x", "100.004"])
    def test_unusable_withdrawal_amount_is_invalid(self, amount):
        """Test a withdrawal is never made for a misread amount"""
        self.fund('500')
        before = state_of(self.account)

        outcome = self.ledger.withdraw(self.account, amount)

        assert outcome.error == LedgerError.INVALID_AMOUNT
        assert state_of(self.account) == before

    def test_withdraw_sub_cent_does_not_pass_funds_check(self):
        self.fund('100')
        outcome = self.ledger.withdraw(self.account, "100.004")
        assert outcome.error == LedgerError.INVALID_AMOUNT
        assert self.account.balance == Decimal('100.00')

    def test_withdraw_missing_account(self):
        assert self.ledger.withdraw(None, Decimal('20')).error == LedgerError.ACCOUNT_NOT_FOUND

    def test_insufficient_funds(self):
        """Test a request above the balance is rejected without mutation"""
        self.fund('100')
        before = state_of(self.account)

        outcome = self.ledger.withdraw(self.account, Decimal('100.01'))

        assert outcome.error == LedgerError.INSUFFICIENT_FUNDS
        assert state_of(self.account) == before

    def test_balance_checked_against_request(self):
        """Test the balance must cover the request even if less would be dispensed"""
        self.fund('100')
        outcome = self.ledger.withdraw(self.account, Decimal('102'))
        assert outcome.error == LedgerError.INSUFFICIENT_FUNDS

    def test_withdraw_entire_balance(self):
        self.fund('100')
        assert self.ledger.withdraw(self.account, Decimal('100')).ok
        assert self.account.balance == Decimal('0.00')

    def test_nothing_to_dispense(self):
        """Test requests below the smallest note are a distinguishable no-op"""
        self.fund('100')
        before = state_of(self.account)

        outcome = self.ledger.withdraw(self.account, Decimal('3'))

        assert not outcome.ok
        assert outcome.is_noop
        assert outcome.error == LedgerError.NOTHING_TO_DISPENSE
        assert state_of(self.account) == before

    def test_insufficient_funds_checked_before_nothing_to_dispense(self):
        outcome = self.ledger.withdraw(self.account, Decimal('3'))
        assert outcome.error == LedgerError.INSUFFICIENT_FUNDS

    def test_daily_count_cap(self):
        """Test ten withdrawals totalling 500 today block an eleventh"""
        self.fund('2000')
        for _ in range(10):
            assert self.ledger.withdraw(self.account, Decimal('50')).ok
        before = state_of(self.account)

        outcome = self.ledger.withdraw(self.account, Decimal('5'))

        assert outcome.error == LedgerError.LIMIT_EXCEEDED
        assert state_of(self.account) == before

    def test_daily_amount_cap(self):
        """Test 950 withdrawn today rejects 100 but accepts 50"""
        self.fund('2000')
        for amount in ('500', '300', '150'):
            assert self.ledger.withdraw(self.account, Decimal(amount)).ok

        assert self.ledger.withdraw(self.account, Decimal('100')).error == LedgerError.LIMIT_EXCEEDED
        assert self.ledger.withdraw(self.account, Decimal('50')).ok
        assert self.account.balance == Decimal('1000.00')

    def test_limit_uses_dispensed_amount(self):
        """Test the cap is measured against what would actually be dispensed"""
        self.fund('2000')
        assert self.ledger.withdraw(self.account, Decimal('900')).ok

        # 104 dispenses 100, which exactly reaches the cap
        outcome = self.ledger.withdraw(self.account, Decimal('104'))
        assert outcome.ok
        assert outcome.value.dispensed_amount == Decimal('100')

    def test_limit_checked_before_nothing_to_dispense(self):
        self.fund('2000')
        for _ in range(10):
            self.ledger.withdraw(self.account, Decimal('5'))
        assert self.ledger.withdraw(self.account, Decimal('2')).error == LedgerError.LIMIT_EXCEEDED

    def test_limit_resets_next_day(self):
        self.fund('3000')
        assert self.ledger.withdraw(self.account, Decimal('1000')).ok
        assert self.ledger.withdraw(self.account, Decimal('5')).error == LedgerError.LIMIT_EXCEEDED

        self.clock.advance(days=1)
        assert self.ledger.withdraw(self.account, Decimal('1000')).ok

    def test_balance_conservation(self):
        """Test balance equals deposits minus dispensed withdrawals"""
        deposits = ['100', '55', '20', '400']
        requests = ['37', '99', '5', '3', '250']
        dispensed = Decimal('0')
        for amount in deposits:
            self.fund(amount)
        for amount in requests:
            outcome = self.ledger.withdraw(self.account, Decimal(amount))
            if outcome.ok:
                dispensed += outcome.value.dispensed_amount
            self.clock.advance(minutes=1)

        expected = sum(Decimal(d) for d in deposits) - dispensed
        assert self.account.balance == expected
        assert self.account.balance >= 0
        assert self.account.reconciles()

    def test_failed_persistence_rolls_back(self):
        """Test a store failure leaves the in-memory account unchanged"""
        self.fund('100')
        before = state_of(self.account)
        self.store.fail = True

        with pytest.raises(StorageError):
            self.ledger.withdraw(self.account, Decimal('50'))
        with pytest.raises(StorageError):
            self.ledger.deposit(self.account, Decimal('50'))

        assert state_of(self.account) == before

    # Reads

    def test_recent_transactions(self):
        """Test newest first and truncation"""
        self.fund('100')
        self.clock.advance(minutes=1)
        self.ledger.withdraw(self.account, Decimal('20'))
        self.clock.advance(minutes=1)
        self.fund('5')

        recent = self.ledger.recent_transactions(self.account, 2)

        assert [t.amount for t in recent] == [Decimal('5.00'), Decimal('-20.00')]
        assert len(self.ledger.recent_transactions(self.account, 10)) == 3
        assert self.ledger.recent_transactions(None, 5) == []

    def test_reads_are_idempotent(self):
        self.fund('100')
        assert self.ledger.balance(self.account) == self.ledger.balance(self.account)
        assert self.ledger.recent_transactions(self.account, 5) == self.ledger.recent_transactions(self.account, 5)

    def test_balance_of_missing_account(self):
        assert self.ledger.balance(None) == Decimal('0')
