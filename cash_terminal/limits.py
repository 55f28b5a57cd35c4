"""
Daily Withdrawal Limit Policy

Caps cash withdrawals per account per calendar day, both by total amount and
by number of withdrawals. The window resets at midnight UTC; it is not a
trailing 24 hour window.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from .amounts import ZERO, AmountLike, to_amount
from .accounts import Account


DEFAULT_MAX_DAILY_AMOUNT = Decimal('1000.00')
DEFAULT_MAX_DAILY_COUNT = 10


@dataclass(frozen=True)
class LimitCheck:
    """Figures behind a limit decision"""
    withdrawn_today: Decimal
    count_today: int
    candidate_amount: Decimal
    max_amount: Decimal
    max_count: int

    @property
    def remaining_amount(self) -> Decimal:
        return max(self.max_amount - self.withdrawn_today, ZERO)

    @property
    def remaining_count(self) -> int:
        return max(self.max_count - self.count_today, 0)

    @property
    def exceeded(self) -> bool:
        return (
            self.withdrawn_today + self.candidate_amount > self.max_amount
            or self.count_today >= self.max_count
        )


class DailyLimitPolicy:
    """
    Evaluates withdrawals against the daily amount and count caps.
    Read-only: never mutates the account.
    """

    def __init__(
        self,
        max_amount: AmountLike = DEFAULT_MAX_DAILY_AMOUNT,
        max_count: int = DEFAULT_MAX_DAILY_COUNT
    ):
        self.max_amount = to_amount(max_amount)
        self.max_count = int(max_count)

        if self.max_amount < ZERO:
            raise ValueError("Daily amount limit cannot be negative")
        if self.max_count < 0:
            raise ValueError("Daily withdrawal count limit cannot be negative")

    def evaluate(
        self,
        account: Account,
        candidate_amount: AmountLike,
        as_of: Optional[datetime] = None
    ) -> LimitCheck:
        """
        Measure today's withdrawals against the caps

        Args:
            account: Account whose log is inspected
            candidate_amount: Dispensed amount of the withdrawal being considered
            as_of: Point in time whose UTC calendar date defines "today"
        """
        if as_of is None:
            as_of = datetime.now(timezone.utc)
        day = as_of.astimezone(timezone.utc).date()

        withdrawals = account.transactions.withdrawals_on(day)
        withdrawn = sum((t.magnitude for t in withdrawals), ZERO)

        return LimitCheck(
            withdrawn_today=withdrawn,
            count_today=len(withdrawals),
            candidate_amount=to_amount(candidate_amount),
            max_amount=self.max_amount,
            max_count=self.max_count
        )

    def is_exceeded(
        self,
        account: Account,
        candidate_amount: AmountLike,
        as_of: Optional[datetime] = None
    ) -> bool:
        """True if withdrawing candidate_amount today would break a cap"""
        return self.evaluate(account, candidate_amount, as_of).exceeded
