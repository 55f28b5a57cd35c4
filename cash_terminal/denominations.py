"""
Denomination Calculator

Greedy breakdown of a requested amount into the notes the terminal can
dispense. Notes are taken strictly from largest to smallest; whatever cannot
be represented is reported as residue and is never dispensed.
"""

from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from typing import Dict, Iterator, Tuple

from .amounts import ZERO, AmountLike, to_amount


DENOMINATIONS: Tuple[int, ...] = (100, 50, 20, 10, 5)
SMALLEST_DENOMINATION = DENOMINATIONS[-1]


@dataclass(frozen=True)
class DenominationBreakdown:
    """Note counts for one withdrawal request"""
    requested_amount: Decimal
    counts: Dict[int, int]
    dispensed_amount: Decimal

    @property
    def residue(self) -> Decimal:
        """Portion of the request that no note combination can represent"""
        return max(self.requested_amount - self.dispensed_amount, ZERO)

    @property
    def note_count(self) -> int:
        return sum(self.counts.values())

    def notes(self) -> Iterator[Tuple[int, int]]:
        """Yield (denomination, count) for the notes actually dispensed"""
        for denomination, count in self.counts.items():
            if count > 0:
                yield denomination, count

    def as_tuple(self) -> Tuple[Dict[int, int], Decimal]:
        return dict(self.counts), self.dispensed_amount


def compute_denominations(requested_amount: AmountLike) -> DenominationBreakdown:
    """
    Compute the greedy note breakdown for a requested amount

    Args:
        requested_amount: Amount the cardholder asked for

    Returns:
        DenominationBreakdown whose dispensed_amount never exceeds the request
    """
    requested = to_amount(requested_amount)
    counts: Dict[int, int] = OrderedDict((d, 0) for d in DENOMINATIONS)

    if requested <= ZERO:
        return DenominationBreakdown(requested_amount=requested, counts=counts, dispensed_amount=ZERO)

    remaining = requested
    dispensed = ZERO
    for denomination in DENOMINATIONS:
        count = int((remaining / denomination).to_integral_value(rounding=ROUND_FLOOR))
        counts[denomination] = count
        remaining -= count * denomination
        dispensed += count * denomination

    return DenominationBreakdown(requested_amount=requested, counts=counts, dispensed_amount=dispensed)
