"""
Token Numbering (Domain Logic).

Pure counter arithmetic for print tokens. No I/O here: the ledger reads the
operator row, calls these functions, and persists the result in the same
transaction.

Token numbers look like JDOE07: the operator's username upper-cased followed
by the day's sequence, zero-padded to two digits. Sequences above 99 simply
grow a third digit.
"""

from dataclasses import dataclass
from datetime import date

from backend.app.models.operator_counters import OperatorCounters

SEQUENCE_WIDTH = 2


@dataclass(frozen=True)
class IssuedNumber:
    """Result of advancing an operator's counters for one new token."""
    token_no: str
    sequence: int
    counters: OperatorCounters


def effective_daily_count(counters: OperatorCounters, today: date) -> int:
    """A stored daily count from any other day counts as zero."""
    if counters.daily_date != today:
        return 0
    return max(counters.daily_count, 0)


def format_token_no(username: str, sequence: int) -> str:
    return f"{username.upper()}{sequence:0{SEQUENCE_WIDTH}d}"


def next_token_number(username: str, counters: OperatorCounters, today: date) -> IssuedNumber:
    """
    Compute the number for the next token and the counters after issuing it.

    Args:
        username: Issuing operator's username (number prefix)
        counters: Operator counters as currently stored
        today: Business-calendar date of issuance

    Returns:
        IssuedNumber with the token number and the new counters
        ({daily_date: today, daily_count: n, total_count: total + 1})
    """
    sequence = effective_daily_count(counters, today) + 1
    return IssuedNumber(
        token_no=format_token_no(username, sequence),
        sequence=sequence,
        counters=OperatorCounters(
            daily_date=today,
            daily_count=sequence,
            total_count=counters.total_count + 1,
        ),
    )


def reverse_counters(counters: OperatorCounters, issued_on: date) -> OperatorCounters:
    """
    Counters after a token issued on `issued_on` is deleted.

    The daily count only goes down when the token belongs to the operator's
    current daily window; a token from an earlier window has already rolled
    over and decrementing would corrupt today's sequence. Both counts are
    floored at zero. daily_date is never changed by a reversal.
    """
    daily_count = counters.daily_count
    if counters.daily_date == issued_on and daily_count > 0:
        daily_count = daily_count - 1

    return OperatorCounters(
        daily_date=counters.daily_date,
        daily_count=max(daily_count, 0),
        total_count=max(counters.total_count - 1, 0),
    )
