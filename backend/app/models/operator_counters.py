"""
Operator counter value type.

An immutable snapshot of the counters stored on an operator row.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class OperatorCounters:
    daily_date: Optional[date] = None
    daily_count: int = 0
    total_count: int = 0
