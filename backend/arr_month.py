"""
Month Arithmetic

Small value type for YYYY-MM periods used by every ARR view. Snapshot rows,
pipeline close dates, trend windows and lookbacks are all expressed in Month.
"""

from dataclasses import dataclass
from datetime import date
from functools import total_ordering
from typing import List, Optional

from dateutil.relativedelta import relativedelta


MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
MONTH_NAME_TO_NUM = {name: i + 1 for i, name in enumerate(MONTH_NAMES)}


@total_ordering
@dataclass(frozen=True)
class Month:
    """A calendar month (no day component)"""
    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"Invalid month number: {self.month}")

    @classmethod
    def parse(cls, value: str) -> "Month":
        """Parse YYYY-MM or YYYY-MM-DD (anything after the month is ignored)"""
        text = (value or "").strip()
        parts = text[:7].split("-")
        if len(parts) != 2 or not parts[0].isdigit() or not parts[1].isdigit():
            raise ValueError(f"Invalid month string: {value!r}")
        return cls(int(parts[0]), int(parts[1]))

    @classmethod
    def try_parse(cls, value: Optional[str]) -> Optional["Month"]:
        if not value:
            return None
        try:
            return cls.parse(value)
        except ValueError:
            return None

    @classmethod
    def from_date(cls, d: date) -> "Month":
        return cls(d.year, d.month)

    @classmethod
    def from_names(cls, year: str, month_name: Optional[str]) -> "Month":
        """Build from a year string and a 3-letter month name (default Dec)"""
        return cls(int(year), MONTH_NAME_TO_NUM.get((month_name or "").strip()[:3].title(), 12))

    @classmethod
    def anchor_for(cls, today: date) -> "Month":
        """The month preceding today's month: the latest month with complete actuals"""
        return cls.from_date(today).previous()

    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    def shift(self, months: int) -> "Month":
        return Month.from_date(self.first_day() + relativedelta(months=months))

    def next(self) -> "Month":
        return self.shift(1)

    def previous(self) -> "Month":
        return self.shift(-1)

    def months_until(self, other: "Month") -> int:
        return (other.year - self.year) * 12 + (other.month - self.month)

    def label(self) -> str:
        """e.g. 'Jan 2026'"""
        return f"{MONTH_NAMES[self.month - 1]} {self.year}"

    def short_label(self) -> str:
        """e.g. 'Jan 26'"""
        return f"{MONTH_NAMES[self.month - 1]} {self.year % 100:02d}"

    def __lt__(self, other: "Month") -> bool:
        if not isinstance(other, Month):
            return NotImplemented
        return (self.year, self.month) < (other.year, other.month)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def month_range(start: Month, end: Month) -> List[Month]:
    """Inclusive list of months from start to end (empty if end < start)"""
    months = []
    current = start
    while current <= end:
        months.append(current)
        current = current.next()
    return months


def lookback_window(end: Month, lookback: int) -> List[Month]:
    """The `lookback` months ending at `end`, oldest first"""
    return month_range(end.shift(-(max(lookback, 1) - 1)), end)
