"""
Capture date range given on the command line.

Accepted forms: "YYYY", "YYYY-MM", "YYYY-MM-DD" and "START,END" where both
ends use one of the previous forms. The end of a range is inclusive of the
whole year, month or day it names.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Optional, Tuple

from immisync.errors import ConfigError


def _parse_bound(text: str) -> Tuple[datetime.datetime, datetime.datetime]:
    """Return [first instant, first instant after] of the period in text."""
    text = text.strip()
    try:
        if len(text) == 4:
            start = datetime.datetime.strptime(text, "%Y")
            return start, start.replace(year=start.year + 1)
        if len(text) == 7:
            start = datetime.datetime.strptime(text, "%Y-%m")
            if start.month == 12:
                return start, start.replace(year=start.year + 1, month=1)
            return start, start.replace(month=start.month + 1)
        if len(text) == 10:
            start = datetime.datetime.strptime(text, "%Y-%m-%d")
            return start, start + datetime.timedelta(days=1)
    except ValueError as e:
        raise ConfigError(f"invalid date '{text}': {e}") from e
    raise ConfigError(f"invalid date '{text}', expecting YYYY, YYYY-MM or YYYY-MM-DD")


@dataclass
class DateRange:
    after: Optional[datetime.datetime] = None
    before: Optional[datetime.datetime] = None

    @classmethod
    def parse(cls, text: Optional[str]) -> "DateRange":
        if not text:
            return cls()
        if "," in text:
            first, last = text.split(",", 1)
            after, _ = _parse_bound(first)
            _, before = _parse_bound(last)
        else:
            after, before = _parse_bound(text)
        if before <= after:
            raise ConfigError(f"invalid date range '{text}': end before start")
        return cls(after=after, before=before)

    def is_set(self) -> bool:
        return self.after is not None and self.before is not None

    def in_range(self, d: datetime.datetime) -> bool:
        if not self.is_set():
            return True
        if d.tzinfo is not None:
            d = d.astimezone().replace(tzinfo=None)
        return self.after <= d < self.before

    def __str__(self) -> str:
        if not self.is_set():
            return "unset"
        return f"{self.after:%Y-%m-%d},{self.before - datetime.timedelta(days=1):%Y-%m-%d}"
