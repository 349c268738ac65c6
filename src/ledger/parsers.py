"""
Parsers for the date and quantity formats found in ledger rows.

These handle the messy reality of synced ERP data:
- Timestamps with and without offsets, "Z" suffixes, or no time at all
- Report dates given as day strings that must become UTC boundaries
- Quantities stored as text, null, or with an unreliable sign
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable
import math

import pandas as pd

from .exceptions import ReportError


class DateParser:
    """
    Timestamp parser that normalizes every value to an aware UTC datetime.

    Naive values are taken to be UTC already; that is how the ERP sync
    writes them. To extend: add format patterns to TIMESTAMP_FORMATS.
    """

    # Ordered by specificity
    TIMESTAMP_FORMATS = [
        "%Y-%m-%dT%H:%M:%S.%f%z",  # 2025-07-01T10:00:00.123+00:00
        "%Y-%m-%dT%H:%M:%S%z",     # 2025-07-01T10:00:00+00:00
        "%Y-%m-%dT%H:%M:%S.%f",    # 2025-07-01T10:00:00.123
        "%Y-%m-%dT%H:%M:%S",       # 2025-07-01T10:00:00
        "%Y-%m-%d %H:%M:%S.%f%z",  # 2025-07-01 10:00:00.123+00
        "%Y-%m-%d %H:%M:%S%z",     # 2025-07-01 10:00:00+00
        "%Y-%m-%d %H:%M:%S.%f",    # 2025-07-01 10:00:00.123
        "%Y-%m-%d %H:%M:%S",       # 2025-07-01 10:00:00
        "%Y-%m-%d",                # 2025-07-01
    ]

    def __init__(self, custom_formats: list[str] | None = None):
        """
        Args:
            custom_formats: Additional formats to try (prepended to defaults)
        """
        self.formats = (custom_formats or []) + self.TIMESTAMP_FORMATS
        self._cache: dict[str, datetime | None] = {}

    def parse(self, value) -> datetime | None:
        """Parse a timestamp, trying multiple formats."""
        if isinstance(value, datetime):
            return as_utc(value)
        if isinstance(value, date):
            return day_start(value)
        if value is None or pd.isna(value) or not str(value).strip():
            return None

        text = str(value).strip()
        if text in self._cache:
            return self._cache[text]

        candidate = text[:-1] + "+00:00" if text.endswith("Z") else text
        result = None
        for fmt in self.formats:
            try:
                result = as_utc(datetime.strptime(candidate, fmt))
                break
            except ValueError:
                continue

        self._cache[text] = result
        return result

    def parse_series(self, series: pd.Series) -> pd.Series:
        """Parse an entire pandas Series of timestamps."""
        return map_values(series, self.parse)


def map_values(series: pd.Series, func: Callable[[Any], Any]) -> pd.Series:
    """
    Apply ``func`` elementwise, keeping the results as Python objects.

    Enum members, dates and None come back as they are; pandas never
    infers a string or datetime dtype over them.
    """
    return pd.Series([func(v) for v in series], index=series.index, dtype=object)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_start(day: date) -> datetime:
    """Midnight UTC at the start of ``day``."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def next_day_start(day: date) -> datetime:
    """Midnight UTC at the start of the day after ``day``."""
    return day_start(day + timedelta(days=1))


def parse_day(value, field: str = "date") -> date | None:
    """
    Parse a report day (YYYY-MM-DD). Empty means unbounded.

    Raises:
        ReportError('INVALID_DATE'): the value is not a calendar day
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ReportError('INVALID_DATE', field=field, value=value) from None


def parse_correction_date(value) -> date | None:
    """Correction dates may arrive as days or full timestamps."""
    if isinstance(value, datetime):
        return as_utc(value).date()
    if isinstance(value, date):
        return value
    parsed = _timestamp_parser.parse(value)
    return parsed.date() if parsed else None


def parse_quantity(value) -> float | None:
    """
    Parse a stored quantity as a float.

    Null means 0 (the row exists but carries no amount). Text that is not
    a finite number returns None so the caller can skip the row.
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return 0.0
    try:
        result = float(str(value).strip()) if isinstance(value, str) else float(value)
    except ValueError:
        return None
    if not math.isfinite(result):
        return None
    return result


@dataclass(frozen=True)
class DateWindow:
    """
    Half-open timestamp window [start, end). None means unbounded.

    Built from report days: ``to_day`` includes the whole day, so
    "2025-07-31" keeps all of July 31 and drops August 1.
    """

    start: datetime | None = None
    end: datetime | None = None

    @classmethod
    def from_days(cls, from_day: date | None, to_day: date | None) -> "DateWindow":
        return cls(
            start=day_start(from_day) if from_day else None,
            end=next_day_start(to_day) if to_day else None,
        )

    @classmethod
    def before(cls, start: datetime | None) -> "DateWindow":
        """Everything strictly before ``start``."""
        return cls(start=None, end=start)

    def contains(self, moment: datetime) -> bool:
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment >= self.end:
            return False
        return True


@dataclass(frozen=True)
class DayRange:
    """Inclusive day range [start, end] used for correction dates."""

    start: date | None = None
    end: date | None = None

    @classmethod
    def before(cls, start: datetime | None) -> "DayRange":
        """Days strictly before the day containing ``start``."""
        if start is None:
            return cls(start=None, end=None)
        return cls(start=None, end=as_utc(start).date() - timedelta(days=1))

    def contains(self, day: date) -> bool:
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


_timestamp_parser = DateParser()
