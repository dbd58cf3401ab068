"""
Derived-metric helpers shared by every source.

Trend percentages, the symmetric previous-period rule, and date-window
parsing live here so all clients compute them identically.
"""

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta

from vanity_mirror.exceptions import ValidationError
from vanity_mirror.types.common import MetricWithTrend

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards +infinity."""
    return math.floor(value + 0.5)


def round_to(value: float, digits: int = 1) -> float:
    """Round to ``digits`` decimals, halves towards +infinity."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def calculate_trend(current: float, previous: float) -> int:
    """
    Percentage change of ``current`` versus ``previous``.

    A zero previous value has no defined ratio: any growth from zero counts
    as 100% and no activity at all counts as 0%.
    """
    if previous == 0:
        return 100 if current > 0 else 0
    return round_half_up(((current - previous) / previous) * 100)


def metric_with_trend(current: float, previous: float) -> MetricWithTrend:
    return MetricWithTrend(
        value=current,
        previous_value=previous,
        trend=calculate_trend(current, previous),
    )


def windowed_sum(values: Iterable[int], size: int) -> int:
    """Sum the last ``size`` values (fewer if the sequence is shorter)."""
    items = list(values)
    if size <= 0:
        return 0
    return sum(items[-size:])


@dataclass(frozen=True)
class DateWindow:
    """An inclusive range of calendar days."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValidationError("startDate must be on or before endDate")

    @classmethod
    def parse(cls, start: str | None, end: str | None) -> "DateWindow":
        """
        Parse a ``YYYY-MM-DD`` pair.

        Raises:
            ValidationError: If either value is missing, malformed, or the
                range is inverted
        """
        if not start or not end:
            raise ValidationError(
                "Missing required parameters: startDate and endDate are required"
            )
        if not _ISO_DATE.match(start) or not _ISO_DATE.match(end):
            raise ValidationError("Invalid date format. Use YYYY-MM-DD")
        try:
            return cls(date.fromisoformat(start), date.fromisoformat(end))
        except ValueError as e:
            raise ValidationError("Invalid date format. Use YYYY-MM-DD") from e

    @classmethod
    def last_days(cls, days: int, end: date | None = None) -> "DateWindow":
        """The ``days``-day window ending at ``end`` (default: today)."""
        end = end or date.today()
        return cls(end - timedelta(days=days - 1), end)

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    @property
    def start_iso(self) -> str:
        return self.start.isoformat()

    @property
    def end_iso(self) -> str:
        return self.end.isoformat()

    def cache_key(self) -> str:
        return f"{self.start_iso}:{self.end_iso}"

    def each_day(self) -> list[date]:
        return [self.start + timedelta(days=i) for i in range(self.days)]


def previous_period(window: DateWindow) -> DateWindow:
    """
    The window of identical length immediately preceding ``window``.

    2024-01-01..2024-01-30 (30 days) -> 2023-12-02..2023-12-31.
    """
    prev_end = window.start - timedelta(days=1)
    prev_start = prev_end - timedelta(days=window.days - 1)
    return DateWindow(prev_start, prev_end)


def format_month_day(value: str) -> str:
    """
    Render an upstream date as ``MM/DD``.

    Accepts ``YYYY-MM-DD``, ISO timestamps and GA4's ``YYYYMMDD``; anything
    else is returned unchanged.
    """
    if "T" in value:
        value = value.split("T")[0]
    if len(value) == 8 and value.isdigit():
        return f"{value[4:6]}/{value[6:8]}"
    parts = value.split("-")
    if len(parts) == 3:
        return f"{parts[1]}/{parts[2]}"
    return value
