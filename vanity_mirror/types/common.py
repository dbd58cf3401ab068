"""Types shared by every source."""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass
class MetricWithTrend:
    """A metric for the selected window compared with the preceding window."""

    value: float
    previous_value: float
    trend: int  # percent, see metrics.calculate_trend


@dataclass
class TimeSeriesPoint:
    """
    One bucket of visitor counts.

    Points are ascending by date with one point per upstream bucket; missing
    upstream days are absent rather than zero-filled.
    """

    date: str
    visitors: int
    unique_visitors: int
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "visitors": self.visitors,
            "uniqueVisitors": self.unique_visitors,
            **self.extra,
        }


@dataclass
class ItemError:
    """A single failed item in a multi-item fetch."""

    name: str
    error: str


@dataclass
class BatchResult(Generic[T]):
    """Outcome of an all-settled fetch: what worked and what did not."""

    successful: list[T] = field(default_factory=list)
    errors: list[ItemError] = field(default_factory=list)

    def extend(self, other: "BatchResult[T]") -> None:
        self.successful.extend(other.successful)
        self.errors.extend(other.errors)

    def error_summary(self) -> str:
        return ", ".join(f"{e.name}: {e.error}" for e in self.errors)
