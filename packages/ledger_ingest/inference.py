"""Column type inference over a bounded, noisy sample."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .amounts import parse_amount
from .dates import parse_date
from .models import ColumnType

SAMPLE_SIZE = 50
SMALL_SAMPLE = 10
SMALL_SAMPLE_THRESHOLD = 0.4
THRESHOLD = 0.6
MIN_MONOTONIC_POINTS = 3


@dataclass(frozen=True, slots=True)
class TypeMeta:
    """Counts behind a classification plus sign/monotonicity for numbers."""

    sample_size: int
    date_count: int = 0
    number_count: int = 0
    has_negative: bool = False
    has_positive: bool = False
    is_monotonic: bool = False


def is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def threshold_for(sample_size: int) -> float:
    """Small samples are noisier, so the acceptance ratio is relaxed."""

    return SMALL_SAMPLE_THRESHOLD if sample_size < SMALL_SAMPLE else THRESHOLD


def is_monotonic(numbers: Sequence[Decimal]) -> bool:
    """True when at least three points move consistently in one direction."""

    if len(numbers) < MIN_MONOTONIC_POINTS:
        return False
    diffs = [b - a for a, b in zip(numbers, numbers[1:])]
    return all(d >= 0 for d in diffs) or all(d <= 0 for d in diffs)


def number_traits(values: Sequence[Any]) -> tuple[bool, bool, bool]:
    """Return ``(has_negative, has_positive, is_monotonic)`` for a column."""

    numbers = [n for n in (parse_amount(v) for v in values) if n is not None]
    has_negative = any(n < 0 for n in numbers)
    has_positive = any(n > 0 for n in numbers)
    return has_negative, has_positive, is_monotonic(numbers)


def _is_number_cell(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def count_dates(sample: Sequence[Any]) -> int:
    """Count the cells of ``sample`` that read as dates.

    Numeric cells count as spreadsheet serials only when every numeric cell
    of the sample is one: a single fractional or out-of-range amount marks
    the whole column as amounts.
    """

    serials = all(parse_date(v) is not None for v in sample if _is_number_cell(v))
    return sum(
        1 for v in sample if (serials or not _is_number_cell(v)) and parse_date(v) is not None
    )


def infer_type(values: Sequence[Any]) -> tuple[ColumnType, TypeMeta]:
    """Classify a column sample as date, number, text or unknown.

    Only the first ``SAMPLE_SIZE`` non-empty values are inspected. Dates are
    tried before numbers so that numeric-looking date layouts win.
    """

    sample = [v for v in values if not is_empty(v)][:SAMPLE_SIZE]
    if not sample:
        return "unknown", TypeMeta(sample_size=0)

    size = len(sample)
    threshold = threshold_for(size)

    date_count = count_dates(sample)
    if date_count / size >= threshold:
        return "date", TypeMeta(sample_size=size, date_count=date_count)

    number_count = sum(1 for v in sample if parse_amount(v) is not None)
    if number_count / size >= threshold:
        has_negative, has_positive, monotonic = number_traits(sample)
        return "number", TypeMeta(
            sample_size=size,
            date_count=date_count,
            number_count=number_count,
            has_negative=has_negative,
            has_positive=has_positive,
            is_monotonic=monotonic,
        )

    return "text", TypeMeta(sample_size=size, date_count=date_count, number_count=number_count)


__all__ = [
    "SAMPLE_SIZE",
    "TypeMeta",
    "count_dates",
    "infer_type",
    "is_empty",
    "is_monotonic",
    "number_traits",
    "threshold_for",
]
