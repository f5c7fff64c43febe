"""Data models and type aliases for ``ledger_ingest``.

In-memory records produced by the engine are frozen, slotted dataclasses: a
new analysis or transformation produces new instances and never mutates old
ones. Values that cross a trust boundary (import settings supplied by a user,
the on-disk statistics file) are pydantic models.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

# ---------------------------------------------------------------------------
# Raw input
# ---------------------------------------------------------------------------

type RawTable = Sequence[Sequence[Any]]
"""Ordered rows of ordered cells as read from a source file.

Cells are opaque: strings, numbers, dates, or empty (``None`` / ``""``). Rows
need not be rectangular; short rows are tolerated everywhere.
"""

type ColumnType = Literal["date", "number", "text", "unknown"]

type Role = Literal["date", "value_date", "description", "debit", "credit", "balance"]

ROLES: tuple[Role, ...] = ("date", "value_date", "description", "debit", "credit", "balance")


# ---------------------------------------------------------------------------
# Structure analysis
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ColumnProfile:
    """Inferred description of one positional column.

    ``has_negative``/``has_positive``/``is_monotonic`` are only meaningful for
    ``inferred_type == "number"`` and are ``False`` otherwise.
    """

    index: int
    display_name: str
    inferred_type: ColumnType
    sample_values: tuple[str, ...] = ()
    has_negative: bool = False
    has_positive: bool = False
    is_monotonic: bool = False

    @property
    def negative_only(self) -> bool:
        return self.has_negative and not self.has_positive

    @property
    def positive_only(self) -> bool:
        return self.has_positive and not self.has_negative


@dataclass(frozen=True, slots=True)
class FileStructure:
    """Structural description of a raw table.

    Attributes
    ----------
    header_row_index:
        Index of the row supplying display names, or ``-1`` when the data
        starts on the first row.
    data_start_row_index:
        Index of the first plausible transaction row.
    columns:
        One profile per column, up to the widest row (bounded to 50).
    total_data_rows:
        Number of rows from ``data_start_row_index`` to the end of the table.
    """

    header_row_index: int
    data_start_row_index: int
    columns: tuple[ColumnProfile, ...]
    total_data_rows: int

    def columns_of_type(self, kind: ColumnType) -> tuple[ColumnProfile, ...]:
        return tuple(c for c in self.columns if c.inferred_type == kind)

    def column(self, index: int) -> ColumnProfile:
        for c in self.columns:
            if c.index == index:
                return c
        raise KeyError(index)


@dataclass(frozen=True, slots=True)
class ColumnRoleMap:
    """Assignment of semantic roles to column indices.

    ``debit`` and ``credit`` point to the same index when a single signed
    amount column carries both directions. ``credit`` is ``None`` only while a
    human still has to nominate it.
    """

    date: int
    value_date: int
    description: int
    debit: int | None = None
    credit: int | None = None
    balance: int | None = None

    @property
    def is_combined(self) -> bool:
        return self.debit is not None and self.debit == self.credit

    def as_dict(self) -> dict[Role, int | None]:
        return {
            "date": self.date,
            "value_date": self.value_date,
            "description": self.description,
            "debit": self.debit,
            "credit": self.credit,
            "balance": self.balance,
        }


@dataclass(frozen=True, slots=True)
class RoleDetection:
    """Result of role mapping.

    ``requires_manual_resolution`` is set whenever the debit/credit split could
    not be decided from signs alone; ``notes`` lists the decisions and
    limitations in the order the rules produced them.
    """

    role_map: ColumnRoleMap
    requires_manual_resolution: bool = False
    amount_candidates: tuple[int, ...] = ()
    notes: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Canonical ledger rows
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CanonicalRow:
    """A normalized transaction, field order matching the exported table.

    ``debit <= 0`` and ``credit >= 0`` always hold. ``opening_balance`` is only
    set on the first row of an import in chronological order.
    """

    source_id: str
    account_label: str
    transaction_date: date
    value_date: date
    debit: Decimal
    credit: Decimal
    description: str
    running_balance: Decimal
    category: str = ""
    opening_balance: Decimal | None = None
    row_key: str = ""


CANONICAL_FIELDS: tuple[str, ...] = (
    "source_id",
    "account_label",
    "transaction_date",
    "value_date",
    "debit",
    "credit",
    "description",
    "running_balance",
    "category",
    "opening_balance",
    "row_key",
)

# Category placeholder written by the original editing grid for "not yet
# categorized"; treated the same as an empty category.
UNCATEGORIZED_PLACEHOLDER = "???"


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class WordStats:
    """Learned statistics for one normalized word."""

    total_occurrences: int
    length: int
    is_numeric: bool
    per_category_counts: Mapping[str, int] = field(default_factory=dict)


type WordStatistics = Mapping[str, WordStats]
"""Vocabulary map keyed by normalized (uppercased) word."""


@dataclass(frozen=True, slots=True)
class CategorySuggestion:
    category: str | None
    per_category_scores: Mapping[str, float]
    confidence: float


@dataclass(frozen=True, slots=True)
class PendingSuggestion:
    """An uncategorized row paired with the classifier's proposal."""

    row_index: int
    source_id: str
    transaction_date: date
    description: str
    current_category: str
    suggested_category: str | None
    confidence: float
    selected: bool = True


# ---------------------------------------------------------------------------
# Import settings
# ---------------------------------------------------------------------------

# Same alphabet as the export-name pattern in ``ingest.sink``.
_ACCOUNT_CODE_RE = re.compile(r"[A-Za-z0-9]+")


class ImportConfig(BaseModel):
    """User-supplied settings for one file import."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    account_code: str
    account_label: str
    opening_balance: Decimal = Decimal("0")
    source_id: str | None = None

    @field_validator("account_code", "account_label")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must be non-empty")
        return v

    @field_validator("account_code")
    @classmethod
    def _file_name_safe(cls, v: str) -> str:
        # The code prefixes export file names: ``{code}_{start}_{end}.csv``.
        if v and not _ACCOUNT_CODE_RE.fullmatch(v):
            raise ValueError("account_code must contain only letters A-Z and digits")
        return v


__all__ = [
    "CANONICAL_FIELDS",
    "ROLES",
    "UNCATEGORIZED_PLACEHOLDER",
    "CanonicalRow",
    "CategorySuggestion",
    "ColumnProfile",
    "ColumnRoleMap",
    "ColumnType",
    "FileStructure",
    "ImportConfig",
    "PendingSuggestion",
    "RawTable",
    "Role",
    "RoleDetection",
    "WordStatistics",
    "WordStats",
]
