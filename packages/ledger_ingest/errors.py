"""Error taxonomy for the ingestion engine.

Structural problems abort a file and carry the name of the rule that failed so
callers can show a specific message. Row-level problems are not exceptions:
they are collected as :class:`RowIssue` records and summarized after import.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

type StructuralRule = Literal[
    "empty_table",
    "no_date_column",
    "no_description_column",
    "no_amount_column",
    "no_rows",
    "invalid_role_map",
]

type RowIssueReason = Literal["blank", "unparseable_date", "unparseable_amount"]


class LedgerIngestError(Exception):
    """Base class for errors raised by ``ledger_ingest``."""


class StructuralError(LedgerIngestError, ValueError):
    """A file-level failure; the import of the whole file is aborted."""

    def __init__(self, rule: StructuralRule, message: str) -> None:
        super().__init__(message)
        self.rule = rule
        self.message = message

    def __repr__(self) -> str:  # pragma: no cover - trivial repr
        return f"StructuralError(rule={self.rule!r}, message={self.message!r})"


class StatsStoreError(LedgerIngestError):
    """The persisted word statistics could not be read or validated."""


@dataclass(frozen=True, slots=True)
class RowIssue:
    """A data row that was skipped during transformation."""

    row_index: int
    reason: RowIssueReason
    detail: str = ""


__all__ = [
    "LedgerIngestError",
    "RowIssue",
    "RowIssueReason",
    "StatsStoreError",
    "StructuralError",
    "StructuralRule",
]
