"""File structure detection: where the data starts and what each column holds.

Bank exports frequently start with titles, account summaries and a header row
before the first transaction. The data start is the first row (within the
first ``SCAN_ROWS``) that contains a date, a number and a piece of real text
at the same time; the row just above it, if any, names the columns.
"""

from __future__ import annotations

from typing import Any

from .amounts import parse_amount
from .dates import parse_date
from .errors import StructuralError
from .inference import SAMPLE_SIZE, infer_type, is_empty
from .logging_setup import get_logger
from .models import ColumnProfile, FileStructure, RawTable

SCAN_ROWS = 50
SCAN_CELLS = 50
MAX_COLUMNS = 50
SAMPLE_VALUES = 5
MIN_TEXT_LENGTH = 4

_logger = get_logger("ledger_ingest.structure")


def _is_text_cell(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    s = value.strip()
    return len(s) >= MIN_TEXT_LENGTH and parse_amount(s) is None and parse_date(s) is None


def is_transaction_row(row: Any) -> bool:
    """True when a row has a date, a number and a text cell (first 50 cells)."""

    has_date = has_number = has_text = False
    for cell in list(row)[:SCAN_CELLS]:
        if is_empty(cell):
            continue
        has_date = has_date or parse_date(cell) is not None
        has_number = has_number or parse_amount(cell) is not None
        has_text = has_text or _is_text_cell(cell)
        if has_date and has_number and has_text:
            return True
    return False


def _is_blank_row(row: Any) -> bool:
    return not row or all(is_empty(c) for c in row)


def find_data_start_row(table: RawTable) -> int:
    """Return the index of the first plausible transaction row.

    Falls back to the first non-empty row; raises :class:`StructuralError`
    when every row is empty.
    """

    for i, row in enumerate(table[:SCAN_ROWS]):
        if row and is_transaction_row(row):
            return i
    for i, row in enumerate(table):
        if not _is_blank_row(row):
            _logger.info("No transaction-like row found; data starts at first non-empty row %d", i)
            return i
    raise StructuralError("empty_table", "The file contains no data: every row is empty.")


def _cell(row: Any, index: int) -> Any:
    return row[index] if row is not None and index < len(row) else None


def _display_name(header: Any, index: int) -> str:
    value = _cell(header, index)
    if is_empty(value):
        return f"Column {index + 1}"
    return str(value).strip()


def profile_column(table: RawTable, index: int, *, data_start: int, name: str) -> ColumnProfile:
    values = [_cell(row, index) for row in table[data_start : data_start + SAMPLE_SIZE]]
    kind, meta = infer_type(values)
    samples = tuple(str(v).strip() for v in values if not is_empty(v))[:SAMPLE_VALUES]
    _logger.debug(
        "Column %d (%s) classified as %s (dates %d/%d, numbers %d/%d)",
        index,
        name,
        kind,
        meta.date_count,
        meta.sample_size,
        meta.number_count,
        meta.sample_size,
    )
    return ColumnProfile(
        index=index,
        display_name=name,
        inferred_type=kind,
        sample_values=samples,
        has_negative=meta.has_negative,
        has_positive=meta.has_positive,
        is_monotonic=meta.is_monotonic,
    )


def analyze(table: RawTable) -> FileStructure:
    """Build the structural description of ``table``.

    Raises
    ------
    StructuralError
        When the table is empty or contains only blank rows.
    """

    if not table:
        raise StructuralError("empty_table", "The file is empty.")

    data_start = find_data_start_row(table)
    header_index = data_start - 1 if data_start > 0 else -1
    header = table[header_index] if header_index >= 0 else None
    width = min(MAX_COLUMNS, max((len(r) for r in table if r is not None), default=0))

    columns = tuple(
        profile_column(table, i, data_start=data_start, name=_display_name(header, i))
        for i in range(width)
    )
    structure = FileStructure(
        header_row_index=header_index,
        data_start_row_index=data_start,
        columns=columns,
        total_data_rows=len(table) - data_start,
    )
    _logger.info(
        "Analyzed table: header row %d, data starts at row %d, %d columns, %d data rows",
        header_index,
        data_start,
        len(columns),
        structure.total_data_rows,
    )
    return structure


__all__ = ["analyze", "find_data_start_row", "is_transaction_row", "profile_column"]
