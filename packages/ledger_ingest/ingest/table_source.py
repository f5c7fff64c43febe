"""Table source: read CSV or spreadsheet files into a :data:`RawTable`.

CSV files are decoded with the first encoding that works (``utf-8-sig``,
``cp1252``, ``latin-1``); the delimiter is ``;`` when the first line contains
one, else ``,``. Spreadsheets are read with ``openpyxl`` in read-only,
values-only mode. Rows are returned as tuples; short rows are kept as is.
"""

from __future__ import annotations

import csv
import io
import os
from dataclasses import dataclass
from datetime import date
from os import PathLike
from pathlib import Path
from typing import Any, Literal

from openpyxl import load_workbook

from ..dates import parse_date
from ..inference import is_empty
from ..logging_setup import get_logger
from ..models import RawTable

type FileType = Literal["csv", "excel"]

ENCODINGS: tuple[str, ...] = ("utf-8-sig", "cp1252", "latin-1")
EXCEL_SUFFIXES = frozenset({".xlsx", ".xlsm", ".xls"})
SCAN_ROWS = 50
SCAN_CELLS = 50

_logger = get_logger("ledger_ingest.ingest.table_source")


@dataclass(frozen=True, slots=True)
class SheetInfo:
    """A workbook sheet with its size and the date span found near the top."""

    name: str
    index: int
    row_count: int
    start_date: date | None = None
    end_date: date | None = None


def detect_file_type(name: str | PathLike[str]) -> FileType:
    return "excel" if Path(name).suffix.lower() in EXCEL_SUFFIXES else "csv"


def sniff_csv(raw: bytes) -> tuple[str, str]:
    """Return ``(encoding, delimiter)`` for raw CSV bytes."""

    head = raw[:10_000]
    encoding = ENCODINGS[-1]
    for enc in ENCODINGS:
        try:
            head.decode(enc)
        except UnicodeDecodeError:
            # The 10k prefix may cut a multi-byte sequence; retry on the whole payload.
            try:
                raw.decode(enc)
            except UnicodeDecodeError:
                continue
        encoding = enc
        break
    first_line = head.decode(encoding, errors="replace").splitlines()[:1]
    delimiter = ";" if first_line and ";" in first_line[0] else ","
    return encoding, delimiter


def parse_csv_text(text: str, delimiter: str) -> tuple[tuple[str, ...], ...]:
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
    return tuple(tuple(row) for row in reader if row)


def read_csv_table(path: str | PathLike[str]) -> RawTable:
    raw = Path(path).read_bytes()
    encoding, delimiter = sniff_csv(raw)
    rows = parse_csv_text(raw.decode(encoding), delimiter)
    _logger.info(
        "Read CSV %s: %d rows (encoding %s, delimiter %r)",
        os.fspath(path),
        len(rows),
        encoding,
        delimiter,
    )
    return rows


def _trim_trailing_blank(rows: list[tuple[Any, ...]]) -> list[tuple[Any, ...]]:
    while rows and all(is_empty(c) for c in rows[-1]):
        rows.pop()
    return rows


def _sheet_rows(ws: Any) -> list[tuple[Any, ...]]:
    return _trim_trailing_blank([tuple(r) for r in ws.iter_rows(values_only=True)])


def read_excel_table(path: str | PathLike[str], sheet: str | None = None) -> RawTable:
    """Read one sheet (the first one when ``sheet`` is ``None``).

    Raises
    ------
    ValueError
        When the file is a legacy ``.xls`` workbook or the sheet does not exist.
    """

    p = Path(path)
    if p.suffix.lower() == ".xls":
        raise ValueError(f"Legacy .xls workbooks are not supported; re-save {p.name} as .xlsx")
    wb = load_workbook(p, read_only=True, data_only=True)
    try:
        if sheet is None:
            ws = wb.worksheets[0]
        elif sheet in wb.sheetnames:
            ws = wb[sheet]
        else:
            raise ValueError(
                f"Sheet {sheet!r} not found. Available sheets: {', '.join(wb.sheetnames)}"
            )
        rows = _sheet_rows(ws)
    finally:
        wb.close()
    _logger.info("Read sheet %r of %s: %d rows", sheet or "<first>", p.name, len(rows))
    return tuple(rows)


def _date_span(rows: list[tuple[Any, ...]]) -> tuple[date | None, date | None]:
    found: list[date] = []
    for row in rows[:SCAN_ROWS]:
        for cell in row[:SCAN_CELLS]:
            if is_empty(cell):
                continue
            parsed = parse_date(cell)
            if parsed is not None:
                found.append(parsed)
    if not found:
        return None, None
    return min(found), max(found)


def list_sheets(path: str | PathLike[str]) -> list[SheetInfo]:
    p = Path(path)
    wb = load_workbook(p, read_only=True, data_only=True)
    try:
        infos = []
        for index, ws in enumerate(wb.worksheets):
            rows = _sheet_rows(ws)
            start, end = _date_span(rows)
            infos.append(
                SheetInfo(
                    name=ws.title, index=index, row_count=len(rows), start_date=start, end_date=end
                )
            )
    finally:
        wb.close()
    return infos


def load_table(path: str | PathLike[str], sheet: str | None = None) -> RawTable:
    if detect_file_type(path) == "excel":
        return read_excel_table(path, sheet)
    return read_csv_table(path)


__all__ = [
    "FileType",
    "SheetInfo",
    "detect_file_type",
    "list_sheets",
    "load_table",
    "parse_csv_text",
    "read_csv_table",
    "read_excel_table",
    "sniff_csv",
]
