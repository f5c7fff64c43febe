"""Canonical row sink: ``;``-delimited export files, one per import.

File naming: ``{ACCOUNT}_{dd.MM.yyyy}_{dd.MM.yyyy}.csv`` (start and end date
of the import). The column order is exactly the :class:`CanonicalRow` field
order; dates are rendered ``dd/MM/yyyy`` and amounts with two decimals.

Atomicity: writes target ``.tmp`` first and then ``os.replace`` into place.
"""

from __future__ import annotations

import contextlib
import csv
import io
import os
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from os import PathLike
from pathlib import Path

from ..amounts import parse_amount, round_money
from ..dates import format_date, parse_date
from ..logging_setup import get_logger
from ..models import CANONICAL_FIELDS, CanonicalRow

DELIMITER = ";"
EXPORT_SUFFIX = ".csv"
ROW_DATE_LAYOUT = "dd/MM/yyyy"
NAME_DATE_LAYOUT = "dd.MM.yyyy"

_EXPORT_NAME_RE = re.compile(
    r"^(?P<code>[A-Za-z0-9]+)_(?P<start>\d{2}\.\d{2}\.\d{4})_(?P<end>\d{2}\.\d{2}\.\d{4})\.csv$"
)

_logger = get_logger("ledger_ingest.ingest.sink")


@dataclass(frozen=True, slots=True)
class ExportFile:
    path: Path
    account_code: str
    start: date
    end: date


def suggested_file_name(account_code: str, start: date, end: date) -> str:
    """Return ``{code}_{start}_{end}`` with ``dd.MM.yyyy`` dates (no extension)."""

    return (
        f"{account_code.strip().upper()}_"
        f"{format_date(start, NAME_DATE_LAYOUT)}_{format_date(end, NAME_DATE_LAYOUT)}"
    )


def parse_export_name(name: str) -> ExportFile | None:
    m = _EXPORT_NAME_RE.fullmatch(name)
    if m is None:
        return None
    start = parse_date(m.group("start"), formats=(NAME_DATE_LAYOUT,))
    end = parse_date(m.group("end"), formats=(NAME_DATE_LAYOUT,))
    if start is None or end is None:
        return None
    return ExportFile(path=Path(name), account_code=m.group("code").upper(), start=start, end=end)


def export_files(export_dir: str | PathLike[str], account_code: str) -> list[ExportFile]:
    """List an account's export files ordered by end date (then start date)."""

    root = Path(export_dir)
    if not root.is_dir():
        return []
    code = account_code.strip().upper()
    found: list[ExportFile] = []
    for p in root.iterdir():
        parsed = parse_export_name(p.name)
        if parsed is None or parsed.account_code != code or not p.is_file():
            continue
        found.append(ExportFile(path=p, account_code=code, start=parsed.start, end=parsed.end))
    found.sort(key=lambda e: (e.end, e.start))
    return found


def _fmt_amount(d: Decimal | None) -> str:
    if d is None:
        return ""
    return f"{round_money(d):.2f}"


def render_rows(rows: Iterable[CanonicalRow]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter=DELIMITER, lineterminator="\n")
    writer.writerow(CANONICAL_FIELDS)
    for r in rows:
        writer.writerow(
            [
                r.source_id,
                r.account_label,
                format_date(r.transaction_date, ROW_DATE_LAYOUT),
                format_date(r.value_date, ROW_DATE_LAYOUT),
                _fmt_amount(r.debit),
                _fmt_amount(r.credit),
                r.description,
                _fmt_amount(r.running_balance),
                r.category,
                _fmt_amount(r.opening_balance),
                r.row_key,
            ]
        )
    return buf.getvalue()


def write_rows(
    rows: Iterable[CanonicalRow], export_dir: str | PathLike[str], file_name: str
) -> Path:
    """Persist ``rows`` as ``export_dir/file_name`` (``.csv`` appended if missing)."""

    if not file_name.endswith(EXPORT_SUFFIX):
        file_name += EXPORT_SUFFIX
    root = Path(export_dir)
    root.mkdir(parents=True, exist_ok=True)
    path = root / file_name
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(render_rows(rows), encoding="utf-8")
        os.replace(tmp, path)
    except Exception:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise
    _logger.info("Wrote export %s", os.fspath(path))
    return path


def _money(raw: str | None) -> Decimal | None:
    if raw is None or not raw.strip():
        return None
    value = parse_amount(raw)
    if value is None:
        raise ValueError(f"invalid amount: {raw!r}")
    return round_money(value)


def read_rows(path: str | PathLike[str]) -> list[CanonicalRow]:
    """Read an export file back into canonical rows (file order).

    Rows whose transaction date cannot be read are skipped with a warning.
    """

    p = Path(path)
    with p.open(encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f, delimiter=DELIMITER)
        missing = [h for h in CANONICAL_FIELDS if h not in (reader.fieldnames or [])]
        if missing:
            raise csv.Error(
                f"Export header mismatch in {p.name}. Missing columns: {', '.join(missing)}"
            )
        out: list[CanonicalRow] = []
        for line_no, rec in enumerate(reader, start=2):
            tx_date = parse_date(rec["transaction_date"], formats=(ROW_DATE_LAYOUT,))
            if tx_date is None:
                _logger.warning(
                    "Skipping %s line %d: invalid date %r", p.name, line_no, rec["transaction_date"]
                )
                continue
            value_date = parse_date(rec["value_date"], formats=(ROW_DATE_LAYOUT,)) or tx_date
            out.append(
                CanonicalRow(
                    source_id=rec["source_id"],
                    account_label=rec["account_label"],
                    transaction_date=tx_date,
                    value_date=value_date,
                    debit=_money(rec["debit"]) or Decimal("0.00"),
                    credit=_money(rec["credit"]) or Decimal("0.00"),
                    description=rec["description"] or "",
                    running_balance=_money(rec["running_balance"]) or Decimal("0.00"),
                    category=rec["category"] or "",
                    opening_balance=_money(rec["opening_balance"]),
                    row_key=rec["row_key"] or "",
                )
            )
    return out


def known_row_keys(export_dir: str | PathLike[str], account_code: str) -> set[str]:
    """Row keys already exported for an account (exact-key deduplication)."""

    keys: set[str] = set()
    for export in export_files(export_dir, account_code):
        keys.update(r.row_key for r in read_rows(export.path) if r.row_key)
    return keys


__all__ = [
    "DELIMITER",
    "EXPORT_SUFFIX",
    "ExportFile",
    "export_files",
    "known_row_keys",
    "parse_export_name",
    "read_rows",
    "render_rows",
    "suggested_file_name",
    "write_rows",
]
