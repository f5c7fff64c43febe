"""Two-pass transformation of raw rows into canonical ledger rows.

Pass 1 (:func:`first_pass`) reads the data rows in file order, parses dates
and amounts, normalizes signs and discovers the real date span of the file.
The span is what makes it possible to look up the correct opening balance.

Pass 2 (:func:`second_pass`) sorts a *copy* of the provisional rows by date
(stable for same-day rows) and recomputes every running balance from the
confirmed opening balance. The provisional snapshot is never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from .amounts import parse_amount, round_money
from .dates import parse_date
from .errors import RowIssue, StructuralError
from .inference import is_empty
from .ingest.sink import EXPORT_SUFFIX, suggested_file_name
from .logging_setup import get_logger
from .models import CanonicalRow, ColumnRoleMap, FileStructure, ImportConfig, RawTable
from .roles import validate_roles

_logger = get_logger("ledger_ingest.transform")

_ZERO = Decimal("0.00")


@dataclass(frozen=True, slots=True)
class ProvisionalRow:
    """A parsed data row with its file-order running balance."""

    row_index: int
    transaction_date: date
    value_date: date
    debit: Decimal
    credit: Decimal
    description: str
    running_balance: Decimal


@dataclass(frozen=True, slots=True)
class ProvisionalImport:
    rows: tuple[ProvisionalRow, ...]
    issues: tuple[RowIssue, ...]

    @property
    def start_date(self) -> date | None:
        return min((r.transaction_date for r in self.rows), default=None)

    @property
    def end_date(self) -> date | None:
        return max((r.transaction_date for r in self.rows), default=None)


@dataclass(frozen=True, slots=True)
class TransformResult:
    """Final canonical rows plus the skipped-row report."""

    rows: tuple[CanonicalRow, ...]
    issues: tuple[RowIssue, ...]
    start_date: date
    end_date: date
    opening_balance: Decimal
    closing_balance: Decimal


def row_key(d: date, balance: Decimal) -> str:
    """Natural key ``ddMMyyyy,<|balance| rounded to units>``."""

    units = abs(balance).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"{d:%d%m%Y},{units}"


def _cell(row: Any, index: int | None) -> Any:
    if index is None or row is None or index >= len(row):
        return None
    return row[index]


def _amount(row: Any, index: int | None) -> Decimal | None:
    """Parse an amount cell; empty cells count as zero, garbage as ``None``."""

    value = _cell(row, index)
    if is_empty(value):
        return _ZERO
    return parse_amount(value)


def _split_amounts(row: Any, role_map: ColumnRoleMap) -> tuple[Decimal, Decimal] | None:
    if role_map.is_combined:
        amount = _amount(row, role_map.debit)
        if amount is None:
            return None
        amount = round_money(amount)
        return (amount, _ZERO) if amount < 0 else (_ZERO, amount)
    debit = _amount(row, role_map.debit)
    credit = _amount(row, role_map.credit)
    if debit is None or credit is None:
        return None
    # The file's own sign convention is not trusted.
    return round_money(-abs(debit)), round_money(abs(credit))


def first_pass(
    table: RawTable,
    structure: FileStructure,
    role_map: ColumnRoleMap,
    *,
    opening_balance: Decimal = _ZERO,
) -> ProvisionalImport:
    """Parse data rows in file order and collect row-level issues."""

    rows: list[ProvisionalRow] = []
    issues: list[RowIssue] = []
    balance = round_money(opening_balance)

    for index in range(structure.data_start_row_index, len(table)):
        row = table[index]
        if not row or all(is_empty(c) for c in row):
            issues.append(RowIssue(index, "blank"))
            continue
        tx_date = parse_date(_cell(row, role_map.date))
        if tx_date is None:
            issues.append(
                RowIssue(index, "unparseable_date", repr(_cell(row, role_map.date)))
            )
            continue
        amounts = _split_amounts(row, role_map)
        if amounts is None:
            issues.append(
                RowIssue(
                    index,
                    "unparseable_amount",
                    f"debit={_cell(row, role_map.debit)!r} credit={_cell(row, role_map.credit)!r}",
                )
            )
            continue
        debit, credit = amounts
        value_date = parse_date(_cell(row, role_map.value_date)) or tx_date
        raw_description = _cell(row, role_map.description)
        balance = round_money(balance + debit + credit)
        rows.append(
            ProvisionalRow(
                row_index=index,
                transaction_date=tx_date,
                value_date=value_date,
                debit=debit,
                credit=credit,
                description="" if is_empty(raw_description) else str(raw_description).strip(),
                running_balance=balance,
            )
        )

    skipped = [i for i in issues if i.reason != "blank"]
    if skipped:
        _logger.warning("Skipped %d row(s) with unparseable date or amount", len(skipped))
    return ProvisionalImport(rows=tuple(rows), issues=tuple(issues))


def second_pass(
    provisional: ProvisionalImport,
    *,
    account_label: str,
    source_id: str,
    opening_balance: Decimal,
) -> TransformResult:
    """Sort by date and recompute balances and keys from ``opening_balance``.

    Raises
    ------
    StructuralError
        With rule ``no_rows`` when no row survived the first pass.
    """

    if not provisional.rows:
        raise StructuralError(
            "no_rows", "No transaction could be read: every data row was blank or unparseable."
        )

    ordered = sorted(provisional.rows, key=lambda r: r.transaction_date)
    opening = round_money(opening_balance)
    balance = opening
    out: list[CanonicalRow] = []
    for position, prow in enumerate(ordered):
        balance = round_money(balance + prow.debit + prow.credit)
        out.append(
            CanonicalRow(
                source_id=source_id,
                account_label=account_label,
                transaction_date=prow.transaction_date,
                value_date=prow.value_date,
                debit=prow.debit,
                credit=prow.credit,
                description=prow.description,
                running_balance=balance,
                category="",
                opening_balance=opening if position == 0 else None,
                row_key=row_key(prow.transaction_date, balance),
            )
        )

    result = TransformResult(
        rows=tuple(out),
        issues=provisional.issues,
        start_date=ordered[0].transaction_date,
        end_date=ordered[-1].transaction_date,
        opening_balance=opening,
        closing_balance=balance,
    )
    _logger.info(
        "Transformed %d row(s) from %s to %s; opening %s, closing %s",
        len(out),
        result.start_date.isoformat(),
        result.end_date.isoformat(),
        opening,
        balance,
    )
    return result


def transform(
    table: RawTable,
    structure: FileStructure,
    role_map: ColumnRoleMap,
    config: ImportConfig,
) -> TransformResult:
    """Run both passes with the opening balance from ``config``.

    ``config.source_id`` defaults to the export file name derived from the
    account code and the date span discovered by the first pass.
    """

    validate_roles(role_map, structure)
    provisional = first_pass(
        table, structure, role_map, opening_balance=config.opening_balance
    )
    source_id = config.source_id
    if not source_id and provisional.rows:
        start, end = provisional.start_date, provisional.end_date
        assert start is not None and end is not None
        source_id = suggested_file_name(config.account_code, start, end) + EXPORT_SUFFIX
    return second_pass(
        provisional,
        account_label=config.account_label,
        source_id=source_id or "",
        opening_balance=config.opening_balance,
    )


__all__ = [
    "ProvisionalImport",
    "ProvisionalRow",
    "TransformResult",
    "first_pass",
    "row_key",
    "second_pass",
    "transform",
]
