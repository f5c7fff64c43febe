"""Orchestration of a file import.

:func:`import_table` chains structure analysis, role mapping (with an optional
human resolver), the first transformation pass, opening-balance lookup and
confirmation, and the second pass. Structural failures come back as a typed
:class:`ImportResult` instead of an exception, each carrying the rule that
failed.
"""

from __future__ import annotations

from collections.abc import Callable, Collection
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from os import PathLike
from typing import Literal

from .errors import RowIssue, StructuralError, StructuralRule
from .ingest.sink import EXPORT_SUFFIX, suggested_file_name
from .ingest.table_source import load_table
from .logging_setup import get_logger
from .models import (
    CanonicalRow,
    ColumnRoleMap,
    FileStructure,
    ImportConfig,
    RawTable,
    RoleDetection,
)
from .roles import detect_roles, validate_roles
from .structure import analyze
from .transform import first_pass, second_pass

type ImportStatus = Literal["ok", "failed", "needs_resolution"]

type RoleResolver = Callable[[FileStructure, RoleDetection], ColumnRoleMap | None]
"""Human callback: return a confirmed role map, or ``None`` to abandon."""

type OpeningBalanceLookup = Callable[[str, date], Decimal | None]
"""``(account_code, start_date) -> balance strictly before start`` or ``None``."""

type OpeningBalanceConfirmer = Callable[[Decimal, date, date], Decimal]
"""Human callback: ``(suggested, start, end) -> confirmed opening balance``."""

_logger = get_logger("ledger_ingest.api")


@dataclass(frozen=True, slots=True)
class Analysis:
    structure: FileStructure
    detection: RoleDetection


@dataclass(frozen=True, slots=True)
class ImportResult:
    """Outcome of one file import.

    ``status == "ok"`` carries the canonical rows; ``"failed"`` carries the
    failing rule and its message; ``"needs_resolution"`` carries the analysis
    a human must complete before the import can run.
    """

    status: ImportStatus
    rows: tuple[CanonicalRow, ...] = ()
    issues: tuple[RowIssue, ...] = ()
    errors: tuple[str, ...] = ()
    failed_rule: StructuralRule | None = None
    analysis: Analysis | None = None
    role_map: ColumnRoleMap | None = None
    file_name: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    opening_balance: Decimal | None = None
    duplicate_keys: tuple[str, ...] = ()

    @property
    def skipped_rows(self) -> int:
        return sum(1 for i in self.issues if i.reason != "blank")


def _failed(err: StructuralError, analysis: Analysis | None = None) -> ImportResult:
    _logger.error("Import failed (%s): %s", err.rule, err.message)
    return ImportResult(
        status="failed", errors=(err.message,), failed_rule=err.rule, analysis=analysis
    )


def analyze_table(table: RawTable) -> Analysis:
    """Structure analysis plus role detection.

    Raises
    ------
    StructuralError
        Propagated from :func:`structure.analyze` or :func:`roles.detect_roles`.
    """

    structure = analyze(table)
    return Analysis(structure=structure, detection=detect_roles(structure))


def import_table(
    table: RawTable,
    config: ImportConfig,
    *,
    resolve_roles: RoleResolver | None = None,
    confirm_opening_balance: OpeningBalanceConfirmer | None = None,
    lookup_opening_balance: OpeningBalanceLookup | None = None,
    known_row_keys: Collection[str] | None = None,
    role_map: ColumnRoleMap | None = None,
) -> ImportResult:
    """Import one raw table into canonical rows.

    Parameters
    ----------
    resolve_roles:
        Called when the detected roles need a human decision. Without it such
        an import stops with ``status="needs_resolution"``.
    confirm_opening_balance:
        Called with the suggested opening balance once the date span is
        known. Without it the suggestion is used as is.
    lookup_opening_balance:
        Prior-balance lookup. When it finds a balance, that balance replaces
        ``config.opening_balance`` as the suggestion.
    known_row_keys:
        Keys already exported for the account; matches are reported in
        ``duplicate_keys``.
    role_map:
        A role map chosen up front (skips detection and resolution).
    """

    try:
        structure = analyze(table)
    except StructuralError as err:
        return _failed(err)

    analysis: Analysis | None = None
    if role_map is None:
        try:
            detection = detect_roles(structure)
        except StructuralError as err:
            return _failed(err)
        analysis = Analysis(structure=structure, detection=detection)
        role_map = detection.role_map
        if detection.requires_manual_resolution:
            resolved = resolve_roles(structure, detection) if resolve_roles else None
            if resolved is None:
                _logger.info("Role mapping needs a human decision: %s", "; ".join(detection.notes))
                return ImportResult(
                    status="needs_resolution", analysis=analysis, role_map=detection.role_map
                )
            role_map = resolved

    try:
        validate_roles(role_map, structure)
        provisional = first_pass(
            table, structure, role_map, opening_balance=config.opening_balance
        )
        start, end = provisional.start_date, provisional.end_date
        if start is None or end is None:
            raise StructuralError(
                "no_rows", "No transaction could be read: every data row was blank or unparseable."
            )

        suggested = config.opening_balance
        if lookup_opening_balance is not None:
            found = lookup_opening_balance(config.account_code, start)
            if found is not None:
                suggested = found
        opening = (
            confirm_opening_balance(suggested, start, end)
            if confirm_opening_balance is not None
            else suggested
        )

        file_name = suggested_file_name(config.account_code, start, end)
        result = second_pass(
            provisional,
            account_label=config.account_label,
            source_id=config.source_id or file_name + EXPORT_SUFFIX,
            opening_balance=opening,
        )
    except StructuralError as err:
        return _failed(err, analysis)

    duplicates: tuple[str, ...] = ()
    if known_row_keys:
        duplicates = tuple(r.row_key for r in result.rows if r.row_key in known_row_keys)
        if duplicates:
            _logger.warning("%d row(s) match keys already exported", len(duplicates))

    return ImportResult(
        status="ok",
        rows=result.rows,
        issues=result.issues,
        analysis=analysis,
        role_map=role_map,
        file_name=file_name,
        start_date=result.start_date,
        end_date=result.end_date,
        opening_balance=result.opening_balance,
        duplicate_keys=duplicates,
    )


def import_file(
    path: str | PathLike[str],
    config: ImportConfig,
    *,
    sheet: str | None = None,
    resolve_roles: RoleResolver | None = None,
    confirm_opening_balance: OpeningBalanceConfirmer | None = None,
    lookup_opening_balance: OpeningBalanceLookup | None = None,
    known_row_keys: Collection[str] | None = None,
    role_map: ColumnRoleMap | None = None,
) -> ImportResult:
    """Load ``path`` with the table source and run :func:`import_table`."""

    table = load_table(path, sheet)
    return import_table(
        table,
        config,
        resolve_roles=resolve_roles,
        confirm_opening_balance=confirm_opening_balance,
        lookup_opening_balance=lookup_opening_balance,
        known_row_keys=known_row_keys,
        role_map=role_map,
    )


__all__ = [
    "Analysis",
    "ImportResult",
    "ImportStatus",
    "OpeningBalanceConfirmer",
    "OpeningBalanceLookup",
    "RoleResolver",
    "analyze_table",
    "import_file",
    "import_table",
]
