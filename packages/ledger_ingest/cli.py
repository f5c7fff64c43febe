# ruff: noqa: I001
"""CLI for the ``ledger_ingest`` package.

This module exposes callable command handlers (``cmd_*``, each returning a
process exit code) and a Typer-based console interface. Environment variables
(``LEDGER_DATA_DIR``, ``DATABASE_URL``, ``LEDGER_INGEST_LOG_LEVEL``) are
loaded from a local ``.env`` using ``python-dotenv`` before delegating to
command logic. Business logic lives in ``ledger_ingest.api`` and related
modules.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from sqlalchemy.orm import Session
from typer.models import ArgumentInfo

from .logging_setup import configure_logging, import_context
from .models import ColumnRoleMap, FileStructure, ImportConfig, RoleDetection
from .settings import get_exports_dir, get_stats_path

# ---- Small module-level helpers used by CLI commands -------------------------


def _database_url(override: str | None) -> str | None:
    url = override or os.getenv("DATABASE_URL")
    return url if url and url.strip() else None


@contextmanager
def _optional_session(database_url: str | None) -> Iterator[Session | None]:
    """Yield a DB session when a database is configured, else ``None``."""

    if database_url is None:
        yield None
        return
    from ledger_db.client import session_scope

    with session_scope(database_url=database_url) as session:
        yield session


def _fmt_money(d: Decimal | None) -> str:
    return "" if d is None else f"{d:.2f}"


def _print_structure(structure: FileStructure, detection: RoleDetection | None) -> None:
    print(
        f"Header row: {structure.header_row_index}  "
        f"Data starts at row: {structure.data_start_row_index}  "
        f"Data rows: {structure.total_data_rows}"
    )
    for c in structure.columns:
        flags = []
        if c.inferred_type == "number":
            if c.has_negative:
                flags.append("neg")
            if c.has_positive:
                flags.append("pos")
            if c.is_monotonic:
                flags.append("monotonic")
        print(
            f"  [{c.index}] {c.display_name}: {c.inferred_type}"
            + (f" ({', '.join(flags)})" if flags else "")
            + (f"  e.g. {' | '.join(c.sample_values)}" if c.sample_values else "")
        )
    if detection is None:
        return
    roles = ", ".join(f"{k}={v}" for k, v in detection.role_map.as_dict().items() if v is not None)
    print(f"Roles: {roles}")
    if detection.requires_manual_resolution:
        print("Manual resolution required:")
    for note in detection.notes:
        print(f"  - {note}")


def _interactive_resolver(structure: FileStructure, detection: RoleDetection) -> ColumnRoleMap:
    from . import term_ui

    _print_structure(structure, detection)
    candidates = structure.columns_of_type("number") or structure.columns
    current = detection.role_map
    debit = term_ui.select_column(candidates, message="Debit column: ", default=current.debit)
    credit = term_ui.select_column(
        candidates,
        message="Credit column (same as debit for one signed column): ",
        default=current.credit if current.credit is not None else debit,
    )
    return replace(current, debit=debit, credit=credit)


def _confirm_opening(suggested: Decimal, start: date, end: date) -> Decimal:
    from . import term_ui

    return term_ui.confirm_opening_balance(
        suggested,
        message=f"Opening balance before {start:%d/%m/%Y} (import ends {end:%d/%m/%Y}): ",
    )


def _print_issue_summary(issues: Sequence) -> None:
    counts: dict[str, int] = {}
    for issue in issues:
        counts[issue.reason] = counts.get(issue.reason, 0) + 1
    if not counts:
        return
    print("Skipped rows: " + ", ".join(f"{k}={v}" for k, v in sorted(counts.items())))
    for issue in issues:
        if issue.reason != "blank":
            print(f"  row {issue.row_index}: {issue.reason} {issue.detail}".rstrip())


# ---- Command handlers ---------------------------------------------------------


def cmd_analyze(path: str, *, sheet: str | None = None) -> int:
    """Print the detected structure and roles of a file."""

    from .api import analyze_table
    from .errors import StructuralError
    from .ingest.table_source import load_table
    from .structure import analyze

    try:
        table = load_table(path, sheet)
    except FileNotFoundError:
        print(f"Error: File not found: {path}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        print(f"Error: Failed to read '{path}': {e}", file=sys.stderr)
        return 1

    try:
        analysis = analyze_table(table)
    except StructuralError as e:
        # Show whatever structure could be derived before failing.
        try:
            _print_structure(analyze(table), None)
        except StructuralError:
            pass
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    _print_structure(analysis.structure, analysis.detection)
    return 0


def cmd_import(
    path: str,
    *,
    account: str,
    label: str | None = None,
    opening_balance: str | None = None,
    sheet: str | None = None,
    interactive: bool = False,
    debit_column: int | None = None,
    credit_column: int | None = None,
    dry_run: bool = False,
    database_url: str | None = None,
) -> int:
    """Import one file into the exports directory."""

    from .amounts import parse_amount
    from .api import analyze_table, import_table
    from .balances import record_balance, resolve_opening_balance
    from .errors import StructuralError
    from .ingest.sink import known_row_keys, write_rows
    from .ingest.table_source import load_table
    from .registries import load_accounts

    opening = Decimal("0")
    if opening_balance is not None:
        parsed = parse_amount(opening_balance)
        if parsed is None:
            print(f"Error: Invalid opening balance: {opening_balance!r}", file=sys.stderr)
            return 1
        opening = parsed
    try:
        config = ImportConfig(
            account_code=account, account_label=label or account, opening_balance=opening
        )
    except ValidationError as e:
        print(f"Error: Invalid import settings: {e}", file=sys.stderr)
        return 1

    try:
        table = load_table(path, sheet)
    except FileNotFoundError:
        print(f"Error: File not found: {path}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        print(f"Error: Failed to read '{path}': {e}", file=sys.stderr)
        return 1

    role_map: ColumnRoleMap | None = None
    if debit_column is not None or credit_column is not None:
        try:
            detected = analyze_table(table).detection.role_map
        except StructuralError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1
        debit = debit_column if debit_column is not None else detected.debit
        credit = credit_column if credit_column is not None else debit
        role_map = replace(detected, debit=debit, credit=credit)

    exports_dir = get_exports_dir()
    url = _database_url(database_url)
    try:
        source = Path(path).name
        with _optional_session(url) as session, import_context(config.account_code, source):
            if label is None and session is not None:
                entry = load_accounts(session).get(config.account_code.upper())
                if entry is not None:
                    config = config.model_copy(update={"account_label": entry.display_name})

            def _lookup(code: str, start: date) -> Decimal | None:
                if opening_balance is not None:
                    return None
                return resolve_opening_balance(
                    code, start, session=session, export_dir=exports_dir
                )

            result = import_table(
                table,
                config,
                resolve_roles=_interactive_resolver if interactive else None,
                confirm_opening_balance=_confirm_opening if interactive else None,
                lookup_opening_balance=_lookup,
                known_row_keys=known_row_keys(exports_dir, config.account_code),
                role_map=role_map,
            )

            if result.status == "needs_resolution":
                if result.analysis is not None:
                    _print_structure(result.analysis.structure, result.analysis.detection)
                print(
                    "Error: The debit/credit columns could not be decided automatically; "
                    "rerun with --debit-column/--credit-column or --interactive.",
                    file=sys.stderr,
                )
                return 2
            if result.status == "failed":
                print(f"Error: {'; '.join(result.errors)}", file=sys.stderr)
                return 1

            if result.duplicate_keys and len(result.duplicate_keys) == len(result.rows):
                print(
                    "Error: Every row of this file was already imported for account "
                    f"{config.account_code}.",
                    file=sys.stderr,
                )
                return 1
            if result.duplicate_keys:
                print(
                    f"Warning: {len(result.duplicate_keys)} row(s) match already exported keys.",
                    file=sys.stderr,
                )

            assert result.file_name is not None and result.end_date is not None
            print(
                f"Imported {len(result.rows)} row(s) from {result.start_date:%d/%m/%Y} "
                f"to {result.end_date:%d/%m/%Y}; opening {_fmt_money(result.opening_balance)}, "
                f"closing {_fmt_money(result.rows[-1].running_balance)}"
            )
            _print_issue_summary(result.issues)
            if dry_run:
                return 0
            if interactive:
                from . import term_ui

                if not term_ui.confirm(f"Write {result.file_name}.csv?"):
                    print("Nothing written.")
                    return 0

            out = write_rows(result.rows, exports_dir, result.file_name)
            print(f"Wrote {out}")
            if session is not None:
                try:
                    record_balance(
                        session,
                        config.account_code,
                        result.end_date,
                        result.rows[-1].running_balance,
                    )
                except ValueError as e:
                    print(f"Warning: closing balance not recorded: {e}", file=sys.stderr)
    except Exception as e:
        print(f"Error: import failed: {e}", file=sys.stderr)
        return 1
    return 0


def cmd_sheets(path: str) -> int:
    """List the sheets of a workbook with their size and date span."""

    from .ingest.table_source import list_sheets

    try:
        sheets = list_sheets(path)
    except FileNotFoundError:
        print(f"Error: File not found: {path}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: Failed to read workbook '{path}': {e}", file=sys.stderr)
        return 1
    for s in sheets:
        span = (
            f"{s.start_date:%d.%m.%Y} - {s.end_date:%d.%m.%Y}"
            if s.start_date and s.end_date
            else "N/A"
        )
        print(f"{s.index}\t{s.name}\t{s.row_count} rows\t{span}")
    return 0


def _all_export_rows(exports_dir: Path) -> list:
    from .ingest.sink import parse_export_name, read_rows

    rows: list = []
    if not exports_dir.is_dir():
        return rows
    for p in sorted(exports_dir.iterdir()):
        if parse_export_name(p.name) is not None:
            rows.extend(read_rows(p))
    return rows


def cmd_learn() -> int:
    """Rebuild the word statistics from every categorized exported row."""

    from .autocat import rebuild_stats
    from .stats_store import save_stats, stats_summary

    try:
        rows = _all_export_rows(get_exports_dir())
        stats = rebuild_stats(rows)
        out = save_stats(stats)
    except Exception as e:
        print(f"Error: learning failed: {e}", file=sys.stderr)
        return 1
    print(f"Learned {len(stats)} word(s); saved to {out}")
    for category, count in sorted(stats_summary(stats).items()):
        print(f"  {category}\t{count} word(s)")
    return 0


def cmd_suggest(text: str) -> int:
    """Print the suggested category for a description."""

    from .autocat import suggest
    from .errors import StatsStoreError
    from .stats_store import load_stats

    try:
        stats = load_stats()
    except StatsStoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    s = suggest(text, stats)
    print(f"{s.category or ''}\t{s.confidence:.3f}")
    for category, value in sorted(s.per_category_scores.items(), key=lambda kv: -kv[1]):
        print(f"  {category}\t{value:.3f}")
    return 0


def cmd_categorize(
    path: str,
    *,
    auto: bool = False,
    min_confidence: float = 0.0,
    database_url: str | None = None,
) -> int:
    """Categorize the uncategorized rows of an export file.

    With ``auto`` every suggestion at or above ``min_confidence`` is applied;
    otherwise each row is prompted with the suggestion pre-filled.
    """

    from .autocat import apply_category, apply_suggestions, pending_suggestions
    from .errors import StatsStoreError
    from .ingest.sink import read_rows, write_rows
    from .registries import load_categories_from_db
    from .stats_store import load_stats, save_stats

    p = Path(path)
    try:
        rows = read_rows(p)
        stats = load_stats()
    except FileNotFoundError:
        print(f"Error: File not found: {path}", file=sys.stderr)
        return 1
    except StatsStoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: Failed to read export '{path}': {e}", file=sys.stderr)
        return 1

    pending = pending_suggestions(rows, stats)
    if not pending:
        print("Nothing to categorize.")
        return 0

    categories: list[str] = []
    url = _database_url(database_url)
    if url is not None:
        try:
            categories = list(load_categories_from_db(database_url=url))
        except Exception as e:
            print(f"Error: failed to load categories from DB: {e}", file=sys.stderr)
            return 1
    if not categories:
        known = {c for ws in stats.values() for c in ws.per_category_counts}
        known.update(r.category for r in rows if r.category and r.category != "???")
        categories = sorted(known)

    changed = 0
    if auto:
        accepted = [
            replace(item, selected=item.selected and item.confidence >= min_confidence)
            for item in pending
        ]
        rows, stats = apply_suggestions(rows, accepted, stats)
        changed = sum(1 for item in accepted if item.selected)
    else:
        from . import term_ui

        for item in pending:
            print(
                f"{item.transaction_date:%d/%m/%Y}  {item.description}"
                + (
                    f"  (suggested {item.suggested_category}, {item.confidence:.2f})"
                    if item.suggested_category
                    else ""
                )
            )
            chosen = term_ui.select_category(categories, default=item.suggested_category or "")
            if not chosen:
                continue
            rows, stats = apply_category(rows, item.row_index, chosen, stats)
            changed += 1

    if changed:
        try:
            write_rows(rows, p.parent, p.name)
            save_stats(stats, get_stats_path())
        except Exception as e:
            print(f"Error: failed to save categories: {e}", file=sys.stderr)
            return 1
    print(f"Categorized {changed} of {len(pending)} row(s).")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank statement exports (CSV/Excel) of unknown layout into canonical "
        "ledger files and categorize their transactions."
    ),
)


def _exit(code: int) -> None:
    if code:
        raise typer.Exit(code)


# Module-level argument object to satisfy ruff B008 (no calls in parameter
# defaults).
FILE_ARGUMENT: ArgumentInfo = typer.Argument(
    ...,
    help="Path to a CSV or Excel file",
    dir_okay=False,
    file_okay=True,
    exists=False,  # allow non-existent here; the handler will report nice errors
)


@app.command("analyze")
def analyze_cmd(
    path: Annotated[Path, FILE_ARGUMENT],
    *,
    sheet: str | None = typer.Option(None, help="Excel sheet name (default: first sheet)."),
) -> None:
    """Show the detected structure and column roles of a file."""

    _exit(cmd_analyze(str(path), sheet=sheet))


@app.command("import")
def import_cmd(
    path: Annotated[Path, FILE_ARGUMENT],
    *,
    account: str = typer.Option(..., help="Account code (export file prefix)."),
    label: str | None = typer.Option(None, help="Account label (defaults to the code)."),
    opening_balance: str | None = typer.Option(
        None, help="Opening balance; skips the prior-balance lookup when given."
    ),
    sheet: str | None = typer.Option(None, help="Excel sheet name (default: first sheet)."),
    interactive: bool = typer.Option(
        False, help="Ask for ambiguous columns and confirm the opening balance."
    ),
    debit_column: int | None = typer.Option(None, help="Force the debit column index."),
    credit_column: int | None = typer.Option(
        None, help="Force the credit column index (defaults to the debit column)."
    ),
    dry_run: bool = typer.Option(False, help="Transform and report without writing."),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Transform a bank export into a canonical ledger file."""

    _exit(
        cmd_import(
            str(path),
            account=account,
            label=label,
            opening_balance=opening_balance,
            sheet=sheet,
            interactive=interactive,
            debit_column=debit_column,
            credit_column=credit_column,
            dry_run=dry_run,
            database_url=database_url,
        )
    )


@app.command("sheets")
def sheets_cmd(path: Annotated[Path, FILE_ARGUMENT]) -> None:
    """List the sheets of an Excel workbook."""

    _exit(cmd_sheets(str(path)))


@app.command("learn")
def learn_cmd() -> None:
    """Rebuild word statistics from all categorized exported rows."""

    _exit(cmd_learn())


@app.command("suggest")
def suggest_cmd(text: str = typer.Argument(..., help="Transaction description")) -> None:
    """Suggest a category for a description."""

    _exit(cmd_suggest(text))


@app.command("categorize")
def categorize_cmd(
    path: Annotated[Path, FILE_ARGUMENT],
    *,
    auto: bool = typer.Option(False, help="Apply suggestions without prompting."),
    min_confidence: float = typer.Option(
        0.0, help="With --auto, only apply suggestions at or above this score."
    ),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Categorize the uncategorized rows of an export file."""

    _exit(
        cmd_categorize(
            str(path), auto=auto, min_confidence=min_confidence, database_url=database_url
        )
    )


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    log_level: str | None = typer.Option(
        None, help="Log level (defaults to LEDGER_INGEST_LOG_LEVEL, then INFO)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging once.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    configure_logging(log_level)

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m ledger_ingest.cli`
    app()
