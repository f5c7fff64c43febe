from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from ledger_ingest.api import analyze_table, import_file, import_table
from ledger_ingest.models import ColumnRoleMap, ImportConfig

TWO_COLUMNS = [
    ["Date", "Libelle", "Debit", "Credit"],
    ["02/01/2024", "LOYER", "-800", "0"],
    ["01/01/2024", "SALAIRE", "0", "2000"],
]

UNSIGNED = [
    ["01/01/2024", "SALAIRE", "2000"],
    ["02/01/2024", "LOYER", "800"],
]

CONFIG = ImportConfig(account_code="chq", account_label="Compte cheques", opening_balance=100)


def test_analyze_table_reports_structure_and_roles():
    analysis = analyze_table(TWO_COLUMNS)
    assert analysis.structure.header_row_index == 0
    assert (analysis.detection.role_map.debit, analysis.detection.role_map.credit) == (2, 3)


def test_import_happy_path():
    result = import_table(TWO_COLUMNS, CONFIG)
    assert result.status == "ok"
    assert [r.description for r in result.rows] == ["SALAIRE", "LOYER"]
    assert [r.running_balance for r in result.rows] == [Decimal("2100.00"), Decimal("1300.00")]
    assert result.file_name == "CHQ_01.01.2024_02.01.2024"
    assert result.rows[0].source_id == "CHQ_01.01.2024_02.01.2024.csv"
    assert (result.start_date, result.end_date) == (date(2024, 1, 1), date(2024, 1, 2))
    assert result.skipped_rows == 0


def test_structural_failure_is_a_result_not_an_exception():
    result = import_table([["Nom", "Prenom"], ["Durand", "Alice"]], CONFIG)
    assert result.status == "failed"
    assert result.failed_rule == "no_date_column"
    assert result.errors

    assert import_table([], CONFIG).failed_rule == "empty_table"


def test_bad_amounts_are_counted_as_skipped_rows():
    table = [
        ["01/01/2024", "SALAIRE", "2000"],
        ["02/01/2024", "LOYER", "abc"],
        ["03/01/2024", "EPICERIE", "-20"],
    ]
    result = import_table(table, CONFIG)
    assert result.status == "ok"
    assert result.skipped_rows == 1
    assert [i.reason for i in result.issues] == ["unparseable_amount"]


def test_every_row_unreadable_fails_with_no_rows():
    role_map = ColumnRoleMap(date=0, value_date=0, description=1, debit=2, credit=2)
    table = [
        ["01/01/2024", "SALAIRE", "abc"],
        ["02/01/2024", "LOYER", "def"],
    ]
    result = import_table(table, CONFIG, role_map=role_map)
    assert result.status == "failed"
    assert result.failed_rule == "no_rows"


def test_ambiguous_roles_need_a_resolver():
    result = import_table(UNSIGNED, CONFIG)
    assert result.status == "needs_resolution"
    assert result.analysis is not None
    assert result.analysis.detection.requires_manual_resolution

    seen = []

    def resolver(structure, detection):
        seen.append(detection.role_map)
        return replace(detection.role_map, debit=2, credit=2)

    resolved = import_table(UNSIGNED, CONFIG, resolve_roles=resolver)
    assert resolved.status == "ok"
    assert len(seen) == 1
    assert [r.credit for r in resolved.rows] == [Decimal("2000.00"), Decimal("800.00")]

    abandoned = import_table(UNSIGNED, CONFIG, resolve_roles=lambda s, d: None)
    assert abandoned.status == "needs_resolution"


def test_opening_balance_lookup_and_confirmation():
    calls = []

    def lookup(code, start):
        calls.append((code, start))
        return Decimal("500")

    def confirm(suggested, start, end):
        assert suggested == Decimal("500")
        assert (start, end) == (date(2024, 1, 1), date(2024, 1, 2))
        return Decimal("250")

    result = import_table(
        TWO_COLUMNS, CONFIG, lookup_opening_balance=lookup, confirm_opening_balance=confirm
    )
    assert calls == [("chq", date(2024, 1, 1))]
    assert result.opening_balance == Decimal("250.00")
    assert result.rows[-1].running_balance == Decimal("1450.00")

    fallback = import_table(TWO_COLUMNS, CONFIG, lookup_opening_balance=lambda c, s: None)
    assert fallback.opening_balance == Decimal("100.00")


def test_duplicates_are_reported():
    result = import_table(TWO_COLUMNS, CONFIG, known_row_keys={"01012024,2100", "31122023,5"})
    assert result.status == "ok"
    assert result.duplicate_keys == ("01012024,2100",)
    assert len(result.rows) == 2


def test_import_file_reads_csv(tmp_path: Path):
    p = tmp_path / "releve.csv"
    p.write_text(
        "Date;Libelle;Montant\n"
        "01/01/2024;CARTE CARREFOUR;-45,50\n"
        "02/01/2024;VIREMENT SALAIRE;1200,00\n",
        encoding="utf-8",
    )
    result = import_file(p, ImportConfig(account_code="CHQ", account_label="CHQ"))
    assert result.status == "ok"
    assert [r.running_balance for r in result.rows] == [Decimal("-45.50"), Decimal("1154.50")]


def test_combined_column_of_spreadsheet_numbers():
    table = [
        (datetime(2024, 1, 1), "CARTE CARREFOUR", -45.5),
        (datetime(2024, 1, 2), "VIREMENT SALAIRE", 1200.0),
    ]
    config = ImportConfig(account_code="CHQ", account_label="Compte cheques")
    result = import_table(table, config)
    assert result.status == "ok", result.errors
    assert [(r.debit, r.credit) for r in result.rows] == [
        (Decimal("-45.50"), Decimal("0.00")),
        (Decimal("0.00"), Decimal("1200.00")),
    ]
    assert [r.running_balance for r in result.rows] == [Decimal("-45.50"), Decimal("1154.50")]
