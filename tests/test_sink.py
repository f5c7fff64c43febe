from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from ledger_ingest.ingest.sink import (
    export_files,
    known_row_keys,
    parse_export_name,
    read_rows,
    render_rows,
    suggested_file_name,
    write_rows,
)
from ledger_ingest.models import CanonicalRow


def _rows() -> list[CanonicalRow]:
    return [
        CanonicalRow(
            source_id="CHQ_01.01.2024_02.01.2024.csv",
            account_label="Compte cheques",
            transaction_date=date(2024, 1, 1),
            value_date=date(2024, 1, 1),
            debit=Decimal("0.00"),
            credit=Decimal("2000.00"),
            description="SALAIRE; JANVIER",
            running_balance=Decimal("2100.00"),
            opening_balance=Decimal("100.00"),
            row_key="01012024,2100",
        ),
        CanonicalRow(
            source_id="CHQ_01.01.2024_02.01.2024.csv",
            account_label="Compte cheques",
            transaction_date=date(2024, 1, 2),
            value_date=date(2024, 1, 3),
            debit=Decimal("-800"),
            credit=Decimal("0"),
            description="LOYER",
            running_balance=Decimal("1300"),
            category="HOUSING",
            row_key="02012024,1300",
        ),
    ]


def test_file_name_uses_code_and_span():
    assert suggested_file_name("chq", date(2024, 1, 1), date(2024, 1, 31)) == (
        "CHQ_01.01.2024_31.01.2024"
    )
    parsed = parse_export_name("CHQ_01.01.2024_31.01.2024.csv")
    assert parsed is not None
    assert (parsed.account_code, parsed.start, parsed.end) == (
        "CHQ",
        date(2024, 1, 1),
        date(2024, 1, 31),
    )
    assert parse_export_name("notes.txt") is None
    assert parse_export_name("CHQ_31.02.2024_01.03.2024.csv") is None


def test_render_uses_canonical_column_order():
    lines = render_rows(_rows()).splitlines()
    assert lines[0] == (
        "source_id;account_label;transaction_date;value_date;debit;credit;description;"
        "running_balance;category;opening_balance;row_key"
    )
    assert lines[2] == (
        "CHQ_01.01.2024_02.01.2024.csv;Compte cheques;02/01/2024;03/01/2024;-800.00;0.00;"
        "LOYER;1300.00;HOUSING;;02012024,1300"
    )


def test_write_then_read(tmp_path: Path):
    out = write_rows(_rows(), tmp_path / "exports", "CHQ_01.01.2024_02.01.2024")
    assert out.name == "CHQ_01.01.2024_02.01.2024.csv"
    assert not list(out.parent.glob("*.tmp"))
    back = read_rows(out)
    assert [r.description for r in back] == ["SALAIRE; JANVIER", "LOYER"]
    assert back[0].opening_balance == Decimal("100.00")
    assert back[1].opening_balance is None
    assert back[1].value_date == date(2024, 1, 3)
    assert back[1].running_balance == Decimal("1300.00")
    assert back[1].category == "HOUSING"


def test_read_rejects_foreign_files(tmp_path: Path):
    p = tmp_path / "other.csv"
    p.write_text("a;b\n1;2\n", encoding="utf-8")
    with pytest.raises(Exception, match="Missing columns"):
        read_rows(p)


def test_exports_are_listed_by_end_date_and_account(tmp_path: Path):
    rows = _rows()
    write_rows(rows, tmp_path, "CHQ_01.02.2024_29.02.2024")
    write_rows(rows, tmp_path, "CHQ_01.01.2024_31.01.2024")
    write_rows(rows, tmp_path, "LIVRET_01.01.2024_31.03.2024")
    (tmp_path / "README.txt").write_text("x", encoding="utf-8")
    found = export_files(tmp_path, "chq")
    assert [e.path.name for e in found] == [
        "CHQ_01.01.2024_31.01.2024.csv",
        "CHQ_01.02.2024_29.02.2024.csv",
    ]
    assert known_row_keys(tmp_path, "CHQ") == {"01012024,2100", "02012024,1300"}
    assert known_row_keys(tmp_path / "missing", "CHQ") == set()
