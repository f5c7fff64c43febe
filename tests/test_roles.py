import pytest
from ledger_ingest.errors import StructuralError
from ledger_ingest.models import ColumnProfile, ColumnRoleMap, FileStructure
from ledger_ingest.roles import (
    RoleState,
    detect_roles,
    rule_amount_fallback,
    rule_balance_and_amounts,
    rule_date_columns,
    rule_description_column,
    run_rules,
    validate_roles,
)


def _date(i: int) -> ColumnProfile:
    return ColumnProfile(index=i, display_name=f"d{i}", inferred_type="date")


def _text(i: int, *samples: str) -> ColumnProfile:
    return ColumnProfile(
        index=i, display_name=f"t{i}", inferred_type="text", sample_values=samples or ("LIBELLE",)
    )


def _num(i: int, *, neg: bool = False, pos: bool = False, mono: bool = False) -> ColumnProfile:
    return ColumnProfile(
        index=i,
        display_name=f"n{i}",
        inferred_type="number",
        has_negative=neg,
        has_positive=pos,
        is_monotonic=mono,
    )


def _structure(*columns: ColumnProfile) -> FileStructure:
    return FileStructure(
        header_row_index=-1, data_start_row_index=0, columns=columns, total_data_rows=3
    )


def test_first_date_column_and_value_date_alias():
    one = rule_date_columns(_structure(_date(0), _text(1)), RoleState())
    assert one is not None and dict(one.assign) == {"date": 0, "value_date": 0}
    two = rule_date_columns(_structure(_text(0), _date(1), _date(2)), RoleState())
    assert two is not None and dict(two.assign) == {"date": 1, "value_date": 2}


def test_description_is_longest_text_column():
    s = _structure(_text(0, "CB", "VIR"), _text(1, "PAIEMENT CARTE CARREFOUR", "VIREMENT SALAIRE"))
    decision = rule_description_column(s, RoleState())
    assert decision is not None and dict(decision.assign) == {"description": 1}


def test_first_monotonic_number_is_balance():
    s = _structure(_num(0, neg=True, pos=True), _num(1, pos=True, mono=True), _num(2, mono=True))
    decision = rule_balance_and_amounts(s, RoleState())
    assert decision is not None
    assert dict(decision.assign) == {"balance": 1}
    assert decision.amount_candidates == (0,)


def test_fallback_uses_every_number_column_but_the_balance():
    s = _structure(_num(0, pos=True, mono=True), _num(1, neg=True, pos=True, mono=True))
    state = run_rules(s, [("balance_and_amounts", rule_balance_and_amounts)])
    assert state.assignments == {"balance": 0}
    assert state.amount_candidates == ()
    decision = rule_amount_fallback(s, state)
    assert decision is not None and decision.amount_candidates == (1,)


def test_fallback_keeps_amount_detection_alive_end_to_end():
    s = _structure(
        _date(0), _text(1), _num(2, pos=True, mono=True), _num(3, neg=True, pos=True, mono=True)
    )
    detection = detect_roles(s)
    assert detection.role_map.balance == 2
    assert detection.role_map.debit == detection.role_map.credit == 3
    assert not detection.requires_manual_resolution


def test_single_signed_column_is_combined():
    detection = detect_roles(_structure(_date(0), _text(1), _num(2, neg=True, pos=True)))
    assert detection.role_map.is_combined
    assert detection.role_map.debit == 2
    assert not detection.requires_manual_resolution


def test_negative_only_column_finds_positive_partner_even_among_balances():
    s = _structure(_date(0), _text(1), _num(2, neg=True), _num(3, pos=True, mono=True))
    detection = detect_roles(s)
    assert detection.role_map.debit == 2
    assert detection.role_map.credit == 3
    assert detection.role_map.balance == 3
    assert not detection.requires_manual_resolution


def test_negative_only_column_without_partner_needs_a_human():
    detection = detect_roles(_structure(_date(0), _text(1), _num(2, neg=True)))
    assert detection.role_map.debit == 2
    assert detection.role_map.credit is None
    assert detection.requires_manual_resolution


def test_positive_only_single_column_is_combined_but_flagged():
    detection = detect_roles(_structure(_date(0), _text(1), _num(2, pos=True)))
    assert detection.role_map.is_combined
    assert detection.requires_manual_resolution


def test_two_amounts_negative_one_is_debit():
    detection = detect_roles(_structure(_date(0), _text(1), _num(2, pos=True), _num(3, neg=True)))
    assert (detection.role_map.debit, detection.role_map.credit) == (3, 2)
    assert not detection.requires_manual_resolution


def test_two_unsigned_amounts_default_to_first_debit():
    detection = detect_roles(_structure(_date(0), _text(1), _num(2, pos=True), _num(3, pos=True)))
    assert (detection.role_map.debit, detection.role_map.credit) == (2, 3)
    assert detection.requires_manual_resolution


def test_extra_amounts_are_dropped_not_fatal():
    s = _structure(_date(0), _text(1), _num(2, neg=True), _num(3, pos=True), _num(4, pos=True))
    detection = detect_roles(s)
    assert (detection.role_map.debit, detection.role_map.credit) == (2, 3)
    assert detection.amount_candidates == (2, 3)
    assert any("ignored extra amount columns" in n for n in detection.notes)


@pytest.mark.parametrize(
    ("columns", "rule"),
    [
        ((_text(0), _num(1, neg=True, pos=True)), "no_date_column"),
        ((_date(0), _num(1, neg=True, pos=True)), "no_description_column"),
        ((_date(0), _text(1)), "no_amount_column"),
    ],
)
def test_structural_failures(columns, rule):
    with pytest.raises(StructuralError) as exc:
        detect_roles(_structure(*columns))
    assert exc.value.rule == rule


def test_validate_roles_rejects_bad_maps():
    s = _structure(_date(0), _text(1), _num(2, neg=True, pos=True))
    validate_roles(ColumnRoleMap(date=0, value_date=0, description=1, debit=2, credit=2), s)
    bad = [
        ColumnRoleMap(date=0, value_date=0, description=1, debit=7, credit=7),
        ColumnRoleMap(date=0, value_date=0, description=1, debit=2, credit=None),
        ColumnRoleMap(date=0, value_date=0, description=1, debit=1, credit=2),
        ColumnRoleMap(date=0, value_date=0, description=0, debit=2, credit=2),
    ]
    for role_map in bad:
        with pytest.raises(StructuralError) as exc:
            validate_roles(role_map, s)
        assert exc.value.rule == "invalid_role_map"
