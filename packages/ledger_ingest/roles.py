"""Semantic role mapping for profiled columns.

Roles are decided by an ordered list of named rules. Each rule looks at the
file structure and the decisions taken so far and returns either a
:class:`RuleDecision` or ``None`` ("no opinion"). Decisions are merged in
order, so precedence is exactly the order of :data:`RULES`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

from .errors import StructuralError
from .logging_setup import get_logger
from .models import ColumnProfile, ColumnRoleMap, FileStructure, Role, RoleDetection

_logger = get_logger("ledger_ingest.roles")


@dataclass(frozen=True, slots=True)
class RoleState:
    """Decisions accumulated by the rules evaluated so far."""

    assignments: Mapping[Role, int] = field(default_factory=dict)
    amount_candidates: tuple[int, ...] = ()
    requires_manual_resolution: bool = False
    notes: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RuleDecision:
    assign: Mapping[Role, int] = field(default_factory=dict)
    amount_candidates: tuple[int, ...] | None = None
    requires_manual_resolution: bool = False
    note: str | None = None


type RoleRule = Callable[[FileStructure, RoleState], RuleDecision | None]


def _apply(state: RoleState, decision: RuleDecision) -> RoleState:
    assignments = dict(state.assignments)
    assignments.update(decision.assign)
    return RoleState(
        assignments=assignments,
        amount_candidates=(
            decision.amount_candidates
            if decision.amount_candidates is not None
            else state.amount_candidates
        ),
        requires_manual_resolution=(
            state.requires_manual_resolution or decision.requires_manual_resolution
        ),
        notes=state.notes + ((decision.note,) if decision.note else ()),
    )


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def rule_date_columns(structure: FileStructure, state: RoleState) -> RuleDecision | None:
    """First date column is the transaction date; a second one is the value date."""

    dates = structure.columns_of_type("date")
    if not dates:
        return None
    value_date = dates[1] if len(dates) > 1 else dates[0]
    return RuleDecision(assign={"date": dates[0].index, "value_date": value_date.index})


def _average_sample_length(column: ColumnProfile) -> float:
    if not column.sample_values:
        return 0.0
    return sum(len(v) for v in column.sample_values) / len(column.sample_values)


def rule_description_column(structure: FileStructure, state: RoleState) -> RuleDecision | None:
    """The text column with the longest average sample is the description."""

    texts = structure.columns_of_type("text")
    if not texts:
        return None
    best = texts[0]
    for column in texts[1:]:
        if _average_sample_length(column) > _average_sample_length(best):
            best = column
    return RuleDecision(assign={"description": best.index})


def rule_balance_and_amounts(structure: FileStructure, state: RoleState) -> RuleDecision | None:
    """First monotonic number column is the balance; the others are amounts."""

    numbers = structure.columns_of_type("number")
    if not numbers:
        return None
    monotonic = [c for c in numbers if c.is_monotonic]
    amounts = tuple(c.index for c in numbers if not c.is_monotonic)
    if monotonic:
        return RuleDecision(
            assign={"balance": monotonic[0].index},
            amount_candidates=amounts,
            note=f"column {monotonic[0].index} is monotonic: running balance",
        )
    return RuleDecision(amount_candidates=amounts)


def rule_amount_fallback(structure: FileStructure, state: RoleState) -> RuleDecision | None:
    """With no non-monotonic number column, every other number column is an amount."""

    if state.amount_candidates:
        return None
    balance = state.assignments.get("balance")
    others = tuple(c.index for c in structure.columns_of_type("number") if c.index != balance)
    if not others:
        return None
    return RuleDecision(
        amount_candidates=others,
        note="no non-monotonic number column; using all other number columns as amounts",
    )


def _split_pair(first: ColumnProfile, second: ColumnProfile) -> RuleDecision:
    if first.has_negative != second.has_negative:
        debit, credit = (first, second) if first.has_negative else (second, first)
        return RuleDecision(
            assign={"debit": debit.index, "credit": credit.index},
            note=f"debit column {debit.index} (negative values), credit column {credit.index}",
        )
    return RuleDecision(
        assign={"debit": first.index, "credit": second.index},
        requires_manual_resolution=True,
        note=(
            f"columns {first.index} and {second.index} cannot be told apart by sign; "
            "defaulting to first=debit, second=credit"
        ),
    )


def rule_single_amount(structure: FileStructure, state: RoleState) -> RuleDecision | None:
    """One amount column: combined when signed, else look for a credit partner."""

    if len(state.amount_candidates) != 1:
        return None
    column = structure.column(state.amount_candidates[0])
    if column.has_negative and column.has_positive:
        return RuleDecision(
            assign={"debit": column.index, "credit": column.index},
            note=f"column {column.index} is a signed combined amount",
        )
    if column.negative_only:
        for other in structure.columns_of_type("number"):
            if other.index != column.index and other.positive_only:
                return RuleDecision(
                    assign={"debit": column.index, "credit": other.index},
                    note=f"debit column {column.index}, positive-only credit column {other.index}",
                )
        return RuleDecision(
            assign={"debit": column.index},
            requires_manual_resolution=True,
            note=f"debit column {column.index} has no credit counterpart",
        )
    return RuleDecision(
        assign={"debit": column.index, "credit": column.index},
        requires_manual_resolution=True,
        note=f"column {column.index} has no negative values; assuming a combined amount",
    )


def rule_two_amounts(structure: FileStructure, state: RoleState) -> RuleDecision | None:
    """Two amount columns: the one with negative values is the debit."""

    if len(state.amount_candidates) != 2:
        return None
    first, second = (structure.column(i) for i in state.amount_candidates)
    return _split_pair(first, second)


def rule_extra_amounts(structure: FileStructure, state: RoleState) -> RuleDecision | None:
    """More than two amount columns: keep the first two."""

    if len(state.amount_candidates) <= 2:
        return None
    kept = state.amount_candidates[:2]
    dropped = state.amount_candidates[2:]
    _logger.warning(
        "More than two amount columns found; ignoring columns %s", ", ".join(map(str, dropped))
    )
    pair = _split_pair(structure.column(kept[0]), structure.column(kept[1]))
    return RuleDecision(
        assign=pair.assign,
        amount_candidates=kept,
        requires_manual_resolution=pair.requires_manual_resolution,
        note=f"ignored extra amount columns {list(dropped)}; {pair.note}",
    )


RULES: tuple[tuple[str, RoleRule], ...] = (
    ("date_columns", rule_date_columns),
    ("description_column", rule_description_column),
    ("balance_and_amounts", rule_balance_and_amounts),
    ("amount_fallback", rule_amount_fallback),
    ("single_amount", rule_single_amount),
    ("two_amounts", rule_two_amounts),
    ("extra_amounts", rule_extra_amounts),
)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def run_rules(
    structure: FileStructure, rules: Sequence[tuple[str, RoleRule]] = RULES
) -> RoleState:
    state = RoleState()
    for name, rule in rules:
        decision = rule(structure, state)
        if decision is None:
            continue
        _logger.debug("Rule %s decided %s", name, dict(decision.assign))
        state = _apply(state, decision)
    return state


def detect_roles(structure: FileStructure) -> RoleDetection:
    """Assign roles to the columns of ``structure``.

    Raises
    ------
    StructuralError
        When no date, description or amount column can be found.
    """

    state = run_rules(structure)
    roles = state.assignments
    if "date" not in roles:
        raise StructuralError("no_date_column", "No date column found in the file.")
    if "description" not in roles:
        raise StructuralError(
            "no_description_column", "No description (text) column found in the file."
        )
    if "debit" not in roles:
        raise StructuralError(
            "no_amount_column", "No amount column found in the file, even after fallback."
        )

    role_map = ColumnRoleMap(
        date=roles["date"],
        value_date=roles.get("value_date", roles["date"]),
        description=roles["description"],
        debit=roles.get("debit"),
        credit=roles.get("credit"),
        balance=roles.get("balance"),
    )
    detection = RoleDetection(
        role_map=role_map,
        requires_manual_resolution=state.requires_manual_resolution,
        amount_candidates=state.amount_candidates,
        notes=state.notes,
    )
    _logger.info(
        "Detected roles %s (manual resolution required: %s)",
        role_map.as_dict(),
        detection.requires_manual_resolution,
    )
    return detection


def validate_roles(role_map: ColumnRoleMap, structure: FileStructure) -> None:
    """Check a (possibly human-edited) role map before transformation.

    Raises
    ------
    StructuralError
        With rule ``invalid_role_map`` when an index is out of range, a
        required role is missing, or amount roles overlap date/description.
    """

    width = len(structure.columns)
    for role, index in role_map.as_dict().items():
        if index is not None and not 0 <= index < width:
            raise StructuralError(
                "invalid_role_map",
                f"Role {role!r} points to column {index}, outside 0..{width - 1}.",
            )
    if role_map.debit is None or role_map.credit is None:
        raise StructuralError(
            "invalid_role_map", "Both the debit and the credit column must be chosen."
        )
    text_roles = {role_map.date, role_map.value_date, role_map.description}
    if role_map.debit in text_roles or role_map.credit in text_roles:
        raise StructuralError(
            "invalid_role_map", "Amount columns must differ from the date and description columns."
        )
    if role_map.description in (role_map.date, role_map.value_date):
        raise StructuralError(
            "invalid_role_map", "The description column must differ from the date columns."
        )


__all__ = [
    "RULES",
    "RoleRule",
    "RoleState",
    "RuleDecision",
    "detect_roles",
    "run_rules",
    "validate_roles",
]
