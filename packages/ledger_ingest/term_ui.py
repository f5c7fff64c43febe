"""Tiny terminal UI helpers (prompt_toolkit-based).

These prompts implement the human-in-the-loop steps of an import: choosing a
column when role mapping is ambiguous, confirming the opening balance, and
picking a category for an uncategorized row. They are kept apart from the
engine so they're easy to test in isolation with a pipe input.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.validation import ValidationError, Validator

from .amounts import parse_amount, round_money
from .models import ColumnProfile

NONE_OPTION = "none"


def _session(session: PromptSession | None, kb: KeyBindings | None = None) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


def column_label(column: ColumnProfile) -> str:
    samples = ", ".join(column.sample_values[:3])
    return f"{column.index}: {column.display_name} [{column.inferred_type}] ({samples})"


def _match_column(text: str, columns: Sequence[ColumnProfile]) -> ColumnProfile | None:
    t = text.strip()
    if not t:
        return None
    head = t.split(":", 1)[0].strip()
    if head.isdigit():
        for c in columns:
            if c.index == int(head):
                return c
        return None
    for c in columns:
        if c.display_name.lower() == t.lower():
            return c
    return None


def select_column(
    columns: Sequence[ColumnProfile],
    *,
    message: str = "Column (index or name): ",
    default: int | None = None,
    allow_none: bool = False,
    session: PromptSession | None = None,
) -> int | None:
    """Prompt for one of ``columns`` by index or display name.

    Returns the chosen column index, or ``None`` when ``allow_none`` is set and
    the user enters ``none``.
    """

    words = [column_label(c) for c in columns]
    if allow_none:
        words.append(NONE_OPTION)
    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=True)

    class _ColumnValidator(Validator):
        def validate(self, document) -> None:
            text = document.text.strip()
            if allow_none and text.lower() == NONE_OPTION:
                return
            if _match_column(text, columns) is None:
                raise ValidationError(message="Enter a column index or name from the list.")

    initial = ""
    if default is not None:
        initial = str(default)
    sess = _session(session)
    value = sess.prompt(
        message,
        default=initial,
        completer=completer,
        validator=_ColumnValidator(),
        validate_while_typing=False,
    )
    if allow_none and value.strip().lower() == NONE_OPTION:
        return None
    chosen = _match_column(value, columns)
    assert chosen is not None  # guaranteed by the validator
    return chosen.index


def confirm_opening_balance(
    suggested: Decimal | None,
    *,
    message: str = "Opening balance (Enter to accept): ",
    session: PromptSession | None = None,
) -> Decimal:
    """Show the suggested opening balance and return the confirmed amount."""

    class _AmountValidator(Validator):
        def validate(self, document) -> None:
            if parse_amount(document.text) is None:
                raise ValidationError(message="Enter an amount, e.g. 1234.56 or -12,50")

    initial = f"{round_money(suggested if suggested is not None else Decimal('0')):.2f}"
    sess = _session(session)
    value = sess.prompt(
        message, default=initial, validator=_AmountValidator(), validate_while_typing=False
    )
    parsed = parse_amount(value)
    assert parsed is not None  # guaranteed by the validator
    return round_money(parsed)


def select_category(
    categories: Sequence[str] | Iterable[str],
    *,
    default: str = "",
    message: str = "Category (Enter to accept, empty to skip): ",
    session: PromptSession | None = None,
) -> str:
    """Prompt for a known category; Enter accepts the pre-filled default.

    An empty answer means "skip" and returns ``""``.
    """

    words = list(categories)
    canonical = {w.lower(): w for w in words}
    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=True)

    kb = KeyBindings()

    @kb.add("escape")
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result="")

    class _CategoryValidator(Validator):
        def validate(self, document) -> None:
            text = document.text.strip()
            if text and text.lower() not in canonical:
                raise ValidationError(message="Unknown category; pick one from the list.")

    sess = _session(session, kb)
    value = sess.prompt(
        message,
        default=default,
        completer=completer,
        validator=_CategoryValidator(),
        validate_while_typing=False,
        key_bindings=kb,
    )
    value = (value or "").strip()
    return canonical.get(value.lower(), value) if value else ""


def confirm(
    message: str, *, default: bool = True, session: PromptSession | None = None
) -> bool:
    """Yes/no question; Enter accepts ``default``."""

    class _YesNo(Validator):
        def validate(self, document) -> None:
            if document.text.strip().lower() not in ("", "y", "yes", "n", "no"):
                raise ValidationError(message="Answer y or n.")

    suffix = " [Y/n] " if default else " [y/N] "
    sess = _session(session)
    value = sess.prompt(message + suffix, validator=_YesNo(), validate_while_typing=False)
    answer = value.strip().lower()
    if not answer:
        return default
    return answer in ("y", "yes")


__all__ = [
    "NONE_OPTION",
    "column_label",
    "confirm",
    "confirm_opening_balance",
    "select_category",
    "select_column",
]
