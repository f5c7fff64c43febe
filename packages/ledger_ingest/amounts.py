"""Locale-tolerant amount parsing and money rounding.

Bank exports mix conventions freely: ``1 234,56``, ``1.234,56``,
``1,234.56``, ``(45.50)``, ``-12 €``. :func:`parse_amount` accepts these and
returns ``None`` for anything it cannot read unambiguously.
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

_CENT = Decimal("0.01")
_CURRENCY_SYMBOLS = "€$£"
_SPACES_RE = re.compile(r"[\s']")
_DIGITS_RE = re.compile(r"^\d+(?:\.\d+)?$")


def round_money(d: Decimal) -> Decimal:
    """Quantize to cents, half-up; negative zero is normalized to ``0.00``."""

    q = d.quantize(_CENT, rounding=ROUND_HALF_UP)
    if q.is_zero():
        return Decimal("0.00")
    return q


def _normalize_separators(s: str) -> str | None:
    commas = s.count(",")
    dots = s.count(".")
    if commas and dots:
        # The right-most separator is the decimal one.
        if s.rfind(",") > s.rfind("."):
            if dots and s.count(",") > 1:
                return None
            return s.replace(".", "").replace(",", ".")
        if dots > 1:
            return None
        return s.replace(",", "")
    if commas == 1:
        return s.replace(",", ".")
    if commas > 1:
        return s.replace(",", "")
    if dots > 1:
        return s.replace(".", "")
    return s


def parse_amount(value: Any) -> Decimal | None:
    """Parse a cell into a ``Decimal`` or return ``None`` when not an amount.

    Numbers pass through (booleans are rejected). Text is stripped of
    whitespace and currency symbols; surrounding parentheses and a leading
    ``-`` mean negative.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return Decimal(repr(value))
    if not isinstance(value, str):
        return None

    s = _SPACES_RE.sub("", value)
    if not s:
        return None
    negative = False

    # Same marker stripping as the CSV normalizers: sign, currency and
    # parentheses in any order.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:]
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:]
            changed = True
        if s and s[0] in _CURRENCY_SYMBOLS:
            s = s[1:]
            changed = True
        if s and s[-1] in _CURRENCY_SYMBOLS:
            s = s[:-1]
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1]
            changed = True
        if not changed:
            break

    if s.endswith("-") and not negative:
        # Trailing minus, as printed by some ledgers: "45,50-".
        negative = True
        s = s[:-1]

    normalized = _normalize_separators(s)
    if normalized is None or not _DIGITS_RE.fullmatch(normalized):
        return None
    try:
        d = Decimal(normalized)
    except InvalidOperation:
        return None
    return -d if negative else d


def is_numeric_text(value: Any) -> bool:
    """True when ``value`` is a string that parses as an amount."""

    return isinstance(value, str) and parse_amount(value) is not None


__all__ = ["is_numeric_text", "parse_amount", "round_money"]
