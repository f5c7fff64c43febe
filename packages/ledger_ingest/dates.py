"""Date normalization for cells of unknown shape.

``parse_date`` is pure and deterministic: it backs both structure inference
and the row transformation, which must agree on every cell.

Supported inputs, in priority order:

- ``date``/``datetime`` objects (datetimes are truncated to their date);
- spreadsheet serial day counts: integral numeric cells in ``[1, 100000]``,
  converted with the 1899-12-30 epoch (serial 25569 is 1970-01-01);
- text in one of the catalogue layouts below, first match wins;
- as a last resort, for text that does not look like a plain number, an
  ISO 8601 parse and then a day-first generic parse (both ``dateutil``).
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

from dateutil import parser as dateutil_parser

from .amounts import is_numeric_text

SERIAL_MIN = 1
SERIAL_MAX = 100_000
_UNIX_EPOCH = date(1970, 1, 1)
_UNIX_EPOCH_SERIAL = 25569

# dateutil fills missing fields from ``default``; a fixed value keeps the
# fallback independent of the current day.
_GENERIC_DEFAULT = datetime(2000, 1, 1)

_ORDERS = (
    "dd{s}MM{s}yyyy",
    "yyyy{s}MM{s}dd",
    "MM{s}dd{s}yyyy",
    "dd{s}MM{s}yy",
    "yy{s}MM{s}dd",
    "MM{s}dd{s}yy",
)

DATE_FORMATS: tuple[str, ...] = tuple(
    order.format(s=sep) for sep in ("/", "-", ".", "") for order in _ORDERS
)
"""Layout catalogue in priority order (24 layouts)."""

_TOKEN_RE = re.compile(r"yyyy|yy|MM|dd")


@dataclass(frozen=True, slots=True)
class _Layout:
    pattern: str
    separator: str
    fields: tuple[str, ...]

    def widths(self) -> tuple[int, ...]:
        return tuple(len(f) for f in self.fields)


def _compile(pattern: str) -> _Layout:
    fields = tuple(_TOKEN_RE.findall(pattern))
    if len(fields) != 3 or sorted(f[0] for f in fields) != ["M", "d", "y"]:
        raise ValueError(f"unsupported date layout: {pattern!r}")
    rest = _TOKEN_RE.sub("", pattern)
    separator = rest[0] if rest else ""
    if rest and rest != separator * 2:
        raise ValueError(f"unsupported date layout: {pattern!r}")
    return _Layout(pattern=pattern, separator=separator, fields=fields)


_LAYOUTS: dict[str, _Layout] = {p: _compile(p) for p in DATE_FORMATS}


def _layout(pattern: str) -> _Layout:
    lay = _LAYOUTS.get(pattern)
    return lay if lay is not None else _compile(pattern)


def _expand_year(two_digits: int) -> int:
    # Same pivot as ``%y``: 69-99 -> 1900s, 00-68 -> 2000s.
    return 1900 + two_digits if two_digits >= 69 else 2000 + two_digits


def _split(text: str, lay: _Layout) -> list[str] | None:
    if lay.separator:
        parts = text.split(lay.separator)
        if len(parts) != 3:
            return None
        for part, name in zip(parts, lay.fields, strict=True):
            if not part.isdigit():
                return None
            if name in ("yyyy", "yy"):
                if len(part) != len(name):
                    return None
            elif not 1 <= len(part) <= 2:
                return None
        return parts
    widths = lay.widths()
    if not text.isdigit() or len(text) != sum(widths):
        return None
    parts = []
    pos = 0
    for w in widths:
        parts.append(text[pos : pos + w])
        pos += w
    return parts


def _parse_layout(text: str, lay: _Layout) -> date | None:
    parts = _split(text, lay)
    if parts is None:
        return None
    values = dict(zip(lay.fields, (int(p) for p in parts), strict=True))
    year = values["yyyy"] if "yyyy" in values else _expand_year(values["yy"])
    try:
        return date(year, values["MM"], values["dd"])
    except ValueError:
        return None


def serial_to_date(serial: int) -> date:
    """Convert a spreadsheet serial day count to a date."""

    return _UNIX_EPOCH + timedelta(days=serial - _UNIX_EPOCH_SERIAL)


def _from_serial(value: int | float) -> date | None:
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    if SERIAL_MIN <= value <= SERIAL_MAX:
        return serial_to_date(value)
    return None


def _generic_parse(text: str) -> date | None:
    if is_numeric_text(text):
        return None
    # ISO 8601 first: day-first parsing would swap month and day in
    # ``2024-03-07T10:15:00``.
    try:
        return dateutil_parser.isoparse(text).date()
    except (ValueError, OverflowError):
        pass
    try:
        return dateutil_parser.parse(text, dayfirst=True, default=_GENERIC_DEFAULT).date()
    except (ValueError, OverflowError):
        return None


def parse_date(value: Any, formats: Iterable[str] | None = None) -> date | None:
    """Parse ``value`` into a ``date`` or return ``None``.

    Parameters
    ----------
    value:
        A cell of any type.
    formats:
        Optional subset of layouts to try (in the given order). When provided,
        only those layouts are attempted for text: no serial conversion and no
        generic fallback.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    if formats is not None:
        if not isinstance(value, str):
            return None
        text = value.strip()
        for pattern in formats:
            parsed = _parse_layout(text, _layout(pattern))
            if parsed is not None:
                return parsed
        return None

    if isinstance(value, (int, float)):
        return _from_serial(value)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    for pattern in DATE_FORMATS:
        parsed = _parse_layout(text, _LAYOUTS[pattern])
        if parsed is not None:
            return parsed
    return _generic_parse(text)


def format_date(d: date, layout: str) -> str:
    """Render ``d`` in a catalogue layout (zero-padded fields)."""

    lay = _layout(layout)
    rendered = {
        "dd": f"{d.day:02d}",
        "MM": f"{d.month:02d}",
        "yyyy": f"{d.year:04d}",
        "yy": f"{d.year % 100:02d}",
    }
    return lay.separator.join(rendered[f] for f in lay.fields)


def is_date(value: Any) -> bool:
    return parse_date(value) is not None


__all__ = [
    "DATE_FORMATS",
    "format_date",
    "is_date",
    "parse_date",
    "serial_to_date",
]
