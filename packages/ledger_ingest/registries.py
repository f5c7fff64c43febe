"""Account and category registries backed by ``ledger_db``.

Both registries map a short code to a display name and a color. The engine
only reads them (labels for imported rows, category choices); ``upsert_entry``
exists for seeding and administration.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

from ledger_db.client import session_scope
from ledger_db.models.ledger import LedgerAccount, LedgerCategory
from sqlalchemy import func, select
from sqlalchemy.orm import Session

type RegistryKind = Literal["account", "category"]

_CODE_RE = re.compile(r"^[A-Za-z0-9?!]+$")
_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


@dataclass(frozen=True, slots=True)
class RegistryEntry:
    display_name: str
    color: str | None = None


def _model(kind: RegistryKind) -> type[LedgerAccount] | type[LedgerCategory]:
    return LedgerAccount if kind == "account" else LedgerCategory


def _load(session: Session, kind: RegistryKind) -> dict[str, RegistryEntry]:
    model = _model(kind)
    rows = (
        session.execute(
            select(model).order_by(func.coalesce(model.sort_order, 10_000), model.code)
        )
        .scalars()
        .all()
    )
    return {
        r.code: RegistryEntry(display_name=(r.display_name or "").strip() or r.code, color=r.color)
        for r in rows
    }


def load_accounts(session: Session) -> dict[str, RegistryEntry]:
    return _load(session, "account")


def load_categories(session: Session) -> dict[str, RegistryEntry]:
    return _load(session, "category")


def load_categories_from_db(*, database_url: str | None) -> dict[str, RegistryEntry]:
    with session_scope(database_url=database_url) as session:
        return load_categories(session)


def upsert_entry(
    session: Session,
    kind: RegistryKind,
    *,
    code: str,
    display_name: str | None = None,
    color: str | None = None,
    sort_order: int | None = None,
) -> RegistryEntry:
    """Create or update a registry entry.

    Codes are trimmed and uppercased; the display name defaults to the code.

    Raises
    ------
    ValueError
        When the code or the color is malformed.
    """

    code_n = code.strip().upper()
    if not _CODE_RE.fullmatch(code_n):
        raise ValueError(f"Invalid {kind} code: {code!r} (letters and digits only)")
    if color is not None and not _COLOR_RE.fullmatch(color):
        raise ValueError(f"Invalid color {color!r}: expected #RRGGBB")
    name = " ".join((display_name or "").split()) or code_n

    model = _model(kind)
    row = session.get(model, code_n)
    if row is None:
        row = model(code=code_n, display_name=name, color=color, sort_order=sort_order)
        session.add(row)
    else:
        row.display_name = name
        if color is not None:
            row.color = color
        if sort_order is not None:
            row.sort_order = sort_order
    session.flush()
    return RegistryEntry(display_name=name, color=row.color)


__all__ = [
    "RegistryEntry",
    "RegistryKind",
    "load_accounts",
    "load_categories",
    "load_categories_from_db",
    "upsert_entry",
]
