"""Prior-balance lookup for opening balances.

Two sources, tried in order by :func:`resolve_opening_balance`:

1. the ``ledger_balances`` history table (one known balance per account and
   day), when a database session is available;
2. the account's previous export files: the export whose end date is the
   latest one strictly before the import start, read back for its last
   running balance.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from os import PathLike

from ledger_db.models.ledger import LedgerAccount, LedgerBalance
from sqlalchemy import select
from sqlalchemy.orm import Session

from .amounts import round_money
from .ingest.sink import export_files, read_rows
from .logging_setup import get_logger

_logger = get_logger("ledger_ingest.balances")


def _latest(
    session: Session, account_code: str, *, before: date, inclusive: bool
) -> Decimal | None:
    cond = LedgerBalance.as_of <= before if inclusive else LedgerBalance.as_of < before
    row = (
        session.execute(
            select(LedgerBalance)
            .where(LedgerBalance.account_code == account_code.upper(), cond)
            .order_by(LedgerBalance.as_of.desc())
            .limit(1)
        )
        .scalars()
        .first()
    )
    return None if row is None else round_money(Decimal(row.balance))


def balance_before(session: Session, account_code: str, on_date: date) -> Decimal | None:
    """Most recent known balance strictly before ``on_date``, or ``None``."""

    return _latest(session, account_code, before=on_date, inclusive=False)


def balance_on_or_before(session: Session, account_code: str, on_date: date) -> Decimal | None:
    return _latest(session, account_code, before=on_date, inclusive=True)


def record_balance(
    session: Session, account_code: str, as_of: date, balance: Decimal
) -> None:
    """Store the end-of-day balance for an account (replacing the same day).

    Raises
    ------
    ValueError
        When the account is not registered.
    """

    code = account_code.upper()
    if session.get(LedgerAccount, code) is None:
        raise ValueError(f"Unknown account: {account_code!r}")
    existing = (
        session.execute(
            select(LedgerBalance).where(
                LedgerBalance.account_code == code, LedgerBalance.as_of == as_of
            )
        )
        .scalars()
        .first()
    )
    value = round_money(balance)
    if existing is None:
        session.add(LedgerBalance(account_code=code, as_of=as_of, balance=value))
    else:
        existing.balance = value
    session.flush()


def balance_before_from_exports(
    export_dir: str | PathLike[str], account_code: str, start: date
) -> Decimal | None:
    """Closing balance of the latest export that ends strictly before ``start``."""

    candidates = [e for e in export_files(export_dir, account_code) if e.end < start]
    if not candidates:
        return None
    latest = candidates[-1]
    rows = read_rows(latest.path)
    if not rows:
        return None
    _logger.debug("Opening balance for %s taken from %s", account_code, latest.path.name)
    return rows[-1].running_balance


def resolve_opening_balance(
    account_code: str,
    start: date,
    *,
    session: Session | None = None,
    export_dir: str | PathLike[str] | None = None,
) -> Decimal | None:
    if session is not None:
        found = balance_before(session, account_code, start)
        if found is not None:
            return found
    if export_dir is not None:
        return balance_before_from_exports(export_dir, account_code, start)
    return None


__all__ = [
    "balance_before",
    "balance_before_from_exports",
    "balance_on_or_before",
    "record_balance",
    "resolve_opening_balance",
]
