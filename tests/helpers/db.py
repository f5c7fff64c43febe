"""DB helpers for tests: bootstrap a temporary SQLite DB and seed registries."""

from __future__ import annotations

from pathlib import Path

from ledger_db.client import create_schema, get_engine, session_scope
from ledger_ingest.registries import upsert_entry
from sqlalchemy import event


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    # Ensure parent exists before engine creation attempts any writes
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)

    # Enforce FKs so balance rows cannot point at unknown accounts
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _):  # pragma: no cover - tiny bridge
        dbapi_conn.execute("PRAGMA foreign_keys = ON")

    create_schema(database_url=url)
    return url


def seed_registries(
    *,
    database_url: str,
    accounts: dict[str, str] | None = None,
    categories: dict[str, str] | None = None,
) -> None:
    """Insert accounts and categories (``code -> display name``) in order."""

    with session_scope(database_url=database_url) as session:
        for order, (code, name) in enumerate((accounts or {}).items()):
            upsert_entry(session, "account", code=code, display_name=name, sort_order=order)
        for order, (code, name) in enumerate((categories or {}).items()):
            upsert_entry(session, "category", code=code, display_name=name, sort_order=order)
