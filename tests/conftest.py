"""Pytest configuration for test isolation.

The engine persists exported tables and the word statistics file under a data
root that defaults to ``./.ledger`` in the working directory. Tests that share
that directory would see each other's exports (and their row keys or prior
balances), so every test gets its own data root via an autouse fixture.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolate_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Force a per-test ``LEDGER_DATA_DIR`` and make sure no DB leaks in."""

    data_root = tmp_path / "ledger"
    data_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("LEDGER_DATA_DIR", os.fspath(data_root))
    monkeypatch.delenv("DATABASE_URL", raising=False)
    return data_root
