"""Filesystem locations resolved from the environment.

- ``LEDGER_DATA_DIR``: root for exported canonical tables and the word
  statistics file. Defaults to ``./.ledger`` under the current working
  directory.
"""

from __future__ import annotations

import os
from pathlib import Path

EXPORTS_DIRNAME = "exports"
STATS_FILENAME = "word_stats.json"


def get_data_root() -> Path:
    root = os.getenv("LEDGER_DATA_DIR")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".ledger").resolve()


def get_exports_dir() -> Path:
    return get_data_root() / EXPORTS_DIRNAME


def get_stats_path() -> Path:
    return get_data_root() / STATS_FILENAME


__all__ = ["get_data_root", "get_exports_dir", "get_stats_path"]
