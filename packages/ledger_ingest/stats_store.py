"""Persistence of the global word statistics.

Layout: a single JSON document (default ``$LEDGER_DATA_DIR/word_stats.json``)::

    {"schema_version": 1, "words": {"NETFLIX": {"total_occurrences": 2, ...}}}

Writes are atomic (``.tmp`` then ``os.replace``); concurrent sessions resolve
as last writer wins on the whole file.
"""

from __future__ import annotations

import contextlib
import json
import os
from collections.abc import Mapping
from os import PathLike
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import StatsStoreError
from .logging_setup import get_logger
from .models import WordStatistics, WordStats
from .settings import get_stats_path

# Bump only when the on-disk JSON shape changes.
SCHEMA_VERSION: int = 1

_logger = get_logger("ledger_ingest.stats_store")


class WordEntry(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    total_occurrences: int = Field(ge=0)
    length: int = Field(ge=0)
    is_numeric: bool
    per_category_counts: dict[str, int]

    @field_validator("per_category_counts")
    @classmethod
    def _counts_non_negative(cls, v: dict[str, int]) -> dict[str, int]:
        if any(c < 0 for c in v.values()):
            raise ValueError("category counts must be non-negative")
        return v


class WordStatsFile(BaseModel):
    """Top-level schema for the statistics JSON file."""

    model_config = ConfigDict(strict=True, extra="forbid")

    schema_version: int
    words: dict[str, WordEntry]


def _resolve(path: str | PathLike[str] | None) -> Path:
    return Path(path) if path is not None else get_stats_path()


def load_stats(path: str | PathLike[str] | None = None) -> dict[str, WordStats]:
    """Load the statistics map; a missing file yields an empty map.

    Raises
    ------
    StatsStoreError
        When the file exists but is not valid JSON or does not match the schema.
    """

    p = _resolve(path)
    if not p.exists():
        return {}
    try:
        parsed = WordStatsFile.model_validate_json(p.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as exc:
        raise StatsStoreError(f"Cannot read word statistics from {p}: {exc}") from exc
    if parsed.schema_version != SCHEMA_VERSION:
        raise StatsStoreError(
            f"Unsupported word statistics schema_version {parsed.schema_version} in {p}"
        )
    return {
        word: WordStats(
            total_occurrences=e.total_occurrences,
            length=e.length,
            is_numeric=e.is_numeric,
            per_category_counts=dict(e.per_category_counts),
        )
        for word, e in parsed.words.items()
    }


def save_stats(stats: WordStatistics, path: str | PathLike[str] | None = None) -> Path:
    p = _resolve(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    doc = WordStatsFile(
        schema_version=SCHEMA_VERSION,
        words={
            word: WordEntry(
                total_occurrences=ws.total_occurrences,
                length=ws.length,
                is_numeric=ws.is_numeric,
                per_category_counts=dict(ws.per_category_counts),
            )
            for word, ws in sorted(stats.items())
        },
    )
    tmp = p.with_suffix(p.suffix + ".tmp")
    try:
        tmp.write_text(
            json.dumps(doc.model_dump(mode="json"), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        os.replace(tmp, p)
    except Exception:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise
    _logger.debug("Saved %d words to %s", len(stats), os.fspath(p))
    return p


def stats_summary(stats: Mapping[str, WordStats]) -> dict[str, int]:
    """Number of learned words per category (for display)."""

    out: dict[str, int] = {}
    for ws in stats.values():
        for category in ws.per_category_counts:
            out[category] = out.get(category, 0) + 1
    return out


__all__ = ["SCHEMA_VERSION", "WordStatsFile", "load_stats", "save_stats", "stats_summary"]
