"""Online word-statistics classifier for transaction descriptions.

The model is an additive bag of words: every learned ``(description,
category)`` pair increments, for each word, the total count and the count for
that category. Scoring a description sums, over its known non-numeric words,
``weight * count(category) / total`` per category. Nothing is ever decayed or
retracted: re-categorizing a row adds counts for the new category and leaves
the old counts in place.

Statistics are passed explicitly to every call and never mutated: ``learn``
returns a new mapping.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace

from .logging_setup import get_logger
from .models import (
    UNCATEGORIZED_PLACEHOLDER,
    CanonicalRow,
    CategorySuggestion,
    PendingSuggestion,
    WordStatistics,
    WordStats,
)

_SPLIT_RE = re.compile(r"[\s\-_]+")
_NUMERIC_RE = re.compile(r"^\d+$")

_logger = get_logger("ledger_ingest.autocat")


@dataclass(frozen=True, slots=True)
class ScoringParams:
    """Classifier tunables.

    ``short_word_factor`` down-weights words shorter than
    ``short_word_threshold``; its value is empirical.
    """

    min_word_length: int = 2
    short_word_threshold: int = 4
    short_word_factor: float = 0.95
    min_suggestion_score: float = 0.1


DEFAULT_PARAMS = ScoringParams()


def tokenize(text: str, params: ScoringParams = DEFAULT_PARAMS) -> list[str]:
    """Uppercase and split on whitespace, ``-`` and ``_``; drop short tokens."""

    if not text or not isinstance(text, str):
        return []
    tokens = _SPLIT_RE.split(text.strip().upper())
    return [t for t in tokens if len(t) >= params.min_word_length]


def is_numeric_word(word: str) -> bool:
    return bool(_NUMERIC_RE.fullmatch(word))


def is_uncategorized(category: str | None) -> bool:
    return not category or not category.strip() or category == UNCATEGORIZED_PLACEHOLDER


def learn(
    text: str,
    category: str,
    stats: WordStatistics,
    params: ScoringParams = DEFAULT_PARAMS,
) -> dict[str, WordStats]:
    """Return ``stats`` updated with one labelled description.

    A no-op (returning a shallow copy) when ``category`` is empty.
    """

    updated = dict(stats)
    category = (category or "").strip()
    if not category:
        return updated
    for word in tokenize(text, params):
        current = updated.get(word)
        if current is None:
            current = WordStats(
                total_occurrences=0, length=len(word), is_numeric=is_numeric_word(word)
            )
        counts = dict(current.per_category_counts)
        counts[category] = counts.get(category, 0) + 1
        updated[word] = replace(
            current,
            total_occurrences=current.total_occurrences + 1,
            per_category_counts=counts,
        )
    return updated


def learn_many(
    pairs: Iterable[tuple[str, str]],
    stats: WordStatistics,
    params: ScoringParams = DEFAULT_PARAMS,
) -> dict[str, WordStats]:
    """Learn a batch of ``(description, category)`` pairs in order."""

    updated = dict(stats)
    for text, category in pairs:
        if text and category and category.strip():
            updated = learn(text, category, updated, params)
    return updated


def rebuild_stats(
    rows: Iterable[CanonicalRow], params: ScoringParams = DEFAULT_PARAMS
) -> dict[str, WordStats]:
    """Learn from scratch over every categorized row."""

    pairs = [(r.description, r.category) for r in rows if not is_uncategorized(r.category)]
    stats = learn_many(pairs, {}, params)
    _logger.info("Rebuilt word statistics from %d rows: %d words", len(pairs), len(stats))
    return stats


def score(
    text: str, stats: WordStatistics, params: ScoringParams = DEFAULT_PARAMS
) -> dict[str, float]:
    scores: dict[str, float] = {}
    for word in tokenize(text, params):
        if is_numeric_word(word):
            continue
        ws = stats.get(word)
        if ws is None or ws.total_occurrences <= 0:
            continue
        weight = params.short_word_factor if ws.length < params.short_word_threshold else 1.0
        for category, count in ws.per_category_counts.items():
            scores[category] = scores.get(category, 0.0) + weight * (count / ws.total_occurrences)
    return scores


def suggest(
    text: str, stats: WordStatistics, params: ScoringParams = DEFAULT_PARAMS
) -> CategorySuggestion:
    """Best-scoring category, or ``None`` below ``min_suggestion_score``.

    Ties keep the category that reached the top score first.
    """

    scores = score(text, stats, params)
    best: str | None = None
    best_score = 0.0
    for category, value in scores.items():
        if value > best_score:
            best, best_score = category, value
    if best is None or best_score < params.min_suggestion_score:
        return CategorySuggestion(category=None, per_category_scores=scores, confidence=0.0)
    return CategorySuggestion(category=best, per_category_scores=scores, confidence=best_score)


def pending_suggestions(
    rows: Sequence[CanonicalRow],
    stats: WordStatistics,
    params: ScoringParams = DEFAULT_PARAMS,
) -> list[PendingSuggestion]:
    """Suggestions for every uncategorized row that has a description."""

    out: list[PendingSuggestion] = []
    for index, row in enumerate(rows):
        if not is_uncategorized(row.category) or not row.description:
            continue
        suggestion = suggest(row.description, stats, params)
        out.append(
            PendingSuggestion(
                row_index=index,
                source_id=row.source_id,
                transaction_date=row.transaction_date,
                description=row.description,
                current_category=row.category,
                suggested_category=suggestion.category,
                confidence=suggestion.confidence,
                selected=suggestion.category is not None,
            )
        )
    return out


def apply_category(
    rows: Sequence[CanonicalRow],
    index: int,
    category: str,
    stats: WordStatistics,
    params: ScoringParams = DEFAULT_PARAMS,
) -> tuple[list[CanonicalRow], dict[str, WordStats]]:
    """Set a row's category and learn from it when it actually changed.

    Returns new rows and new statistics; the inputs are left untouched.
    """

    category = (category or "").strip()
    new_rows = list(rows)
    old = new_rows[index]
    new_rows[index] = replace(old, category=category)
    if category != old.category and category and old.description:
        return new_rows, learn(old.description, category, stats, params)
    return new_rows, dict(stats)


def apply_suggestions(
    rows: Sequence[CanonicalRow],
    suggestions: Iterable[PendingSuggestion],
    stats: WordStatistics,
    params: ScoringParams = DEFAULT_PARAMS,
) -> tuple[list[CanonicalRow], dict[str, WordStats]]:
    """Apply every selected suggestion through :func:`apply_category`."""

    new_rows: Sequence[CanonicalRow] = rows
    new_stats: Mapping[str, WordStats] = stats
    for s in suggestions:
        if s.selected and s.suggested_category:
            new_rows, new_stats = apply_category(
                new_rows, s.row_index, s.suggested_category, new_stats, params
            )
    return list(new_rows), dict(new_stats)


__all__ = [
    "DEFAULT_PARAMS",
    "ScoringParams",
    "apply_category",
    "apply_suggestions",
    "is_numeric_word",
    "is_uncategorized",
    "learn",
    "learn_many",
    "pending_suggestions",
    "rebuild_stats",
    "score",
    "suggest",
    "tokenize",
]
