from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest
from ledger_ingest.autocat import (
    ScoringParams,
    apply_category,
    apply_suggestions,
    learn,
    pending_suggestions,
    rebuild_stats,
    score,
    suggest,
    tokenize,
)
from ledger_ingest.models import CanonicalRow


def _row(description: str, category: str = "") -> CanonicalRow:
    return CanonicalRow(
        source_id="CHQ_01.01.2024_31.01.2024.csv",
        account_label="CHQ",
        transaction_date=date(2024, 1, 15),
        value_date=date(2024, 1, 15),
        debit=Decimal("-9.99"),
        credit=Decimal("0.00"),
        description=description,
        running_balance=Decimal("100.00"),
        category=category,
    )


def test_tokenize_uppercases_splits_and_drops_short_tokens():
    assert tokenize("  Prlv sepa-NETFLIX_com x 12 ") == ["PRLV", "SEPA", "NETFLIX", "COM", "12"]
    assert tokenize("") == []


def test_learning_twice_accumulates_counts():
    stats = learn("NETFLIX ABONNEMENT", "SUBSCRIPTIONS", {})
    stats = learn("NETFLIX ABONNEMENT", "SUBSCRIPTIONS", stats)
    assert stats["NETFLIX"].total_occurrences == 2
    assert stats["NETFLIX"].per_category_counts["SUBSCRIPTIONS"] == 2
    assert stats["NETFLIX"].length == 7
    assert not stats["NETFLIX"].is_numeric


def test_learn_is_pure_and_ignores_empty_category():
    original = learn("NETFLIX", "SUBSCRIPTIONS", {})
    updated = learn("NETFLIX", "LEISURE", original)
    assert original["NETFLIX"].total_occurrences == 1
    assert dict(original["NETFLIX"].per_category_counts) == {"SUBSCRIPTIONS": 1}
    assert updated["NETFLIX"].total_occurrences == 2
    assert learn("NETFLIX", "", original) == original


def test_numeric_words_are_learned_but_not_scored():
    stats = learn("CB 4242", "SHOPPING", {})
    assert stats["4242"].is_numeric
    assert score("4242", stats) == {}


def test_empty_statistics_never_suggest():
    s = suggest("NETFLIX ABONNEMENT", {})
    assert s.category is None
    assert s.confidence == 0


def test_short_words_are_down_weighted():
    stats = learn("EDF ELECTRICITE", "UTILITIES", {})
    scores = score("EDF", stats)
    assert scores == {"UTILITIES": pytest.approx(0.95)}
    assert score("ELECTRICITE", stats) == {"UTILITIES": pytest.approx(1.0)}

    flat = ScoringParams(short_word_factor=1.0)
    assert score("EDF", stats, flat) == {"UTILITIES": pytest.approx(1.0)}


def test_scores_add_up_per_word():
    stats = learn("CARREFOUR MARKET", "GROCERIES", {})
    stats = learn("CARREFOUR CARBURANT", "TRANSPORT", stats)
    s = suggest("CARREFOUR MARKET PARIS", stats)
    assert s.category == "GROCERIES"
    assert s.confidence == pytest.approx(1.5)
    assert s.per_category_scores["TRANSPORT"] == pytest.approx(0.5)


def test_low_scores_give_no_suggestion():
    stats = {}
    for category in "ABCDEFGHIJKL":
        stats = learn("VIREMENT", category, stats)
    s = suggest("VIREMENT", stats)
    assert s.category is None
    assert s.confidence == 0.0
    assert len(s.per_category_scores) == 12


def test_rebuild_skips_uncategorized_rows():
    rows = [_row("NETFLIX", "SUBSCRIPTIONS"), _row("NETFLIX", ""), _row("NETFLIX", "???")]
    stats = rebuild_stats(rows)
    assert stats["NETFLIX"].total_occurrences == 1


def test_pending_suggestions_only_cover_uncategorized_rows():
    stats = learn("NETFLIX ABONNEMENT", "SUBSCRIPTIONS", {})
    rows = [
        _row("NETFLIX", "SUBSCRIPTIONS"),
        _row("PRLV NETFLIX"),
        _row("INCONNU", "???"),
        _row(""),
    ]
    pending = pending_suggestions(rows, stats)
    assert [p.row_index for p in pending] == [1, 2]
    assert pending[0].suggested_category == "SUBSCRIPTIONS"
    assert pending[0].selected
    assert pending[1].suggested_category is None
    assert not pending[1].selected


def test_apply_category_learns_only_on_change():
    rows = [_row("SPOTIFY PREMIUM")]
    new_rows, stats = apply_category(rows, 0, "SUBSCRIPTIONS", {})
    assert new_rows[0].category == "SUBSCRIPTIONS"
    assert rows[0].category == ""
    assert stats["SPOTIFY"].total_occurrences == 1

    same_rows, same_stats = apply_category(new_rows, 0, "SUBSCRIPTIONS", stats)
    assert same_stats["SPOTIFY"].total_occurrences == 1

    # Re-categorizing adds to the new category and keeps the old counts.
    _, moved = apply_category(same_rows, 0, "LEISURE", same_stats)
    assert dict(moved["SPOTIFY"].per_category_counts) == {"SUBSCRIPTIONS": 1, "LEISURE": 1}

    cleared_rows, cleared = apply_category(same_rows, 0, "", same_stats)
    assert cleared_rows[0].category == ""
    assert cleared == same_stats


def test_apply_suggestions_uses_selected_ones():
    stats = learn("NETFLIX", "SUBSCRIPTIONS", {})
    rows = [_row("NETFLIX"), _row("PRLV NETFLIX")]
    pending = pending_suggestions(rows, stats)
    pending[1] = replace(pending[1], selected=False)
    new_rows, new_stats = apply_suggestions(rows, pending, stats)
    assert [r.category for r in new_rows] == ["SUBSCRIPTIONS", ""]
    assert new_stats["NETFLIX"].total_occurrences == 2
