from decimal import Decimal

from ledger_ingest.inference import infer_type, is_monotonic, threshold_for


def test_adaptive_threshold_small_sample_accepts_40_percent_dates():
    values = ["01/01/2024", "02/01/2024", "CARTE", "VIREMENT", "PRELEVEMENT"]
    kind, meta = infer_type(values)
    assert kind == "date"
    assert meta.sample_size == 5
    assert meta.date_count == 2


def test_adaptive_threshold_large_sample_rejects_40_percent_dates():
    values = ["01/01/2024"] * 8 + ["PAIEMENT CARTE"] * 12
    kind, meta = infer_type(values)
    assert kind != "date"
    assert kind == "text"
    assert meta.date_count == 8


def test_threshold_switches_at_ten_values():
    assert threshold_for(9) == 0.4
    assert threshold_for(10) == 0.6


def test_numbers_with_sign_traits():
    kind, meta = infer_type(["10,00", "-5,00", "3,50"])
    assert kind == "number"
    assert meta.has_negative and meta.has_positive
    assert not meta.is_monotonic


def test_running_balance_is_monotonic():
    kind, meta = infer_type(["100.00", "150.00", "175.50", "175.50"])
    assert kind == "number"
    assert meta.is_monotonic


def test_two_points_are_never_monotonic():
    kind, meta = infer_type(["100.00", "150.00"])
    assert kind == "number"
    assert not meta.is_monotonic
    assert not is_monotonic([Decimal("1"), Decimal("2")])
    assert is_monotonic([Decimal("3"), Decimal("2"), Decimal("1")])


def test_dates_are_tried_before_numbers():
    kind, _ = infer_type(["20240101", "20240102", "20240103"])
    assert kind == "date"


def test_empty_values_are_ignored():
    kind, meta = infer_type([None, "", "  "])
    assert kind == "unknown"
    assert meta.sample_size == 0

    kind, meta = infer_type([None, "12,00", "", "13,00"])
    assert kind == "number"
    assert meta.sample_size == 2


def test_only_first_fifty_non_empty_values_are_sampled():
    values = ["LIBELLE"] * 50 + ["01/01/2024"] * 100
    kind, meta = infer_type(values)
    assert kind == "text"
    assert meta.sample_size == 50


def test_spreadsheet_amount_cells_are_numbers_not_serials():
    kind, meta = infer_type([-45.5, 1200.0])
    assert kind == "number"
    assert meta.date_count == 0
    assert (meta.has_negative, meta.has_positive) == (True, True)

    # One out-of-range integer is enough to rule out serials for the column.
    kind, _ = infer_type([2000, 800, -15])
    assert kind == "number"


def test_integral_serial_cells_still_read_as_dates():
    kind, meta = infer_type([45292, 45293.0, 45294])
    assert kind == "date"
    assert meta.date_count == 3
