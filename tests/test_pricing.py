"""Tests for the shared pricing helpers."""

from pricing import first_amount, line_profit, line_total, price_matches, to_number, to_quantity


class TestToNumber:
    def test_numbers_and_numeric_strings(self):
        assert to_number(12) == 12.0
        assert to_number("12.5") == 12.5

    def test_unusable_values_are_zero(self):
        assert to_number(None) == 0.0
        assert to_number("abc") == 0.0
        assert to_number({"price": 1}) == 0.0
        assert to_number(True) == 0.0
        assert to_number(float("nan")) == 0.0

    def test_quantity_defaults_to_one(self):
        assert to_quantity(None) == 1
        assert to_quantity(0) == 1
        assert to_quantity("3") == 3


class TestLineAmounts:
    def test_line_total_from_catalog_price(self):
        assert line_total(5000, 2) == 10000

    def test_caller_total_wins(self):
        assert line_total(5000, 2, caller_total=9000) == 9000

    def test_zero_caller_total_falls_back(self):
        assert line_total(5000, 2, caller_total=0) == 10000

    def test_line_profit_prefers_caller_unit_profit(self):
        assert line_profit(1000, 2) == 2000
        assert line_profit(1000, 2, caller_profit=700) == 1400

    def test_line_profit_missing_everywhere(self):
        assert line_profit(None, 3) == 0

    def test_first_amount_skips_zero_and_missing(self):
        assert first_amount(None, 0, "", 7) == 7
        assert first_amount() == 0


def test_price_matches_with_tolerance():
    assert price_matches(5000, 4000, 1000)
    assert price_matches(10.0, 6.995, 3.0)
    assert not price_matches(5000, 4000, 900)
