"""
Tests for money helpers
"""

from decimal import Decimal

import pytest

from cartengine.services.money import (
    add,
    is_non_negative,
    multiply,
    round_money,
    to_decimal,
    to_float,
)


class TestToDecimal:
    """Tests for to_decimal."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, Decimal("0")),
            ("12.34", Decimal("12.34")),
            (7, Decimal("7")),
            (0.1, Decimal("0.1")),
            (Decimal("3.3"), Decimal("3.3")),
            ("not-a-number", Decimal("0")),
        ],
    )
    def test_conversion(self, value, expected):
        """Test conversion of supported inputs."""
        assert to_decimal(value) == expected

    def test_float_keeps_repr_precision(self):
        """Test floats convert through their repr."""
        assert to_decimal(0.1) + to_decimal(0.2) == Decimal("0.3")


class TestRounding:
    """Tests for round_money."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2.005", Decimal("2.01")),
            ("2.004", Decimal("2.00")),
            ("27", Decimal("27.00")),
            ("0.125", Decimal("0.13")),
        ],
    )
    def test_round_half_up(self, value, expected):
        """Test money rounds half up to cents."""
        assert round_money(value) == expected
        assert str(round_money(value)) == str(expected)


class TestArithmetic:
    """Tests for money arithmetic helpers."""

    def test_add_and_multiply(self):
        """Test add and multiply on mixed inputs."""
        assert add("1.10", 2) == Decimal("3.10")
        assert multiply("2.50", 3) == Decimal("7.50")

    def test_to_float(self):
        """Test Decimal to float conversion."""
        assert to_float(Decimal("10.50")) == 10.5

    @pytest.mark.parametrize("value,expected", [(0, True), ("1.5", True), (-0.01, False), ("NaN", False)])
    def test_is_non_negative(self, value, expected):
        """Test the non-negative check, NaN included."""
        assert is_non_negative(value) is expected
