"""
Fee model: integer truncation and monotonicity.
"""
import pytest
from hypothesis import given, settings, strategies as st

from execution.fee_model import div_trunc, liquidation_fee, trade_fee


class TestTradeFee:
    def test_truncates_below_one_unit(self):
        assert trade_fee(1999) == 0

    def test_first_whole_unit(self):
        assert trade_fee(2000) == 1

    def test_zero_size(self):
        assert trade_fee(0) == 0

    def test_five_basis_points(self):
        assert trade_fee(1_000_000) == 500

    @given(a=st.integers(min_value=0, max_value=10 ** 30), b=st.integers(min_value=0, max_value=10 ** 30))
    @settings(max_examples=200)
    def test_monotonic(self, a, b):
        lo, hi = sorted((a, b))
        assert trade_fee(lo) <= trade_fee(hi)


class TestLiquidationFee:
    def test_ten_percent(self):
        assert liquidation_fee(100) == 10

    def test_truncates(self):
        assert liquidation_fee(99) == 9
        assert liquidation_fee(9) == 0

    @given(a=st.integers(min_value=0, max_value=10 ** 30), b=st.integers(min_value=0, max_value=10 ** 30))
    @settings(max_examples=200)
    def test_monotonic(self, a, b):
        lo, hi = sorted((a, b))
        assert liquidation_fee(lo) <= liquidation_fee(hi)


class TestDivTrunc:
    @pytest.mark.parametrize('num,den,expected', [
        (7, 2, 3),
        (-7, 2, -3),
        (7, -2, -3),
        (-7, -2, 3),
        (0, 5, 0),
    ])
    def test_truncates_toward_zero(self, num, den, expected):
        assert div_trunc(num, den) == expected

    def test_differs_from_floor_for_negatives(self):
        assert -7 // 2 == -4
        assert div_trunc(-7, 2) == -3

    def test_zero_denominator(self):
        with pytest.raises(ZeroDivisionError):
            div_trunc(1, 0)
