"""
Perps Fee Model — integer fee accrual for trades and liquidations.

  Trade fee:       0.05% of position size (TRADE_FEE_BPS = 5)
  Liquidation fee: 10% of posted collateral, paid to the keeper

Fees use the same truncate-toward-zero division as the PnL code so fee
accrual and balance changes never disagree by a rounding unit.
"""
from config import BPS_SCALE, LIQUIDATION_FEE_DIVISOR, TRADE_FEE_BPS


def div_trunc(numerator: int, denominator: int) -> int:
    """Integer division truncating toward zero (not floor)."""
    if denominator == 0:
        raise ZeroDivisionError('div_trunc by zero')
    q = abs(numerator) // abs(denominator)
    return q if (numerator >= 0) == (denominator > 0) else -q


def trade_fee(size: int) -> int:
    """Fee charged on open, e.g. trade_fee(2000) == 1, trade_fee(1999) == 0."""
    return div_trunc(size * TRADE_FEE_BPS, BPS_SCALE)


def liquidation_fee(collateral: int) -> int:
    """Keeper reward for liquidating a position with this much collateral."""
    return div_trunc(collateral, LIQUIDATION_FEE_DIVISOR)
