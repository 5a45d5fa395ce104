"""
PnL / Margin Evaluator — marks a position snapshot to a price.

Deliberately minimal risk model:
  pnl        = (price - entry) * size / PRICE_SCALE   (sign flipped for shorts)
  underwater = collateral + pnl <= 0

No maintenance-margin buffer and no leverage term: a position becomes
liquidatable at exact insolvency, never before.
"""
from config import PRICE_SCALE
from execution.fee_model import div_trunc
from execution.position import PerpPosition


def unrealized_pnl(pos: PerpPosition, current_price: int) -> int:
    """Signed PnL, truncated toward zero. Never clamped."""
    if pos.is_long:
        delta = current_price - pos.entry_price
    else:
        delta = pos.entry_price - current_price
    return div_trunc(delta * pos.size, PRICE_SCALE)


def position_equity(pos: PerpPosition, current_price: int) -> int:
    return pos.collateral + unrealized_pnl(pos, current_price)


def is_underwater(pos: PerpPosition, current_price: int) -> bool:
    """Sole solvency test for liquidation."""
    return position_equity(pos, current_price) <= 0


def settlement_payout(pos: PerpPosition, current_price: int) -> int:
    """What close returns to the owner: equity floored at zero."""
    return max(position_equity(pos, current_price), 0)


def health(pos: PerpPosition, current_price: int) -> dict:
    """Mark-to-market summary for read views."""
    pnl = unrealized_pnl(pos, current_price)
    return {
        'mark_price': current_price,
        'unrealized_pnl': pnl,
        'equity': pos.collateral + pnl,
        'underwater': pos.collateral + pnl <= 0,
    }
