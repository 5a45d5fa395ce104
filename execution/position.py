"""
Position record — one leveraged long/short exposure held in an account slot.

Slots are never removed. A closed or liquidated position stays at its index,
zeroed, and tagged with its terminal status so indices remain stable
identifiers for the lifetime of the account.
"""
from dataclasses import dataclass, field


OPEN       = 'OPEN'
CLOSED     = 'CLOSED'
LIQUIDATED = 'LIQUIDATED'


@dataclass
class PerpPosition:
    """State of a single position slot (integer units throughout)."""
    size:        int             # notional magnitude
    collateral:  int             # margin, smallest collateral unit
    entry_price: int             # oracle scale (1e8), signed
    is_long:     bool
    leverage:    int             # 1..=MAX_LEVERAGE, fixed at open
    opened_at:   int = 0         # informational only
    status:      str = OPEN

    @property
    def is_active(self) -> bool:
        return self.status == OPEN and self.size > 0

    @property
    def direction(self) -> str:
        return 'long' if self.is_long else 'short'

    def zero(self, status: str):
        """Tombstone the slot in place."""
        self.size = 0
        self.collateral = 0
        self.status = status

    def to_dict(self) -> dict:
        return {
            'size': self.size,
            'collateral': self.collateral,
            'entry_price': self.entry_price,
            'direction': self.direction,
            'leverage': self.leverage,
            'opened_at': self.opened_at,
            'status': self.status,
        }


@dataclass
class Account:
    """Per-account ledger record, created implicitly on first open."""
    account_id:     str
    positions:      list[PerpPosition] = field(default_factory=list)
    fee_reserve:    int = 0
    pending_payout: int = 0

    def slot(self, index: int) -> PerpPosition | None:
        if 0 <= index < len(self.positions):
            return self.positions[index]
        return None
