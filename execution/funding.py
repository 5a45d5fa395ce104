"""
Funding Controller — aggregate open interest and the global funding rate.

  funding_rate = |longs - shorts| * 1e18 / (longs + shorts)

Recomputed lazily: there is no scheduler, so refresh() runs at the start of
every ledger operation and recomputes once FUNDING_INTERVAL has elapsed since
the last interval boundary it applied. The rate is observable state only;
it is not transferred between sides.
"""
from collections import deque
from dataclasses import dataclass
from loguru import logger

from config import FUNDING_INTERVAL_SECONDS, FUNDING_HISTORY_SIZE, RATE_SCALE
from execution.errors import DegenerateMarket, Underflow


def compute_funding_rate(total_longs: int, total_shorts: int) -> int:
    """Imbalance ratio scaled to RATE_SCALE. Raises on an empty market."""
    total = total_longs + total_shorts
    if total == 0:
        raise DegenerateMarket('Funding rate undefined with zero open interest')
    return abs(total_longs - total_shorts) * RATE_SCALE // total


@dataclass(frozen=True)
class FundingSnapshot:
    timestamp:    int
    rate:         int
    total_longs:  int
    total_shorts: int


@dataclass(frozen=True)
class FundingState:
    total_longs:  int
    total_shorts: int
    funding_rate: int
    last_update:  int
    history:      tuple


class FundingController:
    """Owns open interest per side; the only writer of those counters."""

    def __init__(self, interval: int = FUNDING_INTERVAL_SECONDS, start: int = 0):
        if interval <= 0:
            raise ValueError('Funding interval must be positive')
        self.interval     = interval
        self.total_longs  = 0
        self.total_shorts = 0
        self.funding_rate = 0
        self.last_update  = start - (start % interval)
        self.history: deque[FundingSnapshot] = deque(maxlen=FUNDING_HISTORY_SIZE)

    # ── Funding ───────────────────────────────────────────────────────
    def is_due(self, now: int) -> bool:
        return now - self.last_update >= self.interval

    def refresh(self, now: int) -> FundingSnapshot | None:
        """
        Recompute the rate if an interval boundary has passed.

        An empty market has no imbalance: the guarded result is a zero rate
        rather than a division by zero. Returns the snapshot when updated.
        """
        if not self.is_due(now):
            return None

        try:
            rate = compute_funding_rate(self.total_longs, self.total_shorts)
        except DegenerateMarket:
            logger.debug('[FUNDING] No open interest — rate reset to 0')
            rate = 0

        self.funding_rate = rate
        self.last_update = now - (now % self.interval)
        snap = FundingSnapshot(
            timestamp=now,
            rate=rate,
            total_longs=self.total_longs,
            total_shorts=self.total_shorts,
        )
        self.history.append(snap)
        logger.info(
            f'[FUNDING] Rate {rate / RATE_SCALE:.4%} | '
            f'Longs: {self.total_longs} | Shorts: {self.total_shorts}'
        )
        return snap

    # ── Open Interest ─────────────────────────────────────────────────
    def adjust_open_interest(self, is_long: bool, delta: int):
        """Add a signed delta to one side. No mutation if it would underflow."""
        current = self.total_longs if is_long else self.total_shorts
        updated = current + delta
        if updated < 0:
            side = 'long' if is_long else 'short'
            raise Underflow(f'{side} open interest {current} cannot absorb {delta}')
        if is_long:
            self.total_longs = updated
        else:
            self.total_shorts = updated

    # ── Rollback Support ──────────────────────────────────────────────
    def snapshot(self) -> FundingState:
        return FundingState(
            total_longs=self.total_longs,
            total_shorts=self.total_shorts,
            funding_rate=self.funding_rate,
            last_update=self.last_update,
            history=tuple(self.history),
        )

    def restore(self, state: FundingState):
        self.total_longs  = state.total_longs
        self.total_shorts = state.total_shorts
        self.funding_rate = state.funding_rate
        self.last_update  = state.last_update
        self.history.clear()
        self.history.extend(state.history)

    def status(self) -> dict:
        return {
            'total_longs': self.total_longs,
            'total_shorts': self.total_shorts,
            'funding_rate': self.funding_rate,
            'last_funding_update': self.last_update,
            'next_funding_update': self.last_update + self.interval,
        }
